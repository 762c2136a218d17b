"""Streaming voice activity detection driven by a speech-probability model."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Sequence

STATE_SIZE = 2 * 1 * 128

# A model takes (window, state, sample_rate) and returns (speech_probability, new_state).
SpeechModel = Callable[[Sequence[float], Any, int], "tuple[float, Any]"]


@dataclass
class SpeechTimestamp:
    """A detected speech span in samples; -1 marks an unset bound."""

    start: int = -1
    end: int = -1

    def __str__(self) -> str:
        return f"timestamp {self.start}, {self.end}"


class VadIterator:
    """Finds speech spans in audio, one fixed-size window at a time."""

    def __init__(
        self,
        model: SpeechModel,
        sample_rate: int = 16000,
        window_frame_size: int = 32,
        threshold: float = 0.5,
        min_silence_duration_ms: int = 0,
        speech_pad_ms: int = 32,
        min_speech_duration_ms: int = 32,
        max_speech_duration_s: float = math.inf,
    ) -> None:
        self.model = model
        self.threshold = threshold
        self.sample_rate = sample_rate
        sr_per_ms = sample_rate // 1000
        self.window_size_samples = window_frame_size * sr_per_ms
        if self.window_size_samples <= 0:
            raise ValueError(
                "window size must be positive: check sample_rate and window_frame_size"
            )
        self._min_speech_samples = sr_per_ms * min_speech_duration_ms
        self._speech_pad_samples = sr_per_ms * speech_pad_ms
        self._max_speech_samples = (
            float(sample_rate) * max_speech_duration_s
            - float(self.window_size_samples)
            - 2.0 * float(self._speech_pad_samples)
        )
        self._min_silence_samples = sr_per_ms * min_silence_duration_ms
        self._min_silence_samples_at_max_speech = sr_per_ms * 98

        self._state: Any = [0.0] * STATE_SIZE
        self._triggered = False
        self._temp_end = 0
        self._current_sample = 0
        self._prev_end = 0
        self._next_start = 0
        self._speeches: list[SpeechTimestamp] = []
        self._current_speech = SpeechTimestamp()

    def _reset_states(self, reset_state: bool) -> None:
        if reset_state:
            self._state = [0.0] * STATE_SIZE
            self._triggered = False
        self._temp_end = 0
        self._current_sample = 0
        self._prev_end = 0
        self._next_start = 0
        self._speeches = []
        self._current_speech = SpeechTimestamp()

    def _close_speech(self) -> None:
        self._speeches.append(self._current_speech)
        self._current_speech = SpeechTimestamp()
        self._prev_end = 0
        self._next_start = 0
        self._temp_end = 0
        self._triggered = False

    def _predict(self, window: Sequence[float]) -> None:
        speech_prob, self._state = self.model(window, self._state, self.sample_rate)
        self._current_sample += self.window_size_samples
        window_start = self._current_sample - self.window_size_samples

        if speech_prob >= self.threshold:
            if self._temp_end != 0:
                self._temp_end = 0
                if self._next_start < self._prev_end:
                    self._next_start = window_start
            if not self._triggered:
                self._triggered = True
                self._current_speech.start = window_start
            return

        if (
            self._triggered
            and float(self._current_sample - self._current_speech.start)
            > self._max_speech_samples
        ):
            if self._prev_end > 0:
                self._current_speech.end = self._prev_end
                self._speeches.append(self._current_speech)
                self._current_speech = SpeechTimestamp()
                if self._next_start < self._prev_end:
                    self._triggered = False
                else:
                    self._current_speech.start = self._next_start
                self._prev_end = 0
                self._next_start = 0
                self._temp_end = 0
            else:
                self._current_speech.end = self._current_sample
                self._close_speech()
            return

        if speech_prob >= self.threshold - 0.15:
            return

        if not self._triggered:
            return
        if self._temp_end == 0:
            self._temp_end = self._current_sample
        silence = self._current_sample - self._temp_end
        if silence > self._min_silence_samples_at_max_speech:
            self._prev_end = self._temp_end
        if silence < self._min_silence_samples:
            return
        self._current_speech.end = self._temp_end
        if self._current_speech.end - self._current_speech.start > self._min_speech_samples:
            self._close_speech()

    def process(self, input_wav: Sequence[float], reset_state: bool = True) -> None:
        """Run detection over ``input_wav``; a trailing partial window is ignored."""
        self._reset_states(reset_state)
        samples = list(input_wav)
        size = self.window_size_samples
        for offset in range(0, len(samples) - size + 1, size):
            self._predict(samples[offset : offset + size])

        if self._current_speech.start >= 0:
            self._current_speech.end = len(samples)
            self._close_speech()

    def collect_chunks(self, input_wav: Sequence[float]) -> list[float]:
        """Return the samples of ``input_wav`` that lie inside detected speech."""
        samples = list(input_wav)
        output: list[float] = []
        for speech in self._speeches:
            output.extend(samples[speech.start : speech.end])
        return output

    def drop_chunks(self, input_wav: Sequence[float]) -> list[float]:
        """Return the samples of ``input_wav`` that lie outside detected speech."""
        samples = list(input_wav)
        output: list[float] = []
        current_start = 0
        for speech in self._speeches:
            output.extend(samples[current_start : speech.start])
            current_start = speech.end
        output.extend(samples[current_start:])
        return output

    def speech_timestamps(self) -> list[SpeechTimestamp]:
        """Speech spans found by the last call to :meth:`process`."""
        return list(self._speeches)