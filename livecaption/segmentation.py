"""Cutting an incoming audio stream into segments for speech recognition."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Callable, Optional, Protocol, Sequence

from livecaption.inference import (
    WHISPER_SAMPLE_RATE,
    DetectionResult,
    DetectionResultWithText,
    VadEvent,
)
from livecaption.silero_vad import SpeechModel, VadIterator

logger = logging.getLogger(__name__)

_NS_PER_SECOND = 1_000_000_000
_NS_PER_MS = 1_000_000
_MAX_SECONDS_PER_READ = 10
_VAD_MIN_WINDOWS = 8
_SILENCE_PAD_SAMPLES = WHISPER_SAMPLE_RATE // 100
_KEEP_AFTER_SILENT_PARTIAL = WHISPER_SAMPLE_RATE // 4

ResultCallback = Callable[[DetectionResultWithText], None]
AudioChunkCallback = Callable[[list, VadEvent, DetectionResultWithText], None]


class VadMode(IntEnum):
    ACTIVE = 0
    HYBRID = 1
    DISABLED = 2


@dataclass(frozen=True)
class SegmentState:
    """Where the segmenter stands between two processing steps."""

    vad_on: bool = False
    start_ts_offset_ms: int = 0
    end_ts_offset_ms: int = 0
    last_partial_segment_end_ts: int = 0


@dataclass(frozen=True)
class AudioPacket:
    """Frame count and start time (ns since processing began) of one input packet."""

    frames: int
    timestamp_offset_ns: int


class SegmentTranscriber(Protocol):
    def transcribe(
        self,
        samples: Sequence[float],
        t0: int = 0,
        t1: int = 0,
        vad_event: VadEvent = VadEvent.WAS_OFF,
    ) -> DetectionResultWithText: ...


def create_vad(model: SpeechModel) -> VadIterator:
    """Build a detector with the parameters used for 16 kHz segmentation."""
    return VadIterator(model, WHISPER_SAMPLE_RATE, 32, 0.5, 100, 100, 100)


def linear_resample(
    samples: Sequence[float], source_rate: int, target_rate: int
) -> list[float]:
    """Resample mono audio by linear interpolation."""
    if source_rate <= 0 or target_rate <= 0:
        raise ValueError("sample rates must be positive")
    samples = list(samples)
    if source_rate == target_rate or not samples:
        return samples
    out_len = len(samples) * target_rate // source_rate
    last = len(samples) - 1
    step = source_rate / target_rate
    output = []
    for i in range(out_len):
        pos = i * step
        lo = int(pos)
        if lo >= last:
            output.append(samples[last])
            continue
        frac = pos - lo
        output.append(samples[lo] * (1.0 - frac) + samples[lo + 1] * frac)
    return output


class Segmenter:
    """Buffers audio, finds speech segments and sends them to a transcriber."""

    def __init__(
        self,
        vad: VadIterator,
        transcriber: SegmentTranscriber,
        sample_rate: int,
        on_result: Optional[ResultCallback] = None,
        on_audio_chunk: Optional[AudioChunkCallback] = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.vad = vad
        self.transcriber = transcriber
        self.sample_rate = sample_rate
        self.on_result = on_result
        self.on_audio_chunk = on_audio_chunk

        self.vad_mode = VadMode.ACTIVE
        self.partial_transcription = False
        self.partial_latency = 1000
        self.segment_duration = 7000
        self.log_level = logging.DEBUG

        self._lock = threading.Lock()
        self._infos: deque[AudioPacket] = deque()
        self._input: list[float] = []
        self._resampled: list[float] = []
        self._whisper: list[float] = []

    @property
    def pending_input_frames(self) -> int:
        """Input frames not yet taken for processing."""
        with self._lock:
            return len(self._input)

    @property
    def buffered_samples(self) -> int:
        """16 kHz samples waiting to be sent to inference."""
        return len(self._whisper)

    def push_audio(self, samples: Sequence[float], timestamp_offset_ns: int) -> None:
        """Queue a mono packet of input audio that starts at the given offset."""
        samples = list(samples)
        with self._lock:
            self._input.extend(samples)
            self._infos.append(AudioPacket(len(samples), int(timestamp_offset_ns)))

    def _take_input_and_resample(self) -> Optional[tuple[int, int]]:
        """Move up to ten seconds of input into the resampled buffer.

        Returns the start and end offsets in ns, or None when there is no input.
        """
        with self._lock:
            if not self._input:
                return None
            logger.log(
                self.log_level,
                "segmentation: currently %d frames in the audio input buffer",
                len(self._input),
            )
            max_frames = self.sample_rate * _MAX_SECONDS_PER_READ
            num_frames = 0
            start_ns: Optional[int] = None
            last = AudioPacket(0, 0)
            while self._infos:
                info = self._infos.popleft()
                num_frames += info.frames
                if start_ns is None:
                    start_ns = info.timestamp_offset_ns
                last = info
                if num_frames > max_frames:
                    num_frames -= info.frames
                    self._infos.appendleft(info)
                    break
            end_ns = last.timestamp_offset_ns + last.frames * _NS_PER_SECOND // self.sample_rate
            if start_ns is None:
                start_ns = 0
            if start_ns > end_ns:
                # the incoming media reset its timestamps
                start_ns = end_ns - num_frames * _NS_PER_SECOND // self.sample_rate
            chunk = self._input[:num_frames]
            del self._input[:num_frames]

        logger.log(self.log_level, "found %d frames from info buffer.", num_frames)
        resampled = linear_resample(chunk, self.sample_rate, WHISPER_SAMPLE_RATE)
        self._resampled.extend(resampled)
        logger.log(
            self.log_level,
            "resampled: %d frames, current size: %d samples",
            len(resampled),
            len(self._resampled),
        )
        return start_ns, end_ns

    def _chunk_callback(
        self, samples: list[float], event: VadEvent, result: DetectionResultWithText
    ) -> None:
        if self.on_audio_chunk is not None:
            self.on_audio_chunk(samples, event, result)

    def run_inference_and_callbacks(
        self, start_offset_ms: int, end_offset_ms: int, vad_event: VadEvent
    ) -> DetectionResultWithText:
        """Transcribe the whole buffered segment and report the result.

        A partial run leaves the audio in the buffer; any other run consumes it.
        """
        segment = list(self._whisper)
        if vad_event != VadEvent.PARTIAL:
            self._whisper.clear()
        pad = [0.0] * _SILENCE_PAD_SAMPLES
        pcm = pad + segment + pad

        result = self.transcriber.transcribe(pcm, start_offset_ms, end_offset_ms, vad_event)
        if self.on_result is not None:
            self.on_result(result)
        if vad_event != VadEvent.PARTIAL:
            self._chunk_callback(pcm, vad_event, result)
        return result

    def _partial_length_ms(self, state: SegmentState) -> int:
        end = state.end_ts_offset_ms if state.end_ts_offset_ms > 0 else state.start_ts_offset_ms
        since = (
            state.last_partial_segment_end_ts
            if state.last_partial_segment_end_ts > 0
            else state.start_ts_offset_ms
        )
        return end - since

    def vad_based_segmentation(self, state: SegmentState) -> SegmentState:
        """Segment on speech boundaries found by the detector."""
        span = self._take_input_and_resample()
        if span is None:
            return state
        start_ns, end_ns = span

        window = self.vad.window_size_samples
        if len(self._resampled) < window * _VAD_MIN_WINDOWS:
            return state

        num_windows = len(self._resampled) // window
        take = num_windows * window
        vad_input = self._resampled[:take]
        del self._resampled[:take]

        logger.log(
            self.log_level,
            "sending %d frames to vad, %d windows, reset state? %s",
            len(vad_input), num_windows, "no" if state.vad_on else "yes",
        )
        self.vad.process(vad_input, not state.vad_on)

        start_ms = start_ns // _NS_PER_MS
        end_ms = end_ns // _NS_PER_MS
        current = SegmentState(False, start_ms, end_ms, state.last_partial_segment_end_ts)
        last = state

        stamps = self.vad.speech_timestamps()
        if not stamps:
            logger.log(self.log_level, "VAD detected no speech in %d frames", len(vad_input))
            if last.vad_on:
                logger.log(self.log_level, "Last VAD was ON: segment end -> send to inference")
                self.run_inference_and_callbacks(
                    last.start_ts_offset_ms, last.end_ts_offset_ms, VadEvent.WAS_ON
                )
                current = replace(current, last_partial_segment_end_ts=0)
            self._chunk_callback(
                vad_input,
                VadEvent.IS_OFF,
                DetectionResultWithText(
                    DetectionResult.SILENCE,
                    "[silence]",
                    current.start_ts_offset_ms,
                    current.end_ts_offset_ms,
                ),
            )
            return current

        previous_end: Optional[int] = None
        for stamp in stamps:
            if previous_end is None:
                # include up to 100 ms of audio before the first speech span
                start_frame = max(0, stamp.start - WHISPER_SAMPLE_RATE // 10)
            else:
                start_frame = previous_end
            end_frame = stamp.end
            previous_end = stamp.end

            self._whisper.extend(vad_input[start_frame:end_frame])
            logger.log(
                self.log_level,
                "VAD segment pushed %d to %d. current size: %d samples",
                start_frame, end_frame, len(self._whisper),
            )

            if stamp.end < len(vad_input):
                logger.log(self.log_level, "VAD segment end -> send to inference")
                segment_end_ts = start_ms + end_frame * 1000 // WHISPER_SAMPLE_RATE
                self.run_inference_and_callbacks(
                    last.start_ts_offset_ms,
                    segment_end_ts,
                    VadEvent.WAS_ON if last.vad_on else VadEvent.WAS_OFF,
                )
                current = SegmentState(False, current.end_ts_offset_ms, 0, 0)
                last = current
                continue

            # speech continues past the end of this buffer
            if last.vad_on:
                seg_start = last.start_ts_offset_ms
            else:
                seg_start = start_ms + start_frame * 1000 // WHISPER_SAMPLE_RATE
            current = replace(
                current,
                vad_on=True,
                start_ts_offset_ms=seg_start,
                end_ts_offset_ms=start_ms + end_frame * 1000 // WHISPER_SAMPLE_RATE,
            )
            logger.log(
                self.log_level,
                "end not reached. vad state: ON, start ts: %d, end ts: %d",
                current.start_ts_offset_ms, current.end_ts_offset_ms,
            )
            last = current

            if not self.partial_transcription:
                continue

            length_ms = self._partial_length_ms(current)
            logger.log(
                self.log_level, "current buffer length after last partial (%d): %d ms",
                current.last_partial_segment_end_ts, length_ms,
            )
            if length_ms > self.partial_latency:
                current = replace(
                    current, last_partial_segment_end_ts=current.end_ts_offset_ms
                )
                logger.log(self.log_level, "Partial segment -> send to inference")
                self.run_inference_and_callbacks(
                    current.start_ts_offset_ms, current.end_ts_offset_ms, VadEvent.PARTIAL
                )

        return current

    def hybrid_vad_segmentation(self, state: SegmentState) -> SegmentState:
        """Segment on fixed durations, checking partial segments for speech."""
        span = self._take_input_and_resample()
        if span is None:
            return state
        _, end_ns = span

        state = replace(state, end_ts_offset_ms=end_ns // _NS_PER_MS)
        self._whisper.extend(self._resampled)
        self._resampled.clear()
        logger.log(self.log_level, "whisper buffer size: %d samples", len(self._whisper))

        if state.end_ts_offset_ms - state.start_ts_offset_ms >= self.segment_duration:
            logger.log(
                self.log_level, "%d ms worth of audio -> send to inference",
                self.segment_duration,
            )
            self.run_inference_and_callbacks(
                state.start_ts_offset_ms, state.end_ts_offset_ms, VadEvent.WAS_ON
            )
            return replace(
                state,
                start_ts_offset_ms=end_ns // _NS_PER_MS,
                last_partial_segment_end_ts=0,
            )

        if not self.partial_transcription:
            return state

        length_ms = self._partial_length_ms(state)
        logger.log(
            self.log_level, "current buffer length after last partial (%d): %d ms",
            state.last_partial_segment_end_ts, length_ms,
        )
        if length_ms <= self.partial_latency:
            return state

        logger.log(self.log_level, "Partial segment -> send to inference")
        state = replace(state, last_partial_segment_end_ts=state.end_ts_offset_ms)
        self.vad.process(list(self._whisper), True)
        if self.vad.speech_timestamps():
            self.run_inference_and_callbacks(
                state.start_ts_offset_ms, state.end_ts_offset_ms, VadEvent.PARTIAL
            )
        else:
            logger.log(self.log_level, "VAD detected silence in partial segment")
            drop = max(0, len(self._whisper) - _KEEP_AFTER_SILENT_PARTIAL)
            del self._whisper[:drop]
        return state

    def step(self, state: SegmentState) -> SegmentState:
        """Run one segmentation pass according to :attr:`vad_mode`."""
        if self.vad_mode == VadMode.HYBRID:
            return self.hybrid_vad_segmentation(state)
        if self.vad_mode == VadMode.ACTIVE:
            return self.vad_based_segmentation(state)
        return state