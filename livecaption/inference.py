"""Running speech recognition on an audio segment and filtering its tokens."""

from __future__ import annotations

import logging
import math
import random
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Protocol, Sequence

from livecaption.overlap import TokenData, to_timestamp

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000

DEFAULT_BUFFER_SIZE_MSEC = 3000
DEFAULT_OVERLAP_SIZE_MSEC = 125
MAX_OVERLAP_SIZE_MSEC = 1000
MIN_OVERLAP_SIZE_MSEC = 125
MAX_MS_WORK_BUFFER = 11000

_SPECIAL_TOKEN_START = 50256
_TIMESTAMP_TOKEN_BASE = 50365
_TIMESTAMP_TOKEN_LAST = 51865
_PERIOD_TOKEN = 13
_MIN_SEGMENT_MS = 50
_NOISE_LEVEL = 0.01


class DetectionResult(IntEnum):
    UNKNOWN = 0
    SILENCE = 1
    SPEECH = 2
    SUPPRESSED = 3
    NO_INFERENCE = 4
    PARTIAL = 5


class VadEvent(IntEnum):
    """Why a segment is being sent to inference."""

    WAS_ON = 0
    WAS_OFF = 1
    IS_OFF = 2
    PARTIAL = 3


@dataclass
class DetectionResultWithText:
    result: DetectionResult
    text: str = ""
    start_timestamp_ms: int = 0
    end_timestamp_ms: int = 0
    tokens: list[TokenData] = field(default_factory=list)
    language: str = ""


@dataclass
class InferenceSettings:
    """Options that shape a transcription run."""

    language: str = "auto"
    n_context_sentences: int = 0
    duration_filter_threshold: float = 2.25
    sentence_psum_accept_thresh: float = 0.0
    log_words: bool = False
    log_level: int = logging.DEBUG


class SpeechEngine(Protocol):
    """A speech recogniser that decodes 16 kHz mono float audio."""

    def full(
        self,
        samples: Sequence[float],
        *,
        language: Optional[str],
        initial_prompt: Optional[str],
        duration_ms: int,
    ) -> Sequence[Sequence[TokenData]]:
        """Decode audio into segments of tokens."""
        ...

    def detect_language(self) -> str:
        """Language code detected for the last decoded audio."""
        ...


def pad_to_one_second(
    samples: Sequence[float], rng: Optional[random.Random] = None
) -> list[float]:
    """Centre audio shorter than one second in a little over a second of faint noise."""
    samples = list(samples)
    if len(samples) >= WHISPER_SAMPLE_RATE:
        return samples
    rng = rng or random.Random()
    new_size = int(1.01 * WHISPER_SAMPLE_RATE)
    padded = [_NOISE_LEVEL * rng.uniform(-1.0, 1.0) for _ in range(new_size)]
    offset = (new_size - len(samples)) // 2
    padded[offset : offset + len(samples)] = samples
    return padded


class Transcriber:
    """Turns audio segments into filtered text results using a speech engine."""

    def __init__(
        self,
        engine: Optional[SpeechEngine],
        settings: Optional[InferenceSettings] = None,
    ) -> None:
        self.engine = engine
        self.settings = settings or InferenceSettings()
        self._context: deque[str] = deque()
        self._lock = threading.Lock()
        self._rng = random.Random()

    @property
    def context_sentences(self) -> list[str]:
        return list(self._context)

    def add_context_sentence(self, sentence: str) -> None:
        """Remember a sentence to prompt the next runs with."""
        limit = self.settings.n_context_sentences
        if limit <= 0:
            return
        self._context.append(sentence)
        while len(self._context) > limit:
            self._context.popleft()

    def transcribe(
        self,
        samples: Sequence[float],
        t0: int = 0,
        t1: int = 0,
        vad_event: VadEvent = VadEvent.WAS_OFF,
    ) -> DetectionResultWithText:
        """Decode ``samples`` spanning ``t0``..``t1`` ms and return the result."""
        settings = self.settings
        level = settings.log_level

        def unknown() -> DetectionResultWithText:
            return DetectionResultWithText(DetectionResult.UNKNOWN, "", t0, t1)

        def silence(language: str) -> DetectionResultWithText:
            return DetectionResultWithText(
                DetectionResult.SILENCE, "", t0, t1, [], language
            )

        samples = list(samples)
        if not samples:
            logger.error("transcribe: no audio samples")
            return unknown()

        if 0 <= t1 - t0 < _MIN_SEGMENT_MS:
            logger.log(level, "Time difference between t0 and t1 is less than 50 ms, skipping")
            return unknown()

        incoming_duration_ms = len(samples) * 1000 // WHISPER_SAMPLE_RATE
        if len(samples) < WHISPER_SAMPLE_RATE:
            logger.log(level, "Speech segment is less than 1 second, padding to 1 second")
            samples = pad_to_one_second(samples, self._rng)
        whisper_duration_ms = len(samples) * 1000 // WHISPER_SAMPLE_RATE

        with self._lock:
            engine = self.engine
            if engine is None:
                logger.warning("speech engine is not loaded")
                return unknown()

            initial_prompt = None
            if settings.n_context_sentences > 0 and self._context:
                initial_prompt = " ".join(self._context)
                logger.log(level, "Initial prompt: %s", initial_prompt)

            try:
                segments = engine.full(
                    samples,
                    language=settings.language,
                    initial_prompt=initial_prompt,
                    duration_ms=whisper_duration_ms,
                )
            except Exception as exc:
                logger.error("Speech engine failed: %s. Restart is required", exc)
                self.engine = None
                return unknown()

            language = settings.language
            if not language or language == "auto":
                language = engine.detect_language()
                logger.log(level, "Detected language: %s", language)

        total_p = 0.0
        text = ""
        tokens: list[TokenData] = []
        for n_segment, segment in enumerate(segments):
            segment = list(segment)
            n_tokens = len(segment)
            for j, token in enumerate(segment):
                token_str = token.text
                keep = True
                if token_str.startswith("[") and token_str.endswith("]"):
                    keep = False
                if token.id >= _SPECIAL_TOKEN_START:
                    keep = False
                if j == n_tokens - 2 and token.id == _PERIOD_TOKEN:
                    keep = False
                if _TIMESTAMP_TOKEN_BASE < token.id <= _TIMESTAMP_TOKEN_LAST:
                    time_s = (token.id - _TIMESTAMP_TOKEN_BASE) * 0.02
                    duration_s = incoming_duration_ms / 1000.0
                    ratio = time_s / duration_s if duration_s > 0 else math.inf
                    logger.log(
                        level,
                        "Time token found %d -> %.3f. Duration: %.3f. Ratio: %.3f",
                        token.id, time_s, duration_s, ratio,
                    )
                    if ratio > settings.duration_filter_threshold:
                        logger.log(level, "Time token ratio too high, skipping")
                        return silence(language)
                    keep = False
                if keep:
                    total_p += token.p
                    text += token_str
                    tokens.append(token)
                logger.log(
                    level, "S %d, T %2d: %5d\t%s\tp: %.3f [keep: %d]",
                    n_segment, j, token.id, token_str, token.p, keep,
                )

        sentence_p = total_p / len(tokens) if tokens else math.nan
        if sentence_p < settings.sentence_psum_accept_thresh:
            logger.log(level, "Sentence psum %.3f below threshold, skipping", sentence_p)
            return silence(language)

        logger.log(level, "Decoded sentence: '%s'", text)
        if settings.log_words:
            logger.info(
                "[%s --> %s]%s(%.3f) %s",
                to_timestamp(t0), to_timestamp(t1),
                "P" if vad_event == VadEvent.PARTIAL else " ",
                sentence_p, text,
            )

        if text in ("", ".", " ", "\n"):
            return silence(language)

        result = (
            DetectionResult.PARTIAL
            if vad_event == VadEvent.PARTIAL
            else DetectionResult.SPEECH
        )
        return DetectionResultWithText(result, text, t0, t1, tokens, language)