import random

import pytest

from livecaption.inference import (
    WHISPER_SAMPLE_RATE,
    DetectionResult,
    InferenceSettings,
    Transcriber,
    VadEvent,
    pad_to_one_second,
)
from livecaption.overlap import TokenData


class FakeEngine:
    def __init__(self, segments, detected="de", error=None):
        self.segments = segments
        self.detected = detected
        self.error = error
        self.calls = []
        self.detect_calls = 0

    def full(self, samples, *, language, initial_prompt, duration_ms):
        self.calls.append(
            {
                "samples": list(samples),
                "language": language,
                "initial_prompt": initial_prompt,
                "duration_ms": duration_ms,
            }
        )
        if self.error is not None:
            raise self.error
        return self.segments

    def detect_language(self):
        self.detect_calls += 1
        return self.detected


def tok(token_id, text, p=0.9):
    return TokenData(id=token_id, p=p, text=text)


ONE_SECOND = [0.1] * WHISPER_SAMPLE_RATE


def make(segments, **settings):
    engine = FakeEngine(segments)
    transcriber = Transcriber(engine, InferenceSettings(**settings))
    return engine, transcriber


def test_speech_result_joins_kept_tokens():
    hello, world = tok(100, "Hello"), tok(200, " world")
    engine, tr = make([[hello, world]], language="en")
    res = tr.transcribe(ONE_SECOND, 1000, 2000, VadEvent.WAS_ON)
    assert res.result == DetectionResult.SPEECH
    assert res.text == "Hello world"
    assert res.tokens == [hello, world]
    assert (res.start_timestamp_ms, res.end_timestamp_ms) == (1000, 2000)
    assert res.language == "en"
    assert engine.detect_calls == 0


def test_partial_event_gives_partial_result():
    _, tr = make([[tok(100, "Hi")]], language="en")
    res = tr.transcribe(ONE_SECOND, 0, 1000, VadEvent.PARTIAL)
    assert res.result == DetectionResult.PARTIAL


def test_special_and_bracket_tokens_dropped():
    segments = [[tok(50257, "<|en|>"), tok(300, "[MUSIC]"), tok(100, "Yes")]]
    _, tr = make(segments, language="en")
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.text == "Yes"
    assert [t.id for t in res.tokens] == [100]


def test_second_to_last_period_dropped():
    segments = [[tok(100, "Ok"), tok(13, "."), tok(50257, "<|end|>")]]
    _, tr = make(segments, language="en")
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.text == "Ok"


def test_time_token_with_large_ratio_gives_silence():
    segments = [[tok(100, "Hi"), tok(50365 + 150, "<|3.00|>")]]
    _, tr = make(segments, language="en")
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.result == DetectionResult.SILENCE
    assert res.text == ""


def test_time_token_with_small_ratio_is_only_dropped():
    segments = [[tok(100, "Hi"), tok(50365 + 50, "<|1.00|>")]]
    _, tr = make(segments, language="en")
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.result == DetectionResult.SPEECH
    assert res.text == "Hi"


def test_lone_period_is_silence():
    _, tr = make([[tok(13, ".")]], language="en")
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.result == DetectionResult.SILENCE


def test_low_probability_is_silence():
    _, tr = make([[tok(100, "Hi", p=0.1)]], language="en", sentence_psum_accept_thresh=0.5)
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.result == DetectionResult.SILENCE


def test_auto_language_is_detected():
    engine, tr = make([[tok(100, "Hallo")]], language="auto")
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.language == "de"
    assert engine.detect_calls == 1


def test_empty_samples_unknown():
    engine, tr = make([[tok(100, "Hi")]])
    res = tr.transcribe([], 0, 1000)
    assert res.result == DetectionResult.UNKNOWN
    assert engine.calls == []


def test_short_time_span_skipped():
    engine, tr = make([[tok(100, "Hi")]])
    res = tr.transcribe(ONE_SECOND, 1000, 1040)
    assert res.result == DetectionResult.UNKNOWN
    assert engine.calls == []


def test_missing_engine_unknown():
    tr = Transcriber(None, InferenceSettings())
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.result == DetectionResult.UNKNOWN


def test_engine_failure_drops_engine():
    engine = FakeEngine([], error=RuntimeError("boom"))
    tr = Transcriber(engine, InferenceSettings(language="en"))
    res = tr.transcribe(ONE_SECOND, 0, 1000)
    assert res.result == DetectionResult.UNKNOWN
    assert tr.engine is None


def test_short_audio_is_padded_before_decoding():
    engine, tr = make([[tok(100, "Hi")]], language="en")
    tr.transcribe([0.5] * 800, 0, 1000)
    sent = engine.calls[0]["samples"]
    assert len(sent) > WHISPER_SAMPLE_RATE
    assert engine.calls[0]["duration_ms"] >= 1000


def test_context_sentences_become_prompt():
    engine, tr = make([[tok(100, "Hi")]], language="en", n_context_sentences=2)
    for sentence in ("one", "two", "three"):
        tr.add_context_sentence(sentence)
    assert tr.context_sentences == ["two", "three"]
    tr.transcribe(ONE_SECOND, 0, 1000)
    assert engine.calls[0]["initial_prompt"] == "two three"


def test_no_context_when_disabled():
    engine, tr = make([[tok(100, "Hi")]], language="en")
    tr.add_context_sentence("ignored")
    tr.transcribe(ONE_SECOND, 0, 1000)
    assert tr.context_sentences == []
    assert engine.calls[0]["initial_prompt"] is None


def test_pad_keeps_samples_and_adds_faint_noise():
    samples = [0.5] * 1000
    out = pad_to_one_second(samples, random.Random(1))
    assert len(out) >= WHISPER_SAMPLE_RATE
    start = out.index(0.5)
    assert out[start : start + len(samples)] == samples
    rest = out[:start] + out[start + len(samples):]
    assert all(abs(x) <= 0.01 for x in rest)
    assert abs(start - (len(out) - start - len(samples))) <= 1


def test_pad_leaves_long_audio_alone():
    samples = [0.2] * (WHISPER_SAMPLE_RATE + 5)
    assert pad_to_one_second(samples) == samples


@pytest.mark.parametrize("event", [VadEvent.WAS_ON, VadEvent.WAS_OFF, VadEvent.IS_OFF])
def test_non_partial_events_give_speech(event):
    _, tr = make([[tok(100, "Hi")]], language="en")
    assert tr.transcribe(ONE_SECOND, 0, 1000, event).result == DetectionResult.SPEECH