# livecaption

livecaption turns a live stream of audio into caption text. It is not tied to any model runtime. You supply two things:

- a speech-probability model, used for voice activity detection;
- a speech-recognition engine.

livecaption then does the following:

- buffers incoming audio and resamples it to 16 kHz;
- splits the audio into segments with voice activity detection (VAD);
- sends each segment to your engine;
- filters out results that are likely hallucinated or have low confidence;
- merges overlapping token sequences.

It has no dependencies outside the standard library.

## Installation

```
pip install livecaption
```

To run the test suite with pytest, install the `test` extra:

```
pip install livecaption[test]
```

## Modules

### `livecaption.silero_vad`

`VadIterator(model, sample_rate=16000, window_frame_size=32, threshold=0.5, min_silence_duration_ms=0, speech_pad_ms=32, min_speech_duration_ms=32, max_speech_duration_s=inf)` finds speech in mono audio. It works through the audio one fixed-size window at a time.

The window size is `window_frame_size` milliseconds' worth of samples. If that comes to zero samples, the constructor raises `ValueError`.

The model is any callable with this shape:

```python
def model(window, state, sample_rate):
    ...
    return speech_probability, new_state
```

The state starts as a list of 256 zeros. On each call, the iterator passes back whatever the model returned the previous time.

Methods:

- `process(input_wav, reset_state=True)` analyses a block of samples.
  - It ignores a trailing partial window.
  - With `reset_state=False`, the model state and the "speech ongoing" flag carry over from the previous call.
- `speech_timestamps()` returns the `SpeechTimestamp(start, end)` spans found by the last `process` call. The spans are in samples.
- `collect_chunks(input_wav)` returns the samples that lie inside the detected spans.
- `drop_chunks(input_wav)` returns the samples that lie outside the detected spans.

### `livecaption.inference`

`Transcriber(engine, settings=None)` wraps a recognition engine. `transcribe(samples, t0, t1, vad_event)` returns a `DetectionResultWithText` with these fields:

- `result`: a `DetectionResult`, one of `UNKNOWN`, `SILENCE`, `SPEECH` or `PARTIAL`;
- `text`;
- `start_timestamp_ms` and `end_timestamp_ms`;
- `tokens`;
- `language`.

The engine needs two methods:

- `full(samples, *, language, initial_prompt, duration_ms)` returns a list of segments. Each segment is a list of `TokenData(id, p, text)`.
- `detect_language()` returns a language code. It is used when `InferenceSettings.language` is empty or `"auto"`.

`transcribe` applies these rules:

- **No result:**
  - Empty input, or a span of less than 50 ms, gives `UNKNOWN`.
  - A missing engine gives `UNKNOWN`.
  - If the engine raises an exception, the result is `UNKNOWN` and the engine is dropped. Later calls then also give `UNKNOWN`.
- **Padding:** audio shorter than one second is centred in slightly more than one second of faint noise. This is done by `pad_to_one_second(samples, rng=None)`.
- **Tokens left out of the text:**
  - tokens whose text is in square brackets;
  - special tokens, with id 50256 and above;
  - a period token (id 13) in second-to-last position;
  - timestamp tokens.
- **Timestamp tokens:** if a timestamp token points further into the audio than `duration_filter_threshold` times the audio's length, the whole result is `SILENCE`.
- **Low confidence:** if the average probability of the kept tokens is below `sentence_psum_accept_thresh`, the result is `SILENCE`. The same happens when the text is empty, `"."`, `" "` or a newline.
- **Otherwise:** the result is `SPEECH`, or `PARTIAL` when `vad_event` is `VadEvent.PARTIAL`.

`InferenceSettings` holds these options:

- `language`
- `n_context_sentences`
- `duration_filter_threshold` (default 2.25)
- `sentence_psum_accept_thresh`
- `log_words`
- `log_level`

`add_context_sentence(sentence)` keeps up to `n_context_sentences` recent sentences. They are joined with spaces and passed to the engine as `initial_prompt`.

### `livecaption.segmentation`

`Segmenter(vad, transcriber, sample_rate, on_result=None, on_audio_chunk=None)` connects the pieces:

1. `push_audio(samples, timestamp_offset_ns)` queues a mono packet at the input sample rate.
2. `step(state)` runs one round of segmentation and returns the next `SegmentState`.

What a round does depends on the `vad_mode` attribute:

- `VadMode.ACTIVE` (the default) calls `vad_based_segmentation`.
  - It runs the VAD once at least eight windows of resampled audio are buffered.
  - When a speech span ends inside the buffer, it sends that segment to inference.
- `VadMode.HYBRID` calls `hybrid_vad_segmentation`.
  - It sends a segment once `segment_duration` ms (default 7000) have accumulated.
  - For partial segments, it uses the VAD only to discard audio that holds no speech.
- `VadMode.DISABLED` does nothing.

When `partial_transcription` is true, the segmenter also sends a `PARTIAL` inference once more than `partial_latency` ms (default 1000) have passed since the last partial result. A partial run leaves the audio in the buffer.

Each round takes at most ten seconds of input audio. Each segment is padded with 10 ms of silence at both ends before it goes to the transcriber.

Callbacks:

- `on_result` receives every `DetectionResultWithText`.
- `on_audio_chunk(samples, vad_event, result)` receives the audio of every non-partial segment. In active mode, it also receives windows in which the VAD found no speech, with a `SILENCE` result whose text is `"[silence]"`.

Helpers:

- `create_vad(model)` builds a `VadIterator` for 16 kHz audio with these settings: 32 ms windows, threshold 0.5, and 100 ms of minimum silence, speech padding and minimum speech.
- `linear_resample(samples, source_rate, target_rate)` resamples by linear interpolation.

### `livecaption.overlap`

- `find_start_of_overlap(seq1, seq2)` returns the index pair where two `TokenData` sequences start to overlap, or `None`. It tolerates one skipped token.
- `reconstruct_sentence(seq1, seq2)` joins the two sequences without repeating the shared part.
- `to_timestamp(ms)` formats a millisecond offset as `MM:SS.sss`.

### `livecaption.languages`

- `available_languages()` returns the supported languages as a code-to-name dict.
- `language_name(code)` maps a code to its name and raises `KeyError` for an unknown code.
- `language_code(name)` maps a name to its code and raises `KeyError` for an unknown name.

## Example

```python
from livecaption.inference import InferenceSettings, Transcriber
from livecaption.languages import language_name
from livecaption.overlap import TokenData, to_timestamp
from livecaption.segmentation import SegmentState, Segmenter, create_vad

print(to_timestamp(83_456))   # 01:23.456
print(language_name("de"))    # German


def model(window, state, sample_rate):
    loud = max(abs(x) for x in window) > 0.1
    return (0.9 if loud else 0.0), state


class Engine:
    def full(self, samples, *, language, initial_prompt, duration_ms):
        return [[TokenData(id=1, p=0.9, text=" hello")]]

    def detect_language(self):
        return "en"


segmenter = Segmenter(
    create_vad(model),
    Transcriber(Engine(), InferenceSettings(language="en")),
    sample_rate=48000,
    on_result=lambda r: print(r.result.name, r.text),
)
state = SegmentState()
# for each captured packet:
#     segmenter.push_audio(packet, timestamp_offset_ns)
#     state = segmenter.step(state)
```

## What it does not do

livecaption is a library. Some things are left to the application:

- It has no command-line program.
- It does not capture audio.
- It does not download or load speech or VAD models.
- It does not run a background processing thread. Call `step` yourself, as often as you like.
- It does not display captions or write subtitle files. Results are handed to your callbacks.