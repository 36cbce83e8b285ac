import base64

import httpx
import pytest

from clinicnotes.services.transcription import (
    TranscriptionError, build_diarized_transcript, decode_audio, model_for_language, transcribe_audio,
)


def deepgram_result(utterances=None, words=None, transcript="hello there"):
    return {
        "results": {
            "channels": [{"alternatives": [{"transcript": transcript, "words": words or []}]}],
            "utterances": utterances or [],
        }
    }


def test_decode_audio_data_url():
    raw = base64.b64encode(b"abc").decode()
    assert decode_audio(f"data:audio/wav;base64,{raw}") == (b"abc", "audio/wav")
    assert decode_audio(raw) == (b"abc", "audio/webm")


def test_decode_audio_empty():
    with pytest.raises(TranscriptionError):
        decode_audio("data:audio/webm;base64,")


def test_model_for_language():
    assert model_for_language("he") == "whisper-large"
    assert model_for_language("en") == "nova-2"


def test_multi_speaker_utterances_used_directly():
    result = deepgram_result(utterances=[
        {"speaker": 0, "transcript": "How are you?", "start": 0.0, "end": 1.0, "confidence": 0.9},
        {"speaker": 1, "transcript": "Better.", "start": 1.2, "end": 2.0, "confidence": 0.8},
    ])
    out = build_diarized_transcript(result, "en")
    assert out["speaker_count"] == 2
    assert [u["transcript"] for u in out["utterances"]] == ["How are you?", "Better."]
    assert out["speaker_labels"][1] == "Speaker 2"
    assert out["raw_transcript"] == "hello there"


def test_rebuilds_utterances_from_words():
    words = [
        {"word": "how", "punctuated_word": "How", "speaker": 0, "start": 0.0, "end": 0.2, "confidence": 1.0},
        {"word": "are", "speaker": 0, "start": 0.2, "end": 0.4, "confidence": 0.8},
        {"word": "fine", "speaker": 1, "start": 0.6, "end": 0.9, "confidence": 0.6},
    ]
    result = deepgram_result(
        utterances=[{"speaker": 0, "transcript": "How are fine", "start": 0.0, "end": 0.9, "confidence": 0.8}],
        words=words,
    )
    out = build_diarized_transcript(result, "he")
    assert out["speaker_count"] == 2
    assert len(out["utterances"]) == 2
    first, second = out["utterances"]
    assert first["transcript"] == "How are"
    assert first["end"] == 0.4
    assert first["confidence"] == pytest.approx(0.9)
    assert second == {"speaker": 1, "transcript": "fine", "start": 0.6, "end": 0.9, "confidence": 0.6}
    assert out["speaker_labels"][0] == "דובר 1"


def test_single_speaker():
    result = deepgram_result(utterances=[
        {"speaker": 0, "transcript": "just me", "start": 0, "end": 1, "confidence": 0.9},
    ])
    out = build_diarized_transcript(result, "en")
    assert out["speaker_count"] == 1
    assert len(out["utterances"]) == 1


def test_no_alternatives():
    with pytest.raises(TranscriptionError, match="No transcription results"):
        build_diarized_transcript({"results": {"channels": []}})


async def test_transcribe_requires_api_key():
    with pytest.raises(TranscriptionError, match="not configured"):
        await transcribe_audio("AAAA")


async def test_transcribe_calls_deepgram(monkeypatch):
    monkeypatch.setenv("DEEPGRAM_API_KEY", "dg-key")
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["authorization"]
        seen["type"] = request.headers["content-type"]
        seen["params"] = dict(request.url.params)
        seen["body"] = request.content
        return httpx.Response(200, json=deepgram_result(utterances=[
            {"speaker": 0, "transcript": "hi", "start": 0, "end": 1, "confidence": 0.9},
        ]))

    audio = "data:audio/ogg;base64," + base64.b64encode(b"audio-bytes").decode()
    out = await transcribe_audio(audio, "en", transport=httpx.MockTransport(handler))
    assert seen["auth"] == "Token dg-key"
    assert seen["type"] == "audio/ogg"
    assert seen["params"]["model"] == "nova-2"
    assert seen["params"]["diarize"] == "true"
    assert seen["body"] == b"audio-bytes"
    assert out["utterances"][0]["transcript"] == "hi"


async def test_transcribe_upstream_error(monkeypatch):
    monkeypatch.setenv("DEEPGRAM_API_KEY", "dg-key")
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="bad key"))
    with pytest.raises(TranscriptionError, match="Deepgram error 401"):
        await transcribe_audio("AAAA", transport=transport)
