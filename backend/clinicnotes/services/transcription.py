# clinicnotes/services/transcription.py
"""
Deepgram 사전 녹음 전사 (화자 분리 포함).
  - 오디오: data URL("data:audio/webm;base64,...") 또는 순수 base64
  - 기본 언어 'he'는 whisper-large, 그 외 언어는 nova-2 모델
"""
from __future__ import annotations
import base64
import binascii
import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

DEEPGRAM_BASE = os.getenv("DEEPGRAM_BASE", "https://api.deepgram.com")
DEEPGRAM_LISTEN = "/v1/listen"
DEEPGRAM_TIMEOUT_S = float(os.getenv("DEEPGRAM_TIMEOUT_S", "120"))

_MIME_RE = re.compile(r"^data:([^;]+);")


class TranscriptionError(RuntimeError):
    pass


def deepgram_api_key() -> Optional[str]:
    return os.getenv("DEEPGRAM_API_KEY")


def decode_audio(audio_data: str) -> Tuple[bytes, str]:
    """(오디오 바이트, mime type)"""
    match = _MIME_RE.match(audio_data)
    mime = match.group(1) if match else "audio/webm"
    b64 = audio_data.split(",", 1)[1] if "," in audio_data else audio_data
    try:
        raw = base64.b64decode(b64, validate=False)
    except (binascii.Error, ValueError) as e:
        raise TranscriptionError(f"invalid base64 audio: {e}") from e
    if not raw:
        raise TranscriptionError("No audio data provided")
    return raw, mime


def model_for_language(language: str) -> str:
    return "whisper-large" if language == "he" else "nova-2"


def speaker_labels(language: str) -> Dict[int, str]:
    if language == "he":
        return {0: "דובר 1", 1: "דובר 2"}
    return {0: "Speaker 1", 1: "Speaker 2"}


def _utterance(u: Dict[str, Any]) -> Dict[str, Any]:
    speaker = u.get("speaker")
    return {
        "speaker": speaker if isinstance(speaker, int) else 0,
        "transcript": u.get("transcript") or "",
        "start": u.get("start") or 0,
        "end": u.get("end") or 0,
        "confidence": u.get("confidence") or 0,
    }


def _utterances_from_words(words: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """같은 화자의 연속된 단어를 하나의 발화로 묶는다."""
    out: List[Dict[str, Any]] = []
    current_speaker = words[0].get("speaker") or 0
    current_words: List[str] = []
    seg_start = words[0].get("start") or 0
    seg_end = 0
    conf_sum = 0.0
    count = 0

    for w in words:
        speaker = w.get("speaker") or 0
        if speaker != current_speaker and current_words:
            out.append({
                "speaker": current_speaker,
                "transcript": " ".join(current_words),
                "start": seg_start,
                "end": seg_end,
                "confidence": conf_sum / count if count else 0,
            })
            current_words = []
            current_speaker = speaker
            seg_start = w.get("start") or 0
            conf_sum = 0.0
            count = 0
        current_words.append(w.get("punctuated_word") or w.get("word") or "")
        seg_end = w.get("end") or 0
        conf_sum += w.get("confidence") or 0
        count += 1

    if current_words:
        out.append({
            "speaker": current_speaker,
            "transcript": " ".join(current_words),
            "start": seg_start,
            "end": seg_end,
            "confidence": conf_sum / count if count else 0,
        })
    return out


def build_diarized_transcript(result: Dict[str, Any], language: str = "he") -> Dict[str, Any]:
    """
    Deepgram 응답 -> DiarizedTranscript dict.
    1) utterance 단위 화자가 2명 이상이면 그대로 사용
    2) 아니면 word 단위 화자가 2명 이상일 때 단어로 발화를 재구성
    3) 둘 다 아니면 utterance를 그대로 (화자 1명)
    """
    results = result.get("results") or {}
    channels = results.get("channels") or []
    alternatives = (channels[0].get("alternatives") or [None])[0] if channels else None
    if not alternatives:
        raise TranscriptionError("No transcription results")

    raw_utterances = results.get("utterances") or []
    words = alternatives.get("words") or []

    utt_speakers = {u.get("speaker") for u in raw_utterances if isinstance(u.get("speaker"), int)}
    word_speakers = {w.get("speaker") for w in words if isinstance(w.get("speaker"), int)}

    if len(utt_speakers) > 1:
        speakers = utt_speakers
        utterances = [_utterance(u) for u in raw_utterances]
    elif len(word_speakers) > 1:
        logger.debug("building utterances from word-level speaker data")
        speakers = word_speakers
        utterances = _utterances_from_words(words)
    else:
        speakers = utt_speakers or {0}
        utterances = [_utterance(u) for u in raw_utterances]

    return {
        "utterances": utterances,
        "speaker_count": len(speakers) or 1,
        "speaker_labels": speaker_labels(language),
        "raw_transcript": alternatives.get("transcript") or "",
    }


async def transcribe_audio(
    audio_data: str,
    language: str = "he",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    api_key = deepgram_api_key()
    if not api_key:
        raise TranscriptionError(
            "Deepgram API key not configured. Please add DEEPGRAM_API_KEY to your environment variables."
        )

    audio, mime = decode_audio(audio_data)
    params = {
        "model": model_for_language(language),
        "language": language,
        "diarize": "true",
        "utterances": "true",
        "smart_format": "true",
        "punctuate": "true",
    }
    headers = {"Authorization": f"Token {api_key}", "Content-Type": mime}

    async with httpx.AsyncClient(base_url=DEEPGRAM_BASE, timeout=DEEPGRAM_TIMEOUT_S, transport=transport) as client:
        try:
            resp = await client.post(DEEPGRAM_LISTEN, params=params, headers=headers, content=audio)
            resp.raise_for_status()
        except httpx.HTTPStatusError as he:
            raise TranscriptionError(
                f"Deepgram error {he.response.status_code}: {he.response.text[:500]}"
            ) from he
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Failed to communicate with Deepgram: {e}") from e

    try:
        data = resp.json()
    except ValueError as je:
        raise TranscriptionError(f"Deepgram returned invalid JSON: {je}") from je
    return build_diarized_transcript(data, language)
