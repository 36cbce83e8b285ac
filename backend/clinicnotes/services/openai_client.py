from __future__ import annotations
import asyncio
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from clinicnotes.config import get_ai_config
from clinicnotes.services.prompts import mock_summary

logger = logging.getLogger(__name__)

MOCK_MODEL = "mock-v1"


class SummaryError(RuntimeError):
    pass


@lru_cache(maxsize=4)
def _client(api_key: str) -> OpenAI:
    return OpenAI(api_key=api_key)


async def chat_completion(
    messages: List[Dict[str, str]],
    json_mode: bool = False,
    temperature: float = 0.7,
) -> Dict[str, Any]:
    """
    OpenAI chat completion (sync SDK를 스레드로 호출).
    반환: {"content": str, "model": str, "tokens_used": int | None}
    """
    cfg = get_ai_config()
    if cfg["mode"] != "real":
        raise SummaryError("OPENAI_API_KEY is not configured")

    kwargs: Dict[str, Any] = {
        "model": cfg["model"],
        "messages": messages,
        "max_tokens": cfg["max_tokens"],
        "temperature": temperature,
        "timeout": cfg["timeout"],
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    def _call():
        return _client(cfg["api_key"]).chat.completions.create(**kwargs)

    try:
        resp = await asyncio.to_thread(_call)
    except OpenAIError as e:
        logger.warning("OpenAI request failed: %s", e)
        raise SummaryError(f"Request failed: {e}") from e

    if not resp.choices:
        raise SummaryError("Invalid API response: no choices returned")
    content = resp.choices[0].message.content
    if not isinstance(content, str):
        raise SummaryError("Invalid API response: no content in message")

    usage = getattr(resp, "usage", None)
    return {
        "content": content,
        "model": cfg["model"],
        "tokens_used": getattr(usage, "total_tokens", None),
    }


async def generate_summary(system_prompt: str, user_prompt: str, role: str) -> Dict[str, Any]:
    """
    세션 요약 생성. OPENAI_API_KEY가 없으면 역할별 mock 요약을 반환한다.
    실패 시 SummaryError.
    """
    generated_at = datetime.now(timezone.utc)
    cfg = get_ai_config()
    if cfg["mode"] == "mock":
        return {
            "summary": mock_summary(role, user_prompt),
            "mode": "mock",
            "model": MOCK_MODEL,
            "tokens_used": None,
            "generated_at": generated_at,
        }

    result = await chat_completion(
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
    )
    return {
        "summary": result["content"],
        "mode": "real",
        "model": result["model"],
        "tokens_used": result["tokens_used"],
        "generated_at": generated_at,
    }


def parse_json_object(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """모델 출력에서 JSON 객체를 꺼낸다. 코드블록(```json)도 허용. 실패 시 None."""
    if not raw:
        return None
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
