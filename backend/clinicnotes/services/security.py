"""
PII 암호화, 검색용 해시, 환자 코드, 입력 정제, 로그 마스킹, 로그인 rate limit, 감사 로그.
"""
from __future__ import annotations
import base64
import hashlib
import hmac
import html
import json
import logging
import os
import secrets
import string
import time
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Deque, Dict, Mapping, Optional

from cryptography.fernet import Fernet, InvalidToken

from clinicnotes import kafka
from clinicnotes.config import KAFKA_TOPIC_AUDIT, LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW_S

logger = logging.getLogger(__name__)

REDACTED = "***REDACTED***"
SENSITIVE_FIELDS = {
    "password", "ssn", "email", "phone", "address", "name",
    "date_of_birth", "id_number", "first_name", "last_name",
}
_B36 = string.digits + string.ascii_uppercase


def _resolve_key() -> bytes:
    raw = os.getenv("ENCRYPTION_KEY") or os.getenv("SECRET_KEY") or "clinicnotes-dev-key"
    try:
        Fernet(raw.encode())
        return raw.encode()
    except ValueError:
        # 임의 문자열이면 sha256으로 32바이트 키 유도
        digest = hashlib.sha256(raw.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest)


@lru_cache(maxsize=1)
def _cipher() -> Fernet:
    return Fernet(_resolve_key())


def encrypt(data: str) -> str:
    return _cipher().encrypt(data.encode("utf-8")).decode("ascii")


def decrypt(token: str) -> str:
    try:
        return _cipher().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        raise ValueError("ciphertext could not be decrypted") from exc


def encrypt_json(payload: Mapping[str, Any]) -> str:
    return encrypt(json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str))


def decrypt_json(token: str) -> Dict[str, Any]:
    return json.loads(decrypt(token))


def hash_for_search(value: str) -> str:
    """암호화된 필드를 조회하기 위한 keyed hash (결정적)"""
    return hmac.new(_resolve_key(), value.strip().encode("utf-8"), hashlib.sha256).hexdigest()


def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _B36[r] + out
    return out or "0"


def generate_patient_code() -> str:
    """PT-<시간 base36>-<랜덤 4자리>"""
    stamp = _base36(int(time.time() * 1000))
    rand = "".join(secrets.choice(_B36) for _ in range(4))
    return f"PT-{stamp}-{rand}"


def sanitize_input(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return html.escape(value.strip(), quote=True)


def mask_sensitive_data(data: Any) -> Any:
    if isinstance(data, Mapping):
        return {
            k: (REDACTED if k in SENSITIVE_FIELDS else mask_sensitive_data(v))
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [mask_sensitive_data(v) for v in data]
    return data


class RateLimiter:
    """키(클라이언트 주소 등)별 sliding window 카운터"""

    def __init__(self, limit: int = LOGIN_RATE_LIMIT, window_s: float = LOGIN_RATE_WINDOW_S,
                 clock=time.monotonic):
        self.limit = limit
        self.window_s = window_s
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        # window가 지난 키 제거 (window마다 최대 한 번)
        if now - self._last_sweep < self.window_s:
            return
        self._last_sweep = now
        stale = [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_s]
        for k in stale:
            del self._hits[k]

    def __len__(self) -> int:
        return len(self._hits)

    def check(self, key: str) -> bool:
        """허용이면 True (그리고 1회 기록), 한도 초과면 False"""
        now = self._clock()
        self._sweep(now)
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_s:
            hits.popleft()
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


@dataclass
class AuditEntry:
    user_id: str
    action: str
    resource_type: str
    resource_id: str
    ip_address: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["details"] = mask_sensitive_data(self.details)
        return d


async def audit(
    user_id: str,
    action: str,
    resource_type: str,
    resource_id: str,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditEntry:
    entry = AuditEntry(
        user_id=user_id, action=action, resource_type=resource_type,
        resource_id=resource_id, ip_address=ip_address, details=details or {},
    )
    payload = entry.to_dict()
    logger.info("audit %s", json.dumps(payload, ensure_ascii=False, default=str))
    await kafka.publish(KAFKA_TOPIC_AUDIT, payload, key=resource_id)
    return entry
