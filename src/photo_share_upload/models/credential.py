"""上傳/列表 API 使用的 bearer 憑證。"""

from __future__ import annotations

import base64
import binascii
import json
import time
from dataclasses import dataclass
from typing import Optional


def _decode_jwt_exp(token: str) -> Optional[float]:
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    exp = claims.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return float(exp)
    return None


@dataclass(frozen=True)
class Credential:
    """不可變憑證；新憑證到達時整筆取代，不在原地修改。

    時間皆為 epoch 秒數，``expires_at`` 為 None 表示未知。
    """

    token: str
    issued_at: float
    expires_at: Optional[float] = None

    @classmethod
    def from_jwt(cls, token: str, issued_at: Optional[float] = None) -> "Credential":
        return cls(
            token=token,
            issued_at=time.time() if issued_at is None else issued_at,
            expires_at=_decode_jwt_exp(token),
        )

    def age(self, now: float) -> float:
        return now - self.issued_at

    def is_fresh(self, now: float, freshness_window: float, safety_margin: float) -> bool:
        if self.age(now) >= freshness_window:
            return False
        if self.expires_at is None:
            return True
        return now < self.expires_at - safety_margin

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_dict(self) -> dict[str, object]:
        return {
            "token": self.token,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        expires_at = data.get("expires_at")
        return cls(
            token=str(data["token"]),
            issued_at=float(data["issued_at"]),
            expires_at=float(expires_at) if expires_at is not None else None,
        )
