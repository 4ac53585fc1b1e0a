"""伺服器端已上傳項目。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..utils import time_utils


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class RemoteRecord:
    record_id: Optional[str]
    exact_hash: Optional[str]
    perceptual_hash: Optional[str]
    capture_timestamp: Optional[datetime]
    size_bytes: int
    width: int
    height: int
    file_name: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteRecord":
        exact_hash = _as_text(data.get("file_hash"))
        perceptual_hash = _as_text(data.get("perceptual_hash"))
        return cls(
            record_id=_as_text(data.get("id")),
            exact_hash=exact_hash.lower() if exact_hash else None,
            perceptual_hash=perceptual_hash.lower() if perceptual_hash else None,
            capture_timestamp=time_utils.parse_iso8601(data.get("original_timestamp")),
            size_bytes=_as_int(data.get("file_size_bytes")),
            width=_as_int(data.get("image_width")),
            height=_as_int(data.get("image_height")),
            file_name=_as_text(data.get("file_name")),
        )
