"""時間戳處理工具。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def parse_exif_datetime(value: Optional[str]) -> Optional[datetime]:
    """EXIF 時間沒有時區，視為本機時間。"""
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.strip("\x00 "), "%Y:%m:%d %H:%M:%S")
    except ValueError:
        return None
    return parsed.astimezone()


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.astimezone()
    return value


def to_iso8601(value: datetime) -> str:
    return ensure_aware(value).astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_timestamp_for_folder() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")
