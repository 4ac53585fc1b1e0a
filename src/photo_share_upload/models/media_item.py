"""交給上傳管線的本機媒體項目。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class MediaItem:
    """交給管線後即不可變；payload 與 loader 至少提供一個。"""

    item_id: str
    file_name: str
    capture_timestamp: datetime
    width: int
    height: int
    size_bytes: int
    location: Optional[GeoLocation] = None
    payload: Optional[bytes] = field(default=None, repr=False, compare=False)
    loader: Optional[Callable[[], bytes]] = field(default=None, repr=False, compare=False)
    mime_type: str = "image/jpeg"

    def read_bytes(self) -> bytes:
        if self.payload is not None:
            return self.payload
        if self.loader is not None:
            return self.loader()
        raise ValueError(f"媒體項目沒有可讀取的內容: {self.item_id}")

    def to_dict(self) -> dict[str, object]:
        return {
            "item_id": self.item_id,
            "file_name": self.file_name,
            "capture_timestamp": self.capture_timestamp.isoformat(),
            "width": self.width,
            "height": self.height,
            "size_bytes": self.size_bytes,
            "location": self.location.to_dict() if self.location else None,
            "mime_type": self.mime_type,
        }
