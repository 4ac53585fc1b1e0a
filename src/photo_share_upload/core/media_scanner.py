"""從本機資料夾建立待上傳的 MediaItem。"""

from __future__ import annotations

from datetime import datetime
import mimetypes
import os
from pathlib import Path
from typing import Callable, Optional

from ..config import ConfigManager
from ..models import GeoLocation, MediaItem
from ..utils import image_utils, time_utils
from ..utils.logger import get_logger


class MediaScanner:
    def __init__(self, config: ConfigManager, logger=None) -> None:
        self.config = config
        self.logger = logger or get_logger(self.__class__.__name__)
        self.image_exts = {
            str(ext).lower() for ext in config.get("file_extensions.image", [".jpg", ".jpeg"])
        }

    def is_candidate(self, path: Path) -> bool:
        return path.suffix.lower() in self.image_exts and not path.name.startswith(".")

    def scan_directory(
        self,
        root: Path,
        cancel_event=None,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> list[MediaItem]:
        results: list[MediaItem] = []
        if not root.exists():
            return results

        processed = 0
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
            current_dir = Path(dirpath)
            for name in sorted(filenames):
                if cancel_event is not None and cancel_event.is_set():
                    return results

                file_path = current_dir / name
                if not file_path.is_file() or not self.is_candidate(file_path):
                    continue

                item = self.build_item(file_path, root)
                if item is not None:
                    results.append(item)

                processed += 1
                if progress_callback:
                    progress_callback(processed)

        return results

    def build_item(self, path: Path, root: Optional[Path] = None) -> Optional[MediaItem]:
        try:
            stat = path.stat()
        except OSError as exc:
            self.logger.warning(f"無法讀取檔案資訊: {path} ({exc})")
            return None

        resolution = image_utils.get_image_resolution(path, self.logger)
        if resolution is None:
            return None

        capture_timestamp = time_utils.parse_exif_datetime(
            image_utils.get_exif_datetime_original(path, self.logger)
        )
        if capture_timestamp is None:
            capture_timestamp = datetime.fromtimestamp(stat.st_mtime).astimezone()

        gps = image_utils.get_gps_location(path, self.logger)
        location = GeoLocation(latitude=gps[0], longitude=gps[1]) if gps else None

        item_id = path.relative_to(root).as_posix() if root is not None else str(path)
        mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        return MediaItem(
            item_id=item_id,
            file_name=path.name,
            capture_timestamp=capture_timestamp,
            width=resolution[0],
            height=resolution[1],
            size_bytes=stat.st_size,
            location=location,
            loader=path.read_bytes,
            mime_type=mime_type,
        )
