"""媒體項目的精確與感知指紋。"""

from __future__ import annotations

import threading
from typing import Optional

from ..config import ConfigManager
from ..models import Fingerprint, MediaItem
from ..utils import hash_calc, image_utils
from ..utils.errors import ConversionFailureError
from ..utils.logger import get_logger


class HashIndex:
    """每個項目在管線中只計算一次指紋，之後從快取取得。"""

    def __init__(self, config: ConfigManager, logger=None) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self.algorithm = str(config.get("hash.algorithm", "sha256"))
        self.chunk_size_kb = int(config.get("hash.chunk_size_kb", 1024))
        self.phash_algorithm = str(config.get("phash.algorithm", "average"))
        self.phash_size = int(config.get("phash.hash_size", 8))
        self._cache: dict[str, Fingerprint] = {}
        self._lock = threading.Lock()

    def cached(self, item: MediaItem) -> Optional[Fingerprint]:
        return self._cache.get(item.item_id)

    def fingerprint(self, item: MediaItem) -> Fingerprint:
        cached = self.cached(item)
        if cached is not None:
            return cached

        try:
            data = item.read_bytes()
        except Exception as exc:  # noqa: BLE001 - any loader failure stays item-scoped
            raise ConversionFailureError(f"conversion_failed: {exc}") from exc
        if not data:
            raise ConversionFailureError("conversion_failed: empty payload")

        hashes = hash_calc.compute_hashes(
            data,
            [self.algorithm],
            chunk_size_kb=self.chunk_size_kb,
            logger=self.logger,
        )
        exact_hash = hashes.get(self.algorithm)
        if not exact_hash:
            raise ConversionFailureError(f"conversion_failed: 無法計算 {self.algorithm}")

        perceptual_hash = image_utils.compute_perceptual_hash(
            data,
            algorithm=self.phash_algorithm,
            hash_size=self.phash_size,
            logger=self.logger,
        )
        fingerprint = Fingerprint(exact_hash=exact_hash, perceptual_hash=perceptual_hash)
        with self._lock:
            self._cache.setdefault(item.item_id, fingerprint)
            return self._cache[item.item_id]

    def forget(self, item: MediaItem) -> None:
        with self._lock:
            self._cache.pop(item.item_id, None)
