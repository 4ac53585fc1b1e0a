"""持有目前憑證的儲存區。"""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from ..models import Credential
from ..utils.logger import get_logger, mask_token


class TokenStore:
    """單一擁有者的憑證儲存，只允許以較新的憑證整筆取代。

    讀取端永遠只會看到舊的或完整的新 Credential。
    """

    def __init__(
        self,
        *,
        persist_path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
        logger=None,
    ) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._clock = clock
        self._persist_path = persist_path
        self._credential: Optional[Credential] = None
        if persist_path is not None:
            self._credential = self._load(persist_path)

    def current(self) -> Optional[Credential]:
        return self._credential

    def replace(self, credential: Credential) -> bool:
        """存入較新的憑證；比目前憑證舊時忽略並回傳 False。"""
        with self._lock:
            existing = self._credential
            if existing is not None and credential.issued_at < existing.issued_at:
                self.logger.info(
                    "忽略較舊的憑證 %s（issued_at %.0f < %.0f）",
                    mask_token(credential.token),
                    credential.issued_at,
                    existing.issued_at,
                )
                return False
            self._credential = credential
            if self._persist_path is not None:
                self._save(self._persist_path, credential)
        return True

    def is_fresh(self, freshness_window: float, safety_margin: float, now: Optional[float] = None) -> bool:
        credential = self._credential
        if credential is None:
            return False
        current_time = self._clock() if now is None else now
        return credential.is_fresh(current_time, freshness_window, safety_margin)

    def clear(self) -> None:
        with self._lock:
            self._credential = None
            if self._persist_path is not None and self._persist_path.exists():
                self._persist_path.unlink()

    def _load(self, path: Path) -> Optional[Credential]:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return Credential.from_dict(json.load(handle))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            self.logger.warning(f"無法載入憑證快取: {path} ({exc})")
            return None

    def _save(self, path: Path, credential: Credential) -> None:
        temp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(credential.to_dict(), handle)
            os.replace(temp_path, path)
        except OSError as exc:
            self.logger.warning(f"無法寫入憑證快取: {path} ({exc})")
