"""比對本機項目與伺服器上已上傳項目的分層重複偵測。

依序套用三層規則，任何一層命中即視為重複：

1. 精確 hash 相同。
2. 感知 hash 相似度（1 - 正規化 Hamming 距離）達門檻，預設 0.90，含等號。
3. metadata 備援：拍攝時間差、寬高、檔案大小差都在容許範圍內。用來容忍
   拍攝流程中的有損重新編碼（例如格式轉換），本質上是啟發式規則，
   可能誤判，門檻不應為了消除個案而收緊。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from ..config import ConfigManager
from ..models import Fingerprint, MediaItem, RemoteRecord
from ..utils import hash_calc, time_utils
from ..utils.errors import ConversionFailureError
from ..utils.logger import get_logger
from .hash_index import HashIndex


class MatchReason(str, Enum):
    EXACT = "exact"
    PERCEPTUAL = "perceptual"
    METADATA = "metadata"


@dataclass(frozen=True)
class DuplicateMatch:
    is_duplicate: bool
    reason: Optional[MatchReason] = None
    record_id: Optional[str] = None
    similarity: Optional[float] = None

    @property
    def skip_reason(self) -> Optional[str]:
        if not self.is_duplicate or self.reason is None:
            return None
        return f"duplicate_{self.reason.value}"


NOT_DUPLICATE = DuplicateMatch(is_duplicate=False)


@dataclass
class DuplicateCheckResult:
    matches: dict[str, DuplicateMatch]
    duplicates: List[MediaItem] = field(default_factory=list)
    unique: List[MediaItem] = field(default_factory=list)
    remote_count: int = 0


class DuplicateDetector:
    def __init__(
        self,
        config: ConfigManager,
        hash_index: Optional[HashIndex] = None,
        listing_client=None,
        logger=None,
    ) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self.hash_index = hash_index or HashIndex(config, self.logger)
        self.listing_client = listing_client
        self.perceptual_threshold = float(config.get("duplicates.perceptual_threshold", 0.90))
        self.timestamp_tolerance_sec = float(config.get("duplicates.timestamp_tolerance_sec", 60))
        self.size_tolerance_bytes = int(config.get("duplicates.size_tolerance_bytes", 1000000))
        self.enable_metadata_fallback = bool(config.get("duplicates.enable_metadata_fallback", True))

    def filter_duplicates(
        self,
        items: Iterable[MediaItem],
        remote_records: Sequence[RemoteRecord],
    ) -> dict[str, DuplicateMatch]:
        records = list(remote_records)
        exact_index: dict[str, RemoteRecord] = {}
        for record in records:
            if record.exact_hash and record.exact_hash not in exact_index:
                exact_index[record.exact_hash] = record

        matches: dict[str, DuplicateMatch] = {}
        for item in items:
            fingerprint = self._fingerprint_or_none(item)
            matches[item.item_id] = self.match_item(item, fingerprint, records, exact_index)
        return matches

    def check_against_event(self, items: Sequence[MediaItem], event_id: str) -> DuplicateCheckResult:
        if self.listing_client is None:
            raise RuntimeError("未設定 listing_client，無法取得伺服器列表")
        records = self.listing_client.fetch_all(event_id)
        matches = self.filter_duplicates(items, records)
        result = DuplicateCheckResult(matches=matches, remote_count=len(records))
        for item in items:
            if matches[item.item_id].is_duplicate:
                result.duplicates.append(item)
            else:
                result.unique.append(item)
        return result

    def match_item(
        self,
        item: MediaItem,
        fingerprint: Optional[Fingerprint],
        records: Sequence[RemoteRecord],
        exact_index: Optional[dict[str, RemoteRecord]] = None,
    ) -> DuplicateMatch:
        if not records:
            return NOT_DUPLICATE

        if fingerprint is not None:
            exact_hash = fingerprint.exact_hash.lower()
            if exact_index is not None:
                record = exact_index.get(exact_hash)
            else:
                record = next((r for r in records if r.exact_hash == exact_hash), None)
            if record is not None:
                return DuplicateMatch(True, MatchReason.EXACT, record.record_id, 1.0)

            if fingerprint.perceptual_hash:
                best_record: Optional[RemoteRecord] = None
                best_similarity = 0.0
                for record in records:
                    similarity = hash_calc.hash_similarity(
                        fingerprint.perceptual_hash, record.perceptual_hash
                    )
                    if similarity > best_similarity:
                        best_record, best_similarity = record, similarity
                if best_record is not None and best_similarity >= self.perceptual_threshold:
                    return DuplicateMatch(
                        True, MatchReason.PERCEPTUAL, best_record.record_id, best_similarity
                    )

        if self.enable_metadata_fallback:
            for record in records:
                if self.metadata_matches(item, record):
                    return DuplicateMatch(True, MatchReason.METADATA, record.record_id)

        return NOT_DUPLICATE

    def metadata_matches(self, item: MediaItem, record: RemoteRecord) -> bool:
        if record.capture_timestamp is None:
            return False
        if not record.width or not record.height:
            return False
        local_time = time_utils.ensure_aware(item.capture_timestamp)
        delta_sec = abs((local_time - record.capture_timestamp).total_seconds())
        return (
            delta_sec <= self.timestamp_tolerance_sec
            and item.width == record.width
            and item.height == record.height
            and abs(item.size_bytes - record.size_bytes) <= self.size_tolerance_bytes
        )

    def _fingerprint_or_none(self, item: MediaItem) -> Optional[Fingerprint]:
        try:
            return self.hash_index.fingerprint(item)
        except ConversionFailureError as exc:
            self.logger.warning(f"無法計算指紋，只使用 metadata 比對: {item.item_id} ({exc})")
            return None
