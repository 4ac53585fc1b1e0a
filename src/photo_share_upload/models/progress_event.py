"""上傳進度事件模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .batch_result import BatchResult


class ProgressEventType(str, Enum):
    BATCH_START = "BATCH_START"
    DUPLICATE_SKIPPED = "DUPLICATE_SKIPPED"
    ITEM_START = "ITEM_START"
    ITEM_RETRY = "ITEM_RETRY"
    ITEM_DONE = "ITEM_DONE"
    BATCH_DONE = "BATCH_DONE"


@dataclass
class ProgressEvent:
    event_type: ProgressEventType
    timestamp: datetime = field(default_factory=datetime.now)
    index: Optional[int] = None
    total: Optional[int] = None
    item_id: Optional[str] = None
    outcome: Optional[str] = None
    reason: Optional[str] = None
    attempt: Optional[int] = None
    elapsed_ms: Optional[int] = None
    result: Optional[BatchResult] = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"event_type": self.event_type.value}
        if self.event_type == ProgressEventType.DUPLICATE_SKIPPED:
            data.update({"item_id": self.item_id, "reason": self.reason})
        elif self.event_type == ProgressEventType.BATCH_DONE and self.result is not None:
            data.update(self.result.to_dict())
        else:
            data.update(
                {
                    "index": self.index,
                    "total": self.total,
                    "item_id": self.item_id,
                    "outcome": self.outcome,
                }
            )
        return data
