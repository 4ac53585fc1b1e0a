"""批次結果摘要。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Tuple

from .upload_task import TaskState, UploadTask


@dataclass(frozen=True)
class FailedItem:
    item_id: str
    reason: str


@dataclass(frozen=True)
class BatchResult:
    succeeded: int
    failed: int
    skipped: int
    cancelled: int = 0
    failed_items: Tuple[FailedItem, ...] = field(default_factory=tuple)
    was_cancelled: bool = False

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.skipped + self.cancelled

    @classmethod
    def from_tasks(cls, tasks: Iterable[UploadTask], *, was_cancelled: bool = False) -> "BatchResult":
        counts = {state: 0 for state in TaskState}
        failed_items: list[FailedItem] = []
        for task in tasks:
            counts[task.state] += 1
            if task.state == TaskState.FAILED:
                failed_items.append(FailedItem(item_id=task.item_id, reason=task.reason or "unknown"))
        return cls(
            succeeded=counts[TaskState.SUCCEEDED],
            failed=counts[TaskState.FAILED],
            skipped=counts[TaskState.SKIPPED],
            cancelled=counts[TaskState.CANCELLED],
            failed_items=tuple(failed_items),
            was_cancelled=was_cancelled,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "was_cancelled": self.was_cancelled,
            "failed_items": [
                {"item_id": item.item_id, "reason": item.reason} for item in self.failed_items
            ],
        }
