"""上傳任務與其狀態機。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .fingerprint import Fingerprint
from .media_item import MediaItem


class TaskState(str, Enum):
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


_ALLOWED_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset(
        {TaskState.IN_FLIGHT, TaskState.SKIPPED, TaskState.FAILED, TaskState.CANCELLED}
    ),
    TaskState.IN_FLIGHT: frozenset({TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED}),
    TaskState.SUCCEEDED: frozenset(),
    TaskState.FAILED: frozenset(),
    TaskState.SKIPPED: frozenset(),
    TaskState.CANCELLED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    pass


@dataclass
class UploadTask:
    """由 UploadQueue 獨佔；只能透過 transition 改變狀態。"""

    item: MediaItem
    index: int
    state: TaskState = TaskState.PENDING
    reason: Optional[str] = None
    attempts: int = 0
    http_status: Optional[int] = None
    fingerprint: Optional[Fingerprint] = field(default=None, repr=False)

    @property
    def item_id(self) -> str:
        return self.item.item_id

    @property
    def is_terminal(self) -> bool:
        return not _ALLOWED_TRANSITIONS[self.state]

    def transition(self, new_state: TaskState, reason: Optional[str] = None) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"{self.item_id}: 不允許 {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "item_id": self.item_id,
            "file_name": self.item.file_name,
            "state": self.state.value,
            "reason": self.reason,
            "attempts": self.attempts,
            "http_status": self.http_status,
            "size_bytes": self.item.size_bytes,
            "exact_hash": self.fingerprint.exact_hash if self.fingerprint else None,
            "perceptual_hash": self.fingerprint.perceptual_hash if self.fingerprint else None,
        }
