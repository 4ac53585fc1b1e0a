"""資料模型模組。"""

from .batch_result import BatchResult, FailedItem
from .credential import Credential
from .error_record import ErrorLevel, ProcessError
from .fingerprint import Fingerprint
from .media_item import GeoLocation, MediaItem
from .progress_event import ProgressEvent, ProgressEventType
from .remote_record import RemoteRecord
from .upload_task import InvalidTransitionError, TaskState, UploadTask

__all__ = [
    "BatchResult",
    "Credential",
    "ErrorLevel",
    "FailedItem",
    "Fingerprint",
    "GeoLocation",
    "InvalidTransitionError",
    "MediaItem",
    "ProcessError",
    "ProgressEvent",
    "ProgressEventType",
    "RemoteRecord",
    "TaskState",
    "UploadTask",
]
