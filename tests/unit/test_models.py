import base64
import json
from datetime import datetime, timezone

import pytest

from photo_share_upload.models import (
    BatchResult,
    Credential,
    ErrorLevel,
    MediaItem,
    ProcessError,
    ProgressEvent,
    ProgressEventType,
    RemoteRecord,
    TaskState,
    UploadTask,
)
from photo_share_upload.models.upload_task import InvalidTransitionError


def _make_jwt(claims: dict) -> str:
    def encode(part: dict) -> str:
        raw = json.dumps(part).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{encode({'alg': 'HS256', 'typ': 'JWT'})}.{encode(claims)}.signature"


def _make_item(item_id: str = "IMG_0001.jpg") -> MediaItem:
    return MediaItem(
        item_id=item_id,
        file_name=item_id,
        capture_timestamp=datetime(2024, 7, 15, 14, 30, tzinfo=timezone.utc),
        width=4032,
        height=3024,
        size_bytes=2_500_000,
        payload=b"bytes",
    )


def test_credential_freshness_window() -> None:
    credential = Credential(token="abc", issued_at=1000.0)
    assert credential.is_fresh(1299.0, freshness_window=300, safety_margin=300)
    assert not credential.is_fresh(1300.0, freshness_window=300, safety_margin=300)


def test_credential_expiry_safety_margin() -> None:
    credential = Credential(token="abc", issued_at=1000.0, expires_at=1400.0)
    assert credential.is_fresh(1050.0, freshness_window=300, safety_margin=300)
    assert not credential.is_fresh(1100.0, freshness_window=300, safety_margin=300)
    assert not credential.is_expired(1100.0)
    assert credential.is_expired(1400.0)


def test_credential_from_jwt_reads_exp() -> None:
    token = _make_jwt({"sub": "user-1", "exp": 1_800_000_000})
    credential = Credential.from_jwt(token, issued_at=1_700_000_000.0)
    assert credential.expires_at == 1_800_000_000.0
    assert credential.issued_at == 1_700_000_000.0


def test_credential_from_non_jwt_has_unknown_expiry() -> None:
    credential = Credential.from_jwt("opaque-token", issued_at=10.0)
    assert credential.expires_at is None
    assert Credential.from_jwt("a.!!!.c", issued_at=10.0).expires_at is None


def test_credential_dict_round_trip() -> None:
    credential = Credential(token="abc", issued_at=1.5, expires_at=None)
    assert Credential.from_dict(credential.to_dict()) == credential


def test_media_item_prefers_payload_then_loader() -> None:
    item = _make_item()
    assert item.read_bytes() == b"bytes"

    lazy = MediaItem(
        item_id="lazy.jpg",
        file_name="lazy.jpg",
        capture_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        width=1,
        height=1,
        size_bytes=4,
        loader=lambda: b"lazy",
    )
    assert lazy.read_bytes() == b"lazy"

    empty = MediaItem(
        item_id="empty.jpg",
        file_name="empty.jpg",
        capture_timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        width=1,
        height=1,
        size_bytes=0,
    )
    with pytest.raises(ValueError):
        empty.read_bytes()


def test_upload_task_transitions() -> None:
    task = UploadTask(item=_make_item(), index=1)
    task.transition(TaskState.IN_FLIGHT)
    task.transition(TaskState.FAILED, "transient: HTTP 503")

    assert task.state == TaskState.FAILED
    assert task.reason == "transient: HTTP 503"
    assert task.is_terminal
    with pytest.raises(InvalidTransitionError):
        task.transition(TaskState.SUCCEEDED)


def test_duplicate_never_reaches_in_flight() -> None:
    task = UploadTask(item=_make_item(), index=1)
    task.transition(TaskState.SKIPPED, "duplicate_exact")
    with pytest.raises(InvalidTransitionError):
        task.transition(TaskState.IN_FLIGHT)


def test_in_flight_cannot_be_cancelled() -> None:
    task = UploadTask(item=_make_item(), index=1)
    task.transition(TaskState.IN_FLIGHT)
    with pytest.raises(InvalidTransitionError):
        task.transition(TaskState.CANCELLED)


def test_batch_result_from_tasks() -> None:
    states = [
        (TaskState.SUCCEEDED, None),
        (TaskState.FAILED, "rejected: HTTP 400"),
        (TaskState.SKIPPED, "duplicate_exact"),
        (TaskState.CANCELLED, "cancelled"),
    ]
    tasks = []
    for index, (state, reason) in enumerate(states, start=1):
        task = UploadTask(item=_make_item(f"IMG_{index}.jpg"), index=index)
        task.state = state
        task.reason = reason
        tasks.append(task)

    result = BatchResult.from_tasks(tasks, was_cancelled=True)

    assert (result.succeeded, result.failed, result.skipped, result.cancelled) == (1, 1, 1, 1)
    assert result.total == 4
    assert result.failed_items[0].item_id == "IMG_2.jpg"
    assert result.to_dict()["failed_items"] == [{"item_id": "IMG_2.jpg", "reason": "rejected: HTTP 400"}]


def test_progress_event_payloads() -> None:
    item_event = ProgressEvent(
        event_type=ProgressEventType.ITEM_DONE,
        index=2,
        total=3,
        item_id="IMG_2.jpg",
        outcome="SUCCEEDED",
    )
    assert item_event.to_dict() == {
        "event_type": "ITEM_DONE",
        "index": 2,
        "total": 3,
        "item_id": "IMG_2.jpg",
        "outcome": "SUCCEEDED",
    }

    skip_event = ProgressEvent(
        event_type=ProgressEventType.DUPLICATE_SKIPPED,
        item_id="IMG_1.jpg",
        reason="duplicate_exact",
    )
    assert skip_event.to_dict() == {
        "event_type": "DUPLICATE_SKIPPED",
        "item_id": "IMG_1.jpg",
        "reason": "duplicate_exact",
    }

    done_event = ProgressEvent(
        event_type=ProgressEventType.BATCH_DONE,
        result=BatchResult(succeeded=2, failed=0, skipped=1),
    )
    payload = done_event.to_dict()
    assert payload["succeeded"] == 2
    assert payload["skipped"] == 1
    assert payload["failed_items"] == []


def test_remote_record_from_api() -> None:
    record = RemoteRecord.from_api(
        {
            "id": "photo-1",
            "event_id": "evt-1",
            "file_name": "IMG_0001.jpg",
            "file_hash": "ABC123",
            "perceptual_hash": "ffff0000ffff0000",
            "file_size_bytes": 2500000,
            "image_width": 4032,
            "image_height": 3024,
            "original_timestamp": "2024-07-15T14:30:45Z",
            "upload_timestamp": "2024-07-15T15:00:00Z",
            "user_id": "user-1",
        }
    )
    assert record.exact_hash == "abc123"
    assert record.capture_timestamp == datetime(2024, 7, 15, 14, 30, 45, tzinfo=timezone.utc)
    assert (record.width, record.height, record.size_bytes) == (4032, 3024, 2500000)


def test_remote_record_tolerates_missing_fields() -> None:
    record = RemoteRecord.from_api({"id": "photo-2", "file_hash": "", "image_width": None})
    assert record.exact_hash is None
    assert record.capture_timestamp is None
    assert record.width == 0


def test_error_record_levels() -> None:
    error = ProcessError(
        code="E-TRANSIENT",
        level=ErrorLevel.FATAL,
        message="transient: HTTP 503",
        item_id="IMG_1.jpg",
    )
    data = error.to_dict()
    assert data["level"] == "E"
    assert data["item_id"] == "IMG_1.jpg"
