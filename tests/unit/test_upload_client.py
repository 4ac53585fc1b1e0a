import base64
from datetime import datetime, timezone

import pytest
import requests
import requests_mock

from photo_share_upload.config import ConfigManager
from photo_share_upload.core import UploadClient
from photo_share_upload.core.upload_client import UploadOutcome, classify_status, sanitize_file_name
from photo_share_upload.models import Credential, Fingerprint, GeoLocation, MediaItem
from photo_share_upload.utils.errors import (
    AuthRejectedError,
    ConversionFailureError,
    PermanentRejectionError,
    TransientNetworkError,
)

UPLOAD_URL = "https://photo-share.app/api/mobile-upload"
CREDENTIAL = Credential(token="jwt-token-value", issued_at=0.0)


def _item(file_name: str = "IMG_0001.jpg", payload: bytes = b"jpeg-bytes", loader=None) -> MediaItem:
    return MediaItem(
        item_id=file_name,
        file_name=file_name,
        capture_timestamp=datetime(2024, 7, 15, 14, 30, 45, tzinfo=timezone.utc),
        width=4032,
        height=3024,
        size_bytes=len(payload),
        location=GeoLocation(latitude=25.03, longitude=121.56),
        payload=None if loader else payload,
        loader=loader,
    )


def test_send_json_body() -> None:
    client = UploadClient(ConfigManager())
    fingerprint = Fingerprint(exact_hash="abc123", perceptual_hash="ffff0000ffff0000")

    with requests_mock.Mocker() as mocker:
        mocker.post(UPLOAD_URL, status_code=201, json={"id": "photo-1"})
        result = client.send(_item(), CREDENTIAL, event_id="evt-1", fingerprint=fingerprint)
        request = mocker.last_request

    assert result.ok
    assert result.outcome == UploadOutcome.SUCCESS
    assert result.body == {"id": "photo-1"}
    assert request.headers["Authorization"] == "Bearer jwt-token-value"
    assert request.timeout == 90
    body = request.json()
    assert body["eventId"] == "evt-1"
    assert body["fileName"] == "IMG_0001.jpg"
    assert base64.b64decode(body["fileData"]) == b"jpeg-bytes"
    assert body["mediaType"] == "photo"
    assert body["originalTimestamp"] == "2024-07-15T14:30:45Z"
    assert (body["imageWidth"], body["imageHeight"]) == (4032, 3024)
    assert body["fileHash"] == "abc123"
    assert body["perceptualHash"] == "ffff0000ffff0000"
    assert body["location"] == {"latitude": 25.03, "longitude": 121.56}


def test_send_multipart_body() -> None:
    config = ConfigManager()
    config.set("upload.body_format", "multipart")
    client = UploadClient(config)

    with requests_mock.Mocker() as mocker:
        mocker.post(UPLOAD_URL, status_code=200, json={})
        result = client.send(_item("My Photo (1).jpg"), CREDENTIAL, event_id="evt-1")
        request = mocker.last_request

    assert result.ok
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="event_id"' in request.body
    assert b'filename="My_Photo_1_.jpg"' in request.body
    assert b"jpeg-bytes" in request.body


@pytest.mark.parametrize(
    ("status", "content_type", "expected"),
    [
        (200, "application/json", UploadOutcome.SUCCESS),
        (201, "application/json", UploadOutcome.SUCCESS),
        (409, "application/json", UploadOutcome.ALREADY_EXISTS),
        (401, "application/json", UploadOutcome.AUTH_REJECTED),
        (403, "application/json", UploadOutcome.AUTH_REJECTED),
        (403, "text/html; charset=UTF-8", UploadOutcome.TRANSIENT),
        (408, "", UploadOutcome.TRANSIENT),
        (429, "application/json", UploadOutcome.TRANSIENT),
        (500, "", UploadOutcome.TRANSIENT),
        (503, "", UploadOutcome.TRANSIENT),
        (400, "application/json", UploadOutcome.PERMANENT),
        (413, "application/json", UploadOutcome.PERMANENT),
    ],
)
def test_classify_status(status: int, content_type: str, expected: UploadOutcome) -> None:
    assert classify_status(status, content_type) == expected


def test_permanent_rejection_carries_server_message() -> None:
    client = UploadClient(ConfigManager())

    with requests_mock.Mocker() as mocker:
        mocker.post(
            UPLOAD_URL,
            status_code=400,
            json={"code": "invalid_event", "message": "Event has ended"},
        )
        result = client.send(_item(), CREDENTIAL, event_id="evt-1")

    assert not result.ok
    assert result.outcome == UploadOutcome.PERMANENT
    assert result.message == "invalid_event: Event has ended"
    with pytest.raises(PermanentRejectionError) as excinfo:
        result.raise_for_outcome()
    assert excinfo.value.reason == "rejected: HTTP 400 invalid_event: Event has ended"
    assert excinfo.value.http_status == 400


def test_auth_rejection_raises_retryable_error() -> None:
    client = UploadClient(ConfigManager())

    with requests_mock.Mocker() as mocker:
        mocker.post(UPLOAD_URL, status_code=401, json={"message": "JWT expired"})
        result = client.send(_item(), CREDENTIAL, event_id="evt-1")

    with pytest.raises(AuthRejectedError) as excinfo:
        result.raise_for_outcome()
    assert excinfo.value.retryable


def test_already_uploaded_is_ok() -> None:
    client = UploadClient(ConfigManager())

    with requests_mock.Mocker() as mocker:
        mocker.post(UPLOAD_URL, status_code=409, json={"message": "already uploaded"})
        result = client.send(_item(), CREDENTIAL, event_id="evt-1")

    assert result.ok
    assert result.outcome == UploadOutcome.ALREADY_EXISTS
    result.raise_for_outcome()


def test_network_error_is_transient() -> None:
    client = UploadClient(ConfigManager())

    with requests_mock.Mocker() as mocker:
        mocker.post(UPLOAD_URL, exc=requests.exceptions.ConnectTimeout)
        with pytest.raises(TransientNetworkError) as excinfo:
            client.send(_item(), CREDENTIAL, event_id="evt-1")

    assert excinfo.value.reason.startswith("network_error")


def test_unreadable_item_is_conversion_failure() -> None:
    def broken_loader() -> bytes:
        raise OSError("file vanished")

    client = UploadClient(ConfigManager())

    with requests_mock.Mocker() as mocker:
        with pytest.raises(ConversionFailureError):
            client.send(_item(loader=broken_loader), CREDENTIAL, event_id="evt-1")
        assert not mocker.called


@pytest.mark.parametrize(
    ("file_name", "expected"),
    [
        ("IMG_0001.jpg", "IMG_0001.jpg"),
        ("My Photo (1).jpg", "My_Photo_1_.jpg"),
        ("照片.jpg", "photo.jpg"),
        ("  ", "photo.jpg"),
        ("___", "photo.jpg"),
    ],
)
def test_sanitize_file_name(file_name: str, expected: str) -> None:
    assert sanitize_file_name(file_name) == expected
