"""單一項目的驗證上傳。

``send`` 只做一次傳輸並回傳分類後的結果；重試由呼叫端依 RetryPolicy 進行。
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
import re
from typing import Any, Optional

import requests

from ..config import ConfigManager
from ..models import Credential, Fingerprint, MediaItem
from ..utils import time_utils
from ..utils.errors import (
    AuthRejectedError,
    ConversionFailureError,
    PermanentRejectionError,
    TransientNetworkError,
)
from ..utils.logger import get_logger, mask_token


class UploadOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    AUTH_REJECTED = "AUTH_REJECTED"
    TRANSIENT = "TRANSIENT"
    PERMANENT = "PERMANENT"


@dataclass(frozen=True)
class UploadResult:
    ok: bool
    http_status: int
    outcome: UploadOutcome
    message: Optional[str] = None
    body: Optional[dict[str, Any]] = None

    def raise_for_outcome(self) -> None:
        if self.outcome in {UploadOutcome.SUCCESS, UploadOutcome.ALREADY_EXISTS}:
            return
        detail = f"HTTP {self.http_status}"
        if self.message:
            detail = f"{detail} {self.message}"
        if self.outcome == UploadOutcome.AUTH_REJECTED:
            raise AuthRejectedError(f"auth_rejected: {detail}", http_status=self.http_status)
        if self.outcome == UploadOutcome.TRANSIENT:
            raise TransientNetworkError(f"transient: {detail}", http_status=self.http_status)
        raise PermanentRejectionError(f"rejected: {detail}", http_status=self.http_status)


def classify_status(status: int, content_type: str = "") -> UploadOutcome:
    if 200 <= status < 300:
        return UploadOutcome.SUCCESS
    if status == 409:
        return UploadOutcome.ALREADY_EXISTS
    if status == 403 and "text/html" in content_type.lower():
        # CDN/WAF 封鎖頁面，不是 API 的授權判斷
        return UploadOutcome.TRANSIENT
    if status in {401, 403}:
        return UploadOutcome.AUTH_REJECTED
    if status in {408, 429} or status >= 500:
        return UploadOutcome.TRANSIENT
    return UploadOutcome.PERMANENT


def _json_body(response: requests.Response) -> Optional[dict[str, Any]]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def parse_error_message(response: requests.Response) -> Optional[str]:
    body = _json_body(response)
    if body is not None:
        code = body.get("code") or body.get("error")
        message = body.get("message")
        if code and message:
            return f"{code}: {message}"
        if message or code:
            return str(message or code)
    text = (response.text or "").strip()
    if not text:
        return None
    return text[:200]


def classify_response(response: requests.Response) -> UploadResult:
    outcome = classify_status(response.status_code, response.headers.get("Content-Type", ""))
    ok = outcome in {UploadOutcome.SUCCESS, UploadOutcome.ALREADY_EXISTS}
    return UploadResult(
        ok=ok,
        http_status=response.status_code,
        outcome=outcome,
        message=None if outcome == UploadOutcome.SUCCESS else parse_error_message(response),
        body=_json_body(response),
    )


def sanitize_file_name(file_name: str) -> str:
    if not file_name or not file_name.strip():
        return "photo.jpg"
    sanitized = re.sub(r"[^A-Za-z0-9._-]", "_", file_name.strip())
    sanitized = re.sub(r"_+", "_", sanitized).strip("_")
    if not sanitized or "." not in sanitized:
        return "photo.jpg"
    if sanitized.startswith("."):
        return "photo" + sanitized
    return sanitized


class UploadClient:
    def __init__(
        self,
        config: ConfigManager,
        session: Optional[requests.Session] = None,
        logger=None,
    ) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self.session = session or requests.Session()
        base_url = str(config.get("api.base_url", "")).rstrip("/")
        self.upload_url = base_url + str(config.get("api.upload_path", "/mobile-upload"))
        self.timeout_sec = float(config.get("api.upload_timeout_sec", 90))
        self.body_format = str(config.get("upload.body_format", "json"))
        self.media_type = str(config.get("upload.media_type", "photo"))
        self.sanitize_names = bool(config.get("upload.sanitize_file_names", True))

    def send(
        self,
        item: MediaItem,
        credential: Credential,
        *,
        event_id: str,
        fingerprint: Optional[Fingerprint] = None,
    ) -> UploadResult:
        try:
            payload = item.read_bytes()
        except (OSError, ValueError) as exc:
            raise ConversionFailureError(f"conversion_failed: {exc}") from exc

        request_kwargs = self.build_request(item, credential, payload, event_id, fingerprint)
        self.logger.info(
            "上傳 %s（%s bytes）至 %s，憑證 %s",
            item.file_name,
            len(payload),
            self.upload_url,
            mask_token(credential.token),
        )
        try:
            response = self.session.post(self.upload_url, timeout=self.timeout_sec, **request_kwargs)
        except requests.RequestException as exc:
            raise TransientNetworkError(f"network_error: {exc}") from exc

        result = classify_response(response)
        if result.outcome == UploadOutcome.SUCCESS:
            self.logger.info("上傳成功 %s（HTTP %s）", item.file_name, result.http_status)
        elif result.outcome == UploadOutcome.ALREADY_EXISTS:
            self.logger.info("伺服器已有此照片（HTTP 409）: %s", item.file_name)
        else:
            self.logger.warning(
                "上傳失敗 %s: HTTP %s %s（%s）",
                item.file_name,
                result.http_status,
                result.outcome.value,
                result.message,
            )
        return result

    def build_request(
        self,
        item: MediaItem,
        credential: Credential,
        payload: bytes,
        event_id: str,
        fingerprint: Optional[Fingerprint] = None,
    ) -> dict[str, Any]:
        file_name = sanitize_file_name(item.file_name) if self.sanitize_names else item.file_name
        headers = {"Authorization": f"Bearer {credential.token}"}
        timestamp = time_utils.to_iso8601(item.capture_timestamp)

        if self.body_format == "multipart":
            fields: dict[str, str] = {
                "event_id": event_id,
                "file_name": file_name,
                "media_type": self.media_type,
                "originalTimestamp": timestamp,
                "image_width": str(item.width),
                "image_height": str(item.height),
                "file_size_bytes": str(item.size_bytes),
            }
            if fingerprint is not None:
                fields["file_hash"] = fingerprint.exact_hash
                if fingerprint.perceptual_hash:
                    fields["perceptual_hash"] = fingerprint.perceptual_hash
            if item.location is not None:
                fields["latitude"] = str(item.location.latitude)
                fields["longitude"] = str(item.location.longitude)
            return {
                "headers": headers,
                "data": fields,
                "files": {"file": (file_name, payload, item.mime_type)},
            }

        body: dict[str, Any] = {
            "eventId": event_id,
            "fileName": file_name,
            "fileData": base64.b64encode(payload).decode("ascii"),
            "mediaType": self.media_type,
            "mimeType": item.mime_type,
            "originalTimestamp": timestamp,
            "imageWidth": item.width,
            "imageHeight": item.height,
            "fileSizeBytes": item.size_bytes,
        }
        if fingerprint is not None:
            body["fileHash"] = fingerprint.exact_hash
            if fingerprint.perceptual_hash:
                body["perceptualHash"] = fingerprint.perceptual_hash
        if item.location is not None:
            body["location"] = item.location.to_dict()
        headers["Content-Type"] = "application/json"
        return {"headers": headers, "json": body}
