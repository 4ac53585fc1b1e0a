"""伺服器「已上傳項目」列表 API 的分頁讀取。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import requests

from ..config import ConfigManager
from ..models import Credential, RemoteRecord
from ..utils.errors import (
    AuthRejectedError,
    AuthUnavailableError,
    ListingIncompleteError,
    PermanentRejectionError,
    TransientNetworkError,
    UploadError,
)
from ..utils.logger import get_logger
from ..utils.retry import RetryPolicy, run_with_retry
from .credential_manager import CredentialManager
from .upload_client import UploadOutcome, classify_response

MAX_PAGE_SIZE = 100


@dataclass
class ListingPage:
    records: List[RemoteRecord]
    has_more: bool
    raw_count: int
    total_count: Optional[int] = None


class ListingClient:
    def __init__(
        self,
        config: ConfigManager,
        credential_manager: CredentialManager,
        session: Optional[requests.Session] = None,
        logger=None,
    ) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self.credential_manager = credential_manager
        self.session = session or requests.Session()
        base_url = str(config.get("api.base_url", "")).rstrip("/")
        self.listing_url = base_url + str(config.get("api.listing_path", "/uploaded-photos"))
        self.timeout_sec = float(config.get("api.listing_timeout_sec", 30))
        self.page_size = max(1, min(MAX_PAGE_SIZE, int(config.get("listing.page_size", 50))))
        self.max_pages = int(config.get("listing.max_pages", 1000))
        self.retry_policy = RetryPolicy.from_config(config)

    def fetch_page(
        self,
        event_id: str,
        offset: int,
        credential: Credential,
        limit: Optional[int] = None,
    ) -> ListingPage:
        page_limit = max(1, min(MAX_PAGE_SIZE, limit or self.page_size))
        try:
            response = self.session.get(
                self.listing_url,
                headers={"Authorization": f"Bearer {credential.token}"},
                params={"event_id": event_id, "limit": page_limit, "offset": offset},
                timeout=self.timeout_sec,
            )
        except requests.RequestException as exc:
            raise TransientNetworkError(f"network_error: {exc}") from exc

        result = classify_response(response)
        if result.outcome != UploadOutcome.SUCCESS:
            if result.outcome == UploadOutcome.ALREADY_EXISTS:
                raise PermanentRejectionError(
                    f"rejected: HTTP {result.http_status}", http_status=result.http_status
                )
            result.raise_for_outcome()

        body = result.body
        if body is None:
            raise PermanentRejectionError("rejected: listing 回應不是 JSON 物件", http_status=result.http_status)

        photos = body.get("photos") or []
        records = [RemoteRecord.from_api(photo) for photo in photos if isinstance(photo, dict)]
        has_more = body.get("has_more")
        if not isinstance(has_more, bool):
            has_more = len(photos) >= page_limit
        total_count = body.get("total_count")
        return ListingPage(
            records=records,
            has_more=has_more,
            raw_count=len(photos),
            total_count=total_count if isinstance(total_count, int) else None,
        )

    def fetch_all(self, event_id: str) -> List[RemoteRecord]:
        """持續讀取下一頁直到 API 表示沒有更多資料，合併所有頁面。

        第一頁之後的頁面失敗時拋出 ListingIncompleteError，並附上已取得的項目。
        """
        records: List[RemoteRecord] = []
        offset = 0
        for page_number in range(1, self.max_pages + 1):
            try:
                page = self._fetch_page_with_retry(event_id, offset)
            except UploadError as exc:
                if not records:
                    raise
                self.logger.warning(
                    "第 %s 頁（offset %s）讀取失敗，只保留已取得的 %s 筆: %s",
                    page_number,
                    offset,
                    len(records),
                    exc.reason,
                )
                raise ListingIncompleteError(
                    f"listing_incomplete: {exc.reason}",
                    records,
                    http_status=exc.http_status,
                ) from exc
            records.extend(page.records)
            self.logger.info(
                "已取得第 %s 頁（offset %s）共 %s 筆已上傳項目",
                page_number,
                offset,
                page.raw_count,
            )
            if not page.has_more or page.raw_count == 0:
                break
            offset += page.raw_count
        else:
            self.logger.warning("已達 listing.max_pages=%s，停止讀取後續頁面", self.max_pages)

        self.logger.info("活動 %s 共有 %s 筆已上傳項目", event_id, len(records))
        return records

    def _fetch_page_with_retry(self, event_id: str, offset: int) -> ListingPage:
        state: dict[str, Optional[Credential]] = {"credential": None, "used": None}

        def attempt() -> ListingPage:
            credential = state["credential"] or self.credential_manager.get_usable_credential()
            if credential is None:
                credential = self.credential_manager.wait_for_credential()
            if credential is None:
                raise AuthUnavailableError("auth_unavailable")
            state["credential"] = None
            state["used"] = credential
            return self.fetch_page(event_id, offset, credential)

        def on_retry(exc: BaseException, _attempt: int, _wait: float) -> None:
            if isinstance(exc, AuthRejectedError):
                state["credential"] = self.credential_manager.force_refresh(rejected=state["used"])

        result = run_with_retry(
            attempt,
            policy=self.retry_policy,
            retry_on=(TransientNetworkError, AuthRejectedError),
            stop_on=(PermanentRejectionError, AuthUnavailableError),
            on_retry=on_retry,
            logger=self.logger,
        )
        if result.success:
            return result.value
        if isinstance(result.error, UploadError):
            raise result.error
        raise TransientNetworkError(result.error_message or "listing_failed")
