"""循序上傳佇列。

一個批次的流程：

1. 對整個批次執行一次重複偵測，重複項目直接標記為 Skipped，不會進入 InFlight。
2. 其餘項目嚴格依提交順序逐一上傳，同時間最多只有一個 InFlight。
3. 每個項目開始前檢查取消旗標；取消後剩餘的 Pending 全部變成 Cancelled，
   進行中的傳輸會先完成。
4. 單一項目失敗不會中止批次，最後一定回傳 BatchResult。
"""

from __future__ import annotations

import time
from typing import Callable, Iterable, List, Optional, Sequence

from ..config import ConfigManager
from ..models import (
    BatchResult,
    Credential,
    MediaItem,
    ProgressEvent,
    ProgressEventType,
    RemoteRecord,
    TaskState,
    UploadTask,
)
from ..utils.cancel import CancellationToken
from ..utils.error_handler import ErrorHandler
from ..utils.errors import (
    AuthRejectedError,
    AuthUnavailableError,
    ConversionFailureError,
    ListingIncompleteError,
    PermanentRejectionError,
    TransientNetworkError,
    UploadError,
)
from ..utils.logger import get_logger
from ..utils.retry import OperationResult, RetryPolicy, run_with_retry
from .credential_manager import CredentialManager
from .duplicate_detector import DuplicateDetector
from .upload_client import UploadClient, UploadOutcome, UploadResult

ProgressCallback = Callable[[ProgressEvent], None]


class UploadQueue:
    def __init__(
        self,
        config: ConfigManager,
        credential_manager: CredentialManager,
        upload_client: UploadClient,
        duplicate_detector: DuplicateDetector,
        listing_client=None,
        logger=None,
    ) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self.credential_manager = credential_manager
        self.upload_client = upload_client
        self.duplicate_detector = duplicate_detector
        self.hash_index = duplicate_detector.hash_index
        self.listing_client = listing_client
        self.retry_policy = RetryPolicy.from_config(config)
        self.cancel_token = CancellationToken()
        self.errors = ErrorHandler()
        self.tasks: List[UploadTask] = []

    def cancel(self) -> None:
        self.logger.info("已要求取消批次，進行中的項目完成後停止")
        self.cancel_token.set()

    def in_flight_count(self) -> int:
        return sum(1 for task in self.tasks if task.state == TaskState.IN_FLIGHT)

    def run_batch(
        self,
        items: Iterable[MediaItem],
        *,
        event_id: str,
        remote_records: Optional[Sequence[RemoteRecord]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchResult:
        token = cancel_token or self.cancel_token
        self.errors.clear()
        self.tasks = [UploadTask(item=item, index=index) for index, item in enumerate(items, start=1)]
        total = len(self.tasks)

        self._emit(
            progress_callback,
            ProgressEvent(event_type=ProgressEventType.BATCH_START, total=total),
        )

        if not token.is_cancelled():
            self._skip_duplicates(event_id, remote_records, progress_callback)

        for task in self.tasks:
            if task.state != TaskState.PENDING:
                continue
            if token.is_cancelled():
                break
            self._process_task(task, event_id, total, progress_callback)

        # 只有實際留下未處理項目時才算被取消
        cancelled = False
        if token.is_cancelled():
            for task in self.tasks:
                if task.state == TaskState.PENDING:
                    task.transition(TaskState.CANCELLED, "cancelled")
                    cancelled = True

        result = BatchResult.from_tasks(self.tasks, was_cancelled=cancelled)
        self.logger.info(
            "批次完成：成功 %s，失敗 %s，略過 %s，取消 %s",
            result.succeeded,
            result.failed,
            result.skipped,
            result.cancelled,
        )
        self._emit(
            progress_callback,
            ProgressEvent(event_type=ProgressEventType.BATCH_DONE, total=total, result=result),
        )

        if token is self.cancel_token and token.is_cancelled():
            self.cancel_token = CancellationToken()
        return result

    def _skip_duplicates(
        self,
        event_id: str,
        remote_records: Optional[Sequence[RemoteRecord]],
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        records = list(remote_records) if remote_records is not None else self._fetch_remote_records(event_id)
        if not records:
            return

        matches = self.duplicate_detector.filter_duplicates(
            [task.item for task in self.tasks], records
        )
        for task in self.tasks:
            match = matches.get(task.item_id)
            if match is None or not match.is_duplicate:
                continue
            task.fingerprint = self.hash_index.cached(task.item)
            task.transition(TaskState.SKIPPED, match.skip_reason)
            self.logger.info("略過重複項目 %s（%s）", task.item_id, match.skip_reason)
            self._emit(
                progress_callback,
                ProgressEvent(
                    event_type=ProgressEventType.DUPLICATE_SKIPPED,
                    index=task.index,
                    total=len(self.tasks),
                    item_id=task.item_id,
                    outcome=task.state.value,
                    reason=match.skip_reason,
                ),
            )

    def _fetch_remote_records(self, event_id: str) -> List[RemoteRecord]:
        if self.listing_client is None:
            return []
        try:
            return self.listing_client.fetch_all(event_id)
        except ListingIncompleteError as exc:
            self.logger.warning(f"已上傳列表不完整，只以已取得的 {len(exc.records)} 筆偵測重複: {exc.reason}")
            self.errors.add_warning("W-LISTING", f"listing_failed: {exc.reason}")
            return list(exc.records)
        except UploadError as exc:
            self.logger.warning(f"無法取得已上傳列表，略過重複偵測: {exc.reason}")
            self.errors.add_warning("W-LISTING", f"listing_failed: {exc.reason}")
            return []
        except Exception as exc:  # noqa: BLE001 - listing failure only disables dedup
            self.logger.warning(f"無法取得已上傳列表，略過重複偵測: {exc}")
            self.errors.add_warning("W-LISTING", f"listing_failed: {exc}")
            return []

    def _process_task(
        self,
        task: UploadTask,
        event_id: str,
        total: int,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        task.transition(TaskState.IN_FLIGHT)
        started = time.time()
        self._emit(
            progress_callback,
            ProgressEvent(
                event_type=ProgressEventType.ITEM_START,
                index=task.index,
                total=total,
                item_id=task.item_id,
                outcome=task.state.value,
            ),
        )

        try:
            task.fingerprint = self.hash_index.fingerprint(task.item)
            operation = self._upload_with_retry(task, event_id, total, progress_callback)
            self._finish_task(task, operation)
        except ConversionFailureError as exc:
            self._fail(task, exc.code, exc.reason)
        except Exception as exc:  # noqa: BLE001 - failures stay item-scoped
            self.logger.exception("上傳 %s 時發生未預期錯誤", task.item_id)
            self._fail(task, "E-UNEXPECTED", f"unexpected_error: {exc}")

        self._emit(
            progress_callback,
            ProgressEvent(
                event_type=ProgressEventType.ITEM_DONE,
                index=task.index,
                total=total,
                item_id=task.item_id,
                outcome=task.state.value,
                reason=task.reason,
                attempt=task.attempts,
                elapsed_ms=int((time.time() - started) * 1000),
            ),
        )

    def _upload_with_retry(
        self,
        task: UploadTask,
        event_id: str,
        total: int,
        progress_callback: Optional[ProgressCallback],
    ) -> OperationResult:
        state: dict[str, Optional[Credential]] = {"credential": None, "used": None}

        def attempt() -> UploadResult:
            task.attempts += 1
            credential = state["credential"] or self._acquire_credential()
            state["credential"] = None
            state["used"] = credential
            result = self.upload_client.send(
                task.item,
                credential,
                event_id=event_id,
                fingerprint=task.fingerprint,
            )
            task.http_status = result.http_status
            result.raise_for_outcome()
            return result

        def on_retry(exc: BaseException, attempt_number: int, wait_sec: float) -> None:
            self._emit(
                progress_callback,
                ProgressEvent(
                    event_type=ProgressEventType.ITEM_RETRY,
                    index=task.index,
                    total=total,
                    item_id=task.item_id,
                    outcome=task.state.value,
                    reason=getattr(exc, "reason", str(exc)),
                    attempt=attempt_number,
                ),
            )
            if isinstance(exc, AuthRejectedError):
                state["credential"] = self.credential_manager.force_refresh(rejected=state["used"])

        return run_with_retry(
            attempt,
            policy=self.retry_policy,
            retry_on=(TransientNetworkError, AuthRejectedError),
            stop_on=(PermanentRejectionError, AuthUnavailableError, ConversionFailureError),
            on_retry=on_retry,
            logger=self.logger,
        )

    def _acquire_credential(self) -> Credential:
        credential = self.credential_manager.get_usable_credential()
        if credential is None:
            credential = self.credential_manager.wait_for_credential()
        if credential is None:
            raise AuthUnavailableError("auth_unavailable")
        return credential

    def _finish_task(self, task: UploadTask, operation: OperationResult) -> None:
        if operation.success:
            result: UploadResult = operation.value
            if result.outcome == UploadOutcome.ALREADY_EXISTS:
                task.transition(TaskState.SKIPPED, "duplicate_server")
            else:
                task.transition(TaskState.SUCCEEDED)
            return

        error = operation.error
        if isinstance(error, ConversionFailureError):
            raise error
        if isinstance(error, UploadError):
            self._fail(task, error.code, error.reason)
        else:
            self._fail(task, "E-UPLOAD", operation.error_message or "upload_failed")

    def _fail(self, task: UploadTask, code: str, reason: str) -> None:
        task.transition(TaskState.FAILED, reason)
        self.errors.add_fatal(code, reason, item_id=task.item_id)
        self.logger.error("項目 %s 上傳失敗：%s", task.item_id, reason)

    def _emit(
        self,
        callback: Optional[ProgressCallback],
        event: ProgressEvent,
    ) -> None:
        if callback is None:
            return
        callback(event)
