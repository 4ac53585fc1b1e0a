"""憑證新鮮度管理。

``get_usable_credential`` 永遠不會阻塞：憑證新鮮時直接回傳；過期或不存在時
在背景觸發一次更新（同時間只會有一個未完成的更新），並立即以最近儲存的
憑證（不論新舊）作為備援，沒有任何憑證時回傳 None。
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
import threading
import time
from typing import Callable, Optional

from ..config import ConfigManager
from ..models import Credential
from ..utils.errors import AuthUnavailableError
from ..utils.logger import get_logger, mask_token
from .token_store import TokenStore
from .token_supplier import TokenSupplier


class CredentialManager:
    def __init__(
        self,
        store: TokenStore,
        supplier: TokenSupplier,
        config: ConfigManager,
        *,
        logger=None,
        clock: Callable[[], float] = time.time,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.logger = logger or get_logger(self.__class__.__name__)
        self.store = store
        self.supplier = supplier
        self.freshness_window = float(config.get("auth.freshness_window_sec", 300))
        self.safety_margin = float(config.get("auth.expiry_safety_margin_sec", 300))
        self.refresh_timeout = float(config.get("auth.refresh_timeout_sec", 10.0))
        self._clock = clock
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="token-refresh"
        )
        self._lock = threading.Lock()
        self._pending: Optional[Future] = None
        self.refresh_requests = 0

    def is_fresh(self, credential: Optional[Credential]) -> bool:
        if credential is None:
            return False
        return credential.is_fresh(self._clock(), self.freshness_window, self.safety_margin)

    def get_usable_credential(self) -> Optional[Credential]:
        credential = self.store.current()
        if self.is_fresh(credential):
            return credential

        self.request_refresh()
        if credential is None:
            self.logger.warning("沒有可用的憑證，已要求更新")
        else:
            self.logger.info(
                "憑證已過期（age %.0fs），暫用舊憑證 %s 並在背景更新",
                credential.age(self._clock()),
                mask_token(credential.token),
            )
        return credential

    def require_usable_credential(self) -> Credential:
        credential = self.get_usable_credential()
        if credential is None:
            raise AuthUnavailableError("auth_unavailable")
        return credential

    def refresh_pending(self) -> bool:
        with self._lock:
            return self._pending is not None and not self._pending.done()

    def request_refresh(self) -> Future:
        """觸發背景更新；已有未完成的更新時回傳同一個 Future。"""
        with self._lock:
            if self._pending is not None and not self._pending.done():
                return self._pending
            self.refresh_requests += 1
            self._pending = self._executor.submit(self._run_refresh)
            return self._pending

    def force_refresh(
        self,
        rejected: Optional[Credential] = None,
        timeout: Optional[float] = None,
    ) -> Optional[Credential]:
        """不論新鮮度都要求更新，並等待結果（最多 timeout 秒）。

        若等到的仍是被拒絕的同一筆憑證（更新在拒絕前就已開始），再要求一次。
        """
        wait_sec = self.refresh_timeout if timeout is None else timeout
        deadline = self._clock() + wait_sec
        for _ in range(2):
            future = self.request_refresh()
            remaining = max(0.0, deadline - self._clock())
            try:
                future.result(timeout=remaining)
            except FutureTimeoutError:
                self.logger.warning("等待憑證更新逾時（%.1fs）", wait_sec)
                break
            current = self.store.current()
            if rejected is None or current is None or current.token != rejected.token:
                return current
        return self.store.current()

    def wait_for_credential(self, timeout: Optional[float] = None) -> Optional[Credential]:
        credential = self.store.current()
        if credential is not None:
            return credential
        wait_sec = self.refresh_timeout if timeout is None else timeout
        try:
            self.request_refresh().result(timeout=wait_sec)
        except FutureTimeoutError:
            self.logger.warning("等待第一筆憑證逾時（%.1fs）", wait_sec)
        return self.store.current()

    def deliver(self, credential: Credential) -> bool:
        """宿主主動推送的憑證（例如 App 回到前景時的預載）。"""
        accepted = self.store.replace(credential)
        if accepted:
            self.logger.info("已收到外部推送的憑證 %s", mask_token(credential.token))
        return accepted

    def deliver_token(self, token: str) -> bool:
        return self.deliver(Credential.from_jwt(token, issued_at=self._clock()))

    def on_app_resume(self) -> None:
        if not self.is_fresh(self.store.current()):
            self.logger.info("App 回到前景，預先更新憑證")
            self.request_refresh()

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _run_refresh(self) -> Optional[Credential]:
        try:
            credential = self.supplier.request_fresh_token()
        except Exception as exc:  # noqa: BLE001 - refresh failures must not reach the queue worker
            self.logger.warning(f"憑證更新失敗: {exc}")
            return None
        if credential is None:
            self.logger.warning("憑證提供者未回傳任何憑證")
            return None
        if self.store.replace(credential):
            self.logger.info("憑證已更新 %s", mask_token(credential.token))
        return self.store.current()
