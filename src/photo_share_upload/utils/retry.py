"""重試與指數退避。"""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Any, Callable, Optional

from .logger import get_logger


@dataclass
class OperationResult:
    success: bool
    error_message: Optional[str] = None
    retry_count: int = 0
    elapsed_time: float = 0.0
    value: Any = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base_sec: float = 1.0
    backoff_cap_sec: float = 30.0

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        cfg_get = getattr(config, "get", None)
        if not callable(cfg_get):
            raise TypeError("config 必須提供 get(key, default) 方法")
        return cls(
            max_attempts=max(1, int(cfg_get("retry.max_attempts", 3))),
            backoff_base_sec=float(cfg_get("retry.backoff_base_sec", 1.0)),
            backoff_cap_sec=float(cfg_get("retry.backoff_cap_sec", 30.0)),
        )

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次（從 1 起算）失敗後要等待的秒數。"""
        return min(self.backoff_base_sec * (2 ** (attempt - 1)), self.backoff_cap_sec)


def run_with_retry(
    func: Callable[[], Any],
    *,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    stop_on: tuple[type[BaseException], ...] = (),
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None,
    logger=None,
) -> OperationResult:
    """呼叫 func，遇到 retry_on 例外時依 policy 退避重試。

    stop_on 例外立即回傳失敗結果；其他例外照常往外拋。
    """
    op_logger = logger or get_logger("Retry")
    start_time = time.time()
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = func()
            return OperationResult(
                success=True,
                retry_count=attempt - 1,
                elapsed_time=time.time() - start_time,
                value=value,
            )
        except stop_on as exc:
            op_logger.error("操作失敗且不可重試（第 %s 次嘗試）：%s", attempt, exc)
            return OperationResult(
                success=False,
                error_message=str(exc),
                retry_count=attempt - 1,
                elapsed_time=time.time() - start_time,
                error=exc,
            )
        except retry_on as exc:
            last_error = exc
            if attempt < policy.max_attempts:
                wait_time = policy.delay_for(attempt)
                op_logger.warning(
                    "操作重試 %s/%s，等待 %.2fs：%s",
                    attempt,
                    policy.max_attempts - 1,
                    wait_time,
                    exc,
                )
                if on_retry is not None:
                    on_retry(exc, attempt, wait_time)
                time.sleep(wait_time)
            else:
                op_logger.error("操作最終失敗（共嘗試 %s 次）：%s", policy.max_attempts, exc)

    return OperationResult(
        success=False,
        error_message=str(last_error) if last_error is not None else "Unknown error",
        retry_count=policy.max_attempts - 1,
        elapsed_time=time.time() - start_time,
        error=last_error,
    )

