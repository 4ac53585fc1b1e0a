"""取得新憑證的外部協作者介面。"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

from ..models import Credential


class TokenSupplier(Protocol):
    """向宿主應用程式要求新憑證。

    在背景執行緒中被呼叫，可以阻塞；回傳 None 表示此次無法取得。
    """

    def request_fresh_token(self) -> Optional[Credential]:
        ...


class CallbackTokenSupplier:
    """把回傳 token 字串的函式包裝成 TokenSupplier。"""

    def __init__(
        self,
        fetch_token: Callable[[], Optional[str]],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetch_token = fetch_token
        self._clock = clock

    def request_fresh_token(self) -> Optional[Credential]:
        token = self._fetch_token()
        if not token:
            return None
        return Credential.from_jwt(token, issued_at=self._clock())


class StaticTokenSupplier(CallbackTokenSupplier):
    """固定 token，每次要求都重新簽發一筆新的 Credential。"""

    def __init__(self, token: str, clock: Callable[[], float] = time.time) -> None:
        super().__init__(lambda: token, clock=clock)
