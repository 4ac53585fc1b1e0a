"""上傳流程的錯誤分類。

每個錯誤都帶有機器可讀的 ``code`` 與可呈現給使用者的 ``reason``，
``BatchResult`` 中的失敗原因即來自 ``reason``。
"""

from __future__ import annotations

from typing import Optional


class UploadError(Exception):
    code = "E-UPLOAD"
    retryable = False

    def __init__(self, reason: str, *, http_status: Optional[int] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.http_status = http_status


class AuthUnavailableError(UploadError):
    """沒有任何可用的憑證。"""

    code = "E-AUTH-UNAVAILABLE"


class AuthRejectedError(UploadError):
    """伺服器回應 401/403；下次嘗試前必須強制更新憑證。"""

    code = "E-AUTH-REJECTED"
    retryable = True


class TransientNetworkError(UploadError):
    """逾時、連線失敗或 5xx，可依退避策略重試。"""

    code = "E-TRANSIENT"
    retryable = True


class PermanentRejectionError(UploadError):
    """其他 4xx，重試也不會成功。"""

    code = "E-PERMANENT"


class ConversionFailureError(UploadError):
    """無法讀取或編碼檔案內容，不進行網路請求。"""

    code = "E-CONVERSION"


class ListingIncompleteError(UploadError):
    """列表在中途失敗；``records`` 保留失敗前已合併的頁面。"""

    code = "E-LISTING-INCOMPLETE"

    def __init__(self, reason: str, records: list, *, http_status: Optional[int] = None) -> None:
        super().__init__(reason, http_status=http_status)
        self.records = records
