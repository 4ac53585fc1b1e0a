"""工具模組。"""

from . import hash_calc, time_utils
from .cancel import CancelledError, CancellationToken

__all__ = ["hash_calc", "time_utils", "CancelledError", "CancellationToken"]
