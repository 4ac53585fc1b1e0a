"""核心流程模組。"""

from .credential_manager import CredentialManager
from .duplicate_detector import (
    NOT_DUPLICATE,
    DuplicateCheckResult,
    DuplicateDetector,
    DuplicateMatch,
    MatchReason,
)
from .hash_index import HashIndex
from .listing_client import ListingClient, ListingPage
from .media_scanner import MediaScanner
from .token_store import TokenStore
from .token_supplier import CallbackTokenSupplier, StaticTokenSupplier, TokenSupplier
from .upload_client import (
    UploadClient,
    UploadOutcome,
    UploadResult,
    classify_status,
    sanitize_file_name,
)
from .upload_queue import UploadQueue

__all__ = [
    "CallbackTokenSupplier",
    "CredentialManager",
    "DuplicateCheckResult",
    "DuplicateDetector",
    "DuplicateMatch",
    "HashIndex",
    "ListingClient",
    "ListingPage",
    "MatchReason",
    "MediaScanner",
    "NOT_DUPLICATE",
    "StaticTokenSupplier",
    "TokenStore",
    "TokenSupplier",
    "UploadClient",
    "UploadOutcome",
    "UploadQueue",
    "UploadResult",
    "classify_status",
    "sanitize_file_name",
]
