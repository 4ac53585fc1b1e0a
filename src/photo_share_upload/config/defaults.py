"""預設設定值。"""

DEFAULT_CONFIG = {
    "api": {
        "base_url": "https://photo-share.app/api",
        "upload_path": "/mobile-upload",
        "listing_path": "/uploaded-photos",
        "upload_timeout_sec": 90,
        "listing_timeout_sec": 30,
    },
    "auth": {
        "freshness_window_sec": 300,
        "expiry_safety_margin_sec": 300,
        "refresh_timeout_sec": 10.0,
        "token_cache_path": None,
    },
    "retry": {
        "max_attempts": 3,
        "backoff_base_sec": 1.0,
        "backoff_cap_sec": 30.0,
    },
    "upload": {
        "body_format": "json",
        "media_type": "photo",
        "sanitize_file_names": True,
    },
    "listing": {
        "page_size": 50,
        "max_pages": 1000,
    },
    "duplicates": {
        "perceptual_threshold": 0.90,
        "timestamp_tolerance_sec": 60,
        "size_tolerance_bytes": 1000000,
        "enable_metadata_fallback": True,
    },
    "hash": {
        "algorithm": "sha256",
        "chunk_size_kb": 1024,
    },
    "phash": {
        "algorithm": "average",
        "hash_size": 8,
    },
    "file_extensions": {
        "image": [".jpg", ".jpeg", ".png", ".heic", ".heif", ".webp"],
    },
}
