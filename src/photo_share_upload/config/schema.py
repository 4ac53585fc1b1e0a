"""設定檔驗證邏輯。"""

from __future__ import annotations

from typing import Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: dict[str, Any]) -> list[str]:
    errors: list[str] = []

    def add_error(path: str, message: str) -> None:
        errors.append(f"{path}: {message}")

    api = config.get("api", {})
    for key in ("base_url", "upload_path", "listing_path"):
        value = api.get(key)
        if not isinstance(value, str) or not value.strip():
            add_error(f"api.{key}", "必須是非空字串")
    for key in ("upload_timeout_sec", "listing_timeout_sec"):
        value = api.get(key)
        if not _is_number(value) or value <= 0:
            add_error(f"api.{key}", "必須是大於 0 的數值")

    auth = config.get("auth", {})
    freshness_window_sec = auth.get("freshness_window_sec")
    safety_margin_sec = auth.get("expiry_safety_margin_sec")
    refresh_timeout_sec = auth.get("refresh_timeout_sec")
    token_cache_path = auth.get("token_cache_path")
    if not _is_number(freshness_window_sec) or freshness_window_sec <= 0:
        add_error("auth.freshness_window_sec", "必須是大於 0 的數值")
    if not _is_number(safety_margin_sec) or safety_margin_sec < 0:
        add_error("auth.expiry_safety_margin_sec", "必須是大於等於 0 的數值")
    if not _is_number(refresh_timeout_sec) or refresh_timeout_sec <= 0:
        add_error("auth.refresh_timeout_sec", "必須是大於 0 的數值")
    if token_cache_path is not None and not isinstance(token_cache_path, str):
        add_error("auth.token_cache_path", "必須是字串或 null")

    retry = config.get("retry", {})
    max_attempts = retry.get("max_attempts")
    backoff_base_sec = retry.get("backoff_base_sec")
    backoff_cap_sec = retry.get("backoff_cap_sec")
    if not isinstance(max_attempts, int) or isinstance(max_attempts, bool) or max_attempts < 1:
        add_error("retry.max_attempts", "必須是大於等於 1 的整數")
    if not _is_number(backoff_base_sec) or backoff_base_sec < 0:
        add_error("retry.backoff_base_sec", "必須是大於等於 0 的數值")
    if not _is_number(backoff_cap_sec) or backoff_cap_sec <= 0:
        add_error("retry.backoff_cap_sec", "必須是大於 0 的數值")
    if (
        _is_number(backoff_base_sec)
        and _is_number(backoff_cap_sec)
        and backoff_base_sec > backoff_cap_sec
    ):
        add_error("retry", "backoff_base_sec 不可大於 backoff_cap_sec")

    upload = config.get("upload", {})
    if upload.get("body_format") not in {"json", "multipart"}:
        add_error("upload.body_format", "必須是 json 或 multipart")
    media_type = upload.get("media_type")
    if not isinstance(media_type, str) or not media_type.strip():
        add_error("upload.media_type", "必須是非空字串")
    if not isinstance(upload.get("sanitize_file_names", True), bool):
        add_error("upload.sanitize_file_names", "必須是布林值")

    listing = config.get("listing", {})
    page_size = listing.get("page_size")
    max_pages = listing.get("max_pages")
    if not isinstance(page_size, int) or not (1 <= page_size <= 100):
        add_error("listing.page_size", "必須介於 1 到 100")
    if not isinstance(max_pages, int) or max_pages <= 0:
        add_error("listing.max_pages", "必須是正整數")

    duplicates = config.get("duplicates", {})
    threshold = duplicates.get("perceptual_threshold")
    tolerance_sec = duplicates.get("timestamp_tolerance_sec")
    size_tolerance = duplicates.get("size_tolerance_bytes")
    if not _is_number(threshold) or not (0.0 < threshold <= 1.0):
        add_error("duplicates.perceptual_threshold", "必須介於 0 到 1")
    if not _is_number(tolerance_sec) or tolerance_sec < 0:
        add_error("duplicates.timestamp_tolerance_sec", "必須是大於等於 0 的數值")
    if not isinstance(size_tolerance, int) or size_tolerance < 0:
        add_error("duplicates.size_tolerance_bytes", "必須是大於等於 0 的整數")
    if not isinstance(duplicates.get("enable_metadata_fallback", True), bool):
        add_error("duplicates.enable_metadata_fallback", "必須是布林值")

    hash_config = config.get("hash", {})
    algorithm = hash_config.get("algorithm")
    chunk_size_kb = hash_config.get("chunk_size_kb")
    if not isinstance(algorithm, str) or not algorithm:
        add_error("hash.algorithm", "必須是非空字串")
    if not isinstance(chunk_size_kb, int) or chunk_size_kb <= 0:
        add_error("hash.chunk_size_kb", "必須是正整數")

    phash = config.get("phash", {})
    if phash.get("algorithm") not in {"average", "phash", "dhash"}:
        add_error("phash.algorithm", "必須是 average、phash 或 dhash")
    hash_size = phash.get("hash_size")
    if not isinstance(hash_size, int) or not (4 <= hash_size <= 32):
        add_error("phash.hash_size", "必須介於 4 到 32")

    file_extensions = config.get("file_extensions", {})
    image_exts = file_extensions.get("image", [])
    if not isinstance(image_exts, list) or any(not isinstance(item, str) for item in image_exts):
        add_error("file_extensions.image", "必須是字串清單")

    return errors
