"""Hash calculation helpers."""

from __future__ import annotations

import hashlib
import io
import time
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Optional, Union

from .cancel import CancelledError, CancellationToken

HashSource = Union[bytes, bytearray, memoryview, Path, BinaryIO]


def _open_source(source: HashSource) -> tuple[BinaryIO, int, bool]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(source), len(source), True
    if isinstance(source, Path):
        handle = source.open("rb")
        try:
            total = source.stat().st_size
        except OSError:
            total = 0
        return handle, total, True
    return source, 0, False


def compute_hashes(
    source: HashSource,
    algorithms: Iterable[str],
    chunk_size_kb: int = 1024,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_token: Optional[CancellationToken] = None,
    bytes_update_threshold: int = 1048576,
    report_interval_sec: float = 0.1,
    logger=None,
) -> dict[str, str]:
    hashers: dict[str, "hashlib._Hash"] = {}
    for algo in algorithms:
        try:
            hashers[algo] = hashlib.new(algo)
        except ValueError:
            if logger is not None:
                logger.warning(f"不支援的 hash 演算法: {algo}")

    if not hashers:
        return {}

    bytes_read = 0
    last_reported = 0
    last_report_time = time.time()

    try:
        handle, total_size, owns_handle = _open_source(source)
    except OSError as exc:
        if logger is not None:
            logger.warning(f"無法開啟資料來源: {source} ({exc})")
        return {}

    try:
        while True:
            if cancel_token is not None and cancel_token.is_cancelled():
                raise CancelledError("已取消 hash 計算")
            chunk = handle.read(chunk_size_kb * 1024)
            if not chunk:
                break
            bytes_read += len(chunk)
            for hasher in hashers.values():
                hasher.update(chunk)

            if progress_callback is not None:
                now = time.time()
                should_report = (bytes_read - last_reported) >= bytes_update_threshold
                if not should_report and (now - last_report_time) >= report_interval_sec:
                    should_report = True
                if should_report:
                    progress_callback(bytes_read, total_size)
                    last_reported = bytes_read
                    last_report_time = now

        if progress_callback is not None and bytes_read != last_reported:
            progress_callback(bytes_read, total_size)
    except OSError as exc:
        if logger is not None:
            logger.warning(f"無法計算 hash: {source} ({exc})")
        return {}
    finally:
        if owns_handle:
            handle.close()

    return {algo: hasher.hexdigest() for algo, hasher in hashers.items()}


def hamming_distance(hex_a: str, hex_b: str) -> int:
    """兩個等長十六進位字串的位元差異數。"""
    if len(hex_a) != len(hex_b):
        raise ValueError(f"hash 長度不一致: {len(hex_a)} != {len(hex_b)}")
    return bin(int(hex_a, 16) ^ int(hex_b, 16)).count("1")


def hash_similarity(hex_a: Optional[str], hex_b: Optional[str]) -> float:
    """1 - 正規化 Hamming 距離；任一方缺值、長度不同或非十六進位時回傳 0.0。"""
    if not hex_a or not hex_b:
        return 0.0
    a = hex_a.strip().lower()
    b = hex_b.strip().lower()
    if len(a) != len(b):
        return 0.0
    try:
        distance = hamming_distance(a, b)
    except ValueError:
        return 0.0
    return 1.0 - distance / (len(a) * 4)
