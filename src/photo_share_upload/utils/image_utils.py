"""影像資訊讀取工具。"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Tuple, Union

import imagehash
import piexif
from PIL import Image

ImageSource = Union[Path, bytes]

_HASH_FUNCTIONS = {
    "average": imagehash.average_hash,
    "phash": imagehash.phash,
    "dhash": imagehash.dhash,
}


def _register_heif_opener() -> None:
    try:
        from pillow_heif import register_heif_opener

        register_heif_opener()
    except ImportError:
        return


def _open(source: ImageSource) -> Image.Image:
    _register_heif_opener()
    if isinstance(source, (bytes, bytearray)):
        return Image.open(io.BytesIO(source))
    return Image.open(source)


def _describe(source: ImageSource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return str(source)


def get_image_resolution(source: ImageSource, logger=None) -> Optional[Tuple[int, int]]:
    try:
        with _open(source) as image:
            return image.size
    except Exception as exc:
        if logger is not None:
            logger.warning(f"無法讀取解析度: {_describe(source)} ({exc})")
        return None


def _load_exif(source: ImageSource, logger=None) -> Optional[dict]:
    try:
        with _open(source) as image:
            exif_bytes = image.info.get("exif")
        if not exif_bytes:
            return None
        return piexif.load(exif_bytes)
    except Exception as exc:
        if logger is not None:
            logger.warning(f"無法讀取 EXIF: {_describe(source)} ({exc})")
        return None


def get_exif_datetime_original(source: ImageSource, logger=None) -> Optional[str]:
    exif_dict = _load_exif(source, logger)
    if not exif_dict:
        return None
    value = exif_dict.get("Exif", {}).get(piexif.ExifIFD.DateTimeOriginal)
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


def _rational_to_float(value) -> float:
    numerator, denominator = value
    if not denominator:
        return 0.0
    return numerator / denominator


def _dms_to_degrees(dms, ref: bytes | str) -> float:
    degrees = _rational_to_float(dms[0])
    minutes = _rational_to_float(dms[1])
    seconds = _rational_to_float(dms[2])
    result = degrees + minutes / 60.0 + seconds / 3600.0
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref in {"S", "W"}:
        result = -result
    return result


def get_gps_location(source: ImageSource, logger=None) -> Optional[Tuple[float, float]]:
    exif_dict = _load_exif(source, logger)
    if not exif_dict:
        return None
    gps = exif_dict.get("GPS") or {}
    try:
        latitude = gps[piexif.GPSIFD.GPSLatitude]
        longitude = gps[piexif.GPSIFD.GPSLongitude]
        lat_ref = gps.get(piexif.GPSIFD.GPSLatitudeRef, b"N")
        lon_ref = gps.get(piexif.GPSIFD.GPSLongitudeRef, b"E")
        return _dms_to_degrees(latitude, lat_ref), _dms_to_degrees(longitude, lon_ref)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        if gps and logger is not None:
            logger.warning(f"無法解析 GPS 資訊: {_describe(source)} ({exc})")
        return None


def compute_perceptual_hash(
    source: ImageSource,
    algorithm: str = "average",
    hash_size: int = 8,
    logger=None,
) -> Optional[str]:
    hash_func = _HASH_FUNCTIONS.get(algorithm)
    if hash_func is None:
        raise ValueError(f"不支援的感知 hash 演算法: {algorithm}")
    try:
        with _open(source) as image:
            return str(hash_func(image, hash_size=hash_size))
    except Exception as exc:
        if logger is not None:
            logger.warning(f"無法計算感知 hash: {_describe(source)} ({exc})")
        return None
