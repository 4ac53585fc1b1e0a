"""活動照片上傳管線。"""

__version__ = "0.3.0"
