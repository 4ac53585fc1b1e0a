"""媒體項目的指紋。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Fingerprint:
    exact_hash: str
    perceptual_hash: Optional[str] = None
