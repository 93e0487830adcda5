"""Value types shared by the detector, the filters and the pipeline.

PixelBuffer wraps a row-major RGBA8 numpy array of shape (height, width, 4).
Regions are immutable integer rectangles tagged with a PII category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

import numpy as np

from pii_masker.core.errors import InvalidRegionError


@dataclass
class PixelBuffer:
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"PixelBuffer dimensions must be positive, got {self.width}x{self.height}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"PixelBuffer pixels must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"PixelBuffer pixels must have shape {(self.height, self.width, 4)}, got {self.pixels.shape}"
            )

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "PixelBuffer":
        h, w = pixels.shape[:2]
        return cls(width=int(w), height=int(h), pixels=np.ascontiguousarray(pixels))

    @classmethod
    def filled(cls, width: int, height: int, rgba=(255, 255, 255, 255)) -> "PixelBuffer":
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = np.asarray(rgba, dtype=np.uint8)
        return cls(width=width, height=height, pixels=pixels)

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(width=self.width, height=self.height, pixels=self.pixels.copy())

    def view(self, region: "Region") -> np.ndarray:
        """Return a writable view of the pixels covered by `region`."""
        return self.pixels[region.y:region.bottom, region.x:region.right]


class RegionCategory(str, Enum):
    FACE = "face"
    TEXT_REGION = "text_region"
    ID_NUMBER = "id_number"
    ADDRESS = "address"


class MaskingStyle(str, Enum):
    BLACK_BAR = "blackbar"
    BLUR = "blur"
    PIXELATE = "pixelate"

    @classmethod
    def parse(cls, value: Optional[str]) -> "MaskingStyle":
        """Map a wire value to a style. Empty input selects the black bar."""
        if value is None:
            return cls.BLACK_BAR
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if not key:
            return cls.BLACK_BAR
        for style in cls:
            if style.value == key:
                return style
        allowed = ", ".join(s.value for s in cls)
        raise ValueError(f"Unknown masking style {value!r}; expected one of {allowed}")


@dataclass(frozen=True)
class Region:
    x: int
    y: int
    width: int
    height: int
    category: RegionCategory

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def validate_within(self, width: int, height: int) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidRegionError(f"Region {self} has no area")
        if self.x < 0 or self.y < 0 or self.right > width or self.bottom > height:
            raise InvalidRegionError(f"Region {self} exceeds buffer bounds {width}x{height}")

    def to_dict(self) -> Dict[str, object]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "category": self.category.value,
        }


@dataclass
class DetectionSummary:
    faces: int = 0
    text_regions: int = 0
    id_numbers: int = 0
    addresses: int = 0

    @property
    def total(self) -> int:
        return self.faces + self.text_regions + self.id_numbers + self.addresses

    def record(self, category: RegionCategory) -> None:
        if category is RegionCategory.FACE:
            self.faces += 1
        elif category is RegionCategory.TEXT_REGION:
            self.text_regions += 1
        elif category is RegionCategory.ID_NUMBER:
            self.id_numbers += 1
        elif category is RegionCategory.ADDRESS:
            self.addresses += 1
        else:
            raise ValueError(f"Unknown region category: {category!r}")

    @classmethod
    def from_regions(cls, regions: Iterable[Region]) -> "DetectionSummary":
        summary = cls()
        for r in regions:
            summary.record(r.category)
        return summary

    def to_dict(self) -> Dict[str, int]:
        return {
            "faces": self.faces,
            "textRegions": self.text_regions,
            "idNumbers": self.id_numbers,
            "addresses": self.addresses,
        }


@dataclass
class MaskResult:
    buffer: PixelBuffer
    summary: DetectionSummary
    style: MaskingStyle
    regions: List[Region] = field(default_factory=list)
    image_bytes: bytes = b""
    image_format: str = "PNG"

    def to_report(self) -> Dict[str, object]:
        """Metadata-only report, safe to log or serialize (no pixel data)."""
        return {
            "width": self.buffer.width,
            "height": self.buffer.height,
            "style": self.style.value,
            "detectedPII": self.summary.to_dict(),
            "totalDetected": self.summary.total,
            "regions": [r.to_dict() for r in self.regions],
            "format": self.image_format,
            "bytes": len(self.image_bytes),
        }


__all__ = [
    "PixelBuffer",
    "Region",
    "RegionCategory",
    "MaskingStyle",
    "DetectionSummary",
    "MaskResult",
]
