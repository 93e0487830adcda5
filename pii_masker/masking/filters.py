"""Region masking filters.

Each filter mutates a PixelBuffer in place, strictly inside one region:

- GaussianBlurFilter: normalized 2-D Gaussian convolution with clamp-to-edge
  sampling against the whole buffer.
- PixelateFilter: block mosaic sampled from each block's top-left pixel.
- RedactionOverlayFilter: 90% black composite plus a centred "MASKED" label.

Filters reject regions that do not fit the buffer instead of clipping them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import cv2
import numpy as np

from pii_masker.core.buffer import PixelBuffer, Region
from pii_masker.core.config import MaskingConfig

logger = logging.getLogger(__name__)


# ---------------- gaussian blur ----------------
def gaussian_kernel_1d(radius: int) -> np.ndarray:
    """Return the normalized 1-D Gaussian of length 2r+1 with sigma = r/3."""
    if int(radius) != radius or radius < 1:
        raise ValueError(f"blur radius must be an integer >= 1, got {radius!r}")
    radius = int(radius)
    sigma = radius / 3.0
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    row = np.exp(-(offsets ** 2) / (2.0 * sigma ** 2))
    return row / row.sum()


def gaussian_kernel(radius: int) -> np.ndarray:
    """Return the (2r+1, 2r+1) Gaussian kernel, summing to 1.

    exp(-(dx^2 + dy^2) / 2s^2) factors into row * column, so the 2-D kernel is
    the outer product of the 1-D one.
    """
    row = gaussian_kernel_1d(radius)
    return np.outer(row, row)


class GaussianBlurFilter:
    def __init__(self, radius: int = 15):
        self.radius = int(radius)
        self.kernel = gaussian_kernel(self.radius)
        self.row_kernel = gaussian_kernel_1d(self.radius)

    def apply(self, buffer: PixelBuffer, region: Region) -> None:
        region.validate_within(buffer.width, buffer.height)
        r = self.radius
        h, w = region.height, region.width

        # neighbourhood rows/cols with clamp-to-edge against the full buffer
        rows = np.clip(np.arange(region.y - r, region.bottom + r), 0, buffer.height - 1)
        cols = np.clip(np.arange(region.x - r, region.right + r), 0, buffer.width - 1)
        window = buffer.pixels[np.ix_(rows, cols)].astype(np.float64)

        blurred = cv2.sepFilter2D(window, cv2.CV_64F, self.row_kernel, self.row_kernel, borderType=cv2.BORDER_REPLICATE)
        out = blurred[r:r + h, r:r + w]

        buffer.view(region)[...] = np.clip(np.rint(out), 0, 255).astype(np.uint8)


# ---------------- pixelate ----------------
def block_size_for(region: Region, min_block: int = 8) -> int:
    return max(min_block, min(region.width, region.height) // 10)


class PixelateFilter:
    def __init__(self, min_block: int = 8):
        self.min_block = int(min_block)

    def apply(self, buffer: PixelBuffer, region: Region) -> None:
        region.validate_within(buffer.width, buffer.height)
        block = block_size_for(region, self.min_block)
        view = buffer.view(region)
        for by in range(0, region.height, block):
            for bx in range(0, region.width, block):
                # corner sample; no earlier block writes this pixel
                color = view[by, bx, :3].copy()
                cell = view[by:by + block, bx:bx + block]
                cell[..., :3] = color
                cell[..., 3] = 255


# ---------------- black bar ----------------
@dataclass(frozen=True)
class LabelPlacement:
    """Label anchor in buffer coordinates.

    center_x is the horizontal centre of the text, baseline_y the text
    baseline, glyph_size the font size in pixels.
    """

    text: str
    center_x: float
    baseline_y: float
    glyph_size: float


# (canvas, text, center_x, baseline_y, glyph_size); coordinates relative to canvas
LabelRenderer = Callable[[np.ndarray, str, float, float, float], None]

# cap height of a typical sans-serif face as a fraction of its em size
CAP_HEIGHT_RATIO = 0.72


def hershey_label_renderer(canvas: np.ndarray, text: str, center_x: float, baseline_y: float, glyph_size: float) -> None:
    """Draw white anti-aliased text with OpenCV's Hershey simplex font."""
    font = cv2.FONT_HERSHEY_SIMPLEX
    (_, unit_h), _ = cv2.getTextSize(text, font, 1.0, 1)
    scale = max(0.1, glyph_size * CAP_HEIGHT_RATIO / max(1, unit_h))
    thickness = max(1, int(round(scale * 1.5)))
    (text_w, _), _ = cv2.getTextSize(text, font, scale, thickness)
    org = (int(round(center_x - text_w / 2.0)), int(round(baseline_y)))
    # cv2 drawing needs a contiguous array; canvas is usually a strided view
    scratch = np.ascontiguousarray(canvas)
    cv2.putText(scratch, text, org, font, scale, (255, 255, 255, 255), thickness, cv2.LINE_AA)
    canvas[...] = scratch


class RedactionOverlayFilter:
    def __init__(
        self,
        opacity: float = 0.9,
        label_text: str = "MASKED",
        label_min_size: float = 12.0,
        label_height_ratio: float = 0.4,
        label_baseline_ratio: float = 0.6,
        renderer: Optional[LabelRenderer] = None,
    ):
        if not 0.0 <= opacity <= 1.0:
            raise ValueError(f"opacity must be within [0, 1], got {opacity}")
        self.opacity = float(opacity)
        self.label_text = label_text
        self.label_min_size = float(label_min_size)
        self.label_height_ratio = float(label_height_ratio)
        self.label_baseline_ratio = float(label_baseline_ratio)
        self.renderer = renderer if renderer is not None else hershey_label_renderer

    def label_placement(self, region: Region) -> LabelPlacement:
        return LabelPlacement(
            text=self.label_text,
            center_x=region.x + region.width / 2.0,
            baseline_y=region.y + region.height * self.label_baseline_ratio,
            glyph_size=max(self.label_min_size, region.height * self.label_height_ratio),
        )

    def apply(self, buffer: PixelBuffer, region: Region) -> None:
        region.validate_within(buffer.width, buffer.height)
        view = buffer.view(region)
        keep = 1.0 - self.opacity
        src = view.astype(np.float64)
        view[..., :3] = np.floor(src[..., :3] * keep).astype(np.uint8)
        view[..., 3] = np.clip(np.rint(self.opacity * 255.0 + src[..., 3] * keep), 0, 255).astype(np.uint8)

        placement = self.label_placement(region)
        # the label is clipped to the region
        self.renderer(
            view,
            placement.text,
            placement.center_x - region.x,
            placement.baseline_y - region.y,
            placement.glyph_size,
        )


def filters_from_config(config: MaskingConfig, renderer: Optional[LabelRenderer] = None):
    """Build (blur, pixelate, overlay) filters from masking settings."""
    return (
        GaussianBlurFilter(radius=config.blur_radius),
        PixelateFilter(min_block=config.min_pixel_block),
        RedactionOverlayFilter(
            opacity=config.overlay_opacity,
            label_text=config.label_text,
            label_min_size=config.label_min_size,
            label_height_ratio=config.label_height_ratio,
            label_baseline_ratio=config.label_baseline_ratio,
            renderer=renderer,
        ),
    )


__all__ = [
    "gaussian_kernel",
    "block_size_for",
    "GaussianBlurFilter",
    "PixelateFilter",
    "RedactionOverlayFilter",
    "LabelPlacement",
    "LabelRenderer",
    "hershey_label_renderer",
    "filters_from_config",
]
