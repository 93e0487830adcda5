"""Dispatch masking styles over an ordered list of regions."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from pii_masker.core.buffer import MaskingStyle, PixelBuffer, Region
from pii_masker.core.config import MaskingConfig
from pii_masker.masking.filters import (
    GaussianBlurFilter,
    LabelRenderer,
    PixelateFilter,
    RedactionOverlayFilter,
    filters_from_config,
)
from pii_masker.utils.observability import MASKED_REGIONS

logger = logging.getLogger(__name__)


class MaskingEngine:
    def __init__(
        self,
        blur: Optional[GaussianBlurFilter] = None,
        pixelate: Optional[PixelateFilter] = None,
        overlay: Optional[RedactionOverlayFilter] = None,
    ):
        self.blur = blur or GaussianBlurFilter()
        self.pixelate = pixelate or PixelateFilter()
        self.overlay = overlay or RedactionOverlayFilter()

    @classmethod
    def from_config(cls, config: MaskingConfig, renderer: Optional[LabelRenderer] = None) -> "MaskingEngine":
        blur, pixelate, overlay = filters_from_config(config, renderer=renderer)
        return cls(blur=blur, pixelate=pixelate, overlay=overlay)

    def filter_for(self, style: Optional[MaskingStyle]):
        style = MaskingStyle.parse(style)
        if style is MaskingStyle.BLUR:
            return self.blur
        if style is MaskingStyle.PIXELATE:
            return self.pixelate
        return self.overlay

    def mask_all(self, buffer: PixelBuffer, regions: Sequence[Region], style: Optional[MaskingStyle]) -> int:
        """Mask `regions` in order; later regions win where they overlap.

        Every region is bounds-checked before any pixel changes, so an
        InvalidRegionError leaves the buffer untouched.
        """
        style = MaskingStyle.parse(style)
        for region in regions:
            region.validate_within(buffer.width, buffer.height)

        flt = self.filter_for(style)
        for region in regions:
            flt.apply(buffer, region)
            MASKED_REGIONS.labels(category=region.category.value, style=style.value).inc()

        logger.debug("Applied %s to %d regions", style.value, len(regions))
        return len(regions)


__all__ = ["MaskingEngine"]
