"""Stand-in PII region detector.

RegionSynthesizer fabricates plausible face and text regions so the masking
flow can be exercised end to end without a face/OCR model. A real detector
replaces it by implementing `RegionDetector` with the same
``(width, height, rng) -> (regions, summary)`` contract.
"""

from __future__ import annotations

import logging
import math
import random
from typing import List, Protocol, Tuple

from pii_masker.core.buffer import DetectionSummary, Region, RegionCategory

logger = logging.getLogger(__name__)

# Placement fractions of image size. Sizes are (base, random extra).
FACE_COUNT_RANGE = (1, 3)
FACE_X_MAX = 0.6
FACE_Y_MAX = 0.4
FACE_WIDTH = (0.15, 0.1)
FACE_HEIGHT = (0.2, 0.1)

TEXT_COUNT_RANGE = (0, 4)
TEXT_X_MAX = 0.7
TEXT_Y_MAX = 0.8
TEXT_WIDTH = (0.2, 0.3)
TEXT_HEIGHT = (0.03, 0.04)

# cumulative thresholds for the category draw of a text-type region
TEXT_REGION_CUTOFF = 0.4
ID_NUMBER_CUTOFF = 0.7


class RegionDetector(Protocol):
    def detect(self, width: int, height: int, rng: random.Random) -> Tuple[List[Region], DetectionSummary]:
        ...


class RegionSynthesizer:
    def detect(self, width: int, height: int, rng: random.Random) -> Tuple[List[Region], DetectionSummary]:
        return self.synthesize(width, height, rng)

    def synthesize(self, width: int, height: int, rng: random.Random) -> Tuple[List[Region], DetectionSummary]:
        """Generate faces first, then text-type regions, in draw order.

        Degenerate dimensions yield no regions and leave `rng` untouched.
        """
        summary = DetectionSummary()
        regions: List[Region] = []
        if width <= 0 or height <= 0:
            logger.debug("Skipping region synthesis for degenerate image %sx%s", width, height)
            return regions, summary

        face_count = rng.randint(*FACE_COUNT_RANGE)
        for _ in range(face_count):
            x = rng.uniform(0, width * FACE_X_MAX)
            y = rng.uniform(0, height * FACE_Y_MAX)
            w = width * (FACE_WIDTH[0] + rng.uniform(0, FACE_WIDTH[1]))
            h = height * (FACE_HEIGHT[0] + rng.uniform(0, FACE_HEIGHT[1]))
            region = _clamped(x, y, w, h, width, height, RegionCategory.FACE)
            regions.append(region)
            summary.record(region.category)

        text_count = rng.randint(*TEXT_COUNT_RANGE)
        for _ in range(text_count):
            x = rng.uniform(0, width * TEXT_X_MAX)
            y = rng.uniform(0, height * TEXT_Y_MAX)
            w = width * (TEXT_WIDTH[0] + rng.uniform(0, TEXT_WIDTH[1]))
            h = height * (TEXT_HEIGHT[0] + rng.uniform(0, TEXT_HEIGHT[1]))
            t = rng.uniform(0, 1)
            if t < TEXT_REGION_CUTOFF:
                category = RegionCategory.TEXT_REGION
            elif t < ID_NUMBER_CUTOFF:
                category = RegionCategory.ID_NUMBER
            else:
                category = RegionCategory.ADDRESS
            region = _clamped(x, y, w, h, width, height, category)
            regions.append(region)
            summary.record(region.category)

        logger.debug("Synthesized %d regions for %dx%d image: %s", len(regions), width, height, summary.to_dict())
        return regions, summary


def _clamped(x: float, y: float, w: float, h: float, width: int, height: int, category: RegionCategory) -> Region:
    # x < width and y < height always hold for the fractions above, so at
    # least one pixel remains on each axis.
    ix = min(int(math.floor(x)), width - 1)
    iy = min(int(math.floor(y)), height - 1)
    iw = max(1, min(int(math.floor(w)), width - ix))
    ih = max(1, min(int(math.floor(h)), height - iy))
    return Region(x=ix, y=iy, width=iw, height=ih, category=category)


__all__ = ["RegionDetector", "RegionSynthesizer"]
