import numpy as np
import pytest

from pii_masker.core.buffer import MaskingStyle, Region, RegionCategory
from pii_masker.core.config import MaskingConfig
from pii_masker.core.errors import InvalidRegionError
from pii_masker.masking.engine import MaskingEngine
from pii_masker.masking.filters import GaussianBlurFilter, PixelateFilter, RedactionOverlayFilter


class RecordingFilter:
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def apply(self, buffer, region):
        self.log.append((self.name, region))


def make_engine():
    log = []
    engine = MaskingEngine(
        blur=RecordingFilter("blur", log),
        pixelate=RecordingFilter("pixelate", log),
        overlay=RecordingFilter("blackbar", log),
    )
    return engine, log


REGIONS = [
    Region(0, 0, 10, 10, RegionCategory.FACE),
    Region(5, 5, 10, 10, RegionCategory.ID_NUMBER),
    Region(2, 30, 20, 4, RegionCategory.ADDRESS),
]


@pytest.mark.parametrize(
    "style,name",
    [
        (MaskingStyle.BLUR, "blur"),
        (MaskingStyle.PIXELATE, "pixelate"),
        (MaskingStyle.BLACK_BAR, "blackbar"),
        (None, "blackbar"),
    ],
)
def test_dispatch_by_style_in_region_order(make_buffer, style, name):
    engine, log = make_engine()
    count = engine.mask_all(make_buffer(50, 50), REGIONS, style)
    assert count == 3
    assert log == [(name, r) for r in REGIONS]


def test_empty_region_list_is_noop(make_buffer):
    buf = make_buffer(20, 20)
    before = buf.copy()
    assert MaskingEngine().mask_all(buf, [], MaskingStyle.BLUR) == 0
    assert np.array_equal(buf.pixels, before.pixels)


def test_invalid_region_rejected_before_any_pixel_changes(make_buffer):
    buf = make_buffer(20, 20)
    before = buf.copy()
    regions = [Region(0, 0, 5, 5, RegionCategory.FACE), Region(18, 0, 5, 5, RegionCategory.ADDRESS)]
    with pytest.raises(InvalidRegionError):
        MaskingEngine().mask_all(buf, regions, MaskingStyle.BLACK_BAR)
    assert np.array_equal(buf.pixels, before.pixels)


@pytest.mark.parametrize(
    "bad",
    [
        Region(-1, 0, 5, 5, RegionCategory.FACE),
        Region(0, -2, 5, 5, RegionCategory.FACE),
        Region(0, 0, 0, 5, RegionCategory.FACE),
        Region(0, 0, 5, 21, RegionCategory.FACE),
    ],
)
def test_bounds_violations_raise(make_buffer, bad):
    with pytest.raises(InvalidRegionError):
        MaskingEngine().mask_all(make_buffer(20, 20), [bad], MaskingStyle.PIXELATE)


def test_later_region_overwrites_earlier_on_overlap(make_buffer):
    first = Region(0, 0, 8, 8, RegionCategory.FACE)
    second = Region(4, 4, 8, 8, RegionCategory.TEXT_REGION)
    red = np.array([250, 0, 0], dtype=np.uint8)

    def run(order):
        buf = make_buffer(20, 20, (200, 200, 200, 255))
        buf.pixels[0, 0, :3] = red
        MaskingEngine().mask_all(buf, order, MaskingStyle.PIXELATE)
        return buf.pixels

    # first region paints red; the second then samples red at its corner
    forward = run([first, second])
    assert np.all(forward[4:12, 4:12, :3] == red)

    # reversed, the second samples grey and the first repaints only its own area
    backward = run([second, first])
    assert np.all(backward[0:8, 0:8, :3] == red)
    assert np.all(backward[8:12, 8:12, :3] == 200)


def test_from_config_builds_configured_filters():
    cfg = MaskingConfig(blur_radius=4, min_pixel_block=12, overlay_opacity=0.5, label_text="REDACTED")
    engine = MaskingEngine.from_config(cfg)
    assert isinstance(engine.blur, GaussianBlurFilter) and engine.blur.radius == 4
    assert isinstance(engine.pixelate, PixelateFilter) and engine.pixelate.min_block == 12
    assert isinstance(engine.overlay, RedactionOverlayFilter)
    assert engine.overlay.opacity == 0.5
    assert engine.overlay.label_text == "REDACTED"


@pytest.mark.parametrize(
    "style,name",
    [("blur", "blur"), ("PIXELATE", "pixelate"), (" blackbar ", "blackbar"), ("", "blackbar")],
)
def test_wire_style_strings_dispatch_like_enum_members(make_buffer, style, name):
    engine, log = make_engine()
    assert engine.mask_all(make_buffer(50, 50), REGIONS, style) == 3
    assert log == [(name, r) for r in REGIONS]


def test_string_style_applies_same_filter_as_enum(noisy_buffer):
    region = Region(5, 5, 20, 20, RegionCategory.FACE)
    by_name = noisy_buffer.copy()
    by_member = noisy_buffer.copy()
    MaskingEngine().mask_all(by_name, [region], "blur")
    MaskingEngine().mask_all(by_member, [region], MaskingStyle.BLUR)
    assert np.array_equal(by_name.pixels, by_member.pixels)


def test_unknown_style_string_rejected_before_any_pixel_changes(make_buffer):
    buf = make_buffer(20, 20)
    before = buf.copy()
    with pytest.raises(ValueError):
        MaskingEngine().mask_all(buf, [Region(0, 0, 5, 5, RegionCategory.FACE)], "sepia")
    assert np.array_equal(buf.pixels, before.pixels)
