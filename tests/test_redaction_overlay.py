import numpy as np
import pytest

from pii_masker.core.buffer import MaskingStyle, Region, RegionCategory
from pii_masker.masking.engine import MaskingEngine
from pii_masker.masking.filters import RedactionOverlayFilter


def no_label(canvas, text, center_x, baseline_y, glyph_size):
    return None


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def __call__(self, canvas, text, center_x, baseline_y, glyph_size):
        self.calls.append((canvas.shape, text, center_x, baseline_y, glyph_size))


def face(x, y, w, h):
    return Region(x=x, y=y, width=w, height=h, category=RegionCategory.FACE)


def test_region_darkened_to_ten_percent(noisy_buffer):
    before = noisy_buffer.copy()
    r = face(5, 5, 30, 20)
    RedactionOverlayFilter(renderer=no_label).apply(noisy_buffer, r)

    after_rgb = noisy_buffer.view(r)[..., :3].astype(np.float64)
    before_rgb = before.view(r)[..., :3].astype(np.float64)
    assert np.all(after_rgb <= before_rgb * 0.1 + 1e-9)


def test_white_region_becomes_near_black_and_opaque(make_buffer):
    buf = make_buffer(40, 40)
    r = face(10, 10, 20, 20)
    RedactionOverlayFilter(renderer=no_label).apply(buf, r)
    assert np.all(buf.view(r)[..., :3] <= 25)
    assert np.all(buf.view(r)[..., 3] == 255)


def test_translucent_pixels_gain_opacity(make_buffer):
    buf = make_buffer(10, 10, (255, 255, 255, 0))
    RedactionOverlayFilter(renderer=no_label).apply(buf, face(0, 0, 10, 10))
    # 0.9 * 255 over a fully transparent pixel
    assert np.all(np.abs(buf.pixels[..., 3].astype(int) - 230) <= 1)


@pytest.mark.parametrize(
    "region,expected",
    [
        (face(10, 10, 20, 20), (20.0, 22.0, 12.0)),
        (face(0, 50, 80, 100), (40.0, 110.0, 40.0)),
        (face(3, 0, 7, 31), (6.5, 18.6, 12.4)),
    ],
)
def test_label_placement(region, expected):
    placement = RedactionOverlayFilter().label_placement(region)
    assert placement.text == "MASKED"
    assert placement.center_x == pytest.approx(expected[0])
    assert placement.baseline_y == pytest.approx(expected[1])
    assert placement.glyph_size == pytest.approx(expected[2])


def test_renderer_receives_region_relative_coordinates(make_buffer):
    renderer = RecordingRenderer()
    buf = make_buffer(100, 100)
    RedactionOverlayFilter(renderer=renderer).apply(buf, face(10, 10, 20, 20))
    assert len(renderer.calls) == 1
    shape, text, cx, by, size = renderer.calls[0]
    assert shape == (20, 20, 4)
    assert text == "MASKED"
    assert (cx, by, size) == pytest.approx((10.0, 12.0, 12.0))


def test_scenario_a_black_bar_with_default_label(make_buffer):
    buf = make_buffer(100, 100)
    r = face(10, 10, 20, 20)
    MaskingEngine().mask_all(buf, [r], MaskingStyle.BLACK_BAR)

    outside = np.ones((100, 100), dtype=bool)
    outside[10:30, 10:30] = False
    assert np.all(buf.pixels[outside] == 255)

    inside = buf.view(r)[..., :3]
    dark = np.all(inside <= 25, axis=-1)
    # the label covers only part of the bar
    assert dark.mean() > 0.5
    # rows above the cap height and below the baseline carry no glyph
    assert np.all(dark[0, :])
    assert np.all(dark[16:, :])


def test_invalid_opacity_rejected():
    with pytest.raises(ValueError):
        RedactionOverlayFilter(opacity=1.5)
