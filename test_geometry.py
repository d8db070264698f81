"""Tests for the canvas expansion geometry."""

import pytest

from canvas_expander.services.errors import DimensionLimitExceeded, InvalidRatio, NoOpExpansion
from canvas_expander.services.geometry import compute_expansion, parse_aspect_ratio


def test_square_to_widescreen_grows_width():
    geometry = compute_expansion(1000, 1000, "16:9")
    assert (geometry.width, geometry.height) == (1778, 1000)
    assert geometry.offset_x == 389
    assert geometry.offset_y == 0
    assert geometry.origin == (389, 0)


def test_landscape_to_portrait_grows_height():
    geometry = compute_expansion(1200, 800, "4:5")
    assert geometry.width == 1200
    assert geometry.height == 1500
    assert geometry.offset_x == 0
    assert geometry.offset_y == 350


@pytest.mark.parametrize(
    "width,height,ratio",
    [
        (1000, 1000, "16:9"),
        (1000, 1000, "9:16"),
        (640, 480, "1:1"),
        (333, 777, "3:2"),
        (1001, 999, "2:3"),
        (4000, 3000, "5:4"),
        (123, 457, "7.5:2"),
    ],
)
def test_untouched_side_kept_and_offsets_centered(width, height, ratio):
    geometry = compute_expansion(width, height, ratio)
    if geometry.width != width:
        assert geometry.height == height
    else:
        assert geometry.width == width
    assert geometry.offset_x * 2 + width == geometry.width
    assert geometry.offset_y * 2 + height == geometry.height
    left, top, right, bottom = geometry.original_box
    assert 0 <= left and right <= geometry.width
    assert 0 <= top and bottom <= geometry.height


def test_odd_border_gives_fractional_offset_and_floored_origin():
    # 100x100 at 3:2 -> 150 wide, 50 extra px; 101 wide source -> 49 extra.
    geometry = compute_expansion(101, 100, "3:2")
    assert geometry.width == 150
    assert geometry.offset_x == 24.5
    assert geometry.origin == (24, 0)


def test_rounding_is_half_up():
    # 5 * 2.5 = 12.5 must round to 13 like the browser's Math.round.
    geometry = compute_expansion(4, 5, "5:2")
    assert geometry.width == 13


@pytest.mark.parametrize("ratio", ["0:1", "1:0", "-4:3", "a:b", "16", "1:2:3", "", ":", "nan:1", "inf:1"])
def test_invalid_ratios_rejected(ratio):
    with pytest.raises(InvalidRatio) as exc_info:
        compute_expansion(100, 100, ratio)
    assert "Invalid aspect ratio" in str(exc_info.value)


def test_ratio_components_may_have_whitespace_and_decimals():
    assert parse_aspect_ratio(" 16 : 9 ") == (16.0, 9.0)
    assert parse_aspect_ratio("1.5:1") == (1.5, 1.0)


def test_matching_ratio_is_noop():
    with pytest.raises(NoOpExpansion):
        compute_expansion(1920, 1080, "16:9")
    # Within tolerance counts as matching too.
    with pytest.raises(NoOpExpansion):
        compute_expansion(1000, 1000, "1001:1000")


def test_dimension_limit():
    with pytest.raises(DimensionLimitExceeded) as exc_info:
        compute_expansion(4000, 4000, "16:9")
    assert str(exc_info.value) == "Expanded image (7111x4000) would exceed the 5000px limit."


def test_limit_is_configurable():
    geometry = compute_expansion(4000, 4000, "16:9", max_dimension=8000)
    assert geometry.width == 7111
