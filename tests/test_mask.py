import numpy as np
import pytest

from probe_digitizer.detection import ArrayMask, MaskSnapshot, derive_row_masks
from tests.synthetic import blank_mask, paint_mask_rows

RED = (255, 0, 0)
BLUE = (0, 0, 255)


class _BrokenMask:
    width = 200
    height = 120

    def read_block(self, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
        raise OSError("mask layer unavailable")


def test_array_mask_satisfies_protocol() -> None:
    mask = ArrayMask(blank_mask())
    assert isinstance(mask, MaskSnapshot)
    assert (mask.width, mask.height) == (200, 120)


def test_array_mask_color_at_reads_rgba() -> None:
    mask = ArrayMask(paint_mask_rows(blank_mask(), (10, 12), RED, cols=(50, 70), alpha=180))
    assert mask.color_at(60, 11) == (255, 0, 0, 180)
    assert mask.color_at(60, 30) == (0, 0, 0, 0)


def test_array_mask_rejects_rgb() -> None:
    with pytest.raises(ValueError):
        ArrayMask(np.zeros((10, 10, 3), dtype=np.uint8))


def test_rows_constrained_to_painted_band() -> None:
    pixels = paint_mask_rows(blank_mask(), (10, 20), RED, cols=(50, 70))
    rows, warnings = derive_row_masks(ArrayMask(pixels), ["a"], {"a": RED}, 60, 2, 0, 101)
    valid = rows["a"]
    assert valid is not None
    assert np.flatnonzero(valid).tolist() == list(range(10, 21))
    assert warnings == []


def test_span_offset_is_applied() -> None:
    pixels = paint_mask_rows(blank_mask(), (30, 31), RED)
    rows, _ = derive_row_masks(ArrayMask(pixels), ["a"], {"a": RED}, 60, 2, 25, 40)
    assert np.flatnonzero(rows["a"]).tolist() == [5, 6]


def test_color_tolerance_and_alpha() -> None:
    pixels = paint_mask_rows(blank_mask(), (10, 12), (230, 30, 20))
    paint_mask_rows(pixels, (50, 52), RED, alpha=0)
    rows, _ = derive_row_masks(ArrayMask(pixels), ["a"], {"a": RED}, 60, 2, 0, 101)
    assert np.flatnonzero(rows["a"]).tolist() == [10, 11, 12]

    strict, warnings = derive_row_masks(ArrayMask(pixels), ["a"], {"a": RED}, 60, 2, 0, 101, tolerance=10)
    assert strict["a"] is None
    assert "W_MASK_UNCONSTRAINED:a" in warnings


def test_widens_to_full_width_when_band_is_empty() -> None:
    pixels = paint_mask_rows(blank_mask(), (60, 70), BLUE, cols=(150, 160))
    rows, warnings = derive_row_masks(ArrayMask(pixels), ["b"], {"b": BLUE}, 60, 2, 0, 101)
    assert np.flatnonzero(rows["b"]).tolist() == list(range(60, 71))
    assert warnings == ["W_MASK_WIDENED:b"]


def test_unpainted_and_colorless_labels_are_unconstrained() -> None:
    pixels = paint_mask_rows(blank_mask(), (10, 20), RED)
    rows, warnings = derive_row_masks(
        ArrayMask(pixels), ["a", "b", "c"], {"a": RED, "b": BLUE}, 60, 2, 0, 101
    )
    assert rows["a"] is not None
    assert rows["b"] is None
    assert rows["c"] is None
    assert warnings == ["W_MASK_UNCONSTRAINED:b"]


def test_unreadable_mask_degrades_to_unconstrained() -> None:
    rows, warnings = derive_row_masks(_BrokenMask(), ["a"], {"a": RED}, 60, 2, 0, 101)
    assert rows == {"a": None}
    assert warnings == ["W_MASK_READ_FAILED:a:OSError"]


def test_no_mask_means_no_constraints() -> None:
    rows, warnings = derive_row_masks(None, ["a", "b"], {"a": RED}, 60, 2, 0, 101)
    assert rows == {"a": None, "b": None}
    assert warnings == []
