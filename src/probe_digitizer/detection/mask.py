"""Highlight-mask access and per-label row constraints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from probe_digitizer import config
from probe_digitizer.models import RGB

from .profile import band_columns


@runtime_checkable
class MaskSnapshot(Protocol):
    """Read-only RGBA bitmap aligned 1:1 with the source image."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def read_block(self, x0: int, y0: int, x1: int, y1: int) -> NDArray[np.uint8]:
        """Return pixels [y0:y1, x0:x1] as an (y1 - y0) x (x1 - x0) x 4 array."""
        ...


@dataclass(frozen=True)
class ArrayMask:
    """MaskSnapshot backed by an H x W x 4 uint8 array."""

    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"mask must be H x W x 4, got shape {self.pixels.shape}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def read_block(self, x0: int, y0: int, x1: int, y1: int) -> NDArray[np.uint8]:
        return self.pixels[y0:y1, x0:x1]

    def color_at(self, x: int, y: int) -> tuple[int, int, int, int]:
        r, g, b, a = (int(c) for c in self.pixels[y, x])
        return r, g, b, a


def _matching_rows(
    block: NDArray[np.uint8],
    color: RGB,
    tolerance: int,
) -> NDArray[np.bool_]:
    """Rows of `block` holding at least one opaque pixel of `color`."""
    if block.size == 0:
        return np.zeros(block.shape[0], dtype=bool)
    rgb = block[..., :3].astype(np.int16)
    ref = np.asarray(color, dtype=np.int16)
    close = np.all(np.abs(rgb - ref[None, None, :]) <= tolerance, axis=2)
    owned = close & (block[..., 3] > 0)
    return owned.any(axis=1)


def _scan(
    mask: MaskSnapshot,
    color: RGB,
    cols: list[int],
    start_y: int,
    seg_h: int,
    tolerance: int,
) -> NDArray[np.bool_]:
    rows = np.zeros(seg_h, dtype=bool)
    if not cols:
        return rows
    # Columns are contiguous, so read one block.
    block = mask.read_block(cols[0], start_y, cols[-1] + 1, start_y + seg_h)
    hits = _matching_rows(np.asarray(block), color, tolerance)
    rows[: hits.size] = hits[:seg_h]
    return rows


def derive_row_masks(
    mask: MaskSnapshot | None,
    labels: list[str],
    colors: dict[str, RGB],
    px: int,
    band: int,
    start_y: int,
    seg_h: int,
    tolerance: int = config.MASK_COLOR_TOLERANCE,
) -> tuple[dict[str, NDArray[np.bool_] | None], list[str]]:
    """
    Build one boolean row-validity array (length seg_h) per label.

    The band around px is scanned first; a label with no hits there is
    rescanned across the full mask width. A label with no color, no hits
    anywhere, or an unreadable mask maps to None (unconstrained).
    """
    warnings: list[str] = []
    out: dict[str, NDArray[np.bool_] | None] = {label: None for label in labels}
    if mask is None or seg_h <= 0:
        return out, warnings

    narrow = band_columns(int(px), max(0, int(band)), int(mask.width))
    full = list(range(int(mask.width)))

    for label in labels:
        color = colors.get(label)
        if color is None:
            continue
        try:
            rows = _scan(mask, color, narrow, start_y, seg_h, tolerance)
            if not rows.any():
                rows = _scan(mask, color, full, start_y, seg_h, tolerance)
                if rows.any():
                    warnings.append(f"W_MASK_WIDENED:{label}")
        except Exception as exc:
            warnings.append(f"W_MASK_READ_FAILED:{label}:{type(exc).__name__}")
            continue
        if not rows.any():
            warnings.append(f"W_MASK_UNCONSTRAINED:{label}")
            continue
        out[label] = rows

    return out, warnings
