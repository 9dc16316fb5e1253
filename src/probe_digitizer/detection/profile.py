"""Vertical brightness profile along a probe column."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from probe_digitizer import config
from probe_digitizer.utils.cv_utils import Image


@dataclass(frozen=True)
class BrightnessProfile:
    start_y: int
    profile: NDArray[np.float64]  # mean luma per span row, length seg_h
    diff: NDArray[np.float64]  # |profile[y+1] - profile[y]|, length seg_h - 1
    columns: tuple[int, ...]  # image columns actually sampled
    warning_codes: tuple[str, ...] = ()

    @property
    def seg_h(self) -> int:
        return int(self.profile.size)

    @property
    def max_diff(self) -> float:
        return float(self.diff.max()) if self.diff.size else 0.0


def band_columns(px: int, band: int, width: int) -> list[int]:
    return [px + dx for dx in range(-band, band + 1) if 0 <= px + dx < width]


def luma(pixels: NDArray) -> NDArray[np.float64]:
    """Per-pixel 0.299R + 0.587G + 0.114B for an RGB(A) or grayscale block."""
    arr = np.asarray(pixels, dtype=np.float64)
    if arr.ndim == 2:
        return arr
    weights = np.asarray(config.LUMA_WEIGHTS, dtype=np.float64)
    return arr[..., :3] @ weights


def build_profile(
    image: Image,
    px: int,
    start_y: int,
    end_y: int,
    band: int,
) -> BrightnessProfile | None:
    """
    Average luma across columns [px - band, px + band] for rows start_y..end_y.

    Columns outside the image are skipped and the average is taken over the
    columns that were sampled. Returns None for an empty span.
    """
    seg_h = int(end_y) - int(start_y) + 1
    if seg_h <= 0:
        return None

    width = int(image.shape[1])
    cols = band_columns(int(px), max(0, int(band)), width)
    warnings: list[str] = []

    if cols:
        block = image[start_y : end_y + 1, cols]
        profile = luma(block).sum(axis=1) / float(len(cols))
    else:
        profile = np.zeros(seg_h, dtype=np.float64)
        warnings.append(f"W_PROFILE_NO_COLUMNS:{px}")

    diff = np.abs(np.diff(profile))
    return BrightnessProfile(
        start_y=int(start_y),
        profile=profile.astype(np.float64),
        diff=diff.astype(np.float64),
        columns=tuple(cols),
        warning_codes=tuple(warnings),
    )
