"""Per-label row selection over the derivative signal."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.signal import find_peaks

from probe_digitizer import config

TIER_THRESHOLD_PEAK = "threshold_peak"
TIER_ANY_PEAK = "any_peak"
TIER_STRONGEST = "strongest"
TIER_MASK_TARGET = "mask_target"
TIER_MASK_TARGET_CROWDED = "mask_target_crowded"
TIER_TARGET = "target"
TIER_ANY_ROW = "any_row"
TIER_MIDPOINT = "midpoint"
TIER_SORTED = "sorted"


@dataclass(frozen=True)
class PickResult:
    rows: tuple[int | None, ...]  # segment-space rows, in label order
    tiers: tuple[str, ...]
    threshold: float
    warning_codes: tuple[str, ...] = ()


def detection_threshold(max_diff: float, sensitivity: float) -> float:
    """Higher sensitivity lowers the threshold."""
    s = min(1.0, max(0.0, float(sensitivity)))
    return float(max_diff) * (config.THRESHOLD_BASE + config.THRESHOLD_RANGE * (1.0 - s))


def local_maxima(diff: NDArray[np.float64]) -> NDArray[np.intp]:
    """Interior peaks of diff; a flat top counts once at its middle row."""
    if diff.size < 3:
        return np.zeros(0, dtype=np.intp)
    peaks, _ = find_peaks(diff)
    return peaks.astype(np.intp)


def _by_strength(rows: Iterable[int], diff: NDArray[np.float64]) -> list[int]:
    return sorted((int(r) for r in rows), key=lambda r: (-float(diff[r]), r))


def _by_distance(rows: Iterable[int], target: int) -> list[int]:
    return sorted((int(r) for r in rows), key=lambda r: (abs(r - target), r))


def _is_valid(row: int, valid: NDArray[np.bool_] | None) -> bool:
    if valid is None:
        return True
    return 0 <= row < valid.size and bool(valid[row])


def _is_separated(row: int, chosen: Sequence[int], min_separation: int) -> bool:
    return all(abs(row - c) >= min_separation for c in chosen)


def _first_usable(
    ordered: Iterable[int],
    valid: NDArray[np.bool_] | None,
    chosen: Sequence[int],
    min_separation: int,
) -> int | None:
    for row in ordered:
        if _is_valid(row, valid) and _is_separated(row, chosen, min_separation):
            return row
    return None


def pick_rows(
    diff: NDArray[np.float64],
    labels: Sequence[str],
    sensitivity: float,
    row_masks: dict[str, NDArray[np.bool_] | None] | None = None,
    min_separation: int = config.MIN_VERTICAL_SEPARATION,
    seg_h: int | None = None,
) -> PickResult:
    """
    Choose one segment row per label, earlier labels picking first.

    Each label walks a strict fallback chain; a tier only runs when the
    previous one produced no mask-valid row at least `min_separation` rows
    away from every row already chosen:

    1. thresholded local maxima, strongest first
    2. any local maximum, strongest first
    3. any row with a non-zero derivative, strongest first
    4. (masked labels) valid row nearest the label's evenly spaced target,
       dropping the separation requirement only if nothing separated exists
    5. row nearest the target, mask ignored
    6. any row not yet chosen, else the segment midpoint
    """
    diff = np.asarray(diff, dtype=np.float64)
    if seg_h is None:
        seg_h = int(diff.size) + 1
    row_masks = row_masks or {}
    n_labels = len(labels)

    max_diff = float(diff.max()) if diff.size else 0.0
    threshold = detection_threshold(max_diff, sensitivity)

    peaks = local_maxima(diff)
    strong_peaks = _by_strength((p for p in peaks if diff[p] >= threshold), diff)
    all_peaks = _by_strength(peaks, diff)
    strongest = _by_strength(np.flatnonzero(diff > 0.0), diff)
    all_rows = range(max(0, seg_h))

    chosen: list[int] = []
    tiers: list[str] = []
    warnings: list[str] = []

    for idx, label in enumerate(labels):
        valid = row_masks.get(label)
        # round half up
        target = int(np.floor((idx + 0.5) * seg_h / max(1, n_labels) + 0.5))

        row: int | None = None
        tier = ""
        for tier_name, ordered in (
            (TIER_THRESHOLD_PEAK, strong_peaks),
            (TIER_ANY_PEAK, all_peaks),
            (TIER_STRONGEST, strongest),
        ):
            row = _first_usable(ordered, valid, chosen, min_separation)
            if row is not None:
                tier = tier_name
                break

        if row is None and valid is not None:
            near = _by_distance((r for r in all_rows if _is_valid(r, valid)), target)
            row = _first_usable(near, None, chosen, min_separation)
            tier = TIER_MASK_TARGET
            if row is None and near:
                row = near[0]
                tier = TIER_MASK_TARGET_CROWDED
                warnings.append(f"W_SEPARATION_RELAXED:{label}")

        if row is None:
            row = _first_usable(_by_distance(all_rows, target), None, chosen, min_separation)
            tier = TIER_TARGET

        if row is None:
            remaining = _by_distance((r for r in all_rows if r not in chosen), target)
            if remaining:
                row = remaining[0]
                tier = TIER_ANY_ROW
            else:
                row = seg_h // 2
                tier = TIER_MIDPOINT
                warnings.append(f"W_FALLBACK_MIDPOINT:{label}")

        chosen.append(row)
        tiers.append(tier)
        warnings.append(f"I_TIER:{label}:{tier}")

    return PickResult(
        rows=tuple(chosen),
        tiers=tuple(tiers),
        threshold=threshold,
        warning_codes=tuple(warnings),
    )


def refine_to_stroke_center(
    profile: NDArray[np.float64],
    row: int,
    radius: int = config.STROKE_REFINE_RADIUS,
) -> int:
    """Move a coarse edge row to the darkest profile row within `radius`."""
    if profile.size == 0:
        return int(row)
    lo = max(0, int(row) - radius)
    hi = min(int(profile.size) - 1, int(row) + radius)
    if hi < lo:
        return int(row)
    return lo + int(np.argmin(profile[lo : hi + 1]))


def pick_rows_sorted(
    diff: NDArray[np.float64],
    profile: NDArray[np.float64],
    label_count: int,
    sensitivity: float,
) -> PickResult:
    """
    Single-pass variant: gather peaks, snap each to its stroke center, and
    assign top to bottom. Labels past the last candidate stay empty.
    """
    diff = np.asarray(diff, dtype=np.float64)
    max_diff = float(diff.max()) if diff.size else 0.0
    threshold = detection_threshold(max_diff, sensitivity)

    peaks_arr = local_maxima(diff)
    picks: list[int] = [int(p) for p in peaks_arr if diff[p] >= threshold]

    if len(picks) < label_count:
        picks.extend(int(p) for p in peaks_arr if int(p) not in picks)

    if len(picks) < label_count:
        for row in _by_strength(range(diff.size), diff):
            if len(picks) >= label_count:
                break
            if row <= 0 or row >= diff.size - 1:
                continue
            if any(abs(p - row) <= config.SORTED_DUPLICATE_RADIUS for p in picks):
                continue
            picks.append(row)

    centers = sorted(refine_to_stroke_center(profile, p) for p in picks)[:label_count]
    rows: list[int | None] = list(centers) + [None] * (label_count - len(centers))
    warnings = [f"W_SORTED_SHORT:{label_count - len(centers)}"] if len(centers) < label_count else []

    return PickResult(
        rows=tuple(rows),
        tiers=tuple(TIER_SORTED if r is not None else "" for r in rows),
        threshold=threshold,
        warning_codes=tuple(warnings),
    )
