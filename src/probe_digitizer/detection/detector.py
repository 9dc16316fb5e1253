"""Single-probe curve detection."""

from __future__ import annotations

from dataclasses import dataclass, field

from probe_digitizer.models import Calibration, DetectionConfig, LabelSet, Point, Probe
from probe_digitizer.utils.cv_utils import Image

from .axis_calibration import AxisFrame, sampling_span
from .candidates import PickResult, pick_rows, pick_rows_sorted
from .mask import MaskSnapshot, derive_row_masks
from .profile import build_profile


@dataclass(frozen=True)
class DetectionRequest:
    """Everything one detection run reads. Nothing is retained between runs."""

    image: Image
    calibration: Calibration
    labels: LabelSet
    probe: Probe
    config: DetectionConfig = field(default_factory=DetectionConfig)
    mask: MaskSnapshot | None = None


@dataclass(frozen=True)
class DetectionResult:
    probe_id: str
    values: list[float | None]  # data-y per label, label order
    rows: tuple[int | None, ...]  # image rows, label order
    tiers: tuple[str, ...]
    px: int
    start_y: int
    threshold: float
    warning_codes: tuple[str, ...]


def effective_settings(probe: Probe, cfg: DetectionConfig) -> tuple[float, int]:
    """Per-probe sensitivity/band overrides over the global config."""
    sensitivity = cfg.sensitivity if probe.sensitivity is None else probe.sensitivity
    band_px = cfg.band_px if probe.band_px is None else probe.band_px
    return min(1.0, max(0.0, float(sensitivity))), max(0, int(round(band_px)))


def detect_probe(request: DetectionRequest) -> DetectionResult | None:
    """
    Infer one data-y per label at the probe's pixel column.

    Returns None (nothing to write back) when the calibration is incomplete
    or the sampled span has zero height.
    """
    frame = AxisFrame.from_calibration(request.calibration)
    if frame is None:
        return None

    image = request.image
    span = sampling_span(request.calibration, int(image.shape[0]))
    if span is None:
        return None
    start_y, end_y = span

    px = int(round(request.probe.pixel_x))
    sensitivity, band = effective_settings(request.probe, request.config)

    prof = build_profile(image, px, start_y, end_y, band)
    if prof is None:
        return None

    labels = request.labels.labels
    warnings: list[str] = list(prof.warning_codes)

    pick: PickResult
    if request.config.strategy == "sorted":
        pick = pick_rows_sorted(prof.diff, prof.profile, len(labels), sensitivity)
    else:
        row_masks, mask_warnings = derive_row_masks(
            request.mask,
            labels,
            request.labels.colors,
            px,
            band,
            start_y,
            prof.seg_h,
            tolerance=request.config.mask_color_tolerance,
        )
        warnings.extend(mask_warnings)
        pick = pick_rows(
            prof.diff,
            labels,
            sensitivity,
            row_masks=row_masks,
            min_separation=request.config.min_separation,
            seg_h=prof.seg_h,
        )
    warnings.extend(pick.warning_codes)

    values: list[float | None] = []
    image_rows: list[int | None] = []
    for row in pick.rows:
        if row is None:
            values.append(None)
            image_rows.append(None)
            continue
        py = start_y + int(row)
        image_rows.append(py)
        values.append(frame.pixel_to_data(Point(x=px, y=py)).y)

    return DetectionResult(
        probe_id=request.probe.id,
        values=values,
        rows=tuple(image_rows),
        tiers=pick.tiers,
        px=px,
        start_y=start_y,
        threshold=pick.threshold,
        warning_codes=tuple(warnings),
    )
