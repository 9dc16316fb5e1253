"""Probe bookkeeping: creation, manual overrides, merged view, table rows."""

from __future__ import annotations

from collections.abc import Sequence

from probe_digitizer import config
from probe_digitizer.detection import DetectionResult, data_to_pixel, pixel_to_data
from probe_digitizer.models import (
    Calibration,
    LabelSet,
    Point,
    Probe,
    ProcessingError,
    ProcessingStage,
)


def _uncalibrated_error(action: str) -> ProcessingError:
    return ProcessingError(
        stage=ProcessingStage.BOOKKEEPING,
        error_type="uncalibrated",
        recoverable=True,
        message=f"Cannot {action}: set all four calibration points and values first",
    )


def _unknown_label_error(label: str, labels: LabelSet) -> ProcessingError:
    return ProcessingError(
        stage=ProcessingStage.BOOKKEEPING,
        error_type="unknown_label",
        recoverable=True,
        message=f"Unknown label: {label!r}",
        details={"label": label, "labels": list(labels.labels)},
    )


def default_probe_x(calibration: Calibration) -> float:
    """Midpoint between the two x calibration values."""
    x1 = calibration.x1.value or 0.0
    x2 = calibration.x2.value if calibration.x2.value is not None else x1
    return x1 + (x2 - x1) / 2.0


def probe_column(x_data: float, calibration: Calibration) -> float:
    """Pixel column for a data x, measured along the y1 baseline."""
    baseline = calibration.y1.value or 0.0
    return data_to_pixel(Point(x=x_data, y=baseline), calibration).x


def make_probe(
    calibration: Calibration,
    x_data: float | None = None,
    pixel_x: float | None = None,
    sensitivity: float | None = None,
    band_px: int | None = None,
) -> Probe | ProcessingError:
    if not calibration.is_calibrated:
        return _uncalibrated_error("add probe")
    x = default_probe_x(calibration) if x_data is None else float(x_data)
    px = probe_column(x, calibration) if pixel_x is None else float(pixel_x)
    return Probe(x_data=x, pixel_x=px, sensitivity=sensitivity, band_px=band_px)


def interval_values(start: float, end: float, interval: float) -> list[float]:
    """start, start + interval, ... up to end (inclusive within epsilon)."""
    if not interval > 0:
        return []
    values: list[float] = []
    t = float(start)
    while t <= end + config.PROBE_INTERVAL_EPSILON:
        values.append(round(t, 6))
        step = round(t + interval, config.PROBE_INTERVAL_ROUNDING)
        if step <= t:
            # interval below the rounding resolution
            break
        t = step
    return values


def generate_probes(
    existing: Sequence[Probe],
    calibration: Calibration,
    start: float,
    end: float,
    interval: float,
) -> list[Probe] | ProcessingError:
    """New probes at a fixed data interval, skipping x values already probed."""
    if not calibration.is_calibrated:
        return _uncalibrated_error("generate probes")

    taken = [p.x_data for p in existing]
    out: list[Probe] = []
    for t in interval_values(start, end, interval):
        if any(abs(t - x) < config.PROBE_DEDUP_TOLERANCE for x in taken):
            continue
        taken.append(t)
        out.append(Probe(x_data=t, pixel_x=probe_column(t, calibration)))
    return out


def apply_detection(probe: Probe, result: DetectionResult) -> Probe:
    """Overwrite the whole automatic slot list; manual entries are untouched."""
    if result.probe_id != probe.id:
        return probe
    return probe.model_copy(update={"automatic_y": list(result.values)})


def remap_automatic(probe: Probe, old: LabelSet, new: LabelSet) -> Probe:
    """Realign automatic slots to a new label order; new labels start empty."""
    if probe.automatic_y is None:
        return probe
    by_label = {
        label: probe.automatic_y[idx]
        for idx, label in enumerate(old.labels)
        if idx < len(probe.automatic_y)
    }
    return probe.model_copy(update={"automatic_y": [by_label.get(label) for label in new.labels]})


def set_manual(
    probe: Probe,
    labels: LabelSet,
    label: str,
    y_data: float,
) -> Probe | ProcessingError:
    """Record a manual value and blank that label's automatic slot."""
    idx = labels.index(label)
    if idx < 0:
        return _unknown_label_error(label, labels)

    manual = dict(probe.manual)
    manual[label] = float(y_data)
    automatic = list(probe.automatic_y) if probe.automatic_y is not None else None
    if automatic is not None and idx < len(automatic):
        automatic[idx] = None
    return probe.model_copy(update={"manual": manual, "automatic_y": automatic})


def manual_pick(
    probe: Probe,
    labels: LabelSet,
    label: str,
    pixel_y: float,
    calibration: Calibration,
) -> Probe | ProcessingError:
    """Manual value from a clicked row; x stays locked to the probe column."""
    if not calibration.is_calibrated:
        return _uncalibrated_error("pick manual value")
    y_data = pixel_to_data(Point(x=probe.pixel_x, y=pixel_y), calibration).y
    return set_manual(probe, labels, label, y_data)


def clear_manual(probe: Probe, label: str | None = None) -> Probe:
    """Drop one manual entry, or all of them when label is None."""
    if label is None:
        return probe.model_copy(update={"manual": {}})
    manual = {k: v for k, v in probe.manual.items() if k != label}
    return probe.model_copy(update={"manual": manual})


def merged_values(probe: Probe, labels: LabelSet) -> list[float | None]:
    """Per-label value with manual entries taking precedence."""
    out: list[float | None] = []
    automatic = probe.automatic_y or []
    for idx, label in enumerate(labels.labels):
        if label in probe.manual:
            out.append(probe.manual[label])
        elif idx < len(automatic):
            out.append(automatic[idx])
        else:
            out.append(None)
    return out


def sorted_probes(probes: Sequence[Probe]) -> list[Probe]:
    return sorted(probes, key=lambda p: p.x_data)


def table_rows(
    probes: Sequence[Probe],
    labels: LabelSet,
    decimals: int = config.TABLE_DECIMALS,
) -> list[list[float | str | None]]:
    """Header plus one row per probe (lowest x first)."""
    rows: list[list[float | str | None]] = [[config.TABLE_X_HEADER, *labels.labels]]
    for probe in sorted_probes(probes):
        row: list[float | str | None] = [probe.x_data]
        automatic = probe.automatic_y or []
        for idx, label in enumerate(labels.labels):
            if label in probe.manual:
                row.append(probe.manual[label])
            elif idx < len(automatic) and automatic[idx] is not None:
                row.append(round(float(automatic[idx]), decimals))  # type: ignore[arg-type]
            else:
                row.append(None)
        rows.append(row)
    return rows


def label_series(
    probes: Sequence[Probe],
    labels: LabelSet,
    label: str,
) -> list[tuple[float, float]]:
    """(x, y) points for one label across probes, skipping empty slots."""
    idx = labels.index(label)
    if idx < 0:
        return []
    points: list[tuple[float, float]] = []
    for probe in sorted_probes(probes):
        value = merged_values(probe, labels)[idx]
        if value is not None:
            points.append((probe.x_data, float(value)))
    return points
