"""Debug overlay rendering for detection runs."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import cv2
import numpy as np
from numpy.typing import NDArray

from probe_digitizer.models import Calibration, LabelSet, Point, Probe, ProcessingError
from probe_digitizer.utils import cv_utils

from .axis_calibration import AxisFrame
from .mask import ArrayMask, MaskSnapshot

# RGB
PALETTE: tuple[tuple[int, int, int], ...] = (
    (255, 105, 45),
    (50, 205, 50),
    (0, 165, 255),
    (147, 20, 255),
    (255, 215, 0),
)
X_AXIS_COLOR = (220, 30, 30)
Y_AXIS_COLOR = (30, 60, 220)
PROBE_COLOR = (120, 120, 120)


def _pt(p: Point) -> tuple[int, int]:
    return int(round(p.x)), int(round(p.y))


def _label_color(labels: LabelSet, idx: int) -> tuple[int, int, int]:
    color = labels.colors.get(labels.labels[idx])
    return tuple(color) if color is not None else PALETTE[idx % len(PALETTE)]  # type: ignore[return-value]


def _draw_calibration(out: NDArray[np.uint8], calibration: Calibration) -> None:
    font = cv2.FONT_HERSHEY_SIMPLEX
    for key, color in (("x1", X_AXIS_COLOR), ("x2", X_AXIS_COLOR), ("y1", Y_AXIS_COLOR), ("y2", Y_AXIS_COLOR)):
        point = calibration.point(key)  # type: ignore[arg-type]
        if point.pixel is None:
            continue
        center = _pt(point.pixel)
        cv2.circle(out, center, 6, color, 2, cv2.LINE_AA)
        if point.value is not None:
            cv2.putText(out, f"{key}={point.value:g}", (center[0] + 8, center[1] - 6), font, 0.4, color, 1, cv2.LINE_AA)
    for a, b, color in (
        (calibration.x1.pixel, calibration.x2.pixel, X_AXIS_COLOR),
        (calibration.y1.pixel, calibration.y2.pixel, Y_AXIS_COLOR),
    ):
        if a is not None and b is not None:
            cv2.line(out, _pt(a), _pt(b), color, 1, cv2.LINE_AA)


def render_overlay(
    image: NDArray[np.uint8],
    calibration: Calibration,
    labels: LabelSet,
    probes: Sequence[Probe],
    mask: MaskSnapshot | None = None,
) -> NDArray[np.uint8]:
    """Draw axes, probe columns, automatic (dots) and manual (squares) picks."""
    out = np.ascontiguousarray(cv_utils.ensure_rgb(image)).copy()
    h = out.shape[0]

    if isinstance(mask, ArrayMask) and mask.pixels.shape[:2] == out.shape[:2]:
        alpha = (mask.pixels[..., 3:4].astype(np.float32) / 255.0) * 0.35
        out = (out * (1.0 - alpha) + mask.pixels[..., :3] * alpha).astype(np.uint8)

    _draw_calibration(out, calibration)
    frame = AxisFrame.from_calibration(calibration)

    for probe in probes:
        px = int(round(probe.pixel_x))
        cv2.line(out, (px, 0), (px, h - 1), PROBE_COLOR, 1, cv2.LINE_4)
        if frame is None:
            continue
        for idx, label in enumerate(labels.labels):
            color = _label_color(labels, idx)
            if label in probe.manual:
                pixel = frame.data_to_pixel(Point(x=probe.x_data, y=probe.manual[label]))
                cx, cy = px, int(round(pixel.y))
                cv2.rectangle(out, (cx - 4, cy - 4), (cx + 4, cy + 4), color, 2, cv2.LINE_AA)
                continue
            if probe.automatic_y is None or idx >= len(probe.automatic_y):
                continue
            value = probe.automatic_y[idx]
            if value is None:
                continue
            pixel = frame.data_to_pixel(Point(x=probe.x_data, y=value))
            cv2.circle(out, (px, int(round(pixel.y))), 4, color, -1, cv2.LINE_AA)

    return out


def write_overlay(
    image: NDArray[np.uint8],
    calibration: Calibration,
    labels: LabelSet,
    probes: Sequence[Probe],
    path: Path,
    mask: MaskSnapshot | None = None,
) -> list[str]:
    """Persist the overlay; failures become warning codes."""
    warnings: list[str] = []
    try:
        overlay = render_overlay(image, calibration, labels, probes, mask)
        saved = cv_utils.save_image(overlay, path)
        if isinstance(saved, ProcessingError):
            warnings.append(f"W_DEBUG_ARTIFACT_WRITE_FAILED:{saved.error_type}")
    except Exception as exc:  # pragma: no cover - debug path should not fail detection
        warnings.append(f"W_DEBUG_ARTIFACT_WRITE_FAILED:{exc}")
    return warnings
