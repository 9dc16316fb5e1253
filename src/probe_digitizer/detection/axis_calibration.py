"""Oblique axis calibration: pixel <-> data mapping from four reference points."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from probe_digitizer import config
from probe_digitizer.models import Calibration, CalibrationKey, Point

Vec = tuple[float, float]


def _sub(a: Vec, b: Vec) -> Vec:
    return (a[0] - b[0], a[1] - b[1])


def _dot(a: Vec, b: Vec) -> float:
    return a[0] * b[0] + a[1] * b[1]


def _normalize(a: Vec) -> Vec:
    length = float(np.hypot(a[0], a[1])) or 1.0
    return (a[0] / length, a[1] / length)


def _finite_or_zero(value: float) -> float:
    return float(value) if np.isfinite(value) else 0.0


def line_intersection(p1: Vec, p2: Vec, p3: Vec, p4: Vec) -> Vec | None:
    """Intersection of line(p1, p2) and line(p3, p4), None when parallel."""
    a1 = p2[1] - p1[1]
    b1 = p1[0] - p2[0]
    c1 = a1 * p1[0] + b1 * p1[1]

    a2 = p4[1] - p3[1]
    b2 = p3[0] - p4[0]
    c2 = a2 * p3[0] + b2 * p3[1]

    det = a1 * b2 - a2 * b1
    if abs(det) < config.PARALLEL_EPSILON:
        return None
    return ((b2 * c1 - b1 * c2) / det, (a1 * c2 - a2 * c1) / det)


@dataclass(frozen=True)
class AxisFrame:
    """Oblique coordinate frame derived from a complete calibration.

    Points are decomposed along the two axis directions relative to the axis
    intersection, so skew between the axes is preserved and data_to_pixel is
    the exact inverse of pixel_to_data. For orthogonal axes the components
    equal plain dot-product projections.
    """

    origin: Vec
    ux: Vec
    uy: Vec
    alpha1: float
    alpha2: float
    beta1: float
    beta2: float
    x_values: tuple[float, float]
    y_values: tuple[float, float]

    @classmethod
    def from_calibration(cls, calibration: Calibration) -> AxisFrame | None:
        if not calibration.is_calibrated:
            return None
        x1 = calibration.x1.pixel
        x2 = calibration.x2.pixel
        y1 = calibration.y1.pixel
        y2 = calibration.y2.pixel
        assert x1 is not None and x2 is not None and y1 is not None and y2 is not None

        px1, px2 = (x1.x, x1.y), (x2.x, x2.y)
        py1, py2 = (y1.x, y1.y), (y2.x, y2.y)

        origin = line_intersection(px1, px2, py1, py2) or px1
        ux = _normalize(_sub(px2, px1))
        uy = _normalize(_sub(py2, py1))

        return cls(
            origin=origin,
            ux=ux,
            uy=uy,
            alpha1=_dot(_sub(px1, origin), ux),
            alpha2=_dot(_sub(px2, origin), ux),
            beta1=_dot(_sub(py1, origin), uy),
            beta2=_dot(_sub(py2, origin), uy),
            x_values=(float(calibration.x1.value), float(calibration.x2.value)),  # type: ignore[arg-type]
            y_values=(float(calibration.y1.value), float(calibration.y2.value)),  # type: ignore[arg-type]
        )

    def axis_coordinates(self, p: Point) -> Vec:
        """Components of p - origin along ux and uy (parallel to the other axis)."""
        rel = _sub((p.x, p.y), self.origin)
        det = self.ux[0] * self.uy[1] - self.ux[1] * self.uy[0]
        if abs(det) < config.PARALLEL_EPSILON:
            return _dot(rel, self.ux), _dot(rel, self.uy)
        a = (rel[0] * self.uy[1] - rel[1] * self.uy[0]) / det
        b = (self.ux[0] * rel[1] - self.ux[1] * rel[0]) / det
        return a, b

    def pixel_to_data(self, p: Point) -> Point:
        proj_x, proj_y = self.axis_coordinates(p)
        vx1, vx2 = self.x_values
        vy1, vy2 = self.y_values
        with np.errstate(divide="ignore", invalid="ignore"):
            x = vx1 + np.float64(proj_x - self.alpha1) / np.float64(self.alpha2 - self.alpha1) * (vx2 - vx1)
            y = vy1 + np.float64(proj_y - self.beta1) / np.float64(self.beta2 - self.beta1) * (vy2 - vy1)
        return Point(x=_finite_or_zero(x), y=_finite_or_zero(y))

    def data_to_pixel(self, d: Point) -> Point:
        vx1, vx2 = self.x_values
        vy1, vy2 = self.y_values
        with np.errstate(divide="ignore", invalid="ignore"):
            alpha = self.alpha1 + np.float64(d.x - vx1) / np.float64(vx2 - vx1) * (self.alpha2 - self.alpha1)
            beta = self.beta1 + np.float64(d.y - vy1) / np.float64(vy2 - vy1) * (self.beta2 - self.beta1)
            px = self.origin[0] + alpha * self.ux[0] + beta * self.uy[0]
            py = self.origin[1] + alpha * self.ux[1] + beta * self.uy[1]
        return Point(x=_finite_or_zero(px), y=_finite_or_zero(py))


def pixel_to_data(p: Point, calibration: Calibration) -> Point:
    frame = AxisFrame.from_calibration(calibration)
    if frame is None:
        return Point(x=0.0, y=0.0)
    return frame.pixel_to_data(p)


def data_to_pixel(d: Point, calibration: Calibration) -> Point:
    frame = AxisFrame.from_calibration(calibration)
    if frame is None:
        return Point(x=0.0, y=0.0)
    return frame.data_to_pixel(d)


def sampling_span(calibration: Calibration, image_height: int) -> tuple[int, int] | None:
    """Vertical pixel span between the y calibration rows, clamped to the image."""
    y1 = calibration.y1.pixel
    y2 = calibration.y2.pixel
    if y1 is None or y2 is None:
        return None
    start_y = max(0, int(np.floor(min(y1.y, y2.y))))
    end_y = min(int(image_height) - 1, int(np.ceil(max(y1.y, y2.y))))
    return start_y, end_y


def place_calibration_point(
    calibration: Calibration,
    key: CalibrationKey,
    pixel: Point,
) -> Calibration:
    """
    Set one calibration pixel with the interactive snapping rules.

    - x1 also moves y1 onto the same pixel (shared origin click).
    - x2 stays on x1's row and at least CALIBRATION_SNAP_OFFSET_PX right of it.
    - y2 stays on y1's column and at least CALIBRATION_SNAP_OFFSET_PX above it.

    Calibration values are left untouched.
    """
    offset = config.CALIBRATION_SNAP_OFFSET_PX
    update: dict[str, object] = {}

    if key == "x1":
        update["x1"] = calibration.x1.model_copy(update={"pixel": pixel})
        update["y1"] = calibration.y1.model_copy(update={"pixel": pixel})
    elif key == "x2":
        anchor = calibration.x1.pixel
        if anchor is not None:
            x = pixel.x if pixel.x > anchor.x + 1 else anchor.x + offset
            pixel = Point(x=x, y=anchor.y)
        update["x2"] = calibration.x2.model_copy(update={"pixel": pixel})
    elif key == "y1":
        update["y1"] = calibration.y1.model_copy(update={"pixel": pixel})
    else:
        anchor = calibration.y1.pixel
        if anchor is not None:
            y = pixel.y if pixel.y < anchor.y - 1 else anchor.y - offset
            pixel = Point(x=anchor.x, y=y)
        update["y2"] = calibration.y2.model_copy(update={"pixel": pixel})

    return calibration.model_copy(update=update)
