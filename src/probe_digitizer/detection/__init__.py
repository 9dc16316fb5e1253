"""Digitization engine: axis frame, brightness profile, mask constraints, row picking."""

from .axis_calibration import (
    AxisFrame,
    data_to_pixel,
    line_intersection,
    pixel_to_data,
    place_calibration_point,
    sampling_span,
)
from .candidates import (
    PickResult,
    detection_threshold,
    local_maxima,
    pick_rows,
    pick_rows_sorted,
    refine_to_stroke_center,
)
from .detector import DetectionRequest, DetectionResult, detect_probe, effective_settings
from .mask import ArrayMask, MaskSnapshot, derive_row_masks
from .profile import BrightnessProfile, build_profile, luma

__all__ = [
    "ArrayMask",
    "AxisFrame",
    "BrightnessProfile",
    "DetectionRequest",
    "DetectionResult",
    "MaskSnapshot",
    "PickResult",
    "build_profile",
    "data_to_pixel",
    "derive_row_masks",
    "detect_probe",
    "detection_threshold",
    "effective_settings",
    "line_intersection",
    "local_maxima",
    "luma",
    "pick_rows",
    "pick_rows_sorted",
    "pixel_to_data",
    "place_calibration_point",
    "refine_to_stroke_center",
    "sampling_span",
]
