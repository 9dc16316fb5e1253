from .calibration import Calibration, CalibrationKey, CalibrationPoint, Point
from .errors import ProcessingError, ProcessingStage
from .probe import RGB, LabelSet, Probe, new_probe_id, parse_label_color
from .state import DetectionConfig, JobSpec, PickStrategy, ProbeGenerator, ProbeSpec

__all__ = [
    "Calibration",
    "CalibrationKey",
    "CalibrationPoint",
    "DetectionConfig",
    "JobSpec",
    "LabelSet",
    "PickStrategy",
    "Point",
    "Probe",
    "ProbeGenerator",
    "ProbeSpec",
    "ProcessingError",
    "ProcessingStage",
    "RGB",
    "new_probe_id",
    "parse_label_color",
]
