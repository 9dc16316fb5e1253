from typing import Literal

from pydantic import BaseModel, field_validator

from probe_digitizer import config

from .calibration import Calibration
from .probe import LabelSet

PickStrategy = Literal["separated", "sorted"]


class DetectionConfig(BaseModel):
    sensitivity: float = config.DEFAULT_SENSITIVITY
    band_px: int = config.DEFAULT_BAND_PX
    min_separation: int = config.MIN_VERTICAL_SEPARATION
    mask_color_tolerance: int = config.MASK_COLOR_TOLERANCE

    # "separated": label-by-label with cross-label exclusion.
    # "sorted": single pass, top-to-bottom by row.
    strategy: PickStrategy = "separated"

    @field_validator("sensitivity")
    @classmethod
    def _clamp_sensitivity(cls, value: float) -> float:
        return min(1.0, max(0.0, float(value)))

    @field_validator("band_px")
    @classmethod
    def _clamp_band(cls, value: int) -> int:
        return max(0, int(value))


class ProbeSpec(BaseModel):
    x_data: float
    pixel_x: float | None = None
    sensitivity: float | None = None
    band_px: int | None = None
    manual: dict[str, float] = {}


class ProbeGenerator(BaseModel):
    start: float
    end: float
    interval: float


class JobSpec(BaseModel):
    """Input description of one digitization job (read-only, never written back)."""

    image: str
    calibration: Calibration
    labels: LabelSet = LabelSet()
    probes: list[ProbeSpec] = []
    generate: ProbeGenerator | None = None
    detection: DetectionConfig = DetectionConfig()

    @field_validator("labels", mode="before")
    @classmethod
    def _labels_shorthand(cls, value: object) -> object:
        # "5,10,20" or ["5", "10", "20"] without colors
        if isinstance(value, (str, list, tuple)):
            return {"labels": value}
        return value
