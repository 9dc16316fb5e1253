from typing import Literal

from pydantic import BaseModel

from probe_digitizer import config

CalibrationKey = Literal["x1", "x2", "y1", "y2"]


class Point(BaseModel):
    x: float
    y: float


class CalibrationPoint(BaseModel):
    pixel: Point | None = None
    value: float | None = None

    @property
    def complete(self) -> bool:
        return self.pixel is not None and self.value is not None


class Calibration(BaseModel):
    """Two pixel/value pairs per axis.

    x1 and x2 lie on the x-axis line, y1 and y2 on the y-axis line. The two
    lines may be skewed relative to each other and to the image grid.
    """

    x1: CalibrationPoint = CalibrationPoint(value=config.DEFAULT_X1_VALUE)
    x2: CalibrationPoint = CalibrationPoint(value=config.DEFAULT_X2_VALUE)
    y1: CalibrationPoint = CalibrationPoint(value=config.DEFAULT_Y1_VALUE)
    y2: CalibrationPoint = CalibrationPoint(value=config.DEFAULT_Y2_VALUE)

    @property
    def is_calibrated(self) -> bool:
        return all(p.complete for p in (self.x1, self.x2, self.y1, self.y2))

    def point(self, key: CalibrationKey) -> CalibrationPoint:
        return getattr(self, key)
