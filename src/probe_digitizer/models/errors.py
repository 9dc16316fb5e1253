from enum import Enum
from typing import Any

from pydantic import BaseModel


class ProcessingStage(str, Enum):
    INPUT = "input"
    CALIBRATE = "calibrate"
    PROFILE = "profile"
    MASK = "mask"
    DETECT = "detect"
    BOOKKEEPING = "bookkeeping"
    EXPORT = "export"


class ProcessingError(BaseModel):
    stage: ProcessingStage
    error_type: str
    recoverable: bool
    message: str
    details: dict[str, Any] = {}
