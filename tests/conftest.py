import numpy as np
import pytest

from probe_digitizer.models import Calibration, DetectionConfig, LabelSet, Probe
from tests.synthetic import blank_chart, draw_hline, orthogonal_calibration


@pytest.fixture
def calibration() -> Calibration:
    return orthogonal_calibration()


@pytest.fixture
def single_stroke_chart() -> np.ndarray:
    return draw_hline(blank_chart(), 40)


@pytest.fixture
def two_stroke_chart() -> np.ndarray:
    image = blank_chart()
    draw_hline(image, 30)
    draw_hline(image, 70)
    return image


@pytest.fixture
def probe() -> Probe:
    return Probe(id="probe_test", x_data=15.0, pixel_x=60.0, band_px=2)


@pytest.fixture
def one_label() -> LabelSet:
    return LabelSet(labels=["a"])


@pytest.fixture
def detection_config() -> DetectionConfig:
    return DetectionConfig(sensitivity=0.6, band_px=2)
