"""Synthetic chart rasters with known stroke rows for detection tests.

Usage:
    from tests.synthetic import blank_chart, draw_hline, orthogonal_calibration
    from tests.synthetic import blank_mask, paint_mask_rows, write_job
"""

from .charts import (
    CHART_HEIGHT,
    CHART_WIDTH,
    blank_chart,
    draw_hline,
    expected_y,
    orthogonal_calibration,
    skewed_calibration,
)
from .masks import blank_mask, paint_mask_rows
from .jobs import write_job, write_mask

__all__ = [
    "CHART_HEIGHT",
    "CHART_WIDTH",
    "blank_chart",
    "blank_mask",
    "draw_hline",
    "expected_y",
    "orthogonal_calibration",
    "paint_mask_rows",
    "skewed_calibration",
    "write_job",
    "write_mask",
]
