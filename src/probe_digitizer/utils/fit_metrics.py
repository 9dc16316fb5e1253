"""Least-squares line fit for recovered series."""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float
    r2: float
    n: int
    reason: str | None = None  # "n<2" or "vertical" when the fit is undefined

    @property
    def ok(self) -> bool:
        return self.reason is None


def compute_linear_fit(xs: Sequence[float], ys: Sequence[float]) -> LinearFit:
    """
    Ordinary least squares y = slope * x + intercept.

    Degenerate input returns NaN coefficients with a reason instead of
    raising. r2 is NaN when all ys are equal.
    """
    x = np.asarray(xs, dtype=np.float64)
    y = np.asarray(ys, dtype=np.float64)
    n = int(min(x.size, y.size))
    x, y = x[:n], y[:n]
    nan = float("nan")

    if n < 2:
        return LinearFit(slope=nan, intercept=nan, r2=nan, n=n, reason="n<2")

    dx = x - x.mean()
    dy = y - y.mean()
    sxx = float(np.dot(dx, dx))
    if sxx == 0.0:
        return LinearFit(slope=nan, intercept=nan, r2=nan, n=n, reason="vertical")

    slope = float(np.dot(dx, dy)) / sxx
    intercept = float(y.mean()) - slope * float(x.mean())

    ss_res = float(np.sum((y - (slope * x + intercept)) ** 2))
    ss_tot = float(np.dot(dy, dy))
    r2 = nan if ss_tot == 0.0 else 1.0 - ss_res / ss_tot

    return LinearFit(slope=slope, intercept=intercept, r2=r2, n=n)
