"""Recover numeric series from chart images with calibrated axes and vertical probes."""

__version__ = "0.1.0"
