"""Utility modules for probe-digitizer."""

from probe_digitizer.utils.cv_utils import (
    # Type aliases
    Image,
    # Dataclasses
    ImageInfo,
    RGBAImage,
    # Helpers
    ensure_rgb,
    get_image_info,
    # Image I/O
    load_image,
    load_mask,
    save_image,
)
from probe_digitizer.utils.fit_metrics import LinearFit, compute_linear_fit

__all__ = [
    # Type aliases
    "Image",
    "RGBAImage",
    # Dataclasses
    "ImageInfo",
    "LinearFit",
    # Image I/O
    "load_image",
    "load_mask",
    "save_image",
    "get_image_info",
    # Helpers
    "ensure_rgb",
    # Fitting
    "compute_linear_fit",
]
