"""
OpenCV helpers for raster I/O.

Images are handled in RGB(A) channel order inside the package; conversion
to and from OpenCV's BGR(A) happens only at the file boundary.

All loaders follow the Result | ProcessingError pattern for error handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias

import cv2
import numpy as np
from numpy.typing import NDArray

from probe_digitizer.models import ProcessingError, ProcessingStage

# =============================================================================
# TYPE ALIASES
# =============================================================================

# Use Any for dtype to avoid MatLike compatibility issues with OpenCV
Image: TypeAlias = NDArray[Any]  # RGB, RGBA or grayscale raster
RGBAImage: TypeAlias = NDArray[Any]  # H x W x 4, uint8


@dataclass(frozen=True)
class ImageInfo:
    """Information about a loaded image."""

    height: int
    width: int
    channels: int
    is_grayscale: bool


# =============================================================================
# IMAGE I/O
# =============================================================================


def _read(path: Path, stage: ProcessingStage) -> NDArray[Any] | ProcessingError:
    if not path.exists():
        return ProcessingError(
            stage=stage,
            error_type="file_not_found",
            recoverable=False,
            message=f"Image file not found: {path}",
            details={"path": str(path)},
        )
    try:
        img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    except PermissionError:
        return ProcessingError(
            stage=stage,
            error_type="permission_denied",
            recoverable=False,
            message=f"Permission denied reading: {path}",
            details={"path": str(path)},
        )
    except Exception as e:
        return ProcessingError(
            stage=stage,
            error_type="io_error",
            recoverable=False,
            message=f"Error reading image: {e}",
            details={"path": str(path), "error": str(e)},
        )
    if img is None:
        return ProcessingError(
            stage=stage,
            error_type="imread_failed",
            recoverable=False,
            message=f"Failed to read image (may be corrupted): {path}",
            details={"path": str(path)},
        )
    if img.dtype != np.uint8:
        # 16-bit PNG/TIFF: scale down to 8 bits per channel
        img = (img.astype(np.float64) / float(np.iinfo(img.dtype).max) * 255.0).round().astype(np.uint8)
    return img


def load_image(
    path: str | Path,
    stage: ProcessingStage = ProcessingStage.INPUT,
) -> Image | ProcessingError:
    """
    Load a chart image from disk as RGB.

    Handles:
    - Corrupted images (cv2.imread failure)
    - Grayscale and RGBA sources (converted to 3-channel RGB)
    - File not found / permission errors

    Returns:
        H x W x 3 uint8 RGB array or ProcessingError
    """
    img = _read(Path(path), stage)
    if isinstance(img, ProcessingError):
        return img

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
    channels = img.shape[2]
    if channels == 1:
        return cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2RGB)
    if channels == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGB)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def load_mask(
    path: str | Path,
    stage: ProcessingStage = ProcessingStage.MASK,
) -> RGBAImage | ProcessingError:
    """
    Load a highlight mask as RGBA.

    Sources without an alpha channel are treated as fully opaque except for
    pure black pixels, which count as unpainted.
    """
    img = _read(Path(path), stage)
    if isinstance(img, ProcessingError):
        return img

    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    elif img.shape[2] == 1:
        img = cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2BGR)

    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)

    rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    alpha = np.where(rgb.any(axis=2), 255, 0).astype(np.uint8)
    return np.dstack([rgb, alpha])


def save_image(
    image: Image,
    path: str | Path,
    stage: ProcessingStage = ProcessingStage.EXPORT,
) -> Path | ProcessingError:
    """
    Save an RGB(A) image to disk.

    Returns:
        Path to saved file or ProcessingError
    """
    path = Path(path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        out = image
        if image.ndim == 3 and image.shape[2] == 3:
            out = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
        elif image.ndim == 3 and image.shape[2] == 4:
            out = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)

        success = cv2.imwrite(str(path), out)
        if not success:
            return ProcessingError(
                stage=stage,
                error_type="imwrite_failed",
                recoverable=False,
                message=f"Failed to write image: {path}",
                details={"path": str(path)},
            )
        return path

    except PermissionError:
        return ProcessingError(
            stage=stage,
            error_type="permission_denied",
            recoverable=False,
            message=f"Permission denied writing: {path}",
            details={"path": str(path)},
        )
    except Exception as e:
        return ProcessingError(
            stage=stage,
            error_type="io_error",
            recoverable=False,
            message=f"Error writing image: {e}",
            details={"path": str(path), "error": str(e)},
        )


def get_image_info(image: Image) -> ImageInfo:
    """Extract basic information about an image."""
    height, width = image.shape[:2]
    channels = 1 if image.ndim == 2 else int(image.shape[2])
    return ImageInfo(
        height=int(height),
        width=int(width),
        channels=channels,
        is_grayscale=channels == 1,
    )


def ensure_rgb(image: Image) -> Image:
    """Return a 3-channel RGB view of a grayscale, RGB or RGBA array."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    return image
