"""Batch job runner: job file -> session -> detection -> output model."""

from __future__ import annotations

import json
import math
import os
from pathlib import Path

from pydantic import BaseModel, ValidationError

from probe_digitizer import config
from probe_digitizer.detection import ArrayMask, MaskSnapshot
from probe_digitizer.detection.debug import write_overlay
from probe_digitizer.models import (
    JobSpec,
    PickStrategy,
    Probe,
    ProcessingError,
    ProcessingStage,
)
from probe_digitizer.probes import sorted_probes
from probe_digitizer.session import DigitizerSession
from probe_digitizer.utils import cv_utils


class ProbeOutput(BaseModel):
    id: str
    x_data: float
    pixel_x: float
    values: list[float | None]
    automatic_y: list[float | None] | None
    manual: dict[str, float]
    tiers: list[str] = []
    warnings: list[str] = []


class FitOutput(BaseModel):
    slope: float | None
    intercept: float | None
    r2: float | None
    n: int
    reason: str | None


class JobOutput(BaseModel):
    image: str
    labels: list[str]
    probes: list[ProbeOutput]
    table: list[list[float | str | None]]
    fits: dict[str, FitOutput]
    warnings: list[str] = []
    errors: list[ProcessingError] = []


def _finite(value: float) -> float | None:
    return value if math.isfinite(value) else None


def load_job(path: str | Path) -> JobSpec | ProcessingError:
    path = Path(path)
    try:
        payload = json.loads(path.read_text())
    except FileNotFoundError:
        return ProcessingError(
            stage=ProcessingStage.INPUT,
            error_type="file_not_found",
            recoverable=False,
            message=f"Job file not found: {path}",
            details={"path": str(path)},
        )
    except (OSError, json.JSONDecodeError) as e:
        return ProcessingError(
            stage=ProcessingStage.INPUT,
            error_type="job_unreadable",
            recoverable=False,
            message=f"Cannot read job file {path}: {e}",
            details={"path": str(path)},
        )
    try:
        return JobSpec.model_validate(payload)
    except ValidationError as e:
        return ProcessingError(
            stage=ProcessingStage.INPUT,
            error_type="job_invalid",
            recoverable=False,
            message=f"Invalid job file {path}",
            details={"path": str(path), "errors": e.errors(include_url=False, include_context=False)},
        )


def build_session(job: JobSpec, image: cv_utils.Image, mask: MaskSnapshot | None) -> DigitizerSession:
    session = DigitizerSession(
        image=image,
        calibration=job.calibration,
        labels=job.labels,
        config=job.detection,
        mask=mask,
    )
    if not session.calibrated:
        session.errors.append(
            ProcessingError(
                stage=ProcessingStage.CALIBRATE,
                error_type="uncalibrated",
                recoverable=False,
                message="Calibration needs all four pixels and values",
            )
        )
        return session

    for entry in job.probes:
        probe = session.add_probe(x_data=entry.x_data, detect=False)
        if isinstance(probe, ProcessingError):
            continue
        update: dict[str, object] = {
            "sensitivity": entry.sensitivity,
            "band_px": entry.band_px,
            "manual": {k: float(v) for k, v in entry.manual.items() if k in job.labels.labels},
        }
        if entry.pixel_x is not None:
            update["pixel_x"] = entry.pixel_x
        session.probes[-1] = probe.model_copy(update=update)

    if job.generate is not None:
        session.generate_probes(job.generate.start, job.generate.end, job.generate.interval, detect=False)
    return session


def _probe_output(session: DigitizerSession, probe: Probe) -> ProbeOutput:
    result = session.last_results.get(probe.id)
    return ProbeOutput(
        id=probe.id,
        x_data=probe.x_data,
        pixel_x=probe.pixel_x,
        values=session.merged(probe.id),
        automatic_y=probe.automatic_y,
        manual=dict(probe.manual),
        tiers=list(result.tiers) if result else [],
        warnings=list(result.warning_codes) if result else [],
    )


def _debug_overlay_path(job_path: Path) -> Path | None:
    if os.getenv(config.DEBUG_ENV, "").lower() not in {"1", "true", "yes"}:
        return None
    out_dir = Path(os.getenv(config.DEBUG_DIR_ENV, config.DEFAULT_DEBUG_DIR))
    return out_dir / f"{job_path.stem}_overlay.png"


def run_job(
    job_path: str | Path,
    mask_path: str | Path | None = None,
    strategy: PickStrategy | None = None,
    clear_manual: bool = False,
    overlay_path: str | Path | None = None,
) -> JobOutput | ProcessingError:
    """Load a job, detect every probe, and collect merged results."""
    job_path = Path(job_path)
    job = load_job(job_path)
    if isinstance(job, ProcessingError):
        return job
    if strategy is not None:
        job = job.model_copy(update={"detection": job.detection.model_copy(update={"strategy": strategy})})

    image_path = Path(job.image)
    if not image_path.is_absolute():
        image_path = job_path.parent / image_path
    image = cv_utils.load_image(image_path)
    if isinstance(image, ProcessingError):
        return image

    mask: MaskSnapshot | None = None
    warnings: list[str] = []
    if mask_path is not None:
        mask_pixels = cv_utils.load_mask(mask_path)
        if isinstance(mask_pixels, ProcessingError):
            return mask_pixels
        if mask_pixels.shape[:2] != image.shape[:2]:
            warnings.append(f"W_MASK_SIZE_MISMATCH:{mask_pixels.shape[1]}x{mask_pixels.shape[0]}")
        mask = ArrayMask(mask_pixels)

    session = build_session(job, image, mask)
    session.detect_all_now(clear_manual=clear_manual)

    target = Path(overlay_path) if overlay_path is not None else _debug_overlay_path(job_path)
    if target is not None:
        warnings.extend(write_overlay(image, session.calibration, session.labels, session.probes, target, mask))

    fits = {
        label: FitOutput(
            slope=_finite(fit.slope),
            intercept=_finite(fit.intercept),
            r2=_finite(fit.r2),
            n=fit.n,
            reason=fit.reason,
        )
        for label, fit in session.fits().items()
    }
    return JobOutput(
        image=str(image_path),
        labels=list(session.labels.labels),
        probes=[_probe_output(session, p) for p in sorted_probes(session.probes)],
        table=session.table(),
        fits=fits,
        warnings=warnings,
        errors=session.errors,
    )
