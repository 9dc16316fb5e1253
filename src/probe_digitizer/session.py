"""Mutable digitizing session: owns state and feeds the stateless engine."""

from __future__ import annotations

from collections.abc import Sequence

from probe_digitizer import probes as probe_ops
from probe_digitizer.detection import (
    DetectionRequest,
    DetectionResult,
    MaskSnapshot,
    detect_probe,
    pixel_to_data,
    place_calibration_point,
)
from probe_digitizer.models import (
    Calibration,
    CalibrationKey,
    DetectionConfig,
    LabelSet,
    Point,
    Probe,
    ProcessingError,
    ProcessingStage,
)
from probe_digitizer.scheduler import DetectionScheduler
from probe_digitizer.utils import Image, LinearFit, compute_linear_fit


class DigitizerSession:
    """
    Probe, label and calibration state plus detection triggers.

    Every detection reads the session's current state when it executes, so
    requests queued on the scheduler never act on stale probes, labels or
    calibration. Without a scheduler, requests run immediately.
    """

    def __init__(
        self,
        image: Image | None = None,
        calibration: Calibration | None = None,
        labels: LabelSet | None = None,
        config: DetectionConfig | None = None,
        mask: MaskSnapshot | None = None,
        scheduler: DetectionScheduler | None = None,
    ) -> None:
        self.image = image
        self.calibration = calibration or Calibration()
        self.labels = labels or LabelSet()
        self.config = config or DetectionConfig()
        self.mask = mask
        self.scheduler = scheduler
        self.probes: list[Probe] = []
        self.errors: list[ProcessingError] = []
        self.last_results: dict[str, DetectionResult] = {}

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    @property
    def calibrated(self) -> bool:
        return self.calibration.is_calibrated

    def get_probe(self, probe_id: str) -> Probe | None:
        for probe in self.probes:
            if probe.id == probe_id:
                return probe
        return None

    def _replace_probe(self, probe: Probe) -> None:
        self.probes = [probe if p.id == probe.id else p for p in self.probes]

    def _record(self, result: Probe | ProcessingError) -> Probe | ProcessingError:
        if isinstance(result, ProcessingError):
            self.errors.append(result)
        return result

    def _missing_probe(self, probe_id: str) -> ProcessingError:
        err = ProcessingError(
            stage=ProcessingStage.BOOKKEEPING,
            error_type="unknown_probe",
            recoverable=True,
            message=f"Unknown probe: {probe_id}",
            details={"probe_id": probe_id},
        )
        self.errors.append(err)
        return err

    # ------------------------------------------------------------------
    # detection
    # ------------------------------------------------------------------

    def detect_now(self, probe_id: str) -> DetectionResult | None:
        """Run detection for one probe against current state and store it."""
        probe = self.get_probe(probe_id)
        if probe is None or self.image is None:
            return None
        result = detect_probe(
            DetectionRequest(
                image=self.image,
                calibration=self.calibration,
                labels=self.labels,
                probe=probe,
                config=self.config,
                mask=self.mask,
            )
        )
        if result is None:
            return None
        self.last_results[probe_id] = result
        self._replace_probe(probe_ops.apply_detection(probe, result))
        return result

    def detect_all_now(self, clear_manual: bool = False) -> list[DetectionResult]:
        """Detect every probe; optionally drop manual overrides first."""
        if clear_manual:
            self.probes = [probe_ops.clear_manual(p) for p in self.probes]
        results: list[DetectionResult] = []
        for probe_id in [p.id for p in self.probes]:
            result = self.detect_now(probe_id)
            if result is not None:
                results.append(result)
        return results

    def request_detection(self, probe_id: str) -> None:
        if self.scheduler is None:
            self.detect_now(probe_id)
            return
        self.scheduler.schedule(probe_id, lambda: self.detect_now(probe_id))

    def request_detect_all(self) -> None:
        if not self.probes:
            return
        if self.scheduler is None:
            self.detect_all_now()
            return
        self.scheduler.schedule_all(self.detect_all_now)

    # ------------------------------------------------------------------
    # inputs that invalidate every probe
    # ------------------------------------------------------------------

    def set_image(self, image: Image | None, mask: MaskSnapshot | None = None) -> None:
        self.image = image
        self.mask = mask
        self.last_results.clear()
        if self.calibrated:
            self.request_detect_all()

    def set_mask(self, mask: MaskSnapshot | None) -> None:
        self.mask = mask
        self.request_detect_all()

    def set_calibration(self, calibration: Calibration) -> None:
        self.calibration = calibration
        if self.calibrated:
            self.request_detect_all()

    def place_calibration(self, key: CalibrationKey, pixel: Point) -> None:
        self.set_calibration(place_calibration_point(self.calibration, key, pixel))

    def set_calibration_value(self, key: CalibrationKey, value: float | None) -> None:
        point = self.calibration.point(key).model_copy(update={"value": value})
        self.set_calibration(self.calibration.model_copy(update={key: point}))

    def set_labels(self, labels: LabelSet | Sequence[str]) -> None:
        if not isinstance(labels, LabelSet):
            labels = LabelSet(labels=list(labels), colors=self.labels.colors)
        self.probes = [probe_ops.remap_automatic(p, self.labels, labels) for p in self.probes]
        self.labels = labels
        self.request_detect_all()

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------

    def set_sensitivity(self, value: float, probe_id: str | None = None) -> None:
        """Global edit re-detects everything once; a probe edit only that probe."""
        if probe_id is None:
            self.config = self.config.model_copy(update={"sensitivity": min(1.0, max(0.0, float(value)))})
            self.request_detect_all()
            return
        probe = self.get_probe(probe_id)
        if probe is None:
            self._missing_probe(probe_id)
            return
        self._replace_probe(probe.model_copy(update={"sensitivity": float(value)}))
        self.request_detection(probe_id)

    def set_band(self, value: int, probe_id: str | None = None) -> None:
        if probe_id is None:
            self.config = self.config.model_copy(update={"band_px": max(0, int(value))})
            self.request_detect_all()
            return
        probe = self.get_probe(probe_id)
        if probe is None:
            self._missing_probe(probe_id)
            return
        self._replace_probe(probe.model_copy(update={"band_px": max(0, int(value))}))
        self.request_detection(probe_id)

    def apply_settings_to_all(self, sensitivity: float | None = None, band_px: int | None = None) -> None:
        """Copy one set of overrides onto every probe."""
        s = self.config.sensitivity if sensitivity is None else float(sensitivity)
        b = self.config.band_px if band_px is None else max(0, int(band_px))
        self.probes = [p.model_copy(update={"sensitivity": s, "band_px": b}) for p in self.probes]
        self.request_detect_all()

    # ------------------------------------------------------------------
    # probes
    # ------------------------------------------------------------------

    def add_probe(self, x_data: float | None = None, detect: bool = True) -> Probe | ProcessingError:
        probe = self._record(probe_ops.make_probe(self.calibration, x_data=x_data))
        if isinstance(probe, ProcessingError):
            return probe
        self.probes.append(probe)
        if detect:
            self.request_detection(probe.id)
        return probe

    def add_probes(self, new_probes: Sequence[Probe], detect: bool = True) -> None:
        self.probes.extend(new_probes)
        if detect:
            for probe in new_probes:
                self.request_detection(probe.id)

    def generate_probes(
        self,
        start: float,
        end: float,
        interval: float,
        detect: bool = True,
    ) -> list[Probe] | ProcessingError:
        created = probe_ops.generate_probes(self.probes, self.calibration, start, end, interval)
        if isinstance(created, ProcessingError):
            self.errors.append(created)
            return created
        self.add_probes(created, detect=detect)
        return created

    def move_probe(self, probe_id: str, pixel_x: float) -> Probe | ProcessingError:
        """Drag a probe horizontally; its data x follows along the y1 row."""
        probe = self.get_probe(probe_id)
        if probe is None:
            return self._missing_probe(probe_id)
        update: dict[str, float] = {"pixel_x": float(pixel_x)}
        y1 = self.calibration.y1.pixel
        if self.calibrated and y1 is not None:
            update["x_data"] = pixel_to_data(Point(x=pixel_x, y=y1.y), self.calibration).x
        moved = probe.model_copy(update=update)
        self._replace_probe(moved)
        self.request_detection(probe_id)
        return moved

    def remove_probe(self, probe_id: str) -> bool:
        before = len(self.probes)
        self.probes = [p for p in self.probes if p.id != probe_id]
        self.last_results.pop(probe_id, None)
        if self.scheduler is not None:
            self.scheduler.cancel(probe_id)
        return len(self.probes) != before

    def set_manual(self, probe_id: str, label: str, y_data: float) -> Probe | ProcessingError:
        probe = self.get_probe(probe_id)
        if probe is None:
            return self._missing_probe(probe_id)
        updated = self._record(probe_ops.set_manual(probe, self.labels, label, y_data))
        if isinstance(updated, Probe):
            self._replace_probe(updated)
        return updated

    def manual_pick(self, probe_id: str, label: str, pixel_y: float) -> Probe | ProcessingError:
        probe = self.get_probe(probe_id)
        if probe is None:
            return self._missing_probe(probe_id)
        updated = self._record(probe_ops.manual_pick(probe, self.labels, label, pixel_y, self.calibration))
        if isinstance(updated, Probe):
            self._replace_probe(updated)
        return updated

    def clear_manual(self, probe_id: str, label: str | None = None) -> Probe | ProcessingError:
        """Remove an override and re-detect so the automatic value comes back."""
        probe = self.get_probe(probe_id)
        if probe is None:
            return self._missing_probe(probe_id)
        updated = probe_ops.clear_manual(probe, label)
        self._replace_probe(updated)
        self.request_detection(probe_id)
        return updated

    def reset(self) -> None:
        """Full reset: image, probes, calibration and labels back to defaults."""
        if self.scheduler is not None:
            self.scheduler.cancel_all()
        self.image = None
        self.mask = None
        self.probes = []
        self.last_results.clear()
        self.errors = []
        self.calibration = Calibration()
        self.labels = LabelSet()

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------

    def merged(self, probe_id: str) -> list[float | None]:
        probe = self.get_probe(probe_id)
        if probe is None:
            return [None] * len(self.labels)
        return probe_ops.merged_values(probe, self.labels)

    def table(self) -> list[list[float | str | None]]:
        return probe_ops.table_rows(self.probes, self.labels)

    def series(self, label: str) -> list[tuple[float, float]]:
        return probe_ops.label_series(self.probes, self.labels, label)

    def fits(self) -> dict[str, LinearFit]:
        out: dict[str, LinearFit] = {}
        for label in self.labels.labels:
            points = self.series(label)
            out[label] = compute_linear_fit([x for x, _ in points], [y for _, y in points])
        return out
