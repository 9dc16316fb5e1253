import asyncio

import pytest

from probe_digitizer.detection import detection_threshold
from probe_digitizer.models import Calibration, DetectionConfig, LabelSet, Point, Probe, ProcessingError
from probe_digitizer.scheduler import ALL_PROBES_KEY, DetectionScheduler
from probe_digitizer.session import DigitizerSession
from tests.synthetic import blank_chart, draw_hline, expected_y, orthogonal_calibration


def _session(image=None, labels=("a",), scheduler=None) -> DigitizerSession:
    return DigitizerSession(
        image=image if image is not None else draw_hline(blank_chart(), 40),
        calibration=orthogonal_calibration(),
        labels=LabelSet(labels=list(labels)),
        config=DetectionConfig(sensitivity=0.6, band_px=2),
        scheduler=scheduler,
    )


def test_add_probe_detects_immediately_without_scheduler() -> None:
    session = _session()
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    stored = session.get_probe(probe.id)
    assert stored is not None and stored.automatic_y is not None
    assert abs(stored.automatic_y[0] - 30.0) <= 0.5 + 1e-9
    assert probe.id in session.last_results


def test_add_probe_uncalibrated_records_error() -> None:
    session = DigitizerSession(image=blank_chart())
    result = session.add_probe()
    assert isinstance(result, ProcessingError)
    assert session.probes == []
    assert session.errors == [result]


def test_manual_override_survives_redetection_and_clear_restores_auto() -> None:
    session = _session()
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    auto = session.merged(probe.id)[0]

    session.set_manual(probe.id, "a", 12.0)
    assert session.merged(probe.id) == [12.0]
    session.detect_all_now()
    assert session.merged(probe.id) == [12.0]

    session.clear_manual(probe.id, "a")
    assert session.merged(probe.id) == [auto]


def test_detect_all_can_drop_manual_values() -> None:
    session = _session()
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    session.manual_pick(probe.id, "a", 80.0)
    assert session.merged(probe.id) == [pytest.approx(expected_y(80))]
    session.detect_all_now(clear_manual=True)
    assert session.get_probe(probe.id).manual == {}  # type: ignore[union-attr]
    assert abs(session.merged(probe.id)[0] - 30.0) <= 0.5 + 1e-9  # type: ignore[operator]


def test_unknown_probe_is_reported() -> None:
    session = _session()
    err = session.set_manual("nope", "a", 1.0)
    assert isinstance(err, ProcessingError)
    assert err.error_type == "unknown_probe"
    assert session.merged("nope") == [None]


def test_label_change_resizes_every_probe() -> None:
    session = _session()
    session.add_probe()
    session.add_probe(x_data=5.0)
    session.set_labels(["a", "b"])
    for probe in session.probes:
        assert probe.automatic_y is not None and len(probe.automatic_y) == 2


def test_move_probe_updates_data_x() -> None:
    session = _session()
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    moved = session.move_probe(probe.id, 110.0)
    assert isinstance(moved, Probe)
    assert moved.x_data == pytest.approx(30.0)


def test_global_sensitivity_and_per_probe_override() -> None:
    session = _session()
    first = session.add_probe()
    second = session.add_probe(x_data=5.0)
    assert isinstance(first, Probe) and isinstance(second, Probe)
    session.set_sensitivity(0.9)
    assert session.config.sensitivity == 0.9
    session.set_sensitivity(0.1, probe_id=first.id)
    assert session.get_probe(first.id).sensitivity == 0.1  # type: ignore[union-attr]
    assert session.get_probe(second.id).sensitivity is None  # type: ignore[union-attr]
    assert session.last_results[first.id].threshold > session.last_results[second.id].threshold


def test_apply_settings_to_all() -> None:
    session = _session()
    session.add_probe()
    session.add_probe(x_data=5.0)
    session.apply_settings_to_all(sensitivity=0.2, band_px=4)
    assert {(p.sensitivity, p.band_px) for p in session.probes} == {(0.2, 4)}


def test_generate_probes_adds_detected_probes() -> None:
    session = _session()
    created = session.generate_probes(0, 30, 10)
    assert isinstance(created, list) and len(created) == 4
    assert all(p.automatic_y is not None for p in session.probes)
    assert session.generate_probes(0, 30, 10) == []


def test_remove_probe_and_reset() -> None:
    session = _session()
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    assert session.remove_probe(probe.id)
    assert not session.remove_probe(probe.id)
    session.add_probe()
    session.reset()
    assert session.probes == []
    assert session.image is None
    assert session.calibration == Calibration()
    assert session.labels.labels == ["5", "10", "20"]


def test_place_calibration_redetects() -> None:
    session = _session()
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    before = session.merged(probe.id)[0]
    session.set_calibration_value("y2", 100)
    after = session.merged(probe.id)[0]
    assert after == pytest.approx(2 * before)  # type: ignore[operator]
    session.place_calibration("y2", Point(x=10, y=0))
    assert session.calibration.y2.pixel == Point(x=10, y=0)


def test_table_and_fits() -> None:
    image = blank_chart()
    # Sloped stroke: row 80 at the left edge rising one row per 4 columns
    for col in range(image.shape[1]):
        image[80 - col // 4, col] = 0
    session = _session(image=image)
    session.generate_probes(0, 30, 7.5)
    table = session.table()
    assert table[0] == ["X", "a"]
    assert len(table) == 6
    fit = session.fits()["a"]
    assert fit.ok
    assert fit.slope > 0
    assert fit.r2 > 0.95


def test_scheduled_requests_coalesce_per_frame() -> None:
    async def scenario() -> tuple[DetectionScheduler, DigitizerSession, str, list[str]]:
        scheduler = DetectionScheduler(frame_interval=0.0)
        session = _session(scheduler=scheduler)
        probe = session.add_probe(detect=False)
        assert isinstance(probe, Probe)
        for value in (0.1, 0.2, 0.3, 0.4):
            session.set_sensitivity(value, probe_id=probe.id)
        pending = scheduler.pending_keys
        await asyncio.sleep(0.01)
        return scheduler, session, probe.id, pending

    scheduler, session, probe_id, pending = asyncio.run(scenario())
    assert pending == [probe_id]
    assert scheduler.frames_run == 1
    assert scheduler.pending_keys == []
    assert session.last_results[probe_id].threshold == pytest.approx(detection_threshold(255.0, 0.4))


def test_global_edit_supersedes_probe_requests() -> None:
    scheduler = DetectionScheduler()
    session = _session(scheduler=scheduler)
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    assert scheduler.pending_keys == [probe.id]
    session.set_band(3)
    assert scheduler.pending_keys == [ALL_PROBES_KEY]
    assert session.get_probe(probe.id).automatic_y is None  # type: ignore[union-attr]
    assert scheduler.flush() == 1
    assert session.get_probe(probe.id).automatic_y is not None  # type: ignore[union-attr]


def test_scheduled_run_reads_state_at_execution() -> None:
    scheduler = DetectionScheduler()
    session = _session(scheduler=scheduler, labels=("a",))
    session.add_probe()
    session.set_labels(["a", "b", "c"])
    scheduler.flush()
    assert len(session.probes[0].automatic_y or []) == 3


def test_probe_edit_after_global_edit_detects_once_per_frame() -> None:
    scheduler = DetectionScheduler()
    session = _session(scheduler=scheduler)
    probe = session.add_probe(detect=False)
    assert isinstance(probe, Probe)
    runs: list[str] = []
    detect_now = session.detect_now

    def counting_detect(probe_id: str):
        runs.append(probe_id)
        return detect_now(probe_id)

    session.detect_now = counting_detect  # type: ignore[method-assign]
    session.set_band(3)
    session.set_sensitivity(0.2, probe_id=probe.id)
    scheduler.flush()
    assert runs == [probe.id]
    assert session.last_results[probe.id].threshold == pytest.approx(detection_threshold(255.0, 0.2))


def test_label_reorder_without_image_keeps_values_with_their_labels() -> None:
    image = blank_chart()
    draw_hline(image, 30)
    draw_hline(image, 70)
    session = _session(image=image, labels=("a", "b"))
    probe = session.add_probe()
    assert isinstance(probe, Probe)
    a, b = session.merged(probe.id)
    session.set_image(None)

    session.set_labels(["b", "a"])
    assert session.merged(probe.id) == [b, a]

    session.set_labels(["c", "a"])
    assert session.merged(probe.id) == [None, a]
    assert session.table()[1][1:] == [None, round(a, 3)]  # type: ignore[arg-type]
