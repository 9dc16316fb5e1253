import json

import pytest

from probe_digitizer import config
from probe_digitizer.models import JobSpec, ProcessingError, ProcessingStage
from probe_digitizer.pipeline import JobOutput, load_job, run_job
from tests.synthetic import blank_mask, expected_y, paint_mask_rows, write_job, write_mask


def test_load_job_missing(tmp_path) -> None:
    err = load_job(tmp_path / "missing.json")
    assert isinstance(err, ProcessingError)
    assert err.error_type == "file_not_found"


def test_load_job_bad_json(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("{not json")
    err = load_job(path)
    assert isinstance(err, ProcessingError)
    assert err.error_type == "job_unreadable"


def test_load_job_invalid_schema(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"calibration": {}}))
    err = load_job(path)
    assert isinstance(err, ProcessingError)
    assert err.error_type == "job_invalid"
    assert err.details["errors"]


def test_load_job_valid(tmp_path) -> None:
    job = load_job(write_job(tmp_path))
    assert isinstance(job, JobSpec)
    assert job.labels.labels == ["a"]


def test_run_job_single_stroke(tmp_path) -> None:
    out = run_job(write_job(tmp_path))
    assert isinstance(out, JobOutput)
    assert out.errors == []
    assert len(out.probes) == 1
    value = out.probes[0].values[0]
    assert value is not None and abs(value - 30.0) <= 0.5 + 1e-9
    assert out.table[0] == ["X", "a"]
    assert out.probes[0].tiers == ["threshold_peak"]


def test_run_job_generated_probes_and_manual(tmp_path) -> None:
    job_path = write_job(
        tmp_path,
        probes=[{"x_data": 15, "manual": {"a": 42.0, "ghost": 1.0}}],
        generate={"start": 0, "end": 30, "interval": 10},
    )
    out = run_job(job_path)
    assert isinstance(out, JobOutput)
    assert [p.x_data for p in out.probes] == [0.0, 10.0, 15.0, 20.0, 30.0]
    manual = next(p for p in out.probes if p.x_data == 15.0)
    assert manual.values == [42.0]
    assert manual.manual == {"a": 42.0}
    assert out.fits["a"].n == 5

    cleared = run_job(job_path, clear_manual=True)
    assert isinstance(cleared, JobOutput)
    restored = next(p for p in cleared.probes if p.x_data == 15.0)
    assert restored.manual == {}
    assert restored.values[0] != 42.0


def test_run_job_strategy_override(tmp_path) -> None:
    job_path = write_job(tmp_path, stroke_rows=(30, 70), labels=["a", "b"])
    out = run_job(job_path, strategy="sorted")
    assert isinstance(out, JobOutput)
    assert out.probes[0].values == pytest.approx([expected_y(30), expected_y(70)])
    assert out.probes[0].tiers == ["sorted", "sorted"]


def test_run_job_with_mask(tmp_path) -> None:
    pixels = blank_mask()
    paint_mask_rows(pixels, (10, 20), (255, 0, 0))
    paint_mask_rows(pixels, (60, 70), (0, 0, 255))
    mask_path = write_mask(tmp_path, pixels)
    labels = {"labels": ["a", "b"], "colors": {"a": "#ff0000", "b": "#0000ff"}}
    job_path = write_job(tmp_path, labels=labels)
    out = run_job(job_path, mask_path=mask_path)
    assert isinstance(out, JobOutput)
    a, b = out.probes[0].values
    assert a is not None and expected_y(20) <= a <= expected_y(10)
    assert b is not None and expected_y(70) <= b <= expected_y(60)


def test_run_job_uncalibrated_reports_error(tmp_path) -> None:
    job_path = write_job(tmp_path)
    payload = json.loads(job_path.read_text())
    payload["calibration"]["y2"]["pixel"] = None
    job_path.write_text(json.dumps(payload))
    out = run_job(job_path)
    assert isinstance(out, JobOutput)
    assert out.probes == []
    assert out.errors[0].stage == ProcessingStage.CALIBRATE
    assert not out.errors[0].recoverable


def test_run_job_missing_image(tmp_path) -> None:
    job_path = write_job(tmp_path)
    (tmp_path / "job.png").unlink()
    err = run_job(job_path)
    assert isinstance(err, ProcessingError)
    assert err.error_type == "file_not_found"


def test_mask_size_mismatch_warns(tmp_path) -> None:
    mask_path = write_mask(tmp_path, blank_mask(width=50, height=50))
    out = run_job(write_job(tmp_path), mask_path=mask_path)
    assert isinstance(out, JobOutput)
    assert "W_MASK_SIZE_MISMATCH:50x50" in out.warnings


def test_overlay_written(tmp_path) -> None:
    overlay = tmp_path / "overlay.png"
    out = run_job(write_job(tmp_path), overlay_path=overlay)
    assert isinstance(out, JobOutput)
    assert overlay.exists()
    assert not any(w.startswith("W_DEBUG") for w in out.warnings)


def test_debug_env_writes_overlay(tmp_path, monkeypatch) -> None:
    debug_dir = tmp_path / "debug"
    monkeypatch.setenv(config.DEBUG_ENV, "1")
    monkeypatch.setenv(config.DEBUG_DIR_ENV, str(debug_dir))
    run_job(write_job(tmp_path))
    assert (debug_dir / "job_overlay.png").exists()
