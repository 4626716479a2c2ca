"""Tests for engine.batch — one job per file on a worker pool."""

import pytest
from PIL import Image

from config import BatchConfig
from conftest import negative_frame, write_png
from engine.batch import BatchResult, BatchRunner
from engine.job import ImageJob, JobStatus


def _runner(input_dir, output_dir, **kwargs):
    return BatchRunner(BatchConfig(input_dir=input_dir, output_dir=output_dir, **kwargs))


@pytest.mark.smoke
def test_converts_every_supported_file(negatives, output_dir):
    result = _runner(negatives, output_dir, workers=2).run()

    assert result.ok
    assert result.succeeded == 3
    assert result.failed == 0
    names = sorted(p.name for p in output_dir.iterdir())
    assert names == ["changed_roll1_01.png", "changed_roll1_02.JPG", "changed_roll1_03.tif"]
    for p in output_dir.iterdir():
        with Image.open(p) as img:
            assert img.format == "TIFF"


def test_output_dir_created(negatives, tmp_path):
    out = tmp_path / "deep" / "out"
    result = _runner(negatives, out, workers=1).run()
    assert result.succeeded == 3
    assert out.is_dir()


def test_no_images_returns_empty_result(input_dir, output_dir, caplog):
    (input_dir / "readme.md").write_text("nothing here")
    with caplog.at_level("INFO", logger="engine.batch"):
        result = _runner(input_dir, output_dir).run()
    assert result.jobs == []
    assert result.ok
    assert not output_dir.exists()
    assert any("No image files found" in r.getMessage() for r in caplog.records)


def test_missing_input_dir_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        _runner(tmp_path / "nope", tmp_path / "out").run()


def test_one_failure_does_not_affect_others(negatives, output_dir):
    (negatives / "roll1_04.png").write_bytes(b"garbage")
    result = _runner(negatives, output_dir, workers=4).run()

    assert result.succeeded == 3
    assert result.failed == 1
    assert not result.ok
    summary = result.summary()
    assert summary["total"] == 4
    assert list(summary["failures"]) == ["roll1_04.png"]
    assert summary["failures"]["roll1_04.png"].startswith("DecodeError")
    assert not (output_dir / "changed_roll1_04.png").exists()


def test_symlinked_negative_is_converted(input_dir, output_dir, tmp_path):
    store = tmp_path / "store"
    store.mkdir()
    write_png(store / "a.png", negative_frame())
    (input_dir / "a.png").symlink_to(store / "a.png")

    result = _runner(input_dir, output_dir, workers=1).run()

    assert result.ok
    assert result.succeeded == 1
    assert (output_dir / "changed_a.png").is_file()


def test_save_inverted_writes_both(negatives, output_dir):
    result = _runner(negatives, output_dir, workers=2, save_inverted=True).run()
    assert result.succeeded == 3
    names = {p.name for p in output_dir.iterdir()}
    assert "inverted_roll1_01.png" in names
    assert "changed_roll1_01.png" in names
    assert len(names) == 6


def test_cancel_before_run_cancels_all(negatives, output_dir):
    runner = _runner(negatives, output_dir, workers=2)
    runner.cancel()
    result = runner.run()
    assert result.cancelled == 3
    assert not result.ok
    assert list(output_dir.iterdir()) == []


def test_cancel_skips_finished_jobs(negatives, output_dir):
    runner = _runner(negatives, output_dir, workers=1)
    result = runner.run()
    assert runner.cancel() == 0
    assert result.succeeded == 3


def test_jobs_property_is_snapshot(negatives, output_dir):
    runner = _runner(negatives, output_dir, workers=1)
    runner.run()
    jobs = runner.jobs
    jobs.clear()
    assert len(runner.jobs) == 3


def test_many_images_with_many_workers(input_dir, output_dir):
    for i in range(12):
        write_png(input_dir / f"frame_{i:02d}.png", negative_frame(h=16, w=16, seed=i))
    result = _runner(input_dir, output_dir, workers=6).run()
    assert result.succeeded == 12
    assert all(j.status == JobStatus.ENCODED for j in result.jobs)


def test_batch_result_counts():
    a = ImageJob("a.png", "out/a.png", status=JobStatus.ENCODED)
    b = ImageJob("b.png", "out/b.png", status=JobStatus.FAILED, error="DecodeError: x")
    c = ImageJob("c.png", "out/c.png", status=JobStatus.CANCELLED)
    result = BatchResult(jobs=[a, b, c])
    assert (result.succeeded, result.failed, result.cancelled) == (1, 1, 1)
    assert result.failures() == [b]
    assert result.summary()["failures"] == {"b.png": "DecodeError: x"}
