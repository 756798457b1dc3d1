"""Tests for pipeline/logging.py -- per-step log files and skip accounting."""
import json
import logging
import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.logging import PipelineLogger, SkipRecord, StepReport


class TestStepReport:
    def test_add_skip_counts(self):
        r = StepReport("load")
        r.add_skip("error_skip", "missing state code", item="districts.csv")
        r.add_skip("error_skip", "bad number")
        r.add_skip("cache_hit", "served from cache", item="FY2020")
        assert r.items_skipped == 3
        assert r.skip_counts_by_category() == {"error_skip": 2, "cache_hit": 1}

    def test_skip_record_omits_empty_item(self):
        assert SkipRecord("missing_data", "no margin").to_dict() == {
            "category": "missing_data", "detail": "no margin"}

    def test_console_summary(self):
        r = StepReport("fetch", items_processed=1200)
        r.add_skip("cache_hit", "served from cache")
        r.metrics["president_points"] = 51
        line = r.console_summary()
        assert "1,200 processed" in line
        assert "1 skipped (1 cache hit)" in line
        assert "president_points: 51" in line

    def test_console_summary_empty(self):
        assert StepReport("x").console_summary() == "no activity"

    def test_to_dict(self):
        r = StepReport("analyze", status="completed")
        r.add_error("boom")
        d = r.to_dict()
        assert d["status"] == "completed"
        assert d["errors"] == ["boom"]
        assert "skips" not in d

    def test_concurrent_skips_all_counted(self):
        r = StepReport("fetch")

        def record(worker):
            for i in range(500):
                r.add_skip("cache_hit", "served from cache", item=f"{worker}-{i}")

        threads = [threading.Thread(target=record, args=(w,)) for w in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert r.items_skipped == 4000
        assert r.skip_counts_by_category() == {"cache_hit": 4000}

    def test_add_error_counted(self):
        r = StepReport("load")
        r.add_error("first")
        r.add_error("second")
        assert r.items_errored == 2
        assert "2 errors" in r.console_summary()

    def test_summary_lines_truncate_errors(self):
        r = StepReport("fetch", status="failed")
        for i in range(25):
            r.add_error(f"e{i}")
        lines = r.summary_lines()
        assert "    - e19" in lines
        assert "    - e20" not in lines
        assert "    ... and 5 more" in lines


class TestPipelineLogger:
    def test_step_log_and_summary(self, tmp_path):
        pl = PipelineLogger(logs_dir=tmp_path)
        report = pl.start_step("load")
        logging.getLogger("pipeline.reference").warning("sample line")
        report.add_skip("dependency_skip", "IIJA snapshot not found")
        pl.finish_step("load", report)
        path = pl.write_summary()

        log_text = (pl.run_dir / "load.log").read_text(encoding="utf-8")
        assert "sample line" in log_text
        assert "STEP SUMMARY: load" in log_text
        assert "dependency_skip: 1" in log_text

        summary = json.loads(path.read_text())
        assert summary["steps"]["load"]["status"] == "completed"
        assert path == pl.summary_path

    def test_handler_detached(self, tmp_path):
        pl = PipelineLogger(logs_dir=tmp_path)
        pl.start_step("fetch")
        before = len(logging.getLogger().handlers)
        pl.finish_step("fetch")
        assert len(logging.getLogger().handlers) == before - 1

    def test_failed_step(self, tmp_path):
        pl = PipelineLogger(logs_dir=tmp_path)
        pl.start_step("fetch")
        report = pl.finish_step("fetch", failed=True)
        assert report.status == "failed"
        summary = json.loads(pl.write_summary().read_text())
        assert summary["steps"]["fetch"]["status"] == "failed"

    def test_step_context_completes(self, tmp_path):
        pl = PipelineLogger(logs_dir=tmp_path)
        with pl.step("load") as report:
            report.items_processed = 5
        assert report.status == "completed"
        assert report.elapsed_seconds >= 0

    def test_step_context_records_error_and_reraises(self, tmp_path):
        pl = PipelineLogger(logs_dir=tmp_path)
        before = len(logging.getLogger().handlers)
        with pytest.raises(ValueError):
            with pl.step("load"):
                raise ValueError("states_50.json: invalid JSON")
        assert len(logging.getLogger().handlers) == before

        step = json.loads(pl.write_summary().read_text())["steps"]["load"]
        assert step["status"] == "failed"
        assert step["items_errored"] == 1
        assert step["errors"] == ["ValueError: states_50.json: invalid JSON"]
        log_text = (pl.run_dir / "load.log").read_text(encoding="utf-8")
        assert "Errors:    1" in log_text
        assert "ValueError: states_50.json" in log_text

    def test_args_recorded(self, tmp_path):
        pl = PipelineLogger(logs_dir=tmp_path)
        pl.args_dict = {"workers": 4}
        summary = json.loads(pl.write_summary().read_text())
        assert summary["args"] == {"workers": 4}
