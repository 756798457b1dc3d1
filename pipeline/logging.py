"""
Analysis-run logging: one log file per step, plus a JSON run summary.

Each run gets a directory ``logs/analysis/<run-id>/`` holding ``<step>.log``
for every step and ``summary.json`` at the end.  Steps report what they
processed and skipped through a StepReport; the fetch step shares its report
with the worker threads, so recording is locked.

    pl = PipelineLogger()
    with pl.step("load") as report:
        inputs = load_inputs(paths, report)
    pl.write_summary()

Skip categories:
    error_skip        -- a row was unusable (missing state, bad number)
    missing_data      -- a state lacks a value and is left out of a view
    cache_hit         -- a fiscal year was served from the obligation cache
    dependency_skip   -- an optional input is absent (e.g. no IIJA snapshot)
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

_LOG_FORMAT = "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s"
_MAX_LOGGED_ERRORS = 20


@dataclass
class SkipRecord:
    category: str
    detail: str
    item: str = ""         # file name, state code or fiscal year

    def to_dict(self) -> dict[str, str]:
        d = {"category": self.category, "detail": self.detail}
        if self.item:
            d["item"] = self.item
        return d


@dataclass
class StepReport:
    """What one step processed, skipped and failed on.

    ``add_skip`` and ``add_error`` may be called from several threads.
    """

    step_name: str
    status: str = "not_started"               # started | completed | failed
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    detail: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def items_skipped(self) -> int:
        return len(self.skips)

    @property
    def items_errored(self) -> int:
        return len(self.errors)

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        with self._lock:
            self.skips.append(SkipRecord(category=category, detail=detail, item=item))

    def add_error(self, message: str) -> None:
        with self._lock:
            self.errors.append(message)

    def skip_counts_by_category(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(s.category for s in self.skips))

    def console_summary(self) -> str:
        """One line for the terminal, e.g. ``5 processed | 2 skipped (2 cache hit)``."""
        parts: list[str] = []
        if self.items_processed:
            parts.append(f"{self.items_processed:,} processed")
        if self.skips:
            cats = ", ".join(f"{n} {cat.replace('_', ' ')}"
                             for cat, n in sorted(self.skip_counts_by_category().items()))
            parts.append(f"{self.items_skipped:,} skipped ({cats})")
        if self.errors:
            parts.append(f"{self.items_errored:,} errors")
        if self.detail:
            parts.append(self.detail)
        for key, val in self.metrics.items():
            if isinstance(val, float):
                parts.append(f"{key}: {val:.3f}")
            elif isinstance(val, int) and not isinstance(val, bool):
                parts.append(f"{key}: {val:,}")
            else:
                parts.append(f"{key}: {val}")
        return " | ".join(parts) or "no activity"

    def summary_lines(self) -> list[str]:
        """Block appended to the step's log file when the step finishes."""
        lines = [
            "=" * 60,
            f"STEP SUMMARY: {self.step_name}",
            f"  Status:    {self.status}",
            f"  Elapsed:   {self.elapsed_seconds:.1f}s",
            f"  Processed: {self.items_processed}",
            f"  Skipped:   {self.items_skipped}",
            f"  Errors:    {self.items_errored}",
        ]
        counts = self.skip_counts_by_category()
        if counts:
            lines.append("  Skip breakdown:")
            lines.extend(f"    {cat}: {n}" for cat, n in sorted(counts.items()))
        if self.errors:
            lines.append("  Error details:")
            lines.extend(f"    - {err}" for err in self.errors[:_MAX_LOGGED_ERRORS])
            if len(self.errors) > _MAX_LOGGED_ERRORS:
                lines.append(f"    ... and {len(self.errors) - _MAX_LOGGED_ERRORS} more")
        lines.append("=" * 60)
        return lines

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "step_name": self.step_name,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "metrics": self.metrics,
        }
        if self.detail:
            d["detail"] = self.detail
        if self.skips:
            d["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            d["errors"] = list(self.errors)
        return d


class PipelineLogger:
    """Per-run directory of step logs under *logs_dir*."""

    def __init__(self, logs_dir: Path | str = "logs/analysis") -> None:
        self.logs_root = Path(logs_dir)
        self.run_id = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.run_dir = self.logs_root / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.args_dict: dict[str, Any] = {}

        self._started = time.monotonic()
        self._open: dict[str, tuple[logging.FileHandler, float]] = {}
        self._reports: dict[str, StepReport] = {}

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"

    def start_step(self, step_name: str) -> StepReport:
        """Attach ``<step_name>.log`` to the root logger and return a fresh report."""
        handler = logging.FileHandler(self.run_dir / f"{step_name}.log", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%H:%M:%S"))
        logging.getLogger().addHandler(handler)
        self._open[step_name] = (handler, time.monotonic())

        report = StepReport(step_name=step_name, status="started")
        self._reports[step_name] = report
        return report

    def finish_step(self, step_name: str, report: StepReport | None = None,
                    failed: bool = False) -> StepReport:
        """Close the step's log (appending its summary block) and record the report."""
        handler, started = self._open.pop(step_name, (None, self._started))
        report = report or self._reports.get(step_name) or StepReport(step_name)
        report.elapsed_seconds = time.monotonic() - started
        if failed:
            report.status = "failed"
        elif report.status == "started":
            report.status = "completed"
        self._reports[step_name] = report

        if report.skips or report.errors:
            print(f"  [{step_name}] {report.console_summary()}", flush=True)

        if handler is not None:
            handler.stream.write("\n" + "\n".join(report.summary_lines()) + "\n")
            handler.close()
            logging.getLogger().removeHandler(handler)
        return report

    @contextmanager
    def step(self, step_name: str) -> Iterator[StepReport]:
        """Run a step; an exception is recorded on the report, then re-raised."""
        report = self.start_step(step_name)
        try:
            yield report
        except Exception as e:
            report.add_error(f"{type(e).__name__}: {e}")
            self.finish_step(step_name, report, failed=True)
            raise
        self.finish_step(step_name, report)

    def write_summary(self) -> Path:
        """Write ``summary.json`` for the whole run."""
        summary = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_elapsed_seconds": round(time.monotonic() - self._started, 2),
            "args": self.args_dict,
            "steps": {name: rpt.to_dict() for name, rpt in self._reports.items()},
        }
        path = self.summary_path
        with open(path, "w") as f:
            json.dump(summary, f, indent=2, default=str)
        return path
