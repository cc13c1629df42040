"""Tests for distpack.build.log_collector."""

from __future__ import annotations

import json
from pathlib import Path

from distpack.build.log_collector import LogCollector
from distpack.build.results import AttemptResult, AttemptStatus, InvocationMode, PipelineResult


def _attempt(**overrides) -> AttemptResult:
    fields = dict(
        strategy="primary-strict",
        runtime="docker",
        mode=InvocationMode.STRICT,
        status=AttemptStatus.RECOVERABLE,
        exit_code=1,
        logs="==> ERROR: A failure occurred in build().\n",
    )
    fields.update(overrides)
    return AttemptResult(**fields)


class TestLogCollector:
    def test_run_dir_created(self, tmp_path: Path):
        collector = LogCollector(tmp_path / "logs", "run123")
        assert collector.run_dir == tmp_path / "logs" / "run123"
        assert collector.run_dir.is_dir()

    def test_save_attempt(self, tmp_path: Path):
        collector = LogCollector(tmp_path, "run123")
        path = collector.save_attempt(1, _attempt())
        assert path == tmp_path / "run123" / "attempts" / "01-primary-strict.log"
        content = path.read_text()
        assert content.startswith("# strategy=primary-strict runtime=docker mode=strict")
        assert "status=RECOVERABLE exit_code=1" in content
        assert content.endswith("A failure occurred in build().\n")

    def test_save_attempt_with_error(self, tmp_path: Path):
        collector = LogCollector(tmp_path, "run123")
        path = collector.save_attempt(
            3, _attempt(strategy="secondary-strict", exit_code=None, logs="", error="podman missing")
        )
        assert path.name == "03-secondary-strict.log"
        assert "# error=podman missing\n" in path.read_text()

    def test_write_summary_excludes_logs(self, tmp_path: Path):
        collector = LogCollector(tmp_path, "run123")
        result = PipelineResult(run_id="run123", attempts=[_attempt()], diagnostics=["x"])
        result.mark_complete(False)

        path = collector.write_summary(result)
        data = json.loads(path.read_text())
        assert path.name == "summary.json"
        assert data["run_id"] == "run123"
        assert data["succeeded"] is False
        assert data["diagnostics"] == ["x"]
        assert data["attempts"][0]["strategy"] == "primary-strict"
        assert "logs" not in data["attempts"][0]
