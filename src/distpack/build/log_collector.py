"""Structured log collection for packaging runs.

Every run writes a self-contained ``{log_dir}/{run_id}/`` directory that can
be archived as a CI artifact::

    {log_dir}/{run_id}/
    ├── summary.json                 PipelineResult without attempt logs
    └── attempts/
        ├── 01-primary-strict.log
        ├── 02-primary-relaxed.log
        └── ...

Directory-per-run means repeated runs in the same workspace never collide.
"""

from __future__ import annotations

from pathlib import Path

from distpack.build.results import AttemptResult, PipelineResult
from distpack.core.logging import get_logger

logger = get_logger(__name__)


class LogCollector:
    """Collects attempt logs and the run summary.

    Parameters
    ----------
    log_dir
        Base directory for output.
    run_id
        Unique run identifier.
    """

    def __init__(self, log_dir: Path, run_id: str) -> None:
        self.run_dir = Path(log_dir) / run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id

    def attempts_dir(self) -> Path:
        """Get or create the directory for attempt logs."""
        d = self.run_dir / "attempts"
        d.mkdir(parents=True, exist_ok=True)
        return d

    def save_attempt(self, index: int, attempt: AttemptResult) -> Path:
        """Write the captured output of one attempt."""
        path = self.attempts_dir() / f"{index:02d}-{attempt.strategy}.log"
        header = (
            f"# strategy={attempt.strategy} runtime={attempt.runtime} "
            f"mode={attempt.mode.value} status={attempt.status.value} "
            f"exit_code={attempt.exit_code}\n"
        )
        if attempt.error:
            header += f"# error={attempt.error}\n"
        path.write_text(header + attempt.logs, encoding="utf-8")
        logger.debug("attempt.log_saved", path=str(path))
        return path

    def write_summary(self, result: PipelineResult) -> Path:
        """Write machine-readable summary JSON (attempt logs live in their own files)."""
        path = self.run_dir / "summary.json"
        path.write_text(
            result.model_dump_json(indent=2, exclude={"attempts": {"__all__": {"logs"}}}),
            encoding="utf-8",
        )
        logger.info("summary.written", path=str(path))
        return path
