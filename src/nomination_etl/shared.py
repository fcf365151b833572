"""nomination_etl.shared

Run plumbing shared by the restore pipeline: counters, the rejects CSV
writer, and the JSON run report.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NamedTuple

DEFAULT_REPORTS_DIR = Path("./artifacts/reports")


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

REJECT_REASON_COLUMN = "_reject_reason"

REJECT_FIELDNAMES = (
    "line_number",
    "district",
    "constituency_number",
    "party_name",
    "candidate_name",
    REJECT_REASON_COLUMN,
)


class RejectWriter:
    """CSV of rejected source lines, one row per errored line.

    The file is only created once the first line is rejected, so a clean
    run leaves nothing behind.  Columns are fixed; missing values are blank.
    """

    def __init__(self, path: Path, fieldnames: tuple[str, ...] = REJECT_FIELDNAMES) -> None:
        self._path = path
        self._fieldnames = fieldnames
        self._fh = None
        self._writer: csv.DictWriter | None = None

    def _open(self) -> csv.DictWriter:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self._path, "w", newline="", encoding="utf-8")
        writer = csv.DictWriter(self._fh, fieldnames=self._fieldnames, extrasaction="ignore")
        writer.writeheader()
        return writer

    def write(self, row: dict[str, Any], reason: str) -> None:
        if self._writer is None:
            self._writer = self._open()
        self._writer.writerow({**row, REJECT_REASON_COLUMN: reason})
        self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
        self._fh = None
        self._writer = None


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

class RestoreSummary(NamedTuple):
    restored: int
    skipped: int
    errors: int


@dataclass
class RunCounters:
    lines_read: int = 0
    lines_ignored: int = 0
    restored: int = 0
    skipped: int = 0
    errors: int = 0
    # Error breakdown; these sum to `errors`
    unknown_regions: int = 0
    unresolved_constituencies: int = 0
    insert_failures: int = 0
    unexpected_errors: int = 0
    existing_candidates_loaded: int = 0
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> RestoreSummary:
        return RestoreSummary(self.restored, self.skipped, self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lines_read": self.lines_read,
            "lines_ignored": self.lines_ignored,
            "restored": self.restored,
            "skipped": self.skipped,
            "errors": self.errors,
            "unknown_regions": self.unknown_regions,
            "unresolved_constituencies": self.unresolved_constituencies,
            "insert_failures": self.insert_failures,
            "unexpected_errors": self.unexpected_errors,
            "existing_candidates_loaded": self.existing_candidates_loaded,
            "warnings": self.warnings,
        }


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    dry_run: bool,
    source_paths: dict[str, str],
    counters: RunCounters,
    reports_dir: Path = DEFAULT_REPORTS_DIR,
) -> Path:
    report = {
        "run_id": run_id,
        "mode": "restore_candidates",
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        **source_paths,
        "counters": counters.to_dict(),
    }
    report_path = reports_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str, ensure_ascii=False), encoding="utf-8")
    return report_path
