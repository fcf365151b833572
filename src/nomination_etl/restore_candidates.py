"""nomination_etl.restore_candidates

Restore candidates that are present in the nominations CSV but missing from
the candidate store.  Existing candidates are never duplicated, updated or
deleted.

Processing order:
  1.  Open the CSV and discard the header line (unreadable file is fatal)
  2.  Load the (name, party_name, constituency_id) index of existing candidates
  3.  For each data line, in file order:
      a.  Parse; blank / short lines are ignored (not counted as errors)
      b.  district name          -> district id      (fixed YAML table)
      c.  constituency number    -> constituency id  (substring lookup)
      d.  key already indexed    -> skipped
      e.  otherwise insert       -> restored, key added to the index
  4.  Print the summary and write the JSON run report

Every insert is committed on its own; a failed insert is reported and not
retried.

Usage (PostgreSQL):
    python -m nomination_etl.restore_candidates \\
        --csv-path source_data/candidates_2082.csv \\
        --db-dsn "$DB_DSN"

Usage (hosted PostgREST / Supabase):
    SUPABASE_URL=... SUPABASE_KEY=... \\
    python -m nomination_etl.restore_candidates \\
        --store rest \\
        --csv-path source_data/candidates_2082.csv
"""

from __future__ import annotations

import enum
import logging
import os
import sys
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

import click

from nomination_etl.candidate_index import ExistingCandidateIndex
from nomination_etl.constituencies import ConstituencyResolver
from nomination_etl.normalize import SourceRecord, parse_source_line
from nomination_etl.regions import (
    DEFAULT_REGION_TABLE_PATH,
    RegionResolver,
    RegionTable,
    RegionTableValidationError,
    load_region_table,
)
from nomination_etl.shared import RejectWriter, RunCounters, write_run_report
from nomination_etl.store import (
    CANDIDATES_TABLE,
    PostgresRecordStore,
    RecordStore,
    RestRecordStore,
)

log = logging.getLogger(__name__)

# The header occupies line 1; data lines are numbered from 2.
FIRST_DATA_LINE = 2


class LineOutcome(str, enum.Enum):
    RESTORED = "restored"
    SKIPPED = "skipped"
    ERRORED = "errored"
    IGNORED = "ignored"


def _reject_row(line_number: int, record: SourceRecord) -> dict[str, str]:
    return {
        "line_number": str(line_number),
        "district": record.district_name,
        "constituency_number": record.constituency_number,
        "party_name": record.party_name,
        "candidate_name": record.candidate_name,
    }


# ---------------------------------------------------------------------------
# Per-line processing
# ---------------------------------------------------------------------------

class CandidateRestorer:
    """Owns the resolvers and the existing-candidate index for one run."""

    def __init__(
        self,
        store: RecordStore,
        regions: RegionResolver,
        index: ExistingCandidateIndex,
        counters: RunCounters,
        rejects: RejectWriter | None = None,
        dry_run: bool = False,
    ) -> None:
        self._store = store
        self._regions = regions
        self._constituencies = ConstituencyResolver(store)
        self._index = index
        self._counters = counters
        self._rejects = rejects
        self._dry_run = dry_run

    def _reject(self, line_number: int, record: SourceRecord, reason: str) -> LineOutcome:
        self._counters.errors += 1
        if self._rejects is not None:
            self._rejects.write(_reject_row(line_number, record), reason)
        return LineOutcome.ERRORED

    def process_line(self, line: str, line_number: int) -> LineOutcome:
        self._counters.lines_read += 1
        record = parse_source_line(line)
        if record is None:
            self._counters.lines_ignored += 1
            log.debug("Line %d ignored (blank or too few fields)", line_number)
            return LineOutcome.IGNORED

        try:
            return self._process_record(record, line_number)
        except Exception as exc:
            log.exception("Line %d failed unexpectedly", line_number)
            self._counters.unexpected_errors += 1
            return self._reject(line_number, record, f"unexpected_error: {exc}")

    def _process_record(self, record: SourceRecord, line_number: int) -> LineOutcome:
        district_id = self._regions.resolve(record.district_name)
        if district_id is None:
            log.warning("Unknown district: %s", record.district_name)
            self._counters.unknown_regions += 1
            return self._reject(line_number, record, "unknown_region")

        constituency_id = self._constituencies.resolve(district_id, record.constituency_number)
        if constituency_id is None:
            log.warning(
                "Constituency not found: %s - %s",
                record.district_name, record.constituency_number,
            )
            self._counters.unresolved_constituencies += 1
            return self._reject(line_number, record, "unresolved_constituency")

        name, party = record.candidate_name, record.party_name
        if self._index.contains(name, party, constituency_id):
            log.info("Already exists: %s (%s)", name, party)
            self._counters.skipped += 1
            return LineOutcome.SKIPPED

        if not self._dry_run:
            result = self._store.insert(
                CANDIDATES_TABLE,
                {"name": name, "party_name": party, "constituency_id": constituency_id},
            )
            if not result.ok:
                log.error("Error inserting %s: %s", name, result.error)
                self._counters.insert_failures += 1
                return self._reject(line_number, record, f"insert_failed: {result.error}")

        log.info("%s: %s (%s)", "Would restore" if self._dry_run else "Restored", name, party)
        self._counters.restored += 1
        self._index.add(name, party, constituency_id)
        return LineOutcome.RESTORED


def restore_lines(
    lines: Iterable[str],
    store: RecordStore,
    region_table: RegionTable,
    counters: RunCounters | None = None,
    rejects: RejectWriter | None = None,
    index: ExistingCandidateIndex | None = None,
    dry_run: bool = False,
    first_line_number: int = FIRST_DATA_LINE,
) -> RunCounters:
    """Reconcile data lines (header already removed) against the store.

    The existing-candidate index is built from the store unless one is
    passed in.  Returns the counters; counters.summary() gives the
    (restored, skipped, errors) triple.
    """
    counters = counters if counters is not None else RunCounters()
    if index is None:
        index = ExistingCandidateIndex.build_or_empty(store, counters.warnings)
    counters.existing_candidates_loaded = len(index)

    restorer = CandidateRestorer(
        store, RegionResolver(region_table), index, counters, rejects, dry_run
    )
    for offset, line in enumerate(lines):
        restorer.process_line(line, first_line_number + offset)
    return counters


def run_restore(
    csv_path: Path,
    store: RecordStore,
    region_table: RegionTable,
    counters: RunCounters,
    rejects: RejectWriter | None = None,
    dry_run: bool = False,
) -> RunCounters:
    """Stream csv_path through restore_lines().

    Undecodable bytes are replaced with U+FFFD, so a damaged line fails its
    own lookups instead of aborting the run.  Raises OSError if the file
    cannot be opened; nothing has been read from or written to the store at
    that point.
    """
    with csv_path.open(encoding="utf-8-sig", errors="replace") as fh:
        fh.readline()
        index = ExistingCandidateIndex.build_or_empty(store, counters.warnings)
        log.info("Found %d candidates in database", len(index))
        return restore_lines(
            fh, store, region_table,
            counters=counters, rejects=rejects, index=index, dry_run=dry_run,
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _open_store(
    store_kind: str,
    db_dsn: str | None,
    rest_url_env: str,
    rest_key_env: str,
    run_id: str,
) -> PostgresRecordStore | RestRecordStore:
    if store_kind == "postgres":
        if not db_dsn:
            click.echo(f"[{run_id}] FATAL: --db-dsn (or DB_DSN) is required for --store postgres", err=True)
            sys.exit(1)
        return PostgresRecordStore.connect(db_dsn)

    # Read credentials from env, never from CLI args
    base_url = os.environ.get(rest_url_env, "")
    api_key = os.environ.get(rest_key_env, "")
    if not base_url or not api_key:
        click.echo(
            f"[{run_id}] FATAL: env vars {rest_url_env} and {rest_key_env} must be set",
            err=True,
        )
        sys.exit(1)
    return RestRecordStore(base_url, api_key)


@click.command()
@click.option("--csv-path", required=True, type=click.Path(), help="Nominations CSV (header + one candidate per line)")
@click.option(
    "--store",
    "store_kind",
    default="postgres",
    type=click.Choice(["postgres", "rest"]),
    show_default=True,
    help="Candidate store backend",
)
@click.option("--db-dsn", default=None, envvar="DB_DSN", help="[postgres] PostgreSQL DSN")
@click.option("--rest-url-env", default="SUPABASE_URL", show_default=True, help="[rest] Env var name holding the project URL")
@click.option("--rest-key-env", default="SUPABASE_KEY", show_default=True, help="[rest] Env var name holding the API key")
@click.option(
    "--region-table",
    default=str(DEFAULT_REGION_TABLE_PATH),
    type=click.Path(),
    show_default=True,
    help="YAML district name -> id table",
)
@click.option(
    "--rejects-path",
    default="./artifacts/rejects/restore_candidates_rejects.csv",
    show_default=True,
)
@click.option("--reports-dir", default="./artifacts/reports", type=click.Path(), show_default=True)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--dry-run", is_flag=True, default=False, help="Resolve and count, but insert nothing")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
)
def main(
    csv_path: str,
    store_kind: str,
    db_dsn: str | None,
    rest_url_env: str,
    rest_key_env: str,
    region_table: str,
    rejects_path: str,
    reports_dir: str,
    run_id: str | None,
    dry_run: bool,
    log_level: str,
) -> None:
    """Restore candidates missing from the store."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()
    counters = RunCounters()

    click.echo(f"[{run_id}] Starting restore_candidates run (dry_run={dry_run})")

    try:
        table = load_region_table(Path(region_table))
    except (OSError, RegionTableValidationError) as exc:
        click.echo(f"[{run_id}] FATAL: cannot load region table {region_table}: {exc}", err=True)
        sys.exit(1)
    click.echo(f"[{run_id}] Region table v{table.version}: {len(table)} districts")

    source = Path(csv_path)
    if not source.is_file():
        click.echo(f"[{run_id}] FATAL: CSV file not found: {source}", err=True)
        sys.exit(1)

    store = _open_store(store_kind, db_dsn, rest_url_env, rest_key_env, run_id)
    rejects = RejectWriter(Path(rejects_path))
    try:
        run_restore(source, store, table, counters, rejects=rejects, dry_run=dry_run)
    except OSError as exc:
        click.echo(f"[{run_id}] FATAL: cannot read {source}: {exc}", err=True)
        sys.exit(1)
    finally:
        rejects.close()
        store.close()

    summary = counters.summary()
    click.echo(f"[{run_id}] Summary:")
    click.echo(f"   Restored: {summary.restored}")
    click.echo(f"   Already exist: {summary.skipped}")
    click.echo(f"   Errors: {summary.errors}")
    if dry_run:
        click.echo(f"[{run_id}] [dry-run] No candidates were inserted.")

    report_path = write_run_report(
        run_id, started_at, dry_run,
        {
            "csv_path": str(source),
            "region_table": str(region_table),
            "region_table_hash": table.yaml_hash,
            "rejects_path": str(rejects_path),
        },
        counters,
        reports_dir=Path(reports_dir),
    )
    click.echo(f"[{run_id}] Run report: {report_path}")


if __name__ == "__main__":
    main()
