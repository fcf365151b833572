"""nomination_etl.store

Record-store interface consumed by the restore pipeline, plus two adapters:

  PostgresRecordStore:  direct psycopg connection to the candidate database
  RestRecordStore:      PostgREST endpoint (hosted Supabase project) over HTTP

Contract:
  select(table, filters, columns) -> list[dict]   raises StoreError on failure
  insert(table, record)           -> InsertResult never raises for write errors

Rows come back as plain mappings; use ConstituencyRow / CandidateRow to view
them as typed records with nullable fields.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import psycopg
import requests
from psycopg import sql
from psycopg.rows import dict_row

log = logging.getLogger(__name__)

DISTRICTS_TABLE = "districts"
CONSTITUENCIES_TABLE = "constituencies"
CANDIDATES_TABLE = "candidates"

TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    DISTRICTS_TABLE: ("id", "name_en", "name_np", "province_id"),
    CONSTITUENCIES_TABLE: ("id", "name", "district_id"),
    CANDIDATES_TABLE: ("id", "name", "party_name", "constituency_id"),
}

OP_EQ = "eq"
OP_ILIKE_CONTAINS = "ilike_contains"
VALID_OPS = frozenset({OP_EQ, OP_ILIKE_CONTAINS})

REST_PAGE_SIZE = 1000


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Raised when a read against the record store fails."""


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    @classmethod
    def eq(cls, column: str, value: Any) -> Filter:
        return cls(column, OP_EQ, value)

    @classmethod
    def ilike_contains(cls, column: str, value: str) -> Filter:
        return cls(column, OP_ILIKE_CONTAINS, value)


@dataclass(frozen=True)
class InsertResult:
    id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class ConstituencyRow:
    id: int | None
    name: str | None
    district_id: int | None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> ConstituencyRow:
        return cls(
            id=_as_int(row.get("id")),
            name=_as_str(row.get("name")),
            district_id=_as_int(row.get("district_id")),
        )


@dataclass(frozen=True)
class CandidateRow:
    name: str | None
    party_name: str | None
    constituency_id: int | None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> CandidateRow:
        return cls(
            name=_as_str(row.get("name")),
            party_name=_as_str(row.get("party_name")),
            constituency_id=_as_int(row.get("constituency_id")),
        )


class RecordStore(Protocol):
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        ...

    def insert(self, table: str, record: Mapping[str, Any]) -> InsertResult:
        ...


def _checked_columns(table: str, columns: Sequence[str] | None) -> tuple[str, ...]:
    if table not in TABLE_COLUMNS:
        raise StoreError(f"unknown table: {table!r}")
    allowed = TABLE_COLUMNS[table]
    if columns is None:
        return allowed
    unknown = [c for c in columns if c not in allowed]
    if unknown:
        raise StoreError(f"unknown column(s) for {table}: {unknown}")
    return tuple(columns)


def _check_filters(table: str, filters: Sequence[Filter]) -> None:
    for f in filters:
        if f.op not in VALID_OPS:
            raise StoreError(f"unsupported filter op: {f.op!r}")
        _checked_columns(table, [f.column])


def escape_like(value: str) -> str:
    """Escape LIKE metacharacters so value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# PostgreSQL adapter
# ---------------------------------------------------------------------------

class PostgresRecordStore:
    """RecordStore over a psycopg connection.

    Every statement runs in its own transaction block (a savepoint when the
    caller already holds a transaction), so one failed insert never poisons
    the connection for the lines that follow.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    @classmethod
    def connect(cls, db_dsn: str) -> PostgresRecordStore:
        return cls(psycopg.connect(db_dsn, autocommit=True))

    def close(self) -> None:
        self._conn.close()

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        cols = _checked_columns(table, columns)
        _check_filters(table, filters)

        query = sql.SQL("SELECT {cols} FROM {table}").format(
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            table=sql.Identifier(table),
        )
        params: list[Any] = []
        clauses = []
        for f in filters:
            if f.op == OP_EQ:
                clauses.append(sql.SQL("{} = %s").format(sql.Identifier(f.column)))
                params.append(f.value)
            else:
                clauses.append(sql.SQL("{} ILIKE %s").format(sql.Identifier(f.column)))
                params.append(f"%{escape_like(str(f.value))}%")
        if clauses:
            query = query + sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses)

        try:
            with self._conn.transaction():
                with self._conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query, params)
                    return cur.fetchall()
        except psycopg.Error as e:
            raise StoreError(f"select from {table} failed: {e}") from e

    def insert(self, table: str, record: Mapping[str, Any]) -> InsertResult:
        try:
            cols = _checked_columns(table, list(record.keys()))
        except StoreError as e:
            return InsertResult(error=str(e))

        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING id").format(
            table=sql.Identifier(table),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in cols),
        )
        try:
            with self._conn.transaction():
                row = self._conn.execute(query, [record[c] for c in cols]).fetchone()
        except psycopg.Error as e:
            return InsertResult(error=str(e).strip())
        return InsertResult(id=_as_int(row[0]) if row else None)


# ---------------------------------------------------------------------------
# PostgREST adapter
# ---------------------------------------------------------------------------

def _json_or_none(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


class RestRecordStore:
    """RecordStore over a PostgREST API (``<base_url>/rest/v1/<table>``).

    Selects page through the table in id order so result sets larger than
    the server's row cap are returned in full.  Contains filters escape
    `%` and `_` as the PostgreSQL adapter does; PostgREST always treats `*`
    in an ilike pattern as a wildcard, so a literal `*` cannot be matched.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: requests.Session | None = None,
        timeout: int = 30,
        page_size: int = REST_PAGE_SIZE,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._page_size = page_size
        self._session = session or requests.Session()
        self._session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "User-Agent": "nomination-etl/0.1",
        })

    def _url(self, table: str) -> str:
        return f"{self._base_url}/rest/v1/{table}"

    def close(self) -> None:
        self._session.close()

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        cols = _checked_columns(table, columns)
        _check_filters(table, filters)

        base_params: list[tuple[str, str]] = [("select", ",".join(cols)), ("order", "id.asc")]
        for f in filters:
            if f.op == OP_EQ:
                base_params.append((f.column, f"eq.{f.value}"))
            else:
                base_params.append((f.column, f"ilike.*{escape_like(str(f.value))}*"))

        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            params = base_params + [("limit", str(self._page_size)), ("offset", str(offset))]
            try:
                resp = self._session.get(self._url(table), params=params, timeout=self._timeout)
            except requests.RequestException as exc:
                raise StoreError(f"select from {table} failed: {exc}") from exc
            if resp.status_code != 200:
                raise StoreError(
                    f"select from {table} returned status {resp.status_code}: {resp.text[:300]}"
                )
            page = _json_or_none(resp)
            if page is None:
                raise StoreError(f"select from {table} returned a non-JSON body: {resp.text[:300]}")
            if not isinstance(page, list):
                raise StoreError(f"select from {table} returned a non-list payload")
            rows.extend(page)
            if len(page) < self._page_size:
                return rows
            offset += self._page_size

    def insert(self, table: str, record: Mapping[str, Any]) -> InsertResult:
        try:
            _checked_columns(table, list(record.keys()))
        except StoreError as e:
            return InsertResult(error=str(e))

        try:
            resp = self._session.post(
                self._url(table),
                json=dict(record),
                headers={"Prefer": "return=representation"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            return InsertResult(error=f"request failed: {exc}")

        if resp.status_code not in (200, 201):
            body = _json_or_none(resp)
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
            else:
                message = resp.text[:300]
            return InsertResult(error=f"status {resp.status_code}: {message}")

        body = _json_or_none(resp)
        if body is None:
            log.warning("insert into %s succeeded with an unparseable body", table)
            return InsertResult()
        if isinstance(body, list) and body:
            return InsertResult(id=_as_int(body[0].get("id")))
        return InsertResult()
