"""Unit test fixtures: an in-memory RecordStore and the shipped region table."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from nomination_etl.regions import RegionTable, build_region_table, load_region_table
from nomination_etl.store import (
    OP_EQ,
    Filter,
    InsertResult,
    StoreError,
)

PROJECT_ROOT = Path(__file__).parent.parent.parent
REGION_TABLE_PATH = PROJECT_ROOT / "config" / "regions" / "districts.yml"

JHAPA = "झापा"
ILAM = "इलाम"
JHAPA_ID = 4
ILAM_ID = 3


def _matches(row: dict[str, Any], f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == OP_EQ:
        return value == f.value
    return value is not None and str(f.value).lower() in str(value).lower()


class InMemoryRecordStore:
    """RecordStore fake backed by lists of dicts.

    select_hook(table, filters) may return a row list to override the
    result, raise StoreError, or return None to fall through.
    insert_hook(table, record) may return an error string to fail the insert.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            k: [dict(r) for r in v] for k, v in (tables or {}).items()
        }
        self.select_hook: Callable[[str, list[Filter]], list | None] | None = None
        self.insert_hook: Callable[[str, dict[str, Any]], str | None] | None = None
        self.select_calls: list[tuple[str, tuple[Filter, ...]]] = []
        self.insert_calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False
        self._next_id = 1000

    def select(self, table, filters=(), columns=None):
        filters = list(filters)
        self.select_calls.append((table, tuple(filters)))
        if self.select_hook is not None:
            override = self.select_hook(table, filters)
            if override is not None:
                return override
        out = []
        for row in self.tables.get(table, []):
            if all(_matches(row, f) for f in filters):
                out.append({c: row.get(c) for c in columns} if columns else dict(row))
        return out

    def insert(self, table, record):
        self.insert_calls.append((table, dict(record)))
        if self.insert_hook is not None:
            error = self.insert_hook(table, dict(record))
            if error:
                return InsertResult(error=error)
        self._next_id += 1
        self.tables.setdefault(table, []).append({"id": self._next_id, **record})
        return InsertResult(id=self._next_id)

    def close(self) -> None:
        self.closed = True


def fail_select(message: str = "connection reset"):
    def hook(table, filters):
        raise StoreError(message)
    return hook


@pytest.fixture
def region_table() -> RegionTable:
    return load_region_table(REGION_TABLE_PATH)


@pytest.fixture
def small_region_table() -> RegionTable:
    return build_region_table({JHAPA: JHAPA_ID, ILAM: ILAM_ID})


@pytest.fixture
def seeded_store() -> InMemoryRecordStore:
    return InMemoryRecordStore({
        "constituencies": [
            {"id": 41, "name": "निर्वाचन क्षेत्र नं. 1", "district_id": JHAPA_ID},
            {"id": 42, "name": "निर्वाचन क्षेत्र नं. 2", "district_id": JHAPA_ID},
            {"id": 43, "name": "निर्वाचन क्षेत्र नं. 3", "district_id": JHAPA_ID},
            {"id": 31, "name": "निर्वाचन क्षेत्र नं. 1", "district_id": ILAM_ID},
        ],
        "candidates": [
            {"id": 1, "name": "राम शर्मा", "party_name": "नेपाली काँग्रेस", "constituency_id": 41},
        ],
    })


@pytest.fixture
def make_store() -> type[InMemoryRecordStore]:
    return InMemoryRecordStore


@pytest.fixture
def failing_select():
    return fail_select


def _direct_query_returns(rows: list[dict[str, Any]]):
    """Hook that overrides only the substring (phase 1) constituency query."""
    def hook(table, filters):
        if any(f.op != OP_EQ for f in filters):
            return list(rows)
        return None
    return hook


@pytest.fixture
def direct_query_returns():
    return _direct_query_returns
