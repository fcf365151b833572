"""nomination_etl.constituencies

Constituency lookup for a (district_id, constituency number) pair.

Constituency names embed descriptive text around the number, e.g.
"निर्वाचन क्षेत्र नं. 3", so the lookup is a substring match in two phases:

  1. Direct query: constituencies of the district whose name contains the
     number (case-insensitive).  First row wins.
  2. Fallback scan: when phase 1 returns nothing or fails, fetch every
     constituency of the district and take the first whose name contains
     the bare number or "नं. <number>".

Both phases order rows by ascending id before picking the first match.
The match is deliberately loose: "1" also matches a name containing "10".
"""

from __future__ import annotations

import logging

from nomination_etl.store import (
    CONSTITUENCIES_TABLE,
    ConstituencyRow,
    Filter,
    RecordStore,
    StoreError,
)

log = logging.getLogger(__name__)

CONSTITUENCY_NUMBER_MARKER = "नं."


def _by_id(rows: list[ConstituencyRow]) -> list[ConstituencyRow]:
    # Rows without an id go last.
    return sorted(rows, key=lambda r: (r.id is None, r.id or 0))


class ConstituencyResolver:
    def __init__(
        self,
        store: RecordStore,
        number_marker: str = CONSTITUENCY_NUMBER_MARKER,
    ) -> None:
        self._store = store
        self._number_marker = number_marker

    def resolve(self, district_id: int, constituency_number: str) -> int | None:
        """Return the constituency id, or None when neither phase matches."""
        direct = self._direct_lookup(district_id, constituency_number)
        if direct is not None:
            return direct
        return self._fallback_scan(district_id, constituency_number)

    def _direct_lookup(self, district_id: int, constituency_number: str) -> int | None:
        try:
            raw = self._store.select(
                CONSTITUENCIES_TABLE,
                [
                    Filter.eq("district_id", district_id),
                    Filter.ilike_contains("name", constituency_number),
                ],
                columns=["id", "name"],
            )
        except StoreError as exc:
            log.warning(
                "Direct constituency lookup failed for district %s no. %s: %s",
                district_id, constituency_number, exc,
            )
            return None

        for row in _by_id([ConstituencyRow.from_mapping(r) for r in raw]):
            if row.id is not None:
                return row.id
        return None

    def _fallback_scan(self, district_id: int, constituency_number: str) -> int | None:
        try:
            raw = self._store.select(
                CONSTITUENCIES_TABLE,
                [Filter.eq("district_id", district_id)],
                columns=["id", "name"],
            )
        except StoreError as exc:
            log.warning(
                "Constituency scan failed for district %s: %s", district_id, exc,
            )
            return None

        marked = f"{self._number_marker} {constituency_number}"
        for row in _by_id([ConstituencyRow.from_mapping(r) for r in raw]):
            if row.id is None or row.name is None:
                continue
            if constituency_number in row.name or marked in row.name:
                log.debug(
                    "Constituency %s resolved by scan for district %s no. %s",
                    row.id, district_id, constituency_number,
                )
                return row.id
        return None
