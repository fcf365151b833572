"""nomination_etl.candidate_index

In-memory membership index of candidates already present in the store.

Identity is the exact (name, party_name, constituency_id) triple, compared
case- and whitespace-sensitively.  The key is a tuple, so a separator
character appearing inside a name can never make two distinct candidates
collide.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from nomination_etl.store import (
    CANDIDATES_TABLE,
    CandidateRow,
    RecordStore,
    StoreError,
)

log = logging.getLogger(__name__)


class CandidateKey(NamedTuple):
    name: str
    party_name: str
    constituency_id: int


class ExistingCandidateIndex:
    def __init__(self, keys: set[CandidateKey] | None = None) -> None:
        self._keys: set[CandidateKey] = set(keys or ())

    def __len__(self) -> int:
        return len(self._keys)

    def contains(self, name: str, party_name: str, constituency_id: int) -> bool:
        return CandidateKey(name, party_name, constituency_id) in self._keys

    def add(self, name: str, party_name: str, constituency_id: int) -> None:
        self._keys.add(CandidateKey(name, party_name, constituency_id))

    @classmethod
    def build(cls, store: RecordStore) -> ExistingCandidateIndex:
        """Load the name/party/constituency projection of every candidate.

        Raises StoreError if the read fails; see build_or_empty() for the
        degrading variant used by the restore run.
        """
        raw = store.select(
            CANDIDATES_TABLE,
            columns=["name", "party_name", "constituency_id"],
        )
        index = cls()
        for r in raw:
            row = CandidateRow.from_mapping(r)
            # Rows with a null identity field can never equal a parsed line.
            if row.name is None or row.party_name is None or row.constituency_id is None:
                continue
            index.add(row.name, row.party_name, row.constituency_id)
        return index

    @classmethod
    def build_or_empty(
        cls,
        store: RecordStore,
        warnings: list[str] | None = None,
    ) -> ExistingCandidateIndex:
        try:
            return cls.build(store)
        except StoreError as exc:
            log.warning("Error fetching existing candidates: %s", exc)
            if warnings is not None:
                warnings.append(f"existing candidate index empty: {exc}")
            return cls()
