"""nomination_etl.regions

Fixed district-name -> district-id lookup table.

Responsibilities:
  - Load and validate the YAML table from config/regions/*.yml
  - Freeze it into an immutable RegionTable for the run
  - Resolve a district display name to its id (exact match only)

Usage:
    from pathlib import Path
    from nomination_etl.regions import RegionResolver, load_region_table

    table = load_region_table(Path("config/regions/districts.yml"))
    resolver = RegionResolver(table)
    district_id = resolver.resolve("झापा")   # -> 4, or None when unknown
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

DEFAULT_REGION_TABLE_PATH = Path("config/regions/districts.yml")

REQUIRED_YAML_KEYS = frozenset({"version", "regions"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class RegionTableValidationError(ValueError):
    """Raised when a region table file fails schema validation."""


# ---------------------------------------------------------------------------
# RegionTable
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegionTable:
    """Validated, read-only name -> id mapping."""

    version: str
    yaml_hash: str
    ids_by_name: Mapping[str, int]
    source_path: str | None = field(default=None, compare=False)

    def __len__(self) -> int:
        return len(self.ids_by_name)


def build_region_table(
    regions: Mapping[str, int],
    version: str = "inline",
    source_path: str | None = None,
) -> RegionTable:
    """Validate a plain mapping and freeze it into a RegionTable."""
    validate_regions(regions)
    frozen = MappingProxyType({str(k): int(v) for k, v in regions.items()})
    digest = hashlib.sha256(
        repr(sorted(frozen.items())).encode("utf-8")
    ).hexdigest()
    return RegionTable(
        version=version,
        yaml_hash=digest,
        ids_by_name=frozen,
        source_path=source_path,
    )


# ---------------------------------------------------------------------------
# Loader + validator
# ---------------------------------------------------------------------------

def load_region_table(yaml_path: Path) -> RegionTable:
    """Load, validate, and return a RegionTable from a YAML file.

    Raises:
        RegionTableValidationError: If the file content is invalid.
        FileNotFoundError: If the YAML file does not exist.
    """
    raw = yaml_path.read_text(encoding="utf-8")
    data: Any = yaml.safe_load(raw)
    if not isinstance(data, dict):
        raise RegionTableValidationError("YAML root must be a mapping.")

    missing_keys = REQUIRED_YAML_KEYS - set(data.keys())
    if missing_keys:
        raise RegionTableValidationError(f"Missing required YAML keys: {sorted(missing_keys)}")

    table = build_region_table(
        data["regions"],
        version=str(data["version"]),
        source_path=str(yaml_path),
    )
    # Report the hash of the file as shipped, not of the parsed mapping.
    return replace(table, yaml_hash=hashlib.sha256(raw.encode("utf-8")).hexdigest())


def validate_regions(regions: Any) -> None:
    """Raise RegionTableValidationError if regions is not a valid table.

    Validates:
      - regions is a non-empty mapping
      - every name is a non-empty string
      - every id is a positive integer (bools rejected)
      - no id is shared by two names
    """
    if not isinstance(regions, Mapping) or not regions:
        raise RegionTableValidationError("'regions' must be a non-empty mapping.")

    seen: dict[int, str] = {}
    for name, region_id in regions.items():
        if not isinstance(name, str) or not name.strip():
            raise RegionTableValidationError(f"Region name {name!r} must be a non-empty string.")
        if isinstance(region_id, bool) or not isinstance(region_id, int) or region_id <= 0:
            raise RegionTableValidationError(
                f"Region '{name}' id {region_id!r} must be a positive integer."
            )
        if region_id in seen:
            raise RegionTableValidationError(
                f"Region id {region_id} is assigned to both '{seen[region_id]}' and '{name}'."
            )
        seen[region_id] = name


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class RegionResolver:
    """Exact-match district name lookup against an injected RegionTable."""

    def __init__(self, table: RegionTable) -> None:
        self._table = table

    def resolve(self, display_name: str) -> int | None:
        return self._table.ids_by_name.get(display_name)
