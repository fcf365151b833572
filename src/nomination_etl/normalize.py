"""Line parsing and field normalization for the candidate nominations CSV.

The source export is comma-delimited with RFC4180-style quoting: a field may
be wrapped in double quotes, and inside such a field a literal double quote
is written as two consecutive double quotes.

Column layout (after a discarded header line):
    0  serial number (ignored)
    1  district name (Devanagari)
    2  constituency number
    3  party name
    4  candidate name
    5+ further columns (age, gender, ...) are ignored
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Each match is one field, including the comma that precedes it (except for
# the first field of the line).
_FIELD_RE = re.compile(r'(?:^|,)("(?:[^"]*(?:""[^"]*)*)"|[^,]*)')

_LEADING_ARTIFACT_RE = re.compile(r'^,?"?')
_TRAILING_QUOTE_RE = re.compile(r'"?$')

MIN_FIELD_COUNT = 5

COL_DISTRICT = 1
COL_CONSTITUENCY = 2
COL_PARTY = 3
COL_NAME = 4


# ---------------------------------------------------------------------------
# Rule 1: split_delimited_line
# ---------------------------------------------------------------------------

def split_delimited_line(line: str) -> list[str]:
    """Split a line into raw field tokens.

    Tokens keep their separator comma and quote markers; pass each through
    clean_field() to obtain the value.  Never raises on unbalanced quotes.
    """
    return [m.group(0) for m in _FIELD_RE.finditer(line)]


# ---------------------------------------------------------------------------
# Rule 2: clean_field
# ---------------------------------------------------------------------------

def clean_field(token: str) -> str:
    """Normalize one raw token to its field value.

    Strips a single leading comma, the surrounding quote markers, collapses
    doubled quotes and trims whitespace.  Always returns a string.
    """
    v = _LEADING_ARTIFACT_RE.sub("", token, count=1)
    v = _TRAILING_QUOTE_RE.sub("", v, count=1)
    return v.replace('""', '"').strip()


# ---------------------------------------------------------------------------
# Rule 3: parse_source_line
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceRecord:
    district_name: str
    constituency_number: str
    party_name: str
    candidate_name: str


def parse_source_line(line: str) -> SourceRecord | None:
    """Parse one data line into a SourceRecord.

    Returns None for blank lines and for lines with fewer than
    MIN_FIELD_COUNT tokens; callers treat both as noise, not errors.
    """
    line = line.rstrip("\r\n")
    if not line.strip():
        return None
    tokens = split_delimited_line(line)
    if len(tokens) < MIN_FIELD_COUNT:
        return None
    return SourceRecord(
        district_name=clean_field(tokens[COL_DISTRICT]),
        constituency_number=clean_field(tokens[COL_CONSTITUENCY]),
        party_name=clean_field(tokens[COL_PARTY]),
        candidate_name=clean_field(tokens[COL_NAME]),
    )
