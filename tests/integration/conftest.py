"""Integration test fixtures.

Creates the candidate store tables in an ephemeral PostgreSQL database
provided by pytest-postgresql and seeds two districts.
"""

from __future__ import annotations

from pathlib import Path

import psycopg
import pytest
from pytest_postgresql import factories

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

SCHEMA = Path(__file__).parent / "schema.sql"

# ---------------------------------------------------------------------------
# pytest-postgresql process fixture
# ---------------------------------------------------------------------------

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


# ---------------------------------------------------------------------------
# Schema fixture
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db_conn(postgresql):
    """Return (autocommit psycopg connection, dsn) with schema and seed rows.

    Each test gets a fresh database via function scope so tests are isolated.
    """
    dsn = (
        f"host={postgresql.info.host} "
        f"port={postgresql.info.port} "
        f"dbname={postgresql.info.dbname} "
        f"user={postgresql.info.user} "
        f"password={postgresql.info.password or ''}"
    )
    conn = psycopg.connect(dsn, autocommit=True)
    try:
        conn.execute(SCHEMA.read_text(encoding="utf-8"))
        conn.execute("INSERT INTO provinces (id, name_en) VALUES (1, 'Koshi')")
        conn.execute(
            """
            INSERT INTO districts (id, name_en, name_np, province_id) VALUES
              (3, 'Ilam', 'इलाम', 1),
              (4, 'Jhapa', 'झापा', 1)
            """
        )
        conn.execute(
            """
            INSERT INTO constituencies (id, name, district_id) VALUES
              (31, 'निर्वाचन क्षेत्र नं. 1', 3),
              (32, 'निर्वाचन क्षेत्र नं. 2', 3),
              (41, 'निर्वाचन क्षेत्र नं. 1', 4),
              (42, 'निर्वाचन क्षेत्र नं. 2', 4),
              (43, 'निर्वाचन क्षेत्र नं. 3', 4)
            """
        )
        conn.execute(
            """
            INSERT INTO candidates (name, party_name, constituency_id)
            VALUES ('राम शर्मा', 'नेपाली काँग्रेस', 41)
            """
        )
        yield conn, dsn
    finally:
        conn.close()
