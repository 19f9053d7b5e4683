from __future__ import annotations

import hashlib
import json
import sqlite3
from typing import List, Optional

from lawdir.schemas import LawyerRecord

DDL_STATEMENTS = [
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    """
    CREATE TABLE IF NOT EXISTS lawyers (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      identity_key TEXT NOT NULL,
      name TEXT NOT NULL,
      firm_name TEXT,
      location TEXT,
      address TEXT,
      phone TEXT,
      email TEXT,
      profile_url TEXT,
      practice_areas TEXT,
      description TEXT,
      years_licensed TEXT,
      biography TEXT,
      education TEXT,
      bar_admissions TEXT,
      languages TEXT,
      scraped_at TEXT NOT NULL
    )
    """.strip(),
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_lawyers_identity ON lawyers (identity_key)
    """.strip(),
    """
    CREATE INDEX IF NOT EXISTS idx_lawyers_location ON lawyers (lower(location))
    """.strip(),
]

UPSERT_SQL = (
    """
    INSERT INTO lawyers (
      identity_key, name, firm_name, location, address, phone, email, profile_url,
      practice_areas, description, years_licensed, biography, education,
      bar_admissions, languages, scraped_at
    ) VALUES (
      :identity_key, :name, :firm_name, :location, :address, :phone, :email, :profile_url,
      :practice_areas, :description, :years_licensed, :biography, :education,
      :bar_admissions, :languages, :scraped_at
    )
    ON CONFLICT(identity_key)
    DO UPDATE SET
      name = excluded.name,
      firm_name = COALESCE(excluded.firm_name, lawyers.firm_name),
      location = COALESCE(excluded.location, lawyers.location),
      address = COALESCE(excluded.address, lawyers.address),
      phone = COALESCE(excluded.phone, lawyers.phone),
      email = COALESCE(excluded.email, lawyers.email),
      practice_areas = COALESCE(excluded.practice_areas, lawyers.practice_areas),
      description = COALESCE(excluded.description, lawyers.description),
      years_licensed = COALESCE(excluded.years_licensed, lawyers.years_licensed),
      biography = COALESCE(excluded.biography, lawyers.biography),
      education = COALESCE(excluded.education, lawyers.education),
      bar_admissions = COALESCE(excluded.bar_admissions, lawyers.bar_admissions),
      languages = COALESCE(excluded.languages, lawyers.languages),
      scraped_at = excluded.scraped_at
    """
).strip()


def make_identity_key(record: LawyerRecord) -> str:
    """Stable hash of the record identity (profile URL, else name/location/firm)."""
    return hashlib.sha1(record.identity_key().encode("utf-8")).hexdigest()


def _json_list(values: Optional[List[str]]) -> Optional[str]:
    return json.dumps(values, ensure_ascii=False) if values else None


def ensure_schema(conn: sqlite3.Connection) -> None:
    for stmt in DDL_STATEMENTS:
        conn.execute(stmt)


def export_records_to_sqlite(db_path: str, records: List[LawyerRecord]) -> int:
    """Write lawyer records into a SQLite database with upsert semantics.

    Args:
        db_path: Path to the SQLite database file (will be created if absent)
        records: List of LawyerRecord models

    Returns:
        Number of rows processed (attempted upserts)
    """
    if not records:
        return 0

    conn = sqlite3.connect(db_path)
    try:
        ensure_schema(conn)

        rows = []
        for r in records:
            rows.append({
                "identity_key": make_identity_key(r),
                "name": r.name,
                "firm_name": r.firm_name,
                "location": r.location,
                "address": r.address,
                "phone": r.phone,
                "email": r.email,
                "profile_url": r.profile_url,
                "practice_areas": r.practice_areas,
                "description": r.description,
                "years_licensed": r.years_licensed,
                "biography": r.biography,
                "education": _json_list(r.education),
                "bar_admissions": _json_list(r.bar_admissions),
                "languages": _json_list(r.languages),
                "scraped_at": r.scraped_at.isoformat(),
            })

        with conn:  # transactional batch
            conn.executemany(UPSERT_SQL, rows)
        return len(rows)
    finally:
        conn.close()
