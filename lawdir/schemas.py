"""
Lawyer Directory Scraper - Pydantic Data Schemas

Core data models for directory records, per-page diagnostics and run
statistics. Python attributes are snake_case; the serialized shape uses the
camelCase field names of the output dataset (``firmName``, ``profileURL`` ...).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


UNKNOWN_NAME = "Unknown Name"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def join_practice_areas(values: Iterable[str]) -> str:
    """Comma-join practice areas, keeping first-seen order and dropping repeats."""
    seen: List[str] = []
    for v in values:
        s = (v or "").strip()
        if s and s not in seen:
            seen.append(s)
    return ", ".join(seen)


class FetchMode(str, Enum):
    """Transport used to obtain a page."""
    LIGHTWEIGHT = "lightweight"
    RENDERED = "rendered"


class LawyerRecord(BaseModel):
    """
    One directory entry.

    Optional fields are nullable and always present in the dump. Records are
    frozen: enrichment produces a new instance via ``model_copy``.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(default=UNKNOWN_NAME, description="Lawyer's full name")
    firm_name: Optional[str] = Field(default=None, alias="firmName")
    location: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    profile_url: Optional[str] = Field(
        default=None,
        alias="profileURL",
        description="Absolute profile URL, primary identity",
    )
    practice_areas: Optional[str] = Field(
        default=None,
        alias="practiceAreas",
        description="Comma-joined, de-duplicated practice areas",
    )
    description: Optional[str] = None
    years_licensed: Optional[str] = Field(default=None, alias="yearsLicensed")
    biography: Optional[str] = None
    education: Optional[List[str]] = None
    bar_admissions: Optional[List[str]] = Field(default=None, alias="barAdmissions")
    languages: Optional[List[str]] = None
    scraped_at: datetime = Field(default_factory=utc_now, alias="scrapedAt")

    @field_validator('name', mode='before')
    @classmethod
    def default_unknown_name(cls, v):
        """Blank names collapse to the sentinel."""
        if v is None or not str(v).strip():
            return UNKNOWN_NAME
        return str(v).strip()

    @field_validator('profile_url')
    @classmethod
    def validate_profile_url(cls, v):
        if v and not v.startswith(('http://', 'https://')):
            raise ValueError('profileURL must be an absolute HTTP/HTTPS URL')
        return v

    def has_known_name(self) -> bool:
        return self.name != UNKNOWN_NAME

    def identity_key(self) -> str:
        """Profile URL when present, else ``name|location|firmName`` (exact match)."""
        if self.profile_url:
            return self.profile_url
        return f"{self.name}|{self.location or ''}|{self.firm_name or ''}"

    def to_output(self) -> dict:
        """Serialized dataset row (camelCase, JSON-safe, nulls kept)."""
        return self.model_dump(mode="json", by_alias=True)


class DiagnosticSnapshot(BaseModel):
    """Stored for zero-yield pages when debug mode is on."""
    url: str
    status_code: int
    blocked: bool
    html_excerpt: str = Field(..., description="Bounded prefix of the page body")
    timestamp: datetime = Field(default_factory=utc_now)
    page_title: Optional[str] = None
    mode: FetchMode = FetchMode.LIGHTWEIGHT
    discovered_api_urls: List[str] = Field(default_factory=list)


class RunStatistics(BaseModel):
    """Emitted once at the end of a run."""
    total_records_stored: int
    pages_processed: int
    strategy_used_per_page: List[str] = Field(default_factory=list)
    final_strategy: Optional[str] = None
    final_mode: FetchMode = FetchMode.LIGHTWEIGHT
    discovered_api_urls: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)


# Example usage and validation
if __name__ == "__main__":
    example = LawyerRecord(
        name="Jane Doe",
        firm_name="Doe & Partners LLP",
        location="Austin, TX",
        phone="(512) 555-0100",
        profile_url="https://www.justia.com/lawyers/texas/austin/jane-doe",
        practice_areas=join_practice_areas(["Family Law", "Divorce", "Family Law"]),
    )
    print(f"Identity: {example.identity_key()}")
    print(f"JSON: {example.model_dump_json(indent=2, by_alias=True)}")
