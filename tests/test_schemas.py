"""
Test suite for the directory Pydantic schemas.

Basic validation tests for LawyerRecord, DiagnosticSnapshot and
RunStatistics to ensure the serialized shape matches the dataset format.
"""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from lawdir.schemas import (
    UNKNOWN_NAME,
    DiagnosticSnapshot,
    FetchMode,
    LawyerRecord,
    RunStatistics,
    join_practice_areas,
)


class TestLawyerRecord:
    """Test cases for LawyerRecord model."""

    def test_output_uses_camel_case_and_keeps_nulls(self):
        """Every optional field is present in the dump, under its dataset name."""
        rec = LawyerRecord(name="Jane Doe", firm_name="Doe LLP", profile_url="https://www.justia.com/lawyers/a/b")
        out = rec.to_output()

        assert out["firmName"] == "Doe LLP"
        assert out["profileURL"] == "https://www.justia.com/lawyers/a/b"
        for key in ("location", "address", "phone", "email", "practiceAreas", "description",
                    "yearsLicensed", "biography", "education", "barAdmissions", "languages"):
            assert key in out
            assert out[key] is None
        assert isinstance(out["scrapedAt"], str)

    def test_populate_by_alias(self):
        rec = LawyerRecord.model_validate({"name": "A", "firmName": "F", "profileURL": "https://x.com/lawyers/a/b"})
        assert rec.firm_name == "F"
        assert rec.profile_url == "https://x.com/lawyers/a/b"

    def test_blank_name_becomes_sentinel(self):
        assert LawyerRecord(name="   ").name == UNKNOWN_NAME
        assert LawyerRecord().name == UNKNOWN_NAME
        assert LawyerRecord(name=None).has_known_name() is False

    def test_relative_profile_url_rejected(self):
        with pytest.raises(ValidationError, match="profileURL must be an absolute HTTP/HTTPS URL"):
            LawyerRecord(name="A", profile_url="/lawyers/a/b")

    def test_identity_key(self):
        with_url = LawyerRecord(name="A", profile_url="https://www.justia.com/lawyers/a/b")
        without = LawyerRecord(name="A", location="Akron, OH")
        assert with_url.identity_key() == "https://www.justia.com/lawyers/a/b"
        assert without.identity_key() == "A|Akron, OH|"

    def test_records_are_frozen(self):
        rec = LawyerRecord(name="A")
        with pytest.raises(ValidationError):
            rec.name = "B"

    def test_scraped_at_is_timezone_aware(self):
        assert LawyerRecord(name="A").scraped_at.tzinfo is not None


def test_join_practice_areas():
    assert join_practice_areas(["Tax", " Estate Planning ", "Tax", "", "Wills"]) == "Tax, Estate Planning, Wills"
    assert join_practice_areas([]) == ""


def test_diagnostic_snapshot_defaults():
    snap = DiagnosticSnapshot(url="https://www.justia.com/x", status_code=200, blocked=False, html_excerpt="")
    assert snap.mode is FetchMode.LIGHTWEIGHT
    assert snap.discovered_api_urls == []
    assert snap.timestamp <= datetime.now(timezone.utc)


def test_run_statistics_dump():
    stats = RunStatistics(total_records_stored=3, pages_processed=2,
                          strategy_used_per_page=["json_ld", "none"], final_strategy="json_ld",
                          final_mode=FetchMode.RENDERED)
    dumped = stats.model_dump(mode="json")
    assert dumped["final_mode"] == "rendered"
    assert dumped["strategy_used_per_page"] == ["json_ld", "none"]
