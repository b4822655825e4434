"""
Dashboard tests: KPI aggregation scoped by an explicit fiscal year, recent-items cards.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ValidationError
from app.models import db as _db
from app.models.approval import ProgramApproval
from app.models.master_data import FiscalYear, Ward
from app.services import dashboard_service


@pytest.fixture()
def previous_year():
    fy = FiscalYear(year="2024/25", is_active=False)
    _db.session.add(fy)
    _db.session.commit()
    return fy


@pytest.fixture()
def populated(program_factory, ward, previous_year):
    draft = program_factory("PRG-D1", budget="1500000.00")
    submitted = program_factory("PRG-S1", status="SUBMITTED", budget="2000000.00")
    program_factory("PRG-S2", status="SUBMITTED", budget=None)
    old = program_factory("PRG-OLD", status="CLOSED", budget="9000000.00")
    old.fiscal_year_id = previous_year.id
    _db.session.add_all([
        ProgramApproval(program_id=submitted.id, step="ward_secretary"),
        ProgramApproval(program_id=draft.id, step="cao", status="rejected"),
        ProgramApproval(program_id=old.id, step="cao", status="approved"),
    ])
    _db.session.commit()


class TestStats:
    def test_scoped_to_fiscal_year(self, populated, fiscal_year):
        stats = dashboard_service.get_stats(fiscal_year.id)

        assert stats["total_programs"] == 3
        assert stats["pending_approvals"] == 1
        assert stats["budget"]["allocated"] == 3500000.0
        assert stats["budget"]["formatted_allocated"] == "Rs. 3.5M"
        assert stats["programs_by_status"]["SUBMITTED"] == 2
        assert stats["programs_by_status"]["CLOSED"] == 0
        assert stats["approvals_by_status"] == {
            "approved": 0, "pending": 1, "re-upload-requested": 0, "rejected": 1,
        }
        assert stats["fiscal_year"] == "2025/26"

    def test_all_years(self, populated):
        stats = dashboard_service.get_stats(None)

        assert stats["total_programs"] == 4
        assert stats["budget"]["allocated"] == 12500000.0
        assert stats["fiscal_year"] is None

    def test_empty_database(self):
        stats = dashboard_service.get_stats()
        assert stats["total_programs"] == 0
        assert stats["budget"]["formatted_allocated"] == "Rs. 0.0M"


class TestWardStats:
    def test_wards_without_programs_are_omitted(self, populated, fiscal_year, ward):
        _db.session.add(Ward(code="11", name="Central South Ward"))
        _db.session.commit()

        rows = dashboard_service.get_ward_stats(fiscal_year.id)

        assert len(rows) == 1
        assert rows[0]["ward_id"] == ward.id
        assert rows[0]["ward"] == "Ward 05"
        assert rows[0]["programs"] == 3
        assert rows[0]["formatted_budget"] == "Rs. 3.5M"


class TestRecentPrograms:
    def test_newest_first_with_counts(self, program_factory):
        now = datetime.now(timezone.utc)
        older = program_factory("PRG-OLDER")
        older.created_at = now - timedelta(days=3)
        newer = program_factory("PRG-NEWER", status="SUBMITTED")
        newer.created_at = now - timedelta(hours=2)
        _db.session.add(ProgramApproval(program_id=newer.id, step="ward_secretary"))
        _db.session.commit()

        rows = dashboard_service.get_recent_programs(limit=5, now=now)

        assert [r["code"] for r in rows] == ["PRG-NEWER", "PRG-OLDER"]
        assert rows[0]["counts"] == {"documents": 0, "approvals": 1}
        assert rows[0]["time_ago"] == "2h ago"
        assert rows[1]["time_ago"] == "3d ago"

    def test_limit_and_ward_filter(self, program_factory, ward):
        for n in range(3):
            program_factory(f"PRG-L{n}")
        other = Ward(code="11", name="Central South Ward")
        _db.session.add(other)
        _db.session.commit()

        assert len(dashboard_service.get_recent_programs(limit=2)) == 2
        assert len(dashboard_service.get_recent_programs(ward_id=ward.id)) == 3
        assert dashboard_service.get_recent_programs(ward_id=other.id) == []

    def test_non_positive_limit(self):
        with pytest.raises(ValidationError):
            dashboard_service.get_recent_programs(limit=0)


class TestDashboardApi:
    def test_defaults_to_active_year(self, admin_client, populated):
        res = admin_client.get("/api/v1/dashboard/stats")
        assert res.status_code == 200
        assert res.get_json()["stats"]["total_programs"] == 3

    def test_explicit_year(self, admin_client, populated, previous_year):
        res = admin_client.get(f"/api/v1/dashboard/stats?fiscalYear={previous_year.id}")
        stats = res.get_json()["stats"]
        assert stats["total_programs"] == 1
        assert stats["fiscal_year"] == "2024/25"

    def test_unknown_year(self, admin_client):
        assert admin_client.get("/api/v1/dashboard/stats?fiscalYear=missing").status_code == 404

    def test_ward_stats(self, admin_client, populated):
        data = admin_client.get("/api/v1/dashboard/ward-stats").get_json()
        assert data["fiscalYear"] == "2025/26"
        assert data["wardStats"][0]["ward_name"] == "West Ward"

    def test_requires_session(self, client):
        assert client.get("/api/v1/dashboard/stats").status_code == 401

    def test_recent_programs(self, admin_client, populated):
        res = admin_client.get("/api/v1/dashboard/recent-programs?limit=2")
        assert res.status_code == 200
        assert len(res.get_json()["programs"]) == 2

    def test_recent_activity(self, admin_client, program):
        admin_client.post(
            f"/api/v1/programs/{program.id}/approvals", json={"step": "technical_head"},
        )
        res = admin_client.get("/api/v1/dashboard/recent-activity")
        assert res.status_code == 200
        [entry] = res.get_json()["activities"]
        assert entry["raw_action"] == "approval_requested"
        assert entry["user"] == "Asha Admin"
