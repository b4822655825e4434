"""
Activity log tests — feed presentation and /api/v1/activity-logs.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ValidationError
from app.models import db as _db
from app.models.audit import ActivityLog, resolve_entity, write_activity
from app.services import activity_service


def _log(action="program_created", entity_type="program", entity_id="p-1", created_at=None, **meta):
    row = write_activity(
        action=action,
        description=f"{action} on {entity_id}",
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=meta or None,
    )
    if created_at is not None:
        row.created_at = created_at
    _db.session.commit()
    return row


class TestPresentation:
    def test_humanize_action(self):
        assert activity_service.humanize_action("approval_request_reupload") == "Approval Request Reupload"
        assert activity_service.humanize_action("") == ""

    @pytest.mark.parametrize("action,kind", [
        ("document_uploaded", "upload"),
        ("approval_reject", "approval"),
        ("program_rejected", "rejection"),
        ("program_submitted", "submission"),
        ("program_created", "creation"),
        ("ward_updated", "update"),
        ("ward_deleted", "deletion"),
        ("program_archived", "other"),
    ])
    def test_classify_action(self, action, kind):
        assert activity_service.classify_action(action) == kind

    def test_entity_links(self):
        assert activity_service.entity_link("program", "p1") == "/programs/p1"
        assert activity_service.entity_link("approval", "a1", {"programId": "p1"}) == "/programs/p1"
        assert activity_service.entity_link("approval", "a1") == "/approvals"
        assert activity_service.entity_link("document", "d1") == "#"
        assert activity_service.entity_link(None, None) == "#"

    def test_present_system_row(self):
        row = _log(action="document_uploaded", entity_type="document", entity_id="d1", programId="p9")
        now = row.created_at.replace(tzinfo=timezone.utc) + timedelta(minutes=5)

        out = activity_service.present(row, now=now)

        assert out["user"] == "System"
        assert out["type"] == "upload"
        assert out["time"] == "5m ago"
        assert out["link"] == "/programs/p9"
        assert out["raw_action"] == "document_uploaded"


class TestWriteActivity:
    def test_metadata_round_trip(self):
        row = _log(step="cao", remarks=None)
        assert _db.session.get(ActivityLog, row.id).meta == {"step": "cao", "remarks": None}

    def test_resolve_entity(self, program):
        row = _log(entity_id=program.id)
        assert resolve_entity(row.entity_type, row.entity_id).id == program.id
        assert resolve_entity("payment", "x") is None
        assert resolve_entity("program", "missing") is None


class TestListActivity:
    def test_newest_first_with_paging(self):
        base = datetime.now(timezone.utc)
        for i in range(3):
            _log(entity_id=f"p-{i}", created_at=base + timedelta(minutes=i))

        rows, total = activity_service.list_activity(limit=2)

        assert total == 3
        assert [r.entity_id for r in rows] == ["p-2", "p-1"]

    def test_filters(self):
        _log(action="program_created")
        _log(action="approval_approve", entity_type="approval", entity_id="a-1")

        rows, total = activity_service.list_activity(entity_type="approval")
        assert total == 1 and rows[0].action == "approval_approve"
        _, total = activity_service.list_activity(action="program_created")
        assert total == 1

    def test_bad_paging(self):
        with pytest.raises(ValidationError):
            activity_service.list_activity(limit=0)


class TestActivityApi:
    def test_requires_session(self, client):
        assert client.get("/api/v1/activity-logs").status_code == 401

    def test_list(self, admin_client):
        for i in range(12):
            _log(entity_id=f"p-{i}")

        res = admin_client.get("/api/v1/activity-logs")
        assert res.status_code == 200
        data = res.get_json()
        assert len(data["activityLogs"]) == 10
        assert data["total"] == 12
        assert data["hasMore"] is True

        data = admin_client.get("/api/v1/activity-logs?offset=10").get_json()
        assert len(data["activityLogs"]) == 2
        assert data["hasMore"] is False

    def test_create(self, admin_client, admin):
        res = admin_client.post(
            "/api/v1/activity-logs",
            json={"action": "report_exported", "description": "Exported ward report",
                  "entityType": "program", "entityId": "p-1", "metadata": {"format": "csv"}},
        )
        assert res.status_code == 201
        body = res.get_json()["activityLog"]
        assert body["user_id"] == admin.id
        assert body["metadata"] == {"format": "csv"}

    def test_create_requires_action_and_description(self, admin_client):
        res = admin_client.post("/api/v1/activity-logs", json={"action": "x"})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Action and description are required"
        assert ActivityLog.query.count() == 0

    def test_no_update_or_delete(self, admin_client):
        assert admin_client.delete("/api/v1/activity-logs").status_code == 405
