"""
Program API tests — /api/v1/programs and the document-upload pipeline.

Tests cover:
  - Create (validation, duplicate code, active fiscal year default)
  - List filters and detail
  - Archive (Admin only)
  - Opening a review step (Admin only)
  - Document upload: review opening, notification, status move, activity log
"""
import pytest

from app.models import db as _db
from app.models.approval import ProgramApproval
from app.models.audit import ActivityLog
from app.models.notification import Notification
from app.models.program import Program, format_file_size

PDF = "application/pdf"


def _program_body(ward, **overrides):
    body = {
        "code": "PRG-2025-0042",
        "name": "Ward 5 drainage upgrade",
        "wardId": ward.id,
        "budget": "1250000.50",
        "startDate": "2025-08-01",
        "endDate": "2026-06-30",
        "tags": ["drainage", "infrastructure"],
        "responsibleOfficer": "Er. Sita Rai",
    }
    body.update(overrides)
    return body


def _upload_body(**overrides):
    body = {
        "fileName": "red-book.pdf",
        "filePath": "/uploads/red-book.pdf",
        "fileType": PDF,
        "fileSize": 204800,
        "category": "red_book",
    }
    body.update(overrides)
    return body


# ═════════════════════════════════════════════════════════════════════════
# PROGRAMS
# ═════════════════════════════════════════════════════════════════════════


class TestCreateProgram:
    def test_create_uses_active_fiscal_year(self, officer_client, officer, ward, fiscal_year):
        res = officer_client.post("/api/v1/programs", json=_program_body(ward))
        assert res.status_code == 201
        program = res.get_json()["program"]
        assert program["status"] == "DRAFT"
        assert program["fiscal_year_id"] == fiscal_year.id
        assert program["budget"] == 1250000.5
        assert program["tags"] == ["drainage", "infrastructure"]
        assert program["created_by_id"] == officer.id

        log = ActivityLog.query.filter_by(action="program_created").one()
        assert log.entity_id == program["id"]

    def test_status_in_body_is_ignored(self, admin_client, ward, fiscal_year):
        res = admin_client.post("/api/v1/programs", json=_program_body(ward, status="APPROVED"))
        assert res.get_json()["program"]["status"] == "DRAFT"

    def test_duplicate_code(self, admin_client, ward, fiscal_year):
        admin_client.post("/api/v1/programs", json=_program_body(ward))
        res = admin_client.post("/api/v1/programs", json=_program_body(ward, name="Another"))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"
        assert Program.query.count() == 1

    @pytest.mark.parametrize("budget", ["-5", "abc", "NaN", True])
    def test_invalid_budget(self, admin_client, ward, fiscal_year, budget):
        res = admin_client.post("/api/v1/programs", json=_program_body(ward, budget=budget))
        assert res.status_code == 400
        assert res.get_json()["error"] == "Invalid budget amount"

    @pytest.mark.parametrize("missing", ["code", "name", "wardId"])
    def test_required_fields(self, admin_client, ward, fiscal_year, missing):
        body = _program_body(ward)
        body.pop(missing)
        res = admin_client.post("/api/v1/programs", json=body)
        assert res.status_code == 400

    def test_unknown_ward(self, admin_client, ward, fiscal_year):
        res = admin_client.post("/api/v1/programs", json=_program_body(ward, wardId="nope"))
        assert res.status_code == 400
        assert res.get_json()["error"] == "Ward not found"

    def test_no_active_fiscal_year(self, admin_client, ward):
        res = admin_client.post("/api/v1/programs", json=_program_body(ward))
        assert res.status_code == 400

    def test_end_before_start(self, admin_client, ward, fiscal_year):
        res = admin_client.post(
            "/api/v1/programs", json=_program_body(ward, startDate="2026-01-01", endDate="2025-01-01"),
        )
        assert res.status_code == 400


class TestReadPrograms:
    def test_list_filters(self, admin_client, program_factory):
        program_factory("PRG-A", status="DRAFT")
        program_factory("PRG-B", status="SUBMITTED")

        data = admin_client.get("/api/v1/programs?status=SUBMITTED").get_json()
        assert data["total"] == 1
        assert data["programs"][0]["code"] == "PRG-B"

        data = admin_client.get("/api/v1/programs?search=prg-a").get_json()
        assert [p["code"] for p in data["programs"]] == ["PRG-A"]

    def test_list_invalid_status(self, admin_client):
        assert admin_client.get("/api/v1/programs?status=LOST").status_code == 400

    def test_detail_includes_children(self, admin_client, program):
        _db.session.add(ProgramApproval(program_id=program.id, step="ward_secretary"))
        _db.session.commit()

        res = admin_client.get(f"/api/v1/programs/{program.id}")
        assert res.status_code == 200
        body = res.get_json()["program"]
        assert len(body["approvals"]) == 1
        assert body["documents"] == []
        assert body["ward"]["name"] == "West Ward"

    def test_detail_not_found(self, admin_client):
        assert admin_client.get("/api/v1/programs/missing").status_code == 404


class TestArchiveProgram:
    def test_admin_archives(self, admin_client, program):
        res = admin_client.post(f"/api/v1/programs/{program.id}/archive")
        assert res.status_code == 200
        assert res.get_json()["program"]["status"] == "ARCHIVED"
        log = ActivityLog.query.filter_by(action="program_archived").one()
        assert log.meta["previousStatus"] == "DRAFT"

    def test_archive_twice_conflicts(self, admin_client, program):
        admin_client.post(f"/api/v1/programs/{program.id}/archive")
        res = admin_client.post(f"/api/v1/programs/{program.id}/archive")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_officer_forbidden(self, officer_client, program):
        res = officer_client.post(f"/api/v1/programs/{program.id}/archive")
        assert res.status_code == 403
        assert _db.session.get(Program, program.id).status == "DRAFT"

    def test_programs_are_never_deleted(self, admin_client, program):
        assert admin_client.delete(f"/api/v1/programs/{program.id}").status_code == 405


class TestOpenReview:
    def test_admin_opens_cao_review_and_resolves_it(self, admin_client, program):
        res = admin_client.post(f"/api/v1/programs/{program.id}/approvals", json={"step": "cao"})
        assert res.status_code == 201
        approval = res.get_json()["approval"]
        assert approval["step"] == "cao"
        assert approval["status"] == "pending"
        assert _db.session.get(Program, program.id).status == "SUBMITTED"
        log = ActivityLog.query.filter_by(action="approval_requested").one()
        assert log.entity_id == approval["id"]
        assert log.meta["step"] == "cao"

        resolved = admin_client.put(
            "/api/v1/approvals", json={"approvalId": approval["id"], "action": "approve"},
        )
        assert resolved.status_code == 200
        _db.session.expire_all()
        assert _db.session.get(Program, program.id).status == "APPROVED"

    def test_one_pending_review_per_step(self, admin_client, program):
        admin_client.post(f"/api/v1/programs/{program.id}/approvals", json={"step": "planning_officer"})
        res = admin_client.post(f"/api/v1/programs/{program.id}/approvals", json={"step": "planning_officer"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"
        assert ProgramApproval.query.filter_by(program_id=program.id).count() == 1

    @pytest.mark.parametrize("body", [{}, {"step": "mayor"}, {"step": ["cao"]}])
    def test_invalid_step(self, admin_client, program, body):
        res = admin_client.post(f"/api/v1/programs/{program.id}/approvals", json=body)
        assert res.status_code == 400
        assert ProgramApproval.query.count() == 0

    def test_officer_forbidden(self, officer_client, program):
        res = officer_client.post(f"/api/v1/programs/{program.id}/approvals", json={"step": "cao"})
        assert res.status_code == 403
        assert ProgramApproval.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════
# DOCUMENT UPLOAD PIPELINE
# ═════════════════════════════════════════════════════════════════════════


class TestDocumentUpload:
    def test_red_book_opens_review(self, officer_client, officer, program):
        res = officer_client.post(f"/api/v1/programs/{program.id}/documents", json=_upload_body())
        assert res.status_code == 201
        document = res.get_json()["document"]
        assert document["uploaded_by"] == "Priya Planner"
        assert document["formatted_file_size"] == "200 KB"

        approval = ProgramApproval.query.filter_by(program_id=program.id).one()
        assert approval.step == "ward_secretary"
        assert approval.status == "pending"

        notification = Notification.query.one()
        assert notification.type == "approval"
        assert notification.title == "New Document Requires Approval"
        assert notification.entity_id == program.id

        assert _db.session.get(Program, program.id).status == "SUBMITTED"

        log = ActivityLog.query.filter_by(action="document_uploaded").one()
        assert log.entity_type == "document"
        assert log.entity_id == document["id"]
        assert log.meta["approvalId"] == approval.id
        assert log.meta["fileName"] == "red-book.pdf"

    def test_upload_shows_in_review_queue(self, admin_client, program):
        admin_client.post(f"/api/v1/programs/{program.id}/documents", json=_upload_body())

        row = admin_client.get("/api/v1/approvals").get_json()["approvals"][0]
        assert row["submittedBy"] == "Ward Secretary"
        assert row["attachedFiles"] == ["red-book.pdf"]

    def test_other_category_has_no_side_effects(self, admin_client, program):
        res = admin_client.post(
            f"/api/v1/programs/{program.id}/documents",
            json=_upload_body(category="contract", fileName="contract.pdf"),
        )
        assert res.status_code == 201
        assert ProgramApproval.query.count() == 0
        assert Notification.query.count() == 0
        assert _db.session.get(Program, program.id).status == "DRAFT"
        assert ActivityLog.query.filter_by(action="document_uploaded").count() == 1

    def test_submitted_program_keeps_status(self, admin_client, program_factory):
        program = program_factory("PRG-EXEC", status="APPROVED")
        admin_client.post(
            f"/api/v1/programs/{program.id}/documents",
            json=_upload_body(category="executive_approval"),
        )
        assert _db.session.get(Program, program.id).status == "APPROVED"
        assert ProgramApproval.query.count() == 1

    @pytest.mark.parametrize("overrides", [
        {"fileType": "application/x-msdownload"},
        {"fileSize": 0},
        {"fileSize": 50 * 1024 * 1024},
        {"category": "poster"},
        {"fileName": ""},
    ])
    def test_invalid_upload(self, admin_client, program, overrides):
        res = admin_client.post(f"/api/v1/programs/{program.id}/documents", json=_upload_body(**overrides))
        assert res.status_code == 400
        assert ProgramApproval.query.count() == 0

    def test_archived_program_rejects_uploads(self, admin_client, program_factory):
        program = program_factory("PRG-OLD", status="ARCHIVED")
        res = admin_client.post(f"/api/v1/programs/{program.id}/documents", json=_upload_body())
        assert res.status_code == 400

    def test_list_documents_by_category(self, admin_client, program):
        admin_client.post(f"/api/v1/programs/{program.id}/documents", json=_upload_body())
        admin_client.post(
            f"/api/v1/programs/{program.id}/documents",
            json=_upload_body(category="estimation", fileName="estimate.xlsx"),
        )

        data = admin_client.get(f"/api/v1/programs/{program.id}/documents?category=estimation").get_json()
        assert [d["file_name"] for d in data["documents"]] == ["estimate.xlsx"]

    def test_upload_unknown_program(self, admin_client):
        res = admin_client.post("/api/v1/programs/missing/documents", json=_upload_body())
        assert res.status_code == 404


def test_format_file_size():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(512) == "512 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(5 * 1024 * 1024) == "5 MB"
