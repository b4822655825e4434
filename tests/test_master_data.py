"""
Master data API tests — wards, fiscal years, program types, funding sources.
"""
import pytest

from app.models import db as _db
from app.models.master_data import FiscalYear, get_active_fiscal_year


class TestWards:
    def test_create_and_list(self, admin_client):
        res = admin_client.post("/api/v1/wards", json={"code": "12", "name": "Central East Ward"})
        assert res.status_code == 201
        admin_client.post("/api/v1/wards", json={"code": "03", "name": "South Ward"})

        wards = admin_client.get("/api/v1/wards").get_json()["wards"]
        assert [w["code"] for w in wards] == ["03", "12"]

    @pytest.mark.parametrize("body", [
        {"code": "05", "name": "Other Name"},
        {"code": "99", "name": "West Ward"},
    ])
    def test_duplicates(self, admin_client, ward, body):
        res = admin_client.post("/api/v1/wards", json=body)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_missing_fields(self, admin_client):
        assert admin_client.post("/api/v1/wards", json={"code": "01"}).status_code == 400

    def test_update(self, admin_client, ward):
        res = admin_client.put(f"/api/v1/wards/{ward.id}", json={"name": "West Ward (Urban)"})
        assert res.status_code == 200
        assert res.get_json()["ward"]["name"] == "West Ward (Urban)"

    def test_update_keeping_own_code(self, admin_client, ward):
        res = admin_client.put(f"/api/v1/wards/{ward.id}", json={"code": "05"})
        assert res.status_code == 200

    def test_delete_blocked_while_referenced(self, admin_client, program, ward):
        res = admin_client.delete(f"/api/v1/wards/{ward.id}")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Cannot delete ward with 1 associated program(s)"

    def test_delete(self, admin_client, ward):
        assert admin_client.delete(f"/api/v1/wards/{ward.id}").status_code == 200
        assert admin_client.delete(f"/api/v1/wards/{ward.id}").status_code == 404


class TestFiscalYears:
    def test_activation_is_exclusive(self, admin_client, fiscal_year):
        res = admin_client.post("/api/v1/fiscal-years", json={"year": "2026/27", "isActive": True})
        assert res.status_code == 201
        new_id = res.get_json()["fiscalYear"]["id"]

        _db.session.expire_all()
        assert get_active_fiscal_year().id == new_id
        assert FiscalYear.query.filter_by(is_active=True).count() == 1

        res = admin_client.post(f"/api/v1/fiscal-years/{fiscal_year.id}/activate")
        assert res.status_code == 200
        _db.session.expire_all()
        assert get_active_fiscal_year().id == fiscal_year.id
        assert FiscalYear.query.filter_by(is_active=True).count() == 1

    def test_create_inactive_by_default(self, admin_client, fiscal_year):
        res = admin_client.post("/api/v1/fiscal-years", json={"year": "2024/25"})
        assert res.get_json()["fiscalYear"]["is_active"] is False
        assert get_active_fiscal_year().id == fiscal_year.id

    def test_list_newest_first(self, admin_client, fiscal_year):
        admin_client.post("/api/v1/fiscal-years", json={"year": "2024/25"})
        years = admin_client.get("/api/v1/fiscal-years").get_json()["fiscalYears"]
        assert [y["year"] for y in years] == ["2025/26", "2024/25"]

    def test_duplicate_label(self, admin_client, fiscal_year):
        res = admin_client.post("/api/v1/fiscal-years", json={"year": "2025/26"})
        assert res.status_code == 400

    def test_deactivate(self, admin_client, fiscal_year):
        res = admin_client.put(f"/api/v1/fiscal-years/{fiscal_year.id}", json={"isActive": False})
        assert res.get_json()["fiscalYear"]["is_active"] is False
        assert get_active_fiscal_year() is None

    def test_delete_blocked_while_referenced(self, admin_client, program, fiscal_year):
        assert admin_client.delete(f"/api/v1/fiscal-years/{fiscal_year.id}").status_code == 400

    def test_activate_unknown(self, admin_client):
        assert admin_client.post("/api/v1/fiscal-years/missing/activate").status_code == 404


class TestCatalogs:
    @pytest.mark.parametrize("segment,list_key,item_key", [
        ("program-types", "programTypes", "programType"),
        ("funding-sources", "fundingSources", "fundingSource"),
    ])
    def test_crud(self, admin_client, segment, list_key, item_key):
        res = admin_client.post(f"/api/v1/{segment}", json={"code": "X1", "name": "Example"})
        assert res.status_code == 201
        entry_id = res.get_json()[item_key]["id"]

        res = admin_client.put(f"/api/v1/{segment}/{entry_id}", json={"isActive": False})
        assert res.get_json()[item_key]["is_active"] is False
        assert admin_client.get(f"/api/v1/{segment}").get_json()[list_key] == []
        assert len(admin_client.get(f"/api/v1/{segment}?includeInactive=true").get_json()[list_key]) == 1

        assert admin_client.delete(f"/api/v1/{segment}/{entry_id}").status_code == 200

    def test_duplicate_code(self, admin_client, program_type):
        res = admin_client.post("/api/v1/program-types", json={"code": "NEW", "name": "Again"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_delete_blocked_while_referenced(self, admin_client, program, funding_source):
        res = admin_client.delete(f"/api/v1/funding-sources/{funding_source.id}")
        assert res.status_code == 400
        assert "1 associated program(s)" in res.get_json()["error"]

    def test_requires_session(self, client):
        assert client.get("/api/v1/program-types").status_code == 401
