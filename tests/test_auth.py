"""
Auth & admin tests — session login, signup, role management, demo seed.
"""
import pytest

from app.auth import Actor, SYSTEM_ACTOR
from app.models import db as _db
from app.models.approval import ProgramApproval
from app.models.audit import ActivityLog
from app.models.auth import Role, User
from app.models.master_data import FiscalYear, Ward
from app.models.program import Program
from app.services.seed_service import ADMIN_EMAIL, seed_demo_data
from app.utils.crypto import hash_password, verify_password


class TestPasswordHashing:
    def test_bcrypt_round_trip(self):
        hashed = hash_password("correct horse", rounds=4)
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_missing_hash(self):
        assert not verify_password("anything", None)


class TestLogin:
    def test_login_and_me(self, client, officer):
        res = client.post(
            "/api/v1/auth/login",
            json={"email": "Planner@Municipality.gov.np", "password": "s3cret-pass"},
        )
        assert res.status_code == 200
        assert res.get_json()["user"]["roles"] == ["Planning Officer"]

        me = client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert me.get_json()["user"]["email"] == "planner@municipality.gov.np"
        assert _db.session.get(User, officer.id).last_login_at is not None

    def test_bad_password(self, client, officer):
        res = client.post(
            "/api/v1/auth/login", json={"email": officer.email, "password": "nope-nope"},
        )
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid email or password"

    def test_inactive_user(self, client, officer):
        officer.is_active = False
        _db.session.commit()
        res = client.post("/api/v1/auth/login", json={"email": officer.email, "password": "s3cret-pass"})
        assert res.status_code == 401

    def test_missing_fields(self, client):
        res = client.post("/api/v1/auth/login", json={"email": "x@municipality.gov.np"})
        assert res.status_code == 400

    def test_logout_ends_session(self, admin_client):
        assert admin_client.post("/api/v1/auth/logout").status_code == 200
        assert admin_client.get("/api/v1/auth/me").status_code == 401
        assert admin_client.get("/api/v1/approvals").status_code == 401

    def test_health_is_public(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        live = client.get("/api/v1/health/live")
        assert live.status_code == 200
        assert live.get_json()["checks"]["database"]["status"] == "ok"

    def test_request_id_echoed_and_duration_stamped(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_resolution_access_log_names_the_approval(self, admin_client, program, caplog):
        approval = ProgramApproval(program_id=program.id, step="cao")
        _db.session.add(approval)
        _db.session.commit()

        with caplog.at_level("DEBUG", logger="app.middleware.timing"):
            admin_client.put("/api/v1/approvals", json={"approvalId": approval.id, "action": "approve"})

        [record] = [r for r in caplog.records if r.name == "app.middleware.timing"]
        assert record.approval_id == approval.id
        assert record.status == 200


class TestSignup:
    def test_signup_creates_account_without_roles(self, client, ward):
        res = client.post(
            "/api/v1/auth/signup",
            json={"name": "Hari Shrestha", "email": "hari@municipality.gov.np",
                  "password": "longenough", "wardId": ward.id, "roleIds": ["Admin"]},
        )
        assert res.status_code == 201
        user = res.get_json()["user"]
        assert user["roles"] == []
        assert user["ward_id"] == ward.id
        assert ActivityLog.query.filter_by(action="user_created").count() == 1

        login = client.post(
            "/api/v1/auth/login", json={"email": "hari@municipality.gov.np", "password": "longenough"},
        )
        assert login.status_code == 200

    def test_duplicate_email(self, client, officer):
        res = client.post(
            "/api/v1/auth/signup",
            json={"name": "Copy", "email": officer.email, "password": "longenough"},
        )
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    @pytest.mark.parametrize("body", [
        {"name": "", "email": "a@municipality.gov.np", "password": "longenough"},
        {"name": "A", "email": "not-an-email", "password": "longenough"},
        {"name": "A", "email": "a@municipality.gov.np", "password": "123"},
        {"name": "A", "email": "a@municipality.gov.np", "password": "longenough", "wardId": "missing"},
    ])
    def test_invalid_signup(self, client, body):
        res = client.post("/api/v1/auth/signup", json=body)
        assert res.status_code == 400
        assert User.query.count() == 0


class TestActor:
    def test_system_actor(self):
        assert SYSTEM_ACTOR.is_system
        assert not Actor(id="u1", name="Someone").is_system


class TestAdminApi:
    def test_list_users(self, admin_client, officer):
        users = admin_client.get("/api/v1/users").get_json()["users"]
        assert {u["email"] for u in users} == {"admin@municipality.gov.np", officer.email}

    def test_assign_role(self, admin_client, officer):
        _db.session.add(Role(name="CAO"))
        _db.session.commit()

        res = admin_client.post(f"/api/v1/users/{officer.id}/roles", json={"role": "CAO"})
        assert res.status_code == 200
        assert sorted(res.get_json()["user"]["roles"]) == ["CAO", "Planning Officer"]

    def test_assign_unknown_role(self, admin_client, officer):
        res = admin_client.post(f"/api/v1/users/{officer.id}/roles", json={"role": "Mayor"})
        assert res.status_code == 400

    def test_non_admin_cannot_assign(self, officer_client, officer):
        res = officer_client.post(f"/api/v1/users/{officer.id}/roles", json={"role": "Admin"})
        assert res.status_code == 403

    def test_roles_with_counts(self, admin_client, officer):
        roles = admin_client.get("/api/v1/roles").get_json()["roles"]
        assert {r["name"]: r["user_count"] for r in roles} == {"Admin": 1, "Planning Officer": 1}

    def test_create_role(self, admin_client):
        res = admin_client.post("/api/v1/roles", json={"name": "Accounts Officer"})
        assert res.status_code == 201
        again = admin_client.post("/api/v1/roles", json={"name": "Accounts Officer"})
        assert again.status_code == 400


class TestSeed:
    def test_seed_is_idempotent(self):
        first = seed_demo_data(admin_password="demo-pass")
        _db.session.commit()
        second = seed_demo_data(admin_password="demo-pass")
        _db.session.commit()

        assert first["wards"] == 12
        assert first["programs"] == 3
        assert all(count == 0 for count in second.values())
        assert Ward.query.count() == 12
        assert Program.query.count() == 3
        assert first["approvals"] == 4
        assert ProgramApproval.query.filter_by(status="pending").count() == 4
        assert FiscalYear.query.filter_by(is_active=True).one().year == "2025/26"

        admin = User.query.filter_by(email=ADMIN_EMAIL).one()
        assert admin.role_names == ["Admin"]
        assert verify_password("demo-pass", admin.password_hash)

    def test_seeded_admin_can_log_in(self, client):
        seed_demo_data(admin_password="demo-pass")
        _db.session.commit()
        res = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": "demo-pass"})
        assert res.status_code == 200

    def test_seed_opens_reviews_up_to_cao(self, client):
        seed_demo_data(admin_password="demo-pass")
        _db.session.commit()
        submitted = Program.query.filter_by(code="PRG-2025-0002").one()
        steps = sorted(a.step for a in ProgramApproval.query.filter_by(program_id=submitted.id))
        assert steps == ["cao", "planning_officer", "ward_secretary"]
        cao = ProgramApproval.query.filter_by(program_id=submitted.id, step="cao").one()

        client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": "demo-pass"})
        res = client.put("/api/v1/approvals", json={"approvalId": cao.id, "action": "approve"})

        assert res.status_code == 200
        _db.session.expire_all()
        assert _db.session.get(Program, submitted.id).status == "APPROVED"
