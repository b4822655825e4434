"""
Shared pytest fixtures for the Municipal Project Management test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped, anonymous)
    - admin / admin_client: seeded Admin user and a client logged in as them
    - ward, fiscal_year, program_type, funding_source: master data rows
    - program: DRAFT program referencing the master data above
"""

from decimal import Decimal

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import Role, User
from app.models.master_data import FiscalYear, FundingSource, ProgramType, Ward
from app.models.program import Program
from app.utils.crypto import hash_password

TEST_PASSWORD = "s3cret-pass"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client (no session cookie)."""
    return app.test_client()


# ── Helpers ──────────────────────────────────────────────────────────────


def make_user(name, email, roles=(), password=TEST_PASSWORD, ward=None):
    """Insert a user holding *roles* (created on demand)."""
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, rounds=4),
        ward_id=ward.id if ward else None,
    )
    for role_name in roles:
        role = Role.query.filter_by(name=role_name).first()
        if role is None:
            role = Role(name=role_name)
            _db.session.add(role)
        user.roles.append(role)
    _db.session.add(user)
    _db.session.commit()
    return user


def login(client, email, password=TEST_PASSWORD):
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return client


# ── Identity fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def admin():
    return make_user("Asha Admin", "admin@municipality.gov.np", roles=("Admin",))


@pytest.fixture()
def admin_client(app, admin):
    """Test client with an Admin session."""
    return login(app.test_client(), admin.email)


@pytest.fixture()
def officer():
    return make_user("Priya Planner", "planner@municipality.gov.np", roles=("Planning Officer",))


@pytest.fixture()
def officer_client(app, officer):
    """Test client logged in as a non-admin user."""
    return login(app.test_client(), officer.email)


# ── Master data / program fixtures ───────────────────────────────────────


@pytest.fixture()
def ward():
    w = Ward(code="05", name="West Ward")
    _db.session.add(w)
    _db.session.commit()
    return w


@pytest.fixture()
def fiscal_year():
    fy = FiscalYear(year="2025/26", is_active=True)
    _db.session.add(fy)
    _db.session.commit()
    return fy


@pytest.fixture()
def program_type():
    pt = ProgramType(code="NEW", name="New Program")
    _db.session.add(pt)
    _db.session.commit()
    return pt


@pytest.fixture()
def funding_source():
    fs = FundingSource(code="RED_BOOK", name="Red Book")
    _db.session.add(fs)
    _db.session.commit()
    return fs


def make_program(ward, fiscal_year, code="PRG-2025-0001", status="DRAFT",
                 program_type=None, funding_source=None, budget="2500000.00"):
    p = Program(
        code=code,
        name=f"Program {code}",
        ward_id=ward.id,
        fiscal_year_id=fiscal_year.id,
        program_type_id=program_type.id if program_type else None,
        funding_source_id=funding_source.id if funding_source else None,
        budget=Decimal(budget) if budget is not None else None,
        status=status,
        tags=[],
    )
    _db.session.add(p)
    _db.session.commit()
    return p


@pytest.fixture()
def program(ward, fiscal_year, program_type, funding_source):
    return make_program(ward, fiscal_year, program_type=program_type, funding_source=funding_source)


# ── Factory fixtures ─────────────────────────────────────────────────────


@pytest.fixture()
def user_factory():
    return make_user


@pytest.fixture()
def program_factory(ward, fiscal_year):
    def _factory(code, status="DRAFT", **kwargs):
        return make_program(ward, fiscal_year, code=code, status=status, **kwargs)
    return _factory


@pytest.fixture()
def login_as(app):
    """Return a fresh client logged in as the given user."""
    def _login(user, password=TEST_PASSWORD):
        return login(app.test_client(), user.email, password)
    return _login
