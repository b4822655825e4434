"""
Demo data seeding for local development (``flask seed-demo``).

Besides master data and sample programs, pending reviews are opened on the
sample programs, including the CAO sign-off on the submitted one.

Idempotent: rows are looked up by their natural key (ward code, role name,
email, fiscal-year label, catalog code, program code) and only created when
missing.  The caller commits.
"""

import logging
import os
from decimal import Decimal

from app.models import db
from app.models.approval import ApprovalStatus, ApprovalStep, ProgramApproval
from app.models.auth import Role, User
from app.models.master_data import FiscalYear, FundingSource, ProgramType, Ward
from app.models.program import Program, ProgramStatus
from app.utils.crypto import hash_password

logger = logging.getLogger(__name__)

WARDS = [
    ("01", "Central Ward"),
    ("02", "North Ward"),
    ("03", "South Ward"),
    ("04", "East Ward"),
    ("05", "West Ward"),
    ("06", "Northeast Ward"),
    ("07", "Northwest Ward"),
    ("08", "Southeast Ward"),
    ("09", "Southwest Ward"),
    ("10", "Central North Ward"),
    ("11", "Central South Ward"),
    ("12", "Central East Ward"),
]

ROLES = [
    "CAO",
    "Admin",
    "Planning Officer",
    "Technical Head",
    "Ward Secretary",
    "Accounts Officer",
    "Project Manager",
]

ADMIN_EMAIL = "admin@municipality.gov.np"

FUNDING_SOURCES = [("RED_BOOK", "Red Book"), ("EXECUTIVE", "Executive")]
PROGRAM_TYPES = [("NEW", "New Program"), ("CONTINUING", "Continuing Program")]

SAMPLE_PROGRAMS = [
    {
        "code": "PRG-2025-0001",
        "name": "Road Maintenance and Upgradation Project",
        "budget": Decimal("2500000"),
        "funding_source": "RED_BOOK",
        "program_type": "NEW",
        "description": "Comprehensive road maintenance and upgrading project covering "
                       "major arterial roads in Ward 12.",
        "status": ProgramStatus.DRAFT,
        "ward": "12",
        "tags": ["road", "maintenance", "infrastructure"],
        "responsible_officer": "Planning Officer",
    },
    {
        "code": "PRG-2025-0002",
        "name": "Water Supply Upgrade Project",
        "budget": Decimal("1800000"),
        "funding_source": "EXECUTIVE",
        "program_type": "NEW",
        "description": "Upgrading water supply infrastructure in Ward 5 to improve "
                       "water quality and distribution.",
        "status": ProgramStatus.SUBMITTED,
        "ward": "05",
        "tags": ["water", "infrastructure", "upgrade"],
        "responsible_officer": "Technical Head",
    },
    {
        "code": "PRG-2025-0003",
        "name": "School Renovation Project",
        "budget": Decimal("3200000"),
        "funding_source": "RED_BOOK",
        "program_type": "CONTINUING",
        "description": "Renovation and modernization of primary school buildings in Ward 8.",
        "status": ProgramStatus.APPROVED,
        "ward": "08",
        "tags": ["education", "renovation", "school"],
        "responsible_officer": "Project Manager",
    },
]

# Pending reviews opened on the sample programs, one record per step.
SAMPLE_REVIEWS = {
    "PRG-2025-0002": (ApprovalStep.WARD_SECRETARY, ApprovalStep.PLANNING_OFFICER, ApprovalStep.CAO),
    "PRG-2025-0001": (ApprovalStep.TECHNICAL_HEAD,),
}


def _get_or_create(model, defaults=None, **lookup):
    obj = model.query.filter_by(**lookup).first()
    if obj is not None:
        return obj, False
    obj = model(**lookup, **(defaults or {}))
    db.session.add(obj)
    db.session.flush()
    return obj, True


def seed_demo_data(admin_password=None) -> dict:
    """Create the demo dataset.  Returns per-table counts of new rows."""
    created = {"wards": 0, "roles": 0, "users": 0, "fiscal_years": 0,
               "funding_sources": 0, "program_types": 0, "programs": 0, "approvals": 0}

    wards = {}
    for code, name in WARDS:
        wards[code], new = _get_or_create(Ward, code=code, defaults={"name": name})
        created["wards"] += new

    for name in ROLES:
        _role, new = _get_or_create(Role, name=name)
        created["roles"] += new

    password = admin_password or os.getenv("SEED_ADMIN_PASSWORD", "admin123")
    admin, new = _get_or_create(
        User, email=ADMIN_EMAIL,
        defaults={"name": "System Administrator", "password_hash": hash_password(password)},
    )
    created["users"] += new
    admin_role = Role.query.filter_by(name="Admin").one()
    if admin_role not in admin.roles:
        admin.roles.append(admin_role)

    fiscal_year, new = _get_or_create(FiscalYear, year="2025/26", defaults={"is_active": False})
    created["fiscal_years"] += new
    if new and FiscalYear.query.filter_by(is_active=True).first() is None:
        fiscal_year.is_active = True

    sources = {}
    for code, name in FUNDING_SOURCES:
        sources[code], new = _get_or_create(FundingSource, code=code, defaults={"name": name})
        created["funding_sources"] += new

    types = {}
    for code, name in PROGRAM_TYPES:
        types[code], new = _get_or_create(ProgramType, code=code, defaults={"name": name})
        created["program_types"] += new

    for sample in SAMPLE_PROGRAMS:
        program, new = _get_or_create(
            Program,
            code=sample["code"],
            defaults={
                "name": sample["name"],
                "description": sample["description"],
                "fiscal_year_id": fiscal_year.id,
                "ward_id": wards[sample["ward"]].id,
                "program_type_id": types[sample["program_type"]].id,
                "funding_source_id": sources[sample["funding_source"]].id,
                "budget": sample["budget"],
                "status": sample["status"].value,
                "tags": sample["tags"],
                "responsible_officer": sample["responsible_officer"],
                "created_by_id": admin.id,
            },
        )
        created["programs"] += new

        for step in SAMPLE_REVIEWS.get(sample["code"], ()):
            _approval, new = _get_or_create(
                ProgramApproval,
                program_id=program.id,
                step=step.value,
                defaults={"status": ApprovalStatus.PENDING.value},
            )
            created["approvals"] += new

    db.session.flush()
    logger.info("Demo seed: %s", ", ".join(f"{k}={v}" for k, v in created.items()))
    return created
