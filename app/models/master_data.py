"""
Municipal Project Management System
Master data models.

Models:
    - Ward: municipal administrative subdivision
    - FiscalYear: budget period (exactly one active at a time)
    - ProgramType: classification of a program (new, continuing, ...)
    - FundingSource: where a program's budget comes from (red book, executive, ...)
"""

import uuid
from datetime import datetime, timezone

from app.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Ward ─────────────────────────────────────────────────────────────────────


class Ward(db.Model):
    __tablename__ = "wards"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(120), unique=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    programs = db.relationship("Program", back_populates="ward", lazy="dynamic")

    @property
    def label(self) -> str:
        """Display label used by list projections, e.g. ``Ward 05``."""
        return f"Ward {self.code}"

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Ward {self.code}: {self.name}>"


# ── Fiscal Year ──────────────────────────────────────────────────────────────


class FiscalYear(db.Model):
    __tablename__ = "fiscal_years"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    year = db.Column(db.String(20), unique=True, nullable=False, comment="e.g. 2025/26")
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    programs = db.relationship("Program", back_populates="fiscal_year", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "year": self.year,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<FiscalYear {self.year}{' *' if self.is_active else ''}>"


def get_active_fiscal_year():
    """Return the active FiscalYear or None.

    Callers pass the result (or its id) down explicitly; nothing caches it.
    """
    return FiscalYear.query.filter_by(is_active=True).first()


# ── Program Type / Funding Source ────────────────────────────────────────────


class ProgramType(db.Model):
    __tablename__ = "program_types"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(30), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, default="")
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    programs = db.relationship("Program", back_populates="program_type", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<ProgramType {self.code}>"


class FundingSource(db.Model):
    __tablename__ = "funding_sources"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(30), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, default="")
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    programs = db.relationship("Program", back_populates="funding_source", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<FundingSource {self.code}>"
