"""
Master data service — wards, fiscal years, program types, funding sources.

All four tables share the same rules:
    - unique columns are checked before insert/update (duplicate → ConflictError)
    - a row referenced by any program cannot be deleted (→ ValidationError)

Fiscal years add one more: activation is exclusive.  Activating a year
deactivates every other year in the same transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.master_data import FiscalYear, FundingSource, ProgramType, Ward
from app.models.program import Program

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────────


def _get(model, pk, label):
    obj = db.session.get(model, str(pk))
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _ensure_unique(model, label: str, field: str, value: str, exclude_id=None) -> None:
    q = model.query.filter(getattr(model, field) == value)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first() is not None:
        raise ConflictError.duplicate(label, field, value)


def _ensure_unreferenced(obj, label: str, fk_column) -> None:
    count = Program.query.filter(fk_column == obj.id).count()
    if count:
        raise ValidationError(
            f"Cannot delete {label.lower()} with {count} associated program(s)",
            details={"programs": count},
        )


# ═════════════════════════════════════════════════════════════════════════
# Wards
# ═════════════════════════════════════════════════════════════════════════


def list_wards() -> list[Ward]:
    return Ward.query.order_by(Ward.code).all()


def create_ward(data: dict) -> Ward:
    code, name = _clean(data.get("code")), _clean(data.get("name"))
    if not code or not name:
        raise ValidationError("Ward code and name are required")
    _ensure_unique(Ward, "Ward", "code", code)
    _ensure_unique(Ward, "Ward", "name", name)

    ward = Ward(code=code, name=name)
    db.session.add(ward)
    db.session.commit()
    logger.info("Ward created code=%s", code)
    return ward


def update_ward(ward_id: str, data: dict) -> Ward:
    ward = _get(Ward, ward_id, "Ward")
    if "code" in data:
        code = _clean(data["code"])
        if not code:
            raise ValidationError("Ward code cannot be empty")
        _ensure_unique(Ward, "Ward", "code", code, exclude_id=ward.id)
        ward.code = code
    if "name" in data:
        name = _clean(data["name"])
        if not name:
            raise ValidationError("Ward name cannot be empty")
        _ensure_unique(Ward, "Ward", "name", name, exclude_id=ward.id)
        ward.name = name
    db.session.commit()
    return ward


def delete_ward(ward_id: str) -> None:
    ward = _get(Ward, ward_id, "Ward")
    _ensure_unreferenced(ward, "Ward", Program.ward_id)
    db.session.delete(ward)
    db.session.commit()
    logger.info("Ward deleted code=%s", ward.code)


# ═════════════════════════════════════════════════════════════════════════
# Fiscal years
# ═════════════════════════════════════════════════════════════════════════


def list_fiscal_years() -> list[FiscalYear]:
    return FiscalYear.query.order_by(FiscalYear.year.desc()).all()


def _deactivate_others(keep_id: str | None) -> None:
    stmt = update(FiscalYear).where(FiscalYear.is_active.is_(True))
    if keep_id is not None:
        stmt = stmt.where(FiscalYear.id != keep_id)
    db.session.execute(stmt.values(is_active=False).execution_options(synchronize_session="fetch"))


def create_fiscal_year(data: dict) -> FiscalYear:
    year = _clean(data.get("year"))
    if not year:
        raise ValidationError("Fiscal year label is required", details={"year": "required"})
    _ensure_unique(FiscalYear, "Fiscal year", "year", year)

    is_active = bool(data.get("isActive", False))
    fy = FiscalYear(year=year, is_active=False)
    db.session.add(fy)
    db.session.flush()
    if is_active:
        _deactivate_others(fy.id)
        fy.is_active = True
    db.session.commit()
    logger.info("Fiscal year created year=%s active=%s", year, is_active)
    return fy


def update_fiscal_year(fiscal_year_id: str, data: dict) -> FiscalYear:
    fy = _get(FiscalYear, fiscal_year_id, "Fiscal year")
    if "year" in data:
        year = _clean(data["year"])
        if not year:
            raise ValidationError("Fiscal year label cannot be empty")
        _ensure_unique(FiscalYear, "Fiscal year", "year", year, exclude_id=fy.id)
        fy.year = year
    if "isActive" in data:
        if data["isActive"]:
            _deactivate_others(fy.id)
            fy.is_active = True
        else:
            fy.is_active = False
    db.session.commit()
    return fy


def activate_fiscal_year(fiscal_year_id: str) -> FiscalYear:
    return update_fiscal_year(fiscal_year_id, {"isActive": True})


def delete_fiscal_year(fiscal_year_id: str) -> None:
    fy = _get(FiscalYear, fiscal_year_id, "Fiscal year")
    _ensure_unreferenced(fy, "Fiscal year", Program.fiscal_year_id)
    db.session.delete(fy)
    db.session.commit()


# ═════════════════════════════════════════════════════════════════════════
# Program types / funding sources
# ═════════════════════════════════════════════════════════════════════════
# Same shape: code (unique), name, description, is_active.

_CATALOGS = {
    "program_type": (ProgramType, "Program type", Program.program_type_id),
    "funding_source": (FundingSource, "Funding source", Program.funding_source_id),
}


def list_catalog(kind: str, include_inactive: bool = False):
    model, _label, _fk = _CATALOGS[kind]
    q = model.query
    if not include_inactive:
        q = q.filter(model.is_active.is_(True))
    return q.order_by(model.code).all()


def create_catalog_entry(kind: str, data: dict):
    model, label, _fk = _CATALOGS[kind]
    code, name = _clean(data.get("code")), _clean(data.get("name"))
    if not code or not name:
        raise ValidationError(f"{label} code and name are required")
    _ensure_unique(model, label, "code", code)

    obj = model(
        code=code,
        name=name,
        description=data.get("description") or "",
        is_active=bool(data.get("isActive", True)),
    )
    db.session.add(obj)
    db.session.commit()
    logger.info("%s created code=%s", label, code)
    return obj


def update_catalog_entry(kind: str, entry_id: str, data: dict):
    model, label, _fk = _CATALOGS[kind]
    obj = _get(model, entry_id, label)
    if "code" in data:
        code = _clean(data["code"])
        if not code:
            raise ValidationError(f"{label} code cannot be empty")
        _ensure_unique(model, label, "code", code, exclude_id=obj.id)
        obj.code = code
    if "name" in data:
        name = _clean(data["name"])
        if not name:
            raise ValidationError(f"{label} name cannot be empty")
        obj.name = name
    if "description" in data:
        obj.description = data["description"] or ""
    if "isActive" in data:
        obj.is_active = bool(data["isActive"])
    db.session.commit()
    return obj


def delete_catalog_entry(kind: str, entry_id: str) -> None:
    model, label, fk = _CATALOGS[kind]
    obj = _get(model, entry_id, label)
    _ensure_unreferenced(obj, label, fk)
    db.session.delete(obj)
    db.session.commit()
