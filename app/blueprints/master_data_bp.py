"""
Municipal Project Management System
Master Data Blueprint.

Endpoints:
    Wards:
        GET    /api/v1/wards                       — List
        POST   /api/v1/wards                       — Create
        PUT    /api/v1/wards/<id>                  — Update
        DELETE /api/v1/wards/<id>                  — Delete (blocked while referenced)

    Fiscal years:
        GET    /api/v1/fiscal-years                — List (newest label first)
        POST   /api/v1/fiscal-years                — Create
        PUT    /api/v1/fiscal-years/<id>           — Update (isActive is exclusive)
        POST   /api/v1/fiscal-years/<id>/activate  — Make this the active year
        DELETE /api/v1/fiscal-years/<id>           — Delete (blocked while referenced)

    Program types / funding sources:
        GET|POST        /api/v1/program-types,   /api/v1/funding-sources
        PUT|DELETE      /api/v1/program-types/<id>, /api/v1/funding-sources/<id>
"""

import logging

from flask import Blueprint, jsonify, request

import app.services.master_data_service as mds
from app.auth import require_auth
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

master_data_bp = Blueprint("master_data", __name__, url_prefix="/api/v1")
register_error_handlers(master_data_bp)


def _body():
    return request.get_json(silent=True) or {}


# ═════════════════════════════════════════════════════════════════════════════
# WARDS
# ═════════════════════════════════════════════════════════════════════════════

@master_data_bp.route("/wards", methods=["GET"])
@require_auth
def list_wards():
    return jsonify({"wards": [w.to_dict() for w in mds.list_wards()]})


@master_data_bp.route("/wards", methods=["POST"])
@require_auth
def create_ward():
    ward = mds.create_ward(_body())
    return jsonify({"ward": ward.to_dict()}), 201


@master_data_bp.route("/wards/<ward_id>", methods=["PUT"])
@require_auth
def update_ward(ward_id):
    return jsonify({"ward": mds.update_ward(ward_id, _body()).to_dict()})


@master_data_bp.route("/wards/<ward_id>", methods=["DELETE"])
@require_auth
def delete_ward(ward_id):
    mds.delete_ward(ward_id)
    return jsonify({"message": "Ward deleted", "id": ward_id})


# ═════════════════════════════════════════════════════════════════════════════
# FISCAL YEARS
# ═════════════════════════════════════════════════════════════════════════════

@master_data_bp.route("/fiscal-years", methods=["GET"])
@require_auth
def list_fiscal_years():
    return jsonify({"fiscalYears": [fy.to_dict() for fy in mds.list_fiscal_years()]})


@master_data_bp.route("/fiscal-years", methods=["POST"])
@require_auth
def create_fiscal_year():
    fy = mds.create_fiscal_year(_body())
    return jsonify({"fiscalYear": fy.to_dict()}), 201


@master_data_bp.route("/fiscal-years/<fiscal_year_id>", methods=["PUT"])
@require_auth
def update_fiscal_year(fiscal_year_id):
    return jsonify({"fiscalYear": mds.update_fiscal_year(fiscal_year_id, _body()).to_dict()})


@master_data_bp.route("/fiscal-years/<fiscal_year_id>/activate", methods=["POST"])
@require_auth
def activate_fiscal_year(fiscal_year_id):
    return jsonify({"fiscalYear": mds.activate_fiscal_year(fiscal_year_id).to_dict()})


@master_data_bp.route("/fiscal-years/<fiscal_year_id>", methods=["DELETE"])
@require_auth
def delete_fiscal_year(fiscal_year_id):
    mds.delete_fiscal_year(fiscal_year_id)
    return jsonify({"message": "Fiscal year deleted", "id": fiscal_year_id})


# ═════════════════════════════════════════════════════════════════════════════
# PROGRAM TYPES / FUNDING SOURCES
# ═════════════════════════════════════════════════════════════════════════════
# Both catalogs share one set of view functions, registered per URL segment.

_CATALOG_ROUTES = {
    "program-types": ("program_type", "programTypes", "programType"),
    "funding-sources": ("funding_source", "fundingSources", "fundingSource"),
}


def _register_catalog(segment, kind, list_key, item_key):
    def list_entries():
        include_inactive = request.args.get("includeInactive", "").lower() in ("true", "1")
        entries = mds.list_catalog(kind, include_inactive=include_inactive)
        return jsonify({list_key: [e.to_dict() for e in entries]})

    def create_entry():
        return jsonify({item_key: mds.create_catalog_entry(kind, _body()).to_dict()}), 201

    def update_entry(entry_id):
        return jsonify({item_key: mds.update_catalog_entry(kind, entry_id, _body()).to_dict()})

    def delete_entry(entry_id):
        mds.delete_catalog_entry(kind, entry_id)
        return jsonify({"message": "Deleted", "id": entry_id})

    master_data_bp.add_url_rule(
        f"/{segment}", f"list_{kind}", require_auth(list_entries), methods=["GET"])
    master_data_bp.add_url_rule(
        f"/{segment}", f"create_{kind}", require_auth(create_entry), methods=["POST"])
    master_data_bp.add_url_rule(
        f"/{segment}/<entry_id>", f"update_{kind}", require_auth(update_entry), methods=["PUT"])
    master_data_bp.add_url_rule(
        f"/{segment}/<entry_id>", f"delete_{kind}", require_auth(delete_entry), methods=["DELETE"])


for _segment, (_kind, _list_key, _item_key) in _CATALOG_ROUTES.items():
    _register_catalog(_segment, _kind, _list_key, _item_key)
