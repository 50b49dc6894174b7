# Overview: Flask API routes for the agency directory; listing and upserts by account code.

from flask import Blueprint

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..extensions import db
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..responses import success
from ..services.agency_service import AgencyDirectory
from ..validation import json_body, query_bool

agencies_bp = Blueprint("agencies", __name__, url_prefix="/api/v1/agencies")


@agencies_bp.get("")
@require_auth
def list_agencies():
    directory = AgencyDirectory(db.session)
    if query_bool("include_inactive"):
        agencies = directory.list_all()
    else:
        agencies = directory.list_active()
    return success({"agencies": [a.to_dict() for a in agencies]})


@agencies_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def upsert_agency():
    data = json_body()
    agency = AgencyDirectory(db.session).upsert_one(
        name=data.get("agency_name"),
        code=data.get("agency_id"),
        email=data.get("contact_email"),
        active=data.get("is_active", True),
        phone=data.get("contact_phone"),
    )
    return success({"agency": agency.to_dict()}, 201)


@agencies_bp.post("/bulk")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def bulk_upsert_agencies():
    data = json_body()
    rows = data.get("agencies")
    if not isinstance(rows, list):
        raise ValidationError("agencies must be a list")
    if not all(isinstance(row, dict) for row in rows):
        raise ValidationError("each agency must be an object")

    result = AgencyDirectory(db.session).upsert_bulk(rows)
    return success(result.to_dict(), message=f"{result.processed} agencies processed")
