"""Certificate template management for administrators and mentors."""

from __future__ import annotations

import uuid
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required
from werkzeug.exceptions import NotFound

from models import db
from models.system_setting import CERTIFICATE_TEMPLATE_CATEGORY, SystemSetting
from services.activity import client_metadata, record_activity
from utils.access import require_role
from utils.request_validation import FieldValidator, parse_bool, parse_json_request

certificates_bp = Blueprint("certificates", __name__)


def _get_template_or_404(template_id: int) -> SystemSetting:
    template = db.session.get(SystemSetting, template_id)
    if template is None or template.category != CERTIFICATE_TEMPLATE_CATEGORY:
        raise NotFound("Template not found.")
    return template


def _template_payload() -> dict:
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    name = fields.string("name", max_length=120)
    content = fields.string("content", strip=False)
    fields.raise_if_invalid()
    return {
        "name": name,
        "content": content,
        "is_default": parse_bool(payload.get("is_default"), default=False),
    }


def _clear_other_defaults(keep_id: int | None) -> None:
    others = SystemSetting.query.filter(
        SystemSetting.category == CERTIFICATE_TEMPLATE_CATEGORY
    )
    for template in others:
        if template.id == keep_id:
            continue
        data = template.data
        if data.get("is_default"):
            data["is_default"] = False
            template.data = data


@certificates_bp.route("", methods=["GET"])
@jwt_required()
def list_templates():
    """Return every certificate template."""

    require_role("ADMIN", "MENTOR")
    templates = (
        SystemSetting.query.filter_by(category=CERTIFICATE_TEMPLATE_CATEGORY)
        .order_by(SystemSetting.created_at.asc())
        .all()
    )
    return jsonify({"templates": [template.to_dict() for template in templates]})


@certificates_bp.route("", methods=["POST"])
@jwt_required()
def create_template():
    admin = require_role("ADMIN")
    data = _template_payload()

    template = SystemSetting(
        key=f"certificate_template_{uuid.uuid4().hex}",
        category=CERTIFICATE_TEMPLATE_CATEGORY,
        description=data["name"],
    )
    template.data = data
    db.session.add(template)
    db.session.flush()
    if data["is_default"]:
        _clear_other_defaults(template.id)
    db.session.commit()

    record_activity(
        db.session,
        action="CREATE_CERTIFICATE_TEMPLATE",
        user_id=admin.id,
        entity_type="certificate_template",
        entity_id=template.id,
        client=client_metadata(request),
    )
    current_app.logger.info("Certificate template %s created", template.id)
    return jsonify({"message": "Template created.", "template": template.to_dict()}), HTTPStatus.CREATED


@certificates_bp.route("/<int:template_id>", methods=["GET"])
@jwt_required()
def get_template(template_id: int):
    require_role("ADMIN", "MENTOR")
    template = _get_template_or_404(template_id)
    return jsonify({"template": template.to_dict()})


@certificates_bp.route("/<int:template_id>", methods=["PUT"])
@jwt_required()
def update_template(template_id: int):
    admin = require_role("ADMIN")
    template = _get_template_or_404(template_id)
    data = _template_payload()

    template.data = data
    template.description = data["name"]
    if data["is_default"]:
        _clear_other_defaults(template.id)
    db.session.commit()

    record_activity(
        db.session,
        action="UPDATE_CERTIFICATE_TEMPLATE",
        user_id=admin.id,
        entity_type="certificate_template",
        entity_id=template.id,
        client=client_metadata(request),
    )
    return jsonify({"message": "Template updated.", "template": template.to_dict()})


@certificates_bp.route("/<int:template_id>", methods=["DELETE"])
@jwt_required()
def delete_template(template_id: int):
    admin = require_role("ADMIN")
    template = _get_template_or_404(template_id)

    db.session.delete(template)
    db.session.commit()

    record_activity(
        db.session,
        action="DELETE_CERTIFICATE_TEMPLATE",
        user_id=admin.id,
        entity_type="certificate_template",
        entity_id=template_id,
        client=client_metadata(request),
    )
    return jsonify({"message": "Template deleted."})
