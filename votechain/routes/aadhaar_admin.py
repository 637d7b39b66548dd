from flask import Blueprint, jsonify, current_app, abort

from ..aadhaar_registry import get_registry, DuplicateRecord
from ..models import log_audit
from ..validators import (
    FieldErrors, json_body, text_field, is_email, normalize_aadhaar, normalize_email, AADHAAR_RE,
)

bp = Blueprint("aadhaar_admin", __name__, url_prefix="/api/aadhaar-admin")


@bp.before_request
def demo_only():
    # appends to the identity sheet without auth; keep it off outside demos
    if not current_app.config["AADHAAR_DEMO_ADMIN_ENABLED"]:
        abort(404)


@bp.route("/add", methods=["POST"])
def add_record():
    data = json_body()
    raw = text_field(data, "aadhaarNumber")
    email = normalize_email(data.get("email"))

    errors = FieldErrors()
    errors.check(bool(AADHAAR_RE.match(raw)), "aadhaarNumber", "Aadhaar number must be 12 digits")
    errors.check(is_email(email), "email", "Valid email required")
    if errors:
        return jsonify({"success": False, "errors": errors.items}), 400

    aadhaar = normalize_aadhaar(raw)
    registry = get_registry()
    try:
        registry.add(aadhaar, email)
    except DuplicateRecord as e:
        return jsonify({"success": False, "message": str(e)}), 409
    except OSError as e:
        return jsonify({"success": False, "message": "Failed to update the Aadhaar sheet.", "error": str(e)}), 500

    log_audit("aadhaar_record_added", "demo-admin", {"email": email})
    return jsonify({"success": True, "message": "Record added.", "total": len(registry)}), 201
