from flask import Blueprint, request, jsonify
from flask_jwt_extended import current_user
from pymongo import DESCENDING

from ..auth import role_required
from ..models import get_db, voter_to_json, audit_to_json
from ..validators import json_body
from .voters import apply_voter_status, VOTER_STATUSES

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.route("/voters/pending", methods=["GET"])
@role_required("admin")
def pending_voters():
    docs = list(get_db().voters.find({"status": "pending"}).sort("registration_date", DESCENDING))
    return jsonify({"success": True, "count": len(docs), "voters": [voter_to_json(v) for v in docs]}), 200


@bp.route("/voters", methods=["GET"])
@role_required("admin")
def voters_by_status():
    status = request.args.get("status")
    query = {"status": status} if status else {}
    docs = list(get_db().voters.find(query).sort("registration_date", DESCENDING))
    return jsonify({"success": True, "count": len(docs), "voters": [voter_to_json(v) for v in docs]}), 200


@bp.route("/voters/<voter_id>/status", methods=["PATCH"])
@role_required("admin")
def set_voter_status(voter_id):
    data = json_body()
    status = data.get("status")
    if status not in VOTER_STATUSES:
        return jsonify({"success": False, "message": "Invalid status. Must be 'approved' or 'rejected'."}), 400
    payload, code = apply_voter_status(voter_id, status, current_user["wallet_address"])
    return jsonify(payload), code


@bp.route("/audit-logs", methods=["GET"])
@role_required("admin")
def audit_logs():
    try:
        limit = max(1, min(int(request.args.get("limit", 100)), 1000))
    except ValueError:
        return jsonify({"success": False, "message": "limit must be an integer"}), 400
    docs = get_db().audit_logs.find({}).sort("timestamp", DESCENDING).limit(limit)
    logs = [audit_to_json(a) for a in docs]
    return jsonify({"success": True, "count": len(logs), "logs": logs}), 200
