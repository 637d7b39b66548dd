from flask import Blueprint, jsonify

from ..models import utcnow

bp = Blueprint("health", __name__)


@bp.route("/", methods=["GET"])
def index():
    return jsonify({"status": "Server is running"}), 200


@bp.route("/api/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "timestamp": utcnow().isoformat()}), 200
