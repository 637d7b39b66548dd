import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from ..auth import role_required, create_voter_token
from ..chain import get_chain, ChainError
from ..models import get_db, log_audit, utcnow, to_object_id, voter_to_json, vote_to_json
from ..validators import FieldErrors, json_body, text_field, is_eth_address, is_email, AADHAAR_RE, MOBILE_RE

logger = logging.getLogger(__name__)

bp = Blueprint("voters", __name__, url_prefix="/api/voters")

VOTER_STATUSES = ("approved", "rejected")


def apply_voter_status(voter_id, status, actor):
    """Approve or reject a voter. Approval registers the wallet on chain before the DB changes.

    Returns ``(payload, http_status)``.
    """
    voters = get_db().voters
    oid = to_object_id(voter_id)
    voter = voters.find_one({"_id": oid}) if oid else None
    if not voter:
        return {"success": False, "message": "Voter not found"}, 404

    tx_hash = None
    if status == "approved":
        if not voter.get("aadhaar_number") or not voter.get("mobile_number"):
            return {
                "success": False,
                "message": "Cannot approve voter. Profile is incomplete. Missing Aadhar or Mobile Number."
            }, 400
        try:
            _, tx_hash = get_chain().ensure_registered(voter["wallet_address"])
        except ChainError as e:
            logger.error("Failed to register voter %s on-chain: %s (reason: %s)", voter["wallet_address"], e, e.reason)
            return {"success": False, "message": "Failed to register voter on the blockchain.", "error": str(e)}, 500

    reason = "Registration approved by admin." if status == "approved" else "Registration rejected by admin."
    now = utcnow()
    voters.update_one({"_id": oid}, {"$set": {"status": status, "status_reason": reason, "last_updated": now}})
    voter.update(status=status, status_reason=reason, last_updated=now)
    log_audit("voter_status_changed", actor, {"voter_id": str(oid), "status": status, "tx_hash": tx_hash})
    return {"success": True, "message": f"Voter status updated to {status}.", "voter": voter_to_json(voter)}, 200


@bp.route("", methods=["GET"])
@bp.route("/", methods=["GET"])
@role_required("admin")
def list_voters():
    docs = get_db().voters.find({}).sort("registration_date", DESCENDING)
    return jsonify([voter_to_json(v) for v in docs]), 200


@bp.route("/register", methods=["POST"])
def register_voter():
    data = json_body()
    wallet = text_field(data, "walletAddress")
    name = text_field(data, "name")
    email = text_field(data, "email").lower()
    aadhaar = text_field(data, "aadharNumber", "aadhaarNumber")
    mobile = text_field(data, "mobileNumber")

    errors = FieldErrors()
    errors.check(is_eth_address(wallet), "walletAddress", "Invalid wallet address")
    errors.check(bool(name), "name", "Name is required")
    errors.check(is_email(email), "email", "Please include a valid email")
    errors.check(bool(AADHAAR_RE.match(aadhaar)), "aadharNumber", "Aadhar number must be 12 digits")
    errors.check(bool(MOBILE_RE.match(mobile)), "mobileNumber", "Mobile number must be 10 digits")
    if errors:
        return jsonify({"success": False, "errors": errors.items}), 400

    voters = get_db().voters
    wallet = wallet.lower()
    clash = voters.find_one({
        "$or": [{"aadhaar_number": aadhaar}, {"mobile_number": mobile}],
        "wallet_address": {"$ne": wallet},
    })
    if clash:
        return jsonify({
            "success": False,
            "message": "Aadhar or Mobile Number is already registered with a different wallet address."
        }), 409

    now = utcnow()
    fields = {
        "name": name,
        "email": email,
        "aadhaar_number": aadhaar,
        "mobile_number": mobile,
        "status": "pending",  # any change goes back through approval
        "last_updated": now,
    }
    try:
        voters.update_one(
            {"wallet_address": wallet},
            {"$set": fields,
             "$setOnInsert": {"has_voted": False, "voted_polls": [],
                              "registration_date": now, "is_active": True}},
            upsert=True,
        )
    except DuplicateKeyError:
        return jsonify({"success": False, "message": "A user with the provided details already exists."}), 409

    log_audit("voter_registered", wallet)
    return jsonify({
        "success": True,
        "message": "Registration request submitted successfully. Waiting for admin approval.",
        "status": "pending"
    }), 201


@bp.route("/login", methods=["POST"])
def voter_login():
    data = json_body()
    wallet = text_field(data, "walletAddress")
    if not is_eth_address(wallet):
        return jsonify({"success": False, "errors": [{"param": "walletAddress", "msg": "Invalid wallet address"}]}), 400

    voter = get_db().voters.find_one({"wallet_address": wallet.lower()})
    if not voter:
        return jsonify({"success": False, "message": "Voter not registered. Please complete the registration process."}), 404
    if voter.get("status") == "pending":
        return jsonify({"success": False, "message": "Your registration is pending approval."}), 403
    if voter.get("status") == "rejected":
        return jsonify({"success": False, "message": "Your registration has been rejected. Please contact support."}), 403
    if voter.get("status") != "approved":
        return jsonify({"success": False, "message": "Your account is not active. Please contact support."}), 403

    token = create_voter_token(voter)
    log_audit("voter_login", voter["wallet_address"], {"via": "wallet"})
    view = voter_to_json(voter)
    return jsonify({
        "success": True,
        "message": "Login successful.",
        "token": token,
        "voter": {k: view[k] for k in ("id", "name", "email", "walletAddress", "hasVoted")}
    }), 200


@bp.route("/status/<wallet_address>", methods=["GET"])
def voter_status(wallet_address):
    if not is_eth_address(wallet_address):
        return jsonify({"success": False, "message": "Invalid wallet address"}), 400
    voter = get_db().voters.find_one({"wallet_address": wallet_address.lower()})
    if not voter:
        return jsonify({"success": True, "registered": False, "pending": False, "status": "not_registered"}), 200
    view = voter_to_json(voter)
    return jsonify({
        "success": True,
        "registered": view["status"] == "approved",
        "pending": view["status"] == "pending",
        "status": view["status"],
        "hasVoted": view["hasVoted"],
        "walletAddress": view["walletAddress"],
        "name": view["name"],
        "email": view["email"],
        "registrationDate": view["registrationDate"],
    }), 200


@bp.route("/<voter_id>/status", methods=["PUT"])
@role_required("admin")
def update_status(voter_id):
    data = json_body()
    status = data.get("status")
    if status not in VOTER_STATUSES:
        return jsonify({"success": False, "errors": [{"param": "status", "msg": "Invalid status value."}]}), 400
    payload, code = apply_voter_status(voter_id, status, current_user["wallet_address"])
    return jsonify(payload), code


@bp.route("/debug/<wallet_address>", methods=["GET"])
@role_required("admin")
def debug_voter(wallet_address):
    if not is_eth_address(wallet_address):
        return jsonify({"message": "Invalid wallet address format."}), 400
    voter = get_db().voters.find_one({"wallet_address": wallet_address.lower()})
    if not voter:
        return jsonify({"message": "Voter not found with that address."}), 404
    return jsonify({"message": "Voter data found.", "voter": voter_to_json(voter)}), 200


@bp.route("/history", methods=["GET"])
@role_required("voter")
def vote_history():
    db = get_db()
    out = []
    for v in db.votes.find({"voter": current_user["_id"]}).sort("created_at", DESCENDING):
        poll = db.polls.find_one({"_id": v["poll"]}, {"title": 1, "description": 1})
        out.append(vote_to_json(v, poll=poll or {"_id": v["poll"]}))
    return jsonify(out), 200
