import logging

from flask import Blueprint, jsonify
from pymongo.errors import DuplicateKeyError

from ..auth import hash_password, check_password, create_admin_token, create_voter_token
from ..chain import get_chain, ChainError
from ..models import get_db, log_audit, utcnow
from ..validators import FieldErrors, json_body, text_field, is_eth_address, password_problems

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# ---------------------------
# Admin login / registration (wallet + password)
# ---------------------------
@bp.route("/login", methods=["POST"])
def admin_login():
    data = json_body()
    wallet = text_field(data, "walletAddress")
    password = data.get("password") or ""
    errors = FieldErrors()
    errors.check(is_eth_address(wallet), "walletAddress", "Please provide a valid Ethereum address")
    for msg in password_problems(password, strict=False):
        errors.add("password", msg)
    if errors:
        return jsonify({"success": False, "errors": [e["msg"] for e in errors.items]}), 400

    admins = get_db().admins
    admin = admins.find_one({"wallet_address": wallet.lower()})
    if not admin or not admin.get("is_active", True) or not check_password(password, admin["password_hash"]):
        log_audit("admin_login_failed", wallet.lower())
        return jsonify({"success": False, "message": "Invalid credentials"}), 401

    now = utcnow()
    admins.update_one({"_id": admin["_id"]}, {"$set": {"last_login": now}})
    token = create_admin_token(admin)
    log_audit("admin_login", admin["wallet_address"])
    return jsonify({
        "success": True,
        "token": token,
        "admin": {"walletAddress": admin["wallet_address"], "lastLogin": now.isoformat()}
    }), 200


def create_admin(wallet, password):
    """Insert an admin; raises DuplicateKeyError when the wallet is taken."""
    doc = {
        "wallet_address": wallet.lower(),
        "password_hash": hash_password(password),
        "role": "admin",
        "is_active": True,
        "last_login": None,
        "created_at": utcnow(),
    }
    get_db().admins.insert_one(doc)
    return doc


@bp.route("/register", methods=["POST"])
def admin_register():
    data = json_body()
    wallet = text_field(data, "walletAddress")
    password = data.get("password") or ""
    logger.info("Admin registration request for %s", wallet)

    errors = FieldErrors()
    errors.check(is_eth_address(wallet), "walletAddress", "Please provide a valid Ethereum address")
    if is_eth_address(wallet) and get_db().admins.find_one({"wallet_address": wallet.lower()}):
        errors.add("walletAddress", "Admin already exists")
    for msg in password_problems(password):
        errors.add("password", msg)
    if errors:
        return jsonify({"success": False, "errors": errors.items}), 400

    try:
        admin = create_admin(wallet, password)
    except DuplicateKeyError:
        return jsonify({"success": False, "message": "Admin already exists"}), 400
    log_audit("admin_registered", admin["wallet_address"])
    return jsonify({"success": True, "message": "Admin created successfully"}), 201


# ---------------------------
# Voter wallet login, also checks the on-chain registry
# ---------------------------
@bp.route("/voter/login", methods=["POST"])
def voter_login():
    data = json_body()
    wallet = text_field(data, "walletAddress")
    if not is_eth_address(wallet):
        return jsonify({"success": False, "errors": [{"param": "walletAddress", "msg": "Invalid wallet address"}]}), 400

    voter = get_db().voters.find_one({"wallet_address": wallet.lower()})
    if not voter:
        logger.info("Voter login failed for %s: not in database", wallet)
        return jsonify({"success": False, "message": "Voter not found. Please register first."}), 404
    if voter.get("status") != "approved":
        return jsonify({
            "success": False,
            "message": f"Your registration status is {voter.get('status')}. Please wait for admin approval."
        }), 403

    try:
        registered = get_chain().is_registered(voter["wallet_address"])
    except ChainError as e:
        logger.error("On-chain registration check failed for %s: %s", wallet, e)
        return jsonify({"success": False, "message": "Server error during voter login"}), 500
    if not registered:
        return jsonify({
            "success": False,
            "message": "Voter approved but not yet registered on-chain. Please wait a moment and try again."
        }), 403

    token = create_voter_token(voter)
    log_audit("voter_login", voter["wallet_address"], {"via": "wallet_chain_check"})
    return jsonify({
        "success": True,
        "token": token,
        "voter": {"id": str(voter["_id"]), "name": voter.get("name"), "walletAddress": voter["wallet_address"]}
    }), 200
