"""Aadhaar + email OTP sign-in.

Sending checks the (aadhaar, email) pair against the registry sheet and mails
a code. Logging in verifies the code, makes sure the wallet is registered on
chain and folds whatever voter records exist for the aadhaar number and the
wallet into a single approved voter.
"""
import logging

from flask import Blueprint, jsonify, current_app
from pymongo.errors import DuplicateKeyError

from ..aadhaar_registry import get_registry
from ..auth import create_voter_token
from ..chain import get_chain, ChainError
from ..extensions import limiter
from ..mail_utils import send_email, smtp_missing
from ..models import get_db, log_audit, utcnow
from .. import otp_store
from ..validators import (
    FieldErrors, json_body, text_field, is_eth_address, is_email, normalize_aadhaar, normalize_email,
)

logger = logging.getLogger(__name__)

bp = Blueprint("email_auth", __name__, url_prefix="/api/email-auth")


def _otp_limit():
    return current_app.config["OTP_RATE_LIMIT"]


def _identity_errors(aadhaar, email):
    errors = FieldErrors()
    errors.check(len(aadhaar) >= 4, "aadhaarNumber", "Aadhaar number required")
    errors.check(is_email(email), "email", "Valid email required")
    return errors


@bp.route("/send-otp", methods=["POST"])
@limiter.limit(_otp_limit)
def send_otp():
    data = json_body()
    aadhaar = normalize_aadhaar(data.get("aadhaarNumber") or data.get("aadharNumber"))
    email = normalize_email(data.get("email"))
    errors = _identity_errors(aadhaar, email)
    if errors:
        return jsonify({"success": False, "errors": errors.items}), 400

    missing = smtp_missing()
    if missing:
        logger.error("Email OTP requested but SMTP is not configured: %s", ", ".join(missing))
        return jsonify({"success": False, "message": "Email service is not configured.", "missing": missing}), 500

    if not get_registry().is_valid_pair(aadhaar, email):
        log_audit("otp_rejected", email, {"reason": "aadhaar_email_mismatch"})
        return jsonify({"success": False, "message": "Aadhaar number and email do not match our records."}), 400

    code = otp_store.issue(otp_store.otp_key(aadhaar, email))
    minutes = current_app.config["OTP_TTL_SECONDS"] // 60
    body = f"Your voting login OTP is {code}. It expires in {minutes} minutes."
    if not send_email(email, "Your voting login OTP", body):
        return jsonify({"success": False, "message": "Failed to send OTP email."}), 500

    log_audit("otp_issued", email, {"channel": "email"})
    return jsonify({"success": True, "message": "OTP sent to your email."}), 200


def _fold_voter(keep, old):
    """Move ``old``'s ballots and voting history onto ``keep``, then delete ``old``."""
    db = get_db()
    keep_id, old_id = keep["_id"], old["_id"]
    folded = old.get("voted_polls") or []
    update = {"$addToSet": {"voted_polls": {"$each": folded}}}
    if folded or old.get("has_voted"):
        update["$set"] = {"has_voted": True}
    db.voters.update_one({"_id": keep_id}, update)

    # one ballot per poll; a second ballot from the other record is withdrawn
    already = set(db.votes.distinct("poll", {"voter": keep_id}))
    for vote in db.votes.find({"voter": old_id, "poll": {"$in": list(already)}}):
        logger.warning("Dropping duplicate ballot %s on poll %s while merging voter %s into %s",
                       vote["_id"], vote["poll"], old_id, keep_id)
        db.polls.update_one({"_id": vote["poll"], "options.text": vote.get("option_text")},
                            {"$inc": {"options.$.votes": -1}})
        db.votes.delete_one({"_id": vote["_id"]})
    db.votes.update_many({"voter": old_id}, {"$set": {"voter": keep_id}})

    db.voters.delete_one({"_id": old_id})


def reconcile_voter(aadhaar, email, wallet, name=None):
    """Merge the aadhaar record and the wallet record into one approved voter and return it."""
    voters = get_db().voters
    now = utcnow()
    by_aadhaar = voters.find_one({"aadhaar_number": aadhaar})
    by_wallet = voters.find_one({"wallet_address": wallet})

    fields = {
        "aadhaar_number": aadhaar,
        "email": email,
        "wallet_address": wallet,
        "status": "approved",
        "status_reason": "Verified by Aadhaar email OTP.",
        "last_updated": now,
    }
    if name:
        fields["name"] = name

    try:
        if by_aadhaar and by_wallet and by_aadhaar["_id"] != by_wallet["_id"]:
            logger.info("Merging wallet record %s into aadhaar record %s", by_wallet["_id"], by_aadhaar["_id"])
            _fold_voter(by_aadhaar, by_wallet)
            if by_wallet.get("mobile_number") and not by_aadhaar.get("mobile_number"):
                fields["mobile_number"] = by_wallet["mobile_number"]
            voters.update_one({"_id": by_aadhaar["_id"]}, {"$set": fields})
        elif by_aadhaar or by_wallet:
            existing = by_aadhaar or by_wallet
            voters.update_one({"_id": existing["_id"]}, {"$set": fields})
        else:
            doc = dict(fields, registration_date=now, has_voted=False, voted_polls=[], is_active=True)
            doc.setdefault("name", "")
            voters.insert_one(doc)
    except DuplicateKeyError as e:
        logger.warning("Voter reconcile hit a duplicate key, retrying as update: %s", e)
        result = voters.update_one(
            {"$or": [{"aadhaar_number": aadhaar}, {"wallet_address": wallet}]},
            {"$set": fields},
        )
        if not result.matched_count:
            voters.update_one(
                {"aadhaar_number": aadhaar},
                {"$set": fields,
                 "$setOnInsert": {"registration_date": now, "has_voted": False, "voted_polls": [], "is_active": True}},
                upsert=True,
            )
    return voters.find_one({"wallet_address": wallet})


@bp.route("/login", methods=["POST"])
@limiter.limit(_otp_limit)
def login():
    data = json_body()
    aadhaar = normalize_aadhaar(data.get("aadhaarNumber") or data.get("aadharNumber"))
    email = normalize_email(data.get("email"))
    wallet = text_field(data, "walletAddress")
    code = text_field(data, "otp")
    name = text_field(data, "name") or None

    errors = _identity_errors(aadhaar, email)
    errors.check(is_eth_address(wallet), "walletAddress", "Invalid wallet address")
    errors.check(len(code) >= 4, "otp", "OTP required")
    if errors:
        return jsonify({"success": False, "errors": errors.items}), 400
    wallet = wallet.lower()

    try:
        otp_store.verify(otp_store.otp_key(aadhaar, email), code)
    except otp_store.OtpError as e:
        log_audit("otp_failed", email, {"reason": str(e)})
        return jsonify({"success": False, "message": str(e)}), 400

    if not get_registry().is_valid_pair(aadhaar, email):
        logger.warning("Aadhaar %s no longer matches %s in the registry sheet", aadhaar, email)

    chain = get_chain()
    if not chain.configured:
        return jsonify({"success": False, "message": "Blockchain not configured on server."}), 500
    try:
        already, tx_hash = chain.ensure_registered(wallet)
        log_audit("chain_register", wallet, {"already_registered": already, "tx_hash": tx_hash})
    except ChainError as e:
        if current_app.config["ENFORCE_CHAIN_REGISTER"]:
            logger.error("On-chain registration failed for %s: %s", wallet, e)
            return jsonify({"success": False, "message": "Failed to register wallet on the blockchain.",
                            "error": e.reason}), 500
        logger.warning("On-chain registration failed for %s, continuing: %s", wallet, e)

    voter = reconcile_voter(aadhaar, email, wallet, name)
    token = create_voter_token(voter)
    log_audit("voter_login", wallet, {"via": "email_otp"})
    return jsonify({
        "success": True,
        "message": "Login successful.",
        "token": token,
        "voter": {
            "id": str(voter["_id"]),
            "name": voter.get("name", ""),
            "email": voter.get("email"),
            "walletAddress": voter["wallet_address"],
            "aadharNumber": voter.get("aadhaar_number"),
            "status": voter.get("status"),
        },
    }), 200
