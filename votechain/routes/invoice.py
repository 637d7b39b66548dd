"""Vote receipts.

The plain download is a simple owner-checked PDF. The signed flow hands the
wallet a challenge, checks the returned signature and encrypts the PDF with a
password derived from that signature, so only the wallet can open it again.
"""
import base64

from flask import Blueprint, jsonify, current_app, Response
from flask_jwt_extended import current_user

from ..auth import role_required
from ..challenges import challenges
from ..crypto_utils import make_nonce, build_challenge, verify_signature, derive_password
from ..invoice import generate_invoice
from ..models import get_db, log_audit, to_object_id
from ..validators import json_body, text_field

bp = Blueprint("invoice", __name__, url_prefix="/api/invoice")


def _owned_vote(vote_id):
    """Returns ``(vote, poll, error_response)`` for the current voter."""
    db = get_db()
    oid = to_object_id(vote_id)
    vote = db.votes.find_one({"_id": oid}) if oid else None
    if not vote:
        return None, None, (jsonify({"success": False, "message": "Vote not found."}), 404)
    if vote["voter"] != current_user["_id"]:
        log_audit("invoice_access_denied", current_user["wallet_address"], {"vote_id": vote_id})
        return None, None, (jsonify({
            "success": False, "message": "Access denied. You can only download your own invoices."
        }), 403)
    poll = db.polls.find_one({"_id": vote["poll"]})
    if not poll:
        return None, None, (jsonify({"success": False, "message": "Associated poll or voter not found."}), 404)
    return vote, poll, None


def _challenge_key(vote_id):
    return f"{current_user['_id']}:{vote_id}"


@bp.route("/<vote_id>", methods=["GET"])
@role_required("voter")
def download(vote_id):
    vote, poll, error = _owned_vote(vote_id)
    if error:
        return error
    pdf = generate_invoice(vote, poll, current_user)
    log_audit("invoice_downloaded", current_user["wallet_address"], {"vote_id": vote_id, "encrypted": False})
    return Response(pdf, mimetype="application/pdf", headers={
        "Content-Disposition": f"attachment; filename=invoice-{vote_id}.pdf"
    })


@bp.route("/<vote_id>/challenge", methods=["GET"])
@role_required("voter")
def challenge(vote_id):
    _, _, error = _owned_vote(vote_id)
    if error:
        return error
    address = current_user["wallet_address"].lower()
    message = build_challenge(address, vote_id, make_nonce())
    challenges.set(_challenge_key(vote_id), message, current_app.config["CHALLENGE_TTL_SECONDS"])
    return jsonify({"address": address, "voteId": vote_id, "challenge": message}), 200


@bp.route("/<vote_id>/download", methods=["POST"])
@role_required("voter")
def signed_download(vote_id):
    data = json_body()
    address = text_field(data, "address")
    signature = text_field(data, "signature")
    if not address or not signature:
        return jsonify({"success": False, "message": "address and signature are required."}), 400

    vote, poll, error = _owned_vote(vote_id)
    if error:
        return error
    if address.lower() != current_user["wallet_address"].lower():
        return jsonify({"success": False, "message": "Address does not match your wallet."}), 403

    key = _challenge_key(vote_id)
    message = challenges.get(key)
    if not message:
        return jsonify({"success": False, "message": "Challenge missing or expired. Request a new one."}), 400
    if not verify_signature(address, signature, message):
        log_audit("invoice_signature_invalid", current_user["wallet_address"], {"vote_id": vote_id})
        return jsonify({"success": False, "message": "Signature verification failed."}), 401
    challenges.delete(key)

    password = derive_password(signature, vote_id)
    pdf = generate_invoice(vote, poll, current_user, user_password=password)
    log_audit("invoice_downloaded", current_user["wallet_address"], {"vote_id": vote_id, "encrypted": True})
    return jsonify({
        "password": password,
        "filename": f"invoice-{vote_id}.pdf",
        "pdfBase64": base64.b64encode(pdf).decode("ascii"),
    }), 200
