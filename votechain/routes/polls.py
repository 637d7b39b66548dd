import datetime
import logging
import math

from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import current_user
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from ..auth import role_required, approved_voter_required
from ..chain import get_chain, ChainError, INFINITE_DURATION_SECONDS
from ..models import get_db, log_audit, utcnow, to_object_id, poll_to_json, vote_to_json
from ..validators import json_body, text_field

logger = logging.getLogger(__name__)

bp = Blueprint("polls", __name__, url_prefix="/api/polls")


def _with_chain_state(poll):
    """Poll JSON with the on-chain tallies laid over the stored ones."""
    out = poll_to_json(poll)
    out["contractAddress"] = current_app.config["VOTING_CONTRACT_ADDRESS"] or None
    if poll.get("blockchain_id") is None:
        out["onChainValid"] = False
        return out
    try:
        state = get_chain().get_poll(poll["blockchain_id"])
    except ChainError as e:
        logger.warning("Could not read poll %s from chain: %s", poll["blockchain_id"], e)
        out["onChainValid"] = False
        return out
    for option, votes in zip(out["options"], state["votes"]):
        option["votes"] = votes
    out["endTimeOnChain"] = state["endTime"]
    out["isActiveOnChain"] = state["isActive"]
    out["onChainValid"] = True
    return out


@bp.route("", methods=["GET"])
@bp.route("/", methods=["GET"])
def list_polls():
    docs = get_db().polls.find({}).sort("created_at", DESCENDING)
    return jsonify([_with_chain_state(p) for p in docs]), 200


def _parse_duration(raw):
    """Returns ``(minutes or None for infinite, error message)``."""
    if isinstance(raw, str) and raw.strip().lower() == "infinite":
        return None, None
    if isinstance(raw, bool):
        raw = None
    try:
        minutes = float(raw)
    except (TypeError, ValueError):
        minutes = float("nan")
    # the contract counts whole seconds
    if not math.isfinite(minutes) or int(minutes * 60) < 1:
        return None, 'Invalid duration provided. Must be a positive number or "infinite".'
    limit = current_app.config["MAX_POLL_DURATION_MINUTES"]
    if minutes > limit:
        return None, f"Duration too long. Maximum allowed is {limit} minutes (1 year)."
    return int(minutes) if minutes.is_integer() else minutes, None


@bp.route("", methods=["POST"])
@bp.route("/", methods=["POST"])
@role_required("admin")
def create_poll():
    data = json_body()
    title = data.get("title")
    description = data.get("description")
    options = data.get("options")
    duration = data.get("duration")

    valid = (
        isinstance(title, str) and title.strip()
        and isinstance(description, str) and description.strip()
        and isinstance(options, list) and len(options) >= 2
        and all(isinstance(o, str) and o.strip() for o in options)
        and duration is not None
    )
    if not valid:
        return jsonify({"success": False, "message": "Invalid poll data provided."}), 400

    minutes, problem = _parse_duration(duration)
    if problem:
        return jsonify({"success": False, "message": problem}), 400

    title, description = title.strip(), description.strip()
    options = [o.strip() for o in options]
    seconds = INFINITE_DURATION_SECONDS if minutes is None else int(minutes * 60)
    try:
        poll_id, tx_hash = get_chain().create_poll(title, description, options, seconds)
    except ChainError as e:
        logger.error("On-chain poll creation failed: %s", e)
        return jsonify({"success": False, "message": f"Blockchain error: {e.reason}"}), 500

    now = utcnow()
    poll = {
        "title": title,
        "description": description,
        "options": [{"text": o, "votes": 0} for o in options],
        "duration": "infinite" if minutes is None else minutes,
        "blockchain_id": poll_id,
        "tx_hash": tx_hash,
        "created_by": current_user["wallet_address"],
        "created_at": now,
        "end_time": None if minutes is None else now + datetime.timedelta(minutes=minutes),
    }
    poll["_id"] = get_db().polls.insert_one(poll).inserted_id
    log_audit("poll_created", current_user["wallet_address"], {"poll_id": str(poll["_id"]),
                                                               "blockchain_id": poll_id, "tx_hash": tx_hash})
    return jsonify(poll_to_json(poll)), 201


@bp.route("/<poll_id>/vote", methods=["POST"])
@approved_voter_required
def cast_vote(poll_id):
    data = json_body()
    option_text = data.get("optionText")
    db = get_db()

    oid = to_object_id(poll_id)
    poll = db.polls.find_one({"_id": oid}) if oid else None
    if not poll:
        return jsonify({"success": False, "message": "Poll not found."}), 404
    texts = [o.get("text") for o in poll.get("options", [])]
    if option_text not in texts:
        return jsonify({"success": False, "message": "Invalid option selected."}), 400

    voter_id = current_user["_id"]
    if db.votes.find_one({"poll": oid, "voter": voter_id}):
        return jsonify({"success": False, "message": "You have already voted on this poll."}), 409

    vote = {
        "poll": oid,
        "voter": voter_id,
        "option_text": option_text,
        "tx_hash": text_field(data, "txHash") or None,
        "created_at": utcnow(),
    }
    try:
        vote["_id"] = db.votes.insert_one(vote).inserted_id
    except DuplicateKeyError:
        # lost the race against a concurrent ballot
        return jsonify({"success": False, "message": "You have already voted on this poll."}), 409

    db.polls.update_one({"_id": oid}, {"$inc": {f"options.{texts.index(option_text)}.votes": 1}})
    db.voters.update_one({"_id": voter_id}, {"$addToSet": {"voted_polls": oid}, "$set": {"has_voted": True}})
    log_audit("vote_cast", current_user["wallet_address"], {"poll_id": str(oid), "vote_id": str(vote["_id"])})
    return jsonify(vote_to_json(vote)), 201


@bp.route("/<poll_id>", methods=["PUT"])
@role_required("admin")
def update_poll(poll_id):
    data = json_body()
    title = text_field(data, "title")
    description = text_field(data, "description")
    if not title or not description:
        return jsonify({"success": False, "message": "Title and description are required."}), 400

    oid = to_object_id(poll_id)
    polls = get_db().polls
    if not oid or not polls.find_one({"_id": oid}):
        return jsonify({"success": False, "message": "Poll not found."}), 404
    polls.update_one({"_id": oid}, {"$set": {"title": title, "description": description, "updated_at": utcnow()}})
    log_audit("poll_updated", current_user["wallet_address"], {"poll_id": poll_id})
    return jsonify(poll_to_json(polls.find_one({"_id": oid}))), 200


@bp.route("/<poll_id>", methods=["DELETE"])
@role_required("admin")
def delete_poll(poll_id):
    oid = to_object_id(poll_id)
    db = get_db()
    poll = db.polls.find_one({"_id": oid}) if oid else None
    if not poll:
        return jsonify({"success": False, "message": "Poll not found."}), 404
    db.votes.delete_many({"poll": oid})
    db.polls.delete_one({"_id": oid})
    db.voters.update_many({"voted_polls": oid}, {"$pull": {"voted_polls": oid}})
    log_audit("poll_deleted", current_user["wallet_address"], {"poll_id": poll_id,
                                                               "blockchain_id": poll.get("blockchain_id")})
    return jsonify({"success": True, "message": "Poll deleted successfully"}), 200
