import certifi
from pymongo import MongoClient, ASCENDING, DESCENDING
from bson.objectid import ObjectId
from bson.errors import InvalidId
import datetime
import hashlib
import logging

from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "votechain.db"


def init_db(app, client=None):
    """Attach the Mongo database to ``app`` and make sure the indexes exist.

    A ready ``client`` may be passed in (tests hand over a mongomock client);
    otherwise one is built from ``MONGO_URI``.
    """
    if client is None:
        uri = app.config["MONGO_URI"]
        kwargs = {"serverSelectionTimeoutMS": 10000, "retryWrites": True}
        if uri.startswith("mongodb+srv://"):
            kwargs.update(tls=True, tlsCAFile=certifi.where())
        client = MongoClient(uri, **kwargs)
    db = client[app.config["MONGO_DB_NAME"]]
    ensure_indexes(db)
    app.extensions[EXTENSION_KEY] = db
    logger.info("MongoDB database '%s' ready", app.config["MONGO_DB_NAME"])
    return db


def ensure_indexes(db):
    db.voters.create_index([("wallet_address", ASCENDING)], unique=True)
    db.voters.create_index([("aadhaar_number", ASCENDING)], unique=True)
    db.voters.create_index([("mobile_number", ASCENDING)], unique=True, sparse=True)
    db.admins.create_index([("wallet_address", ASCENDING)], unique=True)
    # one ballot per (poll, voter)
    db.votes.create_index([("poll", ASCENDING), ("voter", ASCENDING)], unique=True)
    db.otps.create_index([("key", ASCENDING)], unique=True)
    db.otps.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
    db.polls.create_index([("created_at", DESCENDING)])
    db.audit_logs.create_index([("timestamp", DESCENDING)])


def get_db():
    return current_app.extensions[EXTENSION_KEY]


def utcnow():
    return datetime.datetime.utcnow()


def to_object_id(value):
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


# salted one-way hash for OTP codes
def hash_secret(code: str, salt: str):
    h = hashlib.sha256()
    h.update(salt.encode('utf-8'))
    h.update(code.encode('utf-8'))
    return h.hexdigest()


# Audit logger
def log_audit(action: str, actor: str, details: dict = None):
    get_db().audit_logs.insert_one({
        "action": action,
        "actor": actor,
        "details": details or {},
        "timestamp": utcnow()
    })


def _iso(value):
    return value.isoformat() if isinstance(value, datetime.datetime) else value


# ---------------------------
# JSON views (camelCase on the wire)
# ---------------------------
def voter_to_json(v):
    return {
        "id": str(v["_id"]),
        "_id": str(v["_id"]),
        "walletAddress": v.get("wallet_address"),
        "name": v.get("name", ""),
        "email": v.get("email"),
        "aadharNumber": v.get("aadhaar_number"),
        "mobileNumber": v.get("mobile_number"),
        "status": v.get("status", "pending"),
        "statusReason": v.get("status_reason"),
        "hasVoted": bool(v.get("has_voted") or v.get("voted_polls")),
        "votedPolls": [str(p) for p in v.get("voted_polls", [])],
        "registrationDate": _iso(v.get("registration_date")),
        "lastUpdated": _iso(v.get("last_updated")),
        "isActive": v.get("is_active", True),
    }


def poll_to_json(p):
    now = utcnow()
    end_time = p.get("end_time")
    return {
        "id": str(p["_id"]),
        "_id": str(p["_id"]),
        "title": p.get("title"),
        "description": p.get("description"),
        "options": [{"text": o.get("text"), "votes": o.get("votes", 0)} for o in p.get("options", [])],
        "duration": p.get("duration"),
        "blockchainId": p.get("blockchain_id"),
        "createdAt": _iso(p.get("created_at")),
        "endTime": _iso(end_time),
        "status": "Closed" if end_time and now > end_time else "Active",
    }


def vote_to_json(v, poll=None):
    out = {
        "id": str(v["_id"]),
        "_id": str(v["_id"]),
        "poll": str(v["poll"]),
        "voter": str(v["voter"]),
        "optionText": v.get("option_text"),
        "txHash": v.get("tx_hash"),
        "createdAt": _iso(v.get("created_at")),
    }
    if poll is not None:
        out["poll"] = {"_id": str(poll["_id"]), "title": poll.get("title"), "description": poll.get("description")}
    return out


def audit_to_json(a):
    return {
        "action": a.get("action"),
        "actor": a.get("actor"),
        "details": a.get("details"),
        "timestamp": _iso(a.get("timestamp")),
    }
