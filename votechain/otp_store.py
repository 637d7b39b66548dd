import datetime
import logging
import secrets

from flask import current_app
from pymongo import ReturnDocument

from .models import get_db, hash_secret, utcnow
from .validators import normalize_aadhaar, normalize_email

logger = logging.getLogger(__name__)


class OtpError(Exception):
    pass


def otp_key(aadhaar, email):
    return f"{normalize_aadhaar(aadhaar)}:{normalize_email(email)}"


def sms_key(mobile):
    return f"sms:{str(mobile or '').strip()}"


def generate_code():
    return str(100000 + secrets.randbelow(900000))


def issue(key, ttl_seconds=None):
    """Store a fresh code for ``key`` (replacing any earlier one) and return it in clear."""
    ttl = ttl_seconds or current_app.config["OTP_TTL_SECONDS"]
    code = generate_code()
    salt = secrets.token_hex(16)
    now = utcnow()
    expires = now + datetime.timedelta(seconds=ttl)
    get_db().otps.find_one_and_update(
        {"key": key},
        {"$set": {"code_hash": hash_secret(code, salt), "salt": salt, "expires_at": expires, "updated_at": now},
         "$setOnInsert": {"created_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    logger.info("OTP issued for key %s, expires %s", key, expires.isoformat())
    return code


def verify(key, code):
    otps = get_db().otps
    doc = otps.find_one({"key": key})
    if not doc:
        raise OtpError("OTP not requested or expired.")
    # the TTL monitor only sweeps once a minute
    if utcnow() > doc["expires_at"]:
        raise OtpError("OTP expired. Please request a new one.")
    if hash_secret(str(code or "").strip(), doc["salt"]) != doc["code_hash"]:
        raise OtpError("Invalid OTP.")
    otps.delete_one({"_id": doc["_id"]})
