from flask_jwt_extended import JWTManager, create_access_token, jwt_required, get_jwt, current_user
from functools import wraps
from flask import jsonify, current_app
import datetime
import logging

from .models import get_db, to_object_id, log_audit

logger = logging.getLogger(__name__)

jwt = JWTManager()


# bcrypt + salt -> single auth -> hashing
def hash_password(plain_password: str) -> bytes:
    import bcrypt
    return bcrypt.hashpw(plain_password.encode('utf-8'), bcrypt.gensalt())


def check_password(plain_password: str, pw_hash: bytes) -> bool:
    import bcrypt
    if isinstance(pw_hash, str):
        pw_hash = pw_hash.encode('utf-8')
    return bcrypt.checkpw(plain_password.encode('utf-8'), pw_hash)


# Token => identity is the Mongo id, role decides which collection it lives in
def create_admin_token(admin_doc):
    expires = datetime.timedelta(hours=current_app.config["ADMIN_TOKEN_HOURS"])
    claims = {"role": "admin", "walletAddress": admin_doc["wallet_address"]}
    return create_access_token(identity=str(admin_doc["_id"]), additional_claims=claims, expires_delta=expires)


def create_voter_token(voter_doc):
    expires = datetime.timedelta(hours=current_app.config["VOTER_TOKEN_HOURS"])
    return create_access_token(identity=str(voter_doc["_id"]), additional_claims={"role": "voter"}, expires_delta=expires)


@jwt.user_lookup_loader
def load_user(jwt_header, jwt_payload):
    oid = to_object_id(jwt_payload.get("sub"))
    if oid is None:
        return None
    collection = get_db().admins if jwt_payload.get("role") == "admin" else get_db().voters
    user = collection.find_one({"_id": oid})
    if not user or not user.get("is_active", True):
        return None
    user["role"] = jwt_payload.get("role", "voter")
    return user


def role_required(*roles):
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            role = get_jwt().get("role")
            if role not in roles:
                log_audit("unauthorized_access_attempt", str(current_user["_id"]), {"required_roles": list(roles), "actual_role": role})
                label = roles[0].capitalize()
                return jsonify({"success": False, "message": f"Access denied. {label} privileges required."}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def approved_voter_required(fn):
    @wraps(fn)
    @role_required("voter")
    def wrapper(*args, **kwargs):
        if current_user.get("status") != "approved":
            return jsonify({"success": False, "message": "Your account is pending approval or has been rejected."}), 403
        return fn(*args, **kwargs)
    return wrapper


class LegacyTokenHeader:
    """WSGI shim: the frontend sends ``x-auth-token``; expose it as the bearer token.

    The header wins over any ``Authorization`` header sent alongside it.
    """

    def __init__(self, wsgi_app):
        self.wsgi_app = wsgi_app

    def __call__(self, environ, start_response):
        token = environ.get("HTTP_X_AUTH_TOKEN")
        if token and token not in ("null", "undefined"):
            environ["HTTP_AUTHORIZATION"] = f"Bearer {token}"
        return self.wsgi_app(environ, start_response)


@jwt.user_lookup_error_loader
def user_lookup_error_callback(jwt_header, jwt_payload):
    return jsonify({"success": False, "message": "User not found or account is inactive"}), 401


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({"success": False, "msg": "token_expired", "message": "Your session has expired. Please login again."}), 401


@jwt.invalid_token_loader
def invalid_token_callback(error_string):
    return jsonify({"success": False, "msg": "invalid_token", "message": "Token is not valid or expired"}), 401


@jwt.unauthorized_loader
def missing_token_callback(error_string):
    return jsonify({"success": False, "msg": "missing_token", "message": "No token, authorization denied"}), 401


@jwt.revoked_token_loader
def revoked_token_callback(jwt_header, jwt_payload):
    return jsonify({"success": False, "msg": "revoked_token", "message": "Token has been revoked"}), 401
