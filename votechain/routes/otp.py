import logging

from flask import Blueprint, jsonify, current_app
from twilio.base.exceptions import TwilioException

from ..extensions import limiter
from ..models import get_db, log_audit
from .. import otp_store
from ..sms_utils import send_sms
from ..validators import MOBILE_RE, json_body, text_field

logger = logging.getLogger(__name__)

bp = Blueprint("otp", __name__, url_prefix="/api/otp")


def _otp_limit():
    return current_app.config["OTP_RATE_LIMIT"]


@bp.route("/send-otp", methods=["POST"])
@limiter.limit(_otp_limit)
def send_otp():
    data = json_body()
    mobile = text_field(data, "mobileNumber")
    if not MOBILE_RE.match(mobile):
        return jsonify({"success": False, "errors": [{"param": "mobileNumber", "msg": "Mobile number must be 10 digits"}]}), 400

    key = otp_store.sms_key(mobile)
    code = otp_store.issue(key)
    try:
        send_sms(mobile, f"Your OTP for voter registration is {code}")
    except TwilioException as e:
        logger.error("Error sending OTP to %s: %s", mobile, e)
        get_db().otps.delete_one({"key": key})
        return jsonify({"success": False, "message": "Failed to send OTP"}), 500

    log_audit("otp_issued", mobile, {"channel": "sms"})
    return jsonify({"success": True, "message": "OTP sent successfully"}), 200


@bp.route("/verify-otp", methods=["POST"])
@limiter.limit(_otp_limit)
def verify_otp():
    data = json_body()
    mobile = text_field(data, "mobileNumber")
    try:
        otp_store.verify(otp_store.sms_key(mobile), data.get("otp"))
    except otp_store.OtpError as e:
        logger.info("SMS OTP check failed for %s: %s", mobile, e)
        return jsonify({"success": False, "message": "Invalid OTP"}), 400
    return jsonify({"success": True, "message": "OTP verified successfully"}), 200
