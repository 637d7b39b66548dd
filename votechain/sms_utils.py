import logging

from flask import current_app
from twilio.rest import Client

logger = logging.getLogger(__name__)


def send_sms(mobile_number: str, body: str):
    """Send ``body`` to a local mobile number; Twilio errors propagate to the caller."""
    cfg = current_app.config
    client = Client(cfg["TWILIO_ACCOUNT_SID"], cfg["TWILIO_AUTH_TOKEN"])
    message = client.messages.create(
        body=body,
        from_=cfg["TWILIO_PHONE_NUMBER"],
        to=f"{cfg['SMS_COUNTRY_CODE']}{mobile_number}",
    )
    logger.info("SMS %s queued for %s", message.sid, mobile_number)
    return message.sid
