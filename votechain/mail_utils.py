import smtplib
import ssl
from email.message import EmailMessage
from flask import current_app
from pymongo.errors import PyMongoError
from .config import missing_settings
from .models import log_audit, get_db, utcnow
import logging
import certifi

logger = logging.getLogger(__name__)

SMTP_KEYS = ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "EMAIL_FROM")


def smtp_missing():
    return missing_settings(current_app.config, SMTP_KEYS)


def send_email(to_email: str, subject: str, body: str):
    cfg = current_app.config
    try:
        get_db().outbox.insert_one({
            "to": to_email,
            "subject": subject,
            "body": body,
            "timestamp": utcnow()
        })
    except PyMongoError as e:
        logger.warning("Could not copy mail for %s to the outbox: %s", to_email, e)
        log_audit("outbox_store_failed", "system", {"to": to_email, "error": str(e)})

    if smtp_missing():
        log_audit("email_send_skipped", "system", {"to": to_email, "reason": "smtp_not_configured"})
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = cfg["EMAIL_FROM"]
    msg["To"] = to_email
    msg.set_content(body)
    context = ssl.create_default_context(cafile=certifi.where())
    try:
        if cfg["SMTP_SECURE"]:
            server = smtplib.SMTP_SSL(cfg["SMTP_HOST"], cfg["SMTP_PORT"], timeout=10, context=context)
        else:
            server = smtplib.SMTP(cfg["SMTP_HOST"], cfg["SMTP_PORT"], timeout=10)
        with server:
            if not cfg["SMTP_SECURE"]:
                server.starttls(context=context)
            server.login(cfg["SMTP_USER"], cfg["SMTP_PASS"])
            server.send_message(msg)
        log_audit("email_sent", "system", {"to": to_email, "subject": subject})
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP send to %s failed: %s", to_email, e)
        log_audit("email_send_failed", "system", {"to": to_email, "error": str(e)})
        return False
