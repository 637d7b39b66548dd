import os
from dotenv import load_dotenv
load_dotenv()


def _flag(name, default="false"):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    # Database & JWT
    MONGO_URI = os.environ.get("MONGO_URI") or os.environ.get("MONGODB_URI", "mongodb://localhost:27017")
    MONGO_DB_NAME = os.environ.get("MONGO_DB_NAME", "voting_db")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or os.environ.get("JWT_SECRET", "change-me-to-a-strong-secret")
    ADMIN_TOKEN_HOURS = int(os.environ.get("ADMIN_TOKEN_HOURS", "24"))
    VOTER_TOKEN_HOURS = int(os.environ.get("VOTER_TOKEN_HOURS", "5"))

    # Chain (Sepolia by default, any JSON-RPC endpoint works)
    RPC_URL = os.environ.get("RPC_URL") or os.environ.get("INFURA_URL", "")
    ADMIN_PRIVATE_KEY = os.environ.get("ADMIN_PRIVATE_KEY", "")
    VOTER_REGISTRY_ADDRESS = os.environ.get("VOTER_REGISTRY_ADDRESS", "")
    VOTING_CONTRACT_ADDRESS = os.environ.get("VOTING_CONTRACT_ADDRESS", "")
    VOTING_ABI_PATH = os.environ.get("VOTING_ABI_PATH", "")
    VOTER_REGISTRY_ABI_PATH = os.environ.get("VOTER_REGISTRY_ABI_PATH", "")
    CHAIN_TIMEOUT_SECONDS = int(os.environ.get("CHAIN_TIMEOUT_SECONDS", "120"))
    TX_GAS_LIMIT = int(os.environ.get("TX_GAS_LIMIT", "2000000"))
    ENFORCE_CHAIN_REGISTER = _flag("ENFORCE_CHAIN_REGISTER")

    # Polls
    MAX_POLL_DURATION_MINUTES = int(os.environ.get("MAX_POLL_DURATION_MINUTES", str(60 * 24 * 365)))

    # One-time codes
    OTP_TTL_SECONDS = int(os.environ.get("OTP_TTL_SECONDS", "300"))  # 5 minutes
    CHALLENGE_TTL_SECONDS = int(os.environ.get("CHALLENGE_TTL_SECONDS", "300"))

    # SMTP for OTP mails
    SMTP_HOST = os.environ.get("SMTP_HOST", "")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER", "")
    SMTP_PASS = os.environ.get("SMTP_PASS", "")
    SMTP_SECURE = _flag("SMTP_SECURE", "true" if SMTP_PORT == 465 else "false")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "")

    # Twilio for SMS OTP
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN", "")
    TWILIO_PHONE_NUMBER = os.environ.get("TWILIO_PHONE_NUMBER", "")
    SMS_COUNTRY_CODE = os.environ.get("SMS_COUNTRY_CODE", "+91")

    # Aadhaar/email registry sheet
    AADHAAR_XLSX_PATH = os.environ.get(
        "AADHAAR_XLSX_PATH",
        os.path.join(os.getcwd(), "data", "random_emails_aadhaar_1000.xlsx"),
    )
    AADHAAR_DEMO_ADMIN_ENABLED = _flag("AADHAAR_DEMO_ADMIN_ENABLED")

    # Rate limiting (flask-limiter, in-memory)
    RATELIMIT_ENABLED = _flag("RATELIMIT_ENABLED", "true")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    DEFAULT_RATE_LIMIT = os.environ.get("DEFAULT_RATE_LIMIT", "200 per hour")
    OTP_RATE_LIMIT = os.environ.get("OTP_RATE_LIMIT", "5 per minute")

    # HTTP
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "")
    CORS_ORIGINS = [
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
        if o.strip()
    ]
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def missing_settings(config, names):
    # config is a Flask app.config (or any mapping)
    return [n for n in names if not config.get(n)]
