import mongomock
import pytest
from openpyxl import Workbook

from votechain.aadhaar_registry import AadhaarRegistry
from votechain.app import create_app
from votechain.auth import create_admin_token, create_voter_token, hash_password
from votechain.chain import ChainError
from votechain.challenges import challenges
from votechain.config import Config
from votechain.models import utcnow

TX_HASH = "0x" + "ab" * 32


def wallet(n):
    return "0x" + format(n, "040x")


class ConfigForTests(Config):
    TESTING = True
    MONGO_DB_NAME = "votechain_test"
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"
    RATELIMIT_ENABLED = False
    AADHAAR_DEMO_ADMIN_ENABLED = True
    ENFORCE_CHAIN_REGISTER = False
    VOTING_CONTRACT_ADDRESS = wallet(0xC0FFEE)
    SMTP_HOST = "smtp.example.com"
    SMTP_PORT = 587
    SMTP_USER = "mailer"
    SMTP_PASS = "secret"
    SMTP_SECURE = False
    EMAIL_FROM = "noreply@example.com"
    TWILIO_ACCOUNT_SID = "AC123"
    TWILIO_AUTH_TOKEN = "token"
    TWILIO_PHONE_NUMBER = "+15550001111"
    SMS_COUNTRY_CODE = "+91"
    OTP_TTL_SECONDS = 300
    MAX_POLL_DURATION_MINUTES = 525600
    LOG_LEVEL = "WARNING"


class FakeChain:
    """Records what the routes ask of the contracts."""

    def __init__(self):
        self.configured = True
        self.fail = False
        self.registered = set()
        self.polls = []

    def _check(self):
        if self.fail:
            raise ChainError("rpc down", "node unreachable")

    def is_registered(self, address):
        self._check()
        return address.lower() in self.registered

    def ensure_registered(self, address):
        self._check()
        if address.lower() in self.registered:
            return True, None
        self.registered.add(address.lower())
        return False, TX_HASH

    def create_poll(self, title, description, options, duration_seconds):
        self._check()
        self.polls.append({
            "title": title,
            "description": description,
            "options": list(options),
            "votes": [0] * len(options),
            "endTime": 1700000000 + duration_seconds,
            "isActive": True,
            "duration": duration_seconds,
        })
        return len(self.polls) - 1, TX_HASH

    def get_poll(self, poll_id):
        self._check()
        return dict(self.polls[poll_id])

    def network_info(self):
        self._check()
        return {"chainId": 11155111, "blockNumber": 1}


REGISTRY_ROWS = [
    ("123456789012", "alice@example.com"),
    ("234567890123", "bob@example.com"),
]


@pytest.fixture
def registry_path(tmp_path):
    path = tmp_path / "aadhaar.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.append(["aadharNumber", "email"])
    for row in REGISTRY_ROWS:
        ws.append(list(row))
    wb.save(path)
    return str(path)


@pytest.fixture
def registry(registry_path):
    return AadhaarRegistry(registry_path)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def app(chain, registry):
    app = create_app(ConfigForTests, mongo_client=mongomock.MongoClient(), chain=chain, registry=registry)
    yield app
    challenges.clear()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return app.extensions["votechain.db"]


@pytest.fixture
def make_voter(db):
    counter = {"n": 0}

    def _make(status="approved", **fields):
        counter["n"] += 1
        n = counter["n"]
        doc = {
            "wallet_address": wallet(n),
            "name": f"Voter {n}",
            "email": f"voter{n}@example.com",
            "aadhaar_number": f"{900000000000 + n}",
            "mobile_number": f"{9000000000 + n}",
            "status": status,
            "has_voted": False,
            "voted_polls": [],
            "is_active": True,
            "registration_date": utcnow(),
            "last_updated": utcnow(),
        }
        doc.update(fields)
        doc["_id"] = db.voters.insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def admin(db):
    doc = {
        "wallet_address": wallet(0xAD),
        "password_hash": hash_password("Str0ngPass"),
        "role": "admin",
        "is_active": True,
        "last_login": None,
        "created_at": utcnow(),
    }
    doc["_id"] = db.admins.insert_one(doc).inserted_id
    return doc


@pytest.fixture
def admin_headers(app, admin):
    with app.app_context():
        return {"Authorization": f"Bearer {create_admin_token(admin)}"}


@pytest.fixture
def voter_headers(app):
    def _headers(voter):
        with app.app_context():
            return {"Authorization": f"Bearer {create_voter_token(voter)}"}
    return _headers
