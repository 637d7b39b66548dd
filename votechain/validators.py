import re

from flask import request

ETH_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
AADHAAR_RE = re.compile(r"^\d{12}$")
MOBILE_RE = re.compile(r"^\d{10}$")


def normalize_aadhaar(value):
    return re.sub(r"\D", "", str(value or ""))


def normalize_email(value):
    return str(value or "").strip().lower()


def is_eth_address(value):
    return isinstance(value, str) and bool(ETH_ADDRESS_RE.match(value.strip()))


def is_email(value):
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def password_problems(password, strict=True):
    """Admin password policy. ``strict`` adds the character-class rules used at registration."""
    if not isinstance(password, str) or len(password) < 8:
        return ["Password must be at least 8 characters long"]
    if not strict:
        return []
    problems = []
    if not re.search(r"[0-9]", password):
        problems.append("Password must contain at least one number")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    return problems


class FieldErrors:
    """Collects per-field messages in the ``{"param", "msg"}`` shape the frontend reads."""

    def __init__(self):
        self.items = []

    def add(self, param, msg):
        self.items.append({"param": param, "msg": msg})

    def check(self, ok, param, msg):
        if not ok:
            self.add(param, msg)

    def __bool__(self):
        return bool(self.items)


def json_body():
    """The request's JSON object, or ``{}`` for anything that is not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def text_field(data, *keys):
    # first non-empty key wins; numbers and other JSON values are stringified
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return str(value).strip()
    return ""
