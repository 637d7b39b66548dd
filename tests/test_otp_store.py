import datetime

import pytest

from votechain import otp_store
from votechain.models import utcnow


def test_keys():
    assert otp_store.otp_key("1234 5678 9012", " Alice@Example.com") == "123456789012:alice@example.com"
    assert otp_store.sms_key(" 9876543210 ") == "sms:9876543210"


def test_generate_code_is_six_digits():
    for _ in range(50):
        code = otp_store.generate_code()
        assert len(code) == 6 and code.isdigit() and code[0] != "0"


def test_issue_and_verify_once(app, db):
    with app.app_context():
        code = otp_store.issue("k")
        stored = db.otps.find_one({"key": "k"})
        assert stored["code_hash"] != code
        otp_store.verify("k", code)
        with pytest.raises(otp_store.OtpError, match="not requested"):
            otp_store.verify("k", code)


def test_reissue_replaces_code(app, db):
    with app.app_context():
        first = otp_store.issue("k")
        second = otp_store.issue("k")
        assert db.otps.count_documents({"key": "k"}) == 1
        if first != second:
            with pytest.raises(otp_store.OtpError, match="Invalid OTP"):
                otp_store.verify("k", first)
        otp_store.verify("k", second)


def test_wrong_code_keeps_record(app, db):
    with app.app_context():
        code = otp_store.issue("k")
        wrong = "000000" if code != "000000" else "111111"
        with pytest.raises(otp_store.OtpError, match="Invalid OTP"):
            otp_store.verify("k", wrong)
        otp_store.verify("k", code)


def test_expired_code(app, db):
    with app.app_context():
        code = otp_store.issue("k")
        db.otps.update_one({"key": "k"}, {"$set": {"expires_at": utcnow() - datetime.timedelta(seconds=1)}})
        with pytest.raises(otp_store.OtpError, match="expired"):
            otp_store.verify("k", code)
