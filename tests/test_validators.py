from votechain.validators import (
    FieldErrors, is_email, is_eth_address, normalize_aadhaar, normalize_email, password_problems, text_field,
)


def test_eth_address():
    assert is_eth_address("0x" + "aB" * 20)
    assert not is_eth_address("0x1234")
    assert not is_eth_address("ab" * 21)
    assert not is_eth_address(None)


def test_email():
    assert is_email("someone@example.com")
    assert not is_email("someone@")
    assert not is_email("no at sign")


def test_normalizers():
    assert normalize_aadhaar("1234 5678-9012") == "123456789012"
    assert normalize_aadhaar(123456789012) == "123456789012"
    assert normalize_aadhaar(None) == ""
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"


def test_password_policy():
    assert password_problems("short") == ["Password must be at least 8 characters long"]
    assert password_problems("alllowercase1") == ["Password must contain at least one uppercase letter"]
    assert password_problems("Str0ngPass") == []
    # login only checks length
    assert password_problems("alllowercase", strict=False) == []


def test_field_errors():
    errors = FieldErrors()
    assert not errors
    errors.check(True, "a", "never")
    errors.check(False, "b", "bad b")
    assert errors
    assert errors.items == [{"param": "b", "msg": "bad b"}]


def test_text_field():
    data = {"aadharNumber": 123456789012, "email": "  a@b.co ", "blank": "", "none": None}
    assert text_field(data, "aadharNumber") == "123456789012"
    assert text_field(data, "email") == "a@b.co"
    assert text_field(data, "blank", "none", "email") == "a@b.co"
    assert text_field(data, "missing") == ""
