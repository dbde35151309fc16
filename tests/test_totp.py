import os
from urllib.parse import urlparse, parse_qs

import pytest

from security import totp
from security.errors import DecodeError

RFC4226_SECRET = b"12345678901234567890"
RFC4226_CODES = [
    "755224", "287082", "359152", "969429", "338314",
    "254676", "287922", "162583", "399871", "520489",
]


@pytest.mark.parametrize("counter,expected", list(enumerate(RFC4226_CODES)))
def test_hotp_rfc4226_vectors(counter, expected):
    assert totp.hotp(RFC4226_SECRET, counter) == expected


@pytest.mark.parametrize("raw,encoded", [
    (b"", ""),
    (b"f", "MY======"),
    (b"fo", "MZXQ===="),
    (b"foo", "MZXW6==="),
    (b"foob", "MZXW6YQ="),
    (b"fooba", "MZXW6YTB"),
    (b"foobar", "MZXW6YTBOI======"),
])
def test_base32_rfc4648_vectors(raw, encoded):
    assert totp.base32_encode(raw) == encoded
    assert totp.base32_decode(encoded) == raw


def test_base32_round_trip_lengths():
    for length in range(0, 65):
        data = os.urandom(length)
        assert totp.base32_decode(totp.base32_encode(data)) == data


def test_base32_decode_accepts_unpadded():
    assert totp.base32_decode("MZXW6YTBOI") == b"foobar"


@pytest.mark.parametrize("value", [
    "MZXW6YTB=======",   # 7 padding characters
    "MZXW6Y==",          # 2 padding characters
    "MZXW6YTBO=====",    # 5 padding characters
    "MZXW6YT1",          # '1' is not in the alphabet
    "mzxw6ytb",          # lower case
    "MZ=W6YTB",          # padding in the middle
    "MZXW6YTBO",         # unpadded, 9 characters cannot be a valid length
    "MZXW6=",            # padding that does not complete a block
])
def test_base32_decode_rejects_malformed(value):
    with pytest.raises(DecodeError):
        totp.base32_decode(value)


def test_decode_error_is_a_value_error():
    with pytest.raises(ValueError):
        totp.decode_hex("not hex")


def test_generate_secret_forms_agree():
    secret = totp.generate_secret()
    assert len(secret["raw"]) == totp.SECRET_BYTES
    assert secret["hex"] == secret["raw"].hex()
    assert totp.base32_decode(secret["base32"]) == secret["raw"]


def test_totp_window_accepts_one_step_either_side():
    secret_hex = RFC4226_SECRET.hex()
    t = 1_700_000_000
    code = totp.current_code(secret_hex, 30, t)

    assert totp.verify_code(secret_hex, code, 30, t)
    assert totp.verify_code(secret_hex, code, 30, t + 30)
    assert totp.verify_code(secret_hex, code, 30, t - 30)
    assert not totp.verify_code(secret_hex, code, 30, t + 60)
    assert not totp.verify_code(secret_hex, code, 30, t - 60)


def test_totp_code_is_not_consumed():
    secret = totp.generate_secret()
    code = totp.current_code(secret["hex"], 30)
    assert totp.verify_code(secret["hex"], code, 30)
    assert totp.verify_code(secret["hex"], code, 30)


def test_email_code_uses_sixty_second_period():
    secret_hex = RFC4226_SECRET.hex()
    t = 1_700_000_000
    assert totp.email_code(secret_hex, timestamp=t) == totp.hotp(RFC4226_SECRET, t // 60)
    assert totp.verify_code(secret_hex, totp.email_code(secret_hex, timestamp=t), 60, t + 60)


@pytest.mark.parametrize("code", ["", "12345", "1234567", None, 123456])
def test_verify_rejects_wrong_length_or_type(code):
    assert not totp.verify_code(RFC4226_SECRET.hex(), code, 30, 0)


def test_verify_with_bad_secret_is_false():
    assert not totp.verify_code("zz", "123456", 30)


def test_verify_near_epoch_skips_negative_counter():
    secret_hex = RFC4226_SECRET.hex()
    assert totp.verify_code(secret_hex, "755224", 30, 0)


def test_timing_safe_equals():
    assert totp.timing_safe_equals("123456", "123456")
    assert not totp.timing_safe_equals("123456", "123457")
    assert not totp.timing_safe_equals("123456", None)


def test_otpauth_uri():
    uri = totp.otpauth_uri("MZXW6YTBOI======", "alice@example.com", "TwoFactor Gate")
    parsed = urlparse(uri)
    assert parsed.scheme == "otpauth"
    assert parsed.netloc == "totp"
    assert parsed.path == "/TwoFactor%20Gate:alice@example.com"

    params = parse_qs(parsed.query)
    assert params["secret"] == ["MZXW6YTBOI"]
    assert params["issuer"] == ["TwoFactor Gate"]
    assert params["digits"] == ["6"]
    assert params["period"] == ["30"]
