"""
HOTP / TOTP one-time codes (RFC 4226 / RFC 6238) and the Base32 codec
(RFC 4648) used to hand secrets to authenticator apps.

Everything here is a pure function: no app context, no database.
Secrets travel as hex strings at rest and as Base32 for humans/apps.
"""
import base64
import binascii
import hashlib
import hmac
import os
import struct
import time
from urllib.parse import quote, urlencode

from security.errors import DecodeError

DIGITS = 6
DISCREPANCY = 1        # accept one time step either side of "now"
SECRET_BYTES = 10      # 80-bit shared secret
APP_INTERVAL = 30
EMAIL_INTERVAL = 60

_ALLOWED_PADDING = (6, 4, 3, 1, 0)


def timing_safe_equals(expected: str, submitted: str) -> bool:
    if not isinstance(expected, str) or not isinstance(submitted, str):
        return False
    return hmac.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))


# --- Base32 ----------------------------------------------------------------
def base32_encode(data: bytes) -> str:
    """Upper-case Base32, padded with '=' to whole 8-character blocks."""
    if not data:
        return ""
    return base64.b32encode(data).decode("ascii")


def base32_decode(value: str) -> bytes:
    """
    Decode upper-case Base32. Raises DecodeError on characters outside the
    alphabet or a padding run that no valid encoding can produce.
    Unpadded input is accepted so older stored secrets still decode.
    """
    if not value:
        return b""
    if not isinstance(value, str):
        raise DecodeError("Base32 value must be text")

    body = value.rstrip("=")
    padding = len(value) - len(body)
    if padding == 0 and len(body) % 8:
        padding = 8 - len(body) % 8
    if padding not in _ALLOWED_PADDING:
        raise DecodeError("Invalid Base32 padding")

    try:
        return base64.b32decode(body + "=" * padding)
    except (binascii.Error, ValueError) as e:
        raise DecodeError("Invalid Base32 value") from e


def decode_hex(secret_hex: str) -> bytes:
    try:
        return bytes.fromhex(secret_hex)
    except (TypeError, ValueError) as e:
        raise DecodeError("Invalid hex secret") from e


# --- Secrets ---------------------------------------------------------------
def generate_secret() -> dict:
    """New random secret in the three forms callers need."""
    raw = os.urandom(SECRET_BYTES)
    return {
        "raw": raw,
        "hex": raw.hex(),
        "base32": base32_encode(raw),
    }


def otpauth_uri(secret_base32: str, account: str, issuer: str, period: int = APP_INTERVAL) -> str:
    """Provisioning URI understood by Google Authenticator & co."""
    label = quote(f"{issuer}:{account}", safe=":@")
    params = urlencode({
        "secret": secret_base32.rstrip("="),
        "issuer": issuer,
        "algorithm": "SHA1",
        "digits": DIGITS,
        "period": period,
    })
    return f"otpauth://totp/{label}?{params}"


# --- Codes -----------------------------------------------------------------
def hotp(secret: bytes, counter: int) -> str:
    """RFC 4226: HMAC-SHA1 over the 8-byte big-endian counter, dynamically truncated."""
    digest = hmac.new(secret, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10 ** DIGITS)).zfill(DIGITS)


def time_slice(period: int, timestamp: float = None) -> int:
    if timestamp is None:
        timestamp = time.time()
    return int(timestamp // period)


def current_code(secret_hex: str, period: int, timestamp: float = None) -> str:
    return hotp(decode_hex(secret_hex), time_slice(period, timestamp))


def email_code(secret_hex: str, period: int = EMAIL_INTERVAL, timestamp: float = None) -> str:
    return current_code(secret_hex, period, timestamp)


def verify_code(secret_hex: str, code: str, period: int, timestamp: float = None) -> bool:
    """
    True when `code` matches the slice at `timestamp` or one step either side.
    A code is therefore accepted for up to three periods, and it is not
    consumed: the same code verifies again until its slice leaves the window.
    """
    if not isinstance(code, str) or len(code) != DIGITS:
        return False
    try:
        secret = decode_hex(secret_hex)
    except DecodeError:
        return False

    counter = time_slice(period, timestamp)
    for step in range(-DISCREPANCY, DISCREPANCY + 1):
        if counter + step < 0:
            continue
        if timing_safe_equals(hotp(secret, counter + step), code):
            return True
    return False
