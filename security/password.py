import bcrypt
from flask import current_app, has_app_context

DEFAULT_ROUNDS = 12


def _rounds(rounds):
    if rounds is not None:
        return rounds
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS))
    return DEFAULT_ROUNDS


def hash_password(plain_password: str, rounds: int = None) -> str:
    """bcrypt hash, used for passwords and recovery codes. Cost from BCRYPT_ROUNDS unless given."""
    if not isinstance(plain_password, str) or not plain_password:
        raise ValueError("Password must be a non-empty string")
    salt = bcrypt.gensalt(rounds=_rounds(rounds))
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """bcrypt.checkpw compares in constant time; a malformed stored hash is a mismatch."""
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
