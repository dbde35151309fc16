"""
One-time recovery codes.

Ten codes per generation, 12 characters each, shown once as XXXX-XXXX-XXXX.
Only bcrypt hashes of the upper-cased code are stored; generating a new set
overwrites the old one, and a code is removed from the set when it is used.
"""
import json
import logging
import re
import secrets

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import db, transaction
from models.two_factor_auth import TwoFactorAuth
from security.auth_records import get_record
from security.password import hash_password, verify_password

logger = logging.getLogger(__name__)

CODE_LENGTH = 12
CODE_COUNT = 10
# letters and digits minus the look-alikes 0 1 o O l I
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"

# Hyphens between two characters go; a hyphen at either end stays.
# A pasted "-ABCD-EFGH-JKLM" therefore fails to match.
_INNER_HYPHEN = re.compile(r"(?<=.)-(?=.)", re.DOTALL)


def _create_single_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))


def _format(code: str) -> str:
    return f"{code[0:4]}-{code[4:8]}-{code[8:12]}"


def normalize_code(code: str) -> str:
    code = (code or "").strip()
    code = _INNER_HYPHEN.sub("", code)
    return code.upper()


def _rounds() -> int:
    return int(current_app.config.get("RECOVERY_CODE_BCRYPT_ROUNDS", 10))


def remaining_count(user_id: int) -> int:
    record = get_record(user_id)
    if record is None or not record.recovery_codes:
        return 0
    return len(record.recovery_codes)


def initialize_codes(user_id: int) -> list:
    """
    Replace the user's recovery codes with a fresh set.
    Returns the plaintext codes, or [] when the user is not enrolled or saving fails.
    """
    record = get_record(user_id)
    if record is None:
        return []

    rounds = _rounds()
    plain_codes = []
    hashed_codes = []
    for _ in range(CODE_COUNT):
        code = _create_single_code()
        plain_codes.append(_format(code))
        hashed_codes.append(hash_password(code.upper(), rounds=rounds))

    try:
        with transaction():
            record.recovery_codes = hashed_codes
    except SQLAlchemyError:
        logger.exception("Saving recovery codes for user %s failed", user_id)
        return []

    return plain_codes


def verify_code(user_id: int, code: str) -> bool:
    """
    Check `code` against the stored set; a match is removed and cannot be used again.

    The shortened list is written with a conditional UPDATE that only applies
    while the stored list is still the one that was read. When two requests
    race with the same code, only one of them gets the row.
    """
    record = get_record(user_id)
    if record is None:
        return False
    stored = record.recovery_codes
    if not stored:
        return False

    normalized = normalize_code(code)
    if not normalized:
        return False

    for index, stored_hash in enumerate(stored):
        if verify_password(normalized, stored_hash):
            return _consume(user_id, record.recovery, stored[:index] + stored[index + 1:])

    return False


def _consume(user_id: int, read_value: str, remaining: list) -> bool:
    try:
        with transaction():
            result = db.session.execute(
                update(TwoFactorAuth)
                .where(TwoFactorAuth.user_id == user_id, TwoFactorAuth.recovery == read_value)
                .values(recovery=json.dumps(remaining))
                .execution_options(synchronize_session=False)
            )
    except SQLAlchemyError:
        logger.exception("Consuming a recovery code for user %s failed", user_id)
        return False

    if result.rowcount != 1:
        logger.warning("Recovery codes for user %s changed while one was being used", user_id)
        return False
    return True
