import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db, transaction
from models.two_factor_auth import TwoFactorAuth, AuthMethod
from models.legacy_secret import LegacyTotpSecret
from security import totp
from security.errors import DecodeError

logger = logging.getLogger(__name__)


def get_record(user_id: int):
    return db.session.get(TwoFactorAuth, user_id)


def has_recovery(user_id: int) -> bool:
    """
    True once recovery codes were generated, even if every code is used up.
    Callers that need the usable count must look at len(recovery_codes).
    """
    record = get_record(user_id)
    return record is not None and record.recovery_codes is not None


def upsert(user_id: int, method: int, secret_hex: str) -> TwoFactorAuth:
    """
    Update method/secret in place, or insert a fresh record without recovery codes.
    Does not commit: callers wrap it in transaction().
    """
    record = get_record(user_id)
    if record is not None:
        record.method = int(method)
        record.secret = secret_hex
        return record

    record = TwoFactorAuth(user_id=user_id, method=int(method), secret=secret_hex, recovery=None)
    db.session.add(record)
    return record


def repair_migration_gaps(user_id: int):
    """
    Move a user's secret out of the legacy per-user storage into two_factor_auth.
    Returns the (new or existing) record, or None when there is nothing to move
    or any step fails, in which case nothing is changed.
    """
    record = get_record(user_id)
    if record is not None:
        return record

    legacy = LegacyTotpSecret.query.filter_by(user_id=user_id).order_by(LegacyTotpSecret.id).first()
    if legacy is None:
        return None

    try:
        with transaction():
            raw = totp.base32_decode(legacy.secret)
            if not raw:
                raise DecodeError("Empty legacy secret")
            upsert(user_id, AuthMethod.APP, raw.hex())
            LegacyTotpSecret.query.filter_by(user_id=user_id).delete()
    except DecodeError:
        logger.warning("Legacy 2FA secret for user %s could not be decoded", user_id)
        return None
    except SQLAlchemyError:
        logger.exception("Migrating legacy 2FA secret for user %s failed", user_id)
        return None

    return get_record(user_id)


def migrate_legacy_secrets(batch_size: int = None) -> int:
    """
    Bulk version of repair_migration_gaps, one transaction per batch.
    Users that already own a record keep it and their legacy row stays;
    undecodable secrets are skipped. Stops at the first failing batch.
    Returns the number of users migrated.
    """
    if batch_size is None:
        batch_size = current_app.config.get("TWOFA_CLEANUP_BATCH_SIZE", 1000)

    migrated = 0
    last_id = 0
    while True:
        rows = (
            LegacyTotpSecret.query
            .filter(LegacyTotpSecret.id > last_id)
            .order_by(LegacyTotpSecret.id.asc())
            .limit(batch_size)
            .all()
        )
        if not rows:
            break
        last_id = rows[-1].id

        try:
            with transaction():
                batch_count = 0
                seen = set()
                for row in rows:
                    if row.user_id in seen or get_record(row.user_id) is not None:
                        continue
                    try:
                        raw = totp.base32_decode(row.secret)
                    except DecodeError:
                        logger.warning("Skipping undecodable legacy 2FA secret for user %s", row.user_id)
                        continue
                    if not raw:
                        continue
                    db.session.add(TwoFactorAuth(
                        user_id=row.user_id,
                        secret=raw.hex(),
                        recovery=None,
                        method=int(AuthMethod.APP),
                    ))
                    db.session.delete(row)
                    seen.add(row.user_id)
                    batch_count += 1
        except SQLAlchemyError:
            logger.exception("Legacy 2FA migration batch after id %s failed", last_id)
            break
        migrated += batch_count

    logger.info("Migrated %d legacy 2FA secrets", migrated)
    return migrated
