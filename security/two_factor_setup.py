import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db, transaction
from models.setup_secret import SetupSecret
from models.two_factor_auth import AuthMethod
from security import auth_records, email_throttle, recovery_codes, totp
from security.errors import PersistenceError
from utils import emailer
from utils.audit import log_event

logger = logging.getLogger(__name__)

METHODS = {
    "app": AuthMethod.APP,
    "email": AuthMethod.EMAIL,
}


def generate_app_secret(user) -> dict:
    secret = totp.generate_secret()
    issuer = current_app.config.get("TWOFA_ISSUER", "TwoFactor Gate")
    return {
        "hex": secret["hex"],
        "base32": secret["base32"],
        "otpauth_uri": totp.otpauth_uri(
            secret["base32"], user.email, issuer,
            period=current_app.config.get("TWOFA_APP_INTERVAL", totp.APP_INTERVAL),
        ),
    }


def _store_setup_secret(user_id: int, secret_hex: str, now: datetime) -> None:
    ttl = current_app.config.get("TWOFA_SETUP_SECRET_TTL_SECONDS", 180)
    row = db.session.get(SetupSecret, user_id)
    if row is None:
        row = SetupSecret(user_id=user_id)
        db.session.add(row)
    row.secret = secret_hex
    row.created_at = now
    row.expires_at = now + timedelta(seconds=ttl)


def _load_setup_secret(user_id: int, now: datetime = None):
    row = db.session.get(SetupSecret, user_id)
    if row is None:
        return None
    if row.expires_at <= (now or datetime.utcnow()):
        return None
    return row


def generate_and_email_secret(user) -> dict:
    """
    New secret for email delivery. The secret stays on the server; the user
    only receives a code. Returns {"is_send_email", "remaining_seconds"}.
    """
    remaining = email_throttle.remaining_seconds(user.id)
    if remaining > 0:
        return {"is_send_email": False, "remaining_seconds": remaining}

    now = datetime.utcnow()
    secret = totp.generate_secret()
    interval = current_app.config.get("TWOFA_EMAIL_INTERVAL", totp.EMAIL_INTERVAL)
    code = totp.email_code(secret["hex"], interval)

    try:
        with transaction():
            email_throttle.mark_sent(user.id, now=now, commit=False)
            _store_setup_secret(user.id, secret["hex"], now)
    except SQLAlchemyError as e:
        logger.exception("Storing the email setup secret for user %s failed", user.id)
        raise PersistenceError() from e

    emailer.send_code_email(user, code, interval, purpose="setting")

    return {
        "is_send_email": True,
        "remaining_seconds": current_app.config.get("TWOFA_EMAIL_SEND_LIMIT_SECONDS", 30),
    }


def verify_and_save(user, method: str, code: str, secret_key: str = None) -> bool:
    """
    Confirms a code for the new secret and saves it as the user's 2FA method.
    App enrollment sends the secret it was shown; email enrollment uses the
    secret held server side. Returns False on a wrong code or missing secret.
    """
    auth_method = METHODS.get(method)
    if auth_method is None:
        return False

    setup = None
    if auth_method == AuthMethod.APP:
        secret_hex = (secret_key or "").strip().lower()
    else:
        setup = _load_setup_secret(user.id)
        if setup is None:
            return False
        secret_hex = setup.secret

    interval = (
        current_app.config.get("TWOFA_APP_INTERVAL", totp.APP_INTERVAL)
        if auth_method == AuthMethod.APP
        else current_app.config.get("TWOFA_EMAIL_INTERVAL", totp.EMAIL_INTERVAL)
    )
    if not secret_hex or not totp.verify_code(secret_hex, (code or "").strip(), interval):
        return False

    try:
        with transaction():
            auth_records.upsert(user.id, auth_method, secret_hex)
            if setup is not None:
                db.session.delete(setup)
                email_throttle.clear(user.id, commit=False)
    except SQLAlchemyError as e:
        logger.exception("Saving 2FA settings for user %s failed", user.id)
        raise PersistenceError() from e

    log_event("TWOFA_ENROLLED", user_id=user.id, metadata={"method": method})
    return True


def generate_recovery_codes(user) -> list:
    """Plaintext codes to show once; [] when the user is not enrolled or saving failed."""
    if auth_records.get_record(user.id) is None:
        return []
    codes = recovery_codes.initialize_codes(user.id)
    if codes:
        log_event("TWOFA_RECOVERY_CODES_GENERATED", user_id=user.id)
    return codes


def status(user) -> dict:
    record = auth_records.get_record(user.id) or auth_records.repair_migration_gaps(user.id)
    if record is None:
        return {
            "enrolled": False,
            "method": int(AuthMethod.NONE),
            "has_recovery": False,
            "remaining_recovery_codes": 0,
        }
    codes = record.recovery_codes
    return {
        "enrolled": True,
        "method": int(record.method),
        "has_recovery": codes is not None,
        "remaining_recovery_codes": len(codes or []),
    }
