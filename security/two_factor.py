"""
Second-factor login flow.

    begin_login()   after the password check: proceed, or open a challenge
    resume_login()  the challenge response: proceed, re-challenge, or raise

Both take everything they need as arguments; nothing is read from the
request here. Errors surface as security.errors.TwoFactorError subclasses.
"""
import logging
from dataclasses import dataclass, field

from flask import current_app

from models import db
from models.two_factor_auth import AuthMethod
from models.user import User
from security import auth_records, bruteforce, email_throttle, pending_login, recovery_codes, totp
from security.errors import LockedOutError, NotFoundError
from utils import emailer
from utils.audit import log_event
from utils.masking import mask_email
from utils.roles import requires_two_factor

logger = logging.getLogger(__name__)

PROCEED = "proceed"
CHALLENGE = "challenge"

MSG_RESENT = "The verification code has been sent again."
ERR_RESEND_LIMIT = "A new code can be requested once every {seconds} seconds. Please wait and try again."
ERR_WRONG_CODE = "The verification code is incorrect or has expired."
ERR_EMPTY_CODE = "Please enter the verification code."
ERR_USER_GONE = "User not found. Please sign in again."


@dataclass
class ChallengeRequest:
    """What the client sent back with the second-factor form."""
    login_token: str
    code: str = ""
    use_recovery: bool = False       # `code` is a recovery code
    resend_email: bool = False
    use_recovery_code: bool = False  # switch the form to recovery codes
    back_to_auth_code: bool = False  # switch the form back


@dataclass
class Challenge:
    login_token: str
    auth_method: int
    has_recovery: bool
    email_address: str
    remaining_seconds: int = 0
    message: str = ""
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "two_factor_required": True,
            "login_token": self.login_token,
            "auth_method": int(self.auth_method),
            "has_recovery": self.has_recovery,
            "email_address": self.email_address,
            "remaining_seconds": self.remaining_seconds,
            "message": self.message,
            "error": self.error,
        }


@dataclass
class LoginDecision:
    status: str
    user_id: int = None
    challenge: Challenge = field(default=None)
    failed: bool = False  # a submitted code was rejected
    auth_method: int = 0  # second factor that completed the login

    @property
    def proceed(self) -> bool:
        return self.status == PROCEED


def _interval(method: int) -> int:
    if int(method) == AuthMethod.EMAIL:
        return current_app.config.get("TWOFA_EMAIL_INTERVAL", totp.EMAIL_INTERVAL)
    return current_app.config.get("TWOFA_APP_INTERVAL", totp.APP_INTERVAL)


def is_required(user) -> bool:
    return requires_two_factor(user)


def send_login_email(user, secret_hex: str = None) -> bool:
    """
    Mails the current email code unless the user is inside the resend cooldown.
    Returns False when throttled.
    """
    if not email_throttle.can_send(user.id):
        return False

    if secret_hex is None:
        record = auth_records.get_record(user.id)
        if record is None:
            return False
        secret_hex = record.secret

    interval = _interval(AuthMethod.EMAIL)
    code = totp.email_code(secret_hex, interval)
    emailer.send_code_email(user, code, interval, purpose="login")
    email_throttle.mark_sent(user.id)
    return True


def verify_second_factor(user_id: int, code: str, auth_method: int) -> bool:
    if int(auth_method) == AuthMethod.RECOVERY:
        return recovery_codes.verify_code(user_id, code)

    record = auth_records.get_record(user_id)
    if record is None or not record.secret:
        return False
    return totp.verify_code(record.secret, code, _interval(auth_method))


def _challenge(session, auth_method: int, message: str = "", error: str = "") -> Challenge:
    remaining = 0
    if int(auth_method) == AuthMethod.EMAIL:
        remaining = email_throttle.remaining_seconds(session.user_id)
    return Challenge(
        login_token=session.token,
        auth_method=int(auth_method),
        has_recovery=session.has_recovery,
        email_address=session.email_address or "",
        remaining_seconds=remaining,
        message=message,
        error=error,
    )


def begin_login(user, user_login: str, ip: str) -> LoginDecision:
    """
    Called once the password is verified. Opens a challenge for enrolled
    users with a 2FA role; everyone else proceeds.
    """
    if not is_required(user):
        return LoginDecision(PROCEED, user_id=user.id)

    record = auth_records.get_record(user.id) or auth_records.repair_migration_gaps(user.id)
    if record is None:
        # Role requires 2FA but the user never enrolled: let them in.
        logger.warning("User %s requires 2FA but is not enrolled; continuing without it", user.id)
        return LoginDecision(PROCEED, user_id=user.id)

    codes = record.recovery_codes
    has_recovery = bool(codes)
    method = record.method

    token = pending_login.create(
        user_id=user.id,
        user_login=user_login,
        auth_method=method,
        has_recovery=has_recovery,
        email_address=mask_email(user.email),
        ip=ip,
    )
    session = pending_login.get(token)

    if method == AuthMethod.EMAIL:
        send_login_email(user, record.secret)

    log_event("TWOFA_CHALLENGE", user_id=user.id, login_name=user_login, ip=ip,
              metadata={"method": int(method)})
    return LoginDecision(CHALLENGE, user_id=user.id, challenge=_challenge(session, method))


def resume_login(req: ChallengeRequest, ip: str) -> LoginDecision:
    """
    Handles a post of the challenge form. Identity comes only from the
    stored pending login; the client's token just selects it.
    """
    session = pending_login.get(req.login_token)
    if session is None:
        raise NotFoundError()

    user = db.session.get(User, session.user_id)
    if user is None:
        pending_login.delete(session.token)
        raise NotFoundError(ERR_USER_GONE)

    auth_method = session.auth_method

    if req.resend_email:
        sent = auth_method == AuthMethod.EMAIL and send_login_email(user)
        if sent:
            challenge = _challenge(session, auth_method, message=MSG_RESENT)
        else:
            limit = current_app.config.get("TWOFA_EMAIL_SEND_LIMIT_SECONDS", 30)
            challenge = _challenge(session, auth_method, error=ERR_RESEND_LIMIT.format(seconds=limit))
        return LoginDecision(CHALLENGE, user_id=user.id, challenge=challenge)

    if req.use_recovery_code:
        return LoginDecision(CHALLENGE, user_id=user.id, challenge=_challenge(session, AuthMethod.RECOVERY))

    if req.back_to_auth_code:
        return LoginDecision(CHALLENGE, user_id=user.id, challenge=_challenge(session, auth_method))

    if req.use_recovery:
        auth_method = AuthMethod.RECOVERY

    minutes = bruteforce.lockout_minutes(ip)
    if minutes > 0:
        log_event("LOGIN_DISABLED", user_id=user.id, login_name=session.user_login, ip=ip)
        raise LockedOutError(minutes)

    code = (req.code or "").strip()
    if code and verify_second_factor(user.id, code, auth_method):
        bruteforce.record_success(ip)
        pending_login.delete(session.token)
        email_throttle.clear(user.id)
        log_event("TWOFA_SUCCESS", user_id=user.id, login_name=session.user_login, ip=ip,
                  metadata={"method": int(auth_method)})
        return LoginDecision(PROCEED, user_id=user.id, auth_method=int(auth_method))

    bruteforce.record_failure(ip)
    minutes = bruteforce.lockout_minutes(ip)
    log_event("LOGIN_FAIL", user_id=user.id, login_name=session.user_login, ip=ip,
              metadata={"reason": "second_factor", "method": int(auth_method)})
    if minutes > 0:
        raise LockedOutError(minutes)

    error = ERR_WRONG_CODE if code else ERR_EMPTY_CODE
    return LoginDecision(CHALLENGE, user_id=user.id, challenge=_challenge(session, auth_method, error=error), failed=True)
