import logging
import math
from datetime import datetime

from models import db
from models.two_factor_login import TwoFactorLogin, LoginStatus

logger = logging.getLogger(__name__)

# failed_count -> lockout seconds; any other count while disabled gets the cap
LOCKOUT_SECONDS = {
    3: 60,    # 1 minute
    6: 300,   # 5 minutes
    9: 600,   # 10 minutes
    12: 900,  # 15 minutes
}
LOCKOUT_SECONDS_MAX = 1200  # 20 minutes
DISABLE_EVERY = 3


def _get_row(ip: str):
    return db.session.get(TwoFactorLogin, ip)


def record_failure(ip: str, now: datetime = None) -> int:
    """
    Counts one failed second-factor attempt for `ip`.
    Every third consecutive failure disables the IP. Returns the new count.
    """
    now = now or datetime.utcnow()
    row = _get_row(ip)

    if row is None:
        row = TwoFactorLogin(ip=ip, status=int(LoginStatus.FAILED), failed_count=1, login_at=now)
        db.session.add(row)
    else:
        row.failed_count = (row.failed_count or 0) + 1
        row.status = int(LoginStatus.FAILED)
        row.login_at = now
        if row.failed_count % DISABLE_EVERY == 0:
            row.status = int(LoginStatus.DISABLED)
            logger.warning("2FA attempts from %s disabled after %d failures", ip, row.failed_count)

    db.session.commit()
    return row.failed_count


def record_success(ip: str, now: datetime = None) -> None:
    """
    Clears the failure counter after a successful login.
    """
    now = now or datetime.utcnow()
    row = _get_row(ip)

    if row is None:
        db.session.add(TwoFactorLogin(ip=ip, status=int(LoginStatus.SUCCESS), failed_count=0, login_at=now))
    else:
        if row.status == LoginStatus.SUCCESS:
            return
        row.status = int(LoginStatus.SUCCESS)
        row.failed_count = 0
        row.login_at = now
    db.session.commit()


def lockout_seconds_for(failed_count: int) -> int:
    return LOCKOUT_SECONDS.get(failed_count, LOCKOUT_SECONDS_MAX)


def lockout_minutes(ip: str, now: datetime = None) -> int:
    """
    Minutes left before `ip` may try again, 0 when it is not locked out.
    """
    row = _get_row(ip)
    if row is None or row.status != LoginStatus.DISABLED:
        return 0

    now = now or datetime.utcnow()
    block_seconds = lockout_seconds_for(row.failed_count)
    remaining = block_seconds - (now - row.login_at).total_seconds()
    if remaining <= 0:
        return 0
    return int(math.ceil(remaining / 60))
