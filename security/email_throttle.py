import math
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.email_send_mark import EmailSendMark


def _limit_seconds() -> int:
    return int(current_app.config.get("TWOFA_EMAIL_SEND_LIMIT_SECONDS", 30))


def remaining_seconds(user_id: int, now: datetime = None) -> int:
    mark = db.session.get(EmailSendMark, user_id)
    if mark is None or mark.able_send_at is None:
        return 0
    now = now or datetime.utcnow()
    left = (mark.able_send_at - now).total_seconds()
    return max(0, int(math.ceil(left)))


def can_send(user_id: int, now: datetime = None) -> bool:
    return remaining_seconds(user_id, now) == 0


def mark_sent(user_id: int, now: datetime = None, commit: bool = True) -> None:
    now = now or datetime.utcnow()
    mark = db.session.get(EmailSendMark, user_id)
    if mark is None:
        mark = EmailSendMark(user_id=user_id)
        db.session.add(mark)
    mark.able_send_at = now + timedelta(seconds=_limit_seconds())
    if commit:
        db.session.commit()


def clear(user_id: int, commit: bool = True) -> None:
    mark = db.session.get(EmailSendMark, user_id)
    if mark is None:
        return
    mark.able_send_at = None
    if commit:
        db.session.commit()
