import enum
from datetime import datetime

from models.db import db


class LoginStatus(enum.IntEnum):
    SUCCESS = 1
    FAILED = 2
    DISABLED = 3


class TwoFactorLogin(db.Model):
    """Failed second-factor attempts, one row per source IP."""
    __tablename__ = "two_factor_login"

    ip = db.Column(db.String(64), primary_key=True)
    status = db.Column(db.Integer, nullable=False, default=int(LoginStatus.FAILED))
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    login_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
