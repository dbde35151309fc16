import enum
import json

from models.db import db


class AuthMethod(enum.IntEnum):
    NONE = 0
    APP = 1
    EMAIL = 2
    RECOVERY = 3  # only chosen while verifying, never stored


class TwoFactorAuth(db.Model):
    """One row per enrolled user."""
    __tablename__ = "two_factor_auth"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    secret = db.Column(db.String(255), nullable=False)  # hex of the raw shared secret
    recovery = db.Column(db.Text, nullable=True)         # JSON list of bcrypt hashes
    method = db.Column(db.Integer, nullable=False, default=int(AuthMethod.APP))

    @property
    def recovery_codes(self):
        """Stored hashes, or None when codes were never generated."""
        if self.recovery is None:
            return None
        try:
            codes = json.loads(self.recovery)
        except ValueError:
            return None
        return codes if isinstance(codes, list) else None

    @recovery_codes.setter
    def recovery_codes(self, hashes):
        self.recovery = None if hashes is None else json.dumps(list(hashes))

    @property
    def auth_method(self) -> AuthMethod:
        return AuthMethod(self.method)
