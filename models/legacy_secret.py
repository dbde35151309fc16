from models.db import db


class LegacyTotpSecret(db.Model):
    """Base32 secrets from the per-user storage used before two_factor_auth existed."""
    __tablename__ = "legacy_totp_secrets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    secret = db.Column(db.String(255), nullable=False)
