from datetime import datetime
from models.db import db


class SetupSecret(db.Model):
    """Secret generated for email enrollment, held until the emailed code is confirmed."""
    __tablename__ = "two_factor_setup_secrets"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    secret = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
