from datetime import datetime
from models.db import db


class PendingLogin(db.Model):
    """
    A first factor that passed and is waiting for its second factor.
    The raw token is what the client carries between the two requests.
    """
    __tablename__ = "pending_logins"

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_login = db.Column(db.String(255), nullable=False, default="")
    auth_method = db.Column(db.Integer, nullable=False)
    has_recovery = db.Column(db.Boolean, default=False, nullable=False)
    email_address = db.Column(db.String(255), nullable=True)  # masked, for display only

    ip = db.Column(db.String(64), nullable=True)
    created = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires = db.Column(db.DateTime, nullable=False, index=True)
