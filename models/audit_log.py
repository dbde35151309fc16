import json
from datetime import datetime

from models.db import db


class AuditLog(db.Model):
    """Security events: logins, lockouts, 2FA challenges and enrollment."""
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(80), nullable=False)
    login_name = db.Column(db.String(255), nullable=True)  # as typed, may not match a user

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def meta(self) -> dict:
        return json.loads(self.metadata_json) if self.metadata_json else {}
