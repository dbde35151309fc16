from models.db import db


class EmailSendMark(db.Model):
    """Earliest time another code email may be sent to this user."""
    __tablename__ = "email_send_marks"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    able_send_at = db.Column(db.DateTime, nullable=True)
