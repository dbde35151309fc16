import json
from datetime import datetime

from flask import has_request_context, request

from models import db
from models.audit_log import AuditLog


def build_event(action: str, user_id=None, login_name=None, metadata=None, ip=None, timestamp=None) -> AuditLog:
    """
    AuditLog row that is not yet added to the session (for batch writes).
    Rows with an explicit timestamp describe an earlier request, so the current
    requester's address and user agent are not copied onto them.
    """
    user_agent = None
    if timestamp is None and has_request_context():
        if ip is None:
            ip = request.remote_addr
        user_agent = request.headers.get("User-Agent", "")

    return AuditLog(
        user_id=user_id,
        action=action,
        login_name=login_name[:255] if login_name else None,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata) if metadata else None,
        timestamp=timestamp or datetime.utcnow(),
    )


def log_event(action: str, user_id=None, login_name=None, metadata=None, ip=None):
    db.session.add(build_event(action, user_id=user_id, login_name=login_name, metadata=metadata, ip=ip))
    db.session.commit()
