from functools import wraps

from flask import g, jsonify, request

from models import db
from models.user import User
from security.session import get_session_from_request


def client_ip() -> str:
    """
    Source address used for rate limiting and audit rows. Forwarded headers
    only count when ProxyFix is installed for trusted proxy hops.
    """
    return request.remote_addr or "unknown"


def load_current_user():
    g.user = None
    g.session = get_session_from_request()
    if g.session is not None:
        g.user = db.session.get(User, g.session.user_id)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("user") is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
