"""
Double-submit CSRF token bound to the session cookie.

The token is HMAC(SECRET_KEY, session token), so a token copied from one
session is useless in another. It is sent back in the X-CSRF-Token header.
"""
import hashlib
import hmac

from flask import request, jsonify, current_app

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def csrf_token_for(session_token: str) -> str:
    key = current_app.config["SECRET_KEY"].encode("utf-8")
    return hmac.new(key, session_token.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_csrf_token(resp, session_token: str):
    resp.set_cookie(
        CSRF_COOKIE,
        csrf_token_for(session_token),
        httponly=False,  # read by client JS
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def require_csrf():
    """None when the header carries the token of the current session, else a 403 response."""
    session_token = request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "twofactor_session"))
    header_token = request.headers.get(CSRF_HEADER) or ""
    if not session_token or not header_token:
        return jsonify(error="CSRF validation failed"), 403

    expected = csrf_token_for(session_token)
    if not hmac.compare_digest(expected.encode("utf-8"), header_token.encode("utf-8")):
        return jsonify(error="CSRF validation failed"), 403
    return None
