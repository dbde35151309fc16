from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.password import verify_password
from security.session import establish_session, revoke_session, revoke_all_sessions
from security import bruteforce, pending_login
from security.errors import LockedOutError
from security.two_factor import ChallengeRequest, begin_login, resume_login
from utils.audit import log_event
from utils.auth_context import login_required, client_ip


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _flag(data: dict, name: str) -> bool:
    value = data.get(name)
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no")
    return bool(value)


def _finish_login(user_id: int, ip: str, login_name: str, auth_method: int = 0):
    resp, revoked_count = establish_session(jsonify(message="Login OK"), user_id, auth_method, ip=ip)
    log_event("LOGIN_SUCCESS", user_id=user_id, login_name=login_name, ip=ip,
              metadata={"revoked_sessions": revoked_count, "second_factor": auth_method})

    # piggy-back expired 2FA session cleanup on successful logins
    pending_login.cleanup_expired()
    return resp, 200


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    ip = client_ip()

    # locked-out sources do not even get a password check
    minutes = bruteforce.lockout_minutes(ip)
    if minutes > 0:
        log_event("LOGIN_DISABLED", login_name=email, ip=ip, metadata={"lockout_minutes": minutes})
        raise LockedOutError(minutes)

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, login_name=email, ip=ip,
                  metadata={"reason": "password"})
        return jsonify(error="Invalid credentials"), 401

    decision = begin_login(user, user_login=email, ip=ip)
    if not decision.proceed:
        return jsonify(decision.challenge.to_dict()), 200

    return _finish_login(user.id, ip, email)


@auth_bp.post("/login/2fa")
def login_two_factor():
    data = request.get_json(silent=True) or {}
    recovery_code = data.get("recovery_code")

    req = ChallengeRequest(
        login_token=(data.get("login_token") or "").strip(),
        code=(recovery_code if recovery_code is not None else data.get("authenticator_code")) or "",
        use_recovery=recovery_code is not None,
        resend_email=_flag(data, "resend_2fa_email"),
        use_recovery_code=_flag(data, "use_recovery_code"),
        back_to_auth_code=_flag(data, "back_to_auth_code"),
    )
    ip = client_ip()

    decision = resume_login(req, ip)
    if not decision.proceed:
        return jsonify(decision.challenge.to_dict()), 401 if decision.failed else 200

    user = db.session.get(User, decision.user_id)
    return _finish_login(user.id, ip, user.email, decision.auth_method)


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        display_name=g.user.display_name,
        roles=sorted(g.user.role_names),
        two_factor_enrolled=g.user.two_factor is not None,
        second_factor=g.session.auth_method,
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "twofactor_session")
    raw_token = request.cookies.get(cookie_name)

    revoke_session(raw_token)
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200


@auth_bp.post("/logout_all")
@login_required
def logout_all():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "twofactor_session")

    count = revoke_all_sessions(g.user.id)
    log_event("LOGOUT_ALL", user_id=g.user.id, metadata={"revoked_sessions": count})

    resp = jsonify(message="Logged out everywhere", revoked_sessions=count)
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
