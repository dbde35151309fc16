from flask import Blueprint, request, jsonify, g

from security import two_factor_setup
from utils.auth_context import login_required


two_factor_bp = Blueprint("two_factor", __name__, url_prefix="/2fa")


@two_factor_bp.get("/status")
@login_required
def status():
    return jsonify(success=True, **two_factor_setup.status(g.user)), 200


@two_factor_bp.post("/app/secret")
@login_required
def generate_app_secret():
    return jsonify(success=True, **two_factor_setup.generate_app_secret(g.user)), 200


@two_factor_bp.post("/email/secret")
@login_required
def generate_email_secret():
    result = two_factor_setup.generate_and_email_secret(g.user)
    return jsonify(success=True, **result), 200


@two_factor_bp.post("/verify")
@login_required
def verify():
    data = request.get_json(silent=True) or {}
    method = (data.get("method") or "").strip().lower()
    code = data.get("code") or ""
    secret_key = data.get("secret_key")

    if method not in two_factor_setup.METHODS:
        return jsonify(success=False, error="Unknown method", has_recovery=False), 400

    if not two_factor_setup.verify_and_save(g.user, method, code, secret_key):
        return jsonify(success=False, error="Invalid verification code", has_recovery=False), 400

    status = two_factor_setup.status(g.user)
    return jsonify(success=True, has_recovery=status["has_recovery"]), 200


@two_factor_bp.post("/recovery_codes")
@login_required
def generate_recovery_codes():
    codes = two_factor_setup.generate_recovery_codes(g.user)
    if not codes:
        return jsonify(success=False, error="Could not generate recovery codes", codes=[]), 400
    # shown once, never stored in plaintext
    return jsonify(success=True, codes=codes), 200
