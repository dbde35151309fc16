import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

logger = logging.getLogger(__name__)


def _smtp_settings() -> dict:
    cfg = current_app.config
    return {
        "host": cfg.get("SMTP_HOST"),
        "port": cfg.get("SMTP_PORT", 587),
        "username": cfg.get("SMTP_USERNAME"),
        "password": cfg.get("SMTP_PASSWORD"),
        "sender": cfg.get("SMTP_FROM_EMAIL") or cfg.get("SMTP_USERNAME"),
        "use_tls": cfg.get("SMTP_USE_TLS", True),
    }


def send_email(to_email: str, subject: str, body: str):
    """Plain-text mail. Returns (sent, error message or None); never raises."""
    smtp = _smtp_settings()
    if not smtp["host"] or not smtp["sender"]:
        return False, "Email not configured"

    msg = EmailMessage()
    msg["From"] = smtp["sender"]
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(smtp["host"], smtp["port"], timeout=10) as server:
            if smtp["use_tls"]:
                server.starttls()
            if smtp["username"] and smtp["password"]:
                server.login(smtp["username"], smtp["password"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        return False, str(exc)
    return True, None


def send_code_email(user, code: str, time_step: int, purpose: str = "login") -> bool:
    """
    Mail a one-time code. `purpose` is "login" or "setting".
    Delivery is not confirmed; a failure is only logged.
    """
    issuer = current_app.config.get("TWOFA_ISSUER", "TwoFactor Gate")
    minutes = max(1, time_step // 60)
    login = user.login_name

    if purpose == "login":
        intro = (
            f"User {login} is signing in to {issuer}.\n"
            "To finish signing in, enter the verification code below.\n\n"
        )
    else:
        intro = (
            f"User {login} is setting up two-factor authentication on {issuer}.\n"
            "To finish the setup, enter the verification code below.\n\n"
        )

    body = (
        intro
        + f"Verification code: {code}\n\n"
        + f"This code is valid for {minutes} minute(s).\n"
        + "If you did not request this, someone may be trying to sign in with your password.\n"
        + "We recommend changing your password right away.\n\n"
        + "--\n"
        + f"{issuer}\n"
    )

    ok, error = send_email(user.email, "Your verification code", body)
    if not ok:
        logger.warning("Verification code email to user %s not sent: %s", user.id, error)
    return ok
