import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_list(name: str, default: str):
    raw = os.getenv(name, default)
    return [part.strip().upper() for part in raw.split(",") if part.strip()]


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as twofactor.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "twofactor.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables at startup instead of running migrations (local dev / tests)
    CREATE_TABLES_ON_START = os.getenv("CREATE_TABLES_ON_START", "false").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Reverse proxies in front of the app whose X-Forwarded-* headers are trusted.
    # 0 means requests come straight from clients and the peer address is used.
    TRUSTED_PROXY_HOPS = int(os.getenv("TRUSTED_PROXY_HOPS", "0"))

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "twofactor_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False  # set True when using HTTPS

    # bcrypt cost
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    RECOVERY_CODE_BCRYPT_ROUNDS = int(os.getenv("RECOVERY_CODE_BCRYPT_ROUNDS", "10"))

    # Two-factor authentication
    TWOFA_ENABLED = os.getenv("TWOFA_ENABLED", "true").lower() == "true"
    TWOFA_ROLES = _env_list("TWOFA_ROLES", "ADMIN")
    TWOFA_ISSUER = os.getenv("TWOFA_ISSUER", "TwoFactor Gate")

    TWOFA_SESSION_EXPIRY_SECONDS = 300     # pending login lifetime
    TWOFA_APP_INTERVAL = 30                # authenticator app TOTP period
    TWOFA_EMAIL_INTERVAL = 60              # emailed code period
    TWOFA_EMAIL_SEND_LIMIT_SECONDS = 30    # one email per 30s per user
    TWOFA_SETUP_SECRET_TTL_SECONDS = 180   # email setup secret kept server side

    # Expired pending-login cleanup
    TWOFA_CLEANUP_LOCK_NAME = "twofa_cleanup_lock"
    TWOFA_CLEANUP_TIMEOUT_SECONDS = 60
    TWOFA_CLEANUP_BATCH_SIZE = 1000
    TWOFA_LOCK_BACKEND = os.getenv("TWOFA_LOCK_BACKEND", "memory")  # memory | mysql

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
