import logging

import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config
from models import db
from routes import health_bp, auth_bp, two_factor_bp
from security.csrf import require_csrf
from security.errors import TwoFactorError
from security.locks import init_locks
from utils.auth_context import load_current_user
from utils.seed import seed_roles


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Behind a reverse proxy
    hops = int(app.config.get("TRUSTED_PROXY_HOPS", 0))
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(two_factor_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Named lock used by expired-session cleanup
    init_locks(app, db)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_START"):
            db.create_all()
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/login/2fa",
    "/health",
    }

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Exempt auth bootstrap endpoints
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.errorhandler(TwoFactorError)
    def _two_factor_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
from models.user import User, Role
from security.password import hash_password
from security import auth_records, pending_login


def _get_role(name: str) -> Role:
    role = Role.query.filter_by(name=name.upper()).first()
    if not role:
        role = Role(name=name.upper())
        db.session.add(role)
        db.session.commit()
    return role


def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    @click.option("--role", "roles", multiple=True, default=("USER",), help="Role name, repeatable.")
    def create_user(email, password, roles):
        """Create a user with a bcrypt password hash."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            click.echo("User already exists")
            return

        user = User(email=email, password_hash=hash_password(password))
        for name in roles:
            user.roles.append(_get_role(name))
        db.session.add(user)
        db.session.commit()
        click.echo(f"{email} created")

    @app.cli.command("grant-role")
    @click.argument("email")
    @click.argument("role")
    def grant_role(email, role):
        """Give a user a role (e.g. one listed in TWOFA_ROLES)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        role_row = _get_role(role)
        if role_row not in user.roles:
            user.roles.append(role_row)
            db.session.commit()

        click.echo(f"{user.email} granted {role_row.name}")

    @app.cli.command("cleanup-2fa-sessions")
    def cleanup_2fa_sessions():
        """Delete expired pending 2FA logins and log them as failed logins."""
        count = pending_login.cleanup_expired()
        click.echo(f"Removed {count} expired 2FA sessions")

    @app.cli.command("migrate-2fa-secrets")
    def migrate_2fa_secrets():
        """Move legacy Base32 secrets into the two_factor_auth table."""
        count = auth_records.migrate_legacy_secrets()
        click.echo(f"Migrated {count} legacy 2FA secrets")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
