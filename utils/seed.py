from flask import current_app

from models import db
from models.user import Role

DEFAULT_ROLES = ["USER", "EDITOR", "ADMIN"]

def seed_roles():
    wanted = list(DEFAULT_ROLES)
    for name in current_app.config.get("TWOFA_ROLES", []):
        if name.upper() not in wanted:
            wanted.append(name.upper())

    existing = {r.name for r in Role.query.all()}
    for name in wanted:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()
