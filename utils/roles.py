from flask import current_app


def two_factor_roles() -> set:
    return {r.upper() for r in current_app.config.get("TWOFA_ROLES", [])}


def requires_two_factor(user) -> bool:
    """2FA applies when the feature is on and the user holds an allow-listed role."""
    if not current_app.config.get("TWOFA_ENABLED", True):
        return False
    return bool(user.role_names & two_factor_roles())
