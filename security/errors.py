class TwoFactorError(Exception):
    """
    Base for every error the two-factor flow reports to a caller.
    `message` is always safe to show to the user; it never carries
    secrets, codes or storage details.
    """
    status_code = 400
    default_message = "Two-factor authentication failed."

    def __init__(self, message: str = None, **payload):
        self.message = message or self.default_message
        self.payload = payload
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, **self.payload}


class DecodeError(TwoFactorError, ValueError):
    default_message = "Malformed encoded value."


class NotFoundError(TwoFactorError):
    status_code = 401
    default_message = "Your session has expired. Please sign in again."


class ThrottledError(TwoFactorError):
    status_code = 429
    default_message = "Please wait before trying again."

    def __init__(self, message: str = None, remaining_seconds: int = 0, **payload):
        super().__init__(message, remaining_seconds=remaining_seconds, **payload)
        self.remaining_seconds = remaining_seconds


class LockedOutError(ThrottledError):
    """The source IP tripped the failed-attempt limiter."""

    def __init__(self, minutes: int, message: str = None):
        message = message or (
            f"Too many failed attempts. Login is disabled for {minutes} minute(s). "
            "Please wait and try again."
        )
        super().__init__(message, remaining_seconds=minutes * 60, lockout_minutes=minutes)
        self.minutes = minutes


class PersistenceError(TwoFactorError):
    status_code = 503
    default_message = "Something went wrong. Please try again later."
