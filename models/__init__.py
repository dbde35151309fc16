from .db import db, transaction
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import UserSession
from .two_factor_auth import TwoFactorAuth, AuthMethod
from .two_factor_login import TwoFactorLogin, LoginStatus
from .pending_login import PendingLogin
from .email_send_mark import EmailSendMark
from .setup_secret import SetupSecret
from .legacy_secret import LegacyTotpSecret
