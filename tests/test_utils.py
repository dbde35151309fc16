import pytest

from models import db
from models.user import User
from utils import emailer
from utils.masking import mask_email
from utils.roles import requires_two_factor


@pytest.mark.parametrize("email,masked", [
    ("alice@example.com", "al*****@ex*****.com"),
    ("ab@x.io", "a*****@x*****.io"),
    ("bob@localhost", "bo*****@lo*****"),
    ("first.last@mail.example.org", "fi*****@ma*****.org"),
    ("nodomain", "no*****"),
])
def test_mask_email(email, masked):
    assert mask_email(email) == masked


def test_send_email_without_smtp_host(ctx):
    ctx.config["SMTP_HOST"] = None
    assert emailer.send_email("a@example.com", "s", "b") == (False, "Email not configured")


def test_setting_email_mentions_setup(ctx, make_user, outbox):
    user = db.session.get(User, make_user())
    assert emailer.send_code_email(user, "123456", 60, purpose="setting")
    assert "setting up two-factor authentication" in outbox[0]["body"]
    assert "Verification code: 123456" in outbox[0]["body"]


def test_requires_two_factor_follows_roles(ctx, make_user):
    admin = db.session.get(User, make_user("admin@example.com", roles=("ADMIN",)))
    editor = db.session.get(User, make_user("editor@example.com", roles=("EDITOR",)))

    assert requires_two_factor(admin)
    assert not requires_two_factor(editor)

    ctx.config["TWOFA_ROLES"] = ["editor"]
    assert requires_two_factor(editor)

    ctx.config["TWOFA_ENABLED"] = False
    assert not requires_two_factor(editor)
