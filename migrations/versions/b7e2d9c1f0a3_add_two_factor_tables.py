"""add two-factor auth, attempt, pending login and legacy secret tables

Revision ID: b7e2d9c1f0a3
Revises: a4f1c2d3e5b6
Create Date: 2026-10-18 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "b7e2d9c1f0a3"
down_revision = "a4f1c2d3e5b6"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "two_factor_auth",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("secret", sa.String(length=255), nullable=False),
        sa.Column("recovery", sa.Text(), nullable=True),
        sa.Column("method", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "two_factor_login",
        sa.Column("ip", sa.String(length=64), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False),
        sa.Column("failed_count", sa.Integer(), nullable=False),
        sa.Column("login_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("ip"),
    )

    op.create_table(
        "pending_logins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("user_login", sa.String(length=255), nullable=False),
        sa.Column("auth_method", sa.Integer(), nullable=False),
        sa.Column("has_recovery", sa.Boolean(), nullable=False),
        sa.Column("email_address", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("created", sa.DateTime(), nullable=False),
        sa.Column("expires", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("pending_logins", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_pending_logins_token"), ["token"], unique=True)
        batch_op.create_index(batch_op.f("ix_pending_logins_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_pending_logins_expires"), ["expires"], unique=False)

    op.create_table(
        "email_send_marks",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("able_send_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "two_factor_setup_secrets",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("secret", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "legacy_totp_secrets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("secret", sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("legacy_totp_secrets", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_legacy_totp_secrets_user_id"), ["user_id"], unique=False)


def downgrade():
    with op.batch_alter_table("legacy_totp_secrets", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_legacy_totp_secrets_user_id"))
    op.drop_table("legacy_totp_secrets")

    op.drop_table("two_factor_setup_secrets")
    op.drop_table("email_send_marks")

    with op.batch_alter_table("pending_logins", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_pending_logins_expires"))
        batch_op.drop_index(batch_op.f("ix_pending_logins_user_id"))
        batch_op.drop_index(batch_op.f("ix_pending_logins_token"))
    op.drop_table("pending_logins")

    op.drop_table("two_factor_login")
    op.drop_table("two_factor_auth")
