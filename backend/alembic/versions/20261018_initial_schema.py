"""Initial membership schema

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

Creates auth_users, profiles, sessions, bank_accounts and awards.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all initial tables."""

    # Profiles (self-referencing referral forest)
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("company_name", sa.String(200), nullable=True),
        sa.Column("vat_number", sa.String(20), nullable=True),
        sa.Column("region", sa.String(50), nullable=True),
        sa.Column(
            "role",
            sa.Enum("user", "admin", "superAdmin", name="profile_role", native_enum=False),
            nullable=False,
        ),
        sa.Column("referral_code", sa.String(16), nullable=True),
        sa.Column("referred_by_id", sa.Integer(), nullable=True),
        sa.Column("referrals_count", sa.Integer(), nullable=False),
        sa.Column("signed", sa.Boolean(), nullable=False),
        sa.Column("signed_at", sa.DateTime(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("date_joined", sa.DateTime(), nullable=False),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("last_logout", sa.DateTime(), nullable=True),
        sa.Column("last_activity", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["referred_by_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_profiles_user_id"),
        sa.UniqueConstraint("email", name="uq_profiles_email"),
        sa.UniqueConstraint("referral_code", name="uq_profiles_referral_code"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=False)
    op.create_index("ix_profiles_vat_number", "profiles", ["vat_number"], unique=False)
    op.create_index("ix_profiles_referred_by_id", "profiles", ["referred_by_id"], unique=False)
    op.create_index("ix_profiles_referred_by_created", "profiles", ["referred_by_id", "created_at"], unique=False)

    # Login identities
    op.create_table(
        "auth_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(254), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(150), nullable=False),
        sa.Column("last_name", sa.String(150), nullable=False),
        sa.Column("profile_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_staff", sa.Boolean(), nullable=False),
        sa.Column("date_joined", sa.DateTime(), nullable=False),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_auth_users_username"),
        sa.UniqueConstraint("email", name="uq_auth_users_email"),
        sa.UniqueConstraint("profile_id", name="uq_auth_users_profile_id"),
    )
    op.create_index("ix_auth_users_email", "auth_users", ["email"], unique=False)

    # Session audit
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("profile_id", sa.Integer(), nullable=False),
        sa.Column("token", sa.String(2048), nullable=False),
        sa.Column("last_authorized_ip", sa.String(45), nullable=False),
        sa.Column("user_agent", sa.String(512), nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("logout_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sessions_profile_id", "sessions", ["profile_id"], unique=False)
    op.create_index("ix_sessions_token", "sessions", ["token"], unique=False)

    # Bank accounts (IBAN stored encrypted + hashed only)
    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("profile_id", sa.Integer(), nullable=False),
        sa.Column("holder_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(254), nullable=True),
        sa.Column("iban_enc", sa.Text(), nullable=False),
        sa.Column("iban_hash", sa.String(64), nullable=False),
        sa.Column("bic", sa.String(11), nullable=True),
        sa.Column("bank_name", sa.String(150), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("profile_id", "iban_hash", name="uq_bank_accounts_iban_hash"),
    )
    op.create_index("ix_bank_accounts_profile_id", "bank_accounts", ["profile_id"], unique=False)
    op.create_index("ix_bank_accounts_email", "bank_accounts", ["email"], unique=False)
    op.create_index("ix_bank_accounts_iban_hash", "bank_accounts", ["iban_hash"], unique=False)

    # Awards
    op.create_table(
        "awards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("assigned_to_id", sa.Integer(), nullable=False),
        sa.Column("assigned_by_id", sa.Integer(), nullable=False),
        sa.Column("redeemed", sa.Boolean(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(), nullable=True),
        sa.Column("paid", sa.Boolean(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_awards_points_non_negative"),
        sa.ForeignKeyConstraint(["assigned_to_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["assigned_by_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_awards_assigned_to_id", "awards", ["assigned_to_id"], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_awards_assigned_to_id", table_name="awards")
    op.drop_table("awards")

    op.drop_index("ix_bank_accounts_iban_hash", table_name="bank_accounts")
    op.drop_index("ix_bank_accounts_email", table_name="bank_accounts")
    op.drop_index("ix_bank_accounts_profile_id", table_name="bank_accounts")
    op.drop_table("bank_accounts")

    op.drop_index("ix_sessions_token", table_name="sessions")
    op.drop_index("ix_sessions_profile_id", table_name="sessions")
    op.drop_table("sessions")

    op.drop_index("ix_auth_users_email", table_name="auth_users")
    op.drop_table("auth_users")

    op.drop_index("ix_profiles_referred_by_created", table_name="profiles")
    op.drop_index("ix_profiles_referred_by_id", table_name="profiles")
    op.drop_index("ix_profiles_vat_number", table_name="profiles")
    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_table("profiles")
