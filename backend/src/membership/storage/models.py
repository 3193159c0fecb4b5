"""Database models for profiles, identities, sessions, bank accounts and awards."""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ProfileRole(str, Enum):
    """Closed set of profile roles."""
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "superAdmin"


class AuthUser(Base):
    """Login credential record. Holds the password hash only."""

    __tablename__ = "auth_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(254), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)  # pbkdf2_sha256$iter$salt$key
    first_name: Mapped[str] = mapped_column(String(150), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(150), default="", nullable=False)
    profile_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("profiles.id"), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_staff: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    date_joined: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("username", name="uq_auth_users_username"),
        UniqueConstraint("email", name="uq_auth_users_email"),
        UniqueConstraint("profile_id", name="uq_auth_users_profile_id"),
    )

    def __repr__(self):
        return f"<AuthUser(id={self.id}, email={self.email})>"


class Profile(Base):
    """Business identity. Forms a referral forest through referred_by_id."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)  # external sequence id

    # Identity
    email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Company
    company_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    vat_number: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    region: Mapped[str | None] = mapped_column(String(50), nullable=True)

    role: Mapped[ProfileRole] = mapped_column(
        SQLEnum(
            ProfileRole,
            name="profile_role",
            native_enum=False,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        default=ProfileRole.USER,
        nullable=False,
    )

    # Referral (code is sparse: NULLs do not collide)
    referral_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    referred_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("profiles.id"), nullable=True, index=True
    )
    referrals_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Status
    signed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    date_joined: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_logout: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_profiles_user_id"),
        UniqueConstraint("email", name="uq_profiles_email"),
        UniqueConstraint("referral_code", name="uq_profiles_referral_code"),
        Index("ix_profiles_referred_by_created", "referred_by_id", "created_at"),
    )

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, role={self.role})>"


class LoginSession(Base):
    """Audit record of one issued token. Not used for authorization."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(2048), nullable=False, index=True)
    last_authorized_ip: Mapped[str] = mapped_column(String(45), nullable=False)
    user_agent: Mapped[str] = mapped_column(String(512), default="", nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    logout_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self):
        return f"<LoginSession(id={self.id}, profile={self.profile_id})>"


class BankAccount(Base):
    """Bank account with an encrypted IBAN.

    Only iban_enc (AES-GCM payload) and iban_hash (sha256 of the normalized
    IBAN) are stored; both are always written together.
    """

    __tablename__ = "bank_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    holder_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True, index=True)

    iban_enc: Mapped[str] = mapped_column(Text, nullable=False)
    iban_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    bic: Mapped[str | None] = mapped_column(String(11), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)  # ISO 3166-1 alpha-2
    currency: Mapped[str | None] = mapped_column(String(3), default="EUR", nullable=True)  # ISO 4217

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("profile_id", "iban_hash", name="uq_bank_accounts_iban_hash"),
    )

    def __repr__(self):
        return f"<BankAccount(id={self.id}, profile={self.profile_id})>"


class Award(Base):
    """Point grant with independent redemption and payment lifecycles."""

    __tablename__ = "awards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)

    assigned_to_id: Mapped[int] = mapped_column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    assigned_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("profiles.id"), nullable=False)

    redeemed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_awards_points_non_negative"),
    )

    def __repr__(self):
        return f"<Award(id={self.id}, points={self.points}, to={self.assigned_to_id})>"
