"""Persistence layer."""

from membership.storage.db import Database, db, unique_violation_field
from membership.storage.models import AuthUser, Award, BankAccount, Base, LoginSession, Profile, ProfileRole

__all__ = [
    "Database",
    "db",
    "unique_violation_field",
    "Base",
    "AuthUser",
    "Profile",
    "ProfileRole",
    "LoginSession",
    "BankAccount",
    "Award",
]
