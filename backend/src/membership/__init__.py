"""Membership backend: registration, referrals, encrypted bank data and awards."""

__version__ = "1.0.0"
