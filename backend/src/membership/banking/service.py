"""Bank account pipeline: validate, encrypt and hash, persist."""

import re
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError

from membership.banking.crypto import get_vault, lookup_hash
from membership.banking.iban import BIC_PATTERN, mask_iban, validate_iban
from membership.errors import BadRequestError, ConflictError, CryptoError, ForbiddenError, NotFoundError
from membership.logging_config import get_logger
from membership.storage.db import db, unique_violation_field
from membership.storage.models import BankAccount, Profile

logger = get_logger(__name__)

_COUNTRY = re.compile(r"^[A-Z]{2}$")
_CURRENCY = re.compile(r"^[A-Z]{3}$")


def serialize_account(account: BankAccount) -> dict[str, Any]:
    """Public view of an account. Never includes iban_enc or iban_hash."""
    return {
        "id": account.id,
        "profile_id": account.profile_id,
        "holder_name": account.holder_name,
        "email": account.email,
        "bic": account.bic,
        "bank_name": account.bank_name,
        "country": account.country,
        "currency": account.currency,
        "created_at": account.created_at.isoformat() if account.created_at else None,
        "updated_at": account.updated_at.isoformat() if account.updated_at else None,
    }


def _normalize_code(value: str | None, pattern: re.Pattern, field: str, message: str) -> str | None:
    if value is None or not str(value).strip():
        return None
    value = str(value).strip().upper()
    if not pattern.match(value):
        raise BadRequestError(f"Invalid {field}", field=field, issues=[{"field": field, "message": message}])
    return value


class BankAccountService:
    """Service for encrypted bank accounts."""

    def __init__(self):
        """Initialize bank account service."""
        self.logger = get_logger(__name__)

    def _seal(self, iban: str) -> tuple[str, str]:
        vault = get_vault()
        return vault.encrypt(iban), lookup_hash(iban)

    def create_account(self, profile_id: int, token_email: str | None, data: dict[str, Any]) -> BankAccount:
        """Register a bank account for a profile.

        Args:
            profile_id: Owning profile
            token_email: Email from the caller's token
            data: holder_name, iban and optional email, bic, bank_name,
                country, currency

        Returns:
            Created account

        Raises:
            NotFoundError: Profile does not exist
            BadRequestError: Email mismatch or invalid IBAN/BIC/country/currency
            ConflictError: IBAN already registered for this profile
        """
        iban = validate_iban(data.get("iban") or "")
        bic = _normalize_code(data.get("bic"), BIC_PATTERN, "bic", "Invalid BIC/SWIFT format")
        country = _normalize_code(data.get("country"), _COUNTRY, "country", "Expected ISO 3166-1 alpha-2")
        currency = _normalize_code(data.get("currency"), _CURRENCY, "currency", "Expected ISO 4217 code") or "EUR"

        with db.session() as session:
            profile = session.get(Profile, profile_id)
        if not profile:
            raise NotFoundError("Profile not found")

        supplied_email = (data.get("email") or token_email or profile.email).strip().lower()
        if supplied_email != profile.email:
            raise BadRequestError("Email does not match the profile email", field="email")

        iban_enc, iban_hash = self._seal(iban)

        try:
            with db.session() as session:
                account = BankAccount(
                    profile_id=profile_id,
                    holder_name=str(data["holder_name"]).strip(),
                    email=profile.email,
                    iban_enc=iban_enc,
                    iban_hash=iban_hash,
                    bic=bic,
                    bank_name=data.get("bank_name"),
                    country=country,
                    currency=currency,
                )
                session.add(account)
                session.commit()
                session.refresh(account)
        except IntegrityError as e:
            if unique_violation_field(e, "bank_accounts", ("iban_hash", "profile_id")):
                raise ConflictError("IBAN already registered", field="iban") from e
            raise

        self.logger.info("bank_account_created", account_id=account.id, profile_id=profile_id)
        return account

    def replace_iban(self, profile_id: int, account_id: int, raw_iban: str) -> BankAccount:
        """Replace the IBAN of an account, re-encrypting and re-hashing together.

        Raises:
            NotFoundError: No such account for this profile
            BadRequestError: Invalid IBAN
            ConflictError: New IBAN already registered for this profile
        """
        iban = validate_iban(raw_iban)
        iban_enc, iban_hash = self._seal(iban)

        try:
            with db.session() as session:
                account = session.query(BankAccount).filter(
                    BankAccount.id == account_id,
                    BankAccount.profile_id == profile_id,
                ).first()
                if not account:
                    raise NotFoundError("Bank account not found")

                account.iban_enc = iban_enc
                account.iban_hash = iban_hash
                account.updated_at = datetime.utcnow()
                session.commit()
                session.refresh(account)
        except IntegrityError as e:
            if unique_violation_field(e, "bank_accounts", ("iban_hash", "profile_id")):
                raise ConflictError("IBAN already registered", field="iban") from e
            raise

        self.logger.info("bank_account_iban_replaced", account_id=account_id, profile_id=profile_id)
        return account

    def get_primary(self, profile_id: int) -> BankAccount | None:
        """Most recently created account of a profile."""
        with db.session() as session:
            return (
                session.query(BankAccount)
                .filter(BankAccount.profile_id == profile_id)
                .order_by(BankAccount.created_at.desc(), BankAccount.id.desc())
                .first()
            )

    def confirmation_view(
        self,
        profile_id: int,
        reveal: bool = False,
        requester_id: int | None = None,
        is_admin: bool = False,
    ) -> dict[str, Any]:
        """Confirmation data for the primary account.

        The IBAN is masked unless `reveal` is set. When `requester_id` is
        given, only the owner or an admin may read the view.

        Raises:
            ForbiddenError: Requester neither owns the profile nor is admin
            NotFoundError: Profile has no bank account
            CryptoError: Stored IBAN cannot be decrypted
        """
        if requester_id is not None and requester_id != profile_id and not is_admin:
            raise ForbiddenError("Not allowed to view this bank account")

        account = self.get_primary(profile_id)
        if not account:
            raise NotFoundError("Bank account not found")

        try:
            iban = get_vault().decrypt(account.iban_enc)
        except CryptoError as e:
            self.logger.error(
                "bank_account_decrypt_failed",
                account_id=account.id,
                profile_id=profile_id,
                error=str(e),
            )
            raise

        view = serialize_account(account)
        view.update(mask_iban(iban))
        if reveal:
            view["iban"] = iban
            self.logger.info(
                "bank_account_iban_revealed",
                account_id=account.id,
                profile_id=profile_id,
                requester_id=requester_id,
            )
        return view

    def find_by_iban(self, raw_iban: str) -> BankAccount | None:
        """Look up an account by IBAN via its hash. Invalid input finds nothing."""
        try:
            iban = validate_iban(raw_iban)
        except BadRequestError:
            return None

        with db.session() as session:
            return (
                session.query(BankAccount)
                .filter(BankAccount.iban_hash == lookup_hash(iban))
                .order_by(BankAccount.created_at.desc(), BankAccount.id.desc())
                .first()
            )

    def exists_by_iban(self, raw_iban: str) -> bool:
        return self.find_by_iban(raw_iban) is not None


# Singleton instance
bank_account_service = BankAccountService()
