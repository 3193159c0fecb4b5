"""Bank accounts with AES-GCM encrypted IBANs."""

from membership.banking.crypto import IbanVault, get_vault, lookup_hash
from membership.banking.service import BankAccountService, bank_account_service

__all__ = ["IbanVault", "get_vault", "lookup_hash", "BankAccountService", "bank_account_service"]
