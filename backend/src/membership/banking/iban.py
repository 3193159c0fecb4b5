"""IBAN normalization, validation and masking."""

import re

from membership.errors import BadRequestError

IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9A-Z]{13,32}$")
BIC_PATTERN = re.compile(r"^[A-Z0-9]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")
_WHITESPACE = re.compile(r"\s+")


def normalize_iban(raw: str) -> str:
    """Strip all whitespace and uppercase."""
    return _WHITESPACE.sub("", raw).upper()


def iban_format_valid(iban: str) -> bool:
    return bool(IBAN_PATTERN.match(iban))


def iban_checksum_valid(iban: str) -> bool:
    """ISO 7064 mod-97-10 check.

    The first four characters move to the end, letters expand to 10..35,
    and the resulting number must leave remainder 1.
    """
    iban = normalize_iban(iban)
    if not iban_format_valid(iban):
        return False
    rearranged = iban[4:] + iban[:4]
    expanded = "".join(str(int(ch, 36)) for ch in rearranged)
    return int(expanded) % 97 == 1


def validate_iban(raw: str) -> str:
    """Normalize and validate an IBAN.

    Args:
        raw: IBAN as entered

    Returns:
        Normalized IBAN

    Raises:
        BadRequestError: Bad structure or checksum
    """
    iban = normalize_iban(raw or "")
    if not iban_format_valid(iban):
        raise BadRequestError(
            "Invalid IBAN",
            field="iban",
            issues=[{
                "field": "iban",
                "message": "Expected two country letters followed by 13-32 alphanumeric characters",
            }],
        )
    if not iban_checksum_valid(iban):
        raise BadRequestError(
            "Invalid IBAN",
            field="iban",
            issues=[{"field": "iban", "message": "IBAN checksum (mod-97) failed"}],
        )
    return iban


def mask_iban(iban: str) -> dict[str, str]:
    """Masked view: first 4 and last 4 visible, grouped in blocks of 4.

    Returns:
        Dict with iban_masked and iban_last4
    """
    clean = normalize_iban(iban)
    head, tail = clean[:4], clean[-4:]
    body = "*" * max(len(clean) - len(head) - len(tail), 0)
    masked = head + body + tail
    grouped = " ".join(masked[i:i + 4] for i in range(0, len(masked), 4))
    return {"iban_masked": grouped, "iban_last4": tail}
