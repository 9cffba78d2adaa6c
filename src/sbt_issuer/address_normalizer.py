"""
Recipient address validation and normalization.

Turns free-form text (pasted into a field or read from an uploaded CSV, TXT
or JSON file) into an ordered, duplicate-free set of well-formed account
addresses, and parses token ids for revocation.
"""

import re
from dataclasses import dataclass
from typing import Optional

from eth_utils import is_checksum_address, is_checksum_formatted_address

from .enums import AddressValidationErrorCode, IssuanceErrorCode
from .exceptions import ValidationError
from .models import RecipientSet


# Any run of newline, carriage return, comma, semicolon, tab or space
SEPARATOR_PATTERN = re.compile(r"[\r\n,;\t ]+")

ADDRESS_PATTERN = re.compile(r"0x[0-9a-fA-F]{40}")

TOKEN_ID_PATTERN = re.compile(r"[0-9]+")

MAX_TOKEN_ID = 2**256 - 1


@dataclass
class AddressValidationError:
    """Structured error information for address validation failures."""

    code: AddressValidationErrorCode
    message: str
    details: dict


@dataclass
class AddressValidationResult:
    """Result of an address validation."""

    valid: bool
    address: Optional[str]
    error: Optional[AddressValidationError]


class AddressValidator:
    """
    Validates account addresses.

    An address is well-formed when it is ``0x`` followed by 40 hex digits.
    Mixed-case addresses must also carry a valid EIP-55 checksum; all-lower
    and all-upper forms are accepted as-is.
    """

    def validate(self, raw_address: Optional[str]) -> AddressValidationResult:
        """
        Validate a single address string.

        Args:
            raw_address: Candidate address, surrounding whitespace allowed

        Returns:
            AddressValidationResult with the trimmed address or an error
        """
        if not raw_address or not raw_address.strip():
            return AddressValidationResult(
                valid=False,
                address=None,
                error=AddressValidationError(
                    code=AddressValidationErrorCode.EMPTY_INPUT,
                    message="Address input is empty",
                    details={"raw_input": raw_address},
                ),
            )

        address = raw_address.strip()

        if not ADDRESS_PATTERN.fullmatch(address):
            return AddressValidationResult(
                valid=False,
                address=None,
                error=AddressValidationError(
                    code=AddressValidationErrorCode.BAD_FORMAT,
                    message="Address must be 0x followed by 40 hex digits",
                    details={"raw_input": raw_address, "length": len(address)},
                ),
            )

        if is_checksum_formatted_address(address) and not is_checksum_address(address):
            return AddressValidationResult(
                valid=False,
                address=None,
                error=AddressValidationError(
                    code=AddressValidationErrorCode.BAD_CHECKSUM,
                    message="Mixed-case address has an invalid checksum",
                    details={"raw_input": raw_address},
                ),
            )

        return AddressValidationResult(valid=True, address=address, error=None)

    def is_well_formed(self, token: Optional[str]) -> bool:
        """Return True if token is a well-formed address."""
        return self.validate(token).valid


_default_validator = AddressValidator()


def is_well_formed(token: Optional[str]) -> bool:
    """Return True if token is a well-formed address."""
    return _default_validator.is_well_formed(token)


def split_tokens(raw_text: str) -> list[str]:
    """Split raw text on separator runs, trimming and dropping empty tokens."""
    tokens = (t.strip() for t in SEPARATOR_PATTERN.split(raw_text or ""))
    return [t for t in tokens if t]


def normalize(raw_text: str) -> RecipientSet:
    """
    Parse free-form text into an ordered set of unique addresses.

    Malformed tokens are dropped silently. Duplicates are detected
    case-insensitively; the first-seen casing and position win.

    Args:
        raw_text: Pasted or uploaded text

    Returns:
        Tuple of addresses, possibly empty
    """
    seen: set[str] = set()
    out: list[str] = []
    for token in split_tokens(raw_text):
        if not is_well_formed(token):
            continue
        key = token.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(token)
    return tuple(out)


def parse_token_id(text: Optional[str]) -> int:
    """
    Parse a token id typed by the operator.

    Args:
        text: Decimal token id

    Returns:
        The token id as a positive integer

    Raises:
        ValidationError: If the text is empty, non-numeric, zero, negative
            or larger than uint256
    """
    candidate = (text or "").strip()
    # uint256 has at most 78 decimal digits
    if len(candidate) > 78 or not TOKEN_ID_PATTERN.fullmatch(candidate):
        raise ValidationError(
            code=IssuanceErrorCode.INVALID_TOKEN_ID.value,
            message="Invalid token id (must be > 0)",
            details={"raw_input": text},
        )

    token_id = int(candidate)
    if token_id <= 0 or token_id > MAX_TOKEN_ID:
        raise ValidationError(
            code=IssuanceErrorCode.INVALID_TOKEN_ID.value,
            message="Invalid token id (must be > 0)",
            details={"raw_input": text, "token_id": token_id},
        )

    return token_id
