"""
Enumeration types for the credential issuer.

These enums provide type-safe constants for log statuses, error codes,
and logging levels throughout the system.
"""

from enum import Enum


class TxStatus(Enum):
    """Status of an audit log entry."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


class IssuanceErrorCode(Enum):
    """Reasons an issuance action can end in an error entry."""

    NOT_CONNECTED = "not-connected"
    WRONG_NETWORK = "wrong-network"
    NOT_AUTHORIZED = "not-authorized"
    MALFORMED_IDENTIFIER = "malformed-identifier"
    EMPTY_RECIPIENT_SET = "empty-recipient-set"
    INVALID_TOKEN_ID = "invalid-token-id"
    SUBMISSION_FAILED = "submission-failed"
    CONFIRMATION_FAILED = "confirmation-failed"


class AddressValidationErrorCode(Enum):
    """Error codes for address validation failures."""

    EMPTY_INPUT = "empty_input"
    BAD_FORMAT = "bad_format"
    BAD_CHECKSUM = "bad_checksum"


class ContractFunction(Enum):
    """Write functions exposed by the credential contract."""

    MINT = "mint"
    MINT_BATCH = "mintBatch"
    REVOKE = "revoke"
