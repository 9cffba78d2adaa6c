"""
Exception classes for the credential issuer.

All exceptions inherit from SBTIssuerError and carry a code, a message
and a details dict. The subclasses raised on the issuance path take their
domain values (denial reason, contract function, file path) as arguments
and fill ``details`` from them.
"""

from typing import Optional

from .enums import IssuanceErrorCode


class SBTIssuerError(Exception):
    """Base exception for all credential issuer errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SBTIssuerError):
    """Raised when an address or token id fails validation."""

    pass


class AuthorizationError(SBTIssuerError):
    """
    Raised when the connected wallet may not perform admin writes.

    ``denial`` is one of not-connected, wrong-network or not-authorized.
    The wallet and network state that led to it go into ``details``.
    """

    def __init__(
        self,
        denial: IssuanceErrorCode,
        message: str,
        connected_identity: Optional[str] = None,
        current_network: Optional[int] = None,
        required_network: Optional[int] = None,
        contract_owner: Optional[str] = None,
    ) -> None:
        self.denial = denial
        super().__init__(
            code=denial.value,
            message=message,
            details={
                "connected": connected_identity,
                "network": current_network,
                "required_network": required_network,
                "owner": contract_owner,
            },
        )


class SubmissionError(SBTIssuerError):
    """Raised when the write collaborator rejects a submission."""

    def __init__(
        self,
        function_name: str,
        message: str,
        code: IssuanceErrorCode = IssuanceErrorCode.SUBMISSION_FAILED,
    ) -> None:
        self.function_name = function_name
        super().__init__(
            code=code.value,
            message=message,
            details={"function": function_name},
        )


class ConfigurationError(SBTIssuerError):
    """Raised when configuration is missing or inconsistent."""

    pass


class PersistenceError(SBTIssuerError):
    """Raised when an export or template file cannot be written."""

    def __init__(self, file_path: str, message: str) -> None:
        self.file_path = file_path
        super().__init__(
            code="io_error",
            message=message,
            details={"file_path": file_path},
        )
