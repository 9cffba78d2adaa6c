"""
Data models for the credential issuer.

This module defines the records that flow between the normalizer, the
orchestrator, the chain collaborators and the audit log.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .enums import IssuanceErrorCode, TxStatus


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# An ordered, duplicate-free tuple of recipient addresses
RecipientSet = tuple[str, ...]
Chunk = tuple[str, ...]


@dataclass(frozen=True)
class TxLogEntry:
    """One attempted action as shown to the operator."""

    at: str
    action: str
    status: TxStatus
    tx_hash: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class AuthorizationContext:
    """
    Snapshot of who is connected, where, and who owns the contract.

    Built fresh for every action; never reused across actions.
    """

    connected_identity: Optional[str]
    current_network: Optional[int]
    contract_owner: Optional[str]
    required_network: int

    @property
    def is_connected(self) -> bool:
        return bool(self.connected_identity)

    @property
    def on_required_network(self) -> bool:
        return self.current_network == self.required_network

    @property
    def is_owner(self) -> bool:
        if not self.connected_identity or not self.contract_owner:
            return False
        return self.connected_identity.lower() == str(self.contract_owner).lower()

    def denial(self) -> Optional[IssuanceErrorCode]:
        """Return the first reason writes are not allowed, or None."""
        if not self.is_connected:
            return IssuanceErrorCode.NOT_CONNECTED
        if not self.on_required_network:
            return IssuanceErrorCode.WRONG_NETWORK
        if not self.is_owner:
            return IssuanceErrorCode.NOT_AUTHORIZED
        return None


@dataclass(frozen=True)
class SubmissionHandle:
    """What the write collaborator returns once a submission has settled."""

    handle_id: str
    function_name: str
    accepted: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Settlement:
    """Terminal outcome of a submitted write, delivered asynchronously."""

    handle_id: str
    function_name: str
    success: bool
    tx_hash: Optional[str] = None
    reason: Optional[str] = None
    error_code: Optional[IssuanceErrorCode] = None


@dataclass
class ActionResult:
    """Outcome of a single mint or revoke call."""

    action: str
    submitted: bool
    rejection: Optional[IssuanceErrorCode] = None
    handle: Optional[SubmissionHandle] = None


@dataclass
class BatchResult:
    """Outcome of a batch mint call."""

    recipients: int
    chunk_size: int
    chunks_total: int
    handles: list[SubmissionHandle] = field(default_factory=list)
    rejection: Optional[IssuanceErrorCode] = None
    cancelled: bool = False

    @property
    def chunks_attempted(self) -> int:
        return len(self.handles)

    @property
    def chunks_accepted(self) -> int:
        return sum(1 for h in self.handles if h.accepted)

    @property
    def chunks_failed(self) -> int:
        return sum(1 for h in self.handles if not h.accepted)


@dataclass
class CredentialView:
    """Everything the student page shows for one address."""

    address: str
    token_id: int = 0
    token_uri: Optional[str] = None
    metadata_url: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    image_url: Optional[str] = None
    attributes: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_credential(self) -> bool:
        return self.token_id > 0

    @property
    def name(self) -> str:
        if self.metadata and self.metadata.get("name"):
            return str(self.metadata["name"])
        return "Credential"
