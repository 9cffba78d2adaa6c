"""
SBT Issuer - batch issuance and revocation of soulbound credentials.

This package turns messy recipient rosters into validated, deduplicated,
size-bounded contract writes, submits them one at a time, and keeps an
exportable audit log of every action attempted.
"""

__version__ = "0.1.0"
__author__ = "SBT Issuer Team"

from sbt_issuer.exceptions import (
    SBTIssuerError,
    ValidationError,
    AuthorizationError,
    SubmissionError,
    ConfigurationError,
    PersistenceError,
)
from sbt_issuer.enums import (
    TxStatus,
    LogLevel,
    IssuanceErrorCode,
    AddressValidationErrorCode,
    ContractFunction,
)
from sbt_issuer.config import (
    NetworkConfig,
    BatchConfig,
    AuditConfig,
    ViewerConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
)
from sbt_issuer.models import (
    TxLogEntry,
    AuthorizationContext,
    SubmissionHandle,
    Settlement,
    ActionResult,
    BatchResult,
    CredentialView,
)
from sbt_issuer.address_normalizer import (
    AddressValidator,
    AddressValidationResult,
    AddressValidationError,
    is_well_formed,
    normalize,
    parse_token_id,
)
from sbt_issuer.chunker import (
    chunk,
    resolve_chunk_size,
)
from sbt_issuer.tx_log import TxLog
from sbt_issuer.exporter import (
    export_csv,
    export_filename,
    template_text,
)
from sbt_issuer.event_logger import (
    EventLogger,
    LogEvent,
)
from sbt_issuer.submission_queue import SubmissionQueue
from sbt_issuer.chain import (
    WalletSession,
    ContractReader,
    ContractWriter,
    SimulatedChain,
    Web3Chain,
)
from sbt_issuer.orchestrator import (
    IssuanceOrchestrator,
    BatchCancellation,
)
from sbt_issuer.credential_viewer import (
    CredentialViewer,
    resolve_ipfs,
)

__all__ = [
    # Exceptions
    "SBTIssuerError",
    "ValidationError",
    "AuthorizationError",
    "SubmissionError",
    "ConfigurationError",
    "PersistenceError",
    # Enums
    "TxStatus",
    "LogLevel",
    "IssuanceErrorCode",
    "AddressValidationErrorCode",
    "ContractFunction",
    # Configuration
    "NetworkConfig",
    "BatchConfig",
    "AuditConfig",
    "ViewerConfig",
    "LoggingConfig",
    "SystemConfig",
    "load_config_from_env",
    "load_config_from_file",
    "save_config_to_file",
    # Models
    "TxLogEntry",
    "AuthorizationContext",
    "SubmissionHandle",
    "Settlement",
    "ActionResult",
    "BatchResult",
    "CredentialView",
    # Normalizer
    "AddressValidator",
    "AddressValidationResult",
    "AddressValidationError",
    "is_well_formed",
    "normalize",
    "parse_token_id",
    # Chunker
    "chunk",
    "resolve_chunk_size",
    # Audit log and export
    "TxLog",
    "export_csv",
    "export_filename",
    "template_text",
    # Diagnostics
    "EventLogger",
    "LogEvent",
    # Chain collaborators
    "SubmissionQueue",
    "WalletSession",
    "ContractReader",
    "ContractWriter",
    "SimulatedChain",
    "Web3Chain",
    # Orchestrator
    "IssuanceOrchestrator",
    "BatchCancellation",
    # Viewer
    "CredentialViewer",
    "resolve_ipfs",
]
