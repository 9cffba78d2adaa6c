"""
Configuration dataclasses for the credential issuer.

This module defines all configuration structures used throughout the system,
including the target network and contract, batch sizing, audit log limits,
the student viewer, and logging. Configuration can be loaded from a JSON
file or from environment variables (optionally via a .env file).
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


SEPOLIA_CHAIN_ID = 11155111

DEFAULT_CHUNK_SIZE = 40
MIN_CHUNK_SIZE = 1
MAX_CHUNK_SIZE = 200

DEFAULT_LOG_CAPACITY = 200
MAX_LOG_CAPACITY = 200


def _clamp(value, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


@dataclass
class NetworkConfig:
    """Target chain and credential contract."""

    chain_id: int = SEPOLIA_CHAIN_ID
    name: str = "sepolia"
    rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    sender: Optional[str] = None
    explorer_url: str = "https://sepolia.etherscan.io"


@dataclass
class BatchConfig:
    """Chunking limits for batch mints."""

    default_chunk_size: int = DEFAULT_CHUNK_SIZE
    min_chunk_size: int = MIN_CHUNK_SIZE
    max_chunk_size: int = MAX_CHUNK_SIZE

    def __post_init__(self) -> None:
        # Bounds hold however the config was built (file, env or code)
        self.min_chunk_size = _clamp(self.min_chunk_size, MIN_CHUNK_SIZE, MAX_CHUNK_SIZE)
        self.max_chunk_size = _clamp(self.max_chunk_size, self.min_chunk_size, MAX_CHUNK_SIZE)
        self.default_chunk_size = _clamp(
            self.default_chunk_size, self.min_chunk_size, self.max_chunk_size
        )


@dataclass
class AuditConfig:
    """Audit log and export settings."""

    capacity: int = DEFAULT_LOG_CAPACITY
    export_prefix: str = "sbt-logs"
    settlement_timeout_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        self.capacity = _clamp(self.capacity, 1, MAX_LOG_CAPACITY)


@dataclass
class ViewerConfig:
    """Student credential viewer settings."""

    ipfs_gateway: str = "https://ipfs.io/ipfs/"
    http_timeout_seconds: float = 15.0
    max_attributes: int = 12


@dataclass
class LoggingConfig:
    """Diagnostic logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    simulation_mode: bool = False

    def require_chain_settings(self) -> None:
        """
        Ensure a live chain connection can be built from this config.

        Raises:
            ConfigurationError: If the RPC URL or contract address is missing
        """
        missing = []
        if not self.network.rpc_url:
            missing.append("rpc_url")
        if not self.network.contract_address:
            missing.append("contract_address")
        if missing:
            raise ConfigurationError(
                code="missing_setting",
                message=f"Missing network settings: {', '.join(missing)}",
                details={"missing": missing},
            )


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str) -> Optional[float]:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def load_config_from_env(env_file: Optional[Path] = None) -> SystemConfig:
    """
    Build configuration from SBT_* environment variables.

    Args:
        env_file: Optional .env file to load first (does not override
            variables already set in the environment)

    Returns:
        SystemConfig with values from the environment and defaults elsewhere
    """
    load_dotenv(dotenv_path=env_file)

    network = NetworkConfig(
        chain_id=_int_env("SBT_CHAIN_ID", SEPOLIA_CHAIN_ID),
        name=os.getenv("SBT_NETWORK_NAME", "sepolia"),
        rpc_url=os.getenv("SBT_RPC_URL") or None,
        contract_address=os.getenv("SBT_CONTRACT_ADDRESS") or None,
        sender=os.getenv("SBT_SENDER") or None,
        explorer_url=os.getenv("SBT_EXPLORER_URL", "https://sepolia.etherscan.io"),
    )

    return SystemConfig(
        network=network,
        batch=BatchConfig(
            default_chunk_size=_int_env("SBT_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        ),
        audit=AuditConfig(
            settlement_timeout_seconds=_float_env("SBT_SETTLEMENT_TIMEOUT"),
        ),
        viewer=ViewerConfig(
            ipfs_gateway=os.getenv("SBT_IPFS_GATEWAY", "https://ipfs.io/ipfs/"),
        ),
        logging=LoggingConfig(
            level=os.getenv("SBT_LOG_LEVEL", "info").lower(),
            output_format=os.getenv("SBT_LOG_FORMAT", "text").lower(),
        ),
        simulation_mode=os.getenv("SBT_DRY_RUN", "0") == "1",
    )


def config_to_dict(config: SystemConfig) -> dict:
    """Serialize a SystemConfig to a JSON-compatible dictionary."""
    return {
        "network": {
            "chain_id": config.network.chain_id,
            "name": config.network.name,
            "rpc_url": config.network.rpc_url,
            "contract_address": config.network.contract_address,
            "sender": config.network.sender,
            "explorer_url": config.network.explorer_url,
        },
        "batch": {
            "default_chunk_size": config.batch.default_chunk_size,
            "min_chunk_size": config.batch.min_chunk_size,
            "max_chunk_size": config.batch.max_chunk_size,
        },
        "audit": {
            "capacity": config.audit.capacity,
            "export_prefix": config.audit.export_prefix,
            "settlement_timeout_seconds": config.audit.settlement_timeout_seconds,
        },
        "viewer": {
            "ipfs_gateway": config.viewer.ipfs_gateway,
            "http_timeout_seconds": config.viewer.http_timeout_seconds,
            "max_attributes": config.viewer.max_attributes,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
        "simulation_mode": config.simulation_mode,
    }


def config_from_dict(data: dict) -> SystemConfig:
    """Build a SystemConfig from a dictionary, filling gaps with defaults."""
    network_data = data.get("network", {})
    batch_data = data.get("batch", {})
    audit_data = data.get("audit", {})
    viewer_data = data.get("viewer", {})
    logging_data = data.get("logging", {})

    return SystemConfig(
        network=NetworkConfig(
            chain_id=int(network_data.get("chain_id", SEPOLIA_CHAIN_ID)),
            name=network_data.get("name", "sepolia"),
            rpc_url=network_data.get("rpc_url"),
            contract_address=network_data.get("contract_address"),
            sender=network_data.get("sender"),
            explorer_url=network_data.get("explorer_url", "https://sepolia.etherscan.io"),
        ),
        batch=BatchConfig(
            default_chunk_size=batch_data.get("default_chunk_size", DEFAULT_CHUNK_SIZE),
            min_chunk_size=batch_data.get("min_chunk_size", MIN_CHUNK_SIZE),
            max_chunk_size=batch_data.get("max_chunk_size", MAX_CHUNK_SIZE),
        ),
        audit=AuditConfig(
            capacity=audit_data.get("capacity", DEFAULT_LOG_CAPACITY),
            export_prefix=audit_data.get("export_prefix", "sbt-logs"),
            settlement_timeout_seconds=audit_data.get("settlement_timeout_seconds"),
        ),
        viewer=ViewerConfig(
            ipfs_gateway=viewer_data.get("ipfs_gateway", "https://ipfs.io/ipfs/"),
            http_timeout_seconds=viewer_data.get("http_timeout_seconds", 15.0),
            max_attributes=viewer_data.get("max_attributes", 12),
        ),
        logging=LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        ),
        simulation_mode=data.get("simulation_mode", False),
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None if the file is missing or invalid
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return config_from_dict(data)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError):
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError):
        return False
