"""
Command-line interface for the credential issuer.

Commands:
- mint: Issue one credential
- batch: Issue credentials to every address in a roster file
- revoke: Revoke a credential by token id
- view: Show the credential held by an address
- template: Write the roster import template
- config: Configuration management

Every issuing command accepts --dry-run (in-memory chain, nothing is sent)
and --export-log (write the audit log as CSV when the run ends).
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from . import __version__
from .chain import SimulatedChain, Web3Chain
from .config import (
    SystemConfig,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
)
from .credential_viewer import CredentialViewer
from .enums import TxStatus
from .event_logger import EventLogger
from .exceptions import ConfigurationError, PersistenceError
from .exporter import template_filename, template_text, write_export
from .orchestrator import IssuanceOrchestrator
from .tx_log import TxLog

# Identity used as both owner and connected wallet in dry runs
DRY_RUN_IDENTITY = "0x000000000000000000000000000000000000dead"

Chain = Union[SimulatedChain, Web3Chain]


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load config from --config if given, else from the environment."""
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None
    else:
        config = load_config_from_env()

    if getattr(args, "dry_run", False):
        config.simulation_mode = True
    return config


def create_logger(config: SystemConfig, verbose: bool) -> EventLogger:
    level = "debug" if verbose else config.logging.level
    return EventLogger.from_level_name(level, output_format=config.logging.output_format)


def create_chain(config: SystemConfig) -> Chain:
    """
    Build the chain collaborators for this run.

    Raises:
        ConfigurationError: If a live run lacks RPC or contract settings
    """
    if config.simulation_mode:
        identity = config.network.sender or DRY_RUN_IDENTITY
        return SimulatedChain(
            required_chain_id=config.network.chain_id,
            owner=identity,
            connected=identity,
        )

    config.require_chain_settings()
    return Web3Chain(
        rpc_url=config.network.rpc_url,
        contract_address=config.network.contract_address,
        sender=config.network.sender,
    )


def print_log(tx_log: TxLog) -> None:
    """Print the audit log oldest-first."""
    for entry in tx_log.chronological():
        line = f"{entry.at} • {entry.action} • {entry.status.value}"
        if entry.tx_hash:
            line += f" • {entry.tx_hash}"
        if entry.note:
            line += f" • {entry.note}"
        print(line)


async def run_issuing(
    config: SystemConfig,
    action: Callable[[IssuanceOrchestrator], Awaitable[None]],
    export_path: Optional[Path] = None,
    wait_seconds: Optional[float] = None,
    verbose: bool = False,
) -> int:
    """
    Run one issuing action against a fresh orchestrator.

    Args:
        config: System configuration
        action: Coroutine function receiving the orchestrator
        export_path: Optional file or directory for the CSV export
        wait_seconds: How long to wait for outstanding settlements
        verbose: Enable debug diagnostics

    Returns:
        Exit code (0 if no error entries were recorded)
    """
    logger = create_logger(config, verbose)

    try:
        chain = create_chain(config)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if config.simulation_mode:
        print("Dry run: nothing is sent to the network.")

    async with IssuanceOrchestrator(
        config=config,
        wallet=chain,
        reader=chain,
        writer=chain,
        logger=logger,
    ) as orchestrator:
        await action(orchestrator)
        await orchestrator.drain()
        outstanding = await chain.wait_for_settlements(wait_seconds)

    print_log(orchestrator.tx_log)
    print(f"Session issued (submitted): {orchestrator.session_issued}")
    if outstanding:
        print(f"Still awaiting settlement: {outstanding}")

    if export_path is not None:
        try:
            written = write_export(export_path, orchestrator.tx_log.export())
            print(f"Log exported to: {written}")
        except PersistenceError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

    has_error = any(e.status == TxStatus.ERROR for e in orchestrator.tx_log.snapshot())
    return 1 if has_error else 0


def _export_path(args: argparse.Namespace) -> Optional[Path]:
    return Path(args.export_log) if getattr(args, "export_log", None) else None


def cmd_mint(args: argparse.Namespace) -> int:
    """Handle the 'mint' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    async def action(orchestrator: IssuanceOrchestrator) -> None:
        await orchestrator.issue_single(args.address)

    return asyncio.run(run_issuing(
        config, action, _export_path(args), args.wait, args.verbose,
    ))


def cmd_batch(args: argparse.Namespace) -> int:
    """Handle the 'batch' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    try:
        raw_text = Path(args.file).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    async def action(orchestrator: IssuanceOrchestrator) -> None:
        recipients = orchestrator.import_text(raw_text)
        print(f"Imported {len(recipients)} valid address(es) from {args.file}")
        await orchestrator.issue_batch(raw_text, args.chunk_size)

    return asyncio.run(run_issuing(
        config, action, _export_path(args), args.wait, args.verbose,
    ))


def cmd_revoke(args: argparse.Namespace) -> int:
    """Handle the 'revoke' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    async def action(orchestrator: IssuanceOrchestrator) -> None:
        await orchestrator.revoke(args.token_id)

    return asyncio.run(run_issuing(
        config, action, _export_path(args), args.wait, args.verbose,
    ))


async def view_credential(config: SystemConfig, address: str) -> int:
    """Print the credential held by ``address``."""
    try:
        chain = create_chain(config)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    async with CredentialViewer(config, chain) as viewer:
        view = await viewer.view(address)
        explorer = viewer.explorer_url(address)

    if not view.has_credential:
        print("No active credential found for this address.")
        return 1

    print(f"Token ID: {view.token_id}")
    print(f"Name: {view.name}")
    if view.token_uri:
        print(f"Token URI: {view.token_uri}")
    if view.error:
        print(f"Metadata: {view.error}")
    elif view.metadata:
        if view.metadata.get("description"):
            print(f"Description: {view.metadata['description']}")
        print(f"Image: {view.image_url or 'No image found in metadata.'}")
        for attribute in view.attributes:
            print(f"  {attribute.get('trait_type', 'trait')}: {attribute.get('value', '')}")
    print(f"Explorer: {explorer}")
    return 0


def cmd_view(args: argparse.Namespace) -> int:
    """Handle the 'view' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(view_credential(config, args.address))


def cmd_template(args: argparse.Namespace) -> int:
    """Handle the 'template' command."""
    if args.output is None:
        sys.stdout.write(template_text())
        return 0

    output = Path(args.output)
    target = output / template_filename() if output.is_dir() else output
    try:
        target.write_text(template_text(), encoding="utf-8")
    except OSError as e:
        print(f"Error writing template: {e}", file=sys.stderr)
        return 1
    print(f"Template written to: {target}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else Path.home() / ".sbt_issuer" / "config.json"

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Network: {config.network.name} ({config.network.chain_id})")
        print(f"  Contract: {config.network.contract_address or '(not set)'}")
        print(f"  Sender: {config.network.sender or '(node default)'}")
        print(f"  Default chunk size: {config.batch.default_chunk_size}")
        print(f"  Log capacity: {config.audit.capacity}")
        print(f"  Simulation mode: {config.simulation_mode}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        if save_config_to_file(load_config_from_env(), config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1
        try:
            config.require_chain_settings()
        except ConfigurationError as e:
            print(f"Warning: {e.message} (only --dry-run will work)")
        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser, issuing: bool = True) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file (default: SBT_* environment / .env)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory chain - nothing is sent to the network",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug diagnostics",
    )
    if issuing:
        parser.add_argument(
            "--export-log",
            help="Write the audit log as CSV to this file or directory",
        )
        parser.add_argument(
            "--wait",
            type=float,
            default=None,
            help="Seconds to wait for confirmations before exiting (default: until all settle)",
        )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="sbt-issuer",
        description="Issue and revoke soulbound credentials",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    mint_parser = subparsers.add_parser("mint", help="Issue one credential")
    mint_parser.add_argument("address", help="Recipient address (0x...)")
    _add_common_arguments(mint_parser)
    mint_parser.set_defaults(func=cmd_mint)

    batch_parser = subparsers.add_parser(
        "batch",
        help="Issue credentials to every address in a CSV/TXT/JSON file",
    )
    batch_parser.add_argument("file", help="Roster file")
    batch_parser.add_argument(
        "--chunk-size", "-s",
        default=None,
        help="Addresses per transaction (1-200, default 40)",
    )
    _add_common_arguments(batch_parser)
    batch_parser.set_defaults(func=cmd_batch)

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a credential by token id")
    revoke_parser.add_argument("token_id", help="Token id (> 0)")
    _add_common_arguments(revoke_parser)
    revoke_parser.set_defaults(func=cmd_revoke)

    view_parser = subparsers.add_parser("view", help="Show the credential held by an address")
    view_parser.add_argument("address", help="Student address (0x...)")
    _add_common_arguments(view_parser, issuing=False)
    view_parser.set_defaults(func=cmd_view)

    template_parser = subparsers.add_parser("template", help="Write the roster import template")
    template_parser.add_argument(
        "--output", "-o",
        help="File or directory (default: stdout)",
    )
    template_parser.set_defaults(func=cmd_template)

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument("--path", "-p", help="Path to configuration file")
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
