"""
Issuance Orchestrator for the credential issuer.

Gates, sequences and records every admin write:
- issue_single: mint one credential
- issue_batch: mint credentials to a pasted or imported roster, chunk by chunk
- revoke: burn a credential by token id

Every action re-derives the authorization context from the wallet and
contract collaborators before doing anything, records a pending entry in
the audit log, and submits through a single in-order submission queue.
Settlements arrive later through the writer's subscription channel and
are appended as separate entries; pending entries are never edited.
"""

import asyncio
from typing import Any, Optional

from .address_normalizer import AddressValidator, normalize, parse_token_id
from .chain import ContractReader, ContractWriter, WalletSession
from .chunker import chunk, resolve_chunk_size
from .config import SystemConfig
from .enums import ContractFunction, IssuanceErrorCode, TxStatus
from .event_logger import EventLogger
from .exceptions import AuthorizationError, ValidationError
from .models import (
    ActionResult,
    AuthorizationContext,
    BatchResult,
    Chunk,
    RecipientSet,
    Settlement,
    SubmissionHandle,
)
from .submission_queue import SubmissionQueue
from .tx_log import TxLog


# Handle ids remembered while waiting for an early or late settlement
TRACKED_HANDLE_LIMIT = 1024


def _remember(bucket: dict, handle_id: str) -> None:
    bucket[handle_id] = None
    if len(bucket) > TRACKED_HANDLE_LIMIT:
        del bucket[next(iter(bucket))]


DENIAL_NOTES = {
    IssuanceErrorCode.NOT_CONNECTED: "Connect your wallet.",
    IssuanceErrorCode.WRONG_NETWORK: "Switch to the required network.",
    IssuanceErrorCode.NOT_AUTHORIZED: "Not authorized: this wallet is not the contract owner.",
}


class BatchCancellation:
    """Cancellation flag checked between batch chunks."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class IssuanceOrchestrator:
    """
    Main orchestrator for credential issuance.

    Owns the audit log and the session issuance counter. The counter is
    optimistic: it grows when a write is submitted, not when it confirms.
    """

    async def __aenter__(self) -> "IssuanceOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._queue.close()
        self._cancel_watchdogs()

    def __init__(
        self,
        config: SystemConfig,
        wallet: WalletSession,
        reader: ContractReader,
        writer: ContractWriter,
        tx_log: Optional[TxLog] = None,
        logger: Optional[EventLogger] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: System configuration
            wallet: Identity/network collaborator
            reader: Contract-read collaborator
            writer: Contract-write collaborator; the orchestrator subscribes
                to its settlement events
            tx_log: Optional audit log (a fresh one is created otherwise)
            logger: Optional diagnostic logger
        """
        self._config = config
        self._wallet = wallet
        self._reader = reader
        self._writer = writer
        self._tx_log = tx_log if tx_log is not None else TxLog(config.audit.capacity)
        self._logger = logger
        self._validator = AddressValidator()
        self._queue = SubmissionQueue()
        self._session_issued = 0

        self._timeout = config.audit.settlement_timeout_seconds
        self._watchdogs: dict[str, asyncio.TimerHandle] = {}
        # Insertion-ordered, oldest evicted first
        self._early_settled: dict[str, None] = {}
        self._timed_out: dict[str, None] = {}

        writer.subscribe(self._on_settlement)

    @property
    def tx_log(self) -> TxLog:
        return self._tx_log

    @property
    def session_issued(self) -> int:
        """Credentials submitted this session (in flight, not confirmed)."""
        return self._session_issued

    @property
    def config(self) -> SystemConfig:
        return self._config

    @property
    def timed_out_handles(self) -> int:
        """Timed-out writes whose late settlement is still expected."""
        return len(self._timed_out)

    async def authorization_context(self) -> AuthorizationContext:
        """Read identity, network and owner fresh from the collaborators."""
        identity = await self._wallet.connected_identity()
        network = await self._wallet.current_network()
        owner = await self._reader.owner()
        return AuthorizationContext(
            connected_identity=identity,
            current_network=network,
            contract_owner=owner,
            required_network=self._config.network.chain_id,
        )

    async def switch_network(self) -> bool:
        """Ask the wallet to move to the required network."""
        target = self._config.network.chain_id
        switched = await self._wallet.switch_network(target)
        self._log_info("switch_network", f"Network switch to {target}: {'ok' if switched else 'refused'}")
        return switched

    def import_text(self, raw_text: str) -> RecipientSet:
        """
        Normalize uploaded or pasted roster text and record the import.

        Returns:
            The normalized recipient set
        """
        recipients = normalize(raw_text)
        self._tx_log.record(
            "batch-import",
            TxStatus.SUCCESS,
            note=f"Imported {len(recipients)} valid address(es)",
        )
        return recipients

    async def issue_single(self, identifier: str) -> ActionResult:
        """
        Mint one credential.

        Args:
            identifier: Recipient address

        Returns:
            ActionResult; ``rejection`` is set if nothing was submitted
        """
        action = ContractFunction.MINT.value
        try:
            await self._require_ready()
        except AuthorizationError as e:
            return self._reject(action, e.denial, e.message, e.details)

        validation = self._validator.validate(identifier)
        if not validation.valid:
            return self._reject(
                action,
                IssuanceErrorCode.MALFORMED_IDENTIFIER,
                f"Invalid address: {validation.error.message}",
            )

        address = validation.address
        label = f"mint({address})"
        self._tx_log.record(label, TxStatus.PENDING)

        handle = await self._queue.submit(
            lambda: self._submit(label, action, [address])
        )
        self._session_issued += 1
        return ActionResult(action=label, submitted=True, handle=handle)

    async def issue_batch(
        self,
        raw_text: str,
        chunk_size: Any = None,
        cancellation: Optional[BatchCancellation] = None,
    ) -> BatchResult:
        """
        Mint credentials to every valid address in raw_text.

        Chunks are submitted strictly one after another; chunk n+1 is not
        submitted until chunk n's submission has settled. A failed chunk
        does not stop the batch.

        Args:
            raw_text: Roster text (any mix of newlines, commas, semicolons,
                tabs and spaces)
            chunk_size: Requested chunk size; clamped, 40 if unparsable
            cancellation: Optional token checked before each chunk

        Returns:
            BatchResult summarizing the submissions
        """
        action = ContractFunction.MINT_BATCH.value
        if chunk_size is None:
            chunk_size = self._config.batch.default_chunk_size
        size = resolve_chunk_size(
            chunk_size,
            default=self._config.batch.default_chunk_size,
            minimum=self._config.batch.min_chunk_size,
            maximum=self._config.batch.max_chunk_size,
        )

        try:
            await self._require_ready()
        except AuthorizationError as e:
            self._reject(action, e.denial, e.message, e.details)
            return BatchResult(
                recipients=0,
                chunk_size=size,
                chunks_total=0,
                rejection=e.denial,
            )

        recipients = normalize(raw_text)
        if not recipients:
            self._reject(action, IssuanceErrorCode.EMPTY_RECIPIENT_SET, "No valid addresses.")
            return BatchResult(
                recipients=0,
                chunk_size=size,
                chunks_total=0,
                rejection=IssuanceErrorCode.EMPTY_RECIPIENT_SET,
            )

        parts = chunk(
            recipients,
            size,
            minimum=self._config.batch.min_chunk_size,
            maximum=self._config.batch.max_chunk_size,
        )
        total = len(parts)
        result = BatchResult(recipients=len(recipients), chunk_size=size, chunks_total=total)

        self._tx_log.record(action, TxStatus.PENDING, note=f"Sending {total} chunk(s) of {size}")
        self._log_info(
            "issue_batch",
            f"Batch of {len(recipients)} recipient(s) in {total} chunk(s)",
            {"recipients": len(recipients), "chunks": total, "chunk_size": size},
        )

        futures = [
            self._queue.enqueue(self._chunk_task(index, total, part, cancellation))
            for index, part in enumerate(parts, start=1)
        ]

        for future in futures:
            handle = await future
            if handle is None:
                result.cancelled = True
                continue
            result.handles.append(handle)

        if result.cancelled:
            self._tx_log.record(
                action,
                TxStatus.ERROR,
                note=f"Cancelled after {result.chunks_attempted}/{total} chunk(s)",
            )
        return result

    async def revoke(self, token_id_text: str) -> ActionResult:
        """
        Revoke (burn) a credential by token id.

        Args:
            token_id_text: Token id as typed by the operator

        Returns:
            ActionResult; ``rejection`` is set if nothing was submitted
        """
        action = ContractFunction.REVOKE.value
        try:
            await self._require_ready()
        except AuthorizationError as e:
            return self._reject(action, e.denial, e.message, e.details)

        try:
            token_id = parse_token_id(token_id_text)
        except ValidationError as e:
            return self._reject(action, IssuanceErrorCode.INVALID_TOKEN_ID, e.message)

        label = f"revoke({token_id})"
        self._tx_log.record(label, TxStatus.PENDING)

        handle = await self._queue.submit(
            lambda: self._submit(label, action, [token_id])
        )
        return ActionResult(action=label, submitted=True, handle=handle)

    async def drain(self) -> None:
        """Wait until every queued submission has finished."""
        await self._queue.close()

    async def _require_ready(self) -> AuthorizationContext:
        context = await self.authorization_context()
        denial = context.denial()
        if denial is not None:
            raise AuthorizationError(
                denial=denial,
                message=DENIAL_NOTES[denial],
                connected_identity=context.connected_identity,
                current_network=context.current_network,
                required_network=context.required_network,
                contract_owner=context.contract_owner,
            )
        return context

    def _reject(
        self,
        action: str,
        code: IssuanceErrorCode,
        note: str,
        details: Optional[dict] = None,
    ) -> ActionResult:
        self._tx_log.record(action, TxStatus.ERROR, note=note)
        self._log_warn(action, f"Rejected: {code.value}", {"reason": note, **(details or {})})
        return ActionResult(action=action, submitted=False, rejection=code)

    def _chunk_task(
        self,
        index: int,
        total: int,
        part: Chunk,
        cancellation: Optional[BatchCancellation],
    ):
        async def run() -> Optional[SubmissionHandle]:
            if cancellation is not None and cancellation.cancelled:
                return None
            label = f"mintBatch chunk {index}/{total} ({len(part)})"
            self._tx_log.record(label, TxStatus.PENDING)
            handle = await self._submit(label, ContractFunction.MINT_BATCH.value, [list(part)])
            self._session_issued += len(part)
            return handle

        return run

    async def _submit(self, label: str, function_name: str, args: list) -> SubmissionHandle:
        try:
            handle = await self._writer.submit(function_name, args)
        except Exception as e:
            # A writer that raises instead of returning a handle never
            # publishes a settlement, so record the failure here.
            self._tx_log.record("tx-failed", TxStatus.ERROR, note=str(e))
            if self._logger:
                self._logger.error("submit", f"{label} raised", error=e)
            return SubmissionHandle(
                handle_id="",
                function_name=function_name,
                accepted=False,
                error=str(e),
            )

        if handle.accepted:
            self._log_info("submit", f"{label} submitted", {"tx_hash": handle.tx_hash})
            self._start_watchdog(handle)
        else:
            self._log_warn("submit", f"{label} rejected by writer", {"reason": handle.error})
        return handle

    def _on_settlement(self, settlement: Settlement) -> None:
        self._stop_watchdog(settlement)
        if settlement.success:
            self._tx_log.record("tx-confirmed", TxStatus.SUCCESS, tx_hash=settlement.tx_hash)
            self._log_info("settlement", "Transaction confirmed", {"tx_hash": settlement.tx_hash})
        else:
            self._tx_log.record(
                "tx-failed",
                TxStatus.ERROR,
                tx_hash=settlement.tx_hash,
                note=settlement.reason,
            )
            self._log_warn(
                "settlement",
                "Transaction failed",
                {
                    "tx_hash": settlement.tx_hash,
                    "reason": settlement.reason,
                    "code": settlement.error_code.value if settlement.error_code else None,
                },
            )

    def _start_watchdog(self, handle: SubmissionHandle) -> None:
        if self._timeout is None:
            return
        if handle.handle_id in self._early_settled:
            del self._early_settled[handle.handle_id]
            return
        loop = asyncio.get_running_loop()
        self._watchdogs[handle.handle_id] = loop.call_later(
            self._timeout, self._on_timeout, handle
        )

    def _stop_watchdog(self, settlement: Settlement) -> None:
        if self._timeout is None:
            return
        timer = self._watchdogs.pop(settlement.handle_id, None)
        if timer is not None:
            timer.cancel()
        elif settlement.handle_id in self._timed_out:
            del self._timed_out[settlement.handle_id]
        elif settlement.error_code != IssuanceErrorCode.SUBMISSION_FAILED:
            # Settled before the submitter got its handle back
            _remember(self._early_settled, settlement.handle_id)

    def _on_timeout(self, handle: SubmissionHandle) -> None:
        self._watchdogs.pop(handle.handle_id, None)
        _remember(self._timed_out, handle.handle_id)
        self._tx_log.record(
            "tx-timeout",
            TxStatus.ERROR,
            tx_hash=handle.tx_hash,
            note=f"No settlement after {self._timeout:g}s",
        )
        self._log_warn("settlement", "Settlement timed out", {"tx_hash": handle.tx_hash})

    def _cancel_watchdogs(self) -> None:
        for timer in self._watchdogs.values():
            timer.cancel()
        self._watchdogs.clear()

    def _log_info(self, component: str, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.info(f"IssuanceOrchestrator.{component}", message, data)

    def _log_warn(self, component: str, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.warn(f"IssuanceOrchestrator.{component}", message, data)
