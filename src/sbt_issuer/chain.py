"""
Chain collaborators used by the issuance orchestrator.

The orchestrator never signs, builds or broadcasts transactions itself. It
talks to three collaborators:

- WalletSession: who is connected and on which network
- ContractReader: contract owner, a student's token id, token URIs
- ContractWriter: submit a named write and publish its settlement later

SimulatedChain implements all three in memory for dry runs and tests.
Web3Chain implements them against a JSON-RPC node using web3.py, with the
node (or wallet behind it) holding the sender's key.
"""

import asyncio
import itertools
from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

from eth_utils import keccak
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from .abi import SBT_ABI
from .enums import ContractFunction, IssuanceErrorCode
from .exceptions import SubmissionError
from .models import Settlement, SubmissionHandle

SettlementListener = Callable[[Settlement], None]


@runtime_checkable
class WalletSession(Protocol):
    """Identity and network of the connected wallet."""

    async def connected_identity(self) -> Optional[str]: ...

    async def current_network(self) -> Optional[int]: ...

    async def switch_network(self, chain_id: int) -> bool: ...


@runtime_checkable
class ContractReader(Protocol):
    """Read access to the credential contract. Values may be None until loaded."""

    async def owner(self) -> Optional[str]: ...

    async def token_id_of(self, address: str) -> Optional[int]: ...

    async def token_uri(self, token_id: int) -> Optional[str]: ...


@runtime_checkable
class ContractWriter(Protocol):
    """Write access to the credential contract."""

    async def submit(self, function_name: str, args: Sequence[Any]) -> SubmissionHandle: ...

    def subscribe(self, listener: SettlementListener) -> None: ...


class SettlementPublisher:
    """Fan-out of settlement events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[SettlementListener] = []

    def subscribe(self, listener: SettlementListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def publish(self, settlement: Settlement) -> None:
        for listener in list(self._listeners):
            listener(settlement)

    def publish_soon(self, settlement: Settlement, delay: float = 0.0) -> None:
        """Deliver on a later loop iteration, never inside the caller's frame."""
        loop = asyncio.get_running_loop()
        if delay > 0:
            loop.call_later(delay, self.publish, settlement)
        else:
            loop.call_soon(self.publish, settlement)


class SimulatedChain(SettlementPublisher):
    """
    In-memory wallet, reader and writer.

    Each accepted mint assigns the next token id; revoke removes it.
    Failures can be scripted with fail_next_submission() (the write never
    gets a transaction hash) and revert_next() (the transaction is mined
    but fails). With auto_settle disabled, accepted writes stay unsettled
    until settle() is called.
    """

    def __init__(
        self,
        required_chain_id: int,
        owner: Optional[str],
        connected: Optional[str] = None,
        network: Optional[int] = None,
        auto_settle: bool = True,
        settle_delay: float = 0.0,
        base_uri: str = "ipfs://credentials/",
    ) -> None:
        super().__init__()
        self._owner = owner
        self._connected = connected if connected is not None else owner
        self._network = network if network is not None else required_chain_id
        self._auto_settle = auto_settle
        self._settle_delay = settle_delay
        self._base_uri = base_uri
        self._counter = itertools.count(1)
        self._next_token_id = 1
        self._tokens: dict[str, int] = {}
        self._submission_failures: list[str] = []
        self._reverts: list[str] = []
        self._unsettled: dict[str, SubmissionHandle] = {}
        self._pending_reverts: dict[str, str] = {}
        self.submissions: list[tuple[str, tuple]] = []

    # Wallet session

    async def connected_identity(self) -> Optional[str]:
        return self._connected

    async def current_network(self) -> Optional[int]:
        return self._network

    async def switch_network(self, chain_id: int) -> bool:
        if self._connected is None:
            return False
        self._network = chain_id
        return True

    def connect(self, identity: Optional[str]) -> None:
        self._connected = identity

    def set_owner(self, owner: Optional[str]) -> None:
        self._owner = owner

    # Contract reads

    async def owner(self) -> Optional[str]:
        return self._owner

    async def token_id_of(self, address: str) -> Optional[int]:
        return self._tokens.get(address.lower(), 0)

    async def token_uri(self, token_id: int) -> Optional[str]:
        if token_id not in self._tokens.values():
            return None
        return f"{self._base_uri}{token_id}.json"

    # Contract writes

    def fail_next_submission(self, reason: str) -> None:
        self._submission_failures.append(reason)

    def revert_next(self, reason: str) -> None:
        self._reverts.append(reason)

    @property
    def unsettled(self) -> list[str]:
        return list(self._unsettled)

    async def submit(self, function_name: str, args: Sequence[Any]) -> SubmissionHandle:
        handle_id = f"sim-{next(self._counter)}"
        self.submissions.append((function_name, tuple(args)))
        await asyncio.sleep(0)

        try:
            self._check_submission(function_name)
        except SubmissionError as e:
            handle = SubmissionHandle(
                handle_id=handle_id,
                function_name=function_name,
                accepted=False,
                error=e.message,
            )
            self.publish_soon(Settlement(
                handle_id=handle_id,
                function_name=function_name,
                success=False,
                reason=e.message,
                error_code=IssuanceErrorCode.SUBMISSION_FAILED,
            ))
            return handle

        tx_hash = "0x" + keccak(text=f"{handle_id}:{function_name}:{list(args)}").hex()
        handle = SubmissionHandle(
            handle_id=handle_id,
            function_name=function_name,
            accepted=True,
            tx_hash=tx_hash,
        )

        revert_reason = self._reverts.pop(0) if self._reverts else None
        if revert_reason is None:
            self._apply(function_name, args)

        if self._auto_settle:
            self.publish_soon(self._settlement_for(handle, revert_reason), self._settle_delay)
        else:
            self._unsettled[handle_id] = handle
            if revert_reason is not None:
                self._pending_reverts[handle_id] = revert_reason
        return handle

    async def wait_for_settlements(self, timeout: Optional[float] = None) -> int:
        """
        Let scheduled settlements fire.

        Returns:
            Number of writes still held for manual settle()
        """
        await asyncio.sleep(self._settle_delay)
        await asyncio.sleep(0)
        return len(self._unsettled)

    def settle(self, handle_id: str, success: bool = True, reason: Optional[str] = None) -> None:
        """Publish the settlement of a held write immediately."""
        handle = self._unsettled.pop(handle_id)
        scripted = self._pending_reverts.pop(handle_id, None)
        if not success or scripted is not None:
            self.publish(self._settlement_for(handle, reason or scripted or "reverted"))
        else:
            self.publish(self._settlement_for(handle, None))

    def _check_submission(self, function_name: str) -> None:
        if function_name not in {f.value for f in ContractFunction}:
            raise SubmissionError(
                function_name=function_name,
                message=f"Unknown contract function: {function_name}",
            )
        if self._submission_failures:
            raise SubmissionError(
                function_name=function_name,
                message=self._submission_failures.pop(0),
            )

    def _settlement_for(self, handle: SubmissionHandle, revert_reason: Optional[str]) -> Settlement:
        if revert_reason is not None:
            return Settlement(
                handle_id=handle.handle_id,
                function_name=handle.function_name,
                success=False,
                tx_hash=handle.tx_hash,
                reason=revert_reason,
                error_code=IssuanceErrorCode.CONFIRMATION_FAILED,
            )
        return Settlement(
            handle_id=handle.handle_id,
            function_name=handle.function_name,
            success=True,
            tx_hash=handle.tx_hash,
        )

    def _apply(self, function_name: str, args: Sequence[Any]) -> None:
        if function_name == ContractFunction.MINT.value:
            self._mint_to(args[0])
        elif function_name == ContractFunction.MINT_BATCH.value:
            for address in args[0]:
                self._mint_to(address)
        elif function_name == ContractFunction.REVOKE.value:
            token_id = int(args[0])
            for address, held in list(self._tokens.items()):
                if held == token_id:
                    del self._tokens[address]

    def _mint_to(self, address: str) -> None:
        key = address.lower()
        if key in self._tokens:
            return
        self._tokens[key] = self._next_token_id
        self._next_token_id += 1


class Web3Chain(SettlementPublisher):
    """
    Collaborators backed by a JSON-RPC node via web3.py.

    Writes are sent with eth_sendTransaction from ``sender``, so signing
    stays with the node or the wallet behind it. After a transaction hash
    is returned, a background task waits for the receipt and publishes the
    settlement.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        sender: Optional[str] = None,
        receipt_timeout: float = 120.0,
        w3: Optional[AsyncWeb3] = None,
    ) -> None:
        super().__init__()
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=SBT_ABI,
        )
        self._sender = AsyncWeb3.to_checksum_address(sender) if sender else None
        self._receipt_timeout = receipt_timeout
        self._counter = itertools.count(1)
        self._receipt_tasks: set[asyncio.Task] = set()

    async def connected_identity(self) -> Optional[str]:
        if self._sender:
            return self._sender
        try:
            accounts = await self._w3.eth.accounts
        except (Web3Exception, ValueError, OSError):
            return None
        return accounts[0] if accounts else None

    async def current_network(self) -> Optional[int]:
        try:
            return await self._w3.eth.chain_id
        except (Web3Exception, ValueError, OSError):
            return None

    async def switch_network(self, chain_id: int) -> bool:
        try:
            await self._w3.provider.make_request(
                "wallet_switchEthereumChain", [{"chainId": hex(chain_id)}]
            )
        except (Web3Exception, ValueError, OSError):
            return False
        return await self.current_network() == chain_id

    async def owner(self) -> Optional[str]:
        try:
            return await self._contract.functions.owner().call()
        except (Web3Exception, ValueError, OSError):
            return None

    async def token_id_of(self, address: str) -> Optional[int]:
        try:
            return await self._contract.functions.tokenIdOf(
                AsyncWeb3.to_checksum_address(address)
            ).call()
        except (Web3Exception, ValueError, OSError):
            return None

    async def token_uri(self, token_id: int) -> Optional[str]:
        try:
            return await self._contract.functions.tokenURI(token_id).call()
        except (Web3Exception, ValueError, OSError):
            return None

    async def submit(self, function_name: str, args: Sequence[Any]) -> SubmissionHandle:
        handle_id = f"rpc-{next(self._counter)}"
        try:
            sender = await self.connected_identity()
            if sender is None:
                raise SubmissionError(
                    function_name=function_name,
                    message="No sender account available",
                    code=IssuanceErrorCode.NOT_CONNECTED,
                )
            call = getattr(self._contract.functions, function_name)(*self._wire_args(args))
            raw_hash = await call.transact({"from": sender})
        except SubmissionError as e:
            return self._rejected(handle_id, function_name, e.message)
        except (Web3Exception, ValueError, OSError, asyncio.TimeoutError) as e:
            return self._rejected(handle_id, function_name, str(e))

        handle = SubmissionHandle(
            handle_id=handle_id,
            function_name=function_name,
            accepted=True,
            tx_hash=AsyncWeb3.to_hex(raw_hash),
        )
        task = asyncio.create_task(self._await_receipt(handle, raw_hash))
        self._receipt_tasks.add(task)
        task.add_done_callback(self._receipt_tasks.discard)
        return handle

    async def wait_for_settlements(self, timeout: Optional[float] = None) -> int:
        """
        Wait for outstanding receipts.

        Returns:
            Number of receipts still outstanding when the wait ended
        """
        if self._receipt_tasks:
            await asyncio.wait(set(self._receipt_tasks), timeout=timeout)
        # Let publish_soon callbacks run
        await asyncio.sleep(0)
        return len(self._receipt_tasks)

    def _rejected(self, handle_id: str, function_name: str, reason: str) -> SubmissionHandle:
        self.publish_soon(Settlement(
            handle_id=handle_id,
            function_name=function_name,
            success=False,
            reason=reason,
            error_code=IssuanceErrorCode.SUBMISSION_FAILED,
        ))
        return SubmissionHandle(
            handle_id=handle_id,
            function_name=function_name,
            accepted=False,
            error=reason,
        )

    async def _await_receipt(self, handle: SubmissionHandle, raw_hash: Any) -> None:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                raw_hash, timeout=self._receipt_timeout
            )
        except (Web3Exception, ValueError, OSError, asyncio.TimeoutError) as e:
            self.publish(Settlement(
                handle_id=handle.handle_id,
                function_name=handle.function_name,
                success=False,
                tx_hash=handle.tx_hash,
                reason=str(e),
                error_code=IssuanceErrorCode.CONFIRMATION_FAILED,
            ))
            return

        if receipt.get("status") == 1:
            self.publish(Settlement(
                handle_id=handle.handle_id,
                function_name=handle.function_name,
                success=True,
                tx_hash=handle.tx_hash,
            ))
        else:
            self.publish(Settlement(
                handle_id=handle.handle_id,
                function_name=handle.function_name,
                success=False,
                tx_hash=handle.tx_hash,
                reason="Transaction reverted",
                error_code=IssuanceErrorCode.CONFIRMATION_FAILED,
            ))

    @staticmethod
    def _wire_args(args: Sequence[Any]) -> list[Any]:
        wired: list[Any] = []
        for arg in args:
            if isinstance(arg, str) and arg.startswith("0x"):
                wired.append(AsyncWeb3.to_checksum_address(arg))
            elif isinstance(arg, (list, tuple)):
                wired.append([AsyncWeb3.to_checksum_address(a) for a in arg])
            else:
                wired.append(arg)
        return wired
