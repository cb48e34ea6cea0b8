# surety/chain.py
"""
Chain Client Adapter

Thin async wrapper around a web3 contract handle:
  - get_accounts()                   node-managed accounts, in order
  - call(method, *args, sender)      read-only, no transaction
  - send(method, *args, sender, value)
                                     state-changing transaction, waits for receipt
  - subscribe(event, ...)            polling log subscription with a cancel handle

web3 exceptions are translated into the package taxonomy: a node that
answered with a revert/error is a TransactionRejected, a node that could
not be reached (or timed out) is a ChainTransportError.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

import aiohttp
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, Web3Exception, Web3RPCError

from surety.config import DEFAULT_GAS, Settings, load_abi
from surety.errors import ChainTransportError, ConfigError, TransactionRejected

log = logging.getLogger("surety.chain")

RECEIPT_TIMEOUT = 120

# the async HTTP provider re-raises aiohttp errors once its own retries run out
TRANSPORT_ERRORS = (Web3Exception, aiohttp.ClientError, OSError, asyncio.TimeoutError)

EventHandler = Callable[["ChainEvent"], Awaitable[None]]
ErrorHandler = Callable[[Exception], None]


@dataclass(frozen=True)
class ChainEvent:
    """One decoded contract log. `args` mirrors the event's declared fields."""
    name: str
    args: dict
    block_number: int = 0
    transaction_hash: str = ""
    log_index: int = 0

    @property
    def identity(self):
        return (self.transaction_hash, self.log_index)


@dataclass
class Subscription:
    event_name: str
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()

    async def cancel(self):
        if self.task is None:
            return
        if self.task.done():
            if not self.task.cancelled() and self.task.exception() is not None:
                log.error(f"{self.event_name} subscription had stopped: {self.task.exception()!r}")
        else:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        log.info(f"Unsubscribed from {self.event_name}")


class ChainClient:
    def __init__(self, w3, contract, gas=DEFAULT_GAS, poll_interval=1.0,
                 receipt_timeout=RECEIPT_TIMEOUT):
        self.w3 = w3
        self.contract = contract
        self.gas = gas
        self.poll_interval = poll_interval
        self.receipt_timeout = receipt_timeout

    @classmethod
    def connect(cls, settings: Settings) -> "ChainClient":
        if not settings.app_address:
            raise ConfigError("SURETY_APP_ADDRESS (or appAddress in config.json) is required")
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.app_address),
            abi=load_abi(settings.artifact_path),
        )
        log.info(f"Chain client: {settings.rpc_url} app={contract.address}")
        return cls(w3, contract, gas=settings.gas, poll_interval=settings.poll_interval)

    async def close(self):
        await self.w3.provider.disconnect()

    async def get_accounts(self) -> list:
        try:
            return list(await self.w3.eth.accounts)
        except TRANSPORT_ERRORS as e:
            raise ChainTransportError(f"eth_accounts failed: {e}") from e

    async def call(self, method: str, *args, sender: Optional[str] = None):
        params = {"from": sender} if sender else {}
        try:
            return await self._function(method, *args).call(params)
        except (ContractLogicError, Web3RPCError) as e:
            raise TransactionRejected(method, sender, str(e)) from e
        except TRANSPORT_ERRORS as e:
            raise ChainTransportError(f"{method}() call failed: {e}") from e

    async def send(self, method: str, *args, sender: str, value: Optional[int] = None):
        tx = {"from": sender, "gas": self.gas}
        if value:
            tx["value"] = int(value)
        try:
            tx_hash = await self._function(method, *args).transact(tx)
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except (ContractLogicError, Web3RPCError) as e:
            raise TransactionRejected(method, sender, str(e)) from e
        except TRANSPORT_ERRORS as e:
            raise ChainTransportError(f"{method}() from {sender} failed: {e}") from e
        if receipt["status"] != 1:
            raise TransactionRejected(method, sender, "receipt status 0")
        return receipt

    def subscribe(self, event_name: str, on_event: EventHandler, on_error: ErrorHandler,
                  from_block: Union[int, str] = "latest") -> Subscription:
        """Start polling `event_name` logs. Must be called from a running loop."""
        subscription = Subscription(event_name)
        subscription.task = asyncio.create_task(
            self._poll(event_name, from_block, on_event, on_error),
            name=f"subscribe-{event_name}",
        )
        log.info(f"Subscribed to {event_name} from block {from_block}")
        return subscription

    async def _poll(self, event_name, from_block, on_event, on_error):
        event = getattr(self.contract.events, event_name)()
        cursor = None
        while True:
            try:
                head = await self.w3.eth.block_number
                if cursor is None:
                    cursor = _start_block(from_block, head)
                entries = []
                if cursor <= head:
                    entries = await event.get_logs(from_block=cursor, to_block=head)
                    cursor = head + 1
            except TRANSPORT_ERRORS as e:
                # cursor stays put so the range is retried once the node is back
                on_error(ChainTransportError(f"{event_name} poll failed: {e}"))
                entries = []
            except Exception as e:
                on_error(ChainTransportError(f"{event_name} poll failed: {e!r}"))
                entries = []

            for entry in entries:
                try:
                    await on_event(_decode(event_name, entry))
                except Exception as e:
                    on_error(e)

            await asyncio.sleep(self.poll_interval)

    def _function(self, method, *args):
        return getattr(self.contract.functions, method)(*args)


def _start_block(from_block, head) -> int:
    if from_block == "latest":
        return head
    if from_block == "earliest":
        return 0
    return int(from_block)


def _decode(event_name, entry) -> ChainEvent:
    tx_hash = entry.get("transactionHash", "")
    if not isinstance(tx_hash, str):
        tx_hash = Web3.to_hex(tx_hash)
    return ChainEvent(
        name=event_name,
        args=dict(entry["args"]),
        block_number=entry.get("blockNumber", 0),
        transaction_hash=tx_hash,
        log_index=entry.get("logIndex", 0),
    )


def ether_to_wei(amount) -> int:
    return Web3.to_wei(amount, "ether")
