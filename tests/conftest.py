"""Shared fixtures: an in-memory chain standing in for a web3 node + contract."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from surety.chain import ChainEvent  # noqa: E402
from surety.config import Settings  # noqa: E402

FEE = 10**18

SPEC_TRIPLES = [(1, 2, 3), (2, 4, 5), (0, 1, 6), (3, 5, 7), (1, 4, 8)]


def make_accounts(n: int) -> list[str]:
    return [f"0x{i:040x}" for i in range(n)]


class FakeSubscription:
    def __init__(self, event_name, on_event, on_error, from_block):
        self.event_name = event_name
        self.on_event = on_event
        self.on_error = on_error
        self.from_block = from_block
        self.cancelled = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    async def cancel(self) -> None:
        self.cancelled = True


class FakeChain:
    """Records every call and transaction; failures are injected per method/sender."""

    def __init__(self, accounts, indexes=None, fee=FEE):
        self.accounts = list(accounts)
        self.indexes = dict(indexes or {})
        self.fee = fee
        self.log: list[tuple] = []
        self.sent: list[dict] = []
        self.failures: dict = {}
        self.send_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.subscriptions: dict[str, FakeSubscription] = {}
        self.closed = False

    def fail(self, method, exc, sender=None) -> None:
        self.failures[(method, sender)] = exc

    def _failure(self, method, sender):
        return self.failures.get((method, sender)) or self.failures.get((method, None))

    async def get_accounts(self):
        self.log.append(("get_accounts",))
        exc = self._failure("get_accounts", None)
        if exc:
            raise exc
        return list(self.accounts)

    async def call(self, method, *args, sender=None):
        self.log.append(("call", method, sender))
        exc = self._failure(method, sender)
        if exc:
            raise exc
        if method == "REGISTRATION_FEE":
            return self.fee
        if method == "getMyIndexes":
            return list(self.indexes[sender])
        if method == "isOperational":
            return True
        raise AssertionError(f"unexpected call {method}")

    async def send(self, method, *args, sender, value=None):
        self.log.append(("send", method, sender))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.send_delay:
                await asyncio.sleep(self.send_delay)
            exc = self._failure(method, sender)
            if exc:
                raise exc
            self.sent.append({"method": method, "args": args, "sender": sender, "value": value})
            if method == "registerOracle" and sender not in self.indexes:
                n = len(self.indexes)
                self.indexes[sender] = (n % 10, (n + 3) % 10, (n + 7) % 10)
            return {"status": 1, "transactionHash": f"0x{len(self.sent):064x}"}
        finally:
            self.in_flight -= 1

    def subscribe(self, event_name, on_event, on_error, from_block="latest"):
        sub = FakeSubscription(event_name, on_event, on_error, from_block)
        self.subscriptions[event_name] = sub
        return sub

    async def emit(self, event_name, args, tx_hash="0x01", log_index=0, block=1):
        event = ChainEvent(event_name, dict(args), block, tx_hash, log_index)
        await self.subscriptions[event_name].on_event(event)

    async def close(self):
        self.closed = True

    def submissions(self, method="submitOracleResponse"):
        return [s for s in self.sent if s["method"] == method]


def oracle_request(index, airline="0xairline", flight="ND1309", timestamp=1700000000):
    return {"index": index, "airline": airline, "flight": flight, "timestamp": timestamp}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        oracle_count=5,
        oracle_offset=20,
        app_address="0x" + "ab" * 20,
        submit_timeout=1.0,
    )


@pytest.fixture
def spec_chain() -> FakeChain:
    """25 accounts; accounts 20..24 get the five documented index triples."""
    accounts = make_accounts(25)
    return FakeChain(accounts, indexes=dict(zip(accounts[20:], SPEC_TRIPLES)))
