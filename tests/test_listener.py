from __future__ import annotations

import asyncio

from conftest import SPEC_TRIPLES, FakeChain, make_accounts, oracle_request
from surety.chain import ChainEvent
from surety.dispatcher import ResponseDispatcher
from surety.listener import SeenLogs, StatusRequest, StatusRequestListener
from surety.registry import OracleRegistry


def _setup(policy="at-least-once"):
    accounts = make_accounts(5)
    chain = FakeChain(accounts)
    registry = OracleRegistry()
    for address, triple in zip(accounts, SPEC_TRIPLES):
        registry.register(address, triple)
    registry.seal()
    listener = StatusRequestListener(
        chain, registry, ResponseDispatcher(chain), from_block="earliest", duplicate_policy=policy
    )
    return chain, accounts, listener


def test_request_index_one_reaches_oracles_one_three_five():
    async def runner():
        chain, accounts, listener = _setup()
        listener.start()
        await chain.emit("OracleRequest", oracle_request(1))
        await listener.drain()
        return chain, accounts

    chain, accounts = asyncio.run(runner())

    senders = [s["sender"] for s in chain.submissions()]
    assert senders == [accounts[0], accounts[2], accounts[4]]
    assert all(s["args"][:4] == (1, "0xairline", "ND1309", 1700000000) for s in chain.submissions())


def test_subscribes_to_oracle_request_from_configured_block():
    chain, _, listener = _setup()

    async def runner():
        listener.start()

    asyncio.run(runner())

    sub = chain.subscriptions["OracleRequest"]
    assert sub.from_block == "earliest"
    assert listener.listening


def test_unmatched_index_dispatches_nothing():
    async def runner():
        chain, _, listener = _setup()
        listener.start()
        await chain.emit("OracleRequest", oracle_request(9))
        await listener.drain()
        return chain, listener

    chain, listener = asyncio.run(runner())

    assert chain.submissions() == []
    assert listener.handled == 1


def test_eligibility_uses_registry_at_handling_time():
    async def runner():
        chain = FakeChain([])
        registry = OracleRegistry()
        listener = StatusRequestListener(chain, registry, ResponseDispatcher(chain))
        listener.start()
        registry.register("0xlate", (3, 4, 5))
        await chain.emit("OracleRequest", oracle_request(3))
        await listener.drain()
        return chain

    chain = asyncio.run(runner())
    assert [s["sender"] for s in chain.submissions()] == ["0xlate"]


def test_at_least_once_dispatches_every_delivery():
    async def runner():
        chain, _, listener = _setup("at-least-once")
        listener.start()
        for _ in range(2):
            await chain.emit("OracleRequest", oracle_request(2), tx_hash="0xdup", log_index=3)
        await listener.drain()
        return chain, listener

    chain, listener = asyncio.run(runner())
    assert len(chain.submissions()) == 4
    assert listener.duplicates == 0


def test_dedupe_drops_repeated_log():
    async def runner():
        chain, _, listener = _setup("dedupe")
        listener.start()
        await chain.emit("OracleRequest", oracle_request(2), tx_hash="0xdup", log_index=3)
        await chain.emit("OracleRequest", oracle_request(2), tx_hash="0xdup", log_index=3)
        await chain.emit("OracleRequest", oracle_request(2), tx_hash="0xdup", log_index=4)
        await listener.drain()
        return chain, listener

    chain, listener = asyncio.run(runner())
    assert len(chain.submissions()) == 4
    assert listener.duplicates == 1
    assert listener.handled == 2


def test_concurrent_requests_are_handled_independently():
    async def runner():
        chain, _, listener = _setup()
        chain.send_delay = 0.02
        listener.start()
        await chain.emit("OracleRequest", oracle_request(1), log_index=0)
        await chain.emit("OracleRequest", oracle_request(2), log_index=1)
        await listener.drain()
        return chain

    chain = asyncio.run(runner())
    assert len(chain.submissions()) == 5
    assert chain.max_in_flight == 5


def test_errors_are_reported_and_subscription_stays_up():
    async def runner():
        chain, _, listener = _setup()
        listener.start()
        chain.subscriptions["OracleRequest"].on_error(ConnectionError("socket closed"))
        await chain.emit("OracleRequest", oracle_request(1))
        await listener.drain()
        return chain, listener

    chain, listener = asyncio.run(runner())
    assert listener.errors == 1
    assert listener.listening
    assert len(chain.submissions()) == 3


def test_stop_cancels_subscription():
    async def runner():
        chain, _, listener = _setup()
        listener.start()
        await listener.stop()
        return listener

    listener = asyncio.run(runner())
    assert not listener.listening


def test_status_request_from_event():
    event = ChainEvent("OracleRequest", {"index": "7", "airline": "0xa", "flight": "F1", "timestamp": 5})
    request = StatusRequest.from_event(event)
    assert request == StatusRequest(7, "0xa", "F1", 5)


def test_seen_logs_evicts_oldest():
    seen = SeenLogs(capacity=2)
    assert seen.check_and_add(("0x1", 0))
    assert seen.check_and_add(("0x2", 0))
    assert not seen.check_and_add(("0x1", 0))
    assert seen.check_and_add(("0x3", 0))
    assert len(seen) == 2
    assert seen.check_and_add(("0x2", 0))
