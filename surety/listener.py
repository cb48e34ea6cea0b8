# surety/listener.py
"""
Status-Request Listener

Subscribes to the contract's OracleRequest events and hands each request,
together with the oracles eligible to answer it, to the dispatcher.

Each delivery is handled in its own task so a slow dispatch never holds up
the next event. Eligibility is read from the registry when the event is
handled, not when the listener starts.

Duplicate deliveries (same transaction hash + log index, e.g. a replayed
block range) are governed by an explicit policy:
  at-least-once   every delivery is dispatched
  dedupe          repeats of an already-seen log are dropped
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Union

from surety.chain import ChainEvent, Subscription
from surety.registry import OracleRegistry

log = logging.getLogger("surety.listener")

ORACLE_REQUEST_EVENT = "OracleRequest"
SEEN_CAPACITY = 10_000


@dataclass(frozen=True)
class StatusRequest:
    index: int
    airline: str
    flight: str
    timestamp: int

    @classmethod
    def from_event(cls, event: ChainEvent) -> "StatusRequest":
        args = event.args
        return cls(
            index=int(args["index"]),
            airline=args["airline"],
            flight=args["flight"],
            timestamp=args["timestamp"],
        )


class SeenLogs:
    """Bounded set of delivered log identities, oldest evicted first."""

    def __init__(self, capacity=SEEN_CAPACITY):
        self.capacity = capacity
        self._seen = OrderedDict()

    def check_and_add(self, identity) -> bool:
        """True if identity was new."""
        if identity in self._seen:
            self._seen.move_to_end(identity)
            return False
        self._seen[identity] = None
        if len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return True

    def __len__(self):
        return len(self._seen)


class StatusRequestListener:
    def __init__(self, chain, registry: OracleRegistry, dispatcher,
                 from_block: Union[int, str] = "latest", duplicate_policy="at-least-once"):
        self.chain = chain
        self.registry = registry
        self.dispatcher = dispatcher
        self.from_block = from_block
        self.duplicate_policy = duplicate_policy
        self.seen = SeenLogs() if duplicate_policy == "dedupe" else None
        self.subscription: Optional[Subscription] = None
        self.handled = 0
        self.duplicates = 0
        self.errors = 0
        self._inflight: set = set()

    @property
    def listening(self) -> bool:
        return self.subscription is not None and self.subscription.active

    def start(self):
        if self.subscription is not None:
            raise RuntimeError("Listener already started")
        self.subscription = self.chain.subscribe(
            ORACLE_REQUEST_EVENT, self.on_event, self.on_error, from_block=self.from_block
        )
        log.info(f"Listening for {ORACLE_REQUEST_EVENT} (policy: {self.duplicate_policy})")

    async def stop(self):
        if self.subscription is not None:
            await self.subscription.cancel()
        await self.drain()

    async def drain(self):
        """Wait for every dispatch already scheduled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def on_event(self, event: ChainEvent):
        if self.seen is not None and not self.seen.check_and_add(event.identity):
            self.duplicates += 1
            log.info(f"Duplicate delivery dropped: tx={event.transaction_hash} log={event.log_index}")
            return
        request = StatusRequest.from_event(event)
        task = asyncio.create_task(self.handle(request))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def handle(self, request: StatusRequest):
        self.handled += 1
        eligible = self.registry.find_eligible(request.index)
        log.info(
            f"OracleRequest index={request.index} flight={request.flight} "
            f"ts={request.timestamp}: {len(eligible)} eligible oracles"
        )
        return await self.dispatcher.dispatch(request, eligible)

    def on_error(self, error: Exception):
        self.errors += 1
        log.error(f"{ORACLE_REQUEST_EVENT} subscription error: {error}")
