# surety/dispatcher.py
"""
Response Dispatcher

For one status request, every eligible oracle submits its own
submitOracleResponse transaction, signed from the oracle's address, with a
status code drawn uniformly from the six known codes.

Submissions run concurrently and independently. A rejection (oracle already
answered, consensus closed), a transport failure, or a missed deadline is
logged and dropped; there is no retry, the other oracles carry the request.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from surety.errors import ChainTransportError, TransactionRejected
from surety.registry import OracleIdentity
from surety.status import status_label, synthesize_status

log = logging.getLogger("surety.dispatcher")

SUBMIT_METHOD = "submitOracleResponse"
EXPECTED_FAILURES = (TransactionRejected, ChainTransportError, asyncio.TimeoutError)


@dataclass
class DispatchReport:
    request: object
    submitted: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.submitted) + len(self.failed)


class ResponseDispatcher:
    def __init__(self, chain, submit_timeout: float = 30.0, rng: Optional[random.Random] = None):
        self.chain = chain
        self.submit_timeout = submit_timeout
        self.rng = rng or random.Random()

    async def dispatch(self, request, oracles: Sequence[OracleIdentity]) -> DispatchReport:
        report = DispatchReport(request)
        if not oracles:
            return report

        outcomes = await asyncio.gather(
            *(self.submit(request, oracle) for oracle in oracles),
            return_exceptions=True,
        )
        for oracle, outcome in zip(oracles, outcomes):
            if isinstance(outcome, BaseException):
                report.failed[oracle.address] = outcome
                if not isinstance(outcome, EXPECTED_FAILURES):
                    log.error(f"Response from {oracle.address} failed unexpectedly: {outcome!r}")
            else:
                report.submitted.append(oracle.address)

        if report.failed:
            log.info(
                f"Request index={request.index} flight={request.flight}: "
                f"{len(report.submitted)}/{report.attempted} responses accepted"
            )
        return report

    async def submit(self, request, oracle: OracleIdentity) -> int:
        """Submit one oracle's response. Raises on failure; dispatch() contains it."""
        status = synthesize_status(self.rng)
        try:
            await asyncio.wait_for(
                self.chain.send(
                    SUBMIT_METHOD,
                    request.index, request.airline, request.flight, request.timestamp, status,
                    sender=oracle.address,
                ),
                timeout=self.submit_timeout,
            )
        except TransactionRejected as e:
            log.warning(f"Response from {oracle.address} rejected: {e.reason or 'reverted'}")
            raise
        except asyncio.TimeoutError:
            log.warning(f"Response from {oracle.address} timed out after {self.submit_timeout}s")
            raise
        except ChainTransportError as e:
            log.warning(f"Response from {oracle.address} not delivered: {e}")
            raise
        log.info(
            f"Oracle {oracle.address} answered index={request.index} "
            f"flight={request.flight}: {status} ({status_label(status)})"
        )
        return status
