# surety/coordinator.py
"""
Oracle Coordinator

Owns the registry, dispatcher and listener for the lifetime of the process.

Startup runs strictly in order:
  1. enumerate node accounts
  2. owner = account 0, oracle pool = accounts[offset : offset + count]
  3. read REGISTRATION_FEE()
  4. per pool account: registerOracle() paying the fee, read back
     getMyIndexes(), add to the registry (one account at a time)
  5. seal the registry, start listening for OracleRequest

Any failure before step 5 raises StartupError and nothing is subscribed:
a partially registered pool never serves requests.
"""

import logging
import random
from collections import deque
from typing import Optional

from surety.config import Settings
from surety.dapp import FlightSuretyDapp
from surety.dispatcher import ResponseDispatcher
from surety.errors import StartupError
from surety.listener import StatusRequestListener
from surety.registry import OracleRegistry
from surety.status import status_label

log = logging.getLogger("surety.coordinator")

FLIGHT_STATUS_EVENT = "FlightStatusInfo"


class Coordinator:
    def __init__(self, chain, settings: Settings, rng: Optional[random.Random] = None):
        self.chain = chain
        self.settings = settings
        self.registry = OracleRegistry()
        self.dispatcher = ResponseDispatcher(chain, settings.submit_timeout, rng)
        self.listener = StatusRequestListener(
            chain,
            self.registry,
            self.dispatcher,
            from_block=settings.from_block,
            duplicate_policy=settings.duplicate_policy,
        )
        self.flight_info = deque(maxlen=settings.flight_info_history)
        self.owner: Optional[str] = None
        self.fee: Optional[int] = None
        self.dapp: Optional[FlightSuretyDapp] = None
        self.started = False
        self._info_subscription = None

    async def start(self):
        if self.started:
            raise RuntimeError("Coordinator already started")
        try:
            await self.register_oracles()
        except StartupError:
            raise
        except Exception as e:
            raise StartupError(
                f"Oracle registration aborted after {len(self.registry)} of "
                f"{self.settings.oracle_count} oracles: {e}"
            ) from e

        self.registry.seal()
        self.dapp = FlightSuretyDapp(self.chain, self.owner)
        self.listener.start()
        self._info_subscription = self.chain.subscribe(
            FLIGHT_STATUS_EVENT, self.on_flight_info, self.on_flight_info_error,
            from_block=self.settings.from_block,
        )
        self.started = True
        log.info(f"Coordinator ready: {len(self.registry)} oracles registered")

    async def register_oracles(self):
        accounts = await self.chain.get_accounts()
        offset, count = self.settings.oracle_offset, self.settings.oracle_count
        if len(accounts) < offset + count:
            raise StartupError(
                f"Need {offset + count} accounts for owner + oracle pool, node has {len(accounts)}"
            )
        self.owner = accounts[0]
        pool = accounts[offset:offset + count]

        log.info(f"Registration of {len(pool)} oracles (accounts {offset}..{offset + count - 1})")
        self.fee = await self.chain.call("REGISTRATION_FEE")
        log.info(f"Registration fee: {self.fee} wei")

        for address in pool:
            await self.chain.send("registerOracle", sender=address, value=self.fee)
            indexes = await self.chain.call("getMyIndexes", sender=address)
            oracle = self.registry.register(address, indexes)
            log.info(f"Oracle Registered: {address} -> {list(oracle.indexes)}")

    async def stop(self):
        if self._info_subscription is not None:
            await self._info_subscription.cancel()
        await self.listener.stop()
        self.started = False
        log.info("Coordinator stopped")

    async def on_flight_info(self, event):
        args = event.args
        record = {
            "airline": args.get("airline"),
            "flight": args.get("flight"),
            "timestamp": args.get("timestamp"),
            "status": int(args.get("status", 0)),
            "label": status_label(args.get("status", 0)),
            "block": event.block_number,
        }
        self.flight_info.append(record)
        log.info(
            f"Status of {record['flight']} flight of {record['airline']} airline "
            f"at {record['timestamp']} is {record['label']}"
        )

    def on_flight_info_error(self, error: Exception):
        log.error(f"{FLIGHT_STATUS_EVENT} subscription error: {error}")
