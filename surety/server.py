# surety/server.py
"""
Flight Surety Oracle Server
FastAPI application wrapping the oracle coordinator.

On startup the coordinator registers the oracle pool and starts answering
OracleRequest events; if registration fails the server does not start.

Endpoints:
  GET  /api                       — Dapp API banner
  GET  /health                    — Service status
  GET  /oracles                   — Registered oracles and their indexes
  GET  /oracles/eligible/{index}  — Oracles that answer a request index
  GET  /status-codes              — Flight status codes and labels
  GET  /api/operational           — Contract operating status
  POST /api/flights/status        — Trigger oracles for a flight
  GET  /api/flights/info          — Recent FlightStatusInfo events
  POST /api/insurance             — Buy insurance for a flight
  POST /api/insurance/withdraw    — Withdraw credited payouts

Usage:
  python3 -m surety.server          # port from SURETY_PORT (default 3000)
  python3 -m surety.server 3001
"""

import logging
import sys
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from surety import __version__
from surety.chain import ChainClient
from surety.config import Settings
from surety.coordinator import Coordinator
from surety.errors import ChainTransportError, TransactionRejected
from surety.status import LABELS

log = logging.getLogger("surety.server")


class FlightRequest(BaseModel):
    airline: str
    flight: str
    timestamp: int


class InsuranceRequest(FlightRequest):
    amount: Decimal = Field(gt=0, description="Premium in ether")


def create_app(settings: Optional[Settings] = None, chain_factory=ChainClient.connect) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        chain = chain_factory(settings)
        coordinator = Coordinator(chain, settings)
        app.state.coordinator = coordinator
        try:
            await coordinator.start()
            yield
        finally:
            if coordinator.started:
                await coordinator.stop()
            close = getattr(chain, "close", None)
            if close is not None:
                await close()

    app = FastAPI(
        title="Flight Surety Oracles",
        description="Simulated oracle pool answering flight status requests",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/api")
    def api():
        return {"message": "An API for use with your Dapp!"}

    @app.get("/health")
    def health(request: Request):
        coordinator = request.app.state.coordinator
        return {
            "status": "ok" if coordinator.started else "starting",
            "service": "flight-surety-oracles",
            "version": __version__,
            "owner": coordinator.owner,
            "oracles": len(coordinator.registry),
            "listening": coordinator.listener.listening,
            "requests_handled": coordinator.listener.handled,
            "duplicate_policy": coordinator.listener.duplicate_policy,
        }

    @app.get("/oracles")
    def oracles(request: Request):
        registry = request.app.state.coordinator.registry
        return {"count": len(registry), "oracles": [o.to_dict() for o in registry]}

    @app.get("/oracles/eligible/{index}")
    def eligible(index: int, request: Request):
        matches = request.app.state.coordinator.registry.find_eligible(index)
        return {"index": index, "count": len(matches), "oracles": [o.to_dict() for o in matches]}

    @app.get("/status-codes")
    def status_codes():
        return {str(int(code)): label for code, label in LABELS.items()}

    @app.get("/api/operational")
    async def operational(request: Request):
        dapp = _dapp(request)
        return {"operational": await _contract(dapp.is_operational())}

    @app.post("/api/flights/status")
    async def fetch_flight_status(body: FlightRequest, request: Request):
        dapp = _dapp(request)
        return await _contract(dapp.fetch_flight_status(body.airline, body.flight, body.timestamp))

    @app.get("/api/flights/info")
    def flight_info(request: Request):
        events = list(request.app.state.coordinator.flight_info)
        return {"count": len(events), "events": events}

    @app.post("/api/insurance")
    async def buy_insurance(body: InsuranceRequest, request: Request):
        dapp = _dapp(request)
        return await _contract(
            dapp.buy_insurance(body.airline, body.flight, body.timestamp, body.amount)
        )

    @app.post("/api/insurance/withdraw")
    async def withdraw(request: Request):
        dapp = _dapp(request)
        return await _contract(dapp.withdraw())

    return app


def _dapp(request: Request):
    dapp = request.app.state.coordinator.dapp
    if dapp is None:
        raise HTTPException(status_code=503, detail="Oracle pool not registered yet")
    return dapp


async def _contract(awaitable):
    try:
        return await awaitable
    except TransactionRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ChainTransportError as e:
        raise HTTPException(status_code=503, detail=str(e))


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    settings = Settings.from_env()
    port = int(sys.argv[1]) if len(sys.argv) > 1 else settings.port
    log.info(f"Flight Surety oracle server {__version__} starting on :{port}")
    log.info(f"  Node:     {settings.rpc_url}")
    log.info(f"  Contract: {settings.app_address or '(unset)'}")
    log.info(f"  Oracles:  {settings.oracle_count} from account {settings.oracle_offset}")
    uvicorn.run(create_app(settings), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
