# surety/dapp.py
"""
Owner-side contract calls behind the HTTP API: operating status, flight
status requests, insurance purchase and payout withdrawal.
"""

from web3 import Web3

from surety.chain import ether_to_wei


class FlightSuretyDapp:
    def __init__(self, chain, owner: str):
        self.chain = chain
        self.owner = owner

    async def is_operational(self) -> bool:
        return bool(await self.chain.call("isOperational", sender=self.owner))

    async def fetch_flight_status(self, airline: str, flight: str, timestamp: int) -> dict:
        """Ask the contract to emit an OracleRequest for this flight."""
        await self.chain.send("fetchFlightStatus", airline, flight, timestamp, sender=self.owner)
        return {"airline": airline, "flight": flight, "timestamp": timestamp}

    async def buy_insurance(self, airline: str, flight: str, timestamp: int, amount_ether) -> dict:
        value = ether_to_wei(amount_ether)
        await self.chain.send(
            "registerFlight", airline, flight, timestamp, sender=self.owner, value=value
        )
        return {
            "airline": airline,
            "flight": flight,
            "timestamp": timestamp,
            "amount": str(amount_ether),
            "value_wei": value,
        }

    async def withdraw(self) -> dict:
        receipt = await self.chain.send("creditInsurees", sender=self.owner)
        tx_hash = receipt.get("transactionHash", "")
        if not isinstance(tx_hash, str):
            tx_hash = Web3.to_hex(tx_hash)
        return {"transaction": tx_hash}
