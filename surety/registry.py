# surety/registry.py
"""
Oracle Registry

Maps each simulated oracle account to the index triple the contract
assigned it at registration. Populated once at startup by the coordinator,
then sealed; after that it is only read, so no locking is needed.
"""

from dataclasses import dataclass
from typing import Iterator, Tuple

from surety.errors import DuplicateOracleError, RegistryError

INDEXES_PER_ORACLE = 3


@dataclass(frozen=True)
class OracleIdentity:
    address: str
    indexes: Tuple[int, int, int]

    def __post_init__(self):
        indexes = tuple(int(i) for i in self.indexes)
        if len(indexes) != INDEXES_PER_ORACLE:
            raise ValueError(
                f"Oracle {self.address} needs {INDEXES_PER_ORACLE} indexes, got {len(indexes)}"
            )
        object.__setattr__(self, "indexes", indexes)

    def responds_to(self, request_index: int) -> bool:
        return int(request_index) in self.indexes

    def to_dict(self) -> dict:
        return {"address": self.address, "indexes": list(self.indexes)}


class OracleRegistry:
    def __init__(self):
        self._oracles: list[OracleIdentity] = []
        self._addresses: set[str] = set()
        self._sealed = False

    def register(self, address: str, indexes) -> OracleIdentity:
        """Append one oracle. Each address may be registered only once."""
        if self._sealed:
            raise RegistryError(f"Registry is sealed, cannot register {address}")
        key = address.lower()
        if key in self._addresses:
            raise DuplicateOracleError(address)
        oracle = OracleIdentity(address, tuple(indexes))
        self._oracles.append(oracle)
        self._addresses.add(key)
        return oracle

    def find_eligible(self, request_index: int) -> Tuple[OracleIdentity, ...]:
        """Every oracle whose triple contains request_index, in registration order."""
        return tuple(o for o in self._oracles if o.responds_to(request_index))

    def seal(self):
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._oracles)

    def __iter__(self) -> Iterator[OracleIdentity]:
        return iter(tuple(self._oracles))

    def __contains__(self, address) -> bool:
        return isinstance(address, str) and address.lower() in self._addresses
