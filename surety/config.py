# surety/config.py
"""
Process configuration.

Read from the environment, optionally seeded from a Truffle-style
config.json keyed by network name:

  {"localhost": {"url": "...", "appAddress": "0x...", "dataAddress": "0x..."}}

Environment variables win over config.json values.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from surety.errors import ConfigError

DEFAULT_RPC_URL = "http://127.0.0.1:7545"
DEFAULT_ARTIFACT_PATH = "build/contracts/FlightSuretyApp.json"
DEFAULT_ORACLE_COUNT = 20
DEFAULT_ORACLE_OFFSET = 20
DEFAULT_GAS = 2_000_000
DEFAULT_PORT = 3000

DUPLICATE_POLICIES = ("at-least-once", "dedupe")
NAMED_BLOCKS = ("latest", "earliest")


@dataclass
class Settings:
    rpc_url: str = DEFAULT_RPC_URL
    app_address: str = ""
    data_address: str = ""
    artifact_path: str = DEFAULT_ARTIFACT_PATH
    oracle_count: int = DEFAULT_ORACLE_COUNT
    oracle_offset: int = DEFAULT_ORACLE_OFFSET
    from_block: Union[int, str] = "latest"
    poll_interval: float = 1.0
    submit_timeout: float = 30.0
    duplicate_policy: str = "at-least-once"
    gas: int = DEFAULT_GAS
    port: int = DEFAULT_PORT
    flight_info_history: int = 100

    def __post_init__(self):
        if self.oracle_count < 0 or self.oracle_offset < 1:
            raise ConfigError(
                f"Oracle pool must start after the owner account: "
                f"offset={self.oracle_offset} count={self.oracle_count}"
            )
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ConfigError(
                f"Unknown duplicate policy {self.duplicate_policy!r}, "
                f"expected one of {', '.join(DUPLICATE_POLICIES)}"
            )
        if self.poll_interval <= 0 or self.submit_timeout <= 0:
            raise ConfigError("poll_interval and submit_timeout must be positive")
        self.from_block = parse_block(self.from_block)

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        network = load_network_config(
            env.get("SURETY_CONFIG_PATH"), env.get("SURETY_NETWORK", "localhost")
        )
        return cls(
            rpc_url=env.get("SURETY_RPC_URL", network.get("url", DEFAULT_RPC_URL)),
            app_address=env.get("SURETY_APP_ADDRESS", network.get("appAddress", "")),
            data_address=env.get("SURETY_DATA_ADDRESS", network.get("dataAddress", "")),
            artifact_path=env.get("SURETY_ARTIFACT_PATH", DEFAULT_ARTIFACT_PATH),
            oracle_count=_int(env, "ORACLE_COUNT", DEFAULT_ORACLE_COUNT),
            oracle_offset=_int(env, "ORACLE_ACCOUNT_OFFSET", DEFAULT_ORACLE_OFFSET),
            from_block=env.get("ORACLE_FROM_BLOCK", "latest"),
            poll_interval=_float(env, "ORACLE_POLL_INTERVAL", 1.0),
            submit_timeout=_float(env, "ORACLE_SUBMIT_TIMEOUT", 30.0),
            duplicate_policy=env.get("ORACLE_DUPLICATE_POLICY", "at-least-once"),
            gas=_int(env, "SURETY_GAS", DEFAULT_GAS),
            port=_int(env, "SURETY_PORT", DEFAULT_PORT),
            flight_info_history=_int(env, "FLIGHT_INFO_HISTORY", 100),
        )


def parse_block(value) -> Union[int, str]:
    """'latest' / 'earliest' pass through; anything else must be a block number."""
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"Block number must be >= 0, got {value}")
        return value
    text = str(value).strip().lower()
    if text in NAMED_BLOCKS:
        return text
    try:
        return parse_block(int(text))
    except ValueError:
        raise ConfigError(f"Invalid block {value!r}, expected latest, earliest or a number")


def load_network_config(path: Optional[str], network: str) -> dict:
    if not path:
        return {}
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    with open(config_path) as f:
        data = json.load(f)
    if network not in data:
        raise ConfigError(f"Network {network!r} missing from {config_path}")
    return data[network]


def load_abi(artifact_path: str) -> list:
    """ABI list from a Truffle build artifact (or a bare ABI JSON array)."""
    path = Path(artifact_path)
    if not path.exists():
        raise ConfigError(f"Contract artifact not found: {path}")
    with open(path) as f:
        artifact = json.load(f)
    if isinstance(artifact, list):
        return artifact
    if "abi" not in artifact:
        raise ConfigError(f"No 'abi' key in {path}")
    return artifact["abi"]


def _int(env, key, default) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _float(env, key, default) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
