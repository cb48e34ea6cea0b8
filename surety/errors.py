# surety/errors.py
"""
Error taxonomy for the oracle server.

Per-oracle failures (rejections, timeouts) are expected outcomes and stay
inside the dispatcher. Startup failures are fatal.
"""


class SuretyError(Exception):
    """Base class for everything raised by this package."""


class ConfigError(SuretyError):
    pass


class ChainTransportError(SuretyError):
    """Node unreachable, request timed out, or the subscription poll failed."""


class TransactionRejected(SuretyError):
    """The contract reverted a transaction or its receipt reports failure."""

    def __init__(self, method, sender, reason=""):
        self.method = method
        self.sender = sender
        self.reason = reason
        super().__init__(f"{method} from {sender} rejected: {reason or 'reverted'}")


class RegistryError(SuretyError):
    pass


class DuplicateOracleError(RegistryError):
    def __init__(self, address):
        self.address = address
        super().__init__(f"Oracle already registered: {address}")


class StartupError(SuretyError):
    """Oracle pool registration did not complete; the listener must not start."""
