"""Flight Surety oracle coordination server."""

__version__ = "1.0.0"
