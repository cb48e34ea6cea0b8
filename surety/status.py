# surety/status.py
"""
Flight status codes reported by oracles.

Closed set, multiples of 10. Oracles simulate real-world disagreement,
so synthesis is uniform over all six codes.
"""

import random
from enum import IntEnum
from typing import Optional


class FlightStatus(IntEnum):
    UNKNOWN = 0
    ON_TIME = 10
    LATE_AIRLINE = 20
    LATE_WEATHER = 30
    LATE_TECHNICAL = 40
    LATE_OTHER = 50


STATUS_CODES = tuple(int(s) for s in FlightStatus)

LABELS = {
    FlightStatus.UNKNOWN: "Unknown",
    FlightStatus.ON_TIME: "On Time",
    FlightStatus.LATE_AIRLINE: "Late Airline",
    FlightStatus.LATE_WEATHER: "Late Weather",
    FlightStatus.LATE_TECHNICAL: "Late Technical",
    FlightStatus.LATE_OTHER: "Late Other",
}


def status_label(code) -> str:
    """Human label for a status code; anything outside the set is Unknown."""
    try:
        return LABELS[FlightStatus(int(code))]
    except (ValueError, TypeError):
        return LABELS[FlightStatus.UNKNOWN]


def synthesize_status(rng: Optional[random.Random] = None) -> int:
    return (rng or random).choice(STATUS_CODES)
