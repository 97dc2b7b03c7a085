# core/transport.py
"""
Transport modes and delivery time arithmetic

Every mode has a fixed nominal speed and a Google Maps travel mode that
serves as the distance basis for it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class TransportMode(Enum):
    """Whimsical delivery methods"""
    WALKING = "walking"
    SWIMMING = "swimming"
    PIGEON = "pigeon"
    ROCK_CLIMBING = "rock-climbing"

    @classmethod
    def values(cls) -> List[str]:
        return [mode.value for mode in cls]

    @classmethod
    def parse(cls, value: str) -> 'TransportMode':
        """Look up a mode by its wire value, raising ValueError when unknown"""
        for mode in cls:
            if mode.value == value:
                return mode
        raise ValueError(f"mode must be one of: {', '.join(cls.values())}")

    @property
    def profile(self) -> 'TransportProfile':
        return TRANSPORT_PROFILES[self]

    @property
    def speed_kmh(self) -> float:
        return self.profile.speed_kmh


@dataclass(frozen=True)
class TransportProfile:
    """Nominal characteristics of a transport mode"""
    speed_kmh: float
    travel_mode: str  # Google Maps basis for the distance
    description: str


TRANSPORT_PROFILES: Dict[TransportMode, TransportProfile] = {
    TransportMode.WALKING: TransportProfile(5, 'walking', 'Walking step by step'),
    TransportMode.SWIMMING: TransportProfile(3, 'walking', 'Swimming across waters'),
    TransportMode.PIGEON: TransportProfile(80, 'driving', 'Flying through the skies'),
    TransportMode.ROCK_CLIMBING: TransportProfile(1, 'walking', 'Climbing mountains'),
}

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60


def delivery_time_seconds(distance_meters: float, mode: TransportMode) -> float:
    """Time for the courier to cover the distance at its nominal speed"""
    distance_km = distance_meters / 1000
    return distance_km / mode.speed_kmh * SECONDS_PER_HOUR


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''}"


def format_delivery_time(seconds: float) -> str:
    """
    Format a duration as days, hours and minutes

    Minutes are dropped once the duration reaches a full day, and anything
    under a minute reads "< 1 minute".

    Examples:
        >>> format_delivery_time(90000)
        '1 day, 1 hour'
        >>> format_delivery_time(3661)
        '1 hour, 1 minute'
    """
    days = int(seconds // SECONDS_PER_DAY)
    hours = int((seconds % SECONDS_PER_DAY) // SECONDS_PER_HOUR)
    minutes = int((seconds % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE)

    parts = []
    if days > 0:
        parts.append(_plural(days, 'day'))
    if hours > 0:
        parts.append(_plural(hours, 'hour'))
    if minutes > 0 and days == 0:
        parts.append(_plural(minutes, 'minute'))

    return ', '.join(parts) if parts else '< 1 minute'


def describe_modes() -> List[Dict[str, object]]:
    """Mode catalogue for clients"""
    return [
        {
            'mode': mode.value,
            'speedKmH': mode.speed_kmh,
            'description': mode.profile.description,
        }
        for mode in TransportMode
    ]
