# services/google_maps.py
"""
Google Maps Distance Matrix client

Sole responsibility: talk to the Distance Matrix API over HTTP and return
normalized distance/duration results. Transport mode rules live elsewhere.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from core.transport import TransportMode
from core.validation import Location

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = 'https://maps.googleapis.com/maps/api/distancematrix/json'


class MapsServiceError(Exception):
    """Distance Matrix lookup failed"""
    pass


@dataclass
class DistanceResult:
    distance_meters: float
    distance_text: str
    duration_seconds: float
    origin: str
    destination: str


class GoogleMapsClient:
    """
    Distance Matrix adapter

    Builds the request for a single origin/destination pair, validates both
    the top-level and element status, and normalizes the first element.
    """

    def __init__(self, api_key: Optional[str], timeout: float = 10.0,
                 session: Optional[requests.Session] = None,
                 base_url: str = DISTANCE_MATRIX_URL):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def calculate_distance(self, origin: Location, destination: Location,
                           travel_mode: str = 'walking') -> DistanceResult:
        if not self.api_key:
            raise MapsServiceError('Google Maps API key is not configured')

        params = {
            'origins': origin.to_query(),
            'destinations': destination.to_query(),
            'mode': travel_mode,
            'key': self.api_key,
        }

        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data: Dict[str, Any] = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Google Maps request failed: {e}")
            raise MapsServiceError(f"Google Maps request failed: {e}") from e

        if data.get('status') != 'OK':
            raise MapsServiceError(f"Google Maps API error: {data.get('status')}")

        try:
            element = data['rows'][0]['elements'][0]
        except (KeyError, IndexError, TypeError):
            element = None

        if not element or element.get('status') != 'OK':
            status = element.get('status') if element else 'Unknown error'
            raise MapsServiceError(f"Distance calculation failed: {status}")

        origins = data.get('origin_addresses') or [origin.label()]
        destinations = data.get('destination_addresses') or [destination.label()]

        try:
            return DistanceResult(
                distance_meters=element['distance']['value'],
                distance_text=element['distance']['text'],
                duration_seconds=element['duration']['value'],
                origin=origins[0],
                destination=destinations[0],
            )
        except (KeyError, TypeError) as e:
            raise MapsServiceError(f"Distance calculation failed: missing {e}") from e

    def calculate_distance_by_mode(self, origin: Location, destination: Location,
                                   mode: TransportMode) -> DistanceResult:
        """Distance using the Google travel mode that stands in for this transport mode"""
        return self.calculate_distance(origin, destination, mode.profile.travel_mode)
