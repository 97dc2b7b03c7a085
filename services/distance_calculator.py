# services/distance_calculator.py
"""
Delivery time orchestration

Tries Google Maps first and falls back to a Claude estimate; the courier's
delivery time is then derived from the distance and the mode's speed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict

from core.transport import TransportMode, delivery_time_seconds, format_delivery_time
from core.validation import Location
from services.claude_estimator import ClaudeDistanceEstimator, EstimateError
from services.google_maps import GoogleMapsClient, MapsServiceError

logger = logging.getLogger(__name__)

METHOD_GOOGLE_MAPS = 'google-maps'
METHOD_CLAUDE_ESTIMATE = 'claude-estimate'


class DistanceCalculationError(Exception):
    """Both the mapping service and the estimator failed"""
    pass


@dataclass
class DeliveryEstimate:
    distance_meters: float
    distance_text: str
    duration_seconds: float
    delivery_time_seconds: float
    delivery_time_text: str
    origin: str
    destination: str
    transport_mode: TransportMode
    speed_kmh: float
    is_estimate: bool
    method: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distanceMeters': self.distance_meters,
            'distanceText': self.distance_text,
            'durationSeconds': self.duration_seconds,
            'deliveryTimeSeconds': self.delivery_time_seconds,
            'deliveryTimeText': self.delivery_time_text,
            'origin': self.origin,
            'destination': self.destination,
            'transportMode': self.transport_mode.value,
            'speedKmH': self.speed_kmh,
            'isEstimate': self.is_estimate,
            'method': self.method,
        }


class DistanceCalculator:
    def __init__(self, maps_client: GoogleMapsClient,
                 estimator: ClaudeDistanceEstimator, max_workers: int = 4):
        self.maps_client = maps_client
        self.estimator = estimator
        self.max_workers = max_workers

    def calculate(self, origin: Location, destination: Location,
                  mode: TransportMode) -> DeliveryEstimate:
        """Delivery estimate for one transport mode"""
        method = METHOD_GOOGLE_MAPS
        try:
            logger.info(f"Calculating distance via Google Maps (mode: {mode.value})")
            result = self.maps_client.calculate_distance_by_mode(origin, destination, mode)
        except MapsServiceError as maps_error:
            logger.warning(f"Google Maps failed, falling back to Claude: {maps_error}")
            try:
                result = self.estimator.estimate(origin, destination, mode)
                method = METHOD_CLAUDE_ESTIMATE
            except EstimateError as estimate_error:
                logger.error(f"Both Google Maps and Claude failed: {estimate_error}")
                raise DistanceCalculationError(
                    'Unable to calculate distance: Both Google Maps and Claude services failed'
                ) from estimate_error

        seconds = delivery_time_seconds(result.distance_meters, mode)
        return DeliveryEstimate(
            distance_meters=result.distance_meters,
            distance_text=result.distance_text,
            duration_seconds=result.duration_seconds,
            delivery_time_seconds=seconds,
            delivery_time_text=format_delivery_time(seconds),
            origin=result.origin,
            destination=result.destination,
            transport_mode=mode,
            speed_kmh=mode.speed_kmh,
            is_estimate=method == METHOD_CLAUDE_ESTIMATE,
            method=method,
        )

    def calculate_all(self, origin: Location,
                      destination: Location) -> Dict[str, DeliveryEstimate]:
        """Delivery estimates for every mode; one failure fails the whole call"""
        modes = list(TransportMode)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                mode: executor.submit(self.calculate, origin, destination, mode)
                for mode in modes
            }
            results = {}
            for mode, future in futures.items():
                try:
                    results[mode.value] = future.result()
                except DistanceCalculationError:
                    logger.error(f"Failed to calculate delivery time for {mode.value}")
                    raise
        return results
