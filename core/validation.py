# core/validation.py
"""
Request payload validation

Every check raises ValidationError carrying a short error title and a
human-readable message; the API layer turns it into a 400 response.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from email_validator import validate_email, EmailNotValidError

from core.transport import TransportMode

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Invalid client input"""

    def __init__(self, error: str, message: Optional[str] = None):
        super().__init__(message or error)
        self.error = error
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        payload = {'success': False, 'error': self.error}
        if self.message:
            payload['message'] = self.message
        return payload


@dataclass(frozen=True)
class Location:
    """An address or a coordinate pair"""
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    def to_query(self) -> str:
        """Location as accepted by the Distance Matrix API"""
        if self.address:
            return self.address
        return f"{self.lat},{self.lng}"

    def label(self) -> str:
        if self.address:
            return self.address
        return f"{self.lat}, {self.lng}"


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # JSON integers too large for a float
        return False


def require_json_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError('Invalid request body', 'Request body must be a JSON object')
    return payload


def parse_location(raw: Any) -> Location:
    """Build a Location from {address} or {lat, lng}"""
    if not isinstance(raw, dict):
        raise ValidationError(
            'Invalid location format',
            'Locations must have either an address or lat/lng coordinates'
        )

    address = raw.get('address')
    if isinstance(address, str) and address.strip():
        return Location(address=address.strip())

    lat, lng = raw.get('lat'), raw.get('lng')
    if (_is_number(lat) and _is_number(lng)
            and -90 <= lat <= 90 and -180 <= lng <= 180):
        return Location(lat=float(lat), lng=float(lng))

    raise ValidationError(
        'Invalid location format',
        'Locations must have either an address or lat/lng coordinates'
    )


def parse_route(payload: Dict[str, Any]):
    """Extract and validate origin and destination"""
    origin = payload.get('origin')
    destination = payload.get('destination')
    if not origin or not destination:
        raise ValidationError(
            'Missing required fields',
            'Both origin and destination are required'
        )
    return parse_location(origin), parse_location(destination)


def parse_mode(value: Any, field: str = 'mode') -> TransportMode:
    if not value:
        raise ValidationError(
            'Missing transport mode',
            f"{field} is required ({', '.join(TransportMode.values())})"
        )
    try:
        return TransportMode.parse(value)
    except (ValueError, TypeError):
        raise ValidationError(
            'Invalid transport mode',
            f"{field} must be one of: {', '.join(TransportMode.values())}"
        )


def require_fields(payload: Dict[str, Any], fields: Iterable[str]) -> None:
    missing = [name for name in fields
               if payload.get(name) is None or payload.get(name) == '']
    if missing:
        raise ValidationError(
            'Missing required fields',
            f"Required: {', '.join(missing)}"
        )


def require_text(payload: Dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str):
        raise ValidationError('Invalid field', f"{field} must be a string")
    return value


def validate_email_address(value: Any, field: str) -> str:
    """Syntactic check only; deliverability is not verified"""
    if not isinstance(value, str):
        raise ValidationError('Invalid email format', f"{field} must be a string")
    try:
        result = validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        logger.debug(f"Rejected {field} address: {e}")
        raise ValidationError('Invalid email format', f"{field}: {e}")
    return result.normalized


def parse_delivery_seconds(value: Any) -> float:
    if not _is_number(value) or value < 0:
        raise ValidationError(
            'Invalid delivery time',
            'deliveryTimeSeconds must be a non-negative number'
        )
    return float(value)


def parse_speed_multiplier(value: Any, maximum: float) -> float:
    if value is None:
        return 1.0
    if not _is_number(value) or value < 1 or value > maximum:
        raise ValidationError(
            'Invalid speed multiplier',
            f"speedMultiplier must be a number between 1 and {maximum:g}"
        )
    return float(value)
