# api/distance.py
"""
Distance and delivery time endpoints
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from core.transport import describe_modes
from core.validation import ValidationError, parse_mode, parse_route, require_json_object
from services.distance_calculator import DistanceCalculationError

distance_bp = Blueprint('distance', __name__)
logger = logging.getLogger(__name__)


@distance_bp.route('/calculate', methods=['POST'])
def calculate():
    """
    Delivery time for a single transport mode

    Body:
        {"origin": {"address": "New York, NY"} | {"lat": .., "lng": ..},
         "destination": {...},
         "mode": "walking" | "swimming" | "pigeon" | "rock-climbing"}
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        mode = parse_mode(payload.get('mode'))
        origin, destination = parse_route(payload)

        estimate = current_app.distance_calculator.calculate(origin, destination, mode)
        return jsonify({'success': True, 'data': estimate.to_dict()})

    except ValidationError as e:
        logger.info(f"Rejected calculate request: {e.error}")
        return jsonify(e.to_dict()), 400
    except DistanceCalculationError as e:
        logger.error(f"Error calculating distance: {e}")
        return jsonify({
            'success': False,
            'error': 'Calculation failed',
            'message': 'An error occurred while calculating the distance',
        }), 500


@distance_bp.route('/calculate-all', methods=['POST'])
def calculate_all():
    """Delivery times for every transport mode"""
    try:
        payload = require_json_object(request.get_json(silent=True))
        origin, destination = parse_route(payload)

        estimates = current_app.distance_calculator.calculate_all(origin, destination)
        return jsonify({
            'success': True,
            'data': {mode: estimate.to_dict() for mode, estimate in estimates.items()},
        })

    except ValidationError as e:
        logger.info(f"Rejected calculate-all request: {e.error}")
        return jsonify(e.to_dict()), 400
    except DistanceCalculationError as e:
        logger.error(f"Error calculating distances: {e}")
        return jsonify({
            'success': False,
            'error': 'Calculation failed',
            'message': 'An error occurred while calculating the distances',
        }), 500


@distance_bp.route('/modes', methods=['GET'])
def modes():
    return jsonify({'success': True, 'data': describe_modes()})


@distance_bp.route('/health', methods=['GET'])
def health():
    return jsonify({
        'success': True,
        'message': 'Distance calculation service is running',
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })
