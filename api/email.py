# api/email.py
"""
Delayed email endpoints

A send request schedules a job on the tracker and returns at once; clients
poll /status/<job_id> until the job is delivered or failed.
"""

import asyncio
import logging

from flask import Blueprint, current_app, jsonify, request

from core.validation import (
    ValidationError, parse_delivery_seconds, parse_mode, parse_speed_multiplier,
    require_fields, require_json_object, require_text, validate_email_address,
)
from tasks.email_sender import EmailSenderError

email_bp = Blueprint('email', __name__)
logger = logging.getLogger(__name__)

SEND_FIELDS = ('from', 'to', 'subject', 'message', 'transportMode', 'deliveryTimeSeconds')


@email_bp.route('/send', methods=['POST'])
def send():
    """
    Schedule a delayed delivery

    Body:
        {"from", "to", "subject", "message", "transportMode",
         "deliveryTimeSeconds", "speedMultiplier" (optional, >= 1)}
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        require_fields(payload, SEND_FIELDS)

        sender = validate_email_address(payload['from'], 'from')
        recipient = validate_email_address(payload['to'], 'to')
        subject = require_text(payload, 'subject')
        message = require_text(payload, 'message')
        mode = parse_mode(payload['transportMode'], field='transportMode')
        delivery_seconds = parse_delivery_seconds(payload['deliveryTimeSeconds'])
        multiplier = parse_speed_multiplier(
            payload.get('speedMultiplier'),
            current_app.config['MAX_SPEED_MULTIPLIER'],
        )
    except ValidationError as e:
        logger.info(f"Rejected send request: {e.error}")
        return jsonify(e.to_dict()), 400

    job = current_app.job_tracker.create_job(
        sender=sender,
        recipient=recipient,
        subject=subject,
        message=message,
        transport_mode=mode,
        delivery_time_seconds=delivery_seconds,
        speed_multiplier=multiplier,
    )

    return jsonify({
        'success': True,
        'data': {
            'jobId': job.id,
            'status': job.status.value,
            'transportMode': job.transport_mode.value,
            'estimatedDeliveryTime': job.delivery_time_seconds,
            'originalDeliveryTime': job.original_delivery_time_seconds,
            'speedMultiplier': job.speed_multiplier,
            'message': f"Your email is on its way by {mode.value}!",
        },
    })


@email_bp.route('/status/<job_id>', methods=['GET'])
def status(job_id):
    tracker = current_app.job_tracker
    job = tracker.get_job(job_id)
    if job is None:
        return jsonify({
            'success': False,
            'error': 'Job not found',
            'message': f"No email job with id {job_id}",
        }), 404

    return jsonify({'success': True, 'data': job.status_view(tracker.clock())})


@email_bp.route('/jobs', methods=['GET'])
def jobs():
    """All jobs held by the tracker, oldest first"""
    summaries = [job.summary() for job in current_app.job_tracker.list_jobs()]
    return jsonify({'success': True, 'count': len(summaries), 'data': summaries})


@email_bp.route('/health', methods=['GET'])
def health():
    mailer = current_app.mailer
    if mailer.mode == 'console':
        return jsonify({
            'success': True,
            'mode': 'console',
            'message': 'Email credentials not configured; deliveries are logged to console',
        })

    try:
        healthy = asyncio.run(mailer.verify_connection())
    except EmailSenderError as e:
        logger.warning(f"Email health check failed: {e}")
        healthy = False

    return jsonify({
        'success': healthy,
        'mode': 'smtp',
        'message': ('Email service is configured and ready' if healthy
                    else 'Email service configuration issue'),
    }), 200 if healthy else 503
