# app.py
"""
Flask application factory for the SnailMail backend

Wires together:
- Distance calculation (Google Maps with a Claude fallback)
- The delayed email job tracker and its mail transport
- CORS, security headers, request logging and JSON error handling
- Environment-based configuration
"""

import atexit
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from api.distance import distance_bp
from api.email import email_bp
from config.settings import ProductionConfig, get_config
from middleware.security import init_request_middleware
from services.claude_estimator import ClaudeDistanceEstimator
from services.distance_calculator import DistanceCalculator
from services.google_maps import GoogleMapsClient
from tasks.email_sender import SMTPSettings, SnailMailSender
from tasks.job_tracker import JobTracker


def setup_logging(app: Flask) -> None:
    """
    Configure application logging

    Logs go to stderr; a rotating file is added when LOG_FILE is set.
    """
    app.logger.handlers.clear()

    console_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)s[%(process)d]: %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(funcName)-15s:%(lineno)-4d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    handlers = []

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(console_formatter)
    stream_handler.setLevel(log_level)
    handlers.append(stream_handler)

    log_file = app.config.get('LOG_FILE')
    if log_file:
        Path(log_file).parent.mkdir(exist_ok=True, parents=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    app.logger.setLevel(log_level)
    for handler in handlers:
        app.logger.addHandler(handler)

    # Module loggers (api.*, services.*, tasks.*) share the same handlers
    for name in ('api', 'core', 'services', 'tasks'):
        module_logger = logging.getLogger(name)
        module_logger.handlers.clear()
        module_logger.setLevel(log_level)
        for handler in handlers:
            module_logger.addHandler(handler)

    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)


def configure_services(app: Flask) -> None:
    """Build the distance calculator, mailer and job tracker for this app"""
    maps_client = GoogleMapsClient(
        api_key=app.config.get('GOOGLE_MAPS_API_KEY'),
        timeout=app.config.get('GOOGLE_MAPS_TIMEOUT', 10.0),
    )
    estimator = ClaudeDistanceEstimator(
        api_key=app.config.get('ANTHROPIC_API_KEY'),
        model=app.config['ANTHROPIC_MODEL'],
        max_tokens=app.config.get('ANTHROPIC_MAX_TOKENS', 1000),
    )
    app.distance_calculator = DistanceCalculator(maps_client, estimator)

    app.mailer = SnailMailSender(SMTPSettings.from_config(app.config))

    tracker = JobTracker(app.mailer, tick_seconds=app.config['PROGRESS_TICK_SECONDS'])
    tracker.start()
    app.job_tracker = tracker
    atexit.register(tracker.shutdown)

    def status(flag: bool) -> str:
        return 'configured' if flag else 'not configured'

    app.logger.info(f"Google Maps API: {status(maps_client.configured)}")
    app.logger.info(f"Claude API: {status(estimator.configured)}")
    app.logger.info(f"Email delivery mode: {app.mailer.mode}")


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(distance_bp, url_prefix='/api/distance')
    app.register_blueprint(email_bp, url_prefix='/api/email')

    @app.route('/')
    def index():
        return jsonify({
            'message': app.config['APP_NAME'],
            'version': app.config['VERSION'],
            'endpoints': {
                'health': 'GET /api/distance/health',
                'modes': 'GET /api/distance/modes',
                'calculate': 'POST /api/distance/calculate',
                'calculateAll': 'POST /api/distance/calculate-all',
                'sendEmail': 'POST /api/email/send',
                'emailStatus': 'GET /api/email/status/:jobId',
                'emailJobs': 'GET /api/email/jobs',
                'emailHealth': 'GET /api/email/health',
            },
        })

    @app.route('/health')
    def health_check():
        return jsonify({
            'success': True,
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': app.config['VERSION'],
        })


def configure_error_handlers(app: Flask) -> None:
    """Every error leaves the API as {success: false, error, message}"""

    def error_response(status_code: int, error: str, message: str):
        return jsonify({
            'success': False,
            'error': error,
            'message': message,
        }), status_code

    @app.errorhandler(400)
    def bad_request(error):
        app.logger.warning(f"Bad request from {request.remote_addr}: {error}")
        return error_response(400, 'Bad Request', 'Invalid request format or parameters')

    @app.errorhandler(404)
    def not_found(error):
        return error_response(404, 'Not Found', 'The requested resource was not found')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response(405, 'Method Not Allowed',
                              f"{request.method} is not supported for {request.path}")

    @app.errorhandler(413)
    def payload_too_large(error):
        return error_response(413, 'Payload Too Large', 'Request body is too large')

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}", exc_info=True)
        return error_response(500, 'Internal Server Error', 'An unexpected error occurred')

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return error_response(e.code or 500, e.name, e.description or '')

        app.logger.error(f"Unhandled exception: {e}", exc_info=True)
        return error_response(500, 'Internal Server Error', 'An unexpected error occurred')


def create_app(config_name: str = None, config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: 'development', 'testing' or 'production'; defaults to FLASK_ENV
        config_overrides: Values applied on top of the selected config

    Returns:
        Configured Flask application with a running job tracker
    """
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    if issubclass(config_class, ProductionConfig):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    setup_logging(app)
    app.logger.info(f"Starting SnailMail backend with {config_class.__name__}")

    CORS(app,
         origins=[app.config['FRONTEND_URL']],
         supports_credentials=True,
         allow_headers=['Content-Type'])

    configure_services(app)
    register_blueprints(app)
    configure_error_handlers(app)
    init_request_middleware(app)

    app.logger.info("Flask application factory completed successfully")
    return app


if __name__ == '__main__':
    app = create_app('development')
    app.logger.info(f"SnailMail backend running on http://localhost:{app.config['PORT']}")
    app.logger.info(f"Frontend URL: {app.config['FRONTEND_URL']}")
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=True, use_reloader=False)
