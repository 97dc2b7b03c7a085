# middleware/security.py
"""
Request/response middleware: security headers and request logging
"""

from datetime import datetime, timezone

from flask import Flask, current_app, g, request


def security_headers(response):
    """Add the configured security headers to a response"""
    for header, value in current_app.config.get('SECURITY_HEADERS', {}).items():
        response.headers.setdefault(header, value)
    return response


def init_request_middleware(app: Flask) -> None:
    @app.before_request
    def before_request():
        g.start_time = datetime.now(timezone.utc)
        app.logger.info(f"{request.method} {request.path}")

    @app.after_request
    def after_request(response):
        response = security_headers(response)

        if hasattr(g, 'start_time'):
            duration = (datetime.now(timezone.utc) - g.start_time).total_seconds() * 1000
            if duration > app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
                app.logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")

        return response
