# middleware/security.py
"""
Response hardening and request timing
"""

import time
import logging

from flask import current_app, g, request

logger = logging.getLogger(__name__)


def security_headers(response):
    """Add the configured security headers to every response"""
    for header, value in current_app.config.get('SECURITY_HEADERS', {}).items():
        response.headers.setdefault(header, value)

    return response


def start_timer():
    g.start_time = time.perf_counter()


def log_slow_request(response):
    """Warn about requests slower than SLOW_REQUEST_THRESHOLD milliseconds"""
    start = g.pop('start_time', None)
    if start is None:
        return response

    duration = (time.perf_counter() - start) * 1000
    if duration > current_app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
        logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")

    return response
