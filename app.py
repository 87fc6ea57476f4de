# app.py
"""
Flask application factory for the contact & email relay service

The factory wires together:
- Environment-based configuration (config/settings.py)
- Logging with an optional rotating file
- CORS, proxy handling and security headers
- The shared fixed-window rate limit on the mail endpoints
- The SMTP mail sender and contact email renderer used by the pipelines
- JSON error handlers and health endpoints
"""

import logging
import logging.handlers
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.exceptions import HTTPException

from api.mail import mail_bp
from config.settings import get_config
from core.errors import ErrorCategory, HTTP_STATUS
from core.rate_limit import limiter, rate_limit_message
from core.template_engine import ContactTemplateRenderer
from middleware.security import security_headers, start_timer, log_slow_request
from services.mail_sender import SMTPMailSender

logger = logging.getLogger(__name__)


def setup_logging(app: Flask) -> None:
    """
    Configure logging for the whole process

    Modules log through ``logging.getLogger(__name__)`` and propagate to the
    root logger, which gets a stream handler and, when LOG_FILE is set, a
    rotating file handler. Handlers from an earlier factory call are replaced.
    """
    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, 'relay_handler', False)]:
        root.removeHandler(handler)
        handler.close()

    # Let app.logger propagate instead of using Flask's default handler
    app.logger.handlers.clear()

    journal_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)s[%(process)d]: %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(funcName)-15s:%(lineno)-4d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(journal_formatter)
    stream_handler.setLevel(log_level)
    stream_handler.relay_handler = True
    root.addHandler(stream_handler)

    log_file = app.config.get('LOG_FILE')
    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(log_level)
        file_handler.relay_handler = True
        root.addHandler(file_handler)

    # Suppress verbose third-party logs outside debug
    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('aiosmtplib').setLevel(logging.WARNING)


def configure_mail(app: Flask) -> None:
    """Attach the transport and renderer the dispatch pipelines use"""
    app.mail_sender = SMTPMailSender.from_config(app.config)
    app.contact_renderer = ContactTemplateRenderer(
        company_name=app.config['COMPANY_NAME'],
        internal_recipients=app.config['CONTACT_RECIPIENTS'],
    )

    if not (app.config.get('SMTP_USER') and app.config.get('SMTP_PASS')):
        logger.warning("SMTP_USER/SMTP_PASS are not set; mail endpoints will report a configuration error")

    logger.info(
        f"Mail relay via {app.config['SMTP_HOST']}:{app.config['SMTP_PORT']} "
        f"({'implicit TLS' if app.mail_sender.use_tls else 'STARTTLS'})"
    )


def configure_security(app: Flask) -> None:
    """CORS and the mail rate limit"""
    CORS(app, origins=app.config.get('CORS_ORIGINS', ['*']))

    # Fresh limiter storage per application
    limiter.init_app(app)


def _error_response(category: ErrorCategory, message: str, status_code: Optional[int] = None):
    return jsonify({
        'success': False,
        'error': message,
    }), status_code or HTTP_STATUS[category]


def configure_error_handlers(app: Flask) -> None:
    """
    JSON error bodies for everything outside the dispatch pipelines
    """
    @app.errorhandler(404)
    def not_found(error):
        return _error_response(ErrorCategory.NOT_FOUND, 'Endpoint not found')

    @app.errorhandler(405)
    def method_not_allowed(error):
        # Known path, wrong method: same answer as an unknown route
        return _error_response(ErrorCategory.NOT_FOUND, 'Endpoint not found')

    @app.errorhandler(413)
    def payload_too_large(error):
        logger.warning(f"Oversized request body from {request.remote_addr} on {request.path}")
        return _error_response(ErrorCategory.VALIDATION_FAILED, 'Request body too large', 413)

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        logger.warning(f"Rate limit exceeded for {request.remote_addr} on {request.path}")
        return _error_response(
            ErrorCategory.RATE_LIMITED,
            rate_limit_message(app.config['MAIL_RATE_LIMIT'])
        )

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return _error_response(ErrorCategory.INTERNAL_ERROR, 'Internal server error')

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        if isinstance(e, HTTPException):
            return jsonify({'success': False, 'error': e.description}), e.code

        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return _error_response(ErrorCategory.INTERNAL_ERROR, 'Internal server error')


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def configure_health_checks(app: Flask) -> None:
    """
    Liveness endpoints for monitoring and load balancing (not rate limited)
    """
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'OK',
            'message': 'Email server is running',
            'timestamp': _utc_timestamp(),
        })

    @app.route('/api/health')
    def api_health_check():
        return jsonify({
            'status': 'OK',
            'message': 'Contact API is running',
            'endpoints': {
                'contact': '/api/contact',
                'health': '/api/health',
            },
            'timestamp': _utc_timestamp(),
        })


def configure_request_middleware(app: Flask) -> None:
    """
    Request/response middleware for security and monitoring
    """
    app.before_request(start_timer)
    app.after_request(security_headers)
    app.after_request(log_slow_request)


def create_app(config_name: str = None,
               config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: Configuration environment ('development', 'testing', 'production');
            defaults to APP_ENV
        config_overrides: Extra config values applied after the environment class

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    # Keep response keys in insertion order
    app.json.sort_keys = False

    # Honour X-Forwarded-* when deployed behind nginx or a load balancer
    if app.config.get('BEHIND_PROXY'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    setup_logging(app)
    logger.info(f"Starting contact relay in {app.config['ENV_NAME']} mode")

    configure_security(app)
    configure_mail(app)

    app.register_blueprint(mail_bp)

    configure_error_handlers(app)
    configure_health_checks(app)
    configure_request_middleware(app)

    return app


if __name__ == '__main__':
    # Development server
    app = create_app()
    app.run(
        host=app.config['HOST'],
        port=app.config['PORT'],
        debug=app.config['DEBUG']
    )
