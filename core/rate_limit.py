# core/rate_limit.py
"""
Fixed-window rate limiting for the mail endpoints

The module-level limiter is bound to an application through ``init_app``,
which gives it fresh storage from ``RATELIMIT_STORAGE_URI``. Binding it to a
second application in the same process replaces that storage, so counters
always belong to the most recently created app. Both mail endpoints draw from
the same "mail" scope, so a client gets one budget across them.
"""

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from limits import parse_many

MAIL_LIMIT_SCOPE = 'mail'

limiter = Limiter(key_func=get_remote_address)


def mail_rate_limit() -> str:
    """Limit string for the mail scope, read per request from app config"""
    return current_app.config['MAIL_RATE_LIMIT']


def rate_limit_message(limit_value: str) -> str:
    """
    Caller-facing rejection text for a limit such as '10 per 15 minutes'

    Compound limits ('10/15minutes;100/day') are described by their first entry.
    """
    window = parse_many(limit_value)[0].get_expiry()
    if window % 60 == 0 and window >= 60:
        minutes = window // 60
        span = f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    else:
        span = f"{window} second" if window == 1 else f"{window} seconds"
    return f"Too many email requests from this IP. Please try again in {span}."


mail_limit = limiter.shared_limit(mail_rate_limit, scope=MAIL_LIMIT_SCOPE)
