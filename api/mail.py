# api/mail.py
"""
Mail relay API: generic send and contact form submission
"""

import asyncio
import logging
from typing import Any

from flask import Blueprint, request, jsonify, current_app

from core.rate_limit import mail_limit
from services.dispatch import dispatcher_for

mail_bp = Blueprint('mail', __name__)
logger = logging.getLogger(__name__)


def _json_payload() -> Any:
    """
    Decoded request body

    An empty body reads as an empty object; a body that is not valid JSON
    comes back as None, which the validator rejects as a non-object.
    """
    if not request.get_data(cache=True):
        return {}
    return request.get_json(force=True, silent=True)


@mail_bp.route('/send-email', methods=['POST'])
@mail_limit
def send_email():
    """Send one message to an arbitrary recipient"""
    dispatcher = dispatcher_for(current_app)
    result = asyncio.run(dispatcher.send_email(_json_payload()))
    return jsonify(result.to_dict()), result.status_code


@mail_bp.route('/api/contact', methods=['POST'])
@mail_limit
def contact():
    """Contact form: notify the team and confirm to the submitter"""
    dispatcher = dispatcher_for(current_app)
    result = asyncio.run(dispatcher.submit_contact(_json_payload()))

    if not result.success:
        logger.info(f"Contact submission from {request.remote_addr} failed: {result.category.value}")

    return jsonify(result.to_dict()), result.status_code
