"""
Shared fixtures: a testing application with an in-memory fake mail sender.
"""
import asyncio
from typing import Dict, List, Optional

import pytest

from app import create_app
from core.rate_limit import limiter
from services.mail_sender import OutboundMessage


class FakeMailSender:
    """Records messages instead of talking to an SMTP relay."""

    def __init__(self):
        self.sent: List[OutboundMessage] = []
        self.verify_calls = 0
        self.send_calls = 0
        self.verify_error: Optional[BaseException] = None
        # first recipient -> exception raised when sending to it
        self.failures: Dict[str, BaseException] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def verify(self):
        self.verify_calls += 1
        if self.verify_error is not None:
            raise self.verify_error

    async def send(self, message: OutboundMessage) -> str:
        self.send_calls += 1
        number = self.send_calls
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield so concurrent sends overlap
            await asyncio.sleep(0)
            error = self.failures.get(message.recipients[0])
            if error is not None:
                raise error
            self.sent.append(message)
            return f"<fake-{number}@relay.example.com>"
        finally:
            self.in_flight -= 1


@pytest.fixture(autouse=True)
def reset_limiter():
    """Clear rate limit counters around each test."""
    yield
    try:
        limiter.reset()
    except Exception:
        # Limiter never initialised in pure unit tests
        pass


@pytest.fixture
def make_app():
    """Build a testing app, optionally overriding config values."""
    def _make_app(**overrides):
        app = create_app('testing', config_overrides=overrides)
        app.mail_sender = FakeMailSender()
        return app

    return _make_app


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mail_sender(app) -> FakeMailSender:
    return app.mail_sender


@pytest.fixture
def contact_payload() -> dict:
    return {
        'name': 'Ioana Popescu',
        'email': 'ioana@example.com',
        'company': 'Acme Studio',
        'projectType': 'webapp',
        'budget': '5000-10000 EUR',
        'deadline': '3 months',
        'description': 'We need a booking platform for our clinics.',
    }


@pytest.fixture
def email_payload() -> dict:
    return {
        'to': 'customer@example.com',
        'subject': 'Your invoice',
        'text': 'Invoice attached.',
    }
