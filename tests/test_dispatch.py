"""
Dispatch pipelines: generic send and contact form.
"""
from datetime import datetime

import pytest

from core.errors import ErrorCategory, TransportError
from core.template_engine import ContactTemplateRenderer
from services.dispatch import DispatchResult, MailDispatcher, RelaySettings

from conftest import FakeMailSender

INTERNAL = ['contact@example.com', 'sales@example.com']


def make_dispatcher(sender=None, **settings) -> MailDispatcher:
    values = {
        'smtp_user': 'relay@example.com',
        'smtp_pass': 'secret',
        'from_address': 'no-reply@example.com',
        'expose_error_details': False,
    }
    values.update(settings)
    return MailDispatcher(
        sender=sender or FakeMailSender(),
        settings=RelaySettings(**values),
        renderer=ContactTemplateRenderer('Test Company', INTERNAL),
        clock=lambda: datetime(2024, 3, 5, 14, 7, 9),
    )


@pytest.mark.asyncio
async def test_send_email_success(email_payload):
    dispatcher = make_dispatcher()

    result = await dispatcher.send_email(email_payload)

    assert result.success
    assert result.status_code == 200
    assert result.to_dict() == {
        'success': True,
        'message': 'Email sent successfully',
        'messageId': '<fake-1@relay.example.com>',
    }
    sent = dispatcher.sender.sent[0]
    assert sent.recipients == ['customer@example.com']
    assert sent.sender == 'no-reply@example.com'


@pytest.mark.asyncio
async def test_send_email_sender_fallbacks(email_payload):
    """payload.from, then SMTP_FROM_ADDRESS, then SMTP_USER."""
    dispatcher = make_dispatcher(from_address=None)
    await dispatcher.send_email(email_payload)
    assert dispatcher.sender.sent[0].sender == 'relay@example.com'

    email_payload['from'] = 'billing@example.com'
    await dispatcher.send_email(email_payload)
    assert dispatcher.sender.sent[1].sender == 'billing@example.com'


@pytest.mark.asyncio
async def test_validation_failure_sends_nothing():
    dispatcher = make_dispatcher()

    result = await dispatcher.send_email({'to': 'customer@example.com'})

    assert result.status_code == 400
    assert result.category is ErrorCategory.VALIDATION_FAILED
    assert result.to_dict()['details'] == [
        '"subject" is required',
        '"value" must contain at least one of [text, html]',
    ]
    assert dispatcher.sender.verify_calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize('missing', ['smtp_user', 'smtp_pass'])
async def test_missing_credentials_fail_before_transport(contact_payload, missing):
    dispatcher = make_dispatcher(**{missing: None})

    result = await dispatcher.submit_contact(contact_payload)

    assert result.status_code == 500
    assert result.category is ErrorCategory.CONFIGURATION_MISSING
    assert dispatcher.sender.verify_calls == 0
    assert dispatcher.sender.send_calls == 0


@pytest.mark.asyncio
async def test_verify_failure_stops_pipeline(email_payload):
    sender = FakeMailSender()
    sender.verify_error = TransportError(ErrorCategory.TRANSPORT_AUTH_FAILED, '535 bad credentials')
    dispatcher = make_dispatcher(sender)

    result = await dispatcher.send_email(email_payload)

    assert result.category is ErrorCategory.TRANSPORT_AUTH_FAILED
    assert result.to_dict() == {
        'success': False,
        'error': 'Email authentication failed. Check the SMTP credentials.',
    }
    assert sender.send_calls == 0


@pytest.mark.asyncio
async def test_details_only_when_exposed(email_payload):
    sender = FakeMailSender()
    sender.verify_error = TransportError(ErrorCategory.TRANSPORT_CONNECTION_FAILED, 'Connection refused')
    dispatcher = make_dispatcher(sender, expose_error_details=True)

    result = await dispatcher.send_email(email_payload)

    assert result.to_dict()['details'] == 'Connection refused'


@pytest.mark.asyncio
async def test_message_invalid_wording_differs_per_pipeline(email_payload, contact_payload):
    error = TransportError(ErrorCategory.TRANSPORT_MESSAGE_INVALID, '554 rejected')
    sender = FakeMailSender()
    sender.verify_error = error
    dispatcher = make_dispatcher(sender)

    send_result = await dispatcher.send_email(email_payload)
    contact_result = await dispatcher.submit_contact(contact_payload)

    assert send_result.message == 'The email message was rejected as invalid'
    assert contact_result.message == 'An error occurred while processing your request. Please try again.'


@pytest.mark.asyncio
async def test_contact_sends_both_messages_concurrently(contact_payload):
    dispatcher = make_dispatcher()

    result = await dispatcher.submit_contact(contact_payload)

    assert result.success
    body = result.to_dict()
    assert body['details'] == {
        'internalMessageId': '<fake-1@relay.example.com>',
        'clientMessageId': '<fake-2@relay.example.com>',
    }
    sender = dispatcher.sender
    assert sender.max_in_flight == 2
    assert sender.verify_calls == 1

    internal, client = sorted(sender.sent, key=lambda m: len(m.recipients), reverse=True)
    assert internal.recipients == INTERNAL
    assert internal.reply_to == 'ioana@example.com'
    assert client.recipients == ['ioana@example.com']
    assert client.subject == 'Request confirmation - Acme Studio | Test Company'


@pytest.mark.asyncio
@pytest.mark.parametrize('failing', ['contact@example.com', 'ioana@example.com'])
async def test_contact_fails_if_either_leg_fails(contact_payload, failing):
    sender = FakeMailSender()
    sender.failures[failing] = TransportError(ErrorCategory.TRANSPORT_CONNECTION_FAILED, 'reset by peer')
    dispatcher = make_dispatcher(sender)

    result = await dispatcher.submit_contact(contact_payload)

    assert not result.success
    assert result.category is ErrorCategory.TRANSPORT_CONNECTION_FAILED
    assert 'details' not in result.to_dict()
    assert sender.send_calls == 2


@pytest.mark.asyncio
async def test_contact_reports_internal_leg_first(contact_payload):
    sender = FakeMailSender()
    sender.failures['contact@example.com'] = TransportError(ErrorCategory.TRANSPORT_AUTH_FAILED, 'auth')
    sender.failures['ioana@example.com'] = TransportError(ErrorCategory.TRANSPORT_MESSAGE_INVALID, 'bad')
    dispatcher = make_dispatcher(sender)

    result = await dispatcher.submit_contact(contact_payload)

    assert result.category is ErrorCategory.TRANSPORT_AUTH_FAILED


@pytest.mark.asyncio
async def test_unexpected_leg_error_is_classified(contact_payload):
    sender = FakeMailSender()
    sender.failures['ioana@example.com'] = RuntimeError('boom')
    dispatcher = make_dispatcher(sender)

    result = await dispatcher.submit_contact(contact_payload)

    assert result.category is ErrorCategory.TRANSPORT_UNKNOWN
    assert result.status_code == 500


def test_failed_result_cannot_carry_ids():
    with pytest.raises(ValueError):
        DispatchResult(success=False, message='nope',
                       category=ErrorCategory.TRANSPORT_UNKNOWN, message_id='<x@y>')
