# services/dispatch.py
"""
Dispatch pipelines for the relay endpoints

Both pipelines run validate -> configured -> verify -> send and convert every
relay error into a DispatchResult at this boundary. The contact pipeline sends
its two messages concurrently and reports all-or-nothing.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from core.errors import (
    ErrorCategory, HTTP_STATUS, MailRelayError, ValidationFailed,
    ConfigurationMissing, TransportError
)
from core.smtp_rfc_handler import smtp_error_classifier
from core.template_engine import ContactTemplateRenderer, RenderedEmail, header_safe
from core.validation import EmailRequest, ContactRequest
from services.mail_sender import OutboundMessage

logger = logging.getLogger(__name__)


# Caller-facing text per outcome. Success is keyed by None.
SEND_EMAIL_MESSAGES: Dict[Optional[ErrorCategory], str] = {
    None: 'Email sent successfully',
    ErrorCategory.VALIDATION_FAILED: 'Invalid input data',
    ErrorCategory.CONFIGURATION_MISSING: 'Email server is not configured',
    ErrorCategory.TRANSPORT_AUTH_FAILED: 'Email authentication failed. Check the SMTP credentials.',
    ErrorCategory.TRANSPORT_CONNECTION_FAILED: 'Could not connect to the email server',
    ErrorCategory.TRANSPORT_MESSAGE_INVALID: 'The email message was rejected as invalid',
    ErrorCategory.TRANSPORT_UNKNOWN: 'Failed to send email',
}

CONTACT_MESSAGES: Dict[Optional[ErrorCategory], str] = {
    None: 'Your request was sent successfully. You will receive a confirmation email shortly.',
    ErrorCategory.VALIDATION_FAILED: 'Invalid form data',
    ErrorCategory.CONFIGURATION_MISSING: 'Email server is not configured',
    ErrorCategory.TRANSPORT_AUTH_FAILED: 'Email authentication error. Please try again later.',
    ErrorCategory.TRANSPORT_CONNECTION_FAILED: 'Connection problem with the email server. Please try again later.',
    ErrorCategory.TRANSPORT_MESSAGE_INVALID: 'An error occurred while processing your request. Please try again.',
    ErrorCategory.TRANSPORT_UNKNOWN: 'An error occurred while processing your request. Please try again.',
}


@dataclass
class DispatchResult:
    """Outcome of one pipeline run, ready to be serialized"""
    success: bool
    message: str
    category: Optional[ErrorCategory] = None
    message_id: Optional[str] = None
    internal_message_id: Optional[str] = None
    client_message_id: Optional[str] = None
    details: Any = None

    def __post_init__(self):
        has_ids = any((self.message_id, self.internal_message_id, self.client_message_id))
        if not self.success and has_ids:
            raise ValueError("A failed dispatch cannot carry message identifiers")
        if not self.success and self.category is None:
            raise ValueError("A failed dispatch needs an error category")

    @classmethod
    def failure(cls, category: ErrorCategory, message: str, details: Any = None) -> 'DispatchResult':
        return cls(success=False, message=message, category=category, details=details)

    @property
    def status_code(self) -> int:
        if self.success:
            return 200
        return HTTP_STATUS[self.category]

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            body = {'success': False, 'error': self.message}
            if self.details is not None:
                body['details'] = self.details
            return body

        body = {'success': True, 'message': self.message}
        if self.message_id is not None:
            body['messageId'] = self.message_id
        if self.internal_message_id is not None or self.client_message_id is not None:
            body['details'] = {
                'internalMessageId': self.internal_message_id,
                'clientMessageId': self.client_message_id,
            }
        return body


@dataclass
class RelaySettings:
    """Slice of app config the pipelines need"""
    smtp_user: Optional[str]
    smtp_pass: Optional[str]
    from_address: Optional[str] = None
    expose_error_details: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'RelaySettings':
        return cls(
            smtp_user=config.get('SMTP_USER'),
            smtp_pass=config.get('SMTP_PASS'),
            from_address=config.get('SMTP_FROM_ADDRESS'),
            expose_error_details=bool(config.get('EXPOSE_ERROR_DETAILS', False)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass)

    @property
    def default_sender(self) -> Optional[str]:
        return self.from_address or self.smtp_user


class MailDispatcher:
    """
    Runs the generic send and contact pipelines against a mail sender

    Args:
        sender: Object with async ``verify()`` and ``send(OutboundMessage) -> str``
        settings: Credentials, default sender and detail exposure
        renderer: Contact email renderer
        clock: Returns the submission time used in the internal notification
    """

    def __init__(self, sender, settings: RelaySettings,
                 renderer: ContactTemplateRenderer,
                 clock: Callable[[], datetime] = datetime.now):
        self.sender = sender
        self.settings = settings
        self.renderer = renderer
        self.clock = clock

    def _require_configuration(self) -> None:
        if not self.settings.configured:
            raise ConfigurationMissing('SMTP_USER and SMTP_PASS must be set')

    def _failure(self, exc: MailRelayError,
                 messages: Mapping[Optional[ErrorCategory], str]) -> DispatchResult:
        category = exc.category
        message = messages.get(category, messages[ErrorCategory.TRANSPORT_UNKNOWN])

        details = None
        if isinstance(exc, ValidationFailed):
            details = exc.errors
        elif self.settings.expose_error_details:
            details = str(exc)

        return DispatchResult.failure(category, message, details)

    def _outbound(self, email: RenderedEmail) -> OutboundMessage:
        return OutboundMessage(
            sender=self.settings.default_sender,
            recipients=list(email.to),
            subject=email.subject,
            text=email.text,
            html=email.html,
            reply_to=email.reply_to,
        )

    async def send_email(self, payload: Any) -> DispatchResult:
        """Generic send: one message from the validated payload"""
        try:
            request = EmailRequest.from_payload(payload)
            self._require_configuration()
            await self.sender.verify()

            message = OutboundMessage(
                sender=request.sender or self.settings.default_sender,
                recipients=[request.to],
                subject=header_safe(request.subject),
                text=request.text,
                html=request.html,
            )
            message_id = await self.sender.send(message)
        except ValidationFailed as exc:
            logger.info(f"Rejected send-email payload: {'; '.join(exc.errors)}")
            return self._failure(exc, SEND_EMAIL_MESSAGES)
        except MailRelayError as exc:
            logger.error(f"Email sending failed ({exc.category.value}): {exc}")
            return self._failure(exc, SEND_EMAIL_MESSAGES)

        logger.info(f"Email sent to {request.to}: {message_id}")
        return DispatchResult(
            success=True,
            message=SEND_EMAIL_MESSAGES[None],
            message_id=message_id,
        )

    async def submit_contact(self, payload: Any) -> DispatchResult:
        """Contact form: internal notification plus client confirmation"""
        try:
            contact = ContactRequest.from_payload(payload)
            self._require_configuration()
            await self.sender.verify()

            emails = self.renderer.render(contact, self.clock())
            internal_id, client_id = await self._send_pair(
                self._outbound(emails.internal),
                self._outbound(emails.client),
            )
        except ValidationFailed as exc:
            logger.info(f"Rejected contact payload: {'; '.join(exc.errors)}")
            return self._failure(exc, CONTACT_MESSAGES)
        except MailRelayError as exc:
            logger.error(f"Contact request failed ({exc.category.value}): {exc}")
            return self._failure(exc, CONTACT_MESSAGES)

        logger.info(
            f"Contact request from {contact.email} ({contact.company}) delivered: "
            f"internal {internal_id}, client {client_id}"
        )
        return DispatchResult(
            success=True,
            message=CONTACT_MESSAGES[None],
            internal_message_id=internal_id,
            client_message_id=client_id,
        )

    async def _send_pair(self, internal: OutboundMessage, client: OutboundMessage):
        """
        Send both contact messages concurrently

        Returns:
            (internal_message_id, client_message_id)

        Raises:
            TransportError: from the first failing leg, internal before client
        """
        outcomes: List[Union[str, BaseException]] = await asyncio.gather(
            self.sender.send(internal),
            self.sender.send(client),
            return_exceptions=True,
        )

        legs = (('internal', internal), ('client', client))
        failures = []
        for (leg, message), outcome in zip(legs, outcomes):
            recipients = ', '.join(message.recipients)
            if isinstance(outcome, BaseException):
                logger.error(f"Contact {leg} email to {recipients} failed: {outcome}")
                failures.append(outcome)
            else:
                logger.info(f"Contact {leg} email sent to {recipients}: {outcome}")

        if failures:
            first = failures[0]
            if isinstance(first, (TransportError, asyncio.CancelledError)):
                raise first
            raise smtp_error_classifier.classify(first) from first

        return outcomes[0], outcomes[1]


def dispatcher_for(app) -> MailDispatcher:
    """Dispatcher wired to an application's sender, renderer and config"""
    return MailDispatcher(
        sender=app.mail_sender,
        settings=RelaySettings.from_config(app.config),
        renderer=app.contact_renderer,
    )
