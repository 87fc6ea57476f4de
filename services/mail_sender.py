# services/mail_sender.py
"""
SMTP transport for the relay

Implements the "mail sender" capability the dispatch pipelines depend on:
verify the relay accepts our credentials, and hand over a fully formed message.
Every failure leaves this module as a categorized TransportError.
"""

import uuid
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, parseaddr

import aiosmtplib

from core.smtp_rfc_handler import smtp_error_classifier

logger = logging.getLogger(__name__)

X_MAILER = 'Contact Relay 1.0'


@dataclass
class OutboundMessage:
    """Everything needed to put one message on the wire"""
    sender: str
    recipients: List[str]
    subject: str
    text: Optional[str] = None
    html: Optional[str] = None
    reply_to: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.recipients:
            raise ValueError("OutboundMessage needs at least one recipient")
        if self.text is None and self.html is None:
            raise ValueError("OutboundMessage needs a text or html body")


def message_domain(address: str) -> str:
    """Domain part of an address, used to scope Message-IDs"""
    _, email_address = parseaddr(address)
    if '@' in email_address:
        return email_address.rsplit('@', 1)[1]
    return 'localhost'


def build_mime_message(message: OutboundMessage):
    """
    Create the MIME structure for an outbound message

    A message with both bodies becomes multipart/alternative (text first, so
    clients prefer the HTML part); a single body is sent as a plain MIMEText.
    """
    if message.text is not None and message.html is not None:
        msg = MIMEMultipart('alternative')
        msg.attach(MIMEText(message.text, 'plain', 'utf-8'))
        msg.attach(MIMEText(message.html, 'html', 'utf-8'))
    elif message.html is not None:
        msg = MIMEText(message.html, 'html', 'utf-8')
    else:
        msg = MIMEText(message.text, 'plain', 'utf-8')

    # Basic headers
    msg['Subject'] = message.subject
    msg['From'] = message.sender
    msg['To'] = ', '.join(message.recipients)
    msg['Date'] = formatdate(localtime=True)
    msg['Message-ID'] = f"<{uuid.uuid4()}@{message_domain(message.sender)}>"

    if message.reply_to:
        msg['Reply-To'] = message.reply_to

    msg['X-Mailer'] = X_MAILER
    for name, value in message.headers.items():
        msg[name] = value

    return msg


class SMTPMailSender:
    """
    aiosmtplib-backed mail sender

    Each operation opens its own connection, so concurrent sends never share
    SMTP session state.
    """

    def __init__(self,
                 host: str,
                 port: int,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 encryption: str = 'tls',
                 validate_certs: bool = False,
                 timeout: float = 60):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.encryption = (encryption or 'tls').lower()
        self.validate_certs = validate_certs
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'SMTPMailSender':
        return cls(
            host=config['SMTP_HOST'],
            port=int(config['SMTP_PORT']),
            username=config.get('SMTP_USER'),
            password=config.get('SMTP_PASS'),
            encryption=config.get('SMTP_ENCRYPTION', 'tls'),
            validate_certs=config.get('SMTP_VALIDATE_CERTS', False),
            timeout=config.get('SMTP_TIMEOUT', 60),
        )

    @property
    def use_tls(self) -> bool:
        """Implicit TLS for port 465 or explicit ssl mode; STARTTLS otherwise"""
        return self.port == 465 or self.encryption == 'ssl'

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            timeout=self.timeout,
            use_tls=self.use_tls,
            validate_certs=self.validate_certs,
        )

    async def _login(self, smtp: aiosmtplib.SMTP) -> None:
        if self.username and self.password:
            await smtp.login(self.username, self.password)

    async def verify(self) -> None:
        """
        Connect and authenticate without sending anything

        Raises:
            TransportError: relay unreachable or credentials rejected
        """
        try:
            async with self._client() as smtp:
                await self._login(smtp)
        except Exception as exc:
            error = smtp_error_classifier.classify(exc)
            logger.warning(f"SMTP verification against {self.host}:{self.port} failed: {error.detail}")
            raise error from exc

        logger.debug(f"SMTP relay {self.host}:{self.port} verified")

    async def send(self, message: OutboundMessage) -> str:
        """
        Deliver one message to the relay

        Returns:
            The Message-ID assigned to the message

        Raises:
            TransportError: categorized delivery failure
        """
        try:
            msg = build_mime_message(message)
            async with self._client() as smtp:
                await self._login(smtp)
                await smtp.send_message(msg)
        except Exception as exc:
            error = smtp_error_classifier.classify(exc)
            logger.error(
                f"SMTP send to {', '.join(message.recipients)} failed "
                f"({error.category.value}): {error.detail}",
                exc_info=True
            )
            raise error from exc

        return msg['Message-ID']
