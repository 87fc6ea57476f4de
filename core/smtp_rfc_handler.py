# SMTP failure classification based on RFC 5321 & RFC 4954 reply codes
# Maps aiosmtplib exceptions onto the relay's transport error categories

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import aiosmtplib

from core.errors import ErrorCategory, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SMTPReplyCode:
    """Reply code definition relevant to a failed relay attempt"""
    code: int
    category: ErrorCategory
    description: str
    enhanced_status: Optional[str] = None


# Failure replies we can attribute to a specific cause; everything else is unknown
SMTP_CODES: Dict[int, SMTPReplyCode] = {
    # Connection level
    421: SMTPReplyCode(421, ErrorCategory.TRANSPORT_CONNECTION_FAILED,
                       'Service not available, closing transmission channel', '4.4.2'),

    # Authentication (RFC 4954)
    454: SMTPReplyCode(454, ErrorCategory.TRANSPORT_AUTH_FAILED,
                       'Temporary authentication failure', '4.7.0'),
    530: SMTPReplyCode(530, ErrorCategory.TRANSPORT_AUTH_FAILED,
                       'Authentication required', '5.7.0'),
    534: SMTPReplyCode(534, ErrorCategory.TRANSPORT_AUTH_FAILED,
                       'Authentication mechanism is too weak', '5.7.9'),
    535: SMTPReplyCode(535, ErrorCategory.TRANSPORT_AUTH_FAILED,
                       'Authentication credentials invalid', '5.7.8'),
    538: SMTPReplyCode(538, ErrorCategory.TRANSPORT_AUTH_FAILED,
                       'Encryption required for requested authentication mechanism', '5.7.11'),

    # Message / envelope rejected
    501: SMTPReplyCode(501, ErrorCategory.TRANSPORT_MESSAGE_INVALID,
                       'Syntax error in parameters or arguments', '5.5.4'),
    550: SMTPReplyCode(550, ErrorCategory.TRANSPORT_MESSAGE_INVALID,
                       'Mailbox unavailable (not found, access denied)', '5.1.1'),
    552: SMTPReplyCode(552, ErrorCategory.TRANSPORT_MESSAGE_INVALID,
                       'Exceeded storage allocation', '5.2.2'),
    553: SMTPReplyCode(553, ErrorCategory.TRANSPORT_MESSAGE_INVALID,
                       'Mailbox name not allowed (invalid address syntax)', '5.1.3'),
    554: SMTPReplyCode(554, ErrorCategory.TRANSPORT_MESSAGE_INVALID,
                       'Transaction failed (general failure or policy violation)', '5.0.0'),
}

# Checked in order: authentication errors are also response errors
_EXCEPTION_CATEGORIES: Tuple[Tuple[tuple, ErrorCategory], ...] = (
    ((aiosmtplib.SMTPAuthenticationError,), ErrorCategory.TRANSPORT_AUTH_FAILED),
    ((aiosmtplib.SMTPConnectError,
      aiosmtplib.SMTPServerDisconnected,
      aiosmtplib.SMTPTimeoutError,
      asyncio.TimeoutError,
      OSError), ErrorCategory.TRANSPORT_CONNECTION_FAILED),
    ((aiosmtplib.SMTPRecipientsRefused,
      aiosmtplib.SMTPRecipientRefused,
      aiosmtplib.SMTPSenderRefused,
      aiosmtplib.SMTPDataError), ErrorCategory.TRANSPORT_MESSAGE_INVALID),
)


class SMTPErrorClassifier:
    """Turns raw transport failures into categorized TransportError instances"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        # Enhanced status code pattern (RFC 3463)
        self.enhanced_status_pattern = re.compile(r'([245])\.(\d{1,3})\.(\d{1,3})')

    def categorize_code(self, code: Optional[int]) -> ErrorCategory:
        """Category for a bare SMTP reply code"""
        if code is None:
            return ErrorCategory.TRANSPORT_UNKNOWN

        reply = SMTP_CODES.get(code)
        if reply:
            return reply.category

        return ErrorCategory.TRANSPORT_UNKNOWN

    def enhanced_status(self, message: str) -> Optional[str]:
        match = self.enhanced_status_pattern.search(message or '')
        return match.group(0) if match else None

    def classify(self, exc: BaseException) -> TransportError:
        """
        Map an exception raised while talking to the relay

        Args:
            exc: Exception from aiosmtplib or the socket layer

        Returns:
            TransportError carrying the category, diagnostic text and reply code
        """
        if isinstance(exc, TransportError):
            return exc

        code = getattr(exc, 'code', None)
        if not isinstance(code, int):
            code = None
        detail = str(exc) or exc.__class__.__name__

        category = ErrorCategory.TRANSPORT_UNKNOWN
        for exc_types, mapped in _EXCEPTION_CATEGORIES:
            if isinstance(exc, exc_types):
                category = mapped
                break
        else:
            if isinstance(exc, aiosmtplib.SMTPResponseException):
                category = self.categorize_code(code)

        enhanced = self.enhanced_status(getattr(exc, 'message', '') or detail)
        self.logger.debug(
            f"Classified {exc.__class__.__name__} (code={code}, enhanced={enhanced}) "
            f"as {category.value}"
        )

        return TransportError(category, detail, smtp_code=code)


smtp_error_classifier = SMTPErrorClassifier()
