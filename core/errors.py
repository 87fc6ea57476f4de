# core/errors.py
"""
Error taxonomy shared by the validator, the transport layer and the HTTP surface
"""

from enum import Enum
from typing import List, Optional


class ErrorCategory(Enum):
    """Failure categories reported to callers"""
    RATE_LIMITED = "rate_limited"
    VALIDATION_FAILED = "validation_failed"
    CONFIGURATION_MISSING = "configuration_missing"
    TRANSPORT_AUTH_FAILED = "transport_auth_failed"
    TRANSPORT_CONNECTION_FAILED = "transport_connection_failed"
    TRANSPORT_MESSAGE_INVALID = "transport_message_invalid"
    TRANSPORT_UNKNOWN = "transport_unknown"
    NOT_FOUND = "not_found"
    INTERNAL_ERROR = "internal_error"

    @property
    def is_transport(self) -> bool:
        return self.name.startswith('TRANSPORT_')


# HTTP status used for each category
HTTP_STATUS = {
    ErrorCategory.RATE_LIMITED: 429,
    ErrorCategory.VALIDATION_FAILED: 400,
    ErrorCategory.CONFIGURATION_MISSING: 500,
    ErrorCategory.TRANSPORT_AUTH_FAILED: 500,
    ErrorCategory.TRANSPORT_CONNECTION_FAILED: 500,
    ErrorCategory.TRANSPORT_MESSAGE_INVALID: 500,
    ErrorCategory.TRANSPORT_UNKNOWN: 500,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.INTERNAL_ERROR: 500,
}


class MailRelayError(Exception):
    """Base exception for relay operations"""
    category = ErrorCategory.INTERNAL_ERROR


class ValidationFailed(MailRelayError):
    """Payload violated one or more schema constraints"""
    category = ErrorCategory.VALIDATION_FAILED

    def __init__(self, errors: List[str]):
        super().__init__('; '.join(errors))
        self.errors = list(errors)


class ConfigurationMissing(MailRelayError):
    """SMTP credentials are not configured"""
    category = ErrorCategory.CONFIGURATION_MISSING


class TransportError(MailRelayError):
    """SMTP relay rejected or failed the operation"""

    def __init__(self, category: ErrorCategory, detail: str,
                 smtp_code: Optional[int] = None):
        super().__init__(detail)
        self.category = category
        self.detail = detail
        self.smtp_code = smtp_code
