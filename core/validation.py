# core/validation.py
"""
Declarative request validation for the relay endpoints

Each schema is a list of per-field rules plus schema-level "at least one of"
groups. Every violated constraint is reported so a caller can fix the whole
payload in one round trip.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from email_validator import validate_email, EmailNotValidError

from core.errors import ValidationFailed

logger = logging.getLogger(__name__)

PROJECT_TYPES = ('webapp', 'mobile', 'desktop', 'other')


@dataclass(frozen=True)
class FieldRule:
    """Constraints for a single string field"""
    name: str
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    email: bool = False
    choices: Optional[Tuple[str, ...]] = None

    def check(self, payload: Mapping[str, Any]) -> List[str]:
        """Return every violation for this field (empty when it passes)"""
        label = f'"{self.name}"'

        if self.name not in payload:
            return [f'{label} is required'] if self.required else []

        value = payload[self.name]
        if not isinstance(value, str):
            return [f'{label} must be a string']

        if value == '':
            return [f'{label} is not allowed to be empty']

        # JSON admits lone surrogates; mail bodies and headers must be UTF-8
        try:
            value.encode('utf-8')
        except UnicodeEncodeError:
            return [f'{label} must be a valid UTF-8 string']

        errors = []
        if self.choices is not None and value not in self.choices:
            errors.append(f'{label} must be one of [{", ".join(self.choices)}]')

        if self.min_length is not None and len(value) < self.min_length:
            errors.append(f'{label} length must be at least {self.min_length} characters long')

        if self.max_length is not None and len(value) > self.max_length:
            errors.append(
                f'{label} length must be less than or equal to {self.max_length} characters long'
            )

        if self.email and not is_valid_email(value):
            errors.append(f'{label} must be a valid email')

        return errors


@dataclass(frozen=True)
class Schema:
    """A named set of field rules"""
    name: str
    fields: Tuple[FieldRule, ...]
    require_any: Tuple[Tuple[str, ...], ...] = ()
    allow_unknown: bool = False

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(rule.name for rule in self.fields)


@dataclass
class ValidationOutcome:
    """Normalized payload plus the list of violations"""
    value: Dict[str, str]
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def is_valid_email(value: str) -> bool:
    """Syntax-only address check (no DNS lookups)"""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate(schema: Schema, payload: Any) -> ValidationOutcome:
    """
    Check a payload against a schema

    Args:
        schema: Schema to evaluate
        payload: Decoded JSON body

    Returns:
        ValidationOutcome; ``value`` holds only the declared fields that were supplied
    """
    if not isinstance(payload, Mapping):
        return ValidationOutcome(value={}, errors=['"value" must be of type object'])

    errors: List[str] = []
    for rule in schema.fields:
        errors.extend(rule.check(payload))

    if not schema.allow_unknown:
        known = set(schema.field_names)
        errors.extend(f'"{key}" is not allowed' for key in payload if key not in known)

    for group in schema.require_any:
        if not any(name in payload for name in group):
            errors.append(f'"value" must contain at least one of [{", ".join(group)}]')

    value = {name: payload[name] for name in schema.field_names if name in payload}

    if errors:
        logger.debug(f"{schema.name} payload rejected with {len(errors)} violation(s)")

    return ValidationOutcome(value=value, errors=errors)


def validate_or_raise(schema: Schema, payload: Any) -> Dict[str, str]:
    """Validate and return the normalized value, raising ValidationFailed otherwise"""
    outcome = validate(schema, payload)
    if not outcome.ok:
        raise ValidationFailed(outcome.errors)
    return outcome.value


EMAIL_SCHEMA = Schema(
    name='email',
    fields=(
        FieldRule('to', required=True, email=True),
        FieldRule('subject', required=True, min_length=1, max_length=200),
        FieldRule('text'),
        FieldRule('html'),
        FieldRule('from', email=True),
    ),
    require_any=(('text', 'html'),),
)

CONTACT_SCHEMA = Schema(
    name='contact',
    fields=(
        FieldRule('name', required=True, min_length=2, max_length=100),
        FieldRule('email', required=True, email=True),
        FieldRule('company', required=True, min_length=2, max_length=100),
        FieldRule('projectType', required=True, choices=PROJECT_TYPES),
        FieldRule('budget', required=True),
        FieldRule('deadline', required=True),
        FieldRule('description', required=True, min_length=10, max_length=2000),
        FieldRule('_subject'),
    ),
)


@dataclass(frozen=True)
class EmailRequest:
    """Validated generic send request"""
    to: str
    subject: str
    text: Optional[str] = None
    html: Optional[str] = None
    sender: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> 'EmailRequest':
        value = validate_or_raise(EMAIL_SCHEMA, payload)
        return cls(
            to=value['to'],
            subject=value['subject'],
            text=value.get('text'),
            html=value.get('html'),
            sender=value.get('from'),
        )


@dataclass(frozen=True)
class ContactRequest:
    """Validated contact form submission"""
    name: str
    email: str
    company: str
    project_type: str
    budget: str
    deadline: str
    description: str
    subject_override: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> 'ContactRequest':
        value = validate_or_raise(CONTACT_SCHEMA, payload)
        return cls(
            name=value['name'],
            email=value['email'],
            company=value['company'],
            project_type=value['projectType'],
            budget=value['budget'],
            deadline=value['deadline'],
            description=value['description'],
            subject_override=value.get('_subject'),
        )
