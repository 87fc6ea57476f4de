# core/template_engine.py
"""
Contact form email rendering

Builds the internal notification and the client confirmation from a validated
contact request. Templates are inline Jinja2 strings rendered with autoescaping,
so every submitted value reaches the HTML body escaped. Rendering is pure: the
same request and timestamp always produce the same output.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup
from jinja2 import Environment, StrictUndefined

from core.validation import ContactRequest

logger = logging.getLogger(__name__)


PROJECT_TYPE_LABELS = {
    'webapp': 'Web Application',
    'mobile': 'Mobile Application',
    'desktop': 'Desktop Application',
    'other': 'Other',
}

INTERNAL_SUBJECT = 'New contact request: {name} - {company}'
CLIENT_SUBJECT = 'Request confirmation - {company} | {brand}'


INTERNAL_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; background-color: #f9f9f9; padding: 20px;">
  <div style="background-color: white; padding: 30px; border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1);">
    <h2 style="color: #2c3e50; text-align: center; margin-bottom: 30px;">New Contact Request</h2>

    <div style="background-color: #ecf0f1; padding: 20px; border-radius: 8px; margin-bottom: 20px;">
      <h3 style="color: #34495e; margin-top: 0;">Client Information</h3>
      <p><strong>Name:</strong> {{ name }}</p>
      <p><strong>Email:</strong> <a href="mailto:{{ email }}">{{ email }}</a></p>
      <p><strong>Company:</strong> {{ company }}</p>
    </div>

    <div style="background-color: #e8f6f3; padding: 20px; border-radius: 8px; margin-bottom: 20px;">
      <h3 style="color: #27ae60; margin-top: 0;">Project Details</h3>
      <p><strong>Project type:</strong> {{ project_type }}</p>
      <p><strong>Budget:</strong> {{ budget }}</p>
      <p><strong>Deadline:</strong> {{ deadline }}</p>
    </div>

    <div style="background-color: #fef9e7; padding: 20px; border-radius: 8px;">
      <h3 style="color: #f39c12; margin-top: 0;">Project Description</h3>
      <p style="white-space: pre-wrap; line-height: 1.6;">{{ description }}</p>
    </div>

    <div style="text-align: center; margin-top: 30px; padding-top: 20px; border-top: 1px solid #bdc3c7;">
      <p style="color: #7f8c8d; font-size: 12px;">
        Received at: {{ received_at }}<br>
        {{ brand }} Contact System
      </p>
    </div>
  </div>
</div>
"""

CLIENT_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; background-color: #f8f9fa; padding: 20px;">
  <div style="background-color: white; padding: 30px; border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1);">
    <div style="text-align: center; margin-bottom: 30px;">
      <h2 style="color: #2c3e50; margin-bottom: 10px;">We have received your request!</h2>
      <p style="color: #7f8c8d;">Thank you for your trust</p>
    </div>

    <div style="background-color: #e8f6f3; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
      <h3 style="color: #27ae60; margin-top: 0;">Hello {{ name }}!</h3>
      <p style="line-height: 1.6;">
        We received your request for a <strong>{{ project_type }}</strong>
        and our team will review it as soon as possible.
      </p>
    </div>

    <div style="background-color: #ecf0f1; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
      <h4 style="color: #34495e; margin-top: 0;">Summary of your request:</h4>
      <ul style="list-style: none; padding: 0;">
        <li style="padding: 5px 0;"><strong>Company:</strong> {{ company }}</li>
        <li style="padding: 5px 0;"><strong>Budget:</strong> {{ budget }}</li>
        <li style="padding: 5px 0;"><strong>Deadline:</strong> {{ deadline }}</li>
      </ul>
    </div>

    <div style="background-color: #fff3cd; padding: 20px; border-radius: 8px; margin-bottom: 25px;">
      <h4 style="color: #856404; margin-top: 0;">What happens next?</h4>
      <ul style="color: #856404; line-height: 1.6;">
        <li>We analyse your request in detail</li>
        <li>We contact you within <strong>24 hours</strong></li>
        <li>We schedule a call to better understand your needs</li>
        <li>We send you a tailored offer</li>
      </ul>
    </div>

    {% if contact_address %}
    <div style="text-align: center; margin-bottom: 25px;">
      <p style="color: #2c3e50; line-height: 1.6;">
        <strong>Urgent questions?</strong><br>
        <a href="mailto:{{ contact_address }}" style="color: #3498db;">{{ contact_address }}</a>
      </p>
    </div>
    {% endif %}

    <div style="text-align: center; padding-top: 20px; border-top: 1px solid #bdc3c7;">
      <p style="color: #7f8c8d; font-size: 12px; line-height: 1.4;">
        Best regards,<br>
        <strong>The {{ brand }} Team</strong>
      </p>
    </div>
  </div>
</div>
"""


@dataclass(frozen=True)
class RenderedEmail:
    """A fully rendered message body with its addressing"""
    to: List[str]
    subject: str
    html: str
    text: str
    reply_to: Optional[str] = None


@dataclass(frozen=True)
class ContactEmails:
    """Both messages produced for one contact submission"""
    internal: RenderedEmail
    client: RenderedEmail


def header_safe(value: str) -> str:
    """Collapse line breaks so user input cannot inject extra headers"""
    return re.sub(r'\s*[\r\n]+\s*', ' ', value).strip()


def format_received_at(moment: datetime) -> str:
    return moment.strftime('%d.%m.%Y, %H:%M:%S')


def html_to_text(html_content: str) -> str:
    """
    Convert HTML to plain text for the text/plain alternative part
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, 'html.parser')

    for br in soup.find_all('br'):
        br.replace_with('\n')

    for p in soup.find_all('p'):
        p.insert_after('\n\n')

    for header in soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6']):
        header.insert_before('\n')
        header.insert_after('\n')

    for li in soup.find_all('li'):
        li.insert_before('- ')
        li.insert_after('\n')

    # mailto links read better as plain addresses
    for link in soup.find_all('a', href=True):
        link_text = link.get_text()
        href = link['href']
        if href.startswith('mailto:') and href[len('mailto:'):] == link_text:
            continue
        if href != link_text:
            link.replace_with(f"{link_text} ({href})")

    text = soup.get_text()

    text = re.sub(r'[ \t]+', ' ', text)         # Normalize spaces
    text = re.sub(r' *\n *', '\n', text)        # Trim around line breaks
    text = re.sub(r'\n{3,}', '\n\n', text)      # Collapse blank runs
    return text.strip()


class ContactTemplateRenderer:
    """
    Renders the two contact-form emails

    Args:
        company_name: Brand shown in subjects and signatures
        internal_recipients: Addresses receiving the internal notification
    """

    def __init__(self, company_name: str, internal_recipients: Sequence[str]):
        if not internal_recipients:
            raise ValueError("At least one internal recipient is required")

        self.company_name = company_name
        self.internal_recipients = list(internal_recipients)

        self.env = Environment(
            autoescape=True,
            undefined=StrictUndefined,  # Fail on undefined variables
            trim_blocks=True,
            lstrip_blocks=True,
        )

        self._internal = self.env.from_string(INTERNAL_TEMPLATE)
        self._client = self.env.from_string(CLIENT_TEMPLATE)

    def _context(self, contact: ContactRequest) -> dict:
        return {
            'name': contact.name,
            'email': contact.email,
            'company': contact.company,
            'project_type': PROJECT_TYPE_LABELS.get(contact.project_type, contact.project_type),
            'budget': contact.budget,
            'deadline': contact.deadline,
            'description': contact.description,
            'brand': self.company_name,
        }

    def internal_subject(self, contact: ContactRequest) -> str:
        if contact.subject_override:
            return header_safe(contact.subject_override)
        return header_safe(INTERNAL_SUBJECT.format(name=contact.name, company=contact.company))

    def client_subject(self, contact: ContactRequest) -> str:
        return header_safe(CLIENT_SUBJECT.format(company=contact.company, brand=self.company_name))

    def render(self, contact: ContactRequest, received_at: datetime) -> ContactEmails:
        """
        Render both messages for a validated submission

        Args:
            contact: Validated contact request
            received_at: Submission time printed in the internal notification

        Returns:
            ContactEmails with the internal notification and client confirmation
        """
        context = self._context(contact)

        internal_html = self._internal.render(
            received_at=format_received_at(received_at),
            **context
        )
        client_html = self._client.render(
            contact_address=self.internal_recipients[0],
            **context
        )

        emails = ContactEmails(
            internal=RenderedEmail(
                to=list(self.internal_recipients),
                subject=self.internal_subject(contact),
                html=internal_html,
                text=html_to_text(internal_html),
                reply_to=contact.email,
            ),
            client=RenderedEmail(
                to=[contact.email],
                subject=self.client_subject(contact),
                html=client_html,
                text=html_to_text(client_html),
            ),
        )

        logger.debug(
            f"Rendered contact emails for {contact.company}: "
            f"internal {len(internal_html):,} bytes, client {len(client_html):,} bytes"
        )
        return emails
