import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "email-templates"

_environment = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class EmailData:
    html_content: str
    subject: str


def render_email_template(*, template_name: str, context: dict[str, Any]) -> str:
    return _environment.get_template(template_name).render(**context)


def send_email(
    *,
    email_to: str | list[str],
    subject: str = "",
    html_content: str = "",
) -> None:
    """Deliver one message through the transactional email API.

    Raises ``httpx.HTTPError`` when the provider rejects or cannot be reached.
    """
    if not settings.emails_enabled:
        logger.info("Email delivery disabled; skipping %r to %s", subject, email_to)
        return
    recipients = [email_to] if isinstance(email_to, str) else email_to
    payload = {
        "from": f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>",
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    headers = {
        "Authorization": f"Bearer {settings.EMAIL_API_KEY}",
        "Content-Type": "application/json",
    }
    with httpx.Client(timeout=settings.EMAIL_TIMEOUT_SECONDS) as client:
        response = client.post(settings.EMAIL_API_URL, headers=headers, json=payload)
        response.raise_for_status()
    logger.info("Sent %r to %s", subject, ", ".join(recipients))


def generate_submission_email(*, applicant_name: str, application_id: str) -> EmailData:
    project_name = settings.PROJECT_NAME
    subject = f"{project_name} - Application received"
    html_content = render_email_template(
        template_name="application_submitted.html",
        context={
            "project_name": project_name,
            "applicant_name": applicant_name,
            "application_id": application_id,
        },
    )
    return EmailData(html_content=html_content, subject=subject)
