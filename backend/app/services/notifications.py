import logging
import uuid
from dataclasses import dataclass, field

import httpx
from jinja2 import TemplateError

from app.core.config import settings
from app.models import (
    Application,
    ApplicationReviewState,
    PostageMode,
    ReviewDecision,
)
from app.utils import (
    EmailData,
    generate_submission_email,
    render_email_template,
    send_email,
)

logger = logging.getLogger(__name__)

NOTIFICATION_FAILED_WARNING = (
    "The decision was saved, but the applicant could not be notified by email"
)

SUBJECTS = {
    ReviewDecision.PRE_APPROVED: "Your application has been pre-approved",
    ReviewDecision.APPROVED: "Your application has been approved",
    ReviewDecision.REJECTED: "Your application has been rejected",
}


@dataclass
class ReviewNotification:
    decision: ReviewDecision
    applicant_name: str
    mode_of_postage: str
    feedback: str | None = None
    processed_document_link: str | None = None
    recipients: list[str] = field(default_factory=list)


def build_review_notification(
    *,
    application: Application,
    review_state: ApplicationReviewState,
    decision: ReviewDecision,
    feedback: str | None,
) -> ReviewNotification:
    recipients = [application.email]
    if (
        application.mode_of_postage == PostageMode.EMAIL.value
        and application.recipient_email
        and application.recipient_email not in recipients
    ):
        recipients.append(application.recipient_email)
    return ReviewNotification(
        decision=decision,
        applicant_name=f"{application.firstname} {application.surname}",
        mode_of_postage=application.mode_of_postage,
        feedback=feedback,
        processed_document_link=review_state.processed_document_link,
        recipients=recipients,
    )


def render_review_notification(notification: ReviewNotification) -> EmailData:
    document_url = None
    if notification.processed_document_link:
        document_url = (
            f"{settings.SERVER_HOST.rstrip('/')}{notification.processed_document_link}"
        )
    html_content = render_email_template(
        template_name="review_decision.html",
        context={
            "project_name": settings.PROJECT_NAME,
            "decision": notification.decision.value,
            "applicant_name": notification.applicant_name,
            "feedback": notification.feedback,
            "mode_of_postage": notification.mode_of_postage,
            "document_url": document_url,
        },
    )
    subject = f"{settings.PROJECT_NAME} - {SUBJECTS[notification.decision]}"
    return EmailData(html_content=html_content, subject=subject)


def dispatch_review_notification(notification: ReviewNotification) -> str | None:
    """Send the decision email; return a warning instead of raising on failure."""
    try:
        email_data = render_review_notification(notification)
        send_email(
            email_to=notification.recipients,
            subject=email_data.subject,
            html_content=email_data.html_content,
        )
    except (httpx.HTTPError, TemplateError) as exc:
        logger.warning(
            "Could not send %s notification to %s: %s",
            notification.decision.value,
            ", ".join(notification.recipients),
            exc,
        )
        return NOTIFICATION_FAILED_WARNING
    return None


def send_submission_confirmation(
    *, email_to: str, applicant_name: str, application_id: uuid.UUID
) -> None:
    email_data = generate_submission_email(
        applicant_name=applicant_name, application_id=str(application_id)
    )
    try:
        send_email(
            email_to=email_to,
            subject=email_data.subject,
            html_content=email_data.html_content,
        )
    except httpx.HTTPError as exc:
        logger.warning(
            "Could not send submission confirmation to %s: %s", email_to, exc
        )
