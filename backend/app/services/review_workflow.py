"""Review decision rules for English Proficiency applications.

Officers triage (pre-approve or reject); only admins grant final approval.
``approved`` and ``rejected`` are terminal.
"""

import uuid
from datetime import datetime
from enum import Enum

from app.core.errors import Forbidden, InvalidTransition, MissingRequiredInput
from app.models import (
    ApplicationReviewStateUpdate,
    PostageMode,
    ReviewDecision,
    ReviewStatus,
    UserRole,
    get_datetime_utc,
)


class TransitionOutcome(str, Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    INVALID_TRANSITION = "invalid_transition"


_ALLOWED = TransitionOutcome.ALLOWED
_FORBIDDEN = TransitionOutcome.FORBIDDEN

# (current, requested, role) -> outcome; anything absent is an invalid transition.
TRANSITIONS: dict[tuple[ReviewStatus, ReviewDecision, UserRole], TransitionOutcome] = {
    (ReviewStatus.PENDING, ReviewDecision.PRE_APPROVED, UserRole.OFFICER): _ALLOWED,
    (ReviewStatus.PENDING, ReviewDecision.PRE_APPROVED, UserRole.ADMIN): _ALLOWED,
    (ReviewStatus.PENDING, ReviewDecision.APPROVED, UserRole.OFFICER): _FORBIDDEN,
    (ReviewStatus.PENDING, ReviewDecision.APPROVED, UserRole.ADMIN): _ALLOWED,
    (ReviewStatus.PENDING, ReviewDecision.REJECTED, UserRole.OFFICER): _ALLOWED,
    (ReviewStatus.PENDING, ReviewDecision.REJECTED, UserRole.ADMIN): _ALLOWED,
    (ReviewStatus.PRE_APPROVED, ReviewDecision.APPROVED, UserRole.OFFICER): _FORBIDDEN,
    (ReviewStatus.PRE_APPROVED, ReviewDecision.APPROVED, UserRole.ADMIN): _ALLOWED,
    (ReviewStatus.PRE_APPROVED, ReviewDecision.REJECTED, UserRole.OFFICER): _ALLOWED,
    (ReviewStatus.PRE_APPROVED, ReviewDecision.REJECTED, UserRole.ADMIN): _ALLOWED,
}

TERMINAL_STATUSES = frozenset({ReviewStatus.APPROVED, ReviewStatus.REJECTED})


def decide_transition(
    current: ReviewStatus, requested: ReviewDecision, role: UserRole
) -> TransitionOutcome:
    return TRANSITIONS.get(
        (current, requested, role), TransitionOutcome.INVALID_TRANSITION
    )


def document_required(decision: ReviewDecision, mode_of_postage: str) -> bool:
    return (
        decision == ReviewDecision.PRE_APPROVED
        and mode_of_postage == PostageMode.EMAIL.value
    )


def validate_decision(
    *,
    current: ReviewStatus,
    decision: ReviewDecision,
    role: UserRole,
    mode_of_postage: str,
    has_document: bool,
) -> None:
    """Raise if ``decision`` may not be recorded; return quietly otherwise.

    Runs before any upload or write so a refused decision leaves no trace.
    """
    outcome = decide_transition(current, decision, role)
    if outcome == TransitionOutcome.FORBIDDEN:
        raise Forbidden("Only an admin can give final approval to an application")
    if outcome == TransitionOutcome.INVALID_TRANSITION:
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Application has already been {current.value}; "
                "no further decision is allowed"
            )
        raise InvalidTransition(
            f"Cannot move an application from {current.value} to {decision.value}"
        )
    if document_required(decision, mode_of_postage) and not has_document:
        raise MissingRequiredInput(
            "A processed document is required when the certificate is sent by email",
            field_errors={"doc-upload": "Upload the processed document"},
        )


def build_review_patch(
    *,
    current: ReviewStatus,
    decision: ReviewDecision,
    actor_id: uuid.UUID,
    feedback: str | None = None,
    document_link: str | None = None,
    now: datetime | None = None,
) -> ApplicationReviewStateUpdate:
    """Compute the review-state fields a validated decision writes."""
    decided_at = now or get_datetime_utc()

    if decision == ReviewDecision.REJECTED:
        return ApplicationReviewStateUpdate(
            status=ReviewStatus.REJECTED,
            processed_document_link=None,
            approved_by=actor_id,
            approved_at=decided_at,
            reason=feedback,
        )

    if decision == ReviewDecision.APPROVED and current == ReviewStatus.PRE_APPROVED:
        # Ratifying a pre-approval keeps the original reviewer and document.
        patch = ApplicationReviewStateUpdate(status=ReviewStatus.APPROVED)
        if feedback:
            patch.reason = feedback
        if document_link:
            patch.processed_document_link = document_link
            patch.approved_by = actor_id
            patch.approved_at = decided_at
        return patch

    patch = ApplicationReviewStateUpdate(
        status=ReviewStatus(decision.value),
        approved_by=actor_id,
        approved_at=decided_at,
        reason=feedback,
    )
    if document_link:
        patch.processed_document_link = document_link
    return patch
