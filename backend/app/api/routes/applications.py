import logging
import uuid
from typing import Any

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
)
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app import crud
from app.api.deps import CurrentRole, CurrentUser, SessionDep, get_current_user
from app.core.errors import ServiceError, ValidationFailed, field_errors_from
from app.models import (
    ApplicationCreate,
    ApplicationDetailPublic,
    ApplicationEnvelope,
    ApplicationPublic,
    ApplicationReviewStatePublic,
    ApplicationsEnvelope,
    ApplicationStatsEnvelope,
    ApplicationSubmissionResult,
    ApplicationWithReviewPublic,
    PaginationMeta,
    ReviewDecision,
    ReviewDecisionResult,
    ReviewStatus,
    UserRole,
)
from app.services.application_filters import parse_filters
from app.services.notifications import (
    build_review_notification,
    dispatch_review_notification,
    send_submission_confirmation,
)
from app.services.review_workflow import build_review_patch, validate_decision
from app.services.storage import (
    CERTIFICATES,
    PROCESSED_DOCUMENTS,
    RECEIPTS,
    read_upload,
    remove_upload,
    store_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

DECISION_MESSAGES = {
    ReviewDecision.PRE_APPROVED: "Application pre-approved successfully",
    ReviewDecision.APPROVED: "Application approved successfully",
    ReviewDecision.REJECTED: "Application rejected successfully",
}


def map_application(record: crud.ApplicationRecord) -> ApplicationWithReviewPublic:
    return ApplicationWithReviewPublic(
        application=ApplicationPublic.model_validate(record.application),
        application_hash=ApplicationReviewStatePublic.model_validate(
            record.review_state
        ),
    )


def map_application_detail(record: crud.ApplicationRecord) -> ApplicationDetailPublic:
    return ApplicationDetailPublic(
        application=ApplicationPublic.model_validate(record.application),
        application_hash=ApplicationReviewStatePublic.model_validate(
            record.review_state
        ),
        approver_name=record.approver_name,
    )


def clamp_pagination(page: int, page_size: int) -> tuple[int, int]:
    if page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    return max(page, 1), min(page_size, MAX_PAGE_SIZE)


def get_application_or_404(
    *, session: SessionDep, application_id: uuid.UUID
) -> crud.ApplicationRecord:
    record = crud.get_application(session=session, application_id=application_id)
    if not record:
        raise HTTPException(status_code=404, detail="Application not found")
    return record


@router.get(
    "/",
    dependencies=[Depends(get_current_user)],
    response_model=ApplicationsEnvelope,
)
def read_applications(
    session: SessionDep,
    page: int = 1,
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, alias="pageSize"),
    filters: str | None = None,
) -> Any:
    page, page_size = clamp_pagination(page, page_size)
    parsed_filters = parse_filters(filters)
    records, total_items, total_pages = crud.list_applications(
        session=session, page=page, page_size=page_size, filters=parsed_filters
    )
    return ApplicationsEnvelope(
        data=[map_application(record) for record in records],
        meta=PaginationMeta(
            totalItems=total_items,
            totalPages=total_pages,
            currentPage=page,
            pageSize=page_size,
        ),
    )


@router.post("/", response_model=ApplicationSubmissionResult)
async def create_application(
    *,
    session: SessionDep,
    background_tasks: BackgroundTasks,
    certificate_file: UploadFile | None = File(default=None),
    payment_receipt_file: UploadFile | None = File(default=None),
    email: str | None = Form(default=None),
    surname: str | None = Form(default=None),
    firstname: str | None = Form(default=None),
    middlename: str | None = Form(default=None),
    sex: str | None = Form(default=None),
    matriculation_number: str | None = Form(default=None),
    department: str | None = Form(default=None),
    course_of_study: str | None = Form(default=None),
    year_of_graduation: str | None = Form(default=None),
    class_of_degree: str | None = Form(default=None),
    degree_awarded: str | None = Form(default=None),
    reference_number: str | None = Form(default=None),
    recipient_address: str | None = Form(default=None),
    mode_of_postage: str | None = Form(default=None),
    recipient_email: str | None = Form(default=None),
    remita_rrr: str | None = Form(default=None),
) -> Any:
    form_values = {
        "email": email,
        "surname": surname,
        "firstname": firstname,
        "middlename": middlename,
        "sex": sex,
        "matriculation_number": matriculation_number,
        "department": department,
        "course_of_study": course_of_study,
        "year_of_graduation": year_of_graduation,
        "class_of_degree": class_of_degree,
        "degree_awarded": degree_awarded,
        "reference_number": reference_number,
        "recipient_address": recipient_address,
        "mode_of_postage": mode_of_postage,
        "recipient_email": recipient_email,
        "remita_rrr": remita_rrr,
    }
    # Blank inputs count as missing.
    form_values = {
        name: value.strip() if value and value.strip() else None
        for name, value in form_values.items()
    }

    field_errors: dict[str, str] = {}
    application_in: ApplicationCreate | None = None
    try:
        application_in = ApplicationCreate.model_validate(form_values)
    except ValidationError as exc:
        field_errors.update(field_errors_from(exc.errors()))
    if certificate_file is None:
        field_errors["certificate_file"] = "Certificate file is required."
    if payment_receipt_file is None:
        field_errors["payment_receipt_file"] = "Payment receipt file is required."
    if (
        field_errors
        or application_in is None
        or certificate_file is None
        or payment_receipt_file is None
    ):
        raise ValidationFailed(
            "Validation failed. Please check the highlighted fields.",
            field_errors=field_errors,
        )

    certificate_content = await read_upload(
        certificate_file, field_name="certificate_file"
    )
    receipt_content = await read_upload(
        payment_receipt_file, field_name="payment_receipt_file"
    )

    certificate_path = store_upload(
        content=certificate_content,
        filename=certificate_file.filename,
        subfolder=CERTIFICATES,
    )
    try:
        receipt_path = store_upload(
            content=receipt_content,
            filename=payment_receipt_file.filename,
            subfolder=RECEIPTS,
        )
    except ServiceError:
        remove_upload(certificate_path)
        raise

    try:
        record = crud.create_application(
            session=session,
            application_in=application_in,
            certificate_path=certificate_path,
            receipt_path=receipt_path,
        )
    except ServiceError:
        remove_upload(certificate_path)
        remove_upload(receipt_path)
        raise

    application = record.application
    logger.info("Application %s submitted", application.id)
    background_tasks.add_task(
        send_submission_confirmation,
        email_to=application.email,
        applicant_name=f"{application.firstname} {application.surname}",
        application_id=application.id,
    )
    return ApplicationSubmissionResult(
        success=True,
        applicationId=application.id,
        message="Application submitted successfully!",
    )


@router.get(
    "/stats",
    response_model=ApplicationStatsEnvelope,
    response_model_exclude_none=True,
)
def read_application_stats(session: SessionDep, role: CurrentRole) -> Any:
    stats = crud.get_application_stats(
        session=session, include_users=role == UserRole.ADMIN
    )
    return ApplicationStatsEnvelope(data=stats)


@router.get(
    "/{application_id}",
    dependencies=[Depends(get_current_user)],
    response_model=ApplicationEnvelope,
)
def read_application(session: SessionDep, application_id: uuid.UUID) -> Any:
    record = get_application_or_404(session=session, application_id=application_id)
    return ApplicationEnvelope(data=map_application_detail(record))


@router.post("/{application_id}", response_model=ReviewDecisionResult)
async def submit_review_decision(
    *,
    session: SessionDep,
    current_user: CurrentUser,
    role: CurrentRole,
    application_id: uuid.UUID,
    decision: ReviewDecision = Form(...),
    feedback: str | None = Form(default=None),
    expected_version: int | None = Form(default=None),
    processed_document: UploadFile | None = File(default=None, alias="doc-upload"),
) -> Any:
    record = get_application_or_404(session=session, application_id=application_id)
    current_status = ReviewStatus(record.review_state.status)
    feedback = feedback.strip() if feedback and feedback.strip() else None

    validate_decision(
        current=current_status,
        decision=decision,
        role=role,
        mode_of_postage=record.application.mode_of_postage,
        has_document=processed_document is not None,
    )

    document_link = None
    if processed_document is not None:
        content = await read_upload(processed_document, field_name="doc-upload")
        document_link = store_upload(
            content=content,
            filename=processed_document.filename,
            subfolder=PROCESSED_DOCUMENTS,
        )

    patch = build_review_patch(
        current=current_status,
        decision=decision,
        actor_id=current_user.id,
        feedback=feedback,
        document_link=document_link,
    )
    try:
        review_state = crud.update_review_state(
            session=session,
            application_id=application_id,
            patch=patch,
            expected_version=(
                expected_version
                if expected_version is not None
                else record.review_state.version
            ),
        )
    except ServiceError:
        if document_link:
            remove_upload(document_link)
        raise
    if review_state is None:
        raise HTTPException(status_code=404, detail="Application not found")

    logger.info(
        "User %s recorded %s on application %s (was %s)",
        current_user.id,
        decision.value,
        application_id,
        current_status.value,
    )

    notification = build_review_notification(
        application=record.application,
        review_state=review_state,
        decision=decision,
        feedback=feedback,
    )
    warning = await run_in_threadpool(dispatch_review_notification, notification)

    updated = get_application_or_404(session=session, application_id=application_id)
    return ReviewDecisionResult(
        data=map_application_detail(updated),
        message=DECISION_MESSAGES[decision],
        warning=warning,
    )
