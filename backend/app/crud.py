import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, func, select

from app.core.errors import ConstraintViolation, PersistenceError, ReviewConflict
from app.core.security import get_password_hash, verify_password
from app.models import (
    Application,
    ApplicationCreate,
    ApplicationFilter,
    ApplicationReviewState,
    ApplicationReviewStateUpdate,
    ApplicationStatsPublic,
    ReviewStatus,
    User,
    UserCreate,
    UserUpdateMe,
    get_datetime_utc,
)
from app.services.application_filters import build_filter_clauses, page_count

logger = logging.getLogger(__name__)

DUPLICATE_RRR_MESSAGE = "An application with this Remita RRR has already been submitted"


class ApplicationRecord(NamedTuple):
    application: Application
    review_state: ApplicationReviewState
    approver_name: str | None = None


def create_user(*, session: Session, user_create: UserCreate) -> User:
    db_obj = User.model_validate(
        user_create,
        update={
            "hashed_password": get_password_hash(user_create.password),
            "role": user_create.role.value,
        },
    )
    session.add(db_obj)
    session.commit()
    session.refresh(db_obj)
    return db_obj


def update_user(
    *, session: Session, db_user: User, user_in: UserUpdateMe | dict[str, Any]
) -> User:
    user_data = (
        user_in if isinstance(user_in, dict) else user_in.model_dump(exclude_unset=True)
    )
    extra_data = {}
    if "password" in user_data:
        password = user_data.pop("password")
        extra_data["hashed_password"] = get_password_hash(password)
    db_user.sqlmodel_update(user_data, update=extra_data)
    session.add(db_user)
    session.commit()
    session.refresh(db_user)
    return db_user


def get_user_by_email(*, session: Session, email: str) -> User | None:
    statement = select(User).where(User.email == email)
    session_user = session.exec(statement).first()
    return session_user


def authenticate(*, session: Session, email: str, password: str) -> User | None:
    db_user = get_user_by_email(session=session, email=email)
    if not db_user:
        return None
    verified, updated_password_hash = verify_password(password, db_user.hashed_password)
    if not verified:
        return None
    if updated_password_hash:
        db_user.hashed_password = updated_password_hash
        session.add(db_user)
        session.commit()
        session.refresh(db_user)
    return db_user


def list_users(
    *, session: Session, skip: int = 0, limit: int = 100
) -> tuple[Sequence[User], int]:
    count = session.exec(select(func.count()).select_from(User)).one()
    users = session.exec(
        select(User).order_by(col(User.created_at).desc()).offset(skip).limit(limit)
    ).all()
    return users, count


def is_ban_active(user: User, *, now: datetime | None = None) -> bool:
    if not user.banned:
        return False
    if user.ban_expires is None:
        return True
    expires = user.ban_expires
    # SQLite hands timestamps back without tzinfo; they are stored as UTC.
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires > (now or get_datetime_utc())


def set_user_ban(
    *,
    session: Session,
    db_user: User,
    ban_reason: str | None,
    expires_in_days: int | None = None,
) -> User:
    db_user.banned = True
    db_user.ban_reason = ban_reason
    db_user.ban_expires = (
        get_datetime_utc() + timedelta(days=expires_in_days)
        if expires_in_days
        else None
    )
    session.add(db_user)
    session.commit()
    session.refresh(db_user)
    return db_user


def lift_user_ban(*, session: Session, db_user: User) -> User:
    db_user.banned = False
    db_user.ban_reason = None
    db_user.ban_expires = None
    session.add(db_user)
    session.commit()
    session.refresh(db_user)
    return db_user


def initial_review_state(application_id: uuid.UUID) -> ApplicationReviewState:
    return ApplicationReviewState(
        application_id=application_id, status=ReviewStatus.PENDING.value
    )


def create_application(
    *,
    session: Session,
    application_in: ApplicationCreate,
    certificate_path: str,
    receipt_path: str,
) -> ApplicationRecord:
    """Insert an application and its pending review state in one transaction."""
    duplicate = session.exec(
        select(Application.id).where(
            Application.remita_rrr == application_in.remita_rrr
        )
    ).first()
    if duplicate is not None:
        raise ConstraintViolation(DUPLICATE_RRR_MESSAGE)

    application = Application.model_validate(
        application_in.model_dump(mode="json"),
        update={
            "certificate_file": certificate_path,
            "payment_receipt_file": receipt_path,
        },
    )
    review_state = initial_review_state(application.id)
    try:
        session.add(application)
        session.flush()
        session.add(review_state)
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        if "remita_rrr" in str(exc.orig):
            raise ConstraintViolation(DUPLICATE_RRR_MESSAGE) from exc
        logger.exception("Application insert rolled back")
        raise PersistenceError(f"Failed to create application: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Application insert rolled back")
        raise PersistenceError(f"Failed to create application: {exc}") from exc

    session.refresh(application)
    session.refresh(review_state)
    return ApplicationRecord(application=application, review_state=review_state)


def get_application(
    *, session: Session, application_id: uuid.UUID
) -> ApplicationRecord | None:
    statement = (
        select(Application, ApplicationReviewState, User.full_name)
        .join(
            ApplicationReviewState,
            col(ApplicationReviewState.application_id) == col(Application.id),
        )
        .join(
            User, col(ApplicationReviewState.approved_by) == col(User.id), isouter=True
        )
        .where(Application.id == application_id)
    )
    row = session.exec(statement).first()
    if row is None:
        return None
    application, review_state, approver_name = row
    return ApplicationRecord(
        application=application,
        review_state=review_state,
        approver_name=approver_name,
    )


def list_applications(
    *,
    session: Session,
    page: int,
    page_size: int,
    filters: Sequence[ApplicationFilter] = (),
) -> tuple[list[ApplicationRecord], int, int]:
    """Return one page of applications plus ``(total_items, total_pages)``.

    The row fetch and the count share the same predicate list so the
    pagination metadata always describes the filtered result set.
    """
    clauses = build_filter_clauses(filters)
    join_clause = col(ApplicationReviewState.application_id) == col(Application.id)

    count_statement = (
        select(func.count())
        .select_from(Application)
        .join(ApplicationReviewState, join_clause)
        .where(*clauses)
    )
    total_items = session.exec(count_statement).one()

    statement = (
        select(Application, ApplicationReviewState)
        .join(ApplicationReviewState, join_clause)
        .where(*clauses)
        .order_by(
            col(ApplicationReviewState.created_at).desc(),
            col(ApplicationReviewState.id).desc(),
        )
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = [
        ApplicationRecord(application=application, review_state=review_state)
        for application, review_state in session.exec(statement).all()
    ]
    return rows, total_items, page_count(total_items, page_size)


def list_applications_approved_by(
    *, session: Session, user_id: uuid.UUID
) -> list[ApplicationRecord]:
    statement = (
        select(Application, ApplicationReviewState)
        .join(
            ApplicationReviewState,
            col(ApplicationReviewState.application_id) == col(Application.id),
        )
        .where(ApplicationReviewState.approved_by == user_id)
        .order_by(col(ApplicationReviewState.approved_at).desc())
    )
    return [
        ApplicationRecord(application=application, review_state=review_state)
        for application, review_state in session.exec(statement).all()
    ]


def update_review_state(
    *,
    session: Session,
    application_id: uuid.UUID,
    patch: ApplicationReviewStateUpdate,
    expected_version: int | None = None,
) -> ApplicationReviewState | None:
    """Apply ``patch`` if nobody else recorded a decision since ``expected_version``.

    Returns ``None`` for an unknown application. Raises ``ReviewConflict`` when
    the stored version moved on (the losing writer changes nothing).
    """
    review_state = session.exec(
        select(ApplicationReviewState).where(
            ApplicationReviewState.application_id == application_id
        )
    ).first()
    if review_state is None:
        return None

    values = patch.model_dump(exclude_unset=True)
    if values.get("status") is not None:
        values["status"] = ReviewStatus(values["status"]).value
    version = review_state.version if expected_version is None else expected_version

    statement = (
        update(ApplicationReviewState)
        .where(col(ApplicationReviewState.application_id) == application_id)
        .where(col(ApplicationReviewState.version) == version)
        .values(
            **values,
            updated_at=get_datetime_utc(),
            version=col(ApplicationReviewState.version) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = session.execute(statement)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Review state update rolled back for %s", application_id)
        raise PersistenceError(f"Failed to record decision: {exc}") from exc

    if result.rowcount == 0:
        raise ReviewConflict(
            "Another decision was recorded for this application; reload and try again"
        )
    session.refresh(review_state)
    return review_state


def get_application_stats(
    *, session: Session, include_users: bool = False
) -> ApplicationStatsPublic:
    counts: dict[str, int] = dict(
        session.exec(
            select(ApplicationReviewState.status, func.count()).group_by(
                ApplicationReviewState.status
            )
        ).all()
    )
    stats = ApplicationStatsPublic(
        total=sum(counts.values()),
        pending=counts.get(ReviewStatus.PENDING.value, 0),
        approved=counts.get(ReviewStatus.APPROVED.value, 0),
    )
    if include_users:
        stats.totalUsers = session.exec(select(func.count()).select_from(User)).one()
    return stats
