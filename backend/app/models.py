import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import EmailStr, ValidationInfo, field_validator
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    OFFICER = "officer"
    ADMIN = "admin"


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class PostageMode(str, Enum):
    EMAIL = "email"
    HAND_COLLECTION = "hand_collection"
    DELIVERY = "delivery"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    PRE_APPROVED = "pre-approved"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    PRE_APPROVED = "pre-approved"
    APPROVED = "approved"
    REJECTED = "rejected"


# Shared properties
class UserBase(SQLModel):
    email: EmailStr = Field(unique=True, index=True, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)


# Properties to receive via API on creation
class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)
    role: UserRole = UserRole.OFFICER


class UserUpdateMe(SQLModel):
    full_name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = Field(default=None, max_length=255)


class UserRoleUpdate(SQLModel):
    role: UserRole


class UserBanRequest(SQLModel):
    ban_reason: str | None = Field(default=None, max_length=500)
    ban_expires_in_days: int | None = Field(default=None, ge=1)


class UpdatePassword(SQLModel):
    current_password: str = Field(min_length=8, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


# Database model, database table inferred from class name
class User(UserBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    hashed_password: str
    role: str = Field(default=UserRole.OFFICER.value, max_length=16)
    banned: bool = False
    ban_reason: str | None = Field(default=None, max_length=500)
    ban_expires: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Properties to return via API, id is always required
class UserPublic(UserBase):
    id: uuid.UUID
    role: UserRole
    banned: bool = False
    ban_reason: str | None = None
    ban_expires: datetime | None = None
    created_at: datetime | None = None


class UsersPublic(SQLModel):
    data: list[UserPublic]
    count: int


class ApplicationBase(SQLModel):
    email: EmailStr = Field(max_length=255)
    surname: str = Field(min_length=1, max_length=255)
    firstname: str = Field(min_length=1, max_length=255)
    middlename: str | None = Field(default=None, max_length=255)
    matriculation_number: str = Field(min_length=1, max_length=64, index=True)
    department: str = Field(min_length=1, max_length=255)
    course_of_study: str = Field(min_length=1, max_length=255)
    year_of_graduation: str = Field(min_length=1, max_length=32)
    class_of_degree: str = Field(min_length=1, max_length=128)
    degree_awarded: str = Field(min_length=1, max_length=128)
    reference_number: str | None = Field(default=None, max_length=128)
    remita_rrr: str = Field(min_length=1, max_length=64)


class ApplicationCreate(ApplicationBase):
    sex: Sex
    mode_of_postage: PostageMode
    # Always supplied by the form handler; None when left blank.
    recipient_address: str | None = Field(max_length=1000)
    recipient_email: EmailStr | None = Field(max_length=255)

    @field_validator("recipient_address")
    @classmethod
    def require_address_for_delivery(
        cls, value: str | None, info: ValidationInfo
    ) -> str | None:
        if info.data.get("mode_of_postage") == PostageMode.DELIVERY and not value:
            raise ValueError("Recipient address is required for delivery")
        return value

    @field_validator("recipient_email")
    @classmethod
    def require_email_for_email_postage(
        cls, value: str | None, info: ValidationInfo
    ) -> str | None:
        if info.data.get("mode_of_postage") == PostageMode.EMAIL and not value:
            raise ValueError("Recipient email is required when postage is by email")
        return value


class Application(ApplicationBase, table=True):
    __tablename__ = "application"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    remita_rrr: str = Field(min_length=1, max_length=64, unique=True, index=True)
    sex: str = Field(max_length=16)
    mode_of_postage: str = Field(max_length=32)
    recipient_address: str | None = Field(default=None, max_length=1000)
    recipient_email: str | None = Field(default=None, max_length=255)
    certificate_file: str = Field(min_length=1, max_length=1024)
    payment_receipt_file: str = Field(min_length=1, max_length=1024)


class ApplicationPublic(ApplicationBase):
    id: uuid.UUID
    sex: Sex
    mode_of_postage: PostageMode
    recipient_address: str | None = None
    recipient_email: str | None = None
    certificate_file: str
    payment_receipt_file: str


class ApplicationReviewStateBase(SQLModel):
    status: str = Field(default=ReviewStatus.PENDING.value, max_length=32, index=True)
    processed_document_link: str | None = Field(default=None, max_length=1024)
    reason: str | None = Field(default=None, max_length=2000)
    approved_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ApplicationReviewState(ApplicationReviewStateBase, table=True):
    __tablename__ = "application_hash"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    application_id: uuid.UUID = Field(
        foreign_key="application.id",
        nullable=False,
        unique=True,
        ondelete="CASCADE",
    )
    approved_by: uuid.UUID | None = Field(
        default=None, foreign_key="user.id", ondelete="SET NULL"
    )
    version: int = Field(default=1)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Fields left unset are not written
class ApplicationReviewStateUpdate(SQLModel):
    status: ReviewStatus | None = None
    reason: str | None = Field(default=None, max_length=2000)
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = None
    processed_document_link: str | None = Field(default=None, max_length=1024)


class ApplicationReviewStatePublic(ApplicationReviewStateBase):
    id: uuid.UUID
    application_id: uuid.UUID
    status: ReviewStatus
    approved_by: uuid.UUID | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationWithReviewPublic(SQLModel):
    application: ApplicationPublic
    application_hash: ApplicationReviewStatePublic


class ApplicationDetailPublic(ApplicationWithReviewPublic):
    approver_name: str | None = None


class ApplicationFilter(SQLModel):
    field: str = Field(min_length=1)
    value: str


class PaginationMeta(SQLModel):
    totalItems: int
    totalPages: int
    currentPage: int
    pageSize: int


class ApplicationsEnvelope(SQLModel):
    status: bool = True
    data: list[ApplicationWithReviewPublic]
    meta: PaginationMeta


class ApplicationEnvelope(SQLModel):
    status: bool = True
    data: ApplicationDetailPublic


class ApplicationStatsPublic(SQLModel):
    total: int
    pending: int
    approved: int
    totalUsers: int | None = None


class ApplicationStatsEnvelope(SQLModel):
    status: bool = True
    data: ApplicationStatsPublic


class ApplicationSubmissionResult(SQLModel):
    success: bool
    applicationId: uuid.UUID | None = None
    message: str | None = None
    error: str | None = None
    fieldErrors: dict[str, str] = {}


class ReviewDecisionResult(SQLModel):
    status: bool = True
    data: ApplicationDetailPublic
    message: str
    warning: str | None = None


class UserDetailPublic(UserPublic):
    approvedApplications: list[ApplicationWithReviewPublic] = []


class UserDetailEnvelope(SQLModel):
    status: bool = True
    data: UserDetailPublic


# Generic message
class Message(SQLModel):
    message: str


# JSON payload containing access token
class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"


# Contents of JWT token
class TokenPayload(SQLModel):
    sub: str | None = None
