import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app import crud
from app.api.deps import (
    CurrentAdmin,
    CurrentRole,
    CurrentUser,
    SessionDep,
    get_current_active_admin,
)
from app.api.routes.applications import map_application
from app.core.security import get_password_hash, verify_password
from app.models import (
    Message,
    UpdatePassword,
    User,
    UserBanRequest,
    UserCreate,
    UserDetailEnvelope,
    UserDetailPublic,
    UserPublic,
    UserRole,
    UserRoleUpdate,
    UsersPublic,
    UserUpdateMe,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def get_user_or_404(*, session: SessionDep, user_id: uuid.UUID) -> User:
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "/",
    dependencies=[Depends(get_current_active_admin)],
    response_model=UsersPublic,
)
def read_users(session: SessionDep, skip: int = 0, limit: int = 20) -> Any:
    """
    Retrieve officers and admins.
    """
    users, count = crud.list_users(session=session, skip=skip, limit=limit)
    return UsersPublic(data=users, count=count)


@router.post(
    "/", dependencies=[Depends(get_current_active_admin)], response_model=UserPublic
)
def create_user(*, session: SessionDep, user_in: UserCreate) -> Any:
    """
    Create an officer or admin account.
    """
    user = crud.get_user_by_email(session=session, email=user_in.email)
    if user:
        raise HTTPException(
            status_code=400,
            detail="The user with this email already exists in the system.",
        )
    user = crud.create_user(session=session, user_create=user_in)
    logger.info("Created %s account %s", user.role, user.id)
    return user


@router.get("/me", response_model=UserPublic)
def read_user_me(current_user: CurrentUser) -> Any:
    """
    Get current user.
    """
    return current_user


@router.patch("/me", response_model=UserPublic)
def update_user_me(
    *, session: SessionDep, user_in: UserUpdateMe, current_user: CurrentUser
) -> Any:
    """
    Update own profile.
    """
    if user_in.email:
        existing_user = crud.get_user_by_email(session=session, email=user_in.email)
        if existing_user and existing_user.id != current_user.id:
            raise HTTPException(
                status_code=409, detail="User with this email already exists"
            )
    return crud.update_user(session=session, db_user=current_user, user_in=user_in)


@router.patch("/me/password", response_model=Message)
def update_password_me(
    *, session: SessionDep, body: UpdatePassword, current_user: CurrentUser
) -> Any:
    """
    Update own password.
    """
    verified, _ = verify_password(body.current_password, current_user.hashed_password)
    if not verified:
        raise HTTPException(status_code=400, detail="Incorrect password")
    if body.current_password == body.new_password:
        raise HTTPException(
            status_code=400, detail="New password cannot be the same as the current one"
        )
    current_user.hashed_password = get_password_hash(body.new_password)
    session.add(current_user)
    session.commit()
    return Message(message="Password updated successfully")


@router.get("/{user_id}", response_model=UserDetailEnvelope)
def read_user_by_id(
    user_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    role: CurrentRole,
) -> Any:
    """
    Get a reviewer together with the applications they decided.
    """
    if role != UserRole.ADMIN and user_id != current_user.id:
        raise HTTPException(
            status_code=403,
            detail="The user doesn't have enough privileges",
        )
    user = get_user_or_404(session=session, user_id=user_id)
    approved = crud.list_applications_approved_by(session=session, user_id=user.id)
    detail = UserDetailPublic.model_validate(
        user,
        update={
            "approvedApplications": [map_application(record) for record in approved]
        },
    )
    return UserDetailEnvelope(data=detail)


@router.patch("/{user_id}/role", response_model=UserPublic)
def update_user_role(
    *,
    session: SessionDep,
    user_id: uuid.UUID,
    body: UserRoleUpdate,
    current_user: CurrentAdmin,
) -> Any:
    if user_id == current_user.id:
        raise HTTPException(
            status_code=403, detail="Admins are not allowed to change their own role"
        )
    user = get_user_or_404(session=session, user_id=user_id)
    return crud.update_user(
        session=session, db_user=user, user_in={"role": body.role.value}
    )


@router.post("/{user_id}/ban", response_model=UserPublic)
def ban_user(
    *,
    session: SessionDep,
    user_id: uuid.UUID,
    body: UserBanRequest,
    current_user: CurrentAdmin,
) -> Any:
    if user_id == current_user.id:
        raise HTTPException(
            status_code=403, detail="Admins are not allowed to ban themselves"
        )
    user = get_user_or_404(session=session, user_id=user_id)
    user = crud.set_user_ban(
        session=session,
        db_user=user,
        ban_reason=body.ban_reason,
        expires_in_days=body.ban_expires_in_days,
    )
    logger.info("User %s banned by %s", user.id, current_user.id)
    return user


@router.post(
    "/{user_id}/unban",
    dependencies=[Depends(get_current_active_admin)],
    response_model=UserPublic,
)
def unban_user(*, session: SessionDep, user_id: uuid.UUID) -> Any:
    user = get_user_or_404(session=session, user_id=user_id)
    return crud.lift_user_ban(session=session, db_user=user)


@router.delete("/{user_id}", response_model=Message)
def delete_user(
    session: SessionDep, current_user: CurrentAdmin, user_id: uuid.UUID
) -> Any:
    """
    Delete a user.
    """
    if user_id == current_user.id:
        raise HTTPException(
            status_code=403, detail="Admins are not allowed to delete themselves"
        )
    user = get_user_or_404(session=session, user_id=user_id)
    session.delete(user)
    session.commit()
    return Message(message="User deleted successfully")
