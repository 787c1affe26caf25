"""
User management routes.
Admins list, inspect and delete accounts; users may edit their own profile.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...db.models import Defect, Inspection, User
from ...models.enums import UserRole
from ..dependencies import get_current_user, get_db, require_admin
from ..errors import ConflictError, InvalidRequestError, PermissionDeniedError, ResourceNotFoundError
from ..schemas.auth import UserResponse
from ..schemas.common import Envelope, ListEnvelope
from ..schemas.user import UserUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


@router.get("", response_model=ListEnvelope[UserResponse])
async def list_users(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = db.query(User).order_by(User.created_at.desc()).all()
    return {
        "success": True,
        "count": len(users),
        "data": [UserResponse.model_validate(u) for u in users],
    }


@router.get("/{user_id}", response_model=Envelope[UserResponse])
async def get_user(
    user_id: UUID,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": UserResponse.model_validate(_get_user_or_404(db, user_id))}


@router.put("/{user_id}", response_model=Envelope[UserResponse])
async def update_user(
    user_id: UUID,
    request: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update a user.

    Users may edit their own record; only admins may edit others or change
    ``role`` / ``is_active``.
    """
    is_admin = current_user.role == UserRole.ADMIN
    if current_user.id != user_id and not is_admin:
        raise PermissionDeniedError("Not authorized to update this user")
    if request.touches_privileges and not is_admin:
        raise PermissionDeniedError("Only admins can change role or account status")

    user = _get_user_or_404(db, user_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in changes and changes["name"] != user.name:
        if db.query(User).filter(User.name == changes["name"], User.id != user.id).first():
            raise ConflictError("Name already in use", details={"name": changes["name"]})
    if "email" in changes and changes["email"] != user.email:
        if db.query(User).filter(User.email == changes["email"], User.id != user.id).first():
            raise ConflictError("Email already in use", details={"email": changes["email"]})

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.name} updated by {current_user.name}: {sorted(changes)}")
    return {"success": True, "data": UserResponse.model_validate(user)}


@router.delete("/{user_id}", response_model=Envelope[dict])
async def delete_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if admin.id == user_id:
        raise InvalidRequestError("You cannot delete your own account")

    user = _get_user_or_404(db, user_id)
    inspection_count = db.query(Inspection).filter(Inspection.inspector_id == user.id).count()
    defect_count = (
        db.query(Defect)
        .filter(or_(Defect.reported_by_id == user.id, Defect.resolved_by_id == user.id))
        .count()
    )
    if inspection_count or defect_count:
        raise InvalidRequestError(
            "User has inspections or defect reports on record; deactivate the account instead",
            details={"inspections": inspection_count, "defects": defect_count},
        )

    db.delete(user)
    db.commit()

    logger.info(f"User {user.name} deleted by {admin.name}")
    return {"success": True, "data": {}}
