"""User endpoints."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from uuid import UUID
from ..database import get_db
from ..models import UserProfile
from ..schemas import UserBrief, UserProfileResponse, UserRoleUpdate
from ..auth import PermissionChecker, get_current_user
from ..security import require_entity

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserProfileResponse])
def get_users(
    current_user: UserProfile = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Get all users."""
    users = db.query(UserProfile).order_by(UserProfile.email.asc()).all()
    return [UserProfileResponse.model_validate(u) for u in users]


@router.get("/me", response_model=UserProfileResponse)
def get_me(current_user: UserProfile = Depends(get_current_user)):
    return UserProfileResponse.model_validate(current_user)


@router.get("/admins", response_model=list[UserBrief])
def get_admins(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Admin directory for the request and alert pickers."""
    admins = db.query(UserProfile).filter(UserProfile.role == "admin").order_by(UserProfile.email.asc()).all()
    return [UserBrief.model_validate(u) for u in admins]


@router.put("/{user_id}/role", response_model=UserProfileResponse)
def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    current_user: UserProfile = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    user = require_entity(db, UserProfile, entity_id=user_id, not_found="User not found")
    if user.id == current_user.id and data.role != "admin":
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")
    user.role = data.role
    db.commit()
    return UserProfileResponse.model_validate(user)


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageUsers")),
    db: Session = Depends(get_db)
):
    """Delete a non-admin user profile."""
    user = require_entity(db, UserProfile, entity_id=user_id, not_found="User not found")
    if user.role == "admin":
        raise HTTPException(status_code=400, detail="Admin users cannot be deleted")
    db.delete(user)
    db.commit()
