"""User request endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import PermissionChecker
from ..database import get_db
from ..models import UserProfile
from ..schemas import UserRequestCreate, UserRequestResponse
from ..use_cases.user_requests import (
    create_user_request_use_case,
    list_admin_requests,
    resolve_user_request_use_case,
)

router = APIRouter(prefix="/user-requests", tags=["user-requests"])


@router.post("", response_model=UserRequestResponse, status_code=201)
def create_user_request(
    data: UserRequestCreate,
    current_user: UserProfile = Depends(PermissionChecker("canSubmitRequests")),
    db: Session = Depends(get_db)
):
    request = create_user_request_use_case(
        db=db,
        admin_id=data.admin_id,
        description=data.description,
        current_user=current_user,
    )
    return UserRequestResponse.model_validate(request)


@router.get("/inbox", response_model=list[UserRequestResponse])
def get_request_inbox(
    include_resolved: bool = Query(False),
    current_user: UserProfile = Depends(PermissionChecker("canManageRequests")),
    db: Session = Depends(get_db)
):
    """Requests addressed to the current admin."""
    requests = list_admin_requests(db=db, admin_id=current_user.id, include_resolved=include_resolved)
    return [UserRequestResponse.model_validate(r) for r in requests]


@router.post("/{request_id}/resolve", response_model=UserRequestResponse)
def resolve_user_request(
    request_id: UUID,
    current_user: UserProfile = Depends(PermissionChecker("canManageRequests")),
    db: Session = Depends(get_db)
):
    request = resolve_user_request_use_case(db=db, request_id=request_id, current_user=current_user)
    return UserRequestResponse.model_validate(request)
