"""User-to-admin requests."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ..domain_errors import DomainError, validation_error
from ..models import UserProfile, UserRequest
from ..services.email_outbox import enqueue_email
from ..services.email_templates import user_request_email
from ..services.notification_bus import UserRequestCreated, UserRequestResolved, notification_bus


def create_user_request_use_case(
    *,
    db: Session,
    admin_id: UUID,
    description: str,
    current_user: UserProfile,
) -> UserRequest:
    """Send a free-text request to one admin and email them about it."""
    description = (description or "").strip()
    if not description:
        raise validation_error("USER_REQUEST_DESCRIPTION_REQUIRED", ["Please enter a description for your request."])

    admin = db.query(UserProfile).filter(UserProfile.id == admin_id).first()
    if not admin or admin.role != "admin":
        raise DomainError(
            code="USER_REQUEST_ADMIN_NOT_FOUND",
            http_status=404,
            message="Selected admin not found",
        )

    request = UserRequest(
        id=uuid4(),
        requester_id=current_user.id,
        admin_id=admin.id,
        description=description,
        is_resolved=False,
    )
    db.add(request)

    subject, html = user_request_email(
        requester_email=current_user.email,
        created_at=datetime.now(timezone.utc),
        description=description,
    )
    enqueue_email(
        db,
        email_type="user_request",
        recipients=[admin.email],
        subject=subject,
        html=html,
        entity_id=request.id,
        idempotency_key=f"user_request:{request.id}",
    )
    db.commit()

    notification_bus.publish(UserRequestCreated(user_ids=(admin.id,), request_id=request.id))
    return request


def resolve_user_request_use_case(*, db: Session, request_id: UUID, current_user: UserProfile) -> UserRequest:
    """Mark a request addressed to the current admin as resolved."""
    request = db.query(UserRequest).filter(UserRequest.id == request_id).first()
    if not request:
        raise DomainError(
            code="USER_REQUEST_NOT_FOUND",
            http_status=404,
            message="Request not found",
        )
    if request.admin_id != current_user.id:
        raise DomainError(
            code="USER_REQUEST_FORBIDDEN",
            http_status=403,
            message="This request is addressed to another admin",
        )

    # Idempotent: resolving twice is a no-op.
    if request.is_resolved:
        return request

    request.is_resolved = True
    db.commit()
    notification_bus.publish(UserRequestResolved(user_ids=(request.admin_id,), request_id=request.id))
    return request


def list_admin_requests(*, db: Session, admin_id: UUID, include_resolved: bool = False) -> list[UserRequest]:
    query = db.query(UserRequest).filter(UserRequest.admin_id == admin_id)
    if not include_resolved:
        query = query.filter(UserRequest.is_resolved.is_(False))
    return query.order_by(UserRequest.is_resolved.asc(), UserRequest.created_at.desc()).all()
