from __future__ import annotations

import time
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import HTTPException
from jose import jwt

from sitebatch.auth import ROLE_PERMISSIONS, check_permission, decode_token, _parse_token_subject
from sitebatch.config import settings
from sitebatch.security import can_resolve_alert, can_work_on_checklist, require_permission

ADMIN_ONLY = (
    "canManageAssets",
    "canReorderAssets",
    "canManageInspections",
    "canCompleteInspections",
    "canCreateChecklists",
    "canManageTemplates",
    "canResolveAlerts",
    "canManageRequests",
    "canManageUsers",
    "canManageReports",
)


def test_roles_share_the_same_permission_keys() -> None:
    assert set(ROLE_PERMISSIONS["admin"]) == set(ROLE_PERMISSIONS["user"])


@pytest.mark.parametrize("permission", ADMIN_ONLY)
def test_admin_only_permissions(permission: str) -> None:
    assert check_permission(SimpleNamespace(role="admin"), permission) is True
    assert check_permission(SimpleNamespace(role="user"), permission) is False


def test_requests_are_submitted_by_users_and_handled_by_admins() -> None:
    assert check_permission(SimpleNamespace(role="user"), "canSubmitRequests") is True
    assert check_permission(SimpleNamespace(role="admin"), "canSubmitRequests") is False


def test_unknown_role_denies_everything() -> None:
    user = SimpleNamespace(role="auditor")
    assert not any(check_permission(user, permission) for permission in ROLE_PERMISSIONS["admin"])
    with pytest.raises(HTTPException) as exc:
        require_permission(user, "canViewAll")
    assert exc.value.status_code == 403


def test_checklist_access_for_assignee_or_admin() -> None:
    assignee = SimpleNamespace(id=uuid4(), role="user")
    checklist = SimpleNamespace(assigned_user_id=assignee.id)

    assert can_work_on_checklist(checklist, assignee) is True
    assert can_work_on_checklist(checklist, SimpleNamespace(id=uuid4(), role="user")) is False
    assert can_work_on_checklist(checklist, SimpleNamespace(id=uuid4(), role="admin")) is True


def test_only_addressed_admin_resolves_alert() -> None:
    admin = SimpleNamespace(id=uuid4(), role="admin")
    alert = SimpleNamespace(admin_id=admin.id)

    assert can_resolve_alert(alert, admin) is True
    assert can_resolve_alert(alert, SimpleNamespace(id=uuid4(), role="admin")) is False
    assert can_resolve_alert(alert, SimpleNamespace(id=admin.id, role="user")) is False


def _token(**overrides) -> str:
    claims = {"sub": str(uuid4()), "exp": int(time.time()) + 300, "aud": settings.AUTH_JWT_AUDIENCE}
    claims.update(overrides)
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def test_decode_token_returns_subject() -> None:
    subject = uuid4()

    payload = decode_token(_token(sub=str(subject)))

    assert _parse_token_subject(payload) == subject


def test_expired_token_rejected_after_leeway() -> None:
    expired = int(time.time()) - settings.AUTH_JWT_LEEWAY_SECONDS - 60

    with pytest.raises(HTTPException) as exc:
        decode_token(_token(exp=expired))

    assert exc.value.status_code == 401
    assert exc.value.detail == "Token expired"


def test_token_signed_with_other_secret_rejected() -> None:
    token = jwt.encode(
        {"sub": str(uuid4()), "exp": int(time.time()) + 300, "aud": settings.AUTH_JWT_AUDIENCE},
        "another-secret",
        algorithm=settings.AUTH_JWT_ALGORITHM,
    )

    with pytest.raises(HTTPException) as exc:
        decode_token(token)

    assert exc.value.status_code == 401


def test_non_uuid_subject_rejected() -> None:
    with pytest.raises(HTTPException):
        _parse_token_subject({"sub": "not-a-uuid"})
