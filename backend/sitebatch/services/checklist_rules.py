"""Checklist item rules: labels, completion validation and issue detection."""

from __future__ import annotations

from typing import Any, Iterable, Optional


ISSUE_STATUSES = frozenset({"defective", "not_available"})

MSG_UNCATEGORISED = "All items must be categorised before the inspection checklist can be completed."
MSG_MISSING_COMMENTS = "Please add comments for all Defective or Not available items."
MSG_NO_ADMIN = "Please select at least one admin to notify about checklist issues."

STATUS_LABELS = {
    "not_checked": "Not checked",
    "inspected": "Inspected",
    "not_available": "Not available",
    "defective": "Defective",
}


def build_item_label(unique_id: Optional[str], description: Optional[str], position: int) -> str:
    """Label for a checklist line; `position` is 1-based."""
    unique_id = (unique_id or "").strip()
    description = (description or "").strip()
    if unique_id and description:
        return f"{unique_id} - {description}"
    if unique_id or description:
        return unique_id or description
    return f"Item {position}"


def is_issue(status: Optional[str]) -> bool:
    return status in ISSUE_STATUSES


def has_comment(comments: Optional[str]) -> bool:
    return bool(comments and comments.strip())


def issue_items(items: Iterable[Any]) -> list[Any]:
    """Items flagged defective or not available."""
    return [item for item in items if is_issue(item.status)]


def completion_errors(items: Iterable[Any], admin_ids: Iterable[Any]) -> list[str]:
    """All reasons a checklist cannot be completed yet (empty when it can)."""
    items = list(items)
    errors: list[str] = []

    if any(not item.status or item.status == "not_checked" for item in items):
        errors.append(MSG_UNCATEGORISED)

    flagged = issue_items(items)
    if any(not has_comment(item.comments) for item in flagged):
        errors.append(MSG_MISSING_COMMENTS)

    if flagged and not list(admin_ids):
        errors.append(MSG_NO_ADMIN)

    return errors


def can_save_complete(items: Iterable[Any], admin_ids: Iterable[Any]) -> bool:
    return not completion_errors(items, admin_ids)


def issue_summary(items: Iterable[Any]) -> str:
    flagged = issue_items(items)
    if not flagged:
        return "Checklist completed with issues."
    return "; ".join(f"{item.label} ({item.status})" for item in flagged)


def template_applies_to_asset(template_asset_ids: Iterable[Any], asset_id: Any) -> bool:
    """Templates without asset rows apply to every asset."""
    asset_ids = list(template_asset_ids)
    return not asset_ids or asset_id in asset_ids
