from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from sitebatch.services.checklist_rules import (
    MSG_MISSING_COMMENTS,
    MSG_NO_ADMIN,
    MSG_UNCATEGORISED,
    build_item_label,
    completion_errors,
    issue_items,
    issue_summary,
    template_applies_to_asset,
)


def _item(status: str, comments: str | None = None, label: str = "SL-001 - Sling"):
    return SimpleNamespace(id=uuid4(), status=status, comments=comments, label=label)


@pytest.mark.parametrize(
    ("unique_id", "description", "position", "expected"),
    [
        ("SL-001", "Lifting sling", 1, "SL-001 - Lifting sling"),
        ("SL-001", None, 2, "SL-001"),
        (None, "Hook latch", 3, "Hook latch"),
        ("  ", "", 4, "Item 4"),
    ],
)
def test_build_item_label(unique_id, description, position, expected) -> None:
    assert build_item_label(unique_id, description, position) == expected


def test_all_inspected_items_complete_without_admins() -> None:
    items = [_item("inspected"), _item("inspected")]

    assert completion_errors(items, []) == []


def test_not_checked_item_blocks_completion() -> None:
    items = [_item("inspected"), _item("not_checked")]

    assert completion_errors(items, [uuid4()]) == [MSG_UNCATEGORISED]


def test_issue_items_need_comments_and_an_admin() -> None:
    items = [_item("defective", comments="  "), _item("not_available", comments="Missing from store")]

    assert completion_errors(items, []) == [MSG_MISSING_COMMENTS, MSG_NO_ADMIN]


def test_all_errors_reported_together() -> None:
    items = [_item("not_checked"), _item("defective")]

    assert completion_errors(items, []) == [MSG_UNCATEGORISED, MSG_MISSING_COMMENTS, MSG_NO_ADMIN]


def test_commented_issue_with_admin_is_complete() -> None:
    items = [_item("inspected"), _item("defective", comments="Frayed")]

    assert completion_errors(items, [uuid4()]) == []


def test_issue_items_and_summary() -> None:
    sling = _item("defective", comments="Frayed", label="SL-001 - Sling")
    shackle = _item("not_available", comments="Lost", label="SH-014")
    items = [_item("inspected"), sling, shackle]

    assert issue_items(items) == [sling, shackle]
    assert issue_summary(items) == "SL-001 - Sling (defective); SH-014 (not_available)"


def test_template_without_assets_applies_everywhere() -> None:
    asset_id = uuid4()

    assert template_applies_to_asset([], asset_id) is True
    assert template_applies_to_asset([asset_id], asset_id) is True
    assert template_applies_to_asset([uuid4()], asset_id) is False
