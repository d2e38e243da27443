from __future__ import annotations

from datetime import date
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.sql import operators

from sitebatch.domain_errors import DomainError
from sitebatch.models import (
    ChecklistAlert,
    ChecklistAlertResolution,
    EmailOutbox,
    Inspection,
    InspectionChecklist,
    InspectionItemTemplate,
    InspectionLog,
    UserProfile,
)
from sitebatch.services.checklist_rules import MSG_MISSING_COMMENTS, MSG_NO_ADMIN, MSG_UNCATEGORISED
from sitebatch.services.notification_bus import ChecklistAlertRaised, ChecklistCompleted, notification_bus
from sitebatch.use_cases.alerts import MSG_RESOLUTION_REQUIRED, resolve_alert_use_case
from sitebatch.use_cases.checklists import (
    complete_checklist_use_case,
    create_checklist_use_case,
    find_checklist_for_inspection,
    save_checklist_progress_use_case,
)


def _matches(row, criterion) -> bool:
    # Only equality on a plain column is checked; other criteria pass.
    if getattr(criterion, "operator", None) is not operators.eq:
        return True
    return getattr(row, criterion.left.key) == criterion.right.value


class _QueryStub:
    def __init__(self, rows: list[object], evaluate: bool = False) -> None:
        self._rows = rows
        self._evaluate = evaluate

    def filter(self, *criteria, **_kwargs):
        if self._evaluate:
            self._rows = [row for row in self._rows if all(_matches(row, c) for c in criteria)]
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class _SessionStub:
    def __init__(self, rows: dict, evaluated: tuple = ()) -> None:
        self._rows = rows
        self._evaluated = evaluated
        self.added: list[object] = []
        self.commit_calls = 0

    def query(self, model):
        return _QueryStub(self._rows.get(model, []), evaluate=model in self._evaluated)

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def commit(self) -> None:
        self.commit_calls += 1

    def added_of(self, model) -> list[object]:
        return [obj for obj in self.added if isinstance(obj, model)]


@pytest.fixture
def published():
    messages: list[object] = []
    unsubscribe_completed = notification_bus.subscribe(ChecklistCompleted, messages.append)
    unsubscribe_raised = notification_bus.subscribe(ChecklistAlertRaised, messages.append)
    yield messages
    unsubscribe_completed()
    unsubscribe_raised()


def _item(label: str, status: str = "not_checked", comments: str | None = None):
    return SimpleNamespace(id=uuid4(), label=label, status=status, comments=comments)


def _checklist(assignee, items):
    asset = SimpleNamespace(asset_id="CR-004", name="Crawler crane", location="Yard A")
    inspection = SimpleNamespace(
        id=uuid4(),
        inspection_type=SimpleNamespace(name="LOLER"),
        assigned_to="J. Smith",
    )
    return SimpleNamespace(
        id=uuid4(),
        inspection_id=inspection.id,
        inspection=inspection,
        asset=asset,
        linked_group_id=None,
        assigned_user_id=assignee.id,
        status="sent",
        due_date=date(2026, 3, 20),
        completed_at=None,
        items=items,
    )


def _user(role: str = "user"):
    return SimpleNamespace(id=uuid4(), email=f"{role}@example.com", role=role)


def test_complete_reports_every_problem_and_keeps_checklist_open(published) -> None:
    assignee = _user()
    sling, shackle = _item("SL-001 - Sling"), _item("SH-014")
    checklist = _checklist(assignee, [sling, shackle])
    db = _SessionStub({InspectionChecklist: [checklist]})

    with pytest.raises(DomainError) as exc:
        complete_checklist_use_case(
            db=db,
            checklist_id=checklist.id,
            item_updates=[{"id": sling.id, "status": "defective", "comments": ""}],
            admin_ids=[],
            current_user=assignee,
        )

    assert exc.value.code == "CHECKLIST_INCOMPLETE"
    assert exc.value.details["reasons"] == [MSG_UNCATEGORISED, MSG_MISSING_COMMENTS, MSG_NO_ADMIN]
    assert checklist.status == "sent"
    assert db.commit_calls == 0
    assert published == []


def test_complete_without_issues_needs_no_admin(published) -> None:
    assignee = _user()
    item = _item("Hook latch")
    checklist = _checklist(assignee, [item])
    db = _SessionStub({InspectionChecklist: [checklist]})

    complete_checklist_use_case(
        db=db,
        checklist_id=checklist.id,
        item_updates=[{"id": item.id, "status": "inspected"}],
        admin_ids=[],
        current_user=assignee,
    )

    assert checklist.status == "completed"
    assert checklist.completed_at is not None
    assert db.added_of(ChecklistAlert) == []
    assert [log.action for log in db.added_of(InspectionLog)] == ["checklist_completed"]
    assert db.commit_calls == 1
    assert [type(message) for message in published] == [ChecklistCompleted]


def test_complete_with_issues_alerts_each_admin_once(published) -> None:
    assignee = _user()
    admin_a, admin_b = _user("admin"), _user("admin")
    sling = _item("SL-001 - Sling", status="defective", comments="Frayed")
    latch = _item("Hook latch", status="inspected")
    checklist = _checklist(assignee, [sling, latch])
    db = _SessionStub({InspectionChecklist: [checklist], UserProfile: [admin_a, admin_b]})

    complete_checklist_use_case(
        db=db,
        checklist_id=checklist.id,
        item_updates=[],
        admin_ids=[admin_a.id, admin_b.id, admin_a.id],
        current_user=assignee,
    )

    alerts = db.added_of(ChecklistAlert)
    assert [alert.admin_id for alert in alerts] == [admin_a.id, admin_b.id]
    assert alerts[0].issue_summary == "SL-001 - Sling (defective)"
    emails = db.added_of(EmailOutbox)
    assert [email.recipient_email for email in emails] == ["admin@example.com", "admin@example.com"]
    assert emails[0].idempotency_key == f"checklist_issue_alert:{alerts[0].id}:admin@example.com"
    assert db.commit_calls == 1
    raised = [message for message in published if isinstance(message, ChecklistAlertRaised)]
    assert raised[0].user_ids == (admin_a.id, admin_b.id)


def test_completed_checklist_is_read_only() -> None:
    assignee = _user()
    checklist = _checklist(assignee, [_item("Hook latch", status="inspected")])
    checklist.status = "completed"
    db = _SessionStub({InspectionChecklist: [checklist]})

    with pytest.raises(DomainError) as exc:
        save_checklist_progress_use_case(db=db, checklist_id=checklist.id, item_updates=[], current_user=assignee)

    assert exc.value.code == "CHECKLIST_ALREADY_COMPLETED"
    assert exc.value.http_status == 409


def test_other_users_cannot_work_on_checklist() -> None:
    checklist = _checklist(_user(), [_item("Hook latch")])
    db = _SessionStub({InspectionChecklist: [checklist]})

    with pytest.raises(DomainError) as exc:
        save_checklist_progress_use_case(db=db, checklist_id=checklist.id, item_updates=[], current_user=_user())

    assert exc.value.code == "CHECKLIST_FORBIDDEN"
    assert exc.value.http_status == 403


def test_save_progress_rejects_unknown_status() -> None:
    assignee = _user()
    item = _item("Hook latch")
    checklist = _checklist(assignee, [item])
    db = _SessionStub({InspectionChecklist: [checklist]})

    with pytest.raises(DomainError) as exc:
        save_checklist_progress_use_case(
            db=db,
            checklist_id=checklist.id,
            item_updates=[{"id": item.id, "status": "broken"}],
            current_user=assignee,
        )

    assert exc.value.code == "CHECKLIST_ITEM_STATUS_INVALID"


def _alert(admin, checklist):
    return SimpleNamespace(
        id=uuid4(),
        admin_id=admin.id,
        inspection_id=checklist.inspection_id,
        checklist=checklist,
        is_resolved=False,
        resolved_at=None,
        resolved_by=None,
    )


def test_resolve_alert_requires_text_for_each_flagged_item() -> None:
    admin = _user("admin")
    sling = _item("SL-001", status="defective", comments="Frayed")
    shackle = _item("SH-014", status="not_available", comments="Lost")
    alert = _alert(admin, _checklist(_user(), [sling, shackle]))
    db = _SessionStub({ChecklistAlert: [alert]})

    with pytest.raises(DomainError) as exc:
        resolve_alert_use_case(
            db=db,
            alert_id=alert.id,
            resolutions={sling.id: "Replaced", shackle.id: "  "},
            current_user=admin,
        )

    assert exc.value.message == MSG_RESOLUTION_REQUIRED == (
        "Please enter a resolution for each defective or not available item."
    )
    assert alert.is_resolved is False
    assert db.added == []


def test_resolve_alert_records_resolutions_and_logs() -> None:
    admin = _user("admin")
    sling = _item("SL-001", status="defective", comments="Frayed")
    shackle = _item("SH-014", status="not_available", comments="Lost")
    alert = _alert(admin, _checklist(_user(), [sling, shackle, _item("Latch", status="inspected")]))
    db = _SessionStub({ChecklistAlert: [alert]})

    resolve_alert_use_case(
        db=db,
        alert_id=alert.id,
        resolutions={sling.id: "Replaced sling", shackle.id: " Ordered new "},
        current_user=admin,
    )

    assert alert.is_resolved is True
    assert alert.resolved_by == admin.id
    resolutions = db.added_of(ChecklistAlertResolution)
    assert [row.resolution_text for row in resolutions] == ["Replaced sling", "Ordered new"]
    log = db.added_of(InspectionLog)[0]
    assert log.action == "checklist_issue_resolved"
    assert log.details == "SL-001: Replaced sling; SH-014: Ordered new"
    assert db.commit_calls == 1


def test_only_addressed_admin_may_resolve() -> None:
    alert = _alert(_user("admin"), _checklist(_user(), []))
    db = _SessionStub({ChecklistAlert: [alert]})

    with pytest.raises(DomainError) as exc:
        resolve_alert_use_case(db=db, alert_id=alert.id, resolutions={}, current_user=_user("admin"))

    assert exc.value.code == "CHECKLIST_ALERT_FORBIDDEN"


def test_resolved_alert_cannot_be_resolved_again() -> None:
    admin = _user("admin")
    alert = _alert(admin, _checklist(_user(), []))
    alert.is_resolved = True
    db = _SessionStub({ChecklistAlert: [alert]})

    with pytest.raises(DomainError) as exc:
        resolve_alert_use_case(db=db, alert_id=alert.id, resolutions={}, current_user=admin)

    assert exc.value.code == "CHECKLIST_ALERT_ALREADY_RESOLVED"
    assert exc.value.http_status == 409


def _open_inspection(linked_group_id=None):
    return SimpleNamespace(
        id=uuid4(),
        asset_id=uuid4(),
        inspection_type_id=uuid4(),
        asset=SimpleNamespace(asset_id="CR-004", name="Crawler crane", location="Yard A"),
        inspection_type=SimpleNamespace(name="LOLER"),
        assigned_to="J. Smith",
        due_date=date(2026, 3, 20),
        linked_group_id=linked_group_id,
    )


def _template(unique_id: str | None, description: str | None):
    return SimpleNamespace(id=uuid4(), unique_id=unique_id, description=description)


def test_create_keeps_selection_order_and_falls_back_to_item_number() -> None:
    assignee = _user()
    inspection = _open_inspection()
    sling = _template("SL-001", "Sling")
    blank = _template(None, "  ")
    shackle = _template(None, "Shackle")
    db = _SessionStub(
        {
            Inspection: [inspection],
            UserProfile: [assignee],
            InspectionItemTemplate: [sling, blank, shackle],
        }
    )

    checklist = create_checklist_use_case(
        db=db,
        inspection_id=inspection.id,
        assigned_user_id=assignee.id,
        template_ids=[shackle.id, blank.id, sling.id],
        current_user=_user("admin"),
    )

    assert [item.label for item in checklist.items] == ["Shackle", "Item 2", "SL-001 - Sling"]
    assert [item.sort_order for item in checklist.items] == [1, 2, 3]
    assert {item.status for item in checklist.items} == {"not_checked"}
    assert checklist.status == "sent"
    emails = db.added_of(EmailOutbox)
    assert [email.recipient_email for email in emails] == ["user@example.com"]
    assert emails[0].idempotency_key == f"checklist_assigned:{checklist.id}:user@example.com"
    assert db.commit_calls == 1


def test_create_for_linked_group_logs_on_every_member() -> None:
    group_id = uuid4()
    first, second = _open_inspection(group_id), _open_inspection(group_id)
    assignee = _user()
    template = _template("SL-001", "Sling")
    db = _SessionStub(
        {
            Inspection: [first, second],
            UserProfile: [assignee],
            InspectionItemTemplate: [template],
        }
    )

    checklist = create_checklist_use_case(
        db=db,
        inspection_id=first.id,
        assigned_user_id=assignee.id,
        template_ids=[template.id],
        current_user=_user("admin"),
    )

    assert checklist.linked_group_id == group_id
    logs = db.added_of(InspectionLog)
    assert {log.inspection_id for log in logs} == {first.id, second.id}
    assert {log.action for log in logs} == {"checklist_created"}


def test_group_checklist_is_found_from_any_member() -> None:
    group_id = uuid4()
    first, second = _open_inspection(group_id), _open_inspection(group_id)
    shared = SimpleNamespace(id=uuid4(), inspection_id=first.id, linked_group_id=group_id)
    db = _SessionStub({InspectionChecklist: [shared]}, evaluated=(InspectionChecklist,))

    assert find_checklist_for_inspection(db, second) is shared
    assert find_checklist_for_inspection(db, _open_inspection()) is None


def test_second_checklist_for_group_conflicts() -> None:
    group_id = uuid4()
    first, second = _open_inspection(group_id), _open_inspection(group_id)
    assignee = _user()
    template = _template("SL-001", "Sling")
    db = _SessionStub(
        {
            Inspection: [second, first],
            UserProfile: [assignee],
            InspectionItemTemplate: [template],
            InspectionChecklist: [SimpleNamespace(id=uuid4(), inspection_id=first.id, linked_group_id=group_id)],
        },
        evaluated=(InspectionChecklist,),
    )

    with pytest.raises(DomainError) as exc:
        create_checklist_use_case(
            db=db,
            inspection_id=second.id,
            assigned_user_id=assignee.id,
            template_ids=[template.id],
            current_user=_user("admin"),
        )

    assert exc.value.code == "CHECKLIST_ALREADY_EXISTS"
    assert exc.value.http_status == 409
    assert db.added == []
    assert db.commit_calls == 0
