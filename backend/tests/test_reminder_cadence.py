from __future__ import annotations

from datetime import date

from sitebatch.services.reminder_cadence import entered_thresholds, reminder_subject_days

THRESHOLDS = (30, 14, 7, 1)


def test_thresholds_entered_and_sent_on_first_day_of_window() -> None:
    decisions = entered_thresholds(date(2026, 3, 17), date(2026, 3, 10), THRESHOLDS)

    assert [decision.days_before for decision in decisions] == [30, 14, 7]
    assert [decision.send_today for decision in decisions] == [False, False, True]
    assert decisions[2].reminder_date == date(2026, 3, 10)
    assert decisions[0].reminder_date == date(2026, 2, 15)


def test_no_threshold_entered_far_from_due_date() -> None:
    assert entered_thresholds(date(2026, 6, 1), date(2026, 3, 1), THRESHOLDS) == []


def test_due_today_enters_every_threshold_without_sending() -> None:
    decisions = entered_thresholds(date(2026, 3, 10), date(2026, 3, 10), THRESHOLDS)

    assert len(decisions) == 4
    assert not any(decision.send_today for decision in decisions)


def test_duplicate_thresholds_collapse() -> None:
    decisions = entered_thresholds(date(2026, 3, 11), date(2026, 3, 10), (1, 1, 7))

    assert [decision.days_before for decision in decisions] == [7, 1]
    assert decisions[1].send_today is True


def test_reminder_subject_days_pluralises() -> None:
    assert reminder_subject_days(1) == "1 day"
    assert reminder_subject_days(14) == "14 days"
