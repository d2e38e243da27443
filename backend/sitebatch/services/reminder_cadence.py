"""Reminder threshold evaluation shared by the inspection and item sweeps."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable


@dataclass(frozen=True)
class ThresholdDecision:
    days_before: int
    reminder_date: date
    send_today: bool


def entered_thresholds(
    due_date: date,
    today: date,
    thresholds: Iterable[int],
) -> list[ThresholdDecision]:
    """
    Thresholds whose reminder window has been entered.

    A threshold is entered once `days_until <= threshold`; its email goes out
    only on the first day of the window (`days_until == threshold`).
    """
    remaining = (due_date - today).days
    decisions = []
    for days_before in sorted(set(thresholds), reverse=True):
        if remaining > days_before:
            continue
        decisions.append(
            ThresholdDecision(
                days_before=days_before,
                reminder_date=due_date - timedelta(days=days_before),
                send_today=remaining == days_before,
            )
        )
    return decisions


def reminder_subject_days(days_before: int) -> str:
    return f"{days_before} day{'s' if days_before > 1 else ''}"
