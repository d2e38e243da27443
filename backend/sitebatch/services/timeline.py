"""Asset timeline: places dated inspections and events on a percentage scale."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Optional

from .inspection_status import add_months, classify_inspection

EMPTY_TIMELINE_MESSAGE = "No inspections or events for this asset."
TIMELINE_MONTHS_AHEAD = 12


def _position(day: date, start: date, total_days: int) -> float:
    """Percentage along the scale, pinned to [0, 100]."""
    return max(0.0, min(100.0, round((day - start).days / total_days * 100, 2)))


def _marker_date(inspection: Any) -> Optional[date]:
    return inspection.completed_date or inspection.due_date


def build_asset_timeline(
    *,
    install_date: Optional[date],
    inspections: Iterable[Any],
    events: Iterable[Any],
    today: date,
) -> dict:
    inspections = [inspection for inspection in inspections if _marker_date(inspection)]
    events = list(events)

    if install_date is None and not inspections and not events:
        return {"empty": True, "message": EMPTY_TIMELINE_MESSAGE}

    all_dates = [_marker_date(inspection) for inspection in inspections]
    for event in events:
        all_dates.extend([event.start_date, event.end_date])

    earliest = min(all_dates) if all_dates else today
    start = min(earliest, today)
    end = add_months(today, TIMELINE_MONTHS_AHEAD)
    total_days = max((end - start).days, 1)

    inspection_markers = []
    for inspection in inspections:
        marker_day = _marker_date(inspection)
        inspection_markers.append(
            {
                "inspection_id": str(inspection.id),
                "date": marker_day.isoformat(),
                "position": _position(marker_day, start, total_days),
                "status": inspection.status,
                "status_class": classify_inspection(inspection.status, inspection.due_date, today),
            }
        )

    event_periods = []
    for event in events:
        start_position = _position(event.start_date, start, total_days)
        end_position = _position(event.end_date, start, total_days)
        event_periods.append(
            {
                "event_id": str(event.id),
                "description": event.description,
                "end_status": event.end_status,
                "start_date": event.start_date.isoformat(),
                "end_date": event.end_date.isoformat(),
                "start_position": start_position,
                "width": round(max(0.0, end_position - start_position), 2),
            }
        )

    commission_marker = None
    if install_date is not None and start <= install_date <= end:
        commission_marker = {
            "date": install_date.isoformat(),
            "position": _position(install_date, start, total_days),
        }

    return {
        "empty": False,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "today_position": _position(today, start, total_days),
        "inspection_markers": inspection_markers,
        "event_periods": event_periods,
        "commission_marker": commission_marker,
    }
