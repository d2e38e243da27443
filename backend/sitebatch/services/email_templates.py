"""HTML email bodies. Every builder returns (subject, html)."""

from __future__ import annotations

from datetime import date, datetime
from html import escape as html_escape
from typing import Any, Iterable, Optional

from ..config import settings
from .reminder_cadence import reminder_subject_days

_CELL = "padding:6px 8px;border:1px solid #e0e0e0;"
_TABLE = "border-collapse:collapse;width:100%;font-family:Arial,sans-serif;font-size:13px;"
_REPORT_TABLE = "width:100%;border-collapse:collapse;margin:8px 0 22px 0;font-family:Arial,sans-serif;font-size:14px;line-height:1.4;"
_REPORT_HEADER_CELL = "padding:10px 8px;border:1px solid #d8d8d8;background:#f5f6f8;text-align:left;vertical-align:top;"
_REPORT_CELL = "padding:10px 8px;border:1px solid #e1e1e1;text-align:left;vertical-align:top;"
_SECTION_TITLE = "margin:26px 0 10px 0;font-family:Arial,sans-serif;"


def _e(value: Any, fallback: str = "N/A") -> str:
    if value is None or value == "":
        return fallback
    return html_escape(str(value))


def format_date(value: Optional[date | datetime]) -> str:
    if not value:
        return "N/A"
    return value.strftime("%d/%m/%Y")


def _portal_link(path: str = "") -> str:
    url = html_escape(f"{settings.PORTAL_BASE_URL}{path}")
    return (
        f'<p><a href="{url}" target="_blank" rel="noopener noreferrer" '
        f'style="color:#1155cc;text-decoration:underline;">Open Sitebatch Inspections Portal</a>'
        f"<br />{url}</p>"
    )


def _asset_details(asset: Any, inspection_type_name: Optional[str]) -> list[tuple[str, Any]]:
    return [
        ("Asset ID", getattr(asset, "asset_id", None)),
        ("Asset Name", getattr(asset, "name", None)),
        ("Location", getattr(asset, "location", None)),
        ("Inspection Type", inspection_type_name),
    ]


def _detail_list(rows: Iterable[tuple[str, Any]]) -> str:
    lines = "".join(f"<li><strong>{html_escape(label)}:</strong> {_e(value)}</li>" for label, value in rows)
    return f"<ul>{lines}</ul>"


def asset_line(asset: Any) -> Optional[str]:
    label = " - ".join(part for part in (asset.asset_id, asset.name) if part)
    if not label:
        return None
    return f"{label} ({asset.location})" if asset.location else label


def checklist_assignment_email(
    *,
    asset: Any,
    inspection_type_name: Optional[str],
    due_date: Optional[date],
    assigned_to: Optional[str],
) -> tuple[str, str]:
    subject = f"New inspection checklist assigned: {getattr(asset, 'asset_id', None) or 'Unknown asset'}"
    details = _asset_details(asset, inspection_type_name) + [
        ("Due Date", format_date(due_date) if due_date else "Not specified"),
        ("Company Assigned To", assigned_to),
    ]
    html = (
        "<h2>New Inspection Checklist Assigned</h2>"
        "<p>You have been assigned a new inspection checklist in Sitebatch Inspections.</p>"
        f"{_detail_list(details)}"
        "<p>Please log in to the Sitebatch Inspections portal to review and complete this checklist.</p>"
        f"{_portal_link()}"
    )
    return subject, html


def checklist_issue_email(
    *,
    asset: Any,
    inspection_type_name: Optional[str],
    due_date: Optional[date],
    assigned_to: Optional[str],
    linked_asset_lines: list[str],
    summary: str,
    items: Iterable[Any],
) -> tuple[str, str]:
    asset_code = getattr(asset, "asset_id", None) or "Unknown asset"
    if len(linked_asset_lines) > 1:
        subject = f"Inspection checklist requires attention ({len(linked_asset_lines)} linked assets): {asset_code}"
    else:
        subject = f"Inspection checklist requires attention: {asset_code}"

    details = _asset_details(asset, inspection_type_name) + [
        ("Due Date", format_date(due_date) if due_date else "Not specified"),
        ("Company Assigned To", assigned_to),
    ]

    linked_html = ""
    if len(linked_asset_lines) > 1:
        lines = "".join(f"<li>{html_escape(line)}</li>" for line in linked_asset_lines)
        linked_html = f"<h3>Linked Assets ({len(linked_asset_lines)})</h3><ul>{lines}</ul>"

    rows = []
    for item in items:
        status = item.status or "not_checked"
        background = "#fff2f2" if status in ("defective", "not_available") else "#fff"
        rows.append(
            f'<tr style="background:{background};">'
            f'<td style="{_CELL}">{_e(item.label, "")}</td>'
            f'<td style="{_CELL}">{_e(status, "")}</td>'
            f'<td style="{_CELL}">{_e(item.comments, "")}</td>'
            "</tr>"
        )

    html = (
        "<h2>Inspection Checklist Requires Attention</h2>"
        "<p>An inspection checklist has been completed with issues that need admin attention.</p>"
        f"{_detail_list(details)}"
        f"{linked_html}"
        f"<p><strong>Issues summary:</strong> {html_escape(summary)}</p>"
        "<h3>Checklist Items</h3>"
        f'<table style="{_TABLE}"><thead><tr>'
        f'<th style="text-align:left;{_CELL}">Item</th>'
        f'<th style="text-align:left;{_CELL}">Status</th>'
        f'<th style="text-align:left;{_CELL}">Comments</th>'
        f"</tr></thead><tbody>{''.join(rows)}</tbody></table>"
        "<p>Please log in to the Sitebatch Inspections portal to review.</p>"
        f"{_portal_link('/user-request-inbox')}"
    )
    return subject, html


def user_request_email(*, requester_email: str, created_at: Optional[datetime], description: str) -> tuple[str, str]:
    subject = f"New request from {requester_email}"
    created = created_at.strftime("%d/%m/%Y %H:%M") if created_at else "Unknown time"
    body = html_escape(description).replace("\n", "<br />")
    html = (
        "<h2>New Request Submitted</h2>"
        "<p>You have received a new request in Sitebatch Inspections.</p>"
        f"{_detail_list([('From', requester_email), ('Created At', created)])}"
        "<p><strong>Description:</strong></p>"
        f"<p>{body}</p>"
        f"{_portal_link()}"
    )
    return subject, html


def inspection_reminder_email(
    *,
    asset: Any,
    inspection_type_name: Optional[str],
    due_date: date,
    days_remaining: int,
    days_before: int,
) -> tuple[str, str]:
    subject = f"Inspection Due in {reminder_subject_days(days_before)}: {getattr(asset, 'asset_id', None)}"
    details = [
        ("Plant ID", getattr(asset, "asset_id", None)),
        ("Plant Name", getattr(asset, "name", None)),
        ("Location", getattr(asset, "location", None)),
        ("Inspection Type", inspection_type_name),
        ("Due Date", format_date(due_date)),
        ("Days Until Due", days_remaining),
    ]
    html = (
        "<h2>Inspection Reminder</h2>"
        "<p>This is a reminder that an inspection is due soon.</p>"
        f"{_detail_list(details)}"
        "<p>Please ensure this inspection is completed on time to maintain compliance.</p>"
        f"{_portal_link()}"
    )
    return subject, html


def inspection_alert_email(
    *,
    asset: Any,
    inspection_type_name: Optional[str],
    status: str,
    status_class: str,
    due_date: Optional[date],
    due_text: str,
    assigned_to: Optional[str],
) -> tuple[str, str]:
    subject = f"Inspection alert: {getattr(asset, 'asset_id', None) or 'Unknown asset'} ({status.upper()})"
    details = _asset_details(asset, inspection_type_name) + [
        ("Status", status.upper()),
        ("Compliance", status_class),
        ("Due Date", format_date(due_date) if due_date else "Not specified"),
        ("Due", due_text or None),
        ("Company Assigned To", assigned_to),
    ]
    html = (
        "<h2>Inspection Alert</h2>"
        "<p>An administrator requested an immediate status update for this inspection.</p>"
        f"{_detail_list(details)}"
        f"{_portal_link()}"
    )
    return subject, html


def _template_name(template: Any) -> str:
    return template.unique_id or template.description or "Inspection item"


def item_reminder_email(*, template: Any, asset_text: str, days_remaining: int, days_before: int) -> tuple[str, str]:
    subject = f"Item Expiry in {reminder_subject_days(days_before)}: {_template_name(template)}"
    details = [
        ("Unique ID", template.unique_id),
        ("Description", template.description),
        ("Assets", asset_text),
        ("Expiry Date", format_date(template.expiry_date)),
        ("Days Until Expiry", days_remaining),
    ]
    html = (
        "<h2>Inspection Item Reminder</h2>"
        "<p>This is a reminder that an inspection item expires soon.</p>"
        f"{_detail_list(details)}"
        f"{_portal_link()}"
    )
    return subject, html


def item_expired_email(*, template: Any, asset_text: str) -> tuple[str, str]:
    subject = f"Expired Item: {_template_name(template)}"
    details = [
        ("Unique ID", template.unique_id),
        ("Description", template.description),
        ("Assets", asset_text),
        ("Expiry Date", format_date(template.expiry_date)),
    ]
    html = (
        "<h2>Inspection Item Expired</h2>"
        "<p>This inspection item has expired.</p>"
        f"{_detail_list(details)}"
        f"{_portal_link()}"
    )
    return subject, html


def _report_section(title: str, headers: list[str], rows: list[list[Any]]) -> str:
    heading = f'<h3 style="{_SECTION_TITLE}">{html_escape(title)} ({len(rows)})</h3>'
    if not rows:
        return heading + '<p style="margin:8px 0 20px 0;">None.</p>'
    head = "".join(f'<th style="{_REPORT_HEADER_CELL}">{html_escape(h)}</th>' for h in headers)
    body = "".join(
        "<tr>" + "".join(f'<td style="{_REPORT_CELL}">{_e(cell)}</td>' for cell in row) + "</tr>"
        for row in rows
    )
    return f'{heading}<table style="{_REPORT_TABLE}"><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>'


def weekly_report_email(
    *,
    report_date: date,
    due_rows: list[list[Any]],
    on_hold_rows: list[list[Any]],
    waiting_rows: list[list[Any]],
    window_days: int,
) -> tuple[str, str]:
    report_day = format_date(report_date)
    subject = f"Weekly Inspection Report - {report_day}"
    html = (
        '<div style="font-family:Arial,sans-serif;color:#1f2937;max-width:1100px;">'
        '<h2 style="margin:0 0 12px 0;">Weekly Sitebatch Inspection Report</h2>'
        f'<p style="margin:0 0 18px 0;"><strong>Report date:</strong> {report_day}</p>'
        + _report_section(
            f"1) Inspections due in the next {window_days} days",
            ["Asset ID", "Asset Name", "Inspection Type", "Due Date", "Status"],
            due_rows,
        )
        + _report_section(
            "2) Inspections on hold",
            ["Asset ID", "Asset Name", "Inspection Type", "Due Date", "Comment", "Placed On Hold By"],
            on_hold_rows,
        )
        + _report_section(
            "3) Waiting for certs",
            ["Asset ID", "Asset Name", "Inspection Type", "Completed Date", "Days Since Completed"],
            waiting_rows,
        )
        + "</div>"
    )
    return subject, html
