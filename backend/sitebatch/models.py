"""SQLAlchemy models."""
from sqlalchemy import (
    Boolean, Column, String, Integer, Date, DateTime, Text,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from .database import Base


INSPECTION_STATUSES = ("pending", "overdue", "on_hold", "completed")
CHECKLIST_STATUSES = ("sent", "completed")
CHECKLIST_ITEM_STATUSES = ("not_checked", "inspected", "not_available", "defective")
ASSET_STATUSES = ("active", "decommissioned")


class UserProfile(Base):
    """User profile; id mirrors the hosted auth provider subject."""
    __tablename__ = "user_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="user", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(role.in_(['user', 'admin']), name='chk_user_profile_role'),
    )


class Asset(Base):
    """Plant/asset item."""
    __tablename__ = "asset_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(String(100), nullable=False, index=True)  # display identifier, e.g. "CR-004"
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default='active', index=True)
    asset_type = Column(String(100), nullable=True, index=True)
    install_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(ASSET_STATUSES), name='chk_asset_status'),
    )

    # Relationships
    inspections = relationship("Inspection", back_populates="asset", cascade="all, delete-orphan")
    events = relationship("AssetEvent", back_populates="asset", cascade="all, delete-orphan")
    checklists = relationship("InspectionChecklist", back_populates="asset", cascade="all, delete-orphan")


class AssetEvent(Base):
    """Append-only history record for an asset."""
    __tablename__ = "asset_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("asset_items.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    end_status = Column(String(20), nullable=False, default='active')
    location = Column(String(255), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(end_status.in_(ASSET_STATUSES), name='chk_asset_event_end_status'),
        CheckConstraint(end_date >= start_date, name='chk_asset_event_dates'),
    )

    asset = relationship("Asset", back_populates="events")


class InspectionType(Base):
    """Named category of inspection."""
    __tablename__ = "inspection_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), unique=True, nullable=False)
    frequency = Column(String(50), nullable=True)
    statutory_requirement = Column(Boolean, default=True, nullable=False)
    google_drive_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Inspection(Base):
    """Inspection of one asset against one inspection type."""
    __tablename__ = "inspections"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("asset_items.id", ondelete="CASCADE"), nullable=False, index=True)
    inspection_type_id = Column(UUID(as_uuid=True), ForeignKey("inspection_types.id"), nullable=False, index=True)
    due_date = Column(Date, nullable=True, index=True)
    completed_date = Column(Date, nullable=True)
    date_completed = Column(Date, nullable=True)  # date the work was done, as entered
    status = Column(String(20), nullable=False, default='pending', index=True)
    hold_reason = Column(Text, nullable=True)
    assigned_to = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Completion gating
    next_inspection_date = Column(Date, nullable=True)
    next_inspection_na = Column(Boolean, default=False, nullable=False)
    certs_received = Column(Boolean, default=False, nullable=False)
    certs_link = Column(Text, nullable=True)
    waiting_on_certs = Column(Boolean, default=False, nullable=False)
    defect_portal_actions = Column(Boolean, default=False, nullable=False)
    defect_portal_na = Column(Boolean, default=False, nullable=False)

    linked_group_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    recurrence_group_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    recurrence_frequency_months = Column(Integer, nullable=True)
    recurrence_sequence = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(INSPECTION_STATUSES), name='chk_inspection_status'),
        CheckConstraint(
            ~(defect_portal_actions & defect_portal_na),
            name='chk_inspection_defect_portal_exclusive',
        ),
        Index('idx_inspections_status_due', 'status', 'due_date'),
    )

    # Relationships
    asset = relationship("Asset", back_populates="inspections")
    inspection_type = relationship("InspectionType")
    logs = relationship("InspectionLog", back_populates="inspection", cascade="all, delete-orphan")
    reminders = relationship("InspectionReminder", back_populates="inspection", cascade="all, delete-orphan")


class InspectionLog(Base):
    """Inspection audit trail entry."""
    __tablename__ = "inspection_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    inspection_id = Column(UUID(as_uuid=True), ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    details = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(
            action.in_([
                'created', 'updated', 'completed', 'on_hold', 'resumed', 'alert_sent',
                'checklist_created', 'checklist_completed', 'checklist_issue_resolved',
            ]),
            name='chk_inspection_log_action'
        ),
    )

    inspection = relationship("Inspection", back_populates="logs")


class InspectionChecklist(Base):
    """Checklist assigned to one user for an inspection (or a linked group)."""
    __tablename__ = "inspection_checklists"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    inspection_id = Column(UUID(as_uuid=True), ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("asset_items.id", ondelete="CASCADE"), nullable=False, index=True)
    inspection_type_id = Column(UUID(as_uuid=True), ForeignKey("inspection_types.id"), nullable=False)
    linked_group_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    assigned_user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='sent', index=True)
    due_date = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(CHECKLIST_STATUSES), name='chk_checklist_status'),
    )

    # Relationships
    asset = relationship("Asset", back_populates="checklists")
    inspection = relationship("Inspection")
    assigned_user = relationship("UserProfile", foreign_keys=[assigned_user_id])
    items = relationship(
        "ChecklistItem",
        back_populates="checklist",
        cascade="all, delete-orphan",
        order_by="ChecklistItem.sort_order",
    )


class ChecklistItem(Base):
    """One line of a checklist."""
    __tablename__ = "inspection_checklist_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    checklist_id = Column(UUID(as_uuid=True), ForeignKey("inspection_checklists.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(UUID(as_uuid=True), ForeignKey("inspection_item_templates.id", ondelete="SET NULL"), nullable=True)
    label = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default='not_checked')
    comments = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(CHECKLIST_ITEM_STATUSES), name='chk_checklist_item_status'),
    )

    checklist = relationship("InspectionChecklist", back_populates="items")


class InspectionItemTemplate(Base):
    """Reusable checklist line definition."""
    __tablename__ = "inspection_item_templates"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unique_id = Column(String(100), nullable=True, index=True)
    description = Column(Text, nullable=True)
    # NULL means the template applies to every inspection type.
    inspection_type_id = Column(UUID(as_uuid=True), ForeignKey("inspection_types.id", ondelete="SET NULL"), nullable=True, index=True)
    capacity = Column(String(100), nullable=True)
    capacity_na = Column(Boolean, default=False, nullable=False)
    expiry_date = Column(Date, nullable=True, index=True)
    expiry_na = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # No asset rows means the template applies to every asset.
    asset_links = relationship("TemplateAsset", back_populates="template", cascade="all, delete-orphan")
    reminders = relationship("ItemReminder", back_populates="template", cascade="all, delete-orphan")

    @property
    def asset_ids(self) -> list:
        return [link.asset_id for link in self.asset_links]


class TemplateAsset(Base):
    """Scopes a template to an asset."""
    __tablename__ = "inspection_item_template_assets"

    template_id = Column(UUID(as_uuid=True), ForeignKey("inspection_item_templates.id", ondelete="CASCADE"), primary_key=True)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("asset_items.id", ondelete="CASCADE"), primary_key=True)

    template = relationship("InspectionItemTemplate", back_populates="asset_links")
    asset = relationship("Asset")


class UserRequest(Base):
    """Free-text message from a user to a specific admin."""
    __tablename__ = "user_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    requester_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    is_resolved = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    requester = relationship("UserProfile", foreign_keys=[requester_id])
    admin = relationship("UserProfile", foreign_keys=[admin_id])


class ChecklistAlert(Base):
    """Admin alert raised by a checklist completed with issues."""
    __tablename__ = "checklist_alerts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    checklist_id = Column(UUID(as_uuid=True), ForeignKey("inspection_checklists.id", ondelete="CASCADE"), nullable=False, index=True)
    inspection_id = Column(UUID(as_uuid=True), ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    issue_summary = Column(Text, nullable=True)
    is_resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        # At most one open alert per (checklist, admin).
        Index(
            'uq_checklist_alert_open',
            'checklist_id', 'admin_id',
            unique=True,
            postgresql_where=(is_resolved == False),  # noqa: E712
        ),
    )

    checklist = relationship("InspectionChecklist")
    resolutions = relationship("ChecklistAlertResolution", back_populates="alert", cascade="all, delete-orphan")


class ChecklistAlertResolution(Base):
    """Resolution text for one flagged checklist item."""
    __tablename__ = "checklist_alert_resolutions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    alert_id = Column(UUID(as_uuid=True), ForeignKey("checklist_alerts.id", ondelete="CASCADE"), nullable=False, index=True)
    checklist_item_id = Column(UUID(as_uuid=True), ForeignKey("inspection_checklist_items.id", ondelete="CASCADE"), nullable=False)
    resolution_text = Column(Text, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('alert_id', 'checklist_item_id', name='uq_alert_resolution_item'),
    )

    alert = relationship("ChecklistAlert", back_populates="resolutions")


class InspectionReminder(Base):
    """Reminder ledger row: one per (inspection, threshold)."""
    __tablename__ = "inspection_reminders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    inspection_id = Column(UUID(as_uuid=True), ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    days_before = Column(Integer, nullable=False)
    reminder_date = Column(Date, nullable=False)
    sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('inspection_id', 'days_before', name='uq_inspection_reminder_threshold'),
    )

    inspection = relationship("Inspection", back_populates="reminders")


class ItemReminder(Base):
    """Reminder ledger row for a template item's expiry."""
    __tablename__ = "inspection_item_reminders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    template_id = Column(UUID(as_uuid=True), ForeignKey("inspection_item_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_type = Column(String(20), nullable=False, default='due')
    days_before = Column(Integer, nullable=False)
    reminder_date = Column(Date, nullable=False)
    sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(reminder_type.in_(['due', 'overdue']), name='chk_item_reminder_type'),
        UniqueConstraint('template_id', 'reminder_type', 'days_before', name='uq_item_reminder_threshold'),
    )

    template = relationship("InspectionItemTemplate", back_populates="reminders")


class ReportRecipient(Base):
    """Recipient of the weekly digest."""
    __tablename__ = "report_recipients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class EmailOutbox(Base):
    """
    Email outbox - ONE ROW PER RECIPIENT.
    Primary writes commit together with their notification intent; the
    Celery worker delivers pending rows with retry.
    """
    __tablename__ = "email_outbox"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type = Column(String(50), nullable=False)
    recipient_email = Column(String(255), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    html = Column(Text, nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=True)

    status = Column(String(20), default='pending', nullable=False, index=True)  # pending/sent/failed/skipped
    attempts = Column(Integer, default=0, nullable=False)
    next_retry_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_error = Column(Text, nullable=True)

    # Optional dedupe key; ad hoc "send now" paths leave it empty on purpose.
    idempotency_key = Column(String(255), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            type.in_([
                'checklist_assigned', 'checklist_issue_alert', 'user_request',
                'weekly_report', 'inspection_reminder', 'inspection_alert',
                'item_reminder', 'item_expired',
            ]),
            name='chk_email_outbox_type'
        ),
        CheckConstraint(
            status.in_(['pending', 'sent', 'failed', 'skipped']),
            name='chk_email_outbox_status'
        ),
        Index('idx_email_outbox_pending_retry', 'status', 'next_retry_at',
              postgresql_where=(status == 'pending')),
    )
