"""Pydantic schemas for API."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import date, datetime
from uuid import UUID


# Users
class UserProfileResponse(BaseModel):
    id: UUID
    email: str
    role: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UserBrief(BaseModel):
    """Brief user info for pickers and nested responses."""
    id: UUID
    email: str
    model_config = ConfigDict(from_attributes=True)


class UserRoleUpdate(BaseModel):
    role: str = Field(pattern="^(user|admin)$")


# Assets
class AssetCreate(BaseModel):
    asset_id: str
    name: str
    location: Optional[str] = None
    status: str = Field(default="active", pattern="^(active|decommissioned)$")
    asset_type: Optional[str] = None
    install_date: Optional[date] = None
    notes: Optional[str] = None


class AssetUpdate(BaseModel):
    asset_id: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = Field(default=None, pattern="^(active|decommissioned)$")
    asset_type: Optional[str] = None
    install_date: Optional[date] = None
    notes: Optional[str] = None


class AssetResponse(BaseModel):
    id: UUID
    asset_id: str
    name: str
    location: Optional[str] = None
    status: str
    asset_type: Optional[str] = None
    install_date: Optional[date] = None
    notes: Optional[str] = None
    sort_order: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class AssetReorderRequest(BaseModel):
    """Either a full ordering of ids, or a single drag-and-drop move."""
    ordered_ids: Optional[list[UUID]] = None
    source_index: Optional[int] = Field(default=None, ge=0)
    destination_index: Optional[int] = Field(default=None, ge=0)
    status_filter: Optional[str] = None
    type_filter: Optional[str] = None


class AssetEventCreate(BaseModel):
    start_date: date
    end_date: date
    description: str
    end_status: str = Field(default="active", pattern="^(active|decommissioned)$")
    location: Optional[str] = None


class AssetEventResponse(BaseModel):
    id: UUID
    asset_id: UUID
    start_date: date
    end_date: date
    description: str
    end_status: str
    location: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# Inspection types
class InspectionTypeCreate(BaseModel):
    name: str
    frequency: Optional[str] = None
    statutory_requirement: bool = True
    google_drive_url: Optional[str] = None


class InspectionTypeUpdate(BaseModel):
    name: Optional[str] = None
    frequency: Optional[str] = None
    statutory_requirement: Optional[bool] = None
    google_drive_url: Optional[str] = None


class InspectionTypeResponse(BaseModel):
    id: UUID
    name: str
    frequency: Optional[str] = None
    statutory_requirement: bool
    google_drive_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# Inspections
class InspectionScheduleRequest(BaseModel):
    asset_ids: list[UUID] = Field(min_length=1)
    inspection_type_id: Optional[UUID] = None
    inspection_type_name: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    link_assets: bool = False


class InspectionUpdate(BaseModel):
    due_date: Optional[date] = None
    status: Optional[str] = Field(default=None, pattern="^(pending|overdue|on_hold|completed)$")
    hold_reason: Optional[str] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    date_completed: Optional[date] = None
    next_inspection_date: Optional[date] = None
    next_inspection_na: Optional[bool] = None
    certs_received: Optional[bool] = None
    certs_link: Optional[str] = None
    waiting_on_certs: Optional[bool] = None
    defect_portal_actions: Optional[bool] = None
    defect_portal_na: Optional[bool] = None


class InspectionCompleteRequest(BaseModel):
    date_completed: Optional[date] = None
    next_inspection_date: Optional[date] = None
    next_inspection_na: Optional[bool] = None
    certs_received: Optional[bool] = None
    certs_link: Optional[str] = None
    waiting_on_certs: Optional[bool] = None
    defect_portal_actions: Optional[bool] = None
    defect_portal_na: Optional[bool] = None
    repeat_frequency: Optional[str] = Field(
        default=None,
        pattern="^(monthly|quarterly|six_monthly|yearly|two_yearly)$",
    )


class InspectionResponse(BaseModel):
    id: UUID
    asset_id: UUID
    inspection_type_id: UUID
    due_date: Optional[date] = None
    completed_date: Optional[date] = None
    date_completed: Optional[date] = None
    status: str
    hold_reason: Optional[str] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    next_inspection_date: Optional[date] = None
    next_inspection_na: bool
    certs_received: bool
    certs_link: Optional[str] = None
    waiting_on_certs: bool
    defect_portal_actions: bool
    defect_portal_na: bool
    linked_group_id: Optional[UUID] = None
    recurrence_group_id: Optional[UUID] = None
    recurrence_sequence: Optional[int] = None
    status_class: Optional[str] = None
    due_label: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class InspectionLogResponse(BaseModel):
    id: UUID
    action: str
    details: Optional[str] = None
    created_at: Optional[datetime] = None
    author_email: Optional[str] = None


# Item templates
class TemplateCreate(BaseModel):
    unique_id: Optional[str] = None
    description: Optional[str] = None
    inspection_type_id: Optional[UUID] = None
    capacity: Optional[str] = None
    capacity_na: bool = False
    expiry_date: Optional[date] = None
    expiry_na: bool = False
    is_active: bool = True
    sort_order: int = 0
    asset_ids: list[UUID] = []


class TemplateUpdate(BaseModel):
    unique_id: Optional[str] = None
    description: Optional[str] = None
    inspection_type_id: Optional[UUID] = None
    capacity: Optional[str] = None
    capacity_na: Optional[bool] = None
    expiry_date: Optional[date] = None
    expiry_na: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    asset_ids: Optional[list[UUID]] = None


class TemplateResponse(BaseModel):
    id: UUID
    unique_id: Optional[str] = None
    description: Optional[str] = None
    inspection_type_id: Optional[UUID] = None
    capacity: Optional[str] = None
    capacity_na: bool
    expiry_date: Optional[date] = None
    expiry_na: bool
    is_active: bool
    sort_order: int
    asset_ids: list[UUID] = []
    model_config = ConfigDict(from_attributes=True)


# Checklists
class ChecklistCreate(BaseModel):
    inspection_id: UUID
    assigned_user_id: UUID
    template_ids: list[UUID] = Field(min_length=1)


class ChecklistItemUpdate(BaseModel):
    id: UUID
    status: Optional[str] = Field(default=None, pattern="^(not_checked|inspected|not_available|defective)$")
    comments: Optional[str] = None


class ChecklistProgressRequest(BaseModel):
    items: list[ChecklistItemUpdate] = []


class ChecklistCompleteRequest(BaseModel):
    items: list[ChecklistItemUpdate] = []
    admin_ids: list[UUID] = []


class ChecklistItemResponse(BaseModel):
    id: UUID
    template_id: Optional[UUID] = None
    label: str
    sort_order: int
    status: str
    comments: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ChecklistResponse(BaseModel):
    id: UUID
    inspection_id: UUID
    asset_id: UUID
    inspection_type_id: UUID
    linked_group_id: Optional[UUID] = None
    assigned_user_id: UUID
    status: str
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: list[ChecklistItemResponse] = []
    model_config = ConfigDict(from_attributes=True)


# Alerts
class AlertResolutionItem(BaseModel):
    checklist_item_id: UUID
    resolution_text: str


class AlertResolveRequest(BaseModel):
    resolutions: list[AlertResolutionItem] = []


class AlertResponse(BaseModel):
    id: UUID
    checklist_id: UUID
    inspection_id: UUID
    admin_id: UUID
    created_by: Optional[UUID] = None
    issue_summary: Optional[str] = None
    is_resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# User requests
class UserRequestCreate(BaseModel):
    admin_id: UUID
    description: str


class UserRequestResponse(BaseModel):
    id: UUID
    requester_id: UUID
    admin_id: UUID
    description: str
    is_resolved: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# Reports
class ReportRecipientCreate(BaseModel):
    email: str


class ReportRecipientResponse(BaseModel):
    id: UUID
    email: str
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class ItemReminderRunRequest(BaseModel):
    template_id: Optional[UUID] = None


# Notifications
class NotificationCountsResponse(BaseModel):
    open_checklists: int
    unresolved_requests: int
    unresolved_alerts: int
    total: int


# Drive
class DriveUploadRequest(BaseModel):
    folder_url: str
    file_name: str
    mime_type: Optional[str] = None
    file_base64: str


class DriveUploadResponse(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    web_view_link: Optional[str] = None
    web_content_link: Optional[str] = None
    folder_id: str
