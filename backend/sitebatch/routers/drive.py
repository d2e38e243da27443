"""Certificate upload to Google Drive."""
from fastapi import APIRouter, Depends

from ..auth import PermissionChecker
from ..models import UserProfile
from ..schemas import DriveUploadRequest, DriveUploadResponse
from ..services.drive_upload import upload_certificate

router = APIRouter(prefix="/drive", tags=["drive"])


@router.post("/upload", response_model=DriveUploadResponse)
def upload_to_drive(
    data: DriveUploadRequest,
    current_user: UserProfile = Depends(PermissionChecker("canUploadCerts")),
):
    """Upload a certificate into the inspection type's Shared Drive folder."""
    result = upload_certificate(
        folder_url=data.folder_url,
        file_name=data.file_name,
        mime_type=data.mime_type,
        file_base64=data.file_base64,
    )
    return DriveUploadResponse(**result)
