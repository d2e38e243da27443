"""Upload inspection certificates to a Google Drive folder with a service account."""

from __future__ import annotations

import base64
import binascii
import io
import json
import logging
import re
from urllib.parse import parse_qs, urlparse

import httplib2
from google.auth.exceptions import RefreshError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from ..config import settings
from ..domain_errors import DomainError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
FOLDER_MIME = "application/vnd.google-apps.folder"
SHORTCUT_MIME = "application/vnd.google-apps.shortcut"

_FOLDER_PATH_RE = re.compile(r"/folders/([a-zA-Z0-9_-]+)")
_RAW_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{10,}$")


def _drive_error(code: str, message: str, http_status: int = 400) -> DomainError:
    return DomainError(code=code, http_status=http_status, message=message)


def _error_message(exc: HttpError, default: str) -> str:
    """Drive's `error.message`, or `default` when the body is not the usual JSON."""
    try:
        payload = json.loads(exc.content.decode("utf-8"))
    except (AttributeError, UnicodeDecodeError, ValueError):
        return default
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return default


def _execute(request):
    try:
        return request.execute()
    except RefreshError as exc:
        logger.error("Drive service account token refresh failed: %s", exc)
        raise _drive_error("DRIVE_AUTH_FAILED", "Failed to obtain Google access token", http_status=502)


def parse_folder_id(folder_url: str) -> str:
    """Extract the folder id from a Drive folder URL (or accept a bare id)."""
    trimmed = (folder_url or "").strip()
    match = _FOLDER_PATH_RE.search(trimmed)
    if match:
        return match.group(1)
    query_id = parse_qs(urlparse(trimmed).query).get("id")
    if query_id and query_id[0]:
        return query_id[0]
    if _RAW_ID_RE.match(trimmed):
        return trimmed
    raise _drive_error("DRIVE_FOLDER_URL_INVALID", "Unable to parse Google Drive folder ID from folder URL")


def get_drive_service():
    """Drive v3 client authorised as the configured service account."""
    email = settings.GOOGLE_SERVICE_ACCOUNT_EMAIL
    private_key = settings.GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY
    if not email or not private_key:
        raise _drive_error(
            "DRIVE_NOT_CONFIGURED",
            "Google service account env vars are missing",
            http_status=503,
        )

    try:
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": email,
                "private_key": private_key.replace("\\n", "\n"),
                "token_uri": TOKEN_URL,
            },
            scopes=[DRIVE_SCOPE],
        )
    except ValueError:
        raise _drive_error(
            "DRIVE_NOT_CONFIGURED",
            "Google service account private key is invalid",
            http_status=503,
        )

    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=settings.GOOGLE_DRIVE_HTTP_TIMEOUT_SECONDS))
    return build("drive", "v3", http=http, cache_discovery=False)


def resolve_upload_folder(service, folder_id: str, *, follow_shortcut: bool = True) -> dict:
    """Fetch folder metadata, following a shortcut to its target at most once."""
    request = service.files().get(
        fileId=folder_id,
        supportsAllDrives=True,
        fields="id,name,mimeType,driveId,shortcutDetails",
    )
    try:
        metadata = _execute(request)
    except HttpError as exc:
        if exc.resp.status == 404:
            raise _drive_error(
                "DRIVE_FOLDER_NOT_SHARED",
                f"Configured Drive folder ID is not visible to the active upload account: {folder_id}. "
                "Re-save the exact folder URL in Admin Tools and confirm the service account has access "
                "to that specific folder.",
            )
        message = _error_message(exc, "Failed to read target Drive folder metadata")
        raise _drive_error("DRIVE_METADATA_FAILED", message, http_status=502)

    if metadata.get("mimeType") == SHORTCUT_MIME:
        target_id = (metadata.get("shortcutDetails") or {}).get("targetId")
        if not target_id:
            raise _drive_error(
                "DRIVE_SHORTCUT_WITHOUT_TARGET",
                "Folder link points to a shortcut without a target. Use the destination folder link directly.",
            )
        if not follow_shortcut:
            raise _drive_error(
                "DRIVE_SHORTCUT_CHAIN",
                "Folder link points to a shortcut of a shortcut. Use the destination folder link directly.",
            )
        return resolve_upload_folder(service, target_id, follow_shortcut=False)
    return metadata


def upload_certificate(*, folder_url: str, file_name: str, mime_type: str | None, file_base64: str) -> dict:
    """Upload one file into the configured folder and return its Drive ids/links."""
    if not folder_url or not file_name or not file_base64:
        raise _drive_error("DRIVE_UPLOAD_INVALID", "folder_url, file_name and file_base64 are required")

    try:
        content = base64.b64decode(file_base64, validate=True)
    except (binascii.Error, ValueError):
        raise _drive_error("DRIVE_UPLOAD_INVALID", "file_base64 is not valid base64")

    folder_id = parse_folder_id(folder_url)
    service = get_drive_service()
    folder = resolve_upload_folder(service, folder_id)

    if folder.get("mimeType") != FOLDER_MIME:
        raise _drive_error(
            "DRIVE_NOT_A_FOLDER",
            "Configured Drive link is not a folder. Please set a valid folder URL in Admin Tools.",
        )
    if not folder.get("driveId"):
        raise _drive_error(
            "DRIVE_NOT_SHARED_DRIVE",
            "Configured folder is in My Drive (or not a Shared Drive folder). "
            "Set Admin Tools link to a Shared Drive folder URL.",
        )

    media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type or "application/octet-stream")
    request = service.files().create(
        body={"name": file_name, "parents": [folder["id"]]},
        media_body=media,
        supportsAllDrives=True,
        fields="id,name,webViewLink,webContentLink",
    )
    try:
        uploaded = _execute(request)
    except HttpError as exc:
        message = _error_message(exc, "Google Drive upload failed")
        logger.error("Drive upload failed for folder %s: %s", folder_id, message)
        if "storage quota" in message.lower():
            raise _drive_error(
                "DRIVE_NOT_SHARED_DRIVE",
                "Target folder is not in a Shared Drive. Move/use a Shared Drive folder and grant "
                "the service account access, then try again.",
            )
        raise _drive_error("DRIVE_UPLOAD_FAILED", message, http_status=502)

    logger.info("Uploaded %s to Drive folder %s", file_name, folder_id)
    return {
        "id": uploaded.get("id"),
        "name": uploaded.get("name"),
        "web_view_link": uploaded.get("webViewLink"),
        "web_content_link": uploaded.get("webContentLink"),
        "folder_id": folder["id"],
    }
