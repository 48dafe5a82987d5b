"""
Google Drive helpers: discovery, download and completion marking.

All functions take a ``drive`` service built by
:func:`drivescribe.auth.get_drive_client` as their first argument so they
can be exercised against an in-memory fake.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from googleapiclient.errors import HttpError

from .config import Settings
from .errors import NotFoundError, PermissionDeniedError, from_http_error, http_status
from .models import SourceFile

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/x-mpeg",
    "audio/mp4",
    "audio/wav",
    "audio/x-wav",
    "audio/m4a",
    "audio/x-m4a",
    "audio/ogg",
    "audio/flac",
    "audio/webm",
}
AUDIO_MIME_PREFIX = "audio/"
AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".mp4", ".ogg", ".oga", ".flac", ".webm", ".mpeg", ".mpga"}

FILE_FIELDS = "id,name,mimeType,createdTime,appProperties"
FOLDER_URL = "https://drive.google.com/drive/folders/{folder_id}"


def is_audio(mime_type: Optional[str], name: Optional[str]) -> bool:
    """Decide whether a Drive file should be transcribed.

    The declared content type wins; the filename extension is the fallback
    for uploads Drive labelled ``application/octet-stream``.
    """
    mime_type = (mime_type or "").lower()
    if mime_type in AUDIO_MIME_TYPES or mime_type.startswith(AUDIO_MIME_PREFIX):
        return True
    return PurePosixPath((name or "").lower()).suffix in AUDIO_EXTENSIONS


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _mime_query(folder_id: str) -> str:
    clauses = [f"mimeType='{m}'" for m in sorted(AUDIO_MIME_TYPES)]
    clauses.append(f"mimeType contains '{AUDIO_MIME_PREFIX}'")
    return f"'{_escape(folder_id)}' in parents and trashed=false and ({' or '.join(clauses)})"


def _extension_query(folder_id: str) -> str:
    clauses = [f"name contains '{ext}'" for ext in sorted(AUDIO_EXTENSIONS)]
    return f"'{_escape(folder_id)}' in parents and trashed=false and ({' or '.join(clauses)})"


def _list(drive, query: str, *, fields: str = FILE_FIELDS, order_by: Optional[str] = "createdTime desc") -> List[Dict[str, Any]]:
    """Run a ``files.list`` query and follow every page."""
    items: List[Dict[str, Any]] = []
    page_token = None
    while True:
        params: Dict[str, Any] = {
            "q": query,
            "fields": f"nextPageToken, files({fields})",
            "pageSize": 100,
            "pageToken": page_token,
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        if order_by:
            params["orderBy"] = order_by
        response = drive.files().list(**params).execute()
        items.extend(response.get("files", []))
        page_token = response.get("nextPageToken")
        if not page_token:
            break
    return items


def _newest_first(files: List[SourceFile]) -> List[SourceFile]:
    return sorted(files, key=lambda f: f.created_time or "", reverse=True)


def list_audio_files(drive, folder_id: str, marker_key: str = "processed") -> List[SourceFile]:
    """List audio files in ``folder_id``, newest first.

    Files are matched on their content type first; if that finds nothing, the
    folder is queried again by filename extension.
    """
    items = _list(drive, _mime_query(folder_id))
    if not items:
        logger.info("No files found with content-type query in %s, trying extensions", folder_id)
        items = _list(drive, _extension_query(folder_id))
    files = [SourceFile.from_drive(i, marker_key) for i in items if is_audio(i.get("mimeType"), i.get("name"))]
    logger.info(
        "Found %d audio file(s) in folder %s: %s",
        len(files),
        folder_id,
        [(f.name, f.mime_type, f.id) for f in files],
    )
    return _newest_first(files)


def list_unprocessed_files(drive, folder_id: str, marker_key: str) -> List[SourceFile]:
    """List audio files in ``folder_id`` that do not carry the processed tag."""
    items = _list(drive, f"'{_escape(folder_id)}' in parents and trashed=false")
    files = [SourceFile.from_drive(i, marker_key) for i in items]
    pending = [f for f in files if not f.processed and is_audio(f.mime_type, f.name)]
    logger.info(
        "Found %d file(s) in folder %s, %d pending (marker %r)",
        len(files),
        folder_id,
        len(pending),
        marker_key,
    )
    return _newest_first(pending)


def discover_files(drive, settings: Settings) -> List[SourceFile]:
    if settings.completion_mode == "tag":
        return list_unprocessed_files(drive, settings.input_folder_id, settings.marker_key)
    return list_audio_files(drive, settings.input_folder_id, settings.marker_key)


def verify_folder_access(drive, folder_id: str, sa_email: str) -> Dict[str, Any]:
    """Fetch folder metadata, explaining how to share the folder on failure.

    Drive answers 404 both for missing folders and for folders that exist but
    are not shared with the service account.
    """
    try:
        folder = (
            drive.files()
            .get(fileId=folder_id, fields="id,name,mimeType", supportsAllDrives=True)
            .execute()
        )
    except HttpError as exc:
        status = http_status(exc)
        if status not in (403, 404):
            raise from_http_error(exc, file_id=folder_id, action="open folder") from exc
        summary = (
            "Folder not found or service account doesn't have access"
            if status == 404
            else "Access denied to folder"
        )
        url = FOLDER_URL.format(folder_id=folder_id)
        message = (
            f"{summary}.\n\n"
            f"Folder ID: {folder_id}\n"
            f"Folder URL: {url}\n\n"
            f"To fix this:\n"
            f"1. Open the folder in Google Drive: {url}\n"
            f"2. Click \"Share\"\n"
            f"3. Add this email address: {sa_email}\n"
            f"4. Give it \"Editor\" access so it can move files and create documents\n"
            f"5. Click \"Send\"\n"
        )
        if status == 404:
            raise NotFoundError(message, file_id=folder_id) from exc
        raise PermissionDeniedError(message, file_id=folder_id) from exc
    logger.info("Folder access verified: %s (%s)", folder.get("name"), folder.get("id"))
    return folder


def list_folder_contents(drive, folder_id: str) -> List[Dict[str, Any]]:
    """Snapshot of every file in a folder, for debug responses."""
    items = _list(
        drive,
        f"'{_escape(folder_id)}' in parents and trashed=false",
        fields="id,name,mimeType,size",
        order_by=None,
    )
    return [{"name": i.get("name"), "mimeType": i.get("mimeType"), "size": i.get("size")} for i in items]


def download_file(drive, file_id: str) -> bytes:
    """Download the whole content of a Drive file into memory."""
    try:
        data = drive.files().get_media(fileId=file_id, supportsAllDrives=True).execute()
    except HttpError as exc:
        raise from_http_error(exc, file_id=file_id, action="download") from exc
    logger.info("Downloaded %s (%d bytes)", file_id, len(data))
    return data


def move_file(drive, file_id: str, destination: str) -> None:
    """Move a file by replacing all of its parents with ``destination``."""
    try:
        current = (
            drive.files()
            .get(fileId=file_id, fields="parents", supportsAllDrives=True)
            .execute()
        )
        previous = ",".join(current.get("parents") or [])
        drive.files().update(
            fileId=file_id,
            addParents=destination,
            removeParents=previous,
            fields="id, parents",
            supportsAllDrives=True,
        ).execute()
    except HttpError as exc:
        raise from_http_error(exc, file_id=file_id, destination=destination, action="move") from exc
    logger.info("Moved %s into folder %s", file_id, destination)


def mark_processed(drive, file_id: str, marker_key: str) -> None:
    """Tag a file with ``appProperties[marker_key] = "true"``."""
    try:
        drive.files().update(
            fileId=file_id,
            body={"appProperties": {marker_key: "true"}},
            fields="id, appProperties",
            supportsAllDrives=True,
        ).execute()
    except HttpError as exc:
        raise from_http_error(exc, file_id=file_id, action=f"set {marker_key!r} tag on") from exc
    logger.info("Tagged %s with %s=true", file_id, marker_key)


def mark_complete(drive, source: SourceFile, settings: Settings) -> None:
    if settings.completion_mode == "tag":
        mark_processed(drive, source.id, settings.marker_key)
    else:
        move_file(drive, source.id, settings.output_folder_id)
