"""
Google Docs creation with best-effort folder placement.

Placement is an ordered list of attempts, each returning an
:class:`AttemptOutcome`:

1. create the document directly inside the target folder (Drive API);
2. otherwise create it in the service account's default location (Docs API),
   which leaves a follow-up move to do;
3. move it into the target folder, retrying once.

A document that exists but could not be moved is still a success: only a
document that could not be created at all raises :class:`WriteError`.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Optional

from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError

from .errors import WriteError, from_http_error
from .models import DocumentRecord

logger = logging.getLogger(__name__)

GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
# Index 1 is the first position of a Docs body; inserting there puts the
# text at the very start of the document.
DOC_START_INDEX = 1
TITLE_SUFFIX = " - Transcript"

# Failures that turn a placement attempt into Outcome.FAILED.
ATTEMPT_ERRORS = (HttpError, OSError, TransportError)


class Outcome(enum.Enum):
    SUCCEEDED = "succeeded"
    NEEDS_FOLLOWUP = "needs_followup"
    FAILED = "failed"


@dataclass
class AttemptOutcome:
    outcome: Outcome
    doc_id: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def created(self) -> bool:
        return self.doc_id is not None and self.outcome is not Outcome.FAILED


def document_title(file_name: str) -> str:
    """``"voice.mp3"`` -> ``"voice - Transcript"``."""
    stem = re.sub(r"\.[^/.]+$", "", file_name) or file_name
    return f"{stem}{TITLE_SUFFIX}"


def create_in_folder(drive, title: str, folder_id: str) -> AttemptOutcome:
    try:
        created = (
            drive.files()
            .create(
                body={"name": title, "mimeType": GOOGLE_DOC_MIME, "parents": [folder_id]},
                fields="id",
                supportsAllDrives=True,
            )
            .execute()
        )
    except ATTEMPT_ERRORS as exc:
        logger.warning("Could not create %r inside folder %s: %s", title, folder_id, exc)
        return AttemptOutcome(Outcome.FAILED, error=exc)
    return AttemptOutcome(Outcome.SUCCEEDED, doc_id=created["id"])


def create_default(docs, title: str, folder_id: Optional[str]) -> AttemptOutcome:
    try:
        created = docs.documents().create(body={"title": title}).execute()
    except ATTEMPT_ERRORS as exc:
        logger.warning("Could not create %r in the default location: %s", title, exc)
        return AttemptOutcome(Outcome.FAILED, error=exc)
    outcome = Outcome.NEEDS_FOLLOWUP if folder_id else Outcome.SUCCEEDED
    return AttemptOutcome(outcome, doc_id=created["documentId"])


def move_into_folder(drive, doc_id: str, folder_id: str, attempts: int = 2) -> AttemptOutcome:
    """Move a freshly created document, retrying once on failure."""
    error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            current = drive.files().get(fileId=doc_id, fields="parents", supportsAllDrives=True).execute()
            drive.files().update(
                fileId=doc_id,
                addParents=folder_id,
                removeParents=",".join(current.get("parents") or []),
                fields="id, parents",
                supportsAllDrives=True,
            ).execute()
            return AttemptOutcome(Outcome.SUCCEEDED, doc_id=doc_id)
        except ATTEMPT_ERRORS as exc:
            error = exc
            logger.warning("Move of document %s into %s failed (attempt %d): %s", doc_id, folder_id, attempt, exc)
    return AttemptOutcome(Outcome.FAILED, doc_id=doc_id, error=error)


def place_document(drive, docs, title: str, folder_id: Optional[str] = None) -> DocumentRecord:
    """Create an empty document, inside ``folder_id`` when possible.

    Raises:
        WriteError: If neither creation path produced a document.
    """
    first_error: Optional[Exception] = None
    if folder_id:
        direct = create_in_folder(drive, title, folder_id)
        if direct.outcome is Outcome.SUCCEEDED:
            return DocumentRecord(id=direct.doc_id, title=title, folder_id=folder_id, in_target_folder=True)
        first_error = direct.error

    fallback = create_default(docs, title, folder_id)
    if not fallback.created:
        reason = fallback.error or first_error
        raise WriteError(
            f"Could not create document {title!r}: {reason}. Check that the Google Docs API "
            f"is enabled for the service account's project and that it can write to "
            f"folder {folder_id or '(default location)'}."
        )
    record = DocumentRecord(id=fallback.doc_id, title=title, folder_id=folder_id)
    if fallback.outcome is Outcome.SUCCEEDED:
        return record

    moved = move_into_folder(drive, record.id, folder_id)
    if moved.outcome is Outcome.SUCCEEDED:
        record.in_target_folder = True
    else:
        logger.warning(
            "Document %s was created but left outside folder %s: %s",
            record.id,
            folder_id,
            moved.error,
        )
    return record


def insert_text(docs, doc_id: str, content: str) -> None:
    """Insert ``content`` at the start of the document."""
    if not content:
        return
    try:
        docs.documents().batchUpdate(
            documentId=doc_id,
            body={"requests": [{"insertText": {"location": {"index": DOC_START_INDEX}, "text": content}}]},
        ).execute()
    except HttpError as exc:
        raise WriteError(
            f"Document {doc_id} was created but inserting the text failed: "
            f"{from_http_error(exc, file_id=doc_id, action='edit document')}. "
            f"The empty document was left in place.",
            doc_id=doc_id,
        ) from exc


def create_document(drive, docs, title: str, content: str, folder_id: Optional[str] = None) -> DocumentRecord:
    """Create a document holding ``content``, located in ``folder_id`` if possible."""
    record = place_document(drive, docs, title, folder_id)
    insert_text(docs, record.id, content)
    logger.info("Created document %s (%s)", record.title, record.url)
    return record
