"""
Orchestration layer for the Drive transcription pipeline.

:func:`process_folder` is called from the HTTP entrypoint in
:mod:`drivescribe.main` and from the command line.  For every audio file
waiting in the input folder it:

1. downloads the file from Drive;
2. transcribes it (and, depending on ``CONTENT_MODE``, summarises it);
3. writes the text into a new Google Doc;
4. moves the audio into the output folder, or tags it as processed.

A failure in any step is recorded against that file and the loop moves on to
the next one.  Failures before the loop starts (folder access, listing) are
raised to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from googleapiclient.errors import HttpError

from . import docs_writer, drive as drive_ops, stt_service, summarizer
from .auth import service_account_email
from .config import Settings
from .errors import DriveScribeError, from_http_error
from .models import FileResult, FileState, RunReport, SourceFile

logger = logging.getLogger(__name__)

STEP_DOWNLOAD = "Step 1: download"
STEP_TRANSCRIBE = "Step 2: transcribe"
STEP_SUMMARISE = "Step 2b: summarise"
STEP_WRITE_DOC = "Step 3: create document"
STEP_MARK_COMPLETE = "Step 4: mark complete"

STEP_BY_STATE = {
    FileState.DOWNLOADING: STEP_DOWNLOAD,
    FileState.TRANSCRIBING: STEP_TRANSCRIBE,
    FileState.SUMMARISING: STEP_SUMMARISE,
    FileState.WRITING_DOC: STEP_WRITE_DOC,
    FileState.MARKING_COMPLETE: STEP_MARK_COMPLETE,
}


def _event(name: str, **fields: Any) -> None:
    logger.info(json.dumps({"event": name, **fields}))


def _debug_payload(drive, settings: Settings, folder: dict) -> dict:
    contents = drive_ops.list_folder_contents(drive, settings.input_folder_id)
    return {
        "folderId": settings.input_folder_id,
        "folderName": folder.get("name"),
        "totalFilesInFolder": len(contents),
        "filesInFolder": contents,
        "serviceAccountEmail": service_account_email(settings),
        "completionMode": settings.completion_mode,
    }


def _record_failure(result: FileResult, error: Exception) -> None:
    result.step = STEP_BY_STATE.get(result.state)
    result.status = "error"
    result.error = str(error) or type(error).__name__
    result.state = FileState.FAILED


def process_file(
    source: SourceFile,
    settings: Settings,
    drive,
    docs,
    credentials: Optional[Any] = None,
) -> FileResult:
    """Run one file through every step, recording where it stopped."""
    result = FileResult(file_name=source.name, file_id=source.id)
    try:
        result.state = FileState.DOWNLOADING
        _event("download", file=source.name, file_id=source.id)
        audio = drive_ops.download_file(drive, source.id)

        result.state = FileState.TRANSCRIBING
        _event("transcribe", file=source.name, bytes=len(audio))
        transcript = stt_service.transcribe(audio, source.name, settings, credentials)
        content = transcript

        if settings.content_mode != "transcript":
            result.state = FileState.SUMMARISING
            _event("summarise", file=source.name)
            summary = summarizer.summarise(transcript, settings)
            content = summarizer.compose_content(transcript, summary, settings.content_mode)

        result.state = FileState.WRITING_DOC
        title = docs_writer.document_title(source.name)
        _event("create_document", file=source.name, title=title)
        document = docs_writer.create_document(drive, docs, title, content, settings.docs_folder_id)
        result.doc_id = document.id
        result.doc_url = document.url

        result.state = FileState.MARKING_COMPLETE
        _event("mark_complete", file=source.name, mode=settings.completion_mode)
        drive_ops.mark_complete(drive, source, settings)
    except (DriveScribeError, HttpError) as exc:
        error = from_http_error(exc, file_id=source.id) if isinstance(exc, HttpError) else exc
        _record_failure(result, error)
        logger.error("Error processing %s at %s: %s", source.name, result.step, error)
        _event("file_failed", file=source.name, step=result.step, doc_id=result.doc_id)
        return result
    except Exception as exc:
        # Transport failures (socket timeouts, token refresh) stay with this file.
        _record_failure(result, exc)
        logger.exception("Unexpected error processing %s at %s", source.name, result.step)
        _event("file_failed", file=source.name, step=result.step, doc_id=result.doc_id)
        return result

    result.state = FileState.DONE
    _event("file_done", file=source.name, doc_id=result.doc_id)
    return result


def process_folder(settings: Settings, drive, docs, credentials: Optional[Any] = None) -> RunReport:
    """Process every pending audio file in the input folder.

    Args:
        settings: Loaded configuration.
        drive: Drive v3 service.
        docs: Docs v1 service.
        credentials: Google credentials, needed by the ``google``
            transcription backend.

    Returns:
        A :class:`RunReport`; :meth:`RunReport.empty` when nothing was found.

    Raises:
        DriveScribeError: If the input folder cannot be opened or listed.
    """
    _event("run_start", folder=settings.input_folder_id, mode=settings.completion_mode)
    folder = drive_ops.verify_folder_access(drive, settings.input_folder_id, service_account_email(settings))
    try:
        files = drive_ops.discover_files(drive, settings)
    except HttpError as exc:
        raise from_http_error(exc, file_id=settings.input_folder_id, action="list files in folder") from exc

    if not files:
        _event("no_files", folder=settings.input_folder_id)
        debug = _debug_payload(drive, settings, folder) if settings.debug else None
        return RunReport.empty(debug=debug)

    report = RunReport()
    seen = set()
    logger.info("Found %d audio file(s) to process", len(files))
    for source in files:
        if source.id in seen:
            continue
        seen.add(source.id)
        report.results.append(process_file(source, settings, drive, docs, credentials))

    _event("run_complete", processed=report.processed, failed=report.failed)
    return report
