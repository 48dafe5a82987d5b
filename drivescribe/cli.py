"""Command line entrypoint.

Usage:
    python -m drivescribe.cli run          # process the input folder once, print the report
    python -m drivescribe.cli check        # create a test document to verify Docs access
    python -m drivescribe.cli check --folder-id <DRIVE_FOLDER_ID>
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from googleapiclient.errors import HttpError

from . import auth, docs_writer
from .config import get_settings
from .errors import DriveScribeError, from_http_error
from .tasks import process_folder

log = logging.getLogger(__name__)

CHECK_TEXT = "This is a test document created via the API."


def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    credentials = auth.get_credentials(settings)
    drive = auth.get_drive_client(settings)
    docs = auth.get_docs_client(settings)
    report = process_folder(settings, drive, docs, credentials)
    print(json.dumps(report.to_dict(), indent=2))
    return 1 if report.failed else 0


def check(args: argparse.Namespace) -> int:
    """Create a document, fill it and read it back, reporting each step."""
    settings = get_settings()
    drive = auth.get_drive_client(settings)
    docs = auth.get_docs_client(settings)
    log.info("Service account: %s", auth.service_account_email(settings))

    title = f"Test Document - {datetime.now(timezone.utc).isoformat()}"
    folder_id = args.folder_id or settings.docs_folder_id
    try:
        log.info("1. Creating a document...")
        record = docs_writer.place_document(drive, docs, title, folder_id)
        log.info("Document created: %s (in target folder: %s)", record.url, record.in_target_folder)

        log.info("2. Adding text to the document...")
        docs_writer.insert_text(docs, record.id, CHECK_TEXT)

        log.info("3. Reading the document back...")
        fetched = docs.documents().get(documentId=record.id).execute()
    except HttpError as exc:
        log.error("Check failed: %s", from_http_error(exc, action="check"))
        return 1
    except DriveScribeError as exc:
        log.error("Check failed: %s", exc)
        return 1
    log.info("Title: %s", fetched.get("title"))
    log.info("All checks passed. You can delete %s", record.url)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="drivescribe", description="Transcribe audio from a Google Drive folder into Google Docs.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="process the input folder once").set_defaults(func=run)
    check_parser = sub.add_parser("check", help="verify the service account can create documents")
    check_parser.add_argument("--folder-id", default=None, help="folder to create the test document in")
    check_parser.set_defaults(func=check)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
