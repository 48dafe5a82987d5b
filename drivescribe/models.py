"""Data records passed between the pipeline steps."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DOC_URL_TEMPLATE = "https://docs.google.com/document/d/{doc_id}"

NO_FILES_MESSAGE = "No new audio files found in input folder"
COMPLETE_MESSAGE = "Processing complete"


class FileState(str, enum.Enum):
    DISCOVERED = "discovered"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    SUMMARISING = "summarising"
    WRITING_DOC = "writing_doc"
    MARKING_COMPLETE = "marking_complete"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SourceFile:
    """An audio file sitting in the input folder."""

    id: str
    name: str
    mime_type: str = ""
    created_time: str = ""
    processed: bool = False

    @classmethod
    def from_drive(cls, item: Dict[str, Any], marker_key: str = "processed") -> "SourceFile":
        """Build a record from a Drive ``files`` resource."""
        props = item.get("appProperties") or {}
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            mime_type=item.get("mimeType", ""),
            created_time=item.get("createdTime", ""),
            processed=str(props.get(marker_key, "")).lower() == "true",
        )


@dataclass
class DocumentRecord:
    id: str
    title: str
    folder_id: Optional[str] = None
    in_target_folder: bool = False

    @property
    def url(self) -> str:
        return DOC_URL_TEMPLATE.format(doc_id=self.id)


@dataclass
class FileResult:
    """Outcome of one file's pass through the pipeline."""

    file_name: str
    file_id: str
    status: str = "success"
    doc_id: Optional[str] = None
    doc_url: Optional[str] = None
    error: Optional[str] = None
    step: Optional[str] = None
    state: FileState = FileState.DISCOVERED

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"fileName": self.file_name, "fileId": self.file_id}
        if self.ok:
            data.update(docId=self.doc_id, docUrl=self.doc_url, status="success")
            return data
        data.update(status="error", error=self.error)
        if self.step:
            data["step"] = self.step
        return data


@dataclass
class RunReport:
    """Aggregate result of one invocation."""

    results: List[FileResult] = field(default_factory=list)
    message: str = COMPLETE_MESSAGE
    found_files: bool = True
    debug: Optional[Dict[str, Any]] = None

    @classmethod
    def empty(cls, debug: Optional[Dict[str, Any]] = None) -> "RunReport":
        return cls(message=NO_FILES_MESSAGE, found_files=False, debug=debug)

    @property
    def processed(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def to_dict(self) -> Dict[str, Any]:
        if not self.found_files:
            data: Dict[str, Any] = {"message": self.message, "results": []}
            if self.debug is not None:
                data["debug"] = self.debug
            return data
        return {
            "message": self.message,
            "processed": self.processed,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }
