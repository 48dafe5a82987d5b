"""
Exceptions raised by the Drive transcription pipeline.

Each error carries the remote identifiers needed to diagnose it (file, folder
or document ids) and a message written to be acted upon directly.
"""

from typing import Optional

from googleapiclient.errors import HttpError


class DriveScribeError(Exception):
    """Base exception for all pipeline errors"""
    pass


class ConfigurationError(DriveScribeError):
    """Raised when required environment configuration is missing or malformed"""
    pass


class CredentialFormatError(DriveScribeError):
    """Raised when the service-account private key is not a PEM key"""
    pass


class AuthError(DriveScribeError):
    """Raised when a remote service rejects our credentials"""
    pass


class NotFoundError(DriveScribeError):
    """Raised when a Drive object does not exist or is not shared with us"""

    def __init__(self, message: str, file_id: Optional[str] = None):
        super().__init__(message)
        self.file_id = file_id


class PermissionDeniedError(DriveScribeError):
    """Raised when Drive refuses access to, or edits of, an object"""

    def __init__(self, message: str, file_id: Optional[str] = None, destination: Optional[str] = None):
        super().__init__(message)
        self.file_id = file_id
        self.destination = destination


class InputFormatError(DriveScribeError):
    """Raised when the transcription service cannot use the submitted audio"""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class TranscriptionFormatError(DriveScribeError):
    """Raised when no text can be extracted from a service response"""
    pass


class WriteError(DriveScribeError):
    """Raised when a document could not be created or filled"""

    def __init__(self, message: str, doc_id: Optional[str] = None):
        super().__init__(message)
        self.doc_id = doc_id


class RemoteError(DriveScribeError):
    """Raised for any other failure reported by a third-party service"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def http_status(exc: HttpError) -> int:
    """Return the HTTP status code of a ``googleapiclient`` error."""
    try:
        return int(exc.resp.status)
    except (AttributeError, TypeError, ValueError):
        return 0


def from_http_error(
    exc: HttpError,
    *,
    file_id: Optional[str] = None,
    destination: Optional[str] = None,
    action: str = "access",
) -> DriveScribeError:
    """Translate a Drive/Docs ``HttpError`` into the pipeline taxonomy.

    Args:
        exc: The error raised by a ``googleapiclient`` request.
        file_id: Identifier of the object the request was about.
        destination: Target folder for move operations, if any.
        action: Short verb phrase used in the message (``"download"``,
            ``"move"`` ...).

    Returns:
        A :class:`NotFoundError`, :class:`PermissionDeniedError`,
        :class:`AuthError` or :class:`RemoteError` instance.
    """
    status = http_status(exc)
    target = f" into folder {destination}" if destination else ""
    if status == 404:
        return NotFoundError(
            f"Cannot {action} file {file_id}{target}: not found. The file may have been "
            f"deleted, or it is not shared with the service account.",
            file_id=file_id,
        )
    if status == 403:
        return PermissionDeniedError(
            f"Cannot {action} file {file_id}{target}: access denied. Give the service "
            f"account \"Editor\" access to the file and to the destination folder, and "
            f"check that the Drive and Docs APIs are enabled for its project.",
            file_id=file_id,
            destination=destination,
        )
    if status == 401:
        return AuthError(
            f"Google rejected the service-account credentials while trying to {action} "
            f"file {file_id}. Check GOOGLE_SERVICE_ACCOUNT_JSON and that the key has not "
            f"been revoked."
        )
    return RemoteError(f"Google API error while trying to {action} file {file_id}{target}: {exc}", status=status)
