"""
Speech-to-text backends.

Two backends are supported, selected with ``TRANSCRIPTION_BACKEND``:

* ``openai`` – the Whisper REST endpoint, called with ``requests``.  The
  audio is posted as a multipart upload and the JSON response is parsed.
* ``google`` – Cloud Speech ``long_running_recognize`` with the audio sent
  inline and speaker diarisation enabled, authenticated with the same
  service account as Drive.

Either way the response dictionary goes through
:func:`drivescribe.response_text.extract_text`, so the caller always gets
plain text back.

Usage::

    from drivescribe.stt_service import transcribe

    text = transcribe(audio_bytes, "voice.mp3", settings)
"""

import logging
import mimetypes
from pathlib import PurePosixPath
from typing import Any, Dict, Optional

import requests
from google.api_core import exceptions as gexc
from google.cloud import speech_v1p1beta1 as speech
from google.protobuf.json_format import MessageToDict
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Settings
from .errors import AuthError, InputFormatError, RemoteError, TranscriptionFormatError
from .response_text import extract_text

logger = logging.getLogger(__name__)

API_KEY_HELP = (
    "To fix this:\n"
    "1. Go to https://platform.openai.com/account/api-keys\n"
    "2. Create a new API key or copy your existing one\n"
    "3. Update the OPENAI_API_KEY environment variable of the deployment\n"
    "4. Redeploy so the new value is picked up\n\n"
    "Make sure the API key starts with \"sk-\" and has no extra spaces or quotes."
)

GOOGLE_ENCODINGS = {
    ".mp3": speech.RecognitionConfig.AudioEncoding.MP3,
    ".mpga": speech.RecognitionConfig.AudioEncoding.MP3,
    ".mpeg": speech.RecognitionConfig.AudioEncoding.MP3,
    ".flac": speech.RecognitionConfig.AudioEncoding.FLAC,
    ".ogg": speech.RecognitionConfig.AudioEncoding.OGG_OPUS,
    ".oga": speech.RecognitionConfig.AudioEncoding.OGG_OPUS,
    ".webm": speech.RecognitionConfig.AudioEncoding.WEBM_OPUS,
    # WAV carries its own header
    ".wav": speech.RecognitionConfig.AudioEncoding.ENCODING_UNSPECIFIED,
}


def _guess_mime(file_name: str) -> str:
    return mimetypes.guess_type(file_name)[0] or "application/octet-stream"


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or str(error)
    return str(error or body)[:500]


@retry(
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    wait=wait_exponential(multiplier=1),
    stop=stop_after_attempt(3),
    reraise=True,
)
def call_whisper(settings: Settings, audio: bytes, file_name: str) -> requests.Response:
    data: Dict[str, Any] = {"model": settings.transcription_model}
    if settings.transcription_language:
        data["language"] = settings.transcription_language
    return requests.post(
        settings.transcription_url,
        headers={"Authorization": f"Bearer {settings.openai_api_key}"},
        files={"file": (file_name, audio, _guess_mime(file_name))},
        data=data,
        timeout=settings.transcription_timeout,
    )


def transcribe_openai(audio: bytes, file_name: str, settings: Settings) -> Dict[str, Any]:
    """Post audio to the Whisper endpoint and return the decoded JSON body.

    Raises:
        AuthError: The API key was rejected (401/403).
        InputFormatError: The service could not use the audio (400/413/415).
        RemoteError: Any other non-2xx answer, or the service was unreachable.
        TranscriptionFormatError: The body was not JSON.
    """
    try:
        response = call_whisper(settings, audio, file_name)
    except requests.RequestException as exc:
        raise RemoteError(f"Transcription service unreachable for \"{file_name}\": {exc}") from exc

    status = response.status_code
    if status in (401, 403):
        raise AuthError(f"OpenAI API key error: {_error_detail(response)}\n\n{API_KEY_HELP}")
    if status in (400, 413, 415):
        raise InputFormatError(
            f"Failed to transcribe audio file \"{file_name}\": {_error_detail(response)}. "
            f"Ensure the file is a valid audio format and under the service's size limit.",
            file_name=file_name,
        )
    if status >= 300:
        raise RemoteError(
            f"Transcription service returned HTTP {status} for \"{file_name}\": {_error_detail(response)}",
            status=status,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise TranscriptionFormatError(
            f"Transcription service returned a non-JSON body for \"{file_name}\""
        ) from exc


def transcribe_google(
    audio: bytes,
    file_name: str,
    settings: Settings,
    credentials: Optional[Any] = None,
) -> Dict[str, Any]:
    """Run Cloud Speech on inline audio and return the response as a dict."""
    ext = PurePosixPath(file_name.lower()).suffix
    if ext not in GOOGLE_ENCODINGS:
        raise InputFormatError(
            f"Failed to transcribe audio file \"{file_name}\": Cloud Speech does not accept "
            f"{ext or 'extensionless'} files. Convert it to MP3, FLAC, WAV or OGG.",
            file_name=file_name,
        )
    client = speech.SpeechClient(credentials=credentials)
    diarisation_config = speech.SpeakerDiarizationConfig(
        enable_speaker_diarization=True,
        min_speaker_count=1,
        max_speaker_count=settings.diarisation_speakers,
    )
    config = speech.RecognitionConfig(
        encoding=GOOGLE_ENCODINGS[ext],
        language_code=settings.transcription_language or "en-US",
        enable_automatic_punctuation=True,
        enable_word_time_offsets=True,
        diarization_config=diarisation_config,
    )
    logger.info("Starting STT job for %s", file_name)
    try:
        operation = client.long_running_recognize(
            config=config, audio=speech.RecognitionAudio(content=audio)
        )
        response = operation.result(timeout=settings.transcription_timeout)
    except (gexc.Unauthenticated, gexc.PermissionDenied) as exc:
        raise AuthError(
            f"Cloud Speech rejected the service account: {exc.message}. Enable the "
            f"Speech-to-Text API for the service account's project and grant it access."
        ) from exc
    except gexc.InvalidArgument as exc:
        raise InputFormatError(
            f"Failed to transcribe audio file \"{file_name}\": {exc.message}",
            file_name=file_name,
        ) from exc
    except gexc.GoogleAPICallError as exc:
        raise RemoteError(f"Cloud Speech error for \"{file_name}\": {exc}", status=exc.code) from exc
    logger.info("STT job complete for %s", file_name)
    return MessageToDict(response._pb)


def transcribe(
    audio: bytes,
    file_name: str,
    settings: Settings,
    credentials: Optional[Any] = None,
) -> str:
    """Transcribe ``audio`` with the configured backend and return plain text.

    Args:
        audio: The raw bytes of the audio file.
        file_name: Display name of the file, used for the upload and in
            error messages.
        settings: Loaded configuration.
        credentials: Google credentials for the ``google`` backend.

    Returns:
        The transcript text.
    """
    if settings.transcription_backend == "google":
        payload = transcribe_google(audio, file_name, settings, credentials)
    else:
        payload = transcribe_openai(audio, file_name, settings)
    text = extract_text(payload)
    logger.info("Transcribed %s (%d characters)", file_name, len(text))
    return text
