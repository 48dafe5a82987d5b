"""
Environment configuration for the transcription pipeline.

All settings come from environment variables so the same code runs as a
Cloud Function, a Cloud Run container or a local Flask server.  The
important ones are:

* ``GOOGLE_SERVICE_ACCOUNT_JSON`` – the service-account key as a JSON string.
* ``INPUT_FOLDER_ID`` – Drive folder that receives the audio uploads.
* ``OUTPUT_FOLDER_ID`` – Drive folder finished audio files are moved into.
* ``OPENAI_API_KEY`` – key for the Whisper transcription endpoint.
* ``COMPLETION_MODE`` – ``move`` (default) or ``tag``.
* ``CONTENT_MODE`` – ``transcript`` (default), ``summary`` or ``both``.
* ``DEBUG`` – set to ``true`` outside production to expose debug payloads
  and stack traces in HTTP responses.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = (
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/drive.file",
)
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

COMPLETION_MODES = ("move", "tag")
CONTENT_MODES = ("transcript", "summary", "both")
TRANSCRIPTION_BACKENDS = ("openai", "google")

OPENAI_KEY_PREFIX = "sk-"
DEFAULT_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"


@dataclass(frozen=True)
class Settings:
    service_account_json: str
    input_folder_id: str
    output_folder_id: Optional[str] = None
    docs_folder_id: Optional[str] = None
    scopes: Tuple[str, ...] = DEFAULT_SCOPES
    completion_mode: str = "move"
    marker_key: str = "processed"
    content_mode: str = "transcript"
    transcription_backend: str = "openai"
    openai_api_key: Optional[str] = None
    transcription_url: str = DEFAULT_TRANSCRIPTION_URL
    transcription_model: str = "whisper-1"
    transcription_language: Optional[str] = None
    transcription_timeout: float = 300.0
    diarisation_speakers: int = 2
    genai_api_key: Optional[str] = None
    genai_model: str = "models/gemini-1.5-flash"
    summariser_prompt: Optional[str] = None
    debug: bool = False


def env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _choice(env: Mapping[str, str], name: str, default: str, allowed: Tuple[str, ...]) -> str:
    value = (env.get(name) or default).strip().lower()
    if value not in allowed:
        raise ConfigurationError(
            f"{name}={value!r} is not supported. Use one of: {', '.join(allowed)}."
        )
    return value


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}.") from None


def _required(env: Mapping[str, str], name: str, hint: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise ConfigurationError(f"{name} environment variable is not set. {hint}")
    return value


def validate_openai_key(key: Optional[str]) -> str:
    """Check the transcription API key looks like an OpenAI key.

    Raises:
        ConfigurationError: If the key is missing or has the wrong prefix.
    """
    if not key:
        raise ConfigurationError(
            "OPENAI_API_KEY environment variable is not set. Create a key at "
            "https://platform.openai.com/account/api-keys and add it to the deployment's "
            "environment variables."
        )
    key = key.strip().strip('"').strip("'")
    if not key.startswith(OPENAI_KEY_PREFIX):
        raise ConfigurationError(
            f"OPENAI_API_KEY appears to be invalid: OpenAI API keys start with "
            f"'{OPENAI_KEY_PREFIX}'. Check the value for extra spaces or quotes."
        )
    return key


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read and validate :class:`Settings` from the environment.

    Args:
        environ: Mapping to read instead of ``os.environ`` (used by tests).

    Raises:
        ConfigurationError: If a required variable is missing or a value is
            out of range.
    """
    env = os.environ if environ is None else environ

    service_account_json = _required(
        env,
        "GOOGLE_SERVICE_ACCOUNT_JSON",
        "Paste the full service-account key JSON into this variable.",
    )
    input_folder_id = _required(
        env,
        "INPUT_FOLDER_ID",
        "Set it to the id at the end of the input folder's Drive URL.",
    )
    completion_mode = _choice(env, "COMPLETION_MODE", "move", COMPLETION_MODES)
    output_folder_id = (env.get("OUTPUT_FOLDER_ID") or "").strip() or None
    if completion_mode == "move" and not output_folder_id:
        raise ConfigurationError(
            "OUTPUT_FOLDER_ID environment variable is not set. It is required when "
            "COMPLETION_MODE=move; set it to the id of the folder processed audio is moved to."
        )
    docs_folder_id = (env.get("DOCS_FOLDER_ID") or "").strip() or output_folder_id

    backend = _choice(env, "TRANSCRIPTION_BACKEND", "openai", TRANSCRIPTION_BACKENDS)
    openai_api_key = None
    if backend == "openai":
        openai_api_key = validate_openai_key(env.get("OPENAI_API_KEY"))

    content_mode = _choice(env, "CONTENT_MODE", "transcript", CONTENT_MODES)
    genai_api_key = (env.get("GENAI_API_KEY") or "").strip() or None
    if content_mode != "transcript" and not genai_api_key:
        raise ConfigurationError(
            f"CONTENT_MODE={content_mode} needs a summarisation model but GENAI_API_KEY is "
            f"not set. Set GENAI_API_KEY or use CONTENT_MODE=transcript."
        )

    raw_scopes = env.get("GOOGLE_SCOPES")
    if raw_scopes:
        scopes = tuple(s.strip() for s in raw_scopes.split(",") if s.strip())
    else:
        scopes = DEFAULT_SCOPES
    if backend == "google" and CLOUD_PLATFORM_SCOPE not in scopes:
        scopes = scopes + (CLOUD_PLATFORM_SCOPE,)

    diarisation_speakers = _number(env, "DIARISATION_SPEAKERS", 2, int)
    if diarisation_speakers < 1:
        raise ConfigurationError("DIARISATION_SPEAKERS must be at least 1.")

    return Settings(
        service_account_json=service_account_json,
        input_folder_id=input_folder_id,
        output_folder_id=output_folder_id,
        docs_folder_id=docs_folder_id,
        scopes=scopes,
        completion_mode=completion_mode,
        marker_key=(env.get("PROCESSED_MARKER_KEY") or "processed").strip(),
        content_mode=content_mode,
        transcription_backend=backend,
        openai_api_key=openai_api_key,
        transcription_url=env.get("TRANSCRIPTION_API_URL") or DEFAULT_TRANSCRIPTION_URL,
        transcription_model=env.get("TRANSCRIPTION_MODEL") or "whisper-1",
        transcription_language=env.get("TRANSCRIPTION_LANGUAGE") or None,
        transcription_timeout=_number(env, "TRANSCRIPTION_TIMEOUT", 300.0, float),
        diarisation_speakers=diarisation_speakers,
        genai_api_key=genai_api_key,
        genai_model=env.get("GENAI_MODEL") or "models/gemini-1.5-flash",
        summariser_prompt=env.get("SUMMARISER_PROMPT") or None,
        debug=env_flag(env.get("DEBUG")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    settings = load_settings()
    logger.info(
        "Loaded settings: completion=%s content=%s backend=%s",
        settings.completion_mode,
        settings.content_mode,
        settings.transcription_backend,
    )
    return settings
