"""
Transcript summarisation with Gemini.

When ``CONTENT_MODE`` is ``summary`` or ``both`` the transcript is sent to a
generative model through ``google-generativeai`` before the document is
written.  The prompt can be customised with ``SUMMARISER_PROMPT``; it must
contain a ``{transcript}`` placeholder.
"""

from __future__ import annotations

import logging

import google.generativeai as genai

from .config import Settings
from .errors import DriveScribeError, RemoteError
from .response_text import extract_text

logger = logging.getLogger(__name__)


DEFAULT_PROMPT = (
    "You are an expert meeting summariser.  Summarise the following "
    "transcript into a concise report including:\n"
    "• An executive summary of key points\n"
    "• A list of action items\n"
    "• Any important dates, deadlines or follow‑ups\n"
    "Use bullet points and keep the summary under 300 words.\n\n"
    "Transcript:\n{transcript}\n\nSummary:"
)

SUMMARY_HEADING = "Summary"
TRANSCRIPT_HEADING = "Transcript"


def summarise(text: str, settings: Settings) -> str:
    """Generate a summary for the given transcript.

    Raises:
        RemoteError: If the model call fails or returns no text.
    """
    genai.configure(api_key=settings.genai_api_key)
    prompt = (settings.summariser_prompt or DEFAULT_PROMPT).format(transcript=text)
    logger.info("Calling generative model %s for summarisation", settings.genai_model)
    try:
        model = genai.GenerativeModel(settings.genai_model)
        response = model.generate_content(
            prompt,
            generation_config={"temperature": 0.4, "max_output_tokens": 1024},
        )
        return extract_text(response.to_dict())
    except DriveScribeError as exc:
        raise RemoteError(f"Summarisation model returned no usable text: {exc}") from exc
    except Exception as exc:
        raise RemoteError(
            f"Summarisation with {settings.genai_model} failed: {exc}. Check GENAI_API_KEY "
            f"and that the model name is available to the key."
        ) from exc


def compose_content(transcript: str, summary: str, content_mode: str) -> str:
    """Build the document body for ``content_mode``."""
    if content_mode == "summary":
        return summary
    if content_mode == "both":
        return f"{SUMMARY_HEADING}\n\n{summary}\n\n{TRANSCRIPT_HEADING}\n\n{transcript}"
    return transcript
