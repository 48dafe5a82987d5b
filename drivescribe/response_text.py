"""
Plain-text extraction from transcription and generation responses.

Providers return their text in differently shaped JSON: Whisper puts it in a
top-level ``text`` field, chat-style APIs in ``choices`` or ``output`` lists,
Gemini in ``candidates`` and Cloud Speech in ``results``/``alternatives``.
:func:`extract_text` tries one extractor per shape in a fixed order and
returns the first non-empty match.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import TranscriptionFormatError
from .transcript_formatter import diarised_words, format_transcript

Extractor = Callable[[Dict[str, Any]], Optional[str]]


def _join(parts: List[Optional[str]], sep: str = "\n") -> Optional[str]:
    text = sep.join(p.strip() for p in parts if isinstance(p, str) and p.strip())
    return text or None


def from_text_field(payload: Dict[str, Any]) -> Optional[str]:
    text = payload.get("text")
    return text if isinstance(text, str) else None


def from_choices(payload: Dict[str, Any]) -> Optional[str]:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0] or {}
    message = first.get("message") or {}
    content = message.get("content")
    if isinstance(content, list):
        return _join([c.get("text") for c in content if isinstance(c, dict)])
    if isinstance(content, str):
        return content
    return first.get("text")


def from_output_list(payload: Dict[str, Any]) -> Optional[str]:
    output = payload.get("output")
    if isinstance(output, str):
        return output
    if not isinstance(output, list):
        return None
    parts: List[Optional[str]] = []
    for item in output:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict):
                parts.append(content.get("text"))
    return _join(parts)


def from_candidates(payload: Dict[str, Any]) -> Optional[str]:
    parts: List[Optional[str]] = []
    for candidate in payload.get("candidates") or []:
        content = (candidate or {}).get("content") or {}
        parts.extend(p.get("text") for p in content.get("parts") or [] if isinstance(p, dict))
        if parts:
            break
    return _join(parts, sep="")


def from_diarised_words(payload: Dict[str, Any]) -> Optional[str]:
    words = diarised_words(payload)
    return format_transcript(words) if words else None


def from_alternatives(payload: Dict[str, Any]) -> Optional[str]:
    parts: List[Optional[str]] = []
    for result in payload.get("results") or []:
        alternatives = (result or {}).get("alternatives") or []
        if alternatives:
            parts.append(alternatives[0].get("transcript"))
    return _join(parts)


EXTRACTORS: Sequence[Extractor] = (
    from_text_field,
    from_choices,
    from_output_list,
    from_candidates,
    from_diarised_words,
    from_alternatives,
)


def extract_text(payload: Any, extractors: Sequence[Extractor] = EXTRACTORS) -> str:
    """Return the first non-empty text found by ``extractors``.

    Raises:
        TranscriptionFormatError: If ``payload`` is not a JSON object or no
            extractor finds any text.
    """
    if not isinstance(payload, dict):
        raise TranscriptionFormatError(
            f"Unexpected response type {type(payload).__name__}; expected a JSON object"
        )
    for extractor in extractors:
        text = extractor(payload)
        if text and text.strip():
            return text.strip()
    raise TranscriptionFormatError(
        f"No text found in response (keys: {', '.join(sorted(payload)) or 'none'}). "
        f"The audio may be silent, or the service returned an unsupported response format."
    )
