"""
Speaker-labelled transcripts for diarised Cloud Speech responses.

When diarisation is enabled, Cloud Speech returns the recognised words with a
``speakerTag`` each.  The last result of the response repeats every word of
the recording with its tag, so only that result is used.  The formatter
groups consecutive words by speaker and by the minute of the recording in
which they occur.  Each line begins with a label such as ``S1|3`` meaning
"Speaker 1 at minute 3".
"""

import re
from typing import Dict, Iterable, List, Optional

_PUNCTUATION = re.compile(r"^[\.!?,:;]+$")
_SECONDS = re.compile(r"([0-9]+(?:\.[0-9]+)?)s")


def diarised_words(data: Dict) -> List[Dict]:
    """Return the word list of the last result that carries speaker tags.

    Args:
        data: A Cloud Speech response converted with ``MessageToDict``.

    Returns:
        The tagged word dictionaries (``word``, ``startTime``,
        ``speakerTag`` ...), or an empty list when the response was not
        diarised.
    """
    for result in reversed(data.get("results", [])):
        alternatives = result.get("alternatives") or []
        if not alternatives:
            continue
        words = [w for w in alternatives[0].get("words", []) if w.get("word") and "speakerTag" in w]
        if words:
            return words
    return []


def _parse_seconds(value) -> float:
    # MessageToDict renders durations as "12.300s"
    if isinstance(value, (int, float)):
        return float(value)
    match = _SECONDS.match(value or "")
    return float(match.group(1)) if match else 0.0


def format_transcript(words: Iterable[Dict]) -> str:
    """Convert a flat list of word dictionaries into a labelled transcript.

    Args:
        words: An iterable of word dictionaries as returned by
            :func:`diarised_words`.

    Returns:
        A single string containing the formatted transcript, one speaker turn
        (or minute) per line.
    """
    lines: List[str] = []
    current_line = ""
    current_speaker: Optional[int] = None
    current_minute = -1
    for wi in words:
        word = wi.get("word", "")
        if not word:
            continue
        speaker = wi.get("speakerTag", 0)
        minute = int(_parse_seconds(wi.get("startTime", "0s")) // 60)
        if speaker != current_speaker or minute != current_minute:
            if current_line:
                lines.append(current_line.strip())
            label = f"S{speaker}"
            if minute != current_minute:
                label += f"|{minute}"
                current_minute = minute
            current_line = f"{label} {word}"
            current_speaker = speaker
        elif _PUNCTUATION.match(word):
            current_line += word
        else:
            current_line += f" {word}"
    if current_line:
        lines.append(current_line.strip())
    return "\n".join(lines)
