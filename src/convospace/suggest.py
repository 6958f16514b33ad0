"""Rule-based prompt completion for the input box."""

import re

# Canned completions for common prompt starters
_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^create\s+a?\s*$", re.IGNORECASE), "React component with TypeScript"),
    (re.compile(r"^build\s+a?\s*$", re.IGNORECASE), "REST API with Node.js and Express"),
    (re.compile(r"^write\s+a?\s*$", re.IGNORECASE), "short story about an unexpected hero"),
    (re.compile(r"^explain\s+", re.IGNORECASE), "quantum computing simply"),
    (re.compile(r"^design\s+a?\s*$", re.IGNORECASE), "responsive CSS layout with Flexbox"),
    (re.compile(r"^plan\s+a?\s*$", re.IGNORECASE), "workout routine for beginners"),
    (re.compile(r"^implement\s+", re.IGNORECASE), "authentication with JWT tokens"),
]

_SENTENCE_END = re.compile(r"[.!?]$")


def suggest_suffix(prefix: str) -> str:
    """
    Suggest text to append to a partially typed prompt.

    Returns only the part not already typed; empty when there is nothing
    to suggest.
    """
    p = prefix.strip()
    if not p:
        return ""

    for pattern, completion in _RULES:
        if pattern.search(p):
            if completion.lower().startswith(p.lower()):
                return completion[len(p):]
            return completion

    if not _SENTENCE_END.search(p):
        return " with more details, please"

    return ""
