"""
Apply model-written diffs to in-memory file content.

Accepts standard unified diffs (``@@ -a,b +c,d @@`` hunks, optional
``---``/``+++`` headers). A diff with no hunk headers whose lines are all
additions is appended to the file. Hunks whose context has drifted are
located by searching for the nearest exact match of their old lines.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from convospace.exceptions import PatchError

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_HEADER_PREFIXES = ("--- ", "+++ ", "diff ", "index ")


@dataclass
class Hunk:
    """One ``@@`` section of a unified diff."""

    old_start: int
    old_count: int = 1
    old_lines: list[str] = field(default_factory=list)
    new_lines: list[str] = field(default_factory=list)


def parse_hunks(diff: str) -> list[Hunk]:
    """
    Split a unified diff into hunks.

    Raises:
        PatchError: A line outside any hunk that is not a file header
    """
    hunks: list[Hunk] = []
    current: Optional[Hunk] = None

    for line in diff.splitlines():
        match = _HUNK_RE.match(line)
        if match:
            current = Hunk(
                old_start=int(match.group(1)),
                old_count=int(match.group(2)) if match.group(2) is not None else 1,
            )
            hunks.append(current)
            continue

        if current is None:
            if line.startswith(_HEADER_PREFIXES) or not line.strip():
                continue
            raise PatchError(f"Unexpected line before first hunk: {line!r}")

        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue
        if line.startswith("+"):
            current.new_lines.append(line[1:])
        elif line.startswith("-"):
            current.old_lines.append(line[1:])
        else:
            # Context; some models drop the leading space on blank lines
            text = line[1:] if line.startswith(" ") else line
            current.old_lines.append(text)
            current.new_lines.append(text)

    return hunks


def _is_pure_addition(diff: str) -> bool:
    lines = [line for line in diff.splitlines() if line.strip()]
    return bool(lines) and all(
        line.startswith("+") and not line.startswith("+++ ") for line in lines
    )


def _find_block(lines: list[str], block: list[str], expected: int) -> Optional[int]:
    """Index where ``block`` occurs in ``lines``, preferring ``expected``."""
    if not block:
        return min(max(expected, 0), len(lines))

    last_start = len(lines) - len(block)
    if last_start < 0:
        return None

    candidates = sorted(range(last_start + 1), key=lambda i: abs(i - expected))
    for start in candidates:
        if lines[start:start + len(block)] == block:
            return start
    return None


def apply_diff(content: str, diff: str) -> str:
    """
    Apply a diff to file content.

    Args:
        content: Current file content ("" for a new file)
        diff: Unified diff, or a block of ``+`` lines to append

    Returns:
        Patched content

    Raises:
        PatchError: The diff is malformed or a hunk does not match
    """
    if not diff.strip():
        raise PatchError("Empty diff")

    trailing_newline = content.endswith("\n")
    lines = content.splitlines()

    if "@@" not in diff:
        if not _is_pure_addition(diff):
            raise PatchError("Diff has no hunks and is not a pure addition")
        added = [line[1:] for line in diff.splitlines() if line.strip()]
        return "\n".join(lines + added) + "\n"

    hunks = parse_hunks(diff)
    if not hunks:
        raise PatchError("Diff contains no hunks")

    offset = 0
    for hunk in hunks:
        # A zero-length old range inserts after line old_start
        anchor = hunk.old_start if hunk.old_count == 0 else max(hunk.old_start - 1, 0)
        position = _find_block(lines, hunk.old_lines, anchor + offset)
        if position is None:
            raise PatchError(f"Hunk at line {hunk.old_start} does not match the file")
        lines[position:position + len(hunk.old_lines)] = hunk.new_lines
        offset = position - anchor + len(hunk.new_lines) - len(hunk.old_lines)

    patched = "\n".join(lines)
    if lines and (trailing_newline or not content):
        patched += "\n"
    return patched
