"""
Command block extraction from model output.

Models are prompted to append file-edit instructions to their answer in a
delimited block::

    === COMMANDS_START ===
    request_files: [src/app.py, "README.md"]
    write_diffs: [
      { path: "src/app.py", diff: "@@ -1 +1 @@\\n-old\\n+new" }
    ]
    === COMMANDS_END ===

The format is loose quasi-JSON, so parsing is best effort: anything that
cannot be read yields None rather than an error.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

COMMANDS_START = "=== COMMANDS_START ==="
COMMANDS_END = "=== COMMANDS_END ==="

_BLOCK_RE = re.compile(re.escape(COMMANDS_START) + r"([\s\S]*?)" + re.escape(COMMANDS_END))
_REQUEST_FILES_RE = re.compile(r"request_files:\s*\[(.*?)\]", re.DOTALL)
_WRITE_DIFFS_RE = re.compile(r"write_diffs:\s*\[([\s\S]*?)\]")
_BARE_TOKEN_RE = re.compile(r"([a-zA-Z0-9_\-/.]+)(?=\s*[\],])")
_PATH_RE = re.compile(r'path:\s*"([^"]+)"')
_DIFF_RE = re.compile(r'diff:\s*"([\s\S]*)"')


@dataclass
class FileDiff:
    """A diff the model wants applied to one file."""

    path: str
    diff: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "diff": self.diff}


@dataclass
class Commands:
    """Parsed contents of a command block."""

    request_files: list[str] = field(default_factory=list)
    write_diffs: list[FileDiff] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "request_files": list(self.request_files),
            "write_diffs": [d.to_dict() for d in self.write_diffs],
        }


def extract_command_blocks(text: str) -> list[str]:
    """Return the inner text of every complete command block, in order."""
    return [match.group(1) for match in _BLOCK_RE.finditer(text)]


def _parse_request_files(block: str) -> list[str]:
    match = _REQUEST_FILES_RE.search(block)
    if not match:
        return []
    # Quote bare path tokens so the list becomes valid JSON
    quoted = _BARE_TOKEN_RE.sub(r'"\1"', f"[{match.group(1)}]")
    files = json.loads(quoted)
    return [str(f) for f in files]


def _parse_write_diffs(block: str) -> list[FileDiff]:
    match = _WRITE_DIFFS_RE.search(block)
    if not match:
        return []

    diffs = []
    for item in match.group(1).split("},"):
        raw = item if item.endswith("}") else item + "}"
        raw = raw.strip()
        if not raw:
            continue
        path_match = _PATH_RE.search(raw)
        diff_match = _DIFF_RE.search(raw)
        diffs.append(
            FileDiff(
                path=path_match.group(1) if path_match else "",
                diff=(diff_match.group(1) if diff_match else "").replace("\\n", "\n"),
            )
        )
    return diffs


def parse_command_block(block: str) -> Optional[Commands]:
    """Parse the inner text of one command block."""
    try:
        return Commands(
            request_files=_parse_request_files(block),
            write_diffs=_parse_write_diffs(block),
        )
    except (ValueError, TypeError) as e:
        logger.debug(f"Ignoring unparseable command block: {e}")
        return None


def parse_commands(text: str) -> Optional[Commands]:
    """
    Parse the first command block in model output.

    Args:
        text: Full model output

    Returns:
        Commands, or None when there is no block or it cannot be parsed
    """
    match = _BLOCK_RE.search(text or "")
    if not match:
        return None
    return parse_command_block(match.group(1))
