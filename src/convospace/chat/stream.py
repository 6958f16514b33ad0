"""
Line-oriented stream codec for the chat relay.

Each line is ``<type>:"<payload>"``:

- ``0`` carries a text delta, JSON-string escaped.
- ``2`` carries the raw inner text of a completed command block, base64
  encoded, so clients can act on it without re-parsing the text.
"""

import base64
import json
import logging
from typing import Iterable, Iterator

from convospace.chat.commands import extract_command_blocks

logger = logging.getLogger(__name__)


def encode_text_chunk(text: str) -> str:
    """Encode a text delta as a ``0:`` line."""
    escaped = json.dumps(text, ensure_ascii=False)[1:-1]
    return f'0:"{escaped}"\n'


def encode_command_block(block: str) -> str:
    """Encode a command block's inner text as a ``2:`` line."""
    encoded = base64.b64encode(block.encode("utf-8")).decode("ascii")
    return f'2:"{encoded}"\n'


class StreamRelay:
    """
    Re-encode a stream of text chunks into relay lines.

    Command blocks are detected on the accumulated text, so a block split
    across chunks is still reported, once, right after the chunk that
    completes it.
    """

    def __init__(self, chunks: Iterable[str]):
        self._chunks = chunks
        self.text = ""
        self.blocks: list[str] = []

    def __iter__(self) -> Iterator[str]:
        for chunk in self._chunks:
            if not chunk:
                continue
            self.text += chunk
            yield encode_text_chunk(chunk)

            blocks = extract_command_blocks(self.text)
            for block in blocks[len(self.blocks):]:
                self.blocks.append(block)
                logger.debug(f"Command block detected in stream ({len(block)} chars)")
                yield encode_command_block(block)
