"""Chat relay: command block parsing, stream encoding and provider calls."""

from convospace.chat.commands import Commands, FileDiff, extract_command_blocks, parse_commands
from convospace.chat.service import ChatRequest, ChatResult, ChatService, provider_error_status
from convospace.chat.stream import StreamRelay, encode_command_block, encode_text_chunk

__all__ = [
    "ChatRequest",
    "ChatResult",
    "ChatService",
    "Commands",
    "FileDiff",
    "StreamRelay",
    "encode_command_block",
    "encode_text_chunk",
    "extract_command_blocks",
    "parse_commands",
    "provider_error_status",
]
