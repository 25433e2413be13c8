"""Protocol layer: command table, encoder, frames, and reply formatting."""

from .framing import Frame, build_report, MAX_FRAME
from .commands import COMMANDS, Command, UnknownCommand, encode_command
from .reporter import format_bytes, format_response
