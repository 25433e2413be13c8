"""Command-line bridge to a USB CDC-ACM device speaking a small command protocol."""

__version__ = "0.1.0"

from .protocol.commands import COMMANDS, Command, UnknownCommand, encode_command
from .transceiver import PollLimitExceeded, Transceiver, transceive
