"""Byte transports for talking to the device."""

from .base import Transport, TransportError, TransportInitError
from .usb_connection import USBConnection
