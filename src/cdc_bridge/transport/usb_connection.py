"""Bulk-transfer connection to the CDC-ACM device via pyusb.

The device presents the two CDC-ACM interfaces (0: control, 1: data);
the kernel's cdc_acm driver is detached from both and both are claimed.
Commands go out on endpoint 0x02 (OUT) and replies come back on 0x81 (IN).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import usb.core
import usb.util

from ..protocol.framing import MAX_FRAME
from .base import (
    READ_TIMEOUT_MS,
    WRITE_TIMEOUT_MS,
    TransportError,
    TransportInitError,
)

logger = logging.getLogger(__name__)

VENDOR_ID = 0x03EB  # Atmel Corp.
PRODUCT_ID = 0x2404  # CAN bus adapter
CDC_INTERFACES = (0, 1)
EP_IN = 0x81
EP_OUT = 0x02


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""


def _error_code(e: usb.core.USBError) -> int | None:
    return e.backend_error_code if e.backend_error_code is not None else e.errno


class USBConnection:
    """Owns the USB handle for one bridge session.

    Usage::

        with USBConnection() as conn:
            conn.write(report)
            reply = conn.read()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        ep_in: int = EP_IN,
        ep_out: int = EP_OUT,
        interfaces: tuple[int, ...] = CDC_INTERFACES,
        write_timeout_ms: int = WRITE_TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._ep_in = ep_in
        self._ep_out = ep_out
        self._interfaces = interfaces
        self._write_timeout_ms = write_timeout_ms
        self._device = None
        self._claimed: list[int] = []
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._device is not None

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def __enter__(self) -> USBConnection:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> DeviceInfo:
        """Find the device, detach kernel drivers and claim its interfaces.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            TransportInitError: If the device is missing or an interface
                cannot be claimed.
        """
        try:
            dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        except usb.core.NoBackendError as e:
            raise TransportInitError(f"No USB backend available: {e}") from e
        if dev is None:
            raise TransportInitError(
                f"USB device {self._vendor_id:04x}:{self._product_id:04x} not found"
            )
        self._device = dev

        try:
            for intf in self._interfaces:
                self._detach_kernel_driver(intf)
                usb.util.claim_interface(dev, intf)
                self._claimed.append(intf)
        except usb.core.USBError as e:
            self.close()
            raise TransportInitError(
                f"Error claiming interface: {e}", code=_error_code(e)
            ) from e

        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=self._get_string(dev.iManufacturer),
            product=self._get_string(dev.iProduct),
        )
        logger.debug(
            "Connected to %04x:%04x %s %s",
            self._vendor_id,
            self._product_id,
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _detach_kernel_driver(self, intf: int) -> None:
        try:
            if self._device.is_kernel_driver_active(intf):
                self._device.detach_kernel_driver(intf)
                logger.debug("Detached kernel driver from interface %d", intf)
        except (usb.core.USBError, NotImplementedError) as e:
            # Not supported on every platform; claiming reports the real problem.
            logger.debug("Could not detach kernel driver from %d: %s", intf, e)

    def _get_string(self, index: int) -> str:
        if not index:
            return ""
        try:
            return usb.util.get_string(self._device, index) or ""
        except (usb.core.USBError, ValueError) as e:
            logger.debug("Could not read string descriptor %d: %s", index, e)
            return ""

    def close(self) -> None:
        """Release claimed interfaces and the device handle."""
        if self._device is None:
            return

        try:
            for intf in reversed(self._claimed):
                usb.util.release_interface(self._device, intf)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._claimed = []
            logger.debug("Disconnected")

    def write(self, data: bytes) -> int:
        """Send one bulk OUT transfer.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the transfer fails.
        """
        if self._device is None:
            raise ConnectionError("Not connected to device")

        try:
            written = self._device.write(
                self._ep_out, data, timeout=self._write_timeout_ms
            )
        except usb.core.USBError as e:
            raise TransportError(
                f"Error while sending: {e}", code=_error_code(e)
            ) from e
        logger.debug("Sent %d bytes: %s", written, data.hex(" "))
        return written

    def read(
        self,
        size: int = MAX_FRAME,
        timeout_ms: int = READ_TIMEOUT_MS,
    ) -> bytes | None:
        """Receive one bulk IN transfer.

        Returns:
            The received bytes, or None if the read timed out.

        Raises:
            ConnectionError: If not connected.
            TransportError: If the transfer fails for any other reason.
        """
        if self._device is None:
            raise ConnectionError("Not connected to device")

        try:
            data = bytes(self._device.read(self._ep_in, size, timeout=timeout_ms))
        except usb.core.USBTimeoutError:
            return None
        except usb.core.USBError as e:
            raise TransportError(
                f"Error while receiving: {e}", code=_error_code(e)
            ) from e
        logger.debug("Received %d bytes: %s", len(data), data.hex(" "))
        return data
