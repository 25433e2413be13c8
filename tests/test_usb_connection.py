"""Tests for the pyusb transport, with usb.core and usb.util mocked."""

from __future__ import annotations

from unittest.mock import MagicMock, call, patch

import pytest
import usb.core

from cdc_bridge.transport.base import TransportError, TransportInitError
from cdc_bridge.transport.usb_connection import (
    EP_IN,
    EP_OUT,
    PRODUCT_ID,
    VENDOR_ID,
    USBConnection,
)


def _make_device(kernel_active: bool = True) -> MagicMock:
    dev = MagicMock()
    dev.is_kernel_driver_active.return_value = kernel_active
    dev.iManufacturer = 0
    dev.iProduct = 0
    return dev


@pytest.fixture
def usb_util():
    with patch("usb.util") as util:
        yield util


def _open(dev: MagicMock, **kwargs) -> USBConnection:
    conn = USBConnection(**kwargs)
    with patch("usb.core.find", return_value=dev):
        conn.open()
    return conn


def test_defaults():
    """Default IDs and endpoints match the CAN bus adapter."""
    assert VENDOR_ID == 0x03EB
    assert PRODUCT_ID == 0x2404
    assert EP_IN == 0x81
    assert EP_OUT == 0x02


def test_open_device_not_found():
    conn = USBConnection()
    with patch("usb.core.find", return_value=None) as find:
        with pytest.raises(TransportInitError) as excinfo:
            conn.open()
    find.assert_called_once_with(idVendor=VENDOR_ID, idProduct=PRODUCT_ID)
    assert excinfo.value.code is None
    assert not conn.connected


def test_open_detaches_and_claims_both_interfaces(usb_util):
    dev = _make_device()
    conn = _open(dev)
    assert conn.connected
    assert dev.detach_kernel_driver.call_args_list == [call(0), call(1)]
    assert usb_util.claim_interface.call_args_list == [call(dev, 0), call(dev, 1)]


def test_open_skips_detach_when_no_kernel_driver(usb_util):
    dev = _make_device(kernel_active=False)
    _open(dev)
    dev.detach_kernel_driver.assert_not_called()
    assert usb_util.claim_interface.call_count == 2


def test_open_tolerates_detach_not_supported(usb_util):
    dev = _make_device()
    dev.is_kernel_driver_active.side_effect = NotImplementedError
    conn = _open(dev)
    assert conn.connected


def test_claim_failure_raises_init_error_and_releases(usb_util):
    dev = _make_device()
    usb_util.claim_interface.side_effect = [
        None,
        usb.core.USBError("Resource busy", error_code=-6),
    ]
    conn = USBConnection()
    with patch("usb.core.find", return_value=dev):
        with pytest.raises(TransportInitError) as excinfo:
            conn.open()
    assert excinfo.value.code == -6
    assert not conn.connected
    usb_util.release_interface.assert_called_once_with(dev, 0)
    usb_util.dispose_resources.assert_called_once_with(dev)


def test_custom_ids(usb_util):
    dev = _make_device()
    conn = USBConnection(vendor_id=0x1234, product_id=0x5678)
    with patch("usb.core.find", return_value=dev) as find:
        info = conn.open()
    find.assert_called_once_with(idVendor=0x1234, idProduct=0x5678)
    assert info.vendor_id == 0x1234
    assert info.product_id == 0x5678


def test_open_reads_string_descriptors(usb_util):
    dev = _make_device()
    dev.iManufacturer = 1
    dev.iProduct = 2
    usb_util.get_string.side_effect = ["Atmel", "CAN adapter"]
    info = _open(dev).device_info
    assert info.manufacturer == "Atmel"
    assert info.product == "CAN adapter"


def test_write_uses_out_endpoint_without_timeout(usb_util):
    dev = _make_device()
    dev.write.return_value = 64
    conn = _open(dev)
    assert conn.write(bytes(64)) == 64
    dev.write.assert_called_once_with(EP_OUT, bytes(64), timeout=0)


def test_write_error_becomes_transport_error(usb_util):
    dev = _make_device()
    dev.write.side_effect = usb.core.USBError("Pipe error", error_code=-9)
    conn = _open(dev)
    with pytest.raises(TransportError) as excinfo:
        conn.write(bytes(64))
    assert excinfo.value.code == -9


def test_read_returns_bytes(usb_util):
    dev = _make_device()
    dev.read.return_value = bytearray(b"\xFF\xC0\x01")
    conn = _open(dev)
    assert conn.read(64, 1000) == b"\xFF\xC0\x01"
    dev.read.assert_called_once_with(EP_IN, 64, timeout=1000)


def test_read_timeout_returns_none(usb_util):
    dev = _make_device()
    dev.read.side_effect = usb.core.USBTimeoutError("Operation timed out", error_code=-7)
    conn = _open(dev)
    assert conn.read() is None


def test_read_error_becomes_transport_error(usb_util):
    dev = _make_device()
    dev.read.side_effect = usb.core.USBError("No such device", error_code=-4)
    conn = _open(dev)
    with pytest.raises(TransportError) as excinfo:
        conn.read()
    assert excinfo.value.code == -4


def test_io_requires_open_connection():
    conn = USBConnection()
    with pytest.raises(ConnectionError):
        conn.write(bytes(64))
    with pytest.raises(ConnectionError):
        conn.read()


def test_close_releases_interfaces_in_reverse(usb_util):
    dev = _make_device()
    conn = _open(dev)
    conn.close()
    assert usb_util.release_interface.call_args_list == [call(dev, 1), call(dev, 0)]
    usb_util.dispose_resources.assert_called_once_with(dev)
    assert not conn.connected


def test_close_is_idempotent(usb_util):
    dev = _make_device()
    conn = _open(dev)
    conn.close()
    conn.close()
    usb_util.dispose_resources.assert_called_once()


def test_close_swallows_release_errors(usb_util):
    dev = _make_device()
    usb_util.release_interface.side_effect = usb.core.USBError("gone")
    conn = _open(dev)
    conn.close()
    assert not conn.connected


def test_context_manager_closes_on_error(usb_util):
    dev = _make_device()
    with patch("usb.core.find", return_value=dev):
        with pytest.raises(RuntimeError):
            with USBConnection() as conn:
                assert conn.connected
                raise RuntimeError("boom")
    assert not conn.connected
    usb_util.dispose_resources.assert_called_once_with(dev)


def test_open_without_usb_backend():
    """A missing libusb backend is an init failure, not a crash."""
    conn = USBConnection()
    with patch("usb.core.find", side_effect=usb.core.NoBackendError("No backend available")):
        with pytest.raises(TransportInitError) as excinfo:
            conn.open()
    assert "backend" in str(excinfo.value)
    assert excinfo.value.code is None
    assert not conn.connected
