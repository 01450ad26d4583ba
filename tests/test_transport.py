from __future__ import annotations

import pytest
import serial

from matrix65.errors import TransportError
from matrix65.transport import (
    DUMP_HEADER_SIZE,
    EmulatedMonitorTransport,
    LoopbackTransport,
    SerialTransport,
)


class BrokenSerial:
    def __init__(self) -> None:
        self.closed = False

    def write(self, data: bytes) -> int:
        raise serial.SerialException("device disconnected")

    def read(self, size: int) -> bytes:
        raise serial.SerialException("device disconnected")

    def flush(self) -> None:
        raise serial.SerialException("device disconnected")

    def close(self) -> None:
        self.closed = True


def test_serial_failures_become_transport_errors() -> None:
    transport = SerialTransport(BrokenSerial())  # type: ignore[arg-type]

    with pytest.raises(TransportError, match="serial write failed"):
        transport.write(b"t1\r")
    with pytest.raises(TransportError, match="serial read failed"):
        transport.read(1)
    with pytest.raises(TransportError, match="serial flush failed"):
        transport.flush()


def test_serial_open_failure_becomes_transport_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def refuse(*args, **kwargs):
        raise serial.SerialException("no such device")

    monkeypatch.setattr(serial, "Serial", refuse)

    with pytest.raises(TransportError, match="cannot open serial port /dev/nowhere"):
        SerialTransport.open("/dev/nowhere", 2_000_000, timeout=0.01)


def test_loopback_reads_at_most_available_bytes() -> None:
    transport = LoopbackTransport()
    transport.feed(b"abc")

    assert transport.read(2) == b"ab"
    assert transport.read(5) == b"c"
    assert transport.read(1) == b""
    assert transport.reads == [2, 5, 1]


def test_emulator_frames_dump_responses() -> None:
    device = EmulatedMonitorTransport()
    device.load(0x0800, bytes(range(16)))

    device.write(b"m0000800\r")

    header = device.read(DUMP_HEADER_SIZE)
    assert header.startswith(b"m0000800")
    assert device.read(32) == bytes(range(16)).hex().upper().encode("ascii")
    assert device.read(1) == b""


def test_emulator_load_payload_may_contain_terminators() -> None:
    device = EmulatedMonitorTransport()

    device.write(b"l1000 1003\r\r\n\x00")

    assert device.peek(0x1000, 3) == b"\r\n\x00"
    assert device.commands == ["l1000 1003"]
