"""Byte-stream transports used by :class:`~matrix65.monitor.MonitorSession`."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

import serial

from .errors import TransportError


LOGGER = logging.getLogger(__name__)

DUMP_HEADER_SIZE = 27
CONTINUE_HEADER_SIZE = 18
DUMP_CHUNK_SIZE = 16


class Transport(ABC):
    """Strategy object that hides the byte stream leading to the monitor."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Transmit ``data`` toward the device."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes; fewer means the read timed out."""

    def flush(self) -> None:
        """Block until buffered output has been transmitted."""

    def close(self) -> None:
        """Release any transport resources."""


class SerialTransport(Transport):
    """Transport backed by a pyserial port."""

    def __init__(self, port: serial.Serial) -> None:
        self._serial = port

    @classmethod
    def open(cls, name: str, baud_rate: int, *, timeout: float) -> "SerialTransport":
        LOGGER.debug("Opening serial port %s at %d baud", name, baud_rate)
        try:
            port = serial.Serial(name, baudrate=baud_rate, timeout=timeout)
        except serial.SerialException as exc:
            raise TransportError(f"cannot open serial port {name}: {exc}") from exc
        return cls(port)

    def write(self, data: bytes) -> None:
        try:
            self._serial.write(data)
        except serial.SerialException as exc:
            raise TransportError(f"serial write failed: {exc}") from exc

    def read(self, size: int) -> bytes:
        try:
            return self._serial.read(size)
        except serial.SerialException as exc:
            raise TransportError(f"serial read failed: {exc}") from exc

    def flush(self) -> None:
        try:
            self._serial.flush()
        except serial.SerialException as exc:
            raise TransportError(f"serial flush failed: {exc}") from exc

    def close(self) -> None:
        self._serial.close()


class LoopbackTransport(Transport):
    """In-memory transport with scripted inbound data."""

    def __init__(self) -> None:
        self._inbound: Deque[int] = deque()
        self._outbound = bytearray()
        self.reads: List[int] = []

    def write(self, data: bytes) -> None:
        self._outbound.extend(data)

    def read(self, size: int) -> bytes:
        self.reads.append(size)
        count = min(size, len(self._inbound))
        return bytes(self._inbound.popleft() for _ in range(count))

    def feed(self, data: bytes) -> None:
        """Queue ``data`` as if the device had sent it."""

        self._inbound.extend(data)

    def collect_transmit(self) -> bytes:
        """Return and clear everything written so far."""

        payload = bytes(self._outbound)
        self._outbound.clear()
        return payload


class EmulatedMonitorTransport(Transport):
    """Transport that answers like the MEGA65 matrix-mode monitor.

    Memory is sparse and 28 bits wide. Commands are parsed as soon as their
    terminator arrives; the raw payload of an ``l`` command is consumed by
    byte count rather than by terminator.
    """

    KEYBOARD_ADDRESS = 0xFFD3615
    MODE_ADDRESS = 0xFFD3030
    NATIVE_MODE_VALUE = 0x64

    def __init__(self) -> None:
        self.memory: Dict[int, int] = {self.MODE_ADDRESS: self.NATIVE_MODE_VALUE}
        self.commands: List[str] = []
        self.keystrokes: List[Tuple[int, int]] = []
        self.halted = False
        self.reset_count = 0
        self.dump_frames = 0
        self._line = bytearray()
        self._inbound: Deque[int] = deque()
        self._load_cursor: Optional[int] = None
        self._load_remaining = 0
        self._dump_cursor = 0

    # Memory helpers ----------------------------------------------------

    def load(self, address: int, data: bytes) -> None:
        for offset, value in enumerate(data):
            self.memory[address + offset] = value

    def peek(self, address: int, length: int) -> bytes:
        return bytes(self.memory.get(address + offset, 0) for offset in range(length))

    def set_native_mode(self, native: bool) -> None:
        self.memory[self.MODE_ADDRESS] = self.NATIVE_MODE_VALUE if native else 0x00

    # Transport API -----------------------------------------------------

    def write(self, data: bytes) -> None:
        for byte in data:
            if self._load_remaining:
                assert self._load_cursor is not None
                self.memory[self._load_cursor] = byte
                self._load_cursor += 1
                self._load_remaining -= 1
                continue
            if byte in (0x0D, 0x0A):
                self._dispatch(self._line.decode("latin-1"))
                self._line.clear()
                continue
            self._line.append(byte)

    def read(self, size: int) -> bytes:
        count = min(size, len(self._inbound))
        return bytes(self._inbound.popleft() for _ in range(count))

    # Command handling --------------------------------------------------

    def _dispatch(self, line: str) -> None:
        line = line.lstrip("\x15").strip()
        if not line:
            return
        self.commands.append(line)
        head, rest = line[0], line[1:]
        if head == "m":
            self._dump(rest)
        elif head == "l":
            start_text, end_text = rest.split()
            start, end = int(start_text, 16), int(end_text, 16)
            self._load_cursor = start
            self._load_remaining = end - start
        elif head == "t":
            self.halted = rest == "1"
        elif head == "!":
            self.reset_count += 1
            self.halted = False
            self.set_native_mode(True)
        elif head == "s":
            self._set_memory(rest)
        elif head == "#":
            pass
        else:
            LOGGER.debug("Ignoring unknown monitor command %r", line)

    def _set_memory(self, arguments: str) -> None:
        address_text, *values_text = arguments.split()
        address = int(address_text, 16)
        values = [int(value, 16) for value in values_text]
        self.load(address, bytes(values))
        if address == self.KEYBOARD_ADDRESS and len(values) == 2:
            self.keystrokes.append((values[0], values[1]))

    def _dump(self, argument: str) -> None:
        if argument:
            self._dump_cursor = int(argument, 16)
            header = f"m{self._dump_cursor:07X}\r\n:{self._dump_cursor:08X}:"
            size = DUMP_HEADER_SIZE
        else:
            header = f"m\r\n:{self._dump_cursor:08X}:"
            size = CONTINUE_HEADER_SIZE
        chunk = self.peek(self._dump_cursor, DUMP_CHUNK_SIZE)
        self._dump_cursor += DUMP_CHUNK_SIZE
        self.dump_frames += 1
        self._inbound.extend(header.encode("ascii").ljust(size)[:size])
        self._inbound.extend(chunk.hex().upper().encode("ascii"))


__all__ = [
    "CONTINUE_HEADER_SIZE",
    "DUMP_CHUNK_SIZE",
    "DUMP_HEADER_SIZE",
    "EmulatedMonitorTransport",
    "LoopbackTransport",
    "SerialTransport",
    "Transport",
]
