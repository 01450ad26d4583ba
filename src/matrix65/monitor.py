"""Framing for the MEGA65 matrix-mode monitor protocol."""

from __future__ import annotations

import binascii
import contextlib
import logging
from typing import Iterator

from .config import MonitorTiming
from .errors import ProtocolError, ValidationError
from .transport import (
    CONTINUE_HEADER_SIZE,
    DUMP_CHUNK_SIZE,
    DUMP_HEADER_SIZE,
    Transport,
)


LOGGER = logging.getLogger(__name__)

MAX_POKE_ADDRESS = 0xFFFF
MAX_DUMP_ADDRESS = 0xFFFFFFF
MODE_STATUS_ADDRESS = 0xFFD3030
NATIVE_MODE_VALUE = 0x64

_CANCEL = b"\x15#\r"


class MemoryBlock(bytes):
    """Bytes read from device memory, tagged with their start address."""

    address: int

    def __new__(cls, address: int, data: bytes = b"") -> "MemoryBlock":
        block = super().__new__(cls, data)
        block.address = address
        return block

    def __repr__(self) -> str:
        return f"MemoryBlock(address=0x{self.address:x}, data={bytes(self)!r})"


class MonitorSession:
    """Speak the monitor protocol over a borrowed :class:`Transport`."""

    def __init__(self, transport: Transport, timing: MonitorTiming | None = None) -> None:
        self.transport = transport
        self.timing = timing or MonitorTiming()

    # CPU control -------------------------------------------------------

    def halt_cpu(self) -> None:
        self.send(b"t1\r")

    def resume_cpu(self) -> None:
        self.send(b"t0\r")

    @contextlib.contextmanager
    def halted(self) -> Iterator[None]:
        """Keep the CPU stopped for the duration of the block."""

        self.halt_cpu()
        try:
            yield
        finally:
            self.resume_cpu()

    def reset(self) -> None:
        LOGGER.debug("Sending RESET signal")
        self.transport.write(b"!\n")
        self.transport.flush()
        self.timing.pause(self.timing.reset_delay)

    def flush_monitor(self) -> None:
        """Cancel pending monitor output and drain it until the line is quiet."""

        self.transport.write(_CANCEL)
        self.transport.flush()
        while True:
            self.timing.pause(self.timing.write_delay)
            if not self.transport.read(1):
                break

    # Memory access -----------------------------------------------------

    def read_memory(self, address: int, length: int) -> MemoryBlock:
        """Dump ``length`` bytes starting at the 28-bit ``address``."""

        if length < 0:
            raise ValidationError(f"cannot read a negative length ({length})")
        if not 0 <= address <= MAX_DUMP_ADDRESS:
            raise ValidationError(f"dump address 0x{address:x} outside 28-bit range")

        LOGGER.debug("Loading %d bytes from 0x%x", length, address)
        self.flush_monitor()
        collected = bytearray()
        with self.halted():
            self.send(f"m{address:07x}\r".encode("ascii"))
            self._read_exact(DUMP_HEADER_SIZE, "dump header")
            while True:
                collected += self._read_chunk()
                if len(collected) >= length:
                    break
                self.send(b"m\r")
                self._read_exact(CONTINUE_HEADER_SIZE, "continuation header")
        return MemoryBlock(address, bytes(collected[:length]))

    def write_memory(self, address: int, data: bytes) -> None:
        """Write ``data`` into ``[address, address + len(data))``.

        The exclusive end address travels in the write-range command, so it
        must itself fit in 16 bits.
        """

        validate_poke(address, data)
        LOGGER.debug("Writing %d byte(s) to address 0x%x", len(data), address)
        with self.halted():
            self.send(f"l{address:x} {address + len(data):x}\r".encode("ascii"))
            self.transport.write(bytes(data))
            self.transport.flush()
            self.timing.pause(self.timing.write_delay)

    def peek(self, address: int, length: int = 1) -> MemoryBlock:
        return self.read_memory(address, length)

    def poke(self, address: int, data: bytes | int) -> None:
        if isinstance(data, int):
            data = bytes([data])
        self.write_memory(address, data)

    def probe_mode_byte(self) -> bool:
        """Return ``True`` when the device reports native (C65) mode."""

        block = self.read_memory(MODE_STATUS_ADDRESS, 1)
        return block[0] == NATIVE_MODE_VALUE

    # Wire helpers ------------------------------------------------------

    def send(self, payload: bytes, delay: float | None = None) -> None:
        """Write a raw command and wait ``delay`` (default: write delay)."""

        self.transport.write(payload)
        self.transport.flush()
        self.timing.pause(self.timing.write_delay if delay is None else delay)

    def _read_exact(self, size: int, what: str) -> bytes:
        data = self.transport.read(size)
        if len(data) != size:
            raise ProtocolError(
                f"short {what}: expected {size} bytes, received {len(data)}"
            )
        return data

    def _read_chunk(self) -> bytes:
        text = self._read_exact(DUMP_CHUNK_SIZE * 2, "dump chunk")
        try:
            return binascii.unhexlify(text)
        except (binascii.Error, ValueError) as exc:
            raise ProtocolError(f"invalid hexadecimal chunk {text!r}") from exc


def validate_poke(address: int, data: bytes) -> None:
    """Reject writes that are empty or whose end address leaves 16 bits."""

    if not data:
        raise ValidationError("nothing to poke: payload is empty")
    if address < 0 or address + len(data) > MAX_POKE_ADDRESS:
        raise ValidationError(
            "poking outside the 16-bit address space is currently unsupported"
        )


__all__ = [
    "MODE_STATUS_ADDRESS",
    "MemoryBlock",
    "MonitorSession",
    "NATIVE_MODE_VALUE",
    "validate_poke",
]
