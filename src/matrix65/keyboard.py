"""Synthetic keystrokes written into the MEGA65 keyboard matrix registers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping

from .monitor import MonitorSession


LOGGER = logging.getLogger(__name__)

KEYBOARD_REGISTER = 0xFFD3615
NO_KEY_CODE = 0x7F
LEFT_SHIFT_CODE = 0x0F
RETURN = "\r"


@dataclass(frozen=True)
class KeyEvent:
    """A pair of matrix positions pressed together."""

    c1: int = NO_KEY_CODE
    c2: int = NO_KEY_CODE

    @property
    def is_idle(self) -> bool:
        return self.c1 == NO_KEY_CODE and self.c2 == NO_KEY_CODE

    def command(self) -> bytes:
        return f"s{KEYBOARD_REGISTER:x} {self.c1:02x} {self.c2:02x}\n".encode("ascii")


NO_KEY = KeyEvent()

RELEASE_COMMAND = (
    f"s{KEYBOARD_REGISTER:x} {NO_KEY_CODE:02x} {NO_KEY_CODE:02x} {NO_KEY_CODE:02x} \n"
).encode("ascii")

# Characters typed with left shift held, keyed to the unshifted key.
_SHIFTED: Mapping[str, str] = MappingProxyType(
    {
        "!": "1",
        '"': "2",
        "#": "3",
        "$": "4",
        "%": "5",
        "(": "8",
        ")": "9",
        "?": "/",
        "<": ",",
        ">": ".",
    }
)

# PETSCII control codes that need shift on the MEGA65 matrix.
_SHIFTED_CONTROLS: Mapping[str, KeyEvent] = MappingProxyType(
    {
        "\x9d": KeyEvent(0x02, LEFT_SHIFT_CODE),  # cursor left
        "\x91": KeyEvent(0x07, LEFT_SHIFT_CODE),  # cursor up
    }
)

_MATRIX: Mapping[str, int] = MappingProxyType(
    {
        "\x14": 0x00,  # INST/DEL
        "\r": 0x01,
        "\x1d": 0x02,  # cursor right
        "\xf7": 0x03,  # F7
        "\xf1": 0x04,  # F1
        "\xf3": 0x05,  # F3
        "\xf5": 0x06,  # F5
        "\x11": 0x07,  # cursor down
        "3": 0x08,
        "w": 0x09,
        "a": 0x0A,
        "4": 0x0B,
        "z": 0x0C,
        "s": 0x0D,
        "e": 0x0E,
        "5": 0x10,
        "r": 0x11,
        "d": 0x12,
        "6": 0x13,
        "c": 0x14,
        "f": 0x15,
        "t": 0x16,
        "x": 0x17,
        "7": 0x18,
        "y": 0x19,
        "g": 0x1A,
        "8": 0x1B,
        "b": 0x1C,
        "h": 0x1D,
        "u": 0x1E,
        "v": 0x1F,
        "9": 0x20,
        "i": 0x21,
        "j": 0x22,
        "0": 0x23,
        "m": 0x24,
        "k": 0x25,
        "o": 0x26,
        "n": 0x27,
        "+": 0x28,
        "p": 0x29,
        "l": 0x2A,
        "-": 0x2B,
        ".": 0x2C,
        ":": 0x2D,
        "@": 0x2E,
        ",": 0x2F,
        "}": 0x30,
        "*": 0x31,
        ";": 0x32,
        "\x13": 0x33,  # CLR/HOME
        "=": 0x35,
        "/": 0x37,
        "1": 0x38,
        "_": 0x39,
        "2": 0x3B,
        " ": 0x3C,
        "q": 0x3E,
        "\x03": 0x3F,  # RUN/STOP
        "\x0c": 0x3F,
    }
)


def normalize_text(text: str) -> str:
    """Turn typed ``\\r`` / ``\\n`` escape sequences into RETURN."""

    return text.replace("\\r", RETURN).replace("\\n", RETURN)


def encode_key(char: str) -> KeyEvent:
    """Return the matrix pair for ``char``; unknown keys map to :data:`NO_KEY`."""

    control = _SHIFTED_CONTROLS.get(char)
    if control is not None:
        return control

    shift = NO_KEY_CODE
    base = _SHIFTED.get(char)
    if base is not None:
        shift = LEFT_SHIFT_CODE
        char = base
    elif len(char) == 1 and "A" <= char <= "Z":
        char = char.lower()

    code = _MATRIX.get(char)
    if code is None:
        return NO_KEY
    return KeyEvent(code, shift)


class KeyInjector:
    """Type text on the device by poking matrix codes through the monitor."""

    def __init__(self, session: MonitorSession) -> None:
        self.session = session

    def type_text(self, text: str) -> List[KeyEvent]:
        LOGGER.debug("Typing text %r", text)
        timing = self.session.timing
        timing.pause(timing.keypress_delay)
        events = [encode_key(char) for char in normalize_text(text)]
        for event in events:
            self.session.send(event.command(), timing.keypress_delay)
        self.release()
        return events

    def release(self) -> None:
        """Clear the matrix so no key stays pressed."""

        self.session.send(RELEASE_COMMAND)


__all__ = [
    "KEYBOARD_REGISTER",
    "KeyEvent",
    "KeyInjector",
    "NO_KEY",
    "RELEASE_COMMAND",
    "encode_key",
    "normalize_text",
]
