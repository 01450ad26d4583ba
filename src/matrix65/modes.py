"""Operating-mode detection and program transfer orchestration."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict

from .errors import UnsupportedLoadAddressError
from .images import Program
from .keyboard import KeyInjector
from .load_address import Platform
from .monitor import MonitorSession, validate_poke


LOGGER = logging.getLogger(__name__)

GO64_KEYS = "go64\ry\r"
RUN_KEYS = "run\r"


class ModeState(Enum):
    """Device personality; ``UNKNOWN`` until the first probe has run."""

    UNKNOWN = "unknown"
    NATIVE = "c65"
    COMPAT = "c64"


class ModeController:
    """Probe the device personality and switch it on demand.

    The mode is read back from the device every time it matters; a manual
    reset or a running program may change it behind our back.
    """

    def __init__(self, session: MonitorSession, keys: KeyInjector | None = None) -> None:
        self.session = session
        self.keys = keys or KeyInjector(session)
        self.last_state = ModeState.UNKNOWN
        self._transitions: Dict[Platform, Callable[[], None]] = {
            Platform.COMMODORE65: self.to_native_mode,
            Platform.COMMODORE64: self.to_compat_mode,
        }

    def detect(self) -> ModeState:
        native = self.session.probe_mode_byte()
        self.last_state = ModeState.NATIVE if native else ModeState.COMPAT
        return self.last_state

    def is_native(self) -> bool:
        return self.detect() is ModeState.NATIVE

    def to_compat_mode(self) -> None:
        """Leave C65 mode with ``GO64`` if the device is currently there."""

        LOGGER.debug("Sending GO64")
        if self.is_native():
            self.keys.type_text(GO64_KEYS)
            timing = self.session.timing
            timing.pause(timing.mode_switch_delay)

    def to_native_mode(self) -> None:
        """A cold reset always lands in C65 mode."""

        if not self.is_native():
            self.session.reset()

    def reset(self, to_compat: bool = False) -> None:
        self.session.reset()
        if to_compat:
            self.to_compat_mode()

    def prepare_and_transfer(
        self, program: Program, reset_before_run: bool = False, run: bool = False
    ) -> None:
        """Switch to the mode ``program`` expects, write it and maybe run it."""

        load_address = program.load_address
        platform = load_address.platform
        transition = self._transitions.get(platform) if platform is not None else None
        if transition is None:
            raise UnsupportedLoadAddressError(
                f"unsupported load address {load_address}"
            )

        validate_poke(load_address.value, program.payload)

        if reset_before_run:
            self.session.reset()
        transition()
        LOGGER.info(
            "Transferring %d bytes to 0x%04x", len(program.payload), load_address.value
        )
        self.session.write_memory(load_address.value, program.payload)
        if run:
            self.keys.type_text(RUN_KEYS)


__all__ = ["ModeController", "ModeState"]
