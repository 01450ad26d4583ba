"""Classification of Commodore program load addresses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .errors import ValidationError


class Platform(Enum):
    """Machines identified by the BASIC start address their programs use."""

    PET = 0x0401
    COMMODORE64 = 0x0801
    COMMODORE16 = 0x1001
    COMMODORE128 = 0x1C01
    COMMODORE65 = 0x2001


_PLATFORMS: Dict[int, Platform] = {platform.value: platform for platform in Platform}


@dataclass(frozen=True)
class LoadAddress:
    """A 16-bit load address and the platform it belongs to, if any."""

    value: int
    platform: Optional[Platform] = None

    @classmethod
    def new(cls, value: int) -> "LoadAddress":
        return classify(value)

    @classmethod
    def custom(cls, value: int) -> "LoadAddress":
        _check_range(value)
        return cls(value, None)

    @classmethod
    def for_platform(cls, platform: Platform) -> "LoadAddress":
        return cls(platform.value, platform)

    @property
    def is_custom(self) -> bool:
        return self.platform is None

    def __str__(self) -> str:
        label = self.platform.name if self.platform is not None else "CUSTOM"
        return f"{label}(0x{self.value:04x})"


def classify(value: int) -> LoadAddress:
    """Map a raw 16-bit value onto a known platform or a custom address."""

    _check_range(value)
    platform = _PLATFORMS.get(value)
    return LoadAddress(value, platform)


def _check_range(value: int) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ValidationError(f"load address {value:#x} is not a 16-bit value")


__all__ = ["LoadAddress", "Platform", "classify"]
