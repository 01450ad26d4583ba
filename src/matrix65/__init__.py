"""Serial communicator for the MEGA65 matrix-mode monitor."""
from __future__ import annotations

from .config import Matrix65Config, MonitorTiming, load_config
from .disk_image import D64Image, D81Image, DirectoryEntry, open_disk_image
from .errors import (
    InvalidFormatError,
    InvalidSelectionError,
    Matrix65Error,
    ProtocolError,
    TransportError,
    UnsupportedLoadAddressError,
    ValidationError,
)
from .images import DiskCatalog, ImageLoader, Program, load_program, purge_load_address
from .keyboard import NO_KEY, KeyEvent, KeyInjector, encode_key
from .load_address import LoadAddress, Platform, classify
from .modes import ModeController, ModeState
from .monitor import MemoryBlock, MonitorSession
from .transport import (
    EmulatedMonitorTransport,
    LoopbackTransport,
    SerialTransport,
    Transport,
)

__all__ = [
    "D64Image",
    "D81Image",
    "DirectoryEntry",
    "DiskCatalog",
    "EmulatedMonitorTransport",
    "ImageLoader",
    "InvalidFormatError",
    "InvalidSelectionError",
    "KeyEvent",
    "KeyInjector",
    "LoadAddress",
    "LoopbackTransport",
    "Matrix65Config",
    "Matrix65Error",
    "MemoryBlock",
    "ModeController",
    "ModeState",
    "MonitorSession",
    "MonitorTiming",
    "NO_KEY",
    "Platform",
    "Program",
    "ProtocolError",
    "SerialTransport",
    "Transport",
    "TransportError",
    "UnsupportedLoadAddressError",
    "ValidationError",
    "classify",
    "encode_key",
    "load_config",
    "load_program",
    "open_disk_image",
    "purge_load_address",
]
