"""Resolve program files and disk-image entries into loadable programs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO, Callable, List, Optional, Protocol, Sequence

from .disk_image import DISK_IMAGE_TYPES, open_disk_image
from .errors import InvalidFormatError, InvalidSelectionError
from .load_address import LoadAddress, classify


LOGGER = logging.getLogger(__name__)

PROGRAM_SUFFIXES = ("", ".prg")


class ByteSource(Protocol):
    """Collaborator that turns a program identifier into raw bytes."""

    def read_bytes(self, source: str) -> bytes:
        ...


class CatalogEntry(Protocol):
    name: str
    file_type: str


class DiskDirectory(Protocol):
    """Directory listing and per-entry readers supplied by a disk-image parser."""

    def directory(self) -> Sequence[CatalogEntry]:
        ...

    def open(self, name: str) -> BinaryIO:
        ...

    def read_entry(self, entry: Any) -> bytes:
        ...


DiskOpener = Callable[[bytes, str], DiskDirectory]


class FileByteSource:
    """Read program identifiers as paths on the local filesystem."""

    def read_bytes(self, source: str) -> bytes:
        return Path(source).expanduser().read_bytes()


@dataclass(frozen=True)
class Program:
    """Payload bytes paired with the address they must be written to."""

    load_address: LoadAddress
    payload: bytes

    def __len__(self) -> int:
        return len(self.payload)


def purge_load_address(data: bytes) -> Program:
    """Split the little-endian load address off a program image."""

    if len(data) < 2:
        raise InvalidFormatError(
            f"program image needs a two-byte load address, received {len(data)} bytes"
        )
    address = int.from_bytes(data[:2], "little")
    return Program(classify(address), bytes(data[2:]))


class DiskCatalog:
    """PRG candidates found on a disk image."""

    def __init__(self, disk: DiskDirectory, label: str = "") -> None:
        self.disk = disk
        self.label = label
        self._candidates = [
            entry for entry in disk.directory() if entry.file_type == "PRG"
        ]

    def candidates(self) -> List[str]:
        return [entry.name for entry in self._candidates]

    def materialize(self, index: int) -> Program:
        """Read the ``index``-th candidate and strip its load address."""

        if not 0 <= index < len(self._candidates):
            raise InvalidSelectionError(
                f"invalid selection {index}: {len(self._candidates)} program(s) on disk"
            )
        entry = self._candidates[index]
        program = purge_load_address(self.disk.read_entry(entry))
        LOGGER.debug(
            "Read %s from %s; load address = 0x%x",
            entry.name,
            self.label or "disk image",
            program.load_address.value,
        )
        return program


class ImageLoader:
    """Dispatch on file extension to produce a :class:`Program`."""

    def __init__(
        self,
        byte_source: Optional[ByteSource] = None,
        disk_opener: Optional[DiskOpener] = None,
    ) -> None:
        self.byte_source = byte_source or FileByteSource()
        self.disk_opener: DiskOpener = disk_opener or open_disk_image

    @staticmethod
    def suffix_of(source: str) -> str:
        return PurePosixPath(source.rstrip("/")).suffix.lower()

    def load_program(self, source: str, selection: Optional[int] = None) -> Program:
        suffix = self.suffix_of(source)
        if suffix in PROGRAM_SUFFIXES:
            data = self.byte_source.read_bytes(source)
            program = purge_load_address(data)
            LOGGER.debug(
                "Read %d bytes from %s; detected load address = 0x%x",
                len(data),
                source,
                program.load_address.value,
            )
            return program
        if suffix in DISK_IMAGE_TYPES:
            catalog = self.open_catalog(source)
            if selection is None:
                names = catalog.candidates()
                if len(names) != 1:
                    raise InvalidSelectionError(
                        f"{source} holds {len(names)} programs; choose one by index"
                    )
                selection = 0
            return catalog.materialize(selection)
        raise InvalidFormatError(f"invalid file extension {suffix!r} for {source}")

    def open_catalog(self, source: str) -> DiskCatalog:
        suffix = self.suffix_of(source)
        if suffix not in DISK_IMAGE_TYPES:
            raise InvalidFormatError(f"{source} is not a disk image")
        LOGGER.debug("Opening CBM disk %s", source)
        disk = self.disk_opener(self.byte_source.read_bytes(source), suffix)
        return DiskCatalog(disk, label=source)


def load_program(source: str, selection: Optional[int] = None) -> Program:
    """Load ``source`` from the local filesystem."""

    return ImageLoader().load_program(source, selection)


__all__ = [
    "ByteSource",
    "DiskCatalog",
    "DiskDirectory",
    "FileByteSource",
    "ImageLoader",
    "Program",
    "load_program",
    "purge_load_address",
]
