"""Read-only access to Commodore D64 and D81 disk images."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterable, Iterator, List, Optional, Type

from .errors import InvalidFormatError


_SECTOR_BYTES = 256
_ENTRY_BYTES = 32


def _decode_petscii_name(raw: bytes) -> str:
    def _map(byte: int) -> str:
        if byte == 0xA0:
            return " "
        value = byte & 0x7F
        if 0x20 <= value <= 0x5F:
            return chr(value)
        return f"\\x{byte:02x}"

    return "".join(_map(b) for b in raw).rstrip()


def _decode_file_type(file_type: int) -> str:
    types = {
        0: "DEL",
        1: "SEQ",
        2: "PRG",
        3: "USR",
        4: "REL",
        5: "CBM",
    }
    return types.get(file_type & 0x07, "UNK")


@dataclass(frozen=True)
class DirectoryEntry:
    """Represents a single file entry within a disk directory."""

    name: str
    file_type: str
    start_track: int
    start_sector: int
    size_blocks: int
    locked: bool
    closed: bool

    @property
    def is_program(self) -> bool:
        return self.file_type == "PRG"

    @property
    def filename(self) -> str:
        return self.name


class DiskImage:
    """Sector-chain reader shared by the supported image geometries."""

    suffix = ""
    directory_track = 0
    directory_sector = 0
    sectors_per_track: Dict[int, int] = {}

    def __init__(self, data: bytes):
        minimum = sum(self.sectors_per_track.values()) * _SECTOR_BYTES
        if len(data) < minimum:
            raise InvalidFormatError(
                f"{self.suffix} image too small: {len(data)} bytes, expected {minimum}"
            )
        self._data = data
        self._directory: Optional[List[DirectoryEntry]] = None

    def directory(self) -> List[DirectoryEntry]:
        return list(self.iter_directory())

    def iter_directory(self) -> Iterator[DirectoryEntry]:
        if self._directory is None:
            self._directory = list(self._parse_directory())
        return iter(self._directory)

    def get_entry(self, name: str) -> Optional[DirectoryEntry]:
        # Names are decoded with their padding removed, so only trailing
        # blanks are insignificant.
        normalized = name.rstrip().upper()
        for entry in self.iter_directory():
            if entry.name.upper() == normalized:
                return entry
        return None

    def open(self, name: str) -> BinaryIO:
        return io.BytesIO(self.read_file(name))

    def read_file(self, name: str) -> bytes:
        entry = self.get_entry(name)
        if entry is None:
            available = ", ".join(e.name for e in self.iter_directory())
            raise FileNotFoundError(f"{name!r} not found (available: {available})")
        return self.read_entry(entry)

    def read_entry(self, entry: DirectoryEntry) -> bytes:
        """Return the contents of ``entry`` by following its own sector chain."""

        if entry.start_track == 0:
            return b""
        return self._follow_chain(entry.start_track, entry.start_sector)

    def _offset(self, track: int, sector: int) -> int:
        if track not in self.sectors_per_track:
            raise InvalidFormatError(f"unsupported track {track}")
        if sector >= self.sectors_per_track[track]:
            raise InvalidFormatError(f"sector {sector} out of range for track {track}")

        offset = 0
        for current_track in range(1, track):
            offset += self.sectors_per_track[current_track] * _SECTOR_BYTES
        return offset + sector * _SECTOR_BYTES

    def _sector(self, track: int, sector: int) -> bytes:
        offset = self._offset(track, sector)
        return self._data[offset : offset + _SECTOR_BYTES]

    def _parse_directory(self) -> Iterable[DirectoryEntry]:
        track, sector = self.directory_track, self.directory_sector
        visited = set()
        while track != 0 and (track, sector) not in visited:
            visited.add((track, sector))
            sector_bytes = self._sector(track, sector)
            track, sector = sector_bytes[0], sector_bytes[1]
            for index in range(0, _SECTOR_BYTES, _ENTRY_BYTES):
                entry = sector_bytes[index : index + _ENTRY_BYTES]
                file_type = entry[2]
                start_track = entry[3]
                if file_type & 0x0F == 0 or start_track == 0:
                    continue
                yield DirectoryEntry(
                    name=_decode_petscii_name(entry[5:21]),
                    file_type=_decode_file_type(file_type),
                    start_track=start_track,
                    start_sector=entry[4],
                    size_blocks=entry[30] + (entry[31] << 8),
                    locked=bool(file_type & 0x40),
                    closed=bool(file_type & 0x80),
                )

    def _follow_chain(self, track: int, sector: int) -> bytes:
        chunks: List[bytes] = []
        visited = set()
        while track != 0:
            if (track, sector) in visited:
                raise InvalidFormatError(f"sector chain loops at {track}/{sector}")
            visited.add((track, sector))
            sector_bytes = self._sector(track, sector)
            next_track, next_sector = sector_bytes[0], sector_bytes[1]
            if next_track == 0:
                # The final sector stores the index of its last used byte.
                chunks.append(sector_bytes[2 : next_sector + 1])
                break
            chunks.append(sector_bytes[2:])
            track, sector = next_track, next_sector
        return b"".join(chunks)


class D64Image(DiskImage):
    """Standard 35-track 1541 image."""

    suffix = ".d64"
    directory_track = 18
    directory_sector = 1
    sectors_per_track = {
        **{track: 21 for track in range(1, 18)},
        **{track: 19 for track in range(18, 25)},
        **{track: 18 for track in range(25, 31)},
        **{track: 17 for track in range(31, 36)},
    }


class D81Image(DiskImage):
    """80-track 1581 image as used by the MEGA65 internal drive."""

    suffix = ".d81"
    directory_track = 40
    directory_sector = 3
    sectors_per_track = {track: 40 for track in range(1, 81)}


DISK_IMAGE_TYPES: Dict[str, Type[DiskImage]] = {
    image_type.suffix: image_type for image_type in (D64Image, D81Image)
}


def open_disk_image(data: bytes, suffix: str) -> DiskImage:
    """Wrap ``data`` with the reader matching the ``suffix`` extension."""

    image_type = DISK_IMAGE_TYPES.get(suffix.lower())
    if image_type is None:
        raise InvalidFormatError(f"unsupported disk image type {suffix!r}")
    return image_type(data)


__all__ = [
    "D64Image",
    "D81Image",
    "DISK_IMAGE_TYPES",
    "DirectoryEntry",
    "DiskImage",
    "open_disk_image",
]
