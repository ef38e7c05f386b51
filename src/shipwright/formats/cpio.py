#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""SVR4 ``newc`` cpio archives (the RPM payload format)."""

from __future__ import annotations

from collections.abc import Iterable

from provide.foundation.file import align_offset

from shipwright.exceptions import ArchiveError

NEWC_MAGIC = b"070701"
NEWC_HEADER_SIZE = 110
TRAILER_NAME = "TRAILER!!!"

S_IFDIR = 0o040000
S_IFREG = 0o100000


def _header(name: bytes, ino: int, mode: int, mtime: int, size: int, nlink: int) -> bytes:
    fields = (ino, mode, 0, 0, nlink, mtime, size, 0, 0, 0, 0, len(name) + 1, 0)
    return NEWC_MAGIC + b"".join(f"{value:08x}".encode("ascii") for value in fields)


def _padding(length: int) -> bytes:
    return b"\0" * (align_offset(length, 4) - length)


def cpio_entry(name: str, ino: int, mode: int, mtime: int, data: bytes = b"", is_dir: bool = False) -> bytes:
    encoded = name.encode("utf-8")
    full_mode = (S_IFDIR if is_dir else S_IFREG) | mode
    header = _header(encoded, ino, full_mode, mtime, len(data), 2 if is_dir else 1)
    head = header + encoded + b"\0"
    return head + _padding(len(head)) + data + _padding(len(data))


def write_cpio(entries: Iterable[tuple[str, int, bytes, bool]], mtime: int) -> bytes:
    """Assemble a newc archive from (name, mode, data, is_dir) tuples, in order."""
    parts = []
    for ino, (name, mode, data, is_dir) in enumerate(entries, start=1):
        parts.append(cpio_entry(name, ino, mode, mtime, data, is_dir))
    trailer = _header(TRAILER_NAME.encode("ascii"), 0, 0, 0, 0, 1) + TRAILER_NAME.encode("ascii") + b"\0"
    parts.append(trailer + _padding(len(trailer)))
    return b"".join(parts)


def read_cpio(data: bytes) -> list[tuple[str, int, bytes]]:
    """Split a newc archive into (name, mode, data) entries up to the trailer."""
    entries = []
    offset = 0
    while True:
        header = data[offset : offset + NEWC_HEADER_SIZE]
        if len(header) < NEWC_HEADER_SIZE or header[:6] != NEWC_MAGIC:
            raise ArchiveError(f"Corrupt cpio header at offset {offset}")
        fields = [int(header[6 + 8 * i : 14 + 8 * i], 16) for i in range(13)]
        mode, size, namesize = fields[1], fields[6], fields[11]
        name_start = offset + NEWC_HEADER_SIZE
        name = data[name_start : name_start + namesize - 1].decode("utf-8")
        data_start = align_offset(name_start + namesize, 4)
        if name == TRAILER_NAME:
            return entries
        entries.append((name, mode, data[data_start : data_start + size]))
        offset = align_offset(data_start + size, 4)


# 🚢📦🔚
