#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Common ``ar`` archive reading and writing, as used by Debian packages."""

from __future__ import annotations

from collections.abc import Sequence

from shipwright.exceptions import ArchiveError

AR_MAGIC = b"!<arch>\n"
AR_HEADER_SIZE = 60
AR_FMAG = b"`\n"


def ar_member_header(name: str, size: int, mtime: int = 0, mode: int = 0o100644) -> bytes:
    """60-byte member header: name, mtime, uid, gid, mode (octal), size, magic."""
    encoded = name.encode("ascii")
    if len(encoded) > 16:
        raise ArchiveError(f"ar member name too long: {name}")
    header = (
        encoded.ljust(16)
        + str(mtime).encode().ljust(12)
        + b"0".ljust(6)
        + b"0".ljust(6)
        + f"{mode:o}".encode().ljust(8)
        + str(size).encode().ljust(10)
        + AR_FMAG
    )
    return header


def write_ar(members: Sequence[tuple[str, bytes]], mtime: int = 0) -> bytes:
    """Assemble an ar archive; members are padded to an even length."""
    parts = [AR_MAGIC]
    for name, data in members:
        parts.append(ar_member_header(name, len(data), mtime))
        parts.append(data)
        if len(data) % 2:
            parts.append(b"\n")
    return b"".join(parts)


def read_ar(data: bytes) -> list[tuple[str, bytes]]:
    """Split an ar archive into (name, data) members, in order."""
    if not data.startswith(AR_MAGIC):
        raise ArchiveError("Not an ar archive")

    members = []
    offset = len(AR_MAGIC)
    while offset < len(data):
        header = data[offset : offset + AR_HEADER_SIZE]
        if len(header) < AR_HEADER_SIZE or header[58:60] != AR_FMAG:
            raise ArchiveError(f"Corrupt ar member header at offset {offset}")
        name = header[:16].decode("ascii").rstrip().rstrip("/")
        size = int(header[48:58].decode("ascii").strip())
        start = offset + AR_HEADER_SIZE
        members.append((name, data[start : start + size]))
        offset = start + size + (size % 2)
    return members


# 🚢📦🔚
