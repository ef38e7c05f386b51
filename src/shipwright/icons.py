#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Icon transcoding into ICNS, ICO and freedesktop PNG sets.

Every output container has a fixed set of required pixel sizes. For each one
the smallest source at least that large is downscaled; when no source is
large enough the largest one is upscaled, with an ``IconTooSmall`` warning
once the factor exceeds 2x. ICNS and ICO inputs contribute every image they
embed, so transcoding an ICNS into a new ICNS keeps its size set.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import io
from pathlib import Path
import struct
import warnings

from PIL import Image, UnidentifiedImageError
from provide.foundation import logger
from provide.foundation.file import atomic_write
from provide.foundation.file.directory import ensure_dir

from shipwright.config.defaults import (
    ICNS_ENTRIES,
    ICO_SIZES,
    LINUX_ICON_SIZES,
    MAX_UPSCALE_FACTOR,
)
from shipwright.exceptions import IconTooSmall, ImageError, ResourceNotFound, UnsupportedImageFormat

ICNS_MAGIC = b"icns"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _png_size(data: bytes) -> tuple[int, int]:
    # IHDR is always the first chunk: width and height follow the 16-byte preamble.
    width, height = struct.unpack(">II", data[16:24])
    return width, height


# =================================
# ICNS container
# =================================


def write_icns(entries: Sequence[tuple[bytes, bytes]]) -> bytes:
    """Assemble an ICNS file from (OSType, PNG data) pairs."""
    body = b"".join(ostype + struct.pack(">I", 8 + len(data)) + data for ostype, data in entries)
    return ICNS_MAGIC + struct.pack(">I", 8 + len(body)) + body


def read_icns(data: bytes) -> list[tuple[bytes, bytes]]:
    """Split an ICNS file into its (OSType, payload) entries."""
    if data[:4] != ICNS_MAGIC:
        raise UnsupportedImageFormat("Not an ICNS file (bad magic)")
    (total,) = struct.unpack(">I", data[4:8])
    if total > len(data):
        raise UnsupportedImageFormat("Truncated ICNS file")

    entries = []
    offset = 8
    while offset + 8 <= total:
        ostype = data[offset : offset + 4]
        (length,) = struct.unpack(">I", data[offset + 4 : offset + 8])
        if length < 8 or offset + length > total:
            raise UnsupportedImageFormat(f"Corrupt ICNS entry {ostype!r}")
        entries.append((ostype, data[offset + 8 : offset + length]))
        offset += length
    return entries


def read_icns_sizes(path: Path) -> dict[str, int]:
    """Map each PNG-encoded ICNS entry's OSType to its pixel size."""
    sizes = {}
    for ostype, payload in read_icns(path.read_bytes()):
        if payload.startswith(PNG_MAGIC):
            sizes[ostype.decode("ascii")] = _png_size(payload)[0]
    return sizes


# =================================
# ICO container
# =================================


def write_ico(images: Sequence[tuple[int, bytes]]) -> bytes:
    """Assemble an ICO file from (pixel size, PNG data) pairs."""
    header = struct.pack("<HHH", 0, 1, len(images))
    offset = len(header) + 16 * len(images)
    directory = b""
    payload = b""
    for size, data in images:
        dim = 0 if size >= 256 else size  # 0 means 256 in the directory entry
        directory += struct.pack("<BBBBHHII", dim, dim, 0, 0, 1, 32, len(data), offset)
        payload += data
        offset += len(data)
    return header + directory + payload


def read_ico_sizes(path: Path) -> list[int]:
    data = path.read_bytes()
    reserved, kind, count = struct.unpack("<HHH", data[:6])
    if reserved != 0 or kind != 1:
        raise UnsupportedImageFormat(f"Not an ICO file: {path}")
    sizes = []
    for i in range(count):
        width = data[6 + 16 * i]
        sizes.append(width or 256)
    return sorted(sizes)


# =================================
# Transcoder
# =================================


class IconTranscoder:
    """Converts ordered icon candidates into per-platform icon containers."""

    def __init__(self, candidates: Iterable[Path]) -> None:
        self.candidates = list(candidates)
        self.warnings: list[str] = []
        self._sources: list[Image.Image] | None = None

    @property
    def sources(self) -> list[Image.Image]:
        """Decoded source images, smallest first."""
        if self._sources is None:
            images: list[Image.Image] = []
            for candidate in self.candidates:
                images.extend(self._load(candidate))
            if not images:
                raise ImageError("No icon candidates were provided")
            images.sort(key=lambda im: min(im.size))
            self._sources = images
        return self._sources

    def _load(self, path: Path) -> list[Image.Image]:
        if not path.is_file():
            raise ResourceNotFound(f"Icon not found: {path}")

        data = path.read_bytes()
        if data[:4] == ICNS_MAGIC:
            embedded = [
                self._decode(payload, path)
                for _, payload in read_icns(data)
                if payload.startswith(PNG_MAGIC)
            ]
            if embedded:
                return embedded

        try:
            with Image.open(io.BytesIO(data)) as image:
                if image.format == "ICO":
                    return [
                        image.ico.getimage(size).convert("RGBA")  # type: ignore[attr-defined]
                        for size in sorted(image.ico.sizes())  # type: ignore[attr-defined]
                    ]
                image.load()
                return [image.convert("RGBA")]
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise UnsupportedImageFormat(f"Cannot decode icon {path}: {e}") from e

    def _decode(self, payload: bytes, path: Path) -> Image.Image:
        try:
            with Image.open(io.BytesIO(payload)) as image:
                image.load()
                return image.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise UnsupportedImageFormat(f"Cannot decode embedded image in {path}: {e}") from e

    def pick_source(self, size: int) -> Image.Image:
        """Smallest source at least ``size`` pixels, else the largest one."""
        for image in self.sources:
            if min(image.size) >= size:
                return image

        largest = self.sources[-1]
        factor = size / min(largest.size)
        if factor > MAX_UPSCALE_FACTOR:
            message = (
                f"Icon {largest.size[0]}x{largest.size[1]} upscaled {factor:.1f}x to {size}x{size}; "
                "provide a larger icon"
            )
            if message not in self.warnings:
                self.warnings.append(message)
                logger.warning(f"⚠️ {message}")
                warnings.warn(message, IconTooSmall, stacklevel=2)
        return largest

    def render(self, size: int) -> Image.Image:
        source = self.pick_source(size)
        if source.size == (size, size):
            return source.copy()

        scale = size / max(source.size)
        width = max(1, round(source.size[0] * scale))
        height = max(1, round(source.size[1] * scale))
        resized = source.resize((width, height), Image.Resampling.LANCZOS)
        if (width, height) == (size, size):
            return resized

        canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        canvas.paste(resized, ((size - width) // 2, (size - height) // 2))
        return canvas

    def to_icns(self, output: Path) -> Path:
        entries = [(ostype, encode_png(self.render(size * scale))) for ostype, size, scale in ICNS_ENTRIES]
        atomic_write(output, write_icns(entries))
        logger.debug("🎨 Wrote ICNS", path=str(output), entries=len(entries))
        return output

    def to_ico(self, output: Path) -> Path:
        images = [(size, encode_png(self.render(size))) for size in ICO_SIZES]
        atomic_write(output, write_ico(images))
        logger.debug("🎨 Wrote ICO", path=str(output), entries=len(images))
        return output

    def to_png(self, output: Path, size: int) -> Path:
        atomic_write(output, encode_png(self.render(size)))
        return output

    def to_png_set(self, hicolor_dir: Path, name: str, sizes: Sequence[int] = LINUX_ICON_SIZES) -> dict[int, Path]:
        """Write ``<hicolor_dir>/<N>x<N>/apps/<name>.png`` for each size."""
        written = {}
        for size in sizes:
            target_dir = hicolor_dir / f"{size}x{size}" / "apps"
            ensure_dir(target_dir)
            written[size] = self.to_png(target_dir / f"{name}.png", size)
        logger.debug("🎨 Wrote PNG icon set", name=name, sizes=list(written))
        return written


# 🚢📦🔚
