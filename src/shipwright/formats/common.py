#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Helpers shared by the format builders: publication, staging and tarballs."""

from __future__ import annotations

from collections.abc import Iterator
import contextlib
import gzip
import io
import os
from pathlib import Path, PurePosixPath
import tarfile
import uuid

from attrs import define
from provide.foundation import logger
from provide.foundation.archive import deterministic_filter
from provide.foundation.file import safe_copy
from provide.foundation.file.directory import ensure_dir, ensure_parent_dir, safe_rmtree

from shipwright.config.defaults import (
    DEFAULT_DIR_PERMS,
    DEFAULT_EXECUTABLE_PERMS,
    DEFAULT_FILE_PERMS,
    ROOT_GROUP,
    ROOT_USER,
)
from shipwright.models import ResolvedFile

# =================================
# Atomic publication
# =================================


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        safe_rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


@contextlib.contextmanager
def atomic_output(final_path: Path) -> Iterator[Path]:
    """Yield a unique temporary path beside ``final_path``; rename it into place on success.

    On any exception the temporary file or directory is removed and nothing
    appears at ``final_path``.
    """
    ensure_dir(final_path.parent)
    temp_path = final_path.with_name(f".{final_path.name}.{uuid.uuid4().hex[:12]}.partial")
    try:
        yield temp_path
        if final_path.exists() or final_path.is_symlink():
            _remove(final_path)
        os.replace(temp_path, final_path)
    except BaseException:
        with contextlib.suppress(OSError):
            _remove(temp_path)
        raise
    logger.debug("📤 Published output", path=str(final_path))


def remove_outputs(paths: list[Path]) -> None:
    """Best-effort removal of already published outputs."""
    for path in paths:
        try:
            _remove(path)
            logger.debug("🧹 Removed published output", path=str(path))
        except OSError as e:
            logger.warning(f"⚠️ Could not remove {path}: {e}")


# =================================
# Staging trees
# =================================


@define(frozen=True)
class TreeEntry:
    """One node of a staged package tree, in archive order."""

    path: PurePosixPath
    source: Path
    is_dir: bool
    mode: int
    size: int


def stage_file(source: Path, destination: Path, mode: int) -> Path:
    ensure_parent_dir(destination)
    safe_copy(source, destination, preserve_mode=False, overwrite=True)
    destination.chmod(mode)
    return destination


def stage_bytes(data: bytes, destination: Path, mode: int = DEFAULT_FILE_PERMS) -> Path:
    ensure_parent_dir(destination)
    destination.write_bytes(data)
    destination.chmod(mode)
    return destination


def stage_files(files: tuple[ResolvedFile, ...] | list[ResolvedFile], root: Path, prefix: str = "") -> None:
    for resolved in files:
        target = root / prefix / resolved.destination if prefix else root / resolved.destination
        stage_file(resolved.source, target, resolved.mode)


def copy_tree(source: Path, destination: Path) -> None:
    """Copy a directory tree file by file, keeping symlinks as links."""
    ensure_dir(destination)
    for current, dirs, files in os.walk(source):
        current_path = Path(current)
        target_dir = destination / current_path.relative_to(source)
        for name in sorted(dirs + files):
            src = current_path / name
            dst = target_dir / name
            if src.is_symlink():
                dst.symlink_to(os.readlink(src))
            elif src.is_dir():
                ensure_dir(dst)
            else:
                safe_copy(src, dst, preserve_mode=True)


def walk_tree(root: Path) -> list[TreeEntry]:
    """Every directory and file under ``root``, parents before children, sorted by name.

    File modes are normalized to 0644 or 0755 so the umask of the build host
    never leaks into a package.
    """
    entries: list[TreeEntry] = []
    for current, dirs, files in os.walk(root):
        dirs.sort()
        current_path = Path(current)
        rel_dir = PurePosixPath(current_path.relative_to(root).as_posix())
        if current_path != root:
            entries.append(TreeEntry(rel_dir, current_path, True, DEFAULT_DIR_PERMS, 0))
        for name in sorted(files):
            file_path = current_path / name
            stat = file_path.stat()
            rel = rel_dir / name if str(rel_dir) != "." else PurePosixPath(name)
            mode = DEFAULT_EXECUTABLE_PERMS if stat.st_mode & 0o111 else DEFAULT_FILE_PERMS
            entries.append(TreeEntry(rel, file_path, False, mode, stat.st_size))
    return entries


def tree_size(entries: list[TreeEntry]) -> int:
    return sum(entry.size for entry in entries if not entry.is_dir)


# =================================
# Deterministic archives
# =================================


def gzip_bytes(data: bytes) -> bytes:
    """Gzip with a zero header timestamp and no embedded file name."""
    return gzip.compress(data, compresslevel=9, mtime=0)


class DeterministicTar:
    """Uncompressed tar writer with normalized ownership and timestamps."""

    def __init__(self, mtime: int) -> None:
        self.mtime = mtime
        self._buffer = io.BytesIO()
        self._tar = tarfile.open(fileobj=self._buffer, mode="w", format=tarfile.GNU_FORMAT)

    def _normalize(self, info: tarfile.TarInfo, mode: int) -> tarfile.TarInfo:
        normalized = deterministic_filter(info) or info
        normalized.mtime = self.mtime
        normalized.mode = mode
        normalized.uid = normalized.gid = 0
        normalized.uname = ROOT_USER
        normalized.gname = ROOT_GROUP
        return normalized

    def add_dir(self, name: str, mode: int = DEFAULT_DIR_PERMS) -> None:
        info = tarfile.TarInfo(name)
        info.type = tarfile.DIRTYPE
        self._tar.addfile(self._normalize(info, mode))

    def add_bytes(self, name: str, data: bytes, mode: int = DEFAULT_FILE_PERMS) -> None:
        info = tarfile.TarInfo(name)
        info.size = len(data)
        self._tar.addfile(self._normalize(info, mode), io.BytesIO(data))

    def add_file(self, name: str, source: Path, mode: int) -> None:
        info = tarfile.TarInfo(name)
        info.size = source.stat().st_size
        with source.open("rb") as f:
            self._tar.addfile(self._normalize(info, mode), f)

    def add_tree(self, entries: list[TreeEntry], prefix: str = "") -> None:
        for entry in entries:
            name = f"{prefix}{entry.path.as_posix()}"
            if entry.is_dir:
                self.add_dir(name, entry.mode)
            else:
                self.add_file(name, entry.source, entry.mode)

    def getvalue(self) -> bytes:
        self._tar.close()
        return self._buffer.getvalue()

    def gzipped(self) -> bytes:
        return gzip_bytes(self.getvalue())


# 🚢📦🔚
