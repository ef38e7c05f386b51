#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Resource resolution: glob and path rules to a concrete file layout."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import glob
import os
from pathlib import Path, PurePosixPath
import posixpath

from provide.foundation import logger

from shipwright.config.defaults import DEFAULT_EXECUTABLE_PERMS, DEFAULT_FILE_PERMS
from shipwright.exceptions import PathEscape, ResourceConflict, ResourceError, ResourceNotFound
from shipwright.models import PackageFormat, ResolvedBundle, ResolvedFile
from shipwright.settings import BundleSettings, ResourceRule

GLOB_CHARS = frozenset("*?[")
LINUX_FORMATS = frozenset({PackageFormat.DEB, PackageFormat.RPM, PackageFormat.PACMAN, PackageFormat.APPIMAGE})


def normalize_destination(destination: str | PurePosixPath) -> PurePosixPath:
    """Normalize a package-relative destination, refusing anything outside the root."""
    raw = str(destination).replace("\\", "/")
    if raw.startswith("/") or (len(raw) > 1 and raw[1] == ":"):
        raise PathEscape(f"Destination '{destination}' is absolute")
    normalized = posixpath.normpath(raw)
    if normalized == ".." or normalized.startswith("../"):
        raise PathEscape(f"Destination '{destination}' escapes the package root")
    if normalized in ("", "."):
        raise ResourceError(f"Destination '{destination}' resolves to the package root itself")
    return PurePosixPath(normalized)


def _file_mode(path: Path) -> int:
    return DEFAULT_EXECUTABLE_PERMS if os.access(path, os.X_OK) else DEFAULT_FILE_PERMS


def _is_glob(pattern: str) -> bool:
    return any(c in GLOB_CHARS for c in pattern)


def _glob_prefix(pattern: str) -> str:
    """Leading path components of ``pattern`` that contain no glob characters."""
    parts = PurePosixPath(pattern.replace("\\", "/")).parts
    prefix: list[str] = []
    for part in parts:
        if _is_glob(part):
            break
        prefix.append(part)
    return posixpath.join(*prefix) if prefix else ""


def _walk_files(directory: Path) -> Iterator[Path]:
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            yield Path(root) / name


def _relative_to_base(path: Path, base: Path, fallback: Path) -> Path:
    try:
        return path.relative_to(base)
    except ValueError:
        return path.relative_to(fallback)


def _expand_rule(rule: ResourceRule, base_dir: Path) -> Iterator[tuple[Path, str]]:
    """Yield (source, destination) pairs for one rule, before normalization."""
    pattern = rule.source

    if _is_glob(pattern):
        prefix = _glob_prefix(pattern)
        prefix_dir = base_dir / prefix if prefix else base_dir
        full_pattern = pattern if Path(pattern).is_absolute() else str(base_dir / pattern)
        matches = sorted(glob.glob(full_pattern, recursive=True))
        if not matches:
            logger.warning(f"⚠️ Resource pattern matched nothing: {pattern}")
        for match in matches:
            match_path = Path(match)
            files = _walk_files(match_path) if match_path.is_dir() else [match_path]
            for file_path in files:
                if rule.target is not None:
                    rel = file_path.relative_to(prefix_dir)
                    yield file_path, posixpath.join(rule.target, rel.as_posix())
                else:
                    rel = _relative_to_base(file_path, base_dir, prefix_dir)
                    yield file_path, rel.as_posix()
        return

    source = Path(pattern)
    source_path = source if source.is_absolute() else base_dir / source
    if not source_path.exists():
        raise ResourceNotFound(f"Resource not found: {pattern}")

    if source_path.is_dir():
        dest_root = rule.target if rule.target is not None else _default_dest(source, source_path, base_dir)
        for file_path in _walk_files(source_path):
            rel = file_path.relative_to(source_path)
            yield file_path, posixpath.join(dest_root, rel.as_posix())
    else:
        dest = rule.target if rule.target is not None else _default_dest(source, source_path, base_dir)
        yield source_path, dest


def _default_dest(source: Path, source_path: Path, base_dir: Path) -> str:
    if not source.is_absolute() and ".." not in source.parts:
        return source.as_posix()
    try:
        return source_path.resolve().relative_to(base_dir.resolve()).as_posix()
    except ValueError:
        return source_path.name


def resolve_resources(rules: Iterable[ResourceRule], base_dir: Path) -> list[ResolvedFile]:
    """Resolve rules to ordered, deduplicated files relative to the resource root.

    Raises:
        ResourceNotFound: a non-glob source does not exist
        ResourceConflict: two different sources map to one destination
        PathEscape: a destination would leave the package root
    """
    resolved: list[ResolvedFile] = []
    by_destination: dict[PurePosixPath, Path] = {}

    for rule in rules:
        for source, raw_dest in _expand_rule(rule, base_dir):
            destination = normalize_destination(raw_dest)
            existing = by_destination.get(destination)
            if existing is not None:
                if existing.resolve() == source.resolve():
                    continue
                raise ResourceConflict(
                    f"Resources '{existing}' and '{source}' both resolve to '{destination}'"
                )
            by_destination[destination] = source
            resolved.append(ResolvedFile(source=source, destination=destination, mode=_file_mode(source)))

    logger.debug("📁 Resolved resources", count=len(resolved))
    return resolved


def _resolve_binaries(settings: BundleSettings) -> tuple[ResolvedFile, ...]:
    ordered = [settings.main_binary] + [b for b in settings.binaries if b is not settings.main_binary]
    binaries = []
    for binary in ordered:
        source = settings.resolve_path(binary.path)
        if not source.is_file():
            raise ResourceNotFound(f"Binary not found: {binary.path}")
        binaries.append(
            ResolvedFile(
                source=source,
                destination=normalize_destination(binary.name),
                mode=DEFAULT_EXECUTABLE_PERMS,
            )
        )
    return tuple(binaries)


def _deb_extra_files(settings: BundleSettings) -> list[ResolvedFile]:
    extras: list[ResolvedFile] = []
    package_name = settings.deb.package_name or settings.package_name

    if settings.license_file is not None:
        license_path = settings.resolve_path(settings.license_file)
        if not license_path.is_file():
            raise ResourceNotFound(f"License file not found: {settings.license_file}")
        extras.append(
            ResolvedFile(
                source=license_path,
                destination=PurePosixPath("usr/share/doc") / package_name / "copyright",
                mode=DEFAULT_FILE_PERMS,
            )
        )

    rules = [ResourceRule(source=src, target=dest.lstrip("/")) for src, dest in settings.deb.files]
    extras.extend(resolve_resources(rules, settings.base_dir))
    return extras


def install_roots(settings: BundleSettings, package_format: PackageFormat) -> tuple[PurePosixPath, PurePosixPath]:
    """Package-root prefixes under which binaries and resources are installed."""
    if package_format in (PackageFormat.APP, PackageFormat.DMG):
        return PurePosixPath("Contents/MacOS"), PurePosixPath("Contents/Resources")
    if package_format in (PackageFormat.MSI, PackageFormat.NSIS):
        return PurePosixPath("."), PurePosixPath(".")
    package_name = settings.package_name
    if package_format is PackageFormat.DEB:
        package_name = settings.deb.package_name or package_name
    return PurePosixPath("usr/bin"), PurePosixPath("usr/lib") / package_name


def check_destinations(resolved: ResolvedBundle, settings: BundleSettings) -> None:
    """Refuse two files that would land on the same path in the finished package.

    Windows and macOS targets compare case-insensitively.

    Raises:
        ResourceConflict: two entries share a final destination
    """
    binary_root, resource_root = install_roots(settings, resolved.format)
    fold_case = resolved.format not in LINUX_FORMATS
    placed: dict[str, tuple[str, str]] = {}
    if resolved.format in LINUX_FORMATS:
        desktop = f"usr/share/applications/{resource_root.name}.desktop"
        placed[desktop] = ("generated", "desktop entry")

    groups = (
        ("binary", binary_root, resolved.binaries),
        ("resource", resource_root, resolved.resources),
        ("file", PurePosixPath("."), resolved.extra_files),
    )
    for kind, root, files in groups:
        for entry in files:
            target = (root / entry.destination).as_posix()
            key = target.casefold() if fold_case else target
            existing = placed.get(key)
            if existing is not None:
                other_kind, other_source = existing
                if other_kind == kind != "binary" and other_source == str(entry.source.resolve()):
                    continue
                raise ResourceConflict(
                    f"{kind.capitalize()} '{entry.source}' and {other_kind} '{other_source}' both install to '{target}'"
                )
            placed[key] = (kind, str(entry.source.resolve()))


def resolve_bundle(settings: BundleSettings, package_format: PackageFormat) -> ResolvedBundle:
    """Materialize the file list for one format."""
    binaries = _resolve_binaries(settings)
    resources = tuple(resolve_resources(settings.resources, settings.base_dir))
    extra_files: tuple[ResolvedFile, ...] = ()
    if package_format is PackageFormat.DEB:
        extra_files = tuple(_deb_extra_files(settings))
    resolved = ResolvedBundle(
        format=package_format,
        binaries=binaries,
        resources=resources,
        extra_files=extra_files,
    )
    check_destinations(resolved, settings)

    logger.debug(
        "📦 Resolved bundle",
        format=package_format.value,
        binaries=len(binaries),
        resources=len(resources),
        extra_files=len(extra_files),
    )
    return resolved


# 🚢📦🔚
