#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Core value types shared by the resolver, the builders and the signing engine."""

from __future__ import annotations

import enum
from pathlib import Path, PurePosixPath

from attrs import define, evolve, field


class PackageFormat(enum.Enum):
    """Closed set of output formats."""

    DEB = "deb"
    RPM = "rpm"
    PACMAN = "pacman"
    APPIMAGE = "appimage"
    APP = "app"
    DMG = "dmg"
    MSI = "msi"
    NSIS = "nsis"

    @classmethod
    def parse(cls, value: str | PackageFormat) -> PackageFormat:
        if isinstance(value, PackageFormat):
            return value
        normalized = str(value).strip().lower()
        aliases = {"wix": "msi", "appbundle": "app", "pkg": "pacman"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown package format '{value}' (expected one of: {valid})") from None

    @property
    def platform(self) -> str:
        """Operating system a package of this format installs on."""
        if self in (PackageFormat.APP, PackageFormat.DMG):
            return "darwin"
        if self in (PackageFormat.MSI, PackageFormat.NSIS):
            return "windows"
        return "linux"

    def __str__(self) -> str:
        return self.value


@define(frozen=True)
class ResolvedFile:
    """One concrete file of a package: where it comes from and where it goes."""

    source: Path
    destination: PurePosixPath
    mode: int = 0o644

    @property
    def is_executable(self) -> bool:
        return bool(self.mode & 0o111)


@define(frozen=True)
class ResolvedBundle:
    """Materialized file list for one target format.

    ``binaries`` and ``resources`` carry destinations relative to the
    format's own roots (e.g. ``usr/bin`` and ``usr/lib/<name>`` for deb);
    ``extra_files`` carry destinations relative to the package root.
    """

    format: PackageFormat
    binaries: tuple[ResolvedFile, ...]
    resources: tuple[ResolvedFile, ...] = ()
    extra_files: tuple[ResolvedFile, ...] = ()

    @property
    def main_binary(self) -> ResolvedFile:
        return self.binaries[0]

    def all_files(self) -> tuple[ResolvedFile, ...]:
        return self.binaries + self.resources + self.extra_files


@define(frozen=True)
class PackageArtifact:
    """A produced package file and its integrity data."""

    path: Path
    format: PackageFormat
    sha256: str = ""
    sha1: str = ""
    signature_path: Path | None = None
    update_archive: Path | None = None
    warnings: tuple[str, ...] = field(factory=tuple)

    @property
    def payload_path(self) -> Path:
        """The file whose bytes are digested and signed."""
        return self.update_archive or self.path

    def with_digests(self, sha256: str, sha1: str) -> PackageArtifact:
        return evolve(self, sha256=sha256, sha1=sha1)

    def with_signature(self, signature_path: Path) -> PackageArtifact:
        return evolve(self, signature_path=signature_path)

    def output_paths(self) -> list[Path]:
        """Every path this artifact placed in the output directory."""
        paths = [self.path]
        if self.update_archive:
            paths.append(self.update_archive)
        if self.signature_path:
            paths.append(self.signature_path)
        return paths


# 🚢📦🔚
