#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Identifiers and layout shared by the MSI and NSIS installers.

The upgrade code is how Windows recognizes two installers as versions of the
same product. It is derived from the bundle identifier alone and must never
change between releases.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
import uuid

from shipwright.exceptions import UnsupportedPlatform
from shipwright.icons import IconTranscoder
from shipwright.models import ResolvedBundle
from shipwright.settings import BundleSettings

WINDOWS_ARCHITECTURES = {
    "x86_64": "x64",
    "aarch64": "arm64",
    "x86": "x86",
}


def upgrade_code(identifier: str) -> str:
    """Deterministic upgrade code: UUIDv5 of the identifier in the DNS namespace."""
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, identifier)).upper()


def component_guid(identifier: str, destination: str) -> str:
    """Stable component GUID for one installed path."""
    namespace = uuid.UUID(upgrade_code(identifier))
    return str(uuid.uuid5(namespace, destination)).upper()


def msi_version(version: str) -> str:
    """``major.minor.patch[.build]``; a numeric pre-release becomes the fourth field."""
    core, _, rest = version.partition("+")[0].partition("-")
    return f"{core}.{rest}" if rest.isdigit() else core


def vi_version(version: str) -> str:
    """Four-part version for NSIS ``VIProductVersion``."""
    parts = msi_version(version).split(".")
    return ".".join(parts + ["0"] * (4 - len(parts)))


def windows_arch(arch: str) -> str:
    try:
        return WINDOWS_ARCHITECTURES[arch]
    except KeyError:
        raise UnsupportedPlatform(f"Windows installers do not support the {arch} architecture") from None


def installed_files(resolved: ResolvedBundle) -> list[tuple[PurePosixPath, Path]]:
    """(destination, source) pairs relative to the install directory, binaries first."""
    return [(f.destination, f.source) for f in resolved.binaries + resolved.resources]


def write_icon(settings: BundleSettings, output: Path) -> tuple[Path | None, list[str]]:
    if not settings.icons:
        return None, []
    transcoder = IconTranscoder(settings.resolve_path(p) for p in settings.icons)
    transcoder.to_ico(output)
    return output, list(transcoder.warnings)


# 🚢📦🔚
