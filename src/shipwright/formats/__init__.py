#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Format builders and the registry that maps each ``PackageFormat`` to one."""

from __future__ import annotations

from shipwright.formats import app, appimage, deb, dmg, nsis, pacman, rpm, wix
from shipwright.formats.base import BuildContext, Builder, FormatSpec
from shipwright.models import PackageFormat

FORMATS: dict[PackageFormat, FormatSpec] = {
    spec.format: spec
    for spec in (
        FormatSpec(PackageFormat.DEB, deb.build),
        FormatSpec(PackageFormat.RPM, rpm.build),
        FormatSpec(PackageFormat.PACMAN, pacman.build),
        FormatSpec(PackageFormat.APPIMAGE, appimage.build),
        FormatSpec(PackageFormat.APP, app.build),
        FormatSpec(PackageFormat.DMG, dmg.build, requires=(PackageFormat.APP,)),
        FormatSpec(PackageFormat.MSI, wix.build),
        FormatSpec(PackageFormat.NSIS, nsis.build),
    )
}


__all__ = [
    "FORMATS",
    "BuildContext",
    "Builder",
    "FormatSpec",
]

# 🚢📦🔚
