#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Filesystem layout shared by the Linux package formats.

Deb, rpm and pacman install the same tree::

    usr/bin/<binaries>
    usr/lib/<package>/<resources>
    usr/share/applications/<package>.desktop
    usr/share/icons/hicolor/<N>x<N>/apps/<package>.png
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from provide.foundation import logger

from shipwright.config.defaults import DEFAULT_FILE_PERMS
from shipwright.formats.base import BuildContext
from shipwright.formats.common import stage_bytes, stage_files
from shipwright.icons import IconTranscoder
from shipwright.models import ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.templates import get_renderer


def tilde_version(version: str) -> str:
    """Map a semantic version to one that sorts correctly under dpkg and rpm (``-rc.1`` -> ``~rc.1``)."""
    release, plus, build = version.partition("+")
    return release.replace("-", "~", 1) + plus + build.replace("-", ".")


def desktop_entry(
    settings: BundleSettings,
    exec_line: str,
    icon: str,
    extra: Sequence[tuple[str, str]] = (),
) -> str:
    categories = settings.category if settings.category.endswith(";") else f"{settings.category};"
    overrides = dict(extra)
    terminal = overrides.pop("Terminal", None)
    return get_renderer().render(
        "linux/desktop",
        {
            "name": settings.product_name,
            "comment": settings.description,
            "exec": exec_line,
            "icon": icon,
            "categories": categories,
            "terminal": terminal,
            "extra": list(overrides.items()),
        },
    )


def stage_linux_tree(
    resolved: ResolvedBundle,
    settings: BundleSettings,
    ctx: BuildContext,
    root: Path,
    package_name: str,
) -> list[str]:
    """Populate ``root`` with the installed tree; returns collected icon warnings."""
    stage_files(resolved.binaries, root, "usr/bin")
    stage_files(resolved.resources, root, f"usr/lib/{package_name}")
    stage_files(resolved.extra_files, root)

    ctx.check_cancelled("desktop entry")
    stage_bytes(
        desktop_entry(settings, resolved.main_binary.destination.name, package_name).encode("utf-8"),
        root / "usr/share/applications" / f"{package_name}.desktop",
        DEFAULT_FILE_PERMS,
    )

    if not settings.icons:
        return []

    ctx.check_cancelled("icons")
    transcoder = IconTranscoder(settings.resolve_path(p) for p in settings.icons)
    transcoder.to_png_set(root / "usr/share/icons/hicolor", package_name)
    logger.debug("🎨 Staged Linux icons", package=package_name)
    return list(transcoder.warnings)


# 🚢📦🔚
