#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""AppImage builder.

An AppImage is the runtime stub followed directly by a squashfs image of the
AppDir. ``mksquashfs`` gets fixed timestamps and a sort file so the same
inputs always give the same image.
"""

from __future__ import annotations

import os
from pathlib import Path

from provide.foundation import logger
from provide.foundation.file import safe_copy

from shipwright.config.defaults import DEFAULT_EXECUTABLE_PERMS
from shipwright.exceptions import ExternalToolError, ResourceError, ResourceNotFound
from shipwright.formats.base import BuildContext
from shipwright.formats.common import atomic_output, stage_bytes, walk_tree
from shipwright.formats.linux import desktop_entry, stage_linux_tree
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.templates import get_renderer
from shipwright.tools import find_tool, run_tool

APPIMAGE_ARCHITECTURES = {
    "x86_64": "x86_64",
    "aarch64": "aarch64",
    "x86": "i686",
    "armv7": "armhf",
}

APPDIR_ICON_SIZE = 256


def appimage_arch(arch: str) -> str:
    return APPIMAGE_ARCHITECTURES[arch]


def _runtime(settings: BundleSettings, ctx: BuildContext) -> Path:
    """The runtime stub from ``appimage.runtime``, else from ``SHIPWRIGHT_APPIMAGE_RUNTIME``."""
    if settings.appimage.runtime is not None:
        runtime = settings.resolve_path(settings.appimage.runtime)
    elif ctx.appimage_runtime is not None:
        runtime = ctx.appimage_runtime
    else:
        raise ResourceError(
            "An AppImage runtime stub is required (appimage.runtime or SHIPWRIGHT_APPIMAGE_RUNTIME)"
        )
    if not runtime.is_file():
        raise ResourceNotFound(f"AppImage runtime not found: {runtime}")
    logger.debug("🧩 Using AppImage runtime", path=str(runtime))
    return runtime


def stage_appdir(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext, appdir: Path) -> list[str]:
    """Lay out ``AppRun``, the desktop entry, the icon and ``usr/``."""
    name = settings.package_name
    warnings = stage_linux_tree(resolved, settings, ctx, appdir, name)

    main = resolved.main_binary.destination.as_posix()
    apprun = get_renderer().render(
        "appimage/AppRun",
        {"exe_path": f"usr/bin/{main}", "product_name": settings.product_name},
    )
    stage_bytes(apprun.encode("utf-8"), appdir / "AppRun", DEFAULT_EXECUTABLE_PERMS)

    entry = desktop_entry(settings, resolved.main_binary.destination.name, name, settings.appimage.desktop_entry)
    stage_bytes(entry.encode("utf-8"), appdir / f"{name}.desktop")

    icon = appdir / "usr/share/icons/hicolor" / f"{APPDIR_ICON_SIZE}x{APPDIR_ICON_SIZE}" / "apps" / f"{name}.png"
    if icon.is_file():
        safe_copy(icon, appdir / f"{name}.png", preserve_mode=False, overwrite=True)
        safe_copy(icon, appdir / ".DirIcon", preserve_mode=False, overwrite=True)
    else:
        logger.warning("⚠️ No icon configured; the AppImage will have no .DirIcon")
    return warnings


def write_sort_file(appdir: Path, sort_file: Path) -> None:
    """Give every entry a distinct priority in walk order (higher is placed first)."""
    entries = [e for e in walk_tree(appdir) if not e.is_dir]
    lines = [f"{entry.path.as_posix()} {len(entries) - i}" for i, entry in enumerate(entries)]
    sort_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<name>_<version>_<arch>.AppImage``."""
    runtime = _runtime(settings, ctx)
    mksquashfs = find_tool(settings.appimage.mksquashfs)
    name = settings.package_name
    output = ctx.out_dir / f"{name}_{settings.version}_{appimage_arch(settings.target_arch)}.AppImage"

    appdir = ctx.work_dir / f"{name}.AppDir"
    warnings = stage_appdir(resolved, settings, ctx, appdir)

    sort_file = ctx.work_dir / "squashfs.sort"
    write_sort_file(appdir, sort_file)
    squashfs = ctx.work_dir / f"{name}.squashfs"
    epoch = str(ctx.source_date_epoch)

    ctx.check_cancelled("mksquashfs")
    run_tool(
        [
            mksquashfs,
            appdir,
            squashfs,
            "-root-owned",
            "-noappend",
            "-mkfs-time",
            epoch,
            "-all-time",
            epoch,
            "-sort",
            sort_file,
        ],
        timeout=ctx.tool_timeout,
        env={**os.environ, "SOURCE_DATE_EPOCH": epoch},
    )
    if not squashfs.is_file():
        raise ExternalToolError(f"mksquashfs did not produce {squashfs}")

    ctx.check_cancelled("publish")
    with atomic_output(output) as temp:
        with temp.open("wb") as f:
            f.write(runtime.read_bytes())
            f.write(squashfs.read_bytes())
        temp.chmod(DEFAULT_EXECUTABLE_PERMS)

    logger.info(f"📦 Built AppImage: {output.name}", size=output.stat().st_size)
    return PackageArtifact(path=output, format=PackageFormat.APPIMAGE, warnings=tuple(warnings))


# 🚢📦🔚
