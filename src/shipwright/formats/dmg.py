#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""macOS disk image builder.

Consumes the finished app bundle. ``hdiutil`` only exists on macOS, so on
any other host this format fails with ``UnsupportedPlatform``.
"""

from __future__ import annotations

from pathlib import Path
import sys

from provide.foundation import logger
from provide.foundation.file import safe_copy, safe_move
from provide.foundation.file.directory import ensure_dir

from shipwright.exceptions import ExternalToolError, ResourceNotFound, ToolNotFound, UnsupportedPlatform
from shipwright.formats.base import BuildContext
from shipwright.formats.common import atomic_output, copy_tree
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.templates import get_renderer
from shipwright.tools import find_tool, run_tool

DMG_ARCHITECTURES = {
    "x86_64": "x64",
    "aarch64": "aarch64",
    "x86": "x86",
    "armv7": "armv7",
}


def find_hdiutil() -> Path:
    if sys.platform != "darwin":
        raise UnsupportedPlatform(f"Disk images can only be built on macOS (host: {sys.platform})")
    try:
        return find_tool("hdiutil")
    except ToolNotFound as e:
        raise UnsupportedPlatform("hdiutil is not available on this host") from e


def stage_volume(app_bundle: Path, settings: BundleSettings, root: Path) -> str | None:
    """Copy the bundle, link /Applications and place the background. Returns the background file name."""
    copy_tree(app_bundle, root / app_bundle.name)
    (root / "Applications").symlink_to("/Applications")

    background = settings.macos.dmg.background
    if background is None:
        return None
    source = settings.resolve_path(background)
    if not source.is_file():
        raise ResourceNotFound(f"DMG background not found: {background}")
    ensure_dir(root / ".background")
    safe_copy(source, root / ".background" / source.name, preserve_mode=False, overwrite=True)
    return source.name


def apply_layout(
    settings: BundleSettings, app_name: str, background: str | None, work_dir: Path, timeout: float
) -> None:
    dmg = settings.macos.dmg
    script = get_renderer().render(
        "dmg/layout.applescript",
        {
            "volume_name": settings.product_name,
            "app_name": app_name,
            "window_size": dmg.window_size,
            "app_position": dmg.app_position,
            "applications_position": dmg.applications_position,
            "background": background,
        },
    )
    script_path = work_dir / "layout.applescript"
    script_path.write_text(script, encoding="utf-8")
    run_tool([find_tool("osascript"), script_path], timeout=timeout)


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<Product>_<version>_<arch>.dmg`` from the app bundle."""
    hdiutil = find_hdiutil()
    app = ctx.dependency(PackageFormat.APP)
    arch = DMG_ARCHITECTURES[settings.target_arch]
    output = ctx.out_dir / f"{settings.product_name}_{settings.version}_{arch}.dmg"

    volume_root = ctx.work_dir / "volume"
    ensure_dir(volume_root)
    background = stage_volume(app.path, settings, volume_root)

    rw_image = ctx.work_dir / "rw.dmg"
    final_image = ctx.work_dir / "final.dmg"
    mount_point = ctx.work_dir / "mnt"
    warnings: list[str] = []

    ctx.check_cancelled("hdiutil create")
    create = [hdiutil, "create", "-srcfolder", volume_root, "-volname", settings.product_name]
    run_tool([*create, "-fs", "HFS+", "-format", "UDRW", "-ov", rw_image], timeout=ctx.tool_timeout)

    ctx.check_cancelled("layout")
    attach = [hdiutil, "attach", "-readwrite", "-noverify", "-noautoopen", "-nobrowse"]
    run_tool([*attach, "-mountpoint", mount_point, rw_image], timeout=ctx.tool_timeout)
    try:
        apply_layout(settings, app.path.name, background, ctx.work_dir, ctx.tool_timeout)
    except ExternalToolError as e:
        message = f"Finder layout could not be applied: {e}"
        logger.warning(f"⚠️ {message}")
        warnings.append(message)
    finally:
        try:
            run_tool([hdiutil, "detach", mount_point, "-force"], timeout=ctx.tool_timeout)
        except ExternalToolError as e:
            logger.warning(f"⚠️ Could not detach {mount_point}: {e}")

    ctx.check_cancelled("hdiutil convert")
    run_tool(
        [hdiutil, "convert", rw_image, "-format", "UDZO", "-imagekey", "zlib-level=9", "-o", final_image],
        timeout=ctx.tool_timeout,
    )

    with atomic_output(output) as temp:
        safe_move(final_image, temp)

    logger.info(f"📦 Built disk image: {output.name}")
    return PackageArtifact(path=output, format=PackageFormat.DMG, warnings=tuple(warnings))


# 🚢📦🔚
