#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""MSI builder: renders a WiX source and compiles it with ``candle`` and ``light``."""

from __future__ import annotations

import hashlib
from pathlib import Path, PurePosixPath
from typing import Any

from provide.foundation import logger
from provide.foundation.file import safe_move

from shipwright.config.defaults import WIX_LANGUAGE_CODES
from shipwright.formats.base import BuildContext
from shipwright.formats.common import atomic_output
from shipwright.formats.windows import (
    component_guid,
    installed_files,
    msi_version,
    upgrade_code,
    windows_arch,
    write_icon,
)
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.templates import get_renderer
from shipwright.tools import find_tool, run_tool


def _wix_id(prefix: str, key: str) -> str:
    """WiX identifiers: letters, digits, underscores and dots, at most 72 characters."""
    return f"{prefix}_{hashlib.sha1(key.encode('utf-8')).hexdigest()[:20]}"  # noqa: S324


def directory_tree(settings: BundleSettings, files: list[tuple[PurePosixPath, Path]]) -> dict[str, Any]:
    """Nest installed files by directory for the WiX ``Directory`` elements."""
    root: dict[str, Any] = {"files": [], "children": {}}
    for destination, source in files:
        node = root
        for depth, part in enumerate(destination.parts[:-1], start=1):
            key = "/".join(destination.parts[:depth])
            node = node["children"].setdefault(
                part, {"id": _wix_id("Dir", key), "name": part, "files": [], "children": {}}
            )
        dest = destination.as_posix()
        node["files"].append(
            {
                "component_id": _wix_id("Comp", dest),
                "file_id": _wix_id("File", dest),
                "guid": component_guid(settings.identifier, dest),
                "name": destination.name,
                "source": str(source),
            }
        )
    return root


def _directory_list(node: dict[str, Any]) -> list[dict[str, Any]]:
    return [{**child, "children": _directory_list(child)} for _, child in sorted(node["children"].items())]


def _install_root(arch: str, per_machine: bool) -> str:
    if not per_machine:
        return "LocalAppDataFolder"
    return "ProgramFilesFolder" if arch == "x86" else "ProgramFiles64Folder"


def render_wxs(settings: BundleSettings, resolved: ResolvedBundle, icon_path: Path | None) -> str:
    files = installed_files(resolved)
    tree = directory_tree(settings, files)
    arch = windows_arch(settings.target_arch)
    per_machine = settings.windows.install_mode == "perMachine"
    context = {
        "product_name": settings.product_name,
        "version": msi_version(settings.version),
        "manufacturer": settings.resolved_publisher,
        "upgrade_code": upgrade_code(settings.identifier),
        "language": WIX_LANGUAGE_CODES[settings.windows.language],
        "binaries": [b.destination.as_posix() for b in resolved.binaries],
        "main_binary": resolved.main_binary.destination.as_posix(),
        "description": settings.description or settings.product_name,
        "install_scope": settings.windows.install_mode,
        "allow_downgrades": settings.windows.allow_downgrades,
        "icon_path": str(icon_path) if icon_path else None,
        "homepage": settings.homepage,
        "program_files_folder": _install_root(arch, per_machine),
        "win64": "no" if arch == "x86" else "yes",
        "root_files": tree["files"],
        "directories": _directory_list(tree),
        "shortcut_guid": component_guid(settings.identifier, "__shortcut__"),
        "component_ids": [_wix_id("Comp", dest.as_posix()) for dest, _ in files],
    }
    return get_renderer().render("wix/main.wxs", context, override=_override(settings))


def _override(settings: BundleSettings) -> Path | None:
    template = settings.windows.wix_template
    return settings.resolve_path(template) if template is not None else None


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<Product>_<version>_<arch>_<language>.msi``."""
    arch = windows_arch(settings.target_arch)
    search_dirs = []
    if settings.windows.wix_toolset_path is not None:
        search_dirs.append(settings.resolve_path(settings.windows.wix_toolset_path))
    candle = find_tool("candle", search_dirs)
    light = find_tool("light", search_dirs)
    output = ctx.out_dir / f"{settings.product_name}_{settings.version}_{arch}_{settings.windows.language}.msi"

    ctx.check_cancelled("icons")
    icon_path, warnings = write_icon(settings, ctx.work_dir / "icon.ico")

    ctx.check_cancelled("wxs")
    wxs = ctx.work_dir / "main.wxs"
    wxs.write_text(render_wxs(settings, resolved, icon_path), encoding="utf-8")

    wixobj = ctx.work_dir / "main.wixobj"
    msi = ctx.work_dir / "installer.msi"
    ctx.check_cancelled("candle")
    run_tool([candle, "-nologo", "-arch", arch, "-out", wixobj, wxs], timeout=ctx.tool_timeout, cwd=ctx.work_dir)
    ctx.check_cancelled("light")
    run_tool(
        [light, "-nologo", f"-cultures:{settings.windows.language.lower()}", "-out", msi, wixobj],
        timeout=ctx.tool_timeout,
        cwd=ctx.work_dir,
    )

    with atomic_output(output) as temp:
        safe_move(msi, temp)

    logger.info(f"📦 Built MSI installer: {output.name}", upgrade_code=upgrade_code(settings.identifier))
    return PackageArtifact(path=output, format=PackageFormat.MSI, warnings=tuple(warnings))


# 🚢📦🔚
