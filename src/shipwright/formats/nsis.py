#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""NSIS installer builder: renders ``installer.nsi`` and compiles it with ``makensis``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from provide.foundation import logger
from provide.foundation.file import safe_move

from shipwright.formats.base import BuildContext
from shipwright.formats.common import atomic_output
from shipwright.formats.windows import installed_files, upgrade_code, vi_version, windows_arch, write_icon
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.templates import get_renderer
from shipwright.tools import find_tool, run_tool


def _windows_dir(parts: tuple[str, ...]) -> str:
    return "".join(f"\\{part}" for part in parts)


def render_nsi(settings: BundleSettings, resolved: ResolvedBundle, icon_path: Path | None, out_file: Path) -> str:
    files: list[dict[str, Any]] = []
    directories: set[tuple[str, ...]] = set()
    for destination, source in installed_files(resolved):
        parents = destination.parts[:-1]
        for depth in range(1, len(parents) + 1):
            directories.add(parents[:depth])
        files.append({"directory": _windows_dir(parents), "name": destination.name, "source": str(source)})

    per_machine = settings.windows.install_mode == "perMachine"
    arch = windows_arch(settings.target_arch)
    if per_machine:
        install_root = "$PROGRAMFILES" if arch == "x86" else "$PROGRAMFILES64"
    else:
        install_root = "$LOCALAPPDATA\\Programs"

    context = {
        "product_name": settings.product_name,
        "version": settings.version,
        "manufacturer": settings.resolved_publisher,
        "identifier": settings.identifier,
        "upgrade_code": upgrade_code(settings.identifier),
        "main_binary": resolved.main_binary.destination.as_posix(),
        "binaries": [b.destination.as_posix() for b in resolved.binaries],
        "out_file": str(out_file),
        "install_root": install_root,
        "execution_level": "admin" if per_machine else "user",
        "shell_context": "all" if per_machine else "current",
        "icon_path": str(icon_path) if icon_path else None,
        "vi_version": vi_version(settings.version),
        "description": settings.description or settings.product_name,
        "copyright": settings.copyright,
        "homepage": settings.homepage,
        "files": files,
        # Deepest first so every RMDir runs on an already emptied directory.
        "directories": [_windows_dir(d) for d in sorted(directories, key=lambda d: (-len(d), d))],
    }
    template = settings.windows.nsis_template
    override = settings.resolve_path(template) if template is not None else None
    return get_renderer().render("nsis/installer.nsi", context, override=override)


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<Product>_<version>_<arch>-setup.exe``."""
    arch = windows_arch(settings.target_arch)
    makensis = find_tool(settings.windows.makensis)
    output = ctx.out_dir / f"{settings.product_name}_{settings.version}_{arch}-setup.exe"

    ctx.check_cancelled("icons")
    icon_path, warnings = write_icon(settings, ctx.work_dir / "icon.ico")

    ctx.check_cancelled("nsi")
    installer = ctx.work_dir / "installer.exe"
    script = ctx.work_dir / "installer.nsi"
    script.write_text(render_nsi(settings, resolved, icon_path, installer), encoding="utf-8")

    ctx.check_cancelled("makensis")
    run_tool([makensis, "-V2", "-INPUTCHARSET", "UTF8", script], timeout=ctx.tool_timeout, cwd=ctx.work_dir)

    with atomic_output(output) as temp:
        safe_move(installer, temp)

    logger.info(f"📦 Built NSIS installer: {output.name}")
    return PackageArtifact(path=output, format=PackageFormat.NSIS, warnings=tuple(warnings))


# 🚢📦🔚
