#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""macOS application bundle builder.

Produces ``<Product>.app`` and a deterministic ``<Product>.app.tar.gz``
beside it. The bundle is a directory, so the tarball is the file that is
digested, signed and referenced from the update manifest.
"""

from __future__ import annotations

from pathlib import Path
import plistlib
from typing import Any

from provide.foundation import logger
from provide.foundation.file import safe_move

from shipwright.exceptions import ResourceError, ResourceNotFound
from shipwright.formats.base import BuildContext
from shipwright.formats.common import DeterministicTar, atomic_output, stage_bytes, stage_files, walk_tree
from shipwright.icons import IconTranscoder
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.tools import find_tool, run_tool

PKGINFO = b"APPL????"


def _load_plist(path: Path, what: str) -> dict[str, Any]:
    if not path.is_file():
        raise ResourceNotFound(f"{what} not found: {path}")
    try:
        with path.open("rb") as f:
            data = plistlib.load(f)
    except (plistlib.InvalidFileException, ValueError) as e:
        raise ResourceError(f"{what} is not a valid property list: {path}") from e
    if not isinstance(data, dict):
        raise ResourceError(f"{what} must contain a dictionary: {path}")
    return data


def info_plist(settings: BundleSettings, icon_file: str | None) -> dict[str, Any]:
    """Typed Info.plist contents; a user plist is merged over the defaults."""
    plist: dict[str, Any] = {
        "CFBundleDevelopmentRegion": "English",
        "CFBundleDisplayName": settings.product_name,
        "CFBundleExecutable": settings.main_binary_name,
        "CFBundleIdentifier": settings.identifier,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": settings.product_name,
        "CFBundlePackageType": "APPL",
        "CFBundleShortVersionString": str(settings.semver.finalize_version()),
        "CFBundleVersion": settings.version,
        "CSResourcesFileMapped": True,
        "LSMinimumSystemVersion": settings.macos.minimum_system_version,
        "LSRequiresCarbon": True,
        "NSHighResolutionCapable": True,
    }
    if icon_file:
        plist["CFBundleIconFile"] = icon_file
    if settings.copyright:
        plist["NSHumanReadableCopyright"] = settings.copyright
    if settings.macos.info_plist is not None:
        plist.update(_load_plist(settings.resolve_path(settings.macos.info_plist), "Info.plist"))
    return plist


def stage_bundle(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext, bundle: Path) -> list[str]:
    contents = bundle / "Contents"
    stage_files(resolved.binaries, contents / "MacOS")
    stage_files(resolved.resources, contents / "Resources")

    warnings: list[str] = []
    icon_file = None
    if settings.icons:
        ctx.check_cancelled("icons")
        transcoder = IconTranscoder(settings.resolve_path(p) for p in settings.icons)
        icon_file = f"{settings.product_name}.icns"
        transcoder.to_icns(contents / "Resources" / icon_file)
        warnings.extend(transcoder.warnings)

    stage_bytes(plistlib.dumps(info_plist(settings, icon_file), sort_keys=True), contents / "Info.plist")
    stage_bytes(PKGINFO, contents / "PkgInfo")
    return warnings


def codesign(bundle: Path, entitlements: Path, timeout: float) -> None:
    """Ad-hoc sign the bundle so the entitlements take effect."""
    tool = find_tool("codesign")
    run_tool(
        [tool, "--force", "--options", "runtime", "--entitlements", entitlements, "--sign", "-", bundle],
        timeout=timeout,
    )


def update_archive_bytes(bundle: Path, bundle_name: str, mtime: int) -> bytes:
    tar = DeterministicTar(mtime)
    tar.add_dir(bundle_name)
    tar.add_tree(walk_tree(bundle), prefix=f"{bundle_name}/")
    return tar.gzipped()


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<Product>.app`` and its update archive."""
    bundle_name = f"{settings.product_name}.app"
    output = ctx.out_dir / bundle_name
    archive = ctx.out_dir / f"{bundle_name}.tar.gz"

    entitlements = None
    if settings.macos.entitlements is not None:
        entitlements = settings.resolve_path(settings.macos.entitlements)
        _load_plist(entitlements, "Entitlements")

    staged = ctx.work_dir / bundle_name
    warnings = stage_bundle(resolved, settings, ctx, staged)
    if entitlements is not None:
        ctx.check_cancelled("codesign")
        codesign(staged, entitlements, ctx.tool_timeout)

    ctx.check_cancelled("publish")
    archive_data = update_archive_bytes(staged, bundle_name, ctx.source_date_epoch)
    with atomic_output(archive) as temp:
        temp.write_bytes(archive_data)
    try:
        with atomic_output(output) as temp:
            safe_move(staged, temp)
    except BaseException:
        archive.unlink(missing_ok=True)
        raise

    logger.info(f"📦 Built app bundle: {bundle_name}", update_archive=archive.name)
    return PackageArtifact(
        path=output,
        format=PackageFormat.APP,
        update_archive=archive,
        warnings=tuple(warnings),
    )


# 🚢📦🔚
