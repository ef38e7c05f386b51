#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Arch Linux package builder (``.pkg.tar.gz``)."""

from __future__ import annotations

from pathlib import PurePosixPath
import string

from provide.foundation import logger

from shipwright.exceptions import ResourceNotFound
from shipwright.formats.base import BuildContext
from shipwright.formats.common import DeterministicTar, TreeEntry, atomic_output, gzip_bytes, tree_size, walk_tree
from shipwright.formats.linux import stage_linux_tree
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings
from shipwright.signing.checksums import file_hexdigest
from shipwright.templates import get_renderer

PACMAN_ARCHITECTURES = {
    "x86_64": "x86_64",
    "aarch64": "aarch64",
    "x86": "i686",
    "armv7": "armv7h",
}

_MTREE_SAFE = frozenset(string.ascii_letters + string.digits + "._-+/@:,=~")


def pacman_arch(arch: str) -> str:
    return PACMAN_ARCHITECTURES[arch]


def pacman_version(version: str) -> str:
    """pkgver may not contain hyphens."""
    return version.replace("-", "_")


def _mtree_escape(name: str) -> str:
    return "".join(c if c in _MTREE_SAFE else "".join(f"\\{b:03o}" for b in c.encode("utf-8")) for c in name)


def render_mtree(entries: list[TreeEntry], mtime: int) -> bytes:
    """The gzipped ``.MTREE`` describing every metadata and payload entry."""
    lines = ["#mtree", "/set type=file uid=0 gid=0 mode=644"]
    for entry in entries:
        name = "./" + _mtree_escape(entry.path.as_posix())
        if entry.is_dir:
            lines.append(f"{name} time={mtime}.0 mode={entry.mode:o} type=dir")
            continue
        mode = f" mode={entry.mode:o}" if entry.mode != 0o644 else ""
        lines.append(
            f"{name} time={mtime}.0{mode} size={entry.size} "
            f"md5digest={file_hexdigest(entry.source, 'md5')} "
            f"sha256digest={file_hexdigest(entry.source, 'sha256')}"
        )
    return gzip_bytes(("\n".join(lines) + "\n").encode("utf-8"))


def render_pkginfo(settings: BundleSettings, installed_size: int, builddate: int) -> str:
    pacman = settings.pacman
    return get_renderer().render(
        "pacman/PKGINFO",
        {
            "pkgname": settings.package_name,
            "pkgver": f"{pacman_version(settings.version)}-{pacman.release}",
            "pkgdesc": settings.description or settings.product_name,
            "url": settings.homepage,
            "builddate": builddate,
            "packager": settings.maintainer,
            "size": installed_size,
            "arch": pacman_arch(settings.target_arch),
            "licenses": [],
            "replaces": pacman.replaces,
            "conflicts": pacman.conflicts,
            "provides": pacman.provides,
            "backup": pacman.backup,
            "depends": pacman.depends,
        },
    )


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<name>-<pkgver>-<pkgrel>-<arch>.pkg.tar.gz``."""
    name = settings.package_name
    output = ctx.out_dir / (
        f"{name}-{pacman_version(settings.version)}-{settings.pacman.release}"
        f"-{pacman_arch(settings.target_arch)}.pkg.tar.gz"
    )

    install_script = None
    if settings.pacman.install_script is not None:
        install_script = settings.resolve_path(settings.pacman.install_script)
        if not install_script.is_file():
            raise ResourceNotFound(f"Install script not found: {settings.pacman.install_script}")

    root = ctx.work_dir / "pkg"
    warnings = stage_linux_tree(resolved, settings, ctx, root, name)
    payload = walk_tree(root)

    ctx.check_cancelled("archive")
    pkginfo_path = ctx.work_dir / ".PKGINFO"
    pkginfo_path.write_text(render_pkginfo(settings, tree_size(payload), ctx.source_date_epoch), encoding="utf-8")
    metadata = [TreeEntry(PurePosixPath(".PKGINFO"), pkginfo_path, False, 0o644, pkginfo_path.stat().st_size)]
    if install_script is not None:
        metadata.append(
            TreeEntry(PurePosixPath(".INSTALL"), install_script, False, 0o644, install_script.stat().st_size)
        )

    tar = DeterministicTar(ctx.source_date_epoch)
    for entry in metadata:
        tar.add_file(entry.path.as_posix(), entry.source, entry.mode)
    tar.add_bytes(".MTREE", render_mtree(metadata + payload, ctx.source_date_epoch))
    tar.add_tree(payload)

    with atomic_output(output) as temp:
        temp.write_bytes(tar.gzipped())

    logger.info(f"📦 Built pacman package: {output.name}", files=len(payload))
    return PackageArtifact(path=output, format=PackageFormat.PACMAN, warnings=tuple(warnings))


# 🚢📦🔚
