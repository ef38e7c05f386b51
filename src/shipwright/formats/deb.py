#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Debian package builder.

A ``.deb`` is an ``ar`` archive with exactly three members, in order:
``debian-binary``, ``control.tar.gz`` and ``data.tar.gz``.
"""

from __future__ import annotations

from collections.abc import Iterable
import math
import re

from provide.foundation import logger

from shipwright.config.defaults import DEB_FORMAT_VERSION, DEFAULT_EXECUTABLE_PERMS
from shipwright.exceptions import InvalidDependencyString, ResourceNotFound
from shipwright.formats.ar import write_ar
from shipwright.formats.base import BuildContext
from shipwright.formats.common import DeterministicTar, atomic_output, tree_size, walk_tree
from shipwright.formats.linux import stage_linux_tree, tilde_version
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings, LinuxScripts
from shipwright.signing.checksums import file_hexdigest
from shipwright.templates import get_renderer

DEB_ARCHITECTURES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "x86": "i386",
    "armv7": "armhf",
}

DEB_SCRIPT_NAMES = {
    "pre_install": "preinst",
    "post_install": "postinst",
    "pre_remove": "prerm",
    "post_remove": "postrm",
}

_RELATION = re.compile(
    r"""^
    [a-z0-9][a-z0-9+.-]+                          # package name
    (:[a-z0-9-]+)?                                # architecture qualifier
    (\s*\(\s*(<<|<=|=|>=|>>)\s*[A-Za-z0-9.+~:-]+\s*\))?  # version constraint
    (\s*\[[^\]]+\])?                              # architecture restriction
    $""",
    re.VERBOSE,
)


def deb_arch(arch: str) -> str:
    return DEB_ARCHITECTURES[arch]


def debian_version(version: str) -> str:
    return tilde_version(version)


def validate_dependency(relation: str) -> str:
    """Validate one ``Depends`` entry, including ``a | b`` alternatives."""
    alternatives = [alt.strip() for alt in relation.split("|")]
    for alternative in alternatives:
        if not _RELATION.match(alternative):
            raise InvalidDependencyString(f"Invalid Debian dependency: '{relation}'")
    return " | ".join(alternatives)


def validate_dependencies(relations: Iterable[str]) -> list[str]:
    return [validate_dependency(r) for r in relations]


def _long_description_lines(text: str) -> list[str]:
    lines = []
    for line in text.strip().splitlines():
        lines.append(line.rstrip() if line.strip() else ".")
    return lines


def _control_scripts(scripts: LinuxScripts, settings: BundleSettings) -> list[tuple[str, bytes]]:
    members = []
    for key, path in scripts.items():
        source = settings.resolve_path(path)
        if not source.is_file():
            raise ResourceNotFound(f"Maintainer script not found: {path}")
        members.append((DEB_SCRIPT_NAMES[key], source.read_bytes()))
    return members


def render_control(settings: BundleSettings, installed_size_kib: int) -> str:
    package_name = settings.deb.package_name or settings.package_name
    depends = validate_dependencies(settings.deb.depends)
    return get_renderer().render(
        "deb/control",
        {
            "package": package_name,
            "version": debian_version(settings.version),
            "architecture": deb_arch(settings.target_arch),
            "installed_size": installed_size_kib,
            "maintainer": settings.maintainer,
            "section": settings.deb.section,
            "priority": settings.deb.priority,
            "homepage": settings.homepage,
            "depends": ", ".join(depends),
            "description": settings.description or settings.product_name,
            "long_description_lines": _long_description_lines(settings.long_description),
        },
    )


def build(resolved: ResolvedBundle, settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    """Build ``<package>_<version>_<arch>.deb``."""
    package_name = settings.deb.package_name or settings.package_name
    output = (
        ctx.out_dir / f"{package_name}_{debian_version(settings.version)}_{deb_arch(settings.target_arch)}.deb"
    )

    root = ctx.work_dir / "data"
    warnings = stage_linux_tree(resolved, settings, ctx, root, package_name)
    entries = walk_tree(root)

    ctx.check_cancelled("archive")
    data_tar = DeterministicTar(ctx.source_date_epoch)
    data_tar.add_dir("./")
    data_tar.add_tree(entries, prefix="./")

    md5sums = "".join(
        f"{file_hexdigest(entry.source, 'md5')}  {entry.path.as_posix()}\n" for entry in entries if not entry.is_dir
    )
    control = render_control(settings, math.ceil(tree_size(entries) / 1024))

    control_tar = DeterministicTar(ctx.source_date_epoch)
    control_tar.add_dir("./")
    control_tar.add_bytes("./control", control.encode("utf-8"))
    control_tar.add_bytes("./md5sums", md5sums.encode("utf-8"))
    for name, data in _control_scripts(settings.deb.scripts, settings):
        control_tar.add_bytes(f"./{name}", data, DEFAULT_EXECUTABLE_PERMS)

    archive = write_ar(
        [
            ("debian-binary", DEB_FORMAT_VERSION),
            ("control.tar.gz", control_tar.gzipped()),
            ("data.tar.gz", data_tar.gzipped()),
        ],
        mtime=ctx.source_date_epoch,
    )

    with atomic_output(output) as temp:
        temp.write_bytes(archive)

    logger.info(f"📦 Built Debian package: {output.name}", size=len(archive), files=len(entries))
    return PackageArtifact(path=output, format=PackageFormat.DEB, warnings=tuple(warnings))


# 🚢📦🔚
