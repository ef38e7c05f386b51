#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Immutable build plan consumed by every builder.

A ``BundleSettings`` instance is validated once, at construction. Anything
that is wrong with it is a ``ConfigError`` and stops the invocation before
a single builder runs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
import re
import string
import tomllib
from typing import Any

from attrs import define, field
from provide.foundation.file.formats import read_json
from provide.foundation.platform import get_arch_name
import semver

from shipwright.config.defaults import (
    DEFAULT_DEB_PRIORITY,
    DEFAULT_DEB_SECTION,
    DEFAULT_DMG_APP_POSITION,
    DEFAULT_DMG_APPLICATIONS_POSITION,
    DEFAULT_DMG_WINDOW_SIZE,
    DEFAULT_LINUX_CATEGORY,
    DEFAULT_MINIMUM_SYSTEM_VERSION,
    DEFAULT_PACMAN_RELEASE,
    DEFAULT_RPM_RELEASE,
    DEFAULT_WIX_LANGUAGE,
    WIX_LANGUAGE_CODES,
)
from shipwright.exceptions import ConfigError
from shipwright.models import PackageFormat

WINDOWS_INSTALL_MODES = frozenset({"perMachine", "perUser"})
URL_PLACEHOLDERS = frozenset({"version", "filename", "platform", "arch", "format"})

REVERSE_DOMAIN_RE = re.compile(r"^[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+$")

# Formats whose platform refuses identifiers that are not reverse-domain names.
REVERSE_DOMAIN_FORMATS = frozenset(
    {PackageFormat.APP, PackageFormat.DMG, PackageFormat.MSI, PackageFormat.NSIS}
)

ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "x86": "x86",
    "i386": "x86",
    "i686": "x86",
    "386": "x86",
    "armv7": "armv7",
    "arm": "armv7",
    "armhf": "armv7",
}


def normalize_arch(value: str) -> str:
    """Map any common architecture spelling to ``x86_64``/``aarch64``/``x86``/``armv7``."""
    normalized = ARCH_ALIASES.get(value.strip().lower())
    if normalized is None:
        raise ConfigError(f"Unsupported target architecture: {value}")
    return normalized


def host_arch() -> str:
    return normalize_arch(get_arch_name())


def _as_tuple(value: Iterable[Any] | None) -> tuple[Any, ...]:
    return tuple(value) if value else ()


def _as_pairs(value: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> tuple[tuple[str, str], ...]:
    if not value:
        return ()
    items = value.items() if isinstance(value, Mapping) else value
    return tuple((str(k), str(v)) for k, v in items)


def _opt_path(value: str | Path | None) -> Path | None:
    return Path(value) if value else None


def _as_formats(value: Iterable[str | PackageFormat]) -> frozenset[PackageFormat]:
    try:
        return frozenset(PackageFormat.parse(f) for f in value)
    except ValueError as e:
        raise ConfigError(str(e)) from e


@define(frozen=True)
class Binary:
    """A compiled executable to ship."""

    path: Path = field(converter=Path)
    main: bool = False

    @property
    def name(self) -> str:
        return self.path.name


@define(frozen=True)
class ResourceRule:
    """A file, directory or glob pattern, and where its matches go."""

    source: str
    target: str | None = None


@define(frozen=True, repr=False)
class SigningConfig:
    """Minisign signing configuration."""

    private_key: str
    password: str | None = None

    def __repr__(self) -> str:
        return "SigningConfig(private_key=<redacted>)"


@define(frozen=True)
class UpdateManifestConfig:
    """Where the update manifest lives and how download URLs are formed.

    ``url`` is a template; ``{version}``, ``{filename}``, ``{platform}``,
    ``{arch}`` and ``{format}`` are substituted per artifact.
    """

    path: Path = field(converter=Path)
    url: str = "{filename}"
    notes: str = ""

    def __attrs_post_init__(self) -> None:
        try:
            names = {name for _, name, _, _ in string.Formatter().parse(self.url) if name is not None}
        except ValueError as e:
            raise ConfigError(f"Invalid update URL template '{self.url}': {e}") from e
        unknown = names - URL_PLACEHOLDERS
        if unknown:
            raise ConfigError(f"Unknown placeholders in update URL template: {sorted(unknown)}")


@define(frozen=True)
class LinuxScripts:
    """Maintainer scripts run by the package manager."""

    pre_install: Path | None = field(default=None, converter=_opt_path)
    post_install: Path | None = field(default=None, converter=_opt_path)
    pre_remove: Path | None = field(default=None, converter=_opt_path)
    post_remove: Path | None = field(default=None, converter=_opt_path)

    def items(self) -> list[tuple[str, Path]]:
        pairs = [
            ("pre_install", self.pre_install),
            ("post_install", self.post_install),
            ("pre_remove", self.pre_remove),
            ("post_remove", self.post_remove),
        ]
        return [(name, path) for name, path in pairs if path is not None]


@define(frozen=True)
class DebianConfig:
    package_name: str | None = None
    depends: tuple[str, ...] = field(default=(), converter=_as_tuple)
    section: str = DEFAULT_DEB_SECTION
    priority: str = DEFAULT_DEB_PRIORITY
    files: tuple[tuple[str, str], ...] = field(default=(), converter=_as_pairs)
    scripts: LinuxScripts = field(factory=LinuxScripts)


@define(frozen=True)
class RpmConfig:
    release: str = DEFAULT_RPM_RELEASE
    epoch: int | None = None
    depends: tuple[str, ...] = field(default=(), converter=_as_tuple)
    provides: tuple[str, ...] = field(default=(), converter=_as_tuple)
    conflicts: tuple[str, ...] = field(default=(), converter=_as_tuple)
    obsoletes: tuple[str, ...] = field(default=(), converter=_as_tuple)
    scripts: LinuxScripts = field(factory=LinuxScripts)


@define(frozen=True)
class PacmanConfig:
    release: str = DEFAULT_PACMAN_RELEASE
    depends: tuple[str, ...] = field(default=(), converter=_as_tuple)
    provides: tuple[str, ...] = field(default=(), converter=_as_tuple)
    conflicts: tuple[str, ...] = field(default=(), converter=_as_tuple)
    replaces: tuple[str, ...] = field(default=(), converter=_as_tuple)
    backup: tuple[str, ...] = field(default=(), converter=_as_tuple)
    install_script: Path | None = field(default=None, converter=_opt_path)


@define(frozen=True)
class WindowsConfig:
    allow_downgrades: bool = True
    language: str = DEFAULT_WIX_LANGUAGE
    install_mode: str = "perMachine"
    wix_template: Path | None = field(default=None, converter=_opt_path)
    nsis_template: Path | None = field(default=None, converter=_opt_path)
    wix_toolset_path: Path | None = field(default=None, converter=_opt_path)
    makensis: str = "makensis"


@define(frozen=True)
class DmgConfig:
    background: Path | None = field(default=None, converter=_opt_path)
    window_size: tuple[int, int] = field(default=DEFAULT_DMG_WINDOW_SIZE, converter=tuple)
    app_position: tuple[int, int] = field(default=DEFAULT_DMG_APP_POSITION, converter=tuple)
    applications_position: tuple[int, int] = field(
        default=DEFAULT_DMG_APPLICATIONS_POSITION, converter=tuple
    )


@define(frozen=True)
class MacOsConfig:
    minimum_system_version: str = DEFAULT_MINIMUM_SYSTEM_VERSION
    entitlements: Path | None = field(default=None, converter=_opt_path)
    info_plist: Path | None = field(default=None, converter=_opt_path)
    dmg: DmgConfig = field(factory=DmgConfig)


@define(frozen=True)
class AppImageConfig:
    runtime: Path | None = field(default=None, converter=_opt_path)
    mksquashfs: str = "mksquashfs"
    desktop_entry: tuple[tuple[str, str], ...] = field(default=(), converter=_as_pairs)


@define(frozen=True)
class BundleSettings:
    """Normalized, immutable build plan."""

    product_name: str
    version: str
    identifier: str
    binaries: tuple[Binary, ...] = field(converter=_as_tuple)
    formats: frozenset[PackageFormat] = field(converter=_as_formats)
    out_dir: Path = field(default=Path("dist"), converter=Path)
    base_dir: Path = field(factory=Path.cwd, converter=Path)
    description: str = ""
    long_description: str = ""
    authors: tuple[str, ...] = field(default=(), converter=_as_tuple)
    publisher: str | None = None
    homepage: str | None = None
    license_file: Path | None = field(default=None, converter=_opt_path)
    copyright: str | None = None
    category: str = DEFAULT_LINUX_CATEGORY
    resources: tuple[ResourceRule, ...] = field(default=(), converter=_as_tuple)
    icons: tuple[Path, ...] = field(default=(), converter=lambda v: tuple(Path(p) for p in v or ()))
    target_arch: str = field(factory=host_arch, converter=normalize_arch)
    signing: SigningConfig | None = None
    update_manifest: UpdateManifestConfig | None = None
    deb: DebianConfig = field(factory=DebianConfig)
    rpm: RpmConfig = field(factory=RpmConfig)
    pacman: PacmanConfig = field(factory=PacmanConfig)
    windows: WindowsConfig = field(factory=WindowsConfig)
    macos: MacOsConfig = field(factory=MacOsConfig)
    appimage: AppImageConfig = field(factory=AppImageConfig)

    def __attrs_post_init__(self) -> None:
        if not self.product_name.strip():
            raise ConfigError("Product name must not be empty")
        self._validate_single_line()
        self._validate_identifier()
        self._validate_version()
        self._validate_binaries()
        if not self.formats:
            raise ConfigError("At least one package format must be requested")
        if self.windows.language not in WIX_LANGUAGE_CODES:
            raise ConfigError(f"Unsupported installer language: {self.windows.language}")
        if self.windows.install_mode not in WINDOWS_INSTALL_MODES:
            raise ConfigError(
                f"Windows install mode must be one of {sorted(WINDOWS_INSTALL_MODES)}, got '{self.windows.install_mode}'"
            )

    def _validate_single_line(self) -> None:
        """Values that end up in line-oriented metadata (control, PKGINFO, desktop entries)."""
        values: list[tuple[str, str | None]] = [
            ("product_name", self.product_name),
            ("identifier", self.identifier),
            ("description", self.description),
            ("publisher", self.publisher),
            ("homepage", self.homepage),
            ("copyright", self.copyright),
            ("category", self.category),
            ("deb.package_name", self.deb.package_name),
            ("deb.section", self.deb.section),
            ("deb.priority", self.deb.priority),
            ("rpm.release", self.rpm.release),
            ("pacman.release", self.pacman.release),
        ]
        values += [("authors", author) for author in self.authors]
        lists = {
            "deb.depends": self.deb.depends,
            "rpm.depends": self.rpm.depends,
            "rpm.provides": self.rpm.provides,
            "rpm.conflicts": self.rpm.conflicts,
            "rpm.obsoletes": self.rpm.obsoletes,
            "pacman.depends": self.pacman.depends,
            "pacman.provides": self.pacman.provides,
            "pacman.conflicts": self.pacman.conflicts,
            "pacman.replaces": self.pacman.replaces,
            "pacman.backup": self.pacman.backup,
        }
        for name, items in lists.items():
            values += [(name, item) for item in items]
        values += [("appimage.desktop_entry", f"{key}={value}") for key, value in self.appimage.desktop_entry]

        for name, value in values:
            if value and "".join(value.splitlines()) != value:
                raise ConfigError(f"'{name}' must be a single line, got {value!r}")

    def _validate_identifier(self) -> None:
        if not self.identifier.strip():
            raise ConfigError("Bundle identifier must not be empty")
        needs_reverse_domain = self.formats & REVERSE_DOMAIN_FORMATS
        if needs_reverse_domain and not REVERSE_DOMAIN_RE.match(self.identifier):
            formats = ", ".join(sorted(f.value for f in needs_reverse_domain))
            raise ConfigError(
                f"Identifier '{self.identifier}' must be in reverse-domain notation "
                f"(e.g. com.example.app) for: {formats}"
            )

    def _validate_version(self) -> None:
        try:
            parsed = semver.Version.parse(self.version)
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Version '{self.version}' is not a valid semantic version") from e

        if PackageFormat.MSI in self.formats:
            if parsed.major > 255 or parsed.minor > 255 or parsed.patch > 65535:
                raise ConfigError(
                    "MSI versions are limited to major <= 255, minor <= 255 and patch <= 65535"
                )
            if parsed.prerelease and not (
                parsed.prerelease.isdigit() and int(parsed.prerelease) <= 65535
            ):
                raise ConfigError(
                    "MSI only supports numeric pre-release identifiers <= 65535, "
                    f"got '{parsed.prerelease}'"
                )

    def _validate_binaries(self) -> None:
        if not self.binaries:
            raise ConfigError("At least one binary is required")
        mains = [b for b in self.binaries if b.main]
        if len(self.binaries) == 1 and not mains:
            return
        if len(mains) != 1:
            raise ConfigError(f"Exactly one main binary is required, found {len(mains)}")

    @property
    def semver(self) -> semver.Version:
        return semver.Version.parse(self.version)

    @property
    def main_binary(self) -> Binary:
        for binary in self.binaries:
            if binary.main:
                return binary
        return self.binaries[0]

    @property
    def main_binary_name(self) -> str:
        return self.main_binary.name

    @property
    def package_name(self) -> str:
        """Lowercase, dash-separated name used by Linux package managers."""
        name = re.sub(r"[^a-z0-9+.-]+", "-", self.product_name.lower()).strip("-")
        return name or self.identifier.rsplit(".", 1)[-1].lower()

    @property
    def resolved_publisher(self) -> str:
        if self.publisher:
            return self.publisher
        if self.authors:
            return self.authors[0]
        parts = self.identifier.split(".")
        return parts[1] if len(parts) > 1 else self.product_name

    @property
    def maintainer(self) -> str:
        return ", ".join(self.authors) if self.authors else self.resolved_publisher

    def resolve_path(self, path: Path) -> Path:
        return path if path.is_absolute() else self.base_dir / path

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Path | None = None) -> BundleSettings:
        """Build settings from a plain mapping (parsed JSON or TOML)."""
        try:
            return cls._from_dict(data, base_dir or Path.cwd())
        except ConfigError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid bundle settings: {e}") from e

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any], base_dir: Path) -> BundleSettings:
        kwargs: dict[str, Any] = {
            "product_name": data["product_name"],
            "version": str(data["version"]),
            "identifier": data["identifier"],
            "formats": data["formats"],
            "base_dir": base_dir,
            "binaries": [_binary_from(b) for b in data.get("binaries", [])],
            "resources": [_resource_from(r) for r in data.get("resources", [])],
            "icons": data.get("icons", []),
        }
        for key in (
            "description",
            "long_description",
            "authors",
            "publisher",
            "homepage",
            "license_file",
            "copyright",
            "category",
            "target_arch",
        ):
            if data.get(key) is not None:
                kwargs[key] = data[key]
        kwargs["out_dir"] = base_dir / data.get("out_dir", "dist")

        if data.get("signing"):
            kwargs["signing"] = SigningConfig(**data["signing"])
        if data.get("update_manifest"):
            manifest = dict(data["update_manifest"])
            manifest["path"] = base_dir / manifest["path"]
            kwargs["update_manifest"] = UpdateManifestConfig(**manifest)

        if "deb" in data:
            deb = dict(data["deb"])
            deb["scripts"] = LinuxScripts(**deb.get("scripts", {}))
            kwargs["deb"] = DebianConfig(**deb)
        if "rpm" in data:
            rpm = dict(data["rpm"])
            rpm["scripts"] = LinuxScripts(**rpm.get("scripts", {}))
            kwargs["rpm"] = RpmConfig(**rpm)
        if "pacman" in data:
            kwargs["pacman"] = PacmanConfig(**data["pacman"])
        if "windows" in data:
            kwargs["windows"] = WindowsConfig(**data["windows"])
        if "macos" in data:
            macos = dict(data["macos"])
            macos["dmg"] = DmgConfig(**macos.get("dmg", {}))
            kwargs["macos"] = MacOsConfig(**macos)
        if "appimage" in data:
            kwargs["appimage"] = AppImageConfig(**data["appimage"])

        return cls(**kwargs)


def _binary_from(value: str | Mapping[str, Any]) -> Binary:
    if isinstance(value, str):
        return Binary(path=value)
    return Binary(path=value["path"], main=bool(value.get("main", False)))


def _resource_from(value: str | Mapping[str, Any]) -> ResourceRule:
    if isinstance(value, str):
        return ResourceRule(source=value)
    return ResourceRule(source=value["src"], target=value.get("target"))


def load_settings(path: Path) -> BundleSettings:
    """Load settings from a ``.json`` file or the ``[tool.shipwright]`` table of a TOML file."""
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    if path.suffix == ".json":
        data = read_json(path)
    else:
        with path.open("rb") as f:
            document = tomllib.load(f)
        data = document.get("tool", {}).get("shipwright", document)

    return BundleSettings.from_dict(data, base_dir=path.parent.absolute())


# 🚢📦🔚
