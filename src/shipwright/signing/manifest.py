#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Update manifest: which signed artifact a client on ``{os}-{arch}`` should fetch.

Manifest schema::

    {
      "version": "1.2.3",
      "notes": "...",
      "pub_date": "2025-01-01T00:00:00Z",
      "platforms": {
        "darwin-aarch64": {"signature": "<base64>", "url": "..."},
        "darwin-aarch64-app": {"signature": "<base64>", "url": "..."}
      }
    }

The plain ``{os}-{arch}`` key points at the highest-priority update-eligible
artifact of the run; every eligible artifact also gets its own
``{os}-{arch}-{format}`` key. Merging into an existing manifest replaces only
the keys this run produced.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from attrs import define, field
from provide.foundation import logger
from provide.foundation.file.directory import ensure_parent_dir
from provide.foundation.file.formats import read_json, write_json

from shipwright.exceptions import SigningError
from shipwright.models import PackageArtifact, PackageFormat
from shipwright.settings import UpdateManifestConfig

# Highest priority first.
UPDATE_PRIORITY = (
    PackageFormat.APP,
    PackageFormat.APPIMAGE,
    PackageFormat.NSIS,
    PackageFormat.MSI,
)

MANIFEST_ARCH = {"x86": "i686"}


def manifest_arch(arch: str) -> str:
    return MANIFEST_ARCH.get(arch, arch)


def platform_key(package_format: PackageFormat, arch: str) -> str:
    return f"{package_format.platform}-{manifest_arch(arch)}"


def rfc3339(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


@define(frozen=True)
class PlatformEntry:
    signature: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"signature": self.signature, "url": self.url}


@define(frozen=True)
class UpdateManifest:
    version: str
    notes: str = ""
    pub_date: str = ""
    platforms: dict[str, PlatformEntry] = field(factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UpdateManifest:
        try:
            platforms = {
                str(key): PlatformEntry(signature=str(entry["signature"]), url=str(entry["url"]))
                for key, entry in dict(data.get("platforms", {})).items()
            }
            return cls(
                version=str(data["version"]),
                notes=str(data.get("notes", "")),
                pub_date=str(data.get("pub_date", "")),
                platforms=platforms,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SigningError(f"Malformed update manifest: {e}") from e

    @classmethod
    def load(cls, path: Path) -> UpdateManifest | None:
        if not path.exists():
            return None
        try:
            data = read_json(path)
        except (OSError, ValueError) as e:
            raise SigningError(f"Cannot read update manifest {path}: {e}") from e
        if not isinstance(data, dict):
            raise SigningError(f"Update manifest {path} is not a JSON object")
        return cls.from_dict(data)

    def merge(self, other: UpdateManifest) -> UpdateManifest:
        """``other``'s header and platform keys win; keys only in ``self`` survive."""
        return UpdateManifest(
            version=other.version,
            notes=other.notes,
            pub_date=other.pub_date,
            platforms={**self.platforms, **other.platforms},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "notes": self.notes,
            "pub_date": self.pub_date,
            "platforms": {key: self.platforms[key].to_dict() for key in sorted(self.platforms)},
        }

    def save(self, path: Path) -> None:
        ensure_parent_dir(path)
        write_json(path, self.to_dict(), indent=2)


def download_url(template: str, version: str, artifact: PackageArtifact, arch: str) -> str:
    try:
        return template.format(
            version=version,
            filename=artifact.payload_path.name,
            platform=artifact.format.platform,
            arch=manifest_arch(arch),
            format=artifact.format.value,
        )
    except (KeyError, IndexError, ValueError) as e:
        raise SigningError(f"Invalid update URL template '{template}': {e}") from e


def manifest_entries(
    artifacts: Iterable[PackageArtifact], config: UpdateManifestConfig, version: str, arch: str
) -> dict[str, PlatformEntry]:
    """Entries for every signed, update-eligible artifact."""
    eligible: dict[PackageFormat, PlatformEntry] = {}
    for artifact in artifacts:
        if artifact.format not in UPDATE_PRIORITY or artifact.signature_path is None:
            continue
        eligible[artifact.format] = PlatformEntry(
            signature=artifact.signature_path.read_text(encoding="utf-8").strip(),
            url=download_url(config.url, version, artifact, arch),
        )

    entries: dict[str, PlatformEntry] = {}
    for package_format in UPDATE_PRIORITY:
        entry = eligible.get(package_format)
        if entry is None:
            continue
        key = platform_key(package_format, arch)
        entries.setdefault(key, entry)
        entries[f"{key}-{package_format.value}"] = entry
    return entries


def write_update_manifest(
    config: UpdateManifestConfig,
    version: str,
    artifacts: Iterable[PackageArtifact],
    arch: str,
    now: datetime | None = None,
) -> Path | None:
    """Merge this run's entries into the manifest at ``config.path``.

    Returns None, and leaves any existing manifest untouched, when no
    update-eligible artifact was signed.
    """
    entries = manifest_entries(artifacts, config, version, arch)
    if not entries:
        logger.debug("No update-eligible artifacts, manifest not written", path=str(config.path))
        return None

    update = UpdateManifest(
        version=version,
        notes=config.notes,
        pub_date=rfc3339(now or datetime.now(UTC)),
        platforms=entries,
    )
    existing = UpdateManifest.load(config.path)
    manifest = existing.merge(update) if existing is not None else update
    manifest.save(config.path)
    logger.info(f"📝 Wrote update manifest: {config.path}", platforms=sorted(entries))
    return config.path


# 🚢📦🔚
