#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Builder contract shared by every format.

A builder is a plain function ``build(resolved, settings, ctx)`` returning a
``PackageArtifact``. The ``FormatSpec`` registry entry carries everything the
orchestrator needs to know about a format besides that function.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import threading

from attrs import define, field

from shipwright.config.defaults import DEFAULT_SOURCE_DATE_EPOCH, DEFAULT_TOOL_TIMEOUT
from shipwright.exceptions import BuildCancelled
from shipwright.models import PackageArtifact, PackageFormat, ResolvedBundle
from shipwright.settings import BundleSettings


@define
class BuildContext:
    """Per-format build state handed to a builder.

    ``work_dir`` is private to the format and removed afterwards;
    ``dependencies`` holds the finished artifacts of formats this one
    consumes (the app bundle for a disk image).
    """

    work_dir: Path
    out_dir: Path
    source_date_epoch: int = DEFAULT_SOURCE_DATE_EPOCH
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT
    appimage_runtime: Path | None = None
    cancel_event: threading.Event = field(factory=threading.Event)
    dependencies: dict[PackageFormat, PackageArtifact] = field(factory=dict)

    def check_cancelled(self, stage: str) -> None:
        if self.cancel_event.is_set():
            raise BuildCancelled(f"Build cancelled before {stage}")

    def dependency(self, package_format: PackageFormat) -> PackageArtifact:
        artifact = self.dependencies.get(package_format)
        if artifact is None:
            raise BuildCancelled(f"Required {package_format.value} artifact is not available")
        return artifact


Builder = Callable[[ResolvedBundle, BundleSettings, BuildContext], PackageArtifact]


@define(frozen=True)
class FormatSpec:
    """Registry entry for one package format."""

    format: PackageFormat
    build: Builder
    requires: tuple[PackageFormat, ...] = ()


# 🚢📦🔚
