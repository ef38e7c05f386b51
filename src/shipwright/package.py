#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Public API for the Shipwright packager."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
import threading

from attrs import evolve

from shipwright.config import ShipwrightRuntimeConfig
from shipwright.models import PackageFormat
from shipwright.orchestrator import BuildReport, Orchestrator
from shipwright.settings import BundleSettings, load_settings


def build_packages(
    settings: BundleSettings,
    runtime: ShipwrightRuntimeConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> BuildReport:
    """Build every format requested by ``settings``.

    Failures of individual formats are recorded in the returned report rather
    than raised; inspect ``report.success`` and ``report.failures``.

    Args:
        settings: Validated build plan
        runtime: Environment configuration (read from the environment if None)
        cancel_event: Set it from another thread to stop at the next stage boundary

    Returns:
        BuildReport with per-format results, artifacts and the manifest path

    Raises:
        SigningError: If the configured secret key cannot be decoded

    Example:
        ```python
        from shipwright import Binary, BundleSettings, build_packages

        settings = BundleSettings(
            product_name="demo",
            version="1.2.3",
            identifier="com.example.demo",
            binaries=[Binary("target/release/demo")],
            formats=["deb", "appimage"],
        )
        report = build_packages(settings)
        for artifact in report.artifacts:
            print(artifact.path, artifact.sha256)
        ```
    """
    return Orchestrator(settings, runtime=runtime, cancel_event=cancel_event).run()


def build_packages_from_file(
    settings_path: Path,
    formats: Iterable[str | PackageFormat] | None = None,
    out_dir: Path | None = None,
    target_arch: str | None = None,
    runtime: ShipwrightRuntimeConfig | None = None,
) -> BuildReport:
    """Load settings from JSON or TOML, apply overrides, and build.

    Raises:
        ConfigError: If the settings file is missing or invalid
    """
    settings = load_settings(settings_path)
    overrides: dict[str, object] = {}
    if formats:
        overrides["formats"] = list(formats)
    if out_dir is not None:
        overrides["out_dir"] = out_dir
    if target_arch is not None:
        overrides["target_arch"] = target_arch
    if overrides:
        settings = evolve(settings, **overrides)
    return build_packages(settings, runtime=runtime)


# 🚢📦🔚
