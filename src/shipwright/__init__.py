#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Shipwright core package exports."""

from __future__ import annotations

from provide.foundation.utils import get_version

from shipwright.exceptions import ConfigError, ShipwrightError, SigningError
from shipwright.models import PackageArtifact, PackageFormat
from shipwright.orchestrator import BuildReport, BuildState, FormatResult
from shipwright.package import build_packages, build_packages_from_file
from shipwright.settings import Binary, BundleSettings, ResourceRule, SigningConfig, UpdateManifestConfig, load_settings

__version__ = get_version("shipwright", caller_file=__file__)

__all__ = [
    "Binary",
    "BuildReport",
    "BuildState",
    "BundleSettings",
    "ConfigError",
    "FormatResult",
    "PackageArtifact",
    "PackageFormat",
    "ResourceRule",
    "ShipwrightError",
    "SigningConfig",
    "SigningError",
    "UpdateManifestConfig",
    "__version__",
    "build_packages",
    "build_packages_from_file",
    "load_settings",
]

# 🚢📦🔚
