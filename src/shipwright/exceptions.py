#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Custom exceptions for Shipwright."""

from __future__ import annotations

from provide.foundation.errors import FoundationError


class ShipwrightError(FoundationError):
    """Base exception for all shipwright errors."""

    pass


class ConfigError(ShipwrightError):
    """Raised when bundle settings are invalid. Aborts before any builder starts."""

    pass


class ResourceError(ShipwrightError):
    """Raised when resource rules cannot be resolved to a file layout."""

    pass


class ResourceNotFound(ResourceError):
    """Raised when a non-glob resource source does not exist."""

    pass


class ResourceConflict(ResourceError):
    """Raised when two different sources resolve to the same destination."""

    pass


class PathEscape(ResourceError):
    """Raised when a destination leaves the package root."""

    pass


class TemplateError(ShipwrightError):
    """Raised when a template cannot be rendered."""

    pass


class ImageError(ShipwrightError):
    """Raised for icon transcoding errors."""

    pass


class UnsupportedImageFormat(ImageError):
    """Raised when an icon candidate cannot be decoded."""

    pass


class ArchiveError(ShipwrightError):
    """Raised when an output would violate its format's structure."""

    pass


class InvalidDependencyString(ArchiveError):
    """Raised for malformed package relationship strings."""

    pass


class ExternalToolError(ShipwrightError):
    """Raised when an external tool exits non-zero or cannot run."""

    pass


class ToolNotFound(ExternalToolError):
    """Raised when a required external tool is not installed."""

    pass


class ExternalToolTimeout(ExternalToolError):
    """Raised when an external tool exceeds its time budget."""

    pass


class UnsupportedPlatform(ExternalToolError):
    """Raised when a format cannot be produced on this host."""

    pass


class SigningError(ShipwrightError):
    """Raised for key, passphrase and signature errors."""

    pass


class SigningKeyExists(SigningError):
    """Raised when saving a key would overwrite an existing one."""

    pass


class PackagerIOError(ShipwrightError):
    """Raised for filesystem errors inside a format pipeline."""

    pass


class BuildCancelled(ShipwrightError):
    """Raised at a stage boundary once cancellation was requested."""

    pass


class IconTooSmall(UserWarning):
    """Issued when an icon has to be upscaled by more than 2x."""


# 🚢📦🔚
