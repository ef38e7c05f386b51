#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Shipwright runtime configuration read from the environment."""

from __future__ import annotations

from pathlib import Path

from attrs import define
from provide.foundation.config.base import field
from provide.foundation.config.env import RuntimeConfig

from shipwright.config.defaults import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_SOURCE_DATE_EPOCH,
    DEFAULT_TOOL_TIMEOUT,
)

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def parse_log_level(value: str) -> str:
    """Validate and normalize log levels."""
    normalized = value.strip().upper()
    if normalized not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {value}")
    return normalized


def parse_positive_float(value: str | float) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise ValueError(f"Expected a positive number, got {value!r}")
    return parsed


def parse_positive_int(value: str | int) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise ValueError(f"Expected a positive integer, got {value!r}")
    return parsed


def parse_optional_str(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value)


def parse_optional_path(value: str | Path | None) -> Path | None:
    text = parse_optional_str(None if value is None else str(value))
    return Path(text).expanduser() if text else None


@define
class ShipwrightRuntimeConfig(RuntimeConfig):
    """Shipwright runtime configuration."""

    log_level: str = field(
        default="WARNING",
        env_var="SHIPWRIGHT_LOG_LEVEL",
        converter=parse_log_level,
        metadata={"help": "Log level for Shipwright operations (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)"},
    )

    setup_log_level: str = field(
        default="WARNING",
        env_var="SHIPWRIGHT_SETUP_LOG_LEVEL",
        converter=parse_log_level,
        metadata={"help": "Log level for Foundation setup messages during initialization"},
    )

    tool_timeout: float = field(
        default=DEFAULT_TOOL_TIMEOUT,
        env_var="SHIPWRIGHT_TOOL_TIMEOUT",
        converter=parse_positive_float,
        metadata={"help": "Seconds an external tool (candle, light, makensis, hdiutil, mksquashfs) may run"},
    )

    max_workers: int = field(
        default=DEFAULT_MAX_WORKERS,
        env_var="SHIPWRIGHT_MAX_WORKERS",
        converter=parse_positive_int,
        metadata={"help": "Number of formats built concurrently"},
    )

    source_date_epoch: int = field(
        default=DEFAULT_SOURCE_DATE_EPOCH,
        env_var="SOURCE_DATE_EPOCH",
        converter=int,
        metadata={"help": "Timestamp written into archives for reproducible builds"},
    )

    private_key: str | None = field(
        default=None,
        env_var="SHIPWRIGHT_SIGN_PRIVATE_KEY",
        converter=parse_optional_str,
        metadata={"help": "Base64 minisign secret key used when settings carry no signing config"},
    )

    private_key_password: str | None = field(
        default=None,
        env_var="SHIPWRIGHT_SIGN_PRIVATE_KEY_PASSWORD",
        converter=parse_optional_str,
        metadata={"help": "Password of the minisign secret key"},
    )

    appimage_runtime: Path | None = field(
        default=None,
        env_var="SHIPWRIGHT_APPIMAGE_RUNTIME",
        converter=parse_optional_path,
        metadata={"help": "AppImage runtime stub used when settings name none (appimage.runtime)"},
    )


# 🚢📦🔚
