#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Centralized default values for Shipwright configuration."""

from __future__ import annotations

# =================================
# File permissions defaults
# =================================
DEFAULT_FILE_PERMS = 0o644
DEFAULT_EXECUTABLE_PERMS = 0o755
DEFAULT_DIR_PERMS = 0o755
DEFAULT_SECRET_KEY_PERMS = 0o600

# =================================
# Reproducibility
# =================================
DEFAULT_SOURCE_DATE_EPOCH = 0
ROOT_USER = "root"
ROOT_GROUP = "root"

# =================================
# Orchestration defaults
# =================================
DEFAULT_TOOL_TIMEOUT = 600.0  # seconds
DEFAULT_MAX_WORKERS = 4

# =================================
# Linux packaging defaults
# =================================
DEB_FORMAT_VERSION = b"2.0\n"
DEFAULT_DEB_SECTION = "utils"
DEFAULT_DEB_PRIORITY = "optional"
DEFAULT_RPM_RELEASE = "1"
DEFAULT_PACMAN_RELEASE = "1"
DEFAULT_LINUX_CATEGORY = "Utility"

# =================================
# macOS defaults
# =================================
DEFAULT_MINIMUM_SYSTEM_VERSION = "10.13"
DEFAULT_DMG_WINDOW_SIZE = (660, 400)
DEFAULT_DMG_APP_POSITION = (180, 170)
DEFAULT_DMG_APPLICATIONS_POSITION = (480, 170)

# =================================
# Windows defaults
# =================================
DEFAULT_WIX_LANGUAGE = "en-US"
WIX_LANGUAGE_CODES = {
    "en-US": 1033,
    "de-DE": 1031,
    "es-ES": 3082,
    "fr-FR": 1036,
    "it-IT": 1040,
    "ja-JP": 1041,
    "ko-KR": 1042,
    "pt-BR": 1046,
    "zh-CN": 2052,
}

# =================================
# Icon size sets
# =================================
# (OSType, logical size, scale)
ICNS_ENTRIES = (
    (b"icp4", 16, 1),
    (b"ic11", 16, 2),
    (b"icp5", 32, 1),
    (b"ic12", 32, 2),
    (b"ic07", 128, 1),
    (b"ic13", 128, 2),
    (b"ic08", 256, 1),
    (b"ic14", 256, 2),
    (b"ic09", 512, 1),
    (b"ic10", 512, 2),
)
ICO_SIZES = (16, 24, 32, 48, 64, 128, 256)
LINUX_ICON_SIZES = (16, 32, 48, 64, 128, 256, 512)
MAX_UPSCALE_FACTOR = 2.0

# =================================
# Signing defaults
# =================================
MINISIGN_OPSLIMIT = 1_048_576 * 32
MINISIGN_MEMLIMIT = 1_073_741_824
SIGNATURE_UNTRUSTED_COMMENT = "signature from shipwright secret key"

# 🚢📦🔚
