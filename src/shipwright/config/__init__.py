#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Shipwright configuration built on the Provide Foundation config stack."""

from __future__ import annotations

from shipwright.config.runtime import ShipwrightRuntimeConfig

__all__ = [
    "ShipwrightRuntimeConfig",
]

# 🚢📦🔚
