#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Command modules for the shipwright CLI."""

from __future__ import annotations

from shipwright.commands.build import build_command
from shipwright.commands.signer import signer_group

__all__ = [
    "build_command",
    "signer_group",
]

# 🚢📦🔚
