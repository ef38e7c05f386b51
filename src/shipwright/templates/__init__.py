#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Text templates for scripts, control files and installer scripts."""

from __future__ import annotations

from shipwright.templates.renderer import (
    TEMPLATES,
    TemplateKind,
    TemplateRenderer,
    TemplateSpec,
    escape_applescript,
    escape_desktop,
    escape_nsis,
    escape_shell,
    get_renderer,
)

__all__ = [
    "TEMPLATES",
    "TemplateKind",
    "TemplateRenderer",
    "TemplateSpec",
    "escape_applescript",
    "escape_desktop",
    "escape_nsis",
    "escape_shell",
    "get_renderer",
]

# 🚢📦🔚
