#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for template rendering and per-kind escaping."""

from __future__ import annotations

from pathlib import Path

import pytest

from shipwright.exceptions import TemplateError
from shipwright.templates import get_renderer
from shipwright.templates.renderer import escape_nsis, escape_shell

CONTROL_CONTEXT = {
    "package": "demo",
    "version": "1.0.0",
    "architecture": "amd64",
    "installed_size": 12,
    "maintainer": "Demo Team",
    "section": "utils",
    "priority": "optional",
    "homepage": None,
    "depends": "",
    "description": "Demo",
    "long_description_lines": ["First line", ".", "Third line"],
}


class TestTemplateRenderer:
    @pytest.mark.unit
    def test_render_control(self) -> None:
        control = get_renderer().render("deb/control", CONTROL_CONTEXT)

        assert control.startswith("Package: demo\nVersion: 1.0.0\nArchitecture: amd64\n")
        assert "Homepage" not in control
        assert "Depends" not in control
        assert control.endswith("Description: Demo\n First line\n .\n Third line\n")

    @pytest.mark.unit
    def test_missing_required_field(self) -> None:
        context = {**CONTROL_CONTEXT, "maintainer": ""}
        with pytest.raises(TemplateError, match="maintainer"):
            get_renderer().render("deb/control", context)

    @pytest.mark.unit
    def test_unknown_template(self) -> None:
        with pytest.raises(TemplateError, match="Unknown template"):
            get_renderer().render("snap/snapcraft", {})

    @pytest.mark.unit
    def test_shell_values_are_quoted(self) -> None:
        apprun = get_renderer().render(
            "appimage/AppRun",
            {"exe_path": "usr/bin/my app; rm -rf /", "product_name": "Demo"},
        )
        assert "'usr/bin/my app; rm -rf /'" in apprun

    @pytest.mark.unit
    def test_xml_values_are_escaped(self) -> None:
        wxs = get_renderer().render(
            "wix/main.wxs",
            {
                "product_name": "Tom & Jerry <Deluxe>",
                "version": "1.0.0",
                "manufacturer": "ACME \"Labs\"",
                "upgrade_code": "00000000-0000-0000-0000-000000000000",
                "language": 1033,
                "binaries": ["demo.exe"],
                "main_binary": "demo.exe",
                "root_files": [],
                "directories": [],
                "component_ids": [],
            },
        )
        assert "Tom &amp; Jerry &lt;Deluxe&gt;" in wxs
        assert "<Deluxe>" not in wxs

    @pytest.mark.unit
    def test_override_template(self, tmp_path: Path) -> None:
        override = tmp_path / "control.j2"
        override.write_text("Package: {{ package }}-custom\n", encoding="utf-8")

        rendered = get_renderer().render("deb/control", CONTROL_CONTEXT, override=override)

        assert rendered == "Package: demo-custom\n"

    @pytest.mark.unit
    def test_override_missing(self, tmp_path: Path) -> None:
        with pytest.raises(TemplateError, match="Cannot read template override"):
            get_renderer().render("deb/control", CONTROL_CONTEXT, override=tmp_path / "missing.j2")

    @pytest.mark.unit
    def test_override_syntax_error(self, tmp_path: Path) -> None:
        override = tmp_path / "broken.j2"
        override.write_text("{% if %}", encoding="utf-8")
        with pytest.raises(TemplateError, match="Failed to render"):
            get_renderer().render("deb/control", CONTROL_CONTEXT, override=override)


class TestEscapers:
    @pytest.mark.unit
    def test_escape_shell(self) -> None:
        assert escape_shell("plain") == "plain"
        assert escape_shell("it's") == "'it'\"'\"'s'"

    @pytest.mark.unit
    def test_escape_nsis(self) -> None:
        assert escape_nsis('Say "hi" for $5\n') == 'Say $\\"hi$\\" for $$5$\\n'


# 🚢📦🔚
