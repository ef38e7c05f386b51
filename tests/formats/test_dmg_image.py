#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for the disk image builder on hosts without hdiutil."""

from __future__ import annotations

from collections.abc import Callable
import os
from pathlib import Path
import sys

import pytest

from shipwright.exceptions import ResourceNotFound, UnsupportedPlatform
from shipwright.formats import BuildContext, dmg
from shipwright.models import PackageFormat
from shipwright.resources import resolve_bundle
from shipwright.settings import BundleSettings, DmgConfig, MacOsConfig


@pytest.mark.skipif(sys.platform == "darwin", reason="hdiutil is available on macOS")
class TestDmgOffMacOS:
    @pytest.mark.unit
    def test_unsupported_platform(
        self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext
    ) -> None:
        settings = make_settings(formats=["dmg"])

        with pytest.raises(UnsupportedPlatform, match="macOS"):
            dmg.build(resolve_bundle(settings, PackageFormat.DMG), settings, build_ctx)

        assert not build_ctx.out_dir.exists()


@pytest.mark.skipif(sys.platform == "win32", reason="creates symlinks")
class TestDmgVolume:
    @pytest.mark.unit
    def test_stage_volume(self, make_settings: Callable[..., BundleSettings], tmp_path: Path) -> None:
        bundle = tmp_path / "Demo App.app"
        (bundle / "Contents").mkdir(parents=True)
        (bundle / "Contents" / "PkgInfo").write_bytes(b"APPL????")
        (tmp_path / "bg.png").write_bytes(b"png")
        settings = make_settings(formats=["dmg"], macos=MacOsConfig(dmg=DmgConfig(background="bg.png")))
        root = tmp_path / "volume"
        root.mkdir()

        background = dmg.stage_volume(bundle, settings, root)

        assert background == "bg.png"
        assert (root / "Demo App.app" / "Contents" / "PkgInfo").is_file()
        assert (root / "Applications").is_symlink()
        assert (root / ".background" / "bg.png").read_bytes() == b"png"

    @pytest.mark.unit
    def test_stage_volume_keeps_links_and_modes(
        self, make_settings: Callable[..., BundleSettings], tmp_path: Path
    ) -> None:
        bundle = tmp_path / "Demo App.app"
        versions = bundle / "Contents" / "Frameworks" / "Demo.framework" / "Versions"
        (versions / "A").mkdir(parents=True)
        (versions / "A" / "Demo").write_bytes(b"dylib")
        (versions / "Current").symlink_to("A")
        executable = bundle / "Contents" / "MacOS" / "demo"
        executable.parent.mkdir(parents=True)
        executable.write_bytes(b"\xcf\xfa\xed\xfe")
        executable.chmod(0o755)
        root = tmp_path / "volume"
        root.mkdir()

        dmg.stage_volume(bundle, make_settings(formats=["dmg"]), root)

        copied = root / "Demo App.app" / "Contents"
        current = copied / "Frameworks" / "Demo.framework" / "Versions" / "Current"
        assert current.is_symlink()
        assert os.readlink(current) == "A"
        assert (current / "Demo").read_bytes() == b"dylib"
        assert os.access(copied / "MacOS" / "demo", os.X_OK)

    @pytest.mark.unit
    def test_missing_background(self, make_settings: Callable[..., BundleSettings], tmp_path: Path) -> None:
        bundle = tmp_path / "Demo App.app"
        bundle.mkdir()
        settings = make_settings(formats=["dmg"], macos=MacOsConfig(dmg=DmgConfig(background="missing.png")))
        root = tmp_path / "volume"
        root.mkdir()

        with pytest.raises(ResourceNotFound, match="background"):
            dmg.stage_volume(bundle, settings, root)


# 🚢📦🔚
