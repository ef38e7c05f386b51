#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for the macOS app bundle builder."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import plistlib
import tarfile

import pytest

from shipwright.config.defaults import ICNS_ENTRIES
from shipwright.exceptions import ResourceError, ResourceNotFound
from shipwright.formats import BuildContext, app
from shipwright.icons import read_icns_sizes
from shipwright.models import PackageArtifact, PackageFormat
from shipwright.resources import resolve_bundle
from shipwright.settings import BundleSettings, MacOsConfig


def build_app(settings: BundleSettings, ctx: BuildContext) -> PackageArtifact:
    return app.build(resolve_bundle(settings, PackageFormat.APP), settings, ctx)


class TestInfoPlist:
    @pytest.mark.unit
    def test_defaults(self, make_settings: Callable[..., BundleSettings]) -> None:
        settings = make_settings(formats=["app"], version="1.2.3-rc.1", copyright="© Demo")

        plist = app.info_plist(settings, "Demo App.icns")

        assert plist["CFBundleIdentifier"] == "com.example.demo"
        assert plist["CFBundleExecutable"] == "demo"
        assert plist["CFBundleShortVersionString"] == "1.2.3"
        assert plist["CFBundleVersion"] == "1.2.3-rc.1"
        assert plist["CFBundleIconFile"] == "Demo App.icns"
        assert plist["NSHumanReadableCopyright"] == "© Demo"
        assert plist["NSHighResolutionCapable"] is True

    @pytest.mark.unit
    def test_user_plist_merged_over_defaults(
        self, make_settings: Callable[..., BundleSettings], tmp_path: Path
    ) -> None:
        custom = tmp_path / "Custom.plist"
        custom.write_bytes(plistlib.dumps({"LSMinimumSystemVersion": "12.0", "LSUIElement": True}))
        settings = make_settings(formats=["app"], macos=MacOsConfig(info_plist="Custom.plist"))

        plist = app.info_plist(settings, None)

        assert plist["LSMinimumSystemVersion"] == "12.0"
        assert plist["LSUIElement"] is True
        assert "CFBundleIconFile" not in plist

    @pytest.mark.unit
    def test_invalid_user_plist(self, make_settings: Callable[..., BundleSettings], tmp_path: Path) -> None:
        (tmp_path / "Broken.plist").write_text("not a plist", encoding="utf-8")
        settings = make_settings(formats=["app"], macos=MacOsConfig(info_plist="Broken.plist"))

        with pytest.raises(ResourceError, match="not a valid property list"):
            app.info_plist(settings, None)


class TestAppBuild:
    @pytest.mark.unit
    def test_bundle_layout(
        self,
        make_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        icon_png: Path,
        demo_binary: Path,
    ) -> None:
        artifact = build_app(make_settings(formats=["app"], icons=[icon_png]), build_ctx)

        contents = artifact.path / "Contents"
        assert artifact.path == build_ctx.out_dir / "Demo App.app"
        assert (contents / "MacOS" / "demo").read_bytes() == demo_binary.read_bytes()
        assert (contents / "PkgInfo").read_bytes() == b"APPL????"
        with (contents / "Info.plist").open("rb") as f:
            assert plistlib.load(f)["CFBundleIconFile"] == "Demo App.icns"
        icns = read_icns_sizes(contents / "Resources" / "Demo App.icns")
        assert len(icns) == len(ICNS_ENTRIES)

    @pytest.mark.unit
    def test_update_archive(self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext) -> None:
        artifact = build_app(make_settings(formats=["app"]), build_ctx)

        assert artifact.update_archive == build_ctx.out_dir / "Demo App.app.tar.gz"
        assert artifact.payload_path == artifact.update_archive
        with tarfile.open(artifact.update_archive, "r:gz") as tar:
            names = tar.getnames()
        assert names[0] == "Demo App.app"
        assert "Demo App.app/Contents/MacOS/demo" in names
        assert "Demo App.app/Contents/Info.plist" in names

    @pytest.mark.unit
    def test_missing_entitlements(self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext) -> None:
        settings = make_settings(formats=["app"], macos=MacOsConfig(entitlements="missing.entitlements"))

        with pytest.raises(ResourceNotFound, match="Entitlements"):
            build_app(settings, build_ctx)

        assert not build_ctx.out_dir.exists() or not any(build_ctx.out_dir.iterdir())


# 🚢📦🔚
