#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for the AppImage builder, with a stand-in mksquashfs."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import stat
import sys

from attrs import evolve
import pytest

from shipwright.config import ShipwrightRuntimeConfig
from shipwright.exceptions import ExternalToolError, ResourceError, ResourceNotFound, ToolNotFound
from shipwright.formats import BuildContext, appimage
from shipwright.models import PackageFormat
from shipwright.resources import resolve_bundle
from shipwright.settings import AppImageConfig, BundleSettings

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")


def build_appimage(settings: BundleSettings, ctx: BuildContext) -> Path:
    return appimage.build(resolve_bundle(settings, PackageFormat.APPIMAGE), settings, ctx).path


class TestAppImageBuild:
    @pytest.mark.unit
    def test_runtime_followed_by_image(
        self,
        appimage_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        appimage_runtime: Path,
    ) -> None:
        output = build_appimage(appimage_settings(), build_ctx)

        assert output.name == "demo-app_1.2.3_x86_64.AppImage"
        assert output.read_bytes() == appimage_runtime.read_bytes() + b"hsqs-fake-image"
        assert stat.S_IMODE(output.stat().st_mode) == 0o755

    @pytest.mark.unit
    def test_appdir_layout(
        self, appimage_settings: Callable[..., BundleSettings], build_ctx: BuildContext, icon_png: Path
    ) -> None:
        settings = appimage_settings(icons=[icon_png])
        appdir = build_ctx.work_dir / "Demo.AppDir"

        appimage.stage_appdir(resolve_bundle(settings, PackageFormat.APPIMAGE), settings, build_ctx, appdir)

        apprun = appdir / "AppRun"
        assert stat.S_IMODE(apprun.stat().st_mode) == 0o755
        assert "usr/bin/demo" in apprun.read_text(encoding="utf-8")
        desktop = (appdir / "demo-app.desktop").read_text(encoding="utf-8")
        assert "Exec=demo" in desktop
        assert "Icon=demo-app" in desktop
        assert (appdir / "usr/bin/demo").is_file()
        assert (appdir / "demo-app.png").is_file()
        assert (appdir / ".DirIcon").read_bytes() == (appdir / "demo-app.png").read_bytes()

    @pytest.mark.unit
    def test_extra_desktop_entries(
        self,
        appimage_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        appimage_runtime: Path,
        fake_mksquashfs: Path,
    ) -> None:
        settings = appimage_settings(
            appimage=AppImageConfig(
                runtime=appimage_runtime,
                mksquashfs=str(fake_mksquashfs),
                desktop_entry={"Terminal": "true"},
            )
        )
        appdir = build_ctx.work_dir / "Demo.AppDir"

        appimage.stage_appdir(resolve_bundle(settings, PackageFormat.APPIMAGE), settings, build_ctx, appdir)

        desktop = (appdir / "demo-app.desktop").read_text(encoding="utf-8")
        assert "Terminal=true" in desktop
        assert "Terminal=false" not in desktop

    @pytest.mark.unit
    def test_runtime_required(
        self, appimage_settings: Callable[..., BundleSettings], build_ctx: BuildContext, fake_mksquashfs: Path
    ) -> None:
        settings = appimage_settings(appimage=AppImageConfig(mksquashfs=str(fake_mksquashfs)))
        with pytest.raises(ResourceError, match="runtime"):
            build_appimage(settings, build_ctx)

    @pytest.mark.unit
    def test_missing_mksquashfs(
        self, appimage_settings: Callable[..., BundleSettings], build_ctx: BuildContext, appimage_runtime: Path
    ) -> None:
        settings = appimage_settings(
            appimage=AppImageConfig(runtime=appimage_runtime, mksquashfs="/nonexistent/mksquashfs")
        )
        with pytest.raises(ToolNotFound):
            build_appimage(settings, build_ctx)

    @pytest.mark.unit
    def test_failing_mksquashfs_leaves_nothing(
        self,
        appimage_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        appimage_runtime: Path,
        tmp_path: Path,
    ) -> None:
        broken = tmp_path / "bin" / "broken-mksquashfs"
        broken.parent.mkdir(parents=True, exist_ok=True)
        broken.write_text("#!/bin/sh\necho 'no space left' >&2\nexit 1\n", encoding="utf-8")
        broken.chmod(0o755)
        settings = appimage_settings(appimage=AppImageConfig(runtime=appimage_runtime, mksquashfs=str(broken)))

        with pytest.raises(ExternalToolError, match="no space left"):
            build_appimage(settings, build_ctx)

        assert not build_ctx.out_dir.exists() or not any(build_ctx.out_dir.iterdir())

    @pytest.mark.unit
    def test_sort_file_orders_every_file(self, tmp_path: Path) -> None:
        appdir = tmp_path / "App.AppDir"
        (appdir / "usr/bin").mkdir(parents=True)
        (appdir / "AppRun").write_text("#!/bin/sh\n", encoding="utf-8")
        (appdir / "usr/bin/demo").write_text("demo", encoding="utf-8")
        sort_file = tmp_path / "sort"

        appimage.write_sort_file(appdir, sort_file)

        assert sort_file.read_text(encoding="utf-8") == "AppRun 2\nusr/bin/demo 1\n"


class TestRuntimeLookup:
    @pytest.mark.unit
    def test_runtime_from_environment(
        self,
        appimage_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        appimage_runtime: Path,
        fake_mksquashfs: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("SHIPWRIGHT_APPIMAGE_RUNTIME", str(appimage_runtime))
        runtime = ShipwrightRuntimeConfig.from_env()
        assert runtime.appimage_runtime == appimage_runtime

        settings = appimage_settings(appimage=AppImageConfig(mksquashfs=str(fake_mksquashfs)))
        ctx = evolve(build_ctx, appimage_runtime=runtime.appimage_runtime)

        output = build_appimage(settings, ctx)

        assert output.read_bytes() == appimage_runtime.read_bytes() + b"hsqs-fake-image"

    @pytest.mark.unit
    def test_settings_runtime_wins(
        self,
        appimage_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        appimage_runtime: Path,
        tmp_path: Path,
    ) -> None:
        other = tmp_path / "other-runtime"
        other.write_bytes(b"\x7fELF-other-runtime")
        ctx = evolve(build_ctx, appimage_runtime=other)

        output = build_appimage(appimage_settings(), ctx)

        assert output.read_bytes().startswith(appimage_runtime.read_bytes())

    @pytest.mark.unit
    def test_missing_environment_runtime(
        self,
        appimage_settings: Callable[..., BundleSettings],
        build_ctx: BuildContext,
        fake_mksquashfs: Path,
        tmp_path: Path,
    ) -> None:
        settings = appimage_settings(appimage=AppImageConfig(mksquashfs=str(fake_mksquashfs)))
        ctx = evolve(build_ctx, appimage_runtime=tmp_path / "nope")

        with pytest.raises(ResourceNotFound, match="nope"):
            build_appimage(settings, ctx)

    @pytest.mark.unit
    def test_blank_environment_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHIPWRIGHT_APPIMAGE_RUNTIME", "  ")
        assert ShipwrightRuntimeConfig.from_env().appimage_runtime is None


# 🚢📦🔚
