#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for the Debian package builder."""

from __future__ import annotations

from collections.abc import Callable
import hashlib
import io
from pathlib import Path
import tarfile

import pytest

from shipwright.exceptions import InvalidDependencyString, ResourceNotFound
from shipwright.formats import BuildContext, deb
from shipwright.formats.ar import read_ar
from shipwright.models import PackageFormat
from shipwright.resources import resolve_bundle
from shipwright.settings import BundleSettings, DebianConfig, LinuxScripts, ResourceRule


def build_deb(settings: BundleSettings, ctx: BuildContext) -> Path:
    artifact = deb.build(resolve_bundle(settings, PackageFormat.DEB), settings, ctx)
    assert artifact.format is PackageFormat.DEB
    return artifact.path


def open_member(members: dict[str, bytes], name: str) -> tarfile.TarFile:
    return tarfile.open(fileobj=io.BytesIO(members[name]), mode="r:gz")


class TestDebBuild:
    @pytest.mark.unit
    def test_structure(self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext) -> None:
        output = build_deb(make_settings(), build_ctx)

        assert output.name == "demo-app_1.2.3_amd64.deb"
        members = read_ar(output.read_bytes())
        assert [name for name, _ in members] == ["debian-binary", "control.tar.gz", "data.tar.gz"]
        assert members[0][1] == b"2.0\n"

    @pytest.mark.unit
    def test_control_fields(self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext) -> None:
        settings = make_settings(
            homepage="https://example.com",
            long_description="Line one\n\nLine three",
            deb=DebianConfig(depends=["libc6 (>= 2.31)", "libssl3 | libssl1.1"]),
        )
        members = dict(read_ar(build_deb(settings, build_ctx).read_bytes()))

        with open_member(members, "control.tar.gz") as control_tar:
            control = control_tar.extractfile("./control").read().decode("utf-8")  # type: ignore[union-attr]

        assert "Package: demo-app\n" in control
        assert "Version: 1.2.3\n" in control
        assert "Architecture: amd64\n" in control
        assert "Maintainer: Demo Team <demo@example.com>\n" in control
        assert "Homepage: https://example.com\n" in control
        assert "Depends: libc6 (>= 2.31), libssl3 | libssl1.1\n" in control
        assert control.endswith("Description: A demo application\n Line one\n .\n Line three\n")

    @pytest.mark.unit
    @pytest.mark.security
    def test_long_description_cannot_add_fields(self, make_settings: Callable[..., BundleSettings]) -> None:
        settings = make_settings(long_description="Intro\nDepends: evil-package\n\n")
        control = deb.render_control(settings, installed_size_kib=1)

        assert "\nDepends:" not in control
        assert control.endswith("Description: A demo application\n Intro\n Depends: evil-package\n")

    @pytest.mark.unit
    def test_md5sums_match_payload(
        self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext, tmp_path: Path
    ) -> None:
        (tmp_path / "assets").mkdir()
        (tmp_path / "assets" / "data.txt").write_text("payload\n", encoding="utf-8")
        settings = make_settings(resources=[ResourceRule("assets/data.txt", "data.txt")])
        members = dict(read_ar(build_deb(settings, build_ctx).read_bytes()))

        with open_member(members, "control.tar.gz") as control_tar:
            md5sums = control_tar.extractfile("./md5sums").read().decode("utf-8")  # type: ignore[union-attr]
        expected = {}
        with open_member(members, "data.tar.gz") as data_tar:
            for member in data_tar.getmembers():
                if member.isfile():
                    content = data_tar.extractfile(member).read()  # type: ignore[union-attr]
                    expected[member.name.removeprefix("./")] = hashlib.md5(content).hexdigest()  # noqa: S324

        listed = {}
        for line in md5sums.splitlines():
            digest, path = line.split("  ", 1)
            listed[path] = digest
        assert listed == expected
        assert "usr/bin/demo" in expected
        assert "usr/lib/demo-app/data.txt" in expected
        assert "usr/share/applications/demo-app.desktop" in expected

    @pytest.mark.unit
    def test_payload_modes_and_prefix(
        self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext
    ) -> None:
        members = dict(read_ar(build_deb(make_settings(), build_ctx).read_bytes()))

        with open_member(members, "data.tar.gz") as data_tar:
            entries = {m.name: m for m in data_tar.getmembers()}

        assert all(name == "." or name.startswith("./") for name in entries)
        assert entries["./usr/bin/demo"].mode == 0o755
        assert entries["./usr/share/applications/demo-app.desktop"].mode == 0o644
        assert all(m.uid == 0 and m.gid == 0 for m in entries.values())

    @pytest.mark.unit
    def test_maintainer_scripts(
        self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext, tmp_path: Path
    ) -> None:
        (tmp_path / "postinst.sh").write_text("#!/bin/sh\necho installed\n", encoding="utf-8")
        settings = make_settings(deb=DebianConfig(scripts=LinuxScripts(post_install="postinst.sh")))
        members = dict(read_ar(build_deb(settings, build_ctx).read_bytes()))

        with open_member(members, "control.tar.gz") as control_tar:
            postinst = control_tar.getmember("./postinst")
            assert postinst.mode == 0o755
            assert control_tar.extractfile(postinst).read() == b"#!/bin/sh\necho installed\n"  # type: ignore[union-attr]

    @pytest.mark.unit
    def test_missing_maintainer_script(
        self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext
    ) -> None:
        settings = make_settings(deb=DebianConfig(scripts=LinuxScripts(pre_remove="missing.sh")))
        with pytest.raises(ResourceNotFound, match="Maintainer script"):
            build_deb(settings, build_ctx)
        assert not list(build_ctx.out_dir.glob("*.deb"))

    @pytest.mark.unit
    def test_prerelease_version_uses_tilde(
        self, make_settings: Callable[..., BundleSettings], build_ctx: BuildContext
    ) -> None:
        output = build_deb(make_settings(version="2.0.0-rc.1", target_arch="aarch64"), build_ctx)
        assert output.name == "demo-app_2.0.0~rc.1_arm64.deb"

    @pytest.mark.unit
    def test_reproducible(self, make_settings: Callable[..., BundleSettings], tmp_path: Path) -> None:
        outputs = []
        for run in ("a", "b"):
            work = tmp_path / f"work-{run}"
            work.mkdir()
            ctx = BuildContext(work_dir=work, out_dir=tmp_path / f"dist-{run}")
            outputs.append(build_deb(make_settings(), ctx).read_bytes())
        assert outputs[0] == outputs[1]


class TestDebDependencies:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "relation",
        ["libc6", "libc6 (>= 2.31)", "python3:any", "libfoo (<< 2.0) [amd64]", "foo | bar (= 1.0)"],
    )
    def test_valid(self, relation: str) -> None:
        assert deb.validate_dependency(relation)

    @pytest.mark.unit
    @pytest.mark.parametrize("relation", ["Libc6", "libc6 (~ 2.0)", "libc6 >= 2.0", "", "x"])
    def test_invalid(self, relation: str) -> None:
        with pytest.raises(InvalidDependencyString):
            deb.validate_dependency(relation)


# 🚢📦🔚
