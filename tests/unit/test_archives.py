#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for the archive writers and atomic publication."""

from __future__ import annotations

import io
from pathlib import Path
import tarfile

import pytest

from shipwright.exceptions import ArchiveError
from shipwright.formats.ar import read_ar, write_ar
from shipwright.formats.common import DeterministicTar, atomic_output, walk_tree
from shipwright.formats.cpio import read_cpio, write_cpio


class TestArArchive:
    @pytest.mark.unit
    def test_members_in_order_with_padding(self) -> None:
        archive = write_ar([("debian-binary", b"2.0\n"), ("odd.bin", b"abc"), ("last", b"zz")])

        assert archive.startswith(b"!<arch>\n")
        assert read_ar(archive) == [("debian-binary", b"2.0\n"), ("odd.bin", b"abc"), ("last", b"zz")]

    @pytest.mark.unit
    def test_name_too_long(self) -> None:
        with pytest.raises(ArchiveError, match="too long"):
            write_ar([("a-very-long-member-name", b"")])

    @pytest.mark.unit
    def test_not_an_archive(self) -> None:
        with pytest.raises(ArchiveError):
            read_ar(b"PK\x03\x04")


class TestCpioArchive:
    @pytest.mark.unit
    def test_newc_entries(self) -> None:
        data = write_cpio(
            [
                ("./usr", 0o755, b"", True),
                ("./usr/bin/demo", 0o755, b"#!/bin/sh\n", False),
            ],
            mtime=0,
        )

        assert data.startswith(b"070701")
        entries = read_cpio(data)
        assert [name for name, _, _ in entries] == ["./usr", "./usr/bin/demo"]
        assert entries[0][1] == 0o040755
        assert entries[1][1] == 0o100755
        assert entries[1][2] == b"#!/bin/sh\n"
        assert len(data) % 4 == 0


class TestDeterministicTar:
    @pytest.mark.unit
    def test_identical_bytes_and_normalized_metadata(self, tmp_path: Path) -> None:
        root = tmp_path / "tree"
        (root / "bin").mkdir(parents=True)
        (root / "bin" / "tool").write_bytes(b"tool")
        (root / "bin" / "tool").chmod(0o700)
        (root / "README").write_text("hi", encoding="utf-8")
        (root / "README").chmod(0o600)

        def archive() -> bytes:
            tar = DeterministicTar(mtime=1_700_000_000)
            tar.add_tree(walk_tree(root), prefix="./")
            return tar.gzipped()

        first, second = archive(), archive()
        assert first == second

        with tarfile.open(fileobj=io.BytesIO(first), mode="r:gz") as tar:
            members = {m.name: m for m in tar.getmembers()}
        assert set(members) == {"./README", "./bin", "./bin/tool"}
        assert members["./bin/tool"].mode == 0o755
        assert members["./README"].mode == 0o644
        assert all(m.uid == 0 and m.uname == "root" and m.mtime == 1_700_000_000 for m in members.values())


class TestAtomicOutput:
    @pytest.mark.unit
    def test_publishes_on_success(self, tmp_path: Path) -> None:
        final = tmp_path / "out" / "pkg.deb"
        with atomic_output(final) as temp:
            temp.write_bytes(b"package")

        assert final.read_bytes() == b"package"
        assert [p.name for p in final.parent.iterdir()] == ["pkg.deb"]

    @pytest.mark.unit
    def test_nothing_left_on_failure(self, tmp_path: Path) -> None:
        final = tmp_path / "out" / "pkg.deb"
        with pytest.raises(RuntimeError), atomic_output(final) as temp:
            temp.write_bytes(b"partial")
            raise RuntimeError("builder crashed")

        assert list(final.parent.iterdir()) == []

    @pytest.mark.unit
    def test_replaces_existing_directory(self, tmp_path: Path) -> None:
        final = tmp_path / "Demo.app"
        (final / "Contents").mkdir(parents=True)
        with atomic_output(final) as temp:
            (temp / "Contents" / "MacOS").mkdir(parents=True)

        assert (final / "Contents" / "MacOS").is_dir()


# 🚢📦🔚
