#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Shared pytest fixtures and helpers for Shipwright tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from PIL import Image
import provide.testkit  # noqa: F401 - Installs setproctitle blocker early
from provide.testkit.logger import reset_foundation_setup_for_testing
import pytest

from shipwright.config import ShipwrightRuntimeConfig
from shipwright.formats import BuildContext
from shipwright.settings import AppImageConfig, Binary, BundleSettings
from shipwright.signing import KeyPair, generate_key

DEMO_BINARY = b"#!/bin/sh\necho 'hello from demo'\n"
RUNTIME_STUB = b"\x7fELF" + b"APPIMAGE-RUNTIME-STUB" + b"\x00" * 40

# Cheap scrypt parameters (N=2^10) so encrypted keys decode quickly in tests.
TEST_OPSLIMIT = 32768
TEST_MEMLIMIT = 16 * 1024 * 1024


def write_executable(path: Path, content: str | bytes) -> Path:
    """Write an executable file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        path.write_text(content, encoding="utf-8")
    else:
        path.write_bytes(content)
    path.chmod(0o755)
    return path


def write_icon(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new("RGBA", (size, size), (32, 96, 200, 255))
    image.save(path, format="PNG")
    return path


@pytest.fixture(autouse=True)
def reset_foundation_logging() -> Iterator[None]:
    """Reset foundation logging state before each test to avoid conflicts."""
    reset_foundation_setup_for_testing()
    yield
    reset_foundation_setup_for_testing()


@pytest.fixture(autouse=True)
def clean_signing_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's signing key out of the tests."""
    monkeypatch.delenv("SHIPWRIGHT_SIGN_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("SHIPWRIGHT_SIGN_PRIVATE_KEY_PASSWORD", raising=False)


@pytest.fixture
def demo_binary(tmp_path: Path) -> Path:
    return write_executable(tmp_path / "target" / "release" / "demo", DEMO_BINARY)


@pytest.fixture
def icon_png(tmp_path: Path) -> Path:
    """A 512x512 PNG, large enough for every format without a warning."""
    return write_icon(tmp_path / "icons" / "icon.png", 512)


@pytest.fixture
def small_icon(tmp_path: Path) -> Path:
    return write_icon(tmp_path / "icons" / "small.png", 64)


@pytest.fixture
def appimage_runtime(tmp_path: Path) -> Path:
    runtime = tmp_path / "runtime" / "runtime-x86_64"
    runtime.parent.mkdir(parents=True, exist_ok=True)
    runtime.write_bytes(RUNTIME_STUB)
    return runtime


@pytest.fixture
def fake_mksquashfs(tmp_path: Path) -> Path:
    """Stands in for mksquashfs: writes a marker image to its second argument."""
    return write_executable(
        tmp_path / "bin" / "mksquashfs",
        '#!/bin/sh\nprintf "hsqs-fake-image" > "$2"\n',
    )


@pytest.fixture
def fake_makensis(tmp_path: Path) -> Path:
    """Stands in for makensis: writes installer.exe to the working directory."""
    return write_executable(
        tmp_path / "bin" / "makensis",
        '#!/bin/sh\nprintf "MZ-fake-installer" > installer.exe\n',
    )


@pytest.fixture
def make_settings(tmp_path: Path, demo_binary: Path) -> Callable[..., BundleSettings]:
    """Factory for valid settings rooted in ``tmp_path``; keyword arguments override fields."""

    def factory(**overrides: Any) -> BundleSettings:
        values: dict[str, Any] = {
            "product_name": "Demo App",
            "version": "1.2.3",
            "identifier": "com.example.demo",
            "binaries": [Binary(demo_binary, main=True)],
            "formats": ["deb"],
            "base_dir": tmp_path,
            "out_dir": tmp_path / "dist",
            "description": "A demo application",
            "authors": ["Demo Team <demo@example.com>"],
            "target_arch": "x86_64",
        }
        values.update(overrides)
        return BundleSettings(**values)

    return factory


@pytest.fixture
def appimage_settings(
    make_settings: Callable[..., BundleSettings], appimage_runtime: Path, fake_mksquashfs: Path
) -> Callable[..., BundleSettings]:
    def factory(**overrides: Any) -> BundleSettings:
        overrides.setdefault("formats", ["appimage"])
        overrides.setdefault(
            "appimage", AppImageConfig(runtime=appimage_runtime, mksquashfs=str(fake_mksquashfs))
        )
        return make_settings(**overrides)

    return factory


@pytest.fixture
def build_ctx(tmp_path: Path) -> BuildContext:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return BuildContext(work_dir=work_dir, out_dir=tmp_path / "dist", tool_timeout=30.0)


@pytest.fixture
def runtime_config() -> ShipwrightRuntimeConfig:
    return ShipwrightRuntimeConfig(max_workers=2, tool_timeout=30.0)


@pytest.fixture(scope="session")
def keypair() -> KeyPair:
    """Unencrypted minisign key pair shared by the session."""
    return generate_key()


@pytest.fixture(scope="session")
def encrypted_keypair() -> KeyPair:
    return generate_key("correct horse", opslimit=TEST_OPSLIMIT, memlimit=TEST_MEMLIMIT)


# 🚢📦🔚
