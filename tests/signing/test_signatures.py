#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Tests for minisign signatures over files."""

from __future__ import annotations

import base64
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
import pytest

from shipwright.exceptions import SigningError
from shipwright.settings import SigningConfig
from shipwright.signing import (
    KeyPair,
    decode_private_key,
    generate_key,
    sign_file,
    sign_file_with_secret_key,
    verify_signature,
)


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "demo_1.2.3_amd64.AppImage"
    path.write_bytes(b"\x7fELF" + b"artifact-bytes" * 64)
    return path


def signature_lines(encoded: str) -> list[str]:
    return base64.b64decode(encoded).decode("utf-8").splitlines()


def public_key_line(keypair: KeyPair) -> bytes:
    return base64.b64decode(base64.b64decode(keypair.public_key).decode("utf-8").splitlines()[1])


class TestSignFile:
    @pytest.mark.unit
    @pytest.mark.security
    def test_sign_and_verify(self, keypair: KeyPair, artifact: Path) -> None:
        signature_path, encoded = sign_file(SigningConfig(private_key=keypair.secret_key), artifact)

        assert signature_path == artifact.with_name(f"{artifact.name}.sig")
        assert signature_path.read_text(encoding="utf-8") == encoded
        assert verify_signature(keypair.public_key, artifact.read_bytes(), encoded)

    @pytest.mark.unit
    def test_box_layout(self, keypair: KeyPair, artifact: Path) -> None:
        secret = decode_private_key(keypair.secret_key)
        _, encoded = sign_file_with_secret_key(secret, artifact, timestamp=1_700_000_000)

        lines = signature_lines(encoded)
        assert len(lines) == 4
        assert lines[0] == "untrusted comment: signature from shipwright secret key"
        assert lines[2] == f"trusted comment: timestamp:1700000000\tfile:{artifact.name}"
        block = base64.b64decode(lines[1])
        assert block[:2] == b"Ed"
        assert block[2:10] == public_key_line(keypair)[2:10]

    @pytest.mark.unit
    @pytest.mark.security
    def test_signatures_verify_with_plain_ed25519(self, keypair: KeyPair, artifact: Path) -> None:
        secret = decode_private_key(keypair.secret_key)
        _, encoded = sign_file_with_secret_key(secret, artifact, timestamp=1_700_000_000)
        lines = signature_lines(encoded)
        signature = base64.b64decode(lines[1])[10:]
        global_signature = base64.b64decode(lines[3])

        public = Ed25519PublicKey.from_public_bytes(public_key_line(keypair)[10:])

        public.verify(signature, artifact.read_bytes())
        public.verify(global_signature, signature + lines[2].removeprefix("trusted comment: ").encode("utf-8"))

    @pytest.mark.unit
    @pytest.mark.security
    def test_non_ascii_file_name(self, keypair: KeyPair, tmp_path: Path) -> None:
        artifact = tmp_path / "Démo_1.2.3_x64-setup.exe"
        artifact.write_bytes(b"MZ" + b"installer" * 32)

        _, encoded = sign_file(SigningConfig(private_key=keypair.secret_key), artifact, timestamp=1_700_000_000)

        assert signature_lines(encoded)[2] == "trusted comment: timestamp:1700000000\tfile:D\\xe9mo_1.2.3_x64-setup.exe"
        assert verify_signature(keypair.public_key, artifact.read_bytes(), encoded)

    @pytest.mark.unit
    @pytest.mark.security
    def test_encrypted_key_with_password(self, encrypted_keypair: KeyPair, artifact: Path) -> None:
        config = SigningConfig(private_key=encrypted_keypair.secret_key, password="correct horse")

        _, encoded = sign_file(config, artifact)

        assert verify_signature(encrypted_keypair.public_key, artifact.read_bytes(), encoded)

    @pytest.mark.unit
    @pytest.mark.security
    def test_wrong_password_writes_nothing(self, encrypted_keypair: KeyPair, artifact: Path) -> None:
        config = SigningConfig(private_key=encrypted_keypair.secret_key, password="nope")

        with pytest.raises(SigningError):
            sign_file(config, artifact)

        assert not artifact.with_name(f"{artifact.name}.sig").exists()


class TestVerifySignature:
    @pytest.fixture
    def encoded(self, keypair: KeyPair, artifact: Path) -> str:
        return sign_file(SigningConfig(private_key=keypair.secret_key), artifact)[1]

    @pytest.mark.unit
    @pytest.mark.security
    def test_tampered_data(self, keypair: KeyPair, artifact: Path, encoded: str) -> None:
        assert not verify_signature(keypair.public_key, artifact.read_bytes() + b"x", encoded)

    @pytest.mark.unit
    @pytest.mark.security
    def test_other_key(self, artifact: Path, encoded: str) -> None:
        other = generate_key()
        assert not verify_signature(other.public_key, artifact.read_bytes(), encoded)

    @pytest.mark.unit
    @pytest.mark.security
    def test_tampered_trusted_comment(self, keypair: KeyPair, artifact: Path, encoded: str) -> None:
        lines = signature_lines(encoded)
        lines[2] = lines[2].replace("file:", "file:evil-")
        forged = base64.b64encode(("\n".join(lines) + "\n").encode("utf-8")).decode("ascii")

        assert not verify_signature(keypair.public_key, artifact.read_bytes(), forged)

    @pytest.mark.unit
    def test_accepts_decoded_box(self, keypair: KeyPair, artifact: Path, encoded: str) -> None:
        box = base64.b64decode(encoded).decode("utf-8")
        assert verify_signature(keypair.public_key, artifact.read_bytes(), box)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "signature",
        [
            "garbage",
            base64.b64encode(b"untrusted comment: x\nAAAA\n").decode("ascii"),
        ],
    )
    def test_malformed_signature(self, keypair: KeyPair, signature: str) -> None:
        with pytest.raises(SigningError, match="Malformed signature"):
            verify_signature(keypair.public_key, b"data", signature)


# 🚢📦🔚
