#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Digest and sign finished artifacts, then aggregate the update manifest."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from attrs import define, field
import minisign
from provide.foundation import logger

from shipwright.models import PackageArtifact
from shipwright.settings import SigningConfig, UpdateManifestConfig
from shipwright.signing.checksums import digest_file
from shipwright.signing.keys import decode_private_key, key_id
from shipwright.signing.manifest import write_update_manifest
from shipwright.signing.sign import sign_file_with_secret_key


@define
class SigningEngine:
    """Runs after a builder has published its artifact.

    ``prepare`` decodes the secret key once so a wrong password fails the
    invocation before any format is built.
    """

    signing: SigningConfig | None = None
    manifest: UpdateManifestConfig | None = None
    timestamp: int | None = None
    _secret_key: minisign.SecretKey | None = field(default=None, init=False)

    def prepare(self) -> minisign.SecretKey | None:
        if self.signing is not None and self._secret_key is None:
            self._secret_key = decode_private_key(self.signing.private_key, self.signing.password)
            logger.debug("🔑 Signing key ready", key_id=key_id(self._secret_key.get_public_key()))
        return self._secret_key

    def finalize(self, artifact: PackageArtifact) -> PackageArtifact:
        """Attach digests and, when configured, a signature of the payload file.

        The payload is the file itself, or the update archive of a directory
        artifact such as the app bundle.
        """
        sha256, sha1 = digest_file(artifact.payload_path)
        artifact = artifact.with_digests(sha256, sha1)
        secret_key = self.prepare()
        if secret_key is None:
            return artifact

        signature_path, _ = sign_file_with_secret_key(secret_key, artifact.payload_path, self.timestamp)
        logger.debug("✍️ Signed artifact", path=str(artifact.payload_path), format=artifact.format.value)
        return artifact.with_signature(signature_path)

    def write_manifest(
        self, version: str, artifacts: Iterable[PackageArtifact], arch: str, now: datetime | None = None
    ) -> Path | None:
        if self.manifest is None:
            return None
        return write_update_manifest(self.manifest, version, artifacts, arch, now=now)


# 🚢📦🔚
