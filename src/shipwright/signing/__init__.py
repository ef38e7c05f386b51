#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Checksums, minisign signatures and the update manifest."""

from __future__ import annotations

from shipwright.signing.checksums import digest_file
from shipwright.signing.engine import SigningEngine
from shipwright.signing.keys import (
    KeyPair,
    decode_private_key,
    decode_public_key,
    generate_key,
    key_id,
    save_keypair,
)
from shipwright.signing.manifest import UPDATE_PRIORITY, UpdateManifest, write_update_manifest
from shipwright.signing.sign import sign_file, sign_file_with_secret_key, verify_signature

__all__ = [
    "UPDATE_PRIORITY",
    "KeyPair",
    "SigningEngine",
    "UpdateManifest",
    "decode_private_key",
    "decode_public_key",
    "digest_file",
    "generate_key",
    "key_id",
    "save_keypair",
    "sign_file",
    "sign_file_with_secret_key",
    "verify_signature",
    "write_update_manifest",
]

# 🚢📦🔚
