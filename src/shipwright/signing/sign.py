#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Minisign signatures over artifact bytes.

A signature file holds the base64 of this box::

    untrusted comment: signature from shipwright secret key
    <base64: "Ed" | keynum[8] | ed25519(data)[64]>
    trusted comment: timestamp:<epoch>\tfile:<name>
    <base64: ed25519(signature[64] | trusted comment)>

Signatures are made over the raw bytes (legacy ``Ed``); ``verify_signature``
also accepts prehashed ``ED`` signatures from ``minisign -S``.
"""

from __future__ import annotations

from pathlib import Path
import time

import minisign
from provide.foundation import logger
from provide.foundation.file import atomic_write_text

from shipwright.config.defaults import SIGNATURE_UNTRUSTED_COMMENT
from shipwright.exceptions import SigningError
from shipwright.settings import SigningConfig
from shipwright.signing.keys import decode_private_key, decode_public_key, encode_box, key_id, parse_box


def signature_path_for(path: Path) -> Path:
    return path.with_name(f"{path.name}.sig")


def comment_safe(text: str) -> str:
    """Escape characters a minisign comment cannot carry (non-ASCII, control)."""
    return "".join(c if c == "\t" or " " <= c < "\x7f" else c.encode("unicode_escape").decode("ascii") for c in text)


def encode_signature(
    secret_key: minisign.SecretKey, data: bytes, file_name: str, timestamp: int | None = None
) -> str:
    """Base64 of the full signature box for ``data``."""
    stamp = int(time.time()) if timestamp is None else timestamp
    try:
        signature = secret_key.sign(
            data,
            prehash=False,
            untrusted_comment=SIGNATURE_UNTRUSTED_COMMENT,
            trusted_comment=f"timestamp:{stamp}\tfile:{comment_safe(file_name)}",
        )
    except minisign.Error as e:
        raise SigningError(f"Cannot sign {file_name}: {e}") from e
    return encode_box(bytes(signature))


def sign_file_with_secret_key(
    secret_key: minisign.SecretKey, path: Path, timestamp: int | None = None
) -> tuple[Path, str]:
    """Sign ``path`` and write ``<path>.sig``. Returns (signature path, encoded signature)."""
    encoded = encode_signature(secret_key, path.read_bytes(), path.name, timestamp)
    signature_path = signature_path_for(path)
    atomic_write_text(signature_path, encoded)
    logger.debug("✍️ Signed file", path=str(path), key_id=key_id(secret_key.get_public_key()))
    return signature_path, encoded


def sign_file(config: SigningConfig, path: Path, timestamp: int | None = None) -> tuple[Path, str]:
    secret_key = decode_private_key(config.private_key, config.password)
    return sign_file_with_secret_key(secret_key, path, timestamp)


def verify_signature(public_key: str, data: bytes, encoded_signature: str) -> bool:
    """Check a signature box against ``data``.

    Returns False when the signature does not match, including a signature
    made by another key. Malformed keys or signatures raise ``SigningError``.
    """
    key = decode_public_key(public_key)
    signature = parse_box(minisign.Signature, encoded_signature, "signature")
    try:
        key.verify(data, signature)
    except minisign.VerifyError as e:
        logger.debug("Signature rejected", key_id=key_id(key), reason=str(e))
        return False
    return True


# 🚢📦🔚
