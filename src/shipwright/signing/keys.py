#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Minisign key handling on top of ``py-minisign``.

Keys travel as base64 of the complete minisign key box (comment line plus
key line), which is also how they are stored on disk and in the
``SHIPWRIGHT_SIGN_PRIVATE_KEY`` environment variable. The plain box text and
a bare key line are accepted as well.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import TypeVar

from attrs import define, field
import minisign
from provide.foundation import logger
from provide.foundation.file import atomic_write_text
from provide.foundation.file.directory import ensure_parent_dir

from shipwright.config.defaults import DEFAULT_SECRET_KEY_PERMS, MINISIGN_MEMLIMIT, MINISIGN_OPSLIMIT
from shipwright.exceptions import SigningError, SigningKeyExists

UNTRUSTED_COMMENT_PREFIX = "untrusted comment:"

_Box = TypeVar("_Box", minisign.PublicKey, minisign.SecretKey, minisign.Signature)


@define(frozen=True)
class KeyPair:
    """A freshly generated key pair, both halves base64-encoded boxes."""

    secret_key: str = field(repr=False)
    public_key: str


def key_id(public_key: minisign.PublicKey) -> str:
    """Key ID the way the minisign CLI prints it."""
    raw = base64.b64decode(public_key.to_base64())
    return f"{int.from_bytes(raw[2:10], 'little'):016X}"


def encode_box(box: bytes) -> str:
    return base64.b64encode(box.rstrip(b"\n") + b"\n").decode("ascii")


def parse_box(kind: type[_Box], value: str, what: str) -> _Box:
    """Parse ``value`` as a minisign box of ``kind``.

    Raises:
        SigningError: ``value`` is neither a box, its base64, nor a key line
    """
    text = value.strip()
    try:
        if text.startswith(UNTRUSTED_COMMENT_PREFIX):
            return kind.from_bytes(text.encode("utf-8"))
        try:
            decoded = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SigningError(f"Malformed {what}: not base64") from e
        if decoded.startswith(UNTRUSTED_COMMENT_PREFIX.encode("ascii")):
            return kind.from_bytes(decoded)
        if kind is minisign.Signature:
            raise SigningError(f"Malformed {what}: missing comment lines")
        return kind.from_base64(text)
    except minisign.Error as e:
        raise SigningError(f"Malformed {what}: {e}") from e


def decode_private_key(key: str, password: str | None = None) -> minisign.SecretKey:
    """Decode and, when encrypted, decrypt a secret key.

    Raises:
        SigningError: malformed key or wrong password
    """
    secret = parse_box(minisign.SecretKey, key, "secret key")
    if not secret.is_encrypted():
        return secret
    if password is None:
        raise SigningError("Wrong password for the secret key: it is encrypted and no password was given")
    try:
        secret.decrypt(password)
    except minisign.Error as e:
        raise SigningError(f"Wrong password for the secret key ({e})") from e
    return secret


def decode_public_key(key: str) -> minisign.PublicKey:
    """Decode a public key box.

    Raises:
        SigningError: malformed key
    """
    return parse_box(minisign.PublicKey, key, "public key")


# =================================
# Generation and persistence
# =================================


def generate_key(
    password: str | None = None,
    opslimit: int = MINISIGN_OPSLIMIT,
    memlimit: int = MINISIGN_MEMLIMIT,
) -> KeyPair:
    """Generate a minisign key pair, encrypting the secret key when a password is given."""
    pair = minisign.KeyPair.generate()
    public = pair.public_key
    public.untrusted_comment = f"minisign public key {key_id(public)}"
    if password is not None:
        try:
            pair.secret_key.encrypt(password, opslimit=opslimit, memlimit=memlimit)
        except minisign.Error as e:
            raise SigningError(f"Cannot encrypt the secret key: {e}") from e
    logger.debug("🔑 Generated signing key", key_id=key_id(public), encrypted=password is not None)
    return KeyPair(secret_key=encode_box(bytes(pair.secret_key)), public_key=encode_box(bytes(public)))


def save_keypair(keypair: KeyPair, path: Path, force: bool = False) -> tuple[Path, Path]:
    """Write the secret key to ``path`` and the public key to ``path.pub``.

    Raises:
        SigningKeyExists: either file exists and ``force`` is not set
    """
    public_path = path.with_name(f"{path.name}.pub")
    for target in (path, public_path):
        if target.exists() and not force:
            raise SigningKeyExists(f"Key already exists: {target} (use force to overwrite)")

    ensure_parent_dir(path)
    atomic_write_text(path, keypair.secret_key)
    path.chmod(DEFAULT_SECRET_KEY_PERMS)
    atomic_write_text(public_path, keypair.public_key)
    logger.info(f"🔑 Saved signing key pair to {path}")
    return path, public_path


# 🚢📦🔚
