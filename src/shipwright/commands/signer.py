#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Minisign key and signature commands for the shipwright CLI."""

from __future__ import annotations

from pathlib import Path

import click
from provide.foundation import logger
from provide.foundation.console import perr, pout

from shipwright.config import ShipwrightRuntimeConfig
from shipwright.exceptions import SigningError
from shipwright.settings import SigningConfig
from shipwright.signing import generate_key, save_keypair, sign_file, verify_signature


@click.group("signer")
def signer_group() -> None:
    """Manage minisign keys and update signatures."""


@signer_group.command("generate")
@click.option(
    "--write-keys",
    "-w",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Write the secret key here and the public key to <path>.pub.",
)
@click.option(
    "--password",
    "-p",
    help="Encrypt the secret key with this password. Without it the key is stored unencrypted.",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing key files.")
def generate_command(write_keys: str | None, password: str | None, force: bool) -> None:
    """Generates a minisign key pair for signing update artifacts."""
    logger.debug("Generating signing key", write_keys=write_keys, encrypted=password is not None)
    keypair = generate_key(password)

    if write_keys is None:
        pout("Secret key (keep it private):")
        pout(keypair.secret_key)
        pout("\nPublic key:")
        pout(keypair.public_key)
        return

    try:
        secret_path, public_path = save_keypair(keypair, Path(write_keys), force=force)
    except SigningError as e:
        perr(f"❌ {e}")
        raise click.Abort() from e

    pout(f"✅ Secret key written to {secret_path}")
    pout(f"✅ Public key written to {public_path}")
    pout(f"\nPublic key:\n{keypair.public_key}")


def _signing_config(private_key: str | None, private_key_path: str | None, password: str | None) -> SigningConfig:
    runtime = ShipwrightRuntimeConfig.from_env()
    if private_key_path is not None:
        private_key = Path(private_key_path).read_text(encoding="utf-8").strip()
    key = private_key or runtime.private_key
    if not key:
        raise click.UsageError(
            "No secret key: pass --private-key or --private-key-path, or set SHIPWRIGHT_SIGN_PRIVATE_KEY"
        )
    return SigningConfig(private_key=key, password=password if password is not None else runtime.private_key_password)


@signer_group.command("sign")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--private-key", "-k", help="Base64 secret key.")
@click.option(
    "--private-key-path",
    "-f",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="File holding the base64 secret key.",
)
@click.option("--password", "-p", help="Password of the secret key.")
def sign_command(file: str, private_key: str | None, private_key_path: str | None, password: str | None) -> None:
    """Signs FILE and writes FILE.sig next to it."""
    config = _signing_config(private_key, private_key_path, password)
    try:
        signature_path, encoded = sign_file(config, Path(file))
    except SigningError as e:
        perr(f"❌ Signing failed: {e}")
        raise click.Abort() from e

    pout(f"✅ Signature written to {signature_path}")
    pout(encoded)


@signer_group.command("verify")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--public-key", "-k", help="Base64 public key.")
@click.option(
    "--public-key-path",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="File holding the base64 public key (.pub).",
)
@click.option(
    "--signature",
    "-s",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Signature file (default: FILE.sig).",
)
def verify_command(file: str, public_key: str | None, public_key_path: str | None, signature: str | None) -> None:
    """Verifies the minisign signature of FILE."""
    file_path = Path(file)
    signature_path = Path(signature) if signature else file_path.with_name(f"{file_path.name}.sig")
    if public_key_path is not None:
        public_key = Path(public_key_path).read_text(encoding="utf-8")
    if not public_key:
        raise click.UsageError("Pass --public-key or --public-key-path")

    try:
        valid = verify_signature(
            public_key, file_path.read_bytes(), signature_path.read_text(encoding="utf-8")
        )
    except (SigningError, OSError) as e:
        perr(f"❌ Verification failed: {e}")
        raise click.Abort() from e

    if not valid:
        perr(f"❌ Signature does not match {file_path.name}")
        raise click.Abort()
    pout(f"✅ Signature valid for {file_path.name}")


# 🚢📦🔚
