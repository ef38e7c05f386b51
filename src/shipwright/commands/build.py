#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Build command for the shipwright CLI."""

from __future__ import annotations

from pathlib import Path

from attrs import evolve
import click
from provide.foundation import logger
from provide.foundation.console import perr, pout

from shipwright.config import ShipwrightRuntimeConfig
from shipwright.exceptions import ConfigError, SigningError
from shipwright.models import PackageFormat
from shipwright.orchestrator import BuildReport
from shipwright.package import build_packages_from_file


@click.command("build")
@click.argument(
    "settings_file",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    required=True,
)
@click.option(
    "--format",
    "-f",
    "formats",
    multiple=True,
    type=click.Choice([f.value for f in PackageFormat], case_sensitive=False),
    help="Build only these formats (repeatable). Defaults to the formats in the settings file.",
)
@click.option(
    "--out-dir",
    "-o",
    type=click.Path(file_okay=False, resolve_path=True),
    help="Directory for the finished packages.",
)
@click.option(
    "--target",
    "target_arch",
    help="Target architecture (x86_64, aarch64, x86, armv7). Defaults to the host.",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    help="Formats built concurrently (overrides SHIPWRIGHT_MAX_WORKERS).",
)
@click.pass_context
def build_command(
    ctx: click.Context,
    settings_file: str,
    formats: tuple[str, ...],
    out_dir: str | None,
    target_arch: str | None,
    jobs: int | None,
) -> None:
    """Builds distributable packages described by SETTINGS_FILE (JSON or TOML)."""
    logger.debug("Build command started", settings=settings_file, formats=formats)
    runtime: ShipwrightRuntimeConfig = ctx.obj["config"]
    if jobs is not None:
        runtime = evolve(runtime, max_workers=jobs)

    try:
        report = build_packages_from_file(
            Path(settings_file),
            formats=formats or None,
            out_dir=Path(out_dir) if out_dir else None,
            target_arch=target_arch,
            runtime=runtime,
        )
    except (ConfigError, SigningError) as e:
        perr(f"❌ Build failed: {e}")
        raise click.Abort() from e

    _display_report(report)
    if not report.success:
        ctx.exit(1)


def _display_report(report: BuildReport) -> None:
    for result in report.results.values():
        label = result.format.value + (" (implicit)" if result.implicit else "")
        if result.succeeded and result.artifact is not None:
            pout(f"✅ {label}: {result.artifact.path}")
            pout(f"   sha256 {result.artifact.sha256}")
            if result.artifact.signature_path is not None:
                pout(f"   signature {result.artifact.signature_path}")
        elif result.succeeded:
            pout(f"🧹 {label}: removed, nothing depended on it")
        else:
            perr(f"❌ {label}: {result.reason}")

    if report.manifest_path is not None:
        pout(f"📝 Update manifest: {report.manifest_path}")
    if report.error is not None:
        perr(f"❌ {report.error}")
    pout(f"\n{len(report.artifacts)}/{len(report.requested)} formats built")


# 🚢📦🔚
