#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Shipwright command-line interface entrypoint."""

from __future__ import annotations

from attrs import evolve
import click
from provide.foundation import CLIContext, TelemetryConfig, get_hub
from provide.foundation.utils import get_version

from shipwright.commands.build import build_command
from shipwright.commands.signer import signer_group
from shipwright.config import ShipwrightRuntimeConfig

__version__ = get_version("shipwright", caller_file=__file__)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__,
    "-V",
    "--version",
    prog_name="shipwright",
    message="%(prog)s version %(version)s",
)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Platform-native packager for compiled applications.

    Configure logging via environment variables:
    - SHIPWRIGHT_LOG_LEVEL: Set log level for Shipwright (trace, debug, info, warning, error)
    - SHIPWRIGHT_SETUP_LOG_LEVEL: Control Foundation's initialization logs
    - PROVIDE_LOG_FILE: Write logs to file
    """
    ctx.ensure_object(dict)

    shipwright_config = ShipwrightRuntimeConfig.from_env()
    cli_ctx = CLIContext.from_env()
    base_telemetry = TelemetryConfig.from_env()

    telemetry_config = evolve(
        base_telemetry,
        service_name="shipwright",
        logging=evolve(
            base_telemetry.logging,
            default_level=shipwright_config.log_level,  # type: ignore[arg-type]
        ),
    )

    hub = get_hub()
    hub.initialize_foundation(telemetry_config)

    ctx.obj["cli_context"] = cli_ctx
    ctx.obj["config"] = shipwright_config


cli.add_command(build_command, name="build")
cli.add_command(signer_group, name="signer")

main = cli

if __name__ == "__main__":
    cli()

# 🚢📦🔚
