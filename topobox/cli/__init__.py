# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""topobox CLI package."""

from pathlib import Path

import click

from topobox import __version__
from topobox.utils.logging import configure_logging, log_startup_info


@click.group()
@click.version_option(version=__version__, prog_name="topobox")
@click.option(
    "-f",
    "--file",
    "topology_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Topology file (default: topology.yml in the project directory).",
)
@click.option("--debug", is_flag=True, help="Verbose output.")
@click.pass_context
def cli(ctx, topology_file, debug):
    """topobox - Bring up multi-machine topologies on Vagrant or Docker."""
    if debug:
        configure_logging(debug=True, force=True)
    log_startup_info()
    ctx.ensure_object(dict)
    ctx.obj["topology_file"] = topology_file


def main():
    """Main entry point."""
    cli(obj={})


from topobox.cli.commands import machines  # noqa: E402,F401
from topobox.cli.commands import topology  # noqa: E402,F401
