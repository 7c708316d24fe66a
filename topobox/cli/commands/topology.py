# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Topology file commands - init, validate, list, vagrantfile."""

from pathlib import Path
from typing import Optional

import click

from topobox.cli import cli
from topobox.cli.helpers import (
    _get_project_context,
    console,
    handle_errors,
    print_topology,
)
from topobox.config import write_template
from topobox.paths import ProjectPaths
from topobox.vagrantfile import render_vagrantfile


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing topology file.")
@click.pass_obj
@handle_errors
def init(obj, force: bool):
    """Create a starter topology.yml in the project directory.

    The template declares three machines (web01, web02, db01) on the
    192.168.56.0/24 host-only network.
    """
    path = obj.get("topology_file") or ProjectPaths.topology_file(ProjectPaths.resolve_project_dir())
    if write_template(Path(path), force=force):
        console.print(f"[green]✓ Created {path}[/green]")
        console.print("\n[blue]Next:[/blue] topobox validate && topobox up")
    else:
        console.print(f"[yellow]{path} already exists[/yellow] (use --force to overwrite)")


@cli.command()
@click.pass_obj
@handle_errors
def validate(obj):
    """Load the topology and check names, IPs and ports are unique."""
    pctx = _get_project_context(obj.get("topology_file"))
    print_topology(pctx.topology)
    console.print(f"[green]✓ {pctx.topology_path} is valid[/green]")


@cli.command("list")
@click.pass_obj
@handle_errors
def list_machines(obj):
    """List machines declared in the topology."""
    pctx = _get_project_context(obj.get("topology_file"))
    print_topology(pctx.topology)


@cli.command()
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to this file instead of stdout.",
)
@click.pass_obj
@handle_errors
def vagrantfile(obj, output: Optional[Path]):
    """Print the Vagrantfile generated from the topology."""
    pctx = _get_project_context(obj.get("topology_file"))
    content = render_vagrantfile(pctx.topology)
    if output is None:
        click.echo(content, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content)
    console.print(f"[green]✓ Wrote {output}[/green]")
