# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Machine lifecycle commands - up, provision, status, destroy.

Each command targets all machines, or only the names given as arguments.
"""

import sys
from typing import Optional, Tuple

import click

from topobox.cli import cli
from topobox.cli.helpers import (
    _complete_machine_name,
    _get_project_context,
    console,
    handle_errors,
    print_report,
)
from topobox.host_config import get_config
from topobox.hypervisor import BACKENDS, create_hypervisor
from topobox.renderer import RenderReport, TopologyRenderer, select_machines

backend_option = click.option(
    "--backend",
    type=click.Choice(BACKENDS),
    default=None,
    help="Hypervisor backend (default from ~/.config/topobox/config.yml).",
)

machines_argument = click.argument("machines", nargs=-1, shell_complete=_complete_machine_name)


def _build_renderer(pctx, backend: Optional[str], parallel: Optional[bool] = None, workers: Optional[int] = None):
    config = get_config()
    hypervisor = create_hypervisor(
        backend or config.backend,
        project_dir=pctx.project_dir,
        base_dir=pctx.topology_path.parent,
    )
    if parallel is None:
        parallel = config.get("render", "parallel", default=False)
    return TopologyRenderer(
        hypervisor,
        parallel=parallel,
        max_workers=workers or config.get("render", "max_workers", default=4),
    )


def _finish(report: RenderReport) -> None:
    print_report(report)
    if not report.ok:
        console.print(
            f"\n[red]{len(report.failures)} of {len(report.results)} machines failed[/red]"
        )
        sys.exit(1)


@cli.command()
@machines_argument
@backend_option
@click.option("--parallel/--sequential", default=None, help="Bring machines up concurrently.")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Thread pool size for --parallel.")
@click.option("--dry-run", is_flag=True, help="Log hypervisor calls without making them.")
@click.pass_obj
@handle_errors
def up(obj, machines: Tuple[str, ...], backend, parallel, workers, dry_run):
    """Create machines, attach networks and run provisioning steps.

    Examples:
        topobox up                # all machines
        topobox up web01 db01     # only these
        topobox up --dry-run      # show what would happen
    """
    pctx = _get_project_context(obj.get("topology_file"))
    renderer = _build_renderer(pctx, "dry-run" if dry_run else backend, parallel, workers)
    _finish(renderer.render(pctx.topology, machines))


@cli.command()
@machines_argument
@backend_option
@click.option("--parallel/--sequential", default=None, help="Provision machines concurrently.")
@click.pass_obj
@handle_errors
def provision(obj, machines: Tuple[str, ...], backend, parallel):
    """Re-run provisioning steps on existing machines."""
    pctx = _get_project_context(obj.get("topology_file"))
    renderer = _build_renderer(pctx, backend, parallel)
    _finish(renderer.provision(pctx.topology, machines))


@cli.command()
@machines_argument
@backend_option
@click.pass_obj
@handle_errors
def status(obj, machines: Tuple[str, ...], backend):
    """Show the state of each machine."""
    pctx = _get_project_context(obj.get("topology_file"))
    renderer = _build_renderer(pctx, backend, parallel=False)
    _finish(renderer.status(pctx.topology, machines))


@cli.command()
@machines_argument
@backend_option
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
@handle_errors
def destroy(obj, machines: Tuple[str, ...], backend, yes):
    """Tear down machines."""
    pctx = _get_project_context(obj.get("topology_file"))
    targets = select_machines(pctx.topology, machines)
    if not yes:
        names = ", ".join(m.name for m in targets)
        click.confirm(f"Destroy {names}?", abort=True)
    renderer = _build_renderer(pctx, backend, parallel=False)
    _finish(renderer.destroy(pctx.topology, machines))
