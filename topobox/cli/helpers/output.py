# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Rich tables for topologies and render reports."""

from rich.markup import escape
from rich.table import Table

from topobox.cli.helpers import console
from topobox.errors import ProvisionError
from topobox.models.topology import TopologyModel
from topobox.renderer import RenderReport

STATE_STYLES = {
    "running": "green",
    "not_created": "dim",
    "poweroff": "yellow",
    "exited": "yellow",
    "created": "yellow",
}


def print_topology(topology: TopologyModel) -> None:
    """Print the machines declared in a topology."""
    table = Table(title=f"Topology: {topology.name}")
    table.add_column("Machine", style="cyan", no_wrap=True)
    table.add_column("Box", style="magenta")
    table.add_column("Provider")
    table.add_column("Memory", justify="right")
    table.add_column("CPUs", justify="right")
    table.add_column("Private IP", style="blue")
    table.add_column("Public")
    table.add_column("Ports", style="yellow")
    table.add_column("Steps", justify="right")

    for machine in topology.machines:
        public = "-"
        if machine.public_network.enabled:
            public = machine.public_network.bridge or "✓"
        ports = ", ".join(f"{p.guest}→{p.host}/{p.protocol}" for p in machine.forwarded_ports)
        table.add_row(
            machine.name,
            machine.box,
            machine.provider.type,
            f"{machine.memory}MB",
            str(machine.cpus),
            str(machine.private_ip) if machine.private_ip else "-",
            public,
            ports or "-",
            str(len(machine.provision)),
        )

    console.print(table)
    if topology.network.subnet:
        console.print(f"[blue]Private subnet:[/blue] {topology.network.subnet}")


def print_report(report: RenderReport) -> None:
    """Print per-machine results of a render."""
    if report.operation == "status":
        table = Table(title="Machine Status")
        table.add_column("Machine", style="cyan", no_wrap=True)
        table.add_column("State")
        table.add_column("Detail")
        for result in report.results:
            if result.ok:
                style = STATE_STYLES.get(result.state or "", "white")
                table.add_row(result.name, f"[{style}]{result.state}[/{style}]", "-")
            else:
                table.add_row(result.name, "[red]error[/red]", escape(result.error.message))
        console.print(table)
        return

    table = Table(title=f"topobox {report.operation}")
    table.add_column("Machine", style="cyan", no_wrap=True)
    table.add_column("Result")
    table.add_column("Steps", justify="right")
    table.add_column("Detail")

    for result in report.results:
        if result.ok:
            table.add_row(result.name, "[green]✓ ok[/green]", str(result.steps_run), "-")
            continue
        error = result.error
        detail = error.message
        if isinstance(error, ProvisionError):
            detail = f"step {error.step_index}: exit code {error.exit_code}"
        table.add_row(result.name, "[red]✗ failed[/red]", str(result.steps_run), escape(detail))

    console.print(table)

    for result in report.failures:
        error = result.error
        if isinstance(error, ProvisionError) and error.output:
            tail = "\n".join(error.output.splitlines()[-10:])
            console.print(f"\n[red]{result.name} step {error.step_index} output:[/red]")
            console.print(tail, markup=False, highlight=False)
