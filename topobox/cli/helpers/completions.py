# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Click shell completion functions."""

from click.shell_completion import CompletionItem


def _complete_machine_name(ctx, param, incomplete):
    """Complete machine names from the project's topology file."""
    from topobox.config import find_topology_file, load_topology
    from topobox.errors import ConfigError

    topology_file = (ctx.find_root().params or {}).get("topology_file")
    try:
        path = topology_file or find_topology_file()
        topology = load_topology(path)
    except ConfigError:
        return []

    return [
        CompletionItem(machine.name, help=machine.box)
        for machine in topology.machines
        if machine.name.startswith(incomplete)
    ]
