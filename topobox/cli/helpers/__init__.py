# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Shared helpers for the topobox CLI.

- completions.py: Click shell completions
- output.py: Rich tables for topologies and reports
- utils.py: Error handling and project context

All functions are re-exported here for convenience.
"""

from rich.console import Console

console = Console()

from topobox.cli.helpers.completions import _complete_machine_name  # noqa: E402
from topobox.cli.helpers.output import (  # noqa: E402
    print_report,
    print_topology,
)
from topobox.cli.helpers.utils import (  # noqa: E402
    ProjectContext,
    _get_project_context,
    handle_errors,
    show_error_panel,
)

__all__ = [
    "ProjectContext",
    "_complete_machine_name",
    "_get_project_context",
    "console",
    "handle_errors",
    "print_report",
    "print_topology",
    "show_error_panel",
]
