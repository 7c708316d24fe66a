# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Utility functions for CLI helpers."""

import functools
import sys
from pathlib import Path
from typing import Callable, NamedTuple, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from topobox.errors import (
    ConfigError,
    HypervisorError,
    ImageNotFoundError,
    NetworkBindError,
    ProvisionError,
    TopoboxError,
)
from topobox.models.topology import TopologyModel

_console = Console()

ERROR_TITLES = {
    ConfigError: "Config Error",
    ImageNotFoundError: "Image Not Found",
    NetworkBindError: "Network Error",
    ProvisionError: "Provisioning Failed",
    HypervisorError: "Hypervisor Error",
}


class ProjectContext(NamedTuple):
    """Container for common project context values."""

    project_dir: Path
    topology_path: Path
    topology: TopologyModel


def _get_project_context(topology_file: Optional[Path] = None) -> ProjectContext:
    """Resolve and load the project's topology.

    Args:
        topology_file: Explicit topology path (--file). Looked up in the
            project directory when not given.

    Raises:
        ConfigError: If the topology cannot be found or is invalid.
    """
    from topobox.config import find_topology_file, load_topology
    from topobox.paths import ProjectPaths

    if topology_file is not None:
        topology_path = Path(topology_file).resolve()
        project_dir = topology_path.parent
    else:
        project_dir = ProjectPaths.resolve_project_dir()
        topology_path = find_topology_file(project_dir)

    return ProjectContext(
        project_dir=project_dir,
        topology_path=topology_path,
        topology=load_topology(topology_path),
    )


def show_error_panel(title: str, message: str, hint: str = None) -> None:
    """Display a formatted error panel.

    Args:
        title: Panel title (shown in red)
        message: Main error message
        hint: Optional hint text (shown with blue "Hint:" prefix)
    """
    content = escape(message)
    if hint:
        content += f"\n\n[blue]Hint:[/blue] {escape(hint)}"
    _console.print(Panel(content, title=f"[red]{title}[/red]", border_style="red"))


def error_title(exc: TopoboxError) -> str:
    for cls in type(exc).__mro__:
        if cls in ERROR_TITLES:
            return ERROR_TITLES[cls]
    return "Error"


def handle_errors(func: Callable) -> Callable:
    """Decorator that wraps CLI commands with standard error handling.

    Catches exceptions, prints error with nice formatting, and exits with code 1.
    Special handling for:
    - TopoboxError: Panel titled by error kind, with hint if provided
    - ClickException: Passed through to click
    - Other exceptions: Shows generic error panel

    Usage:
        @cli.command()
        @handle_errors
        def my_command():
            ...
    """
    import click

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SystemExit:
            raise
        except TopoboxError as exc:
            show_error_panel(error_title(exc), str(exc), exc.hint)
            sys.exit(1)
        except (click.ClickException, click.exceptions.Abort):
            raise
        except Exception as exc:
            show_error_panel("Error", str(exc))
            sys.exit(1)

    return wrapper
