# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Error kinds raised while loading and rendering a topology.

Every error carries the offending machine name (when one is involved) and,
for provisioning failures, the index of the failing step. These bubble up to
the renderer, which records them per machine, and finally to handle_errors in
the CLI which formats them as panels.
"""

from typing import Optional


class TopoboxError(Exception):
    """Base class for all topobox errors."""

    def __init__(
        self,
        message: str,
        machine: Optional[str] = None,
        step_index: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.machine = machine
        self.step_index = step_index
        self.hint = hint

    def __str__(self) -> str:
        parts = []
        if self.machine is not None:
            parts.append(f"[{self.machine}]")
        if self.step_index is not None:
            parts.append(f"step {self.step_index}:")
        parts.append(self.message)
        return " ".join(parts)


class ConfigError(TopoboxError):
    """Raised when a topology file is malformed or violates uniqueness."""

    def __init__(self, message: str, path=None, machine: Optional[str] = None, hint: str = None):
        super().__init__(message, machine=machine, hint=hint)
        self.path = path

    def __str__(self) -> str:
        text = super().__str__()
        if self.path is not None:
            return f"{self.path}: {text}"
        return text


class ImageNotFoundError(TopoboxError):
    """Raised when a machine's base image cannot be resolved or fetched."""

    def __init__(self, machine: str, image: str, detail: str = ""):
        message = f"Base image '{image}' is not available"
        if detail:
            message += f": {detail}"
        super().__init__(message, machine=machine, hint="Check the box name or add it with: vagrant box add " + image)
        self.image = image


class NetworkBindError(TopoboxError):
    """Raised when a network interface cannot be attached to a machine."""

    def __init__(self, machine: str, detail: str, hint: str = None):
        super().__init__(f"Network attach failed: {detail}", machine=machine, hint=hint)


class ProvisionError(TopoboxError):
    """Raised when a provisioning step exits non-zero."""

    def __init__(self, machine: str, step_index: int, exit_code: int, output: str = ""):
        super().__init__(
            f"Provisioning step exited with code {exit_code}",
            machine=machine,
            step_index=step_index,
            hint="Fix the step and re-run: topobox provision " + machine,
        )
        self.exit_code = exit_code
        self.output = output


class HypervisorError(TopoboxError):
    """Raised when the external virtualization tool fails outside the cases above."""
