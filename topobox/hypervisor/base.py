# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Hypervisor control surface used by the renderer.

A Hypervisor only forwards parameters to an external tool. Implementations
raise ImageNotFoundError, NetworkBindError or HypervisorError; a non-zero
provisioning exit is returned as a StepResult and turned into a
ProvisionError by the renderer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from topobox.models.topology import MachineSpec, ProvisionStep, TopologyModel


@dataclass(frozen=True)
class StepResult:
    """Outcome of one provisioning step."""

    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Hypervisor(ABC):
    """Per-machine operations against an external virtualization tool."""

    name = "hypervisor"

    def __init__(self, base_dir: Optional[Path] = None):
        # Directory relative script paths resolve against
        self.base_dir = base_dir or Path.cwd()
        self.topology: Optional[TopologyModel] = None

    def prepare(self, topology: TopologyModel) -> None:
        """Called once before any per-machine operation."""
        self.topology = topology

    @abstractmethod
    def create_machine(self, machine: MachineSpec) -> None:
        """Create or reuse a machine from its base image with memory/CPU."""

    @abstractmethod
    def attach_network(self, machine: MachineSpec) -> None:
        """Attach private IP, bridged interface and forwarded ports."""

    @abstractmethod
    def run_step(self, machine: MachineSpec, index: int, step: ProvisionStep) -> StepResult:
        """Run one provisioning step on a machine."""

    @abstractmethod
    def exists(self, machine: MachineSpec) -> bool:
        """Whether the machine has been created."""

    @abstractmethod
    def status(self, machine: MachineSpec) -> str:
        """Short state string, e.g. running, poweroff, not_created."""

    @abstractmethod
    def destroy(self, machine: MachineSpec) -> None:
        """Tear the machine down. No-op if it does not exist."""
