# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Hypervisor that records calls instead of making them."""

import threading
from typing import List, Set, Tuple

from topobox.hypervisor.base import Hypervisor, StepResult
from topobox.models.topology import MachineSpec, ProvisionStep
from topobox.utils.logging import get_logger

logger = get_logger(__name__)


class DryRunHypervisor(Hypervisor):
    """Log each call and report success."""

    name = "dry-run"

    def __init__(self, base_dir=None):
        super().__init__(base_dir)
        self.calls: List[Tuple[str, str]] = []
        self._created: Set[str] = set()
        self._lock = threading.Lock()

    def _record(self, op: str, machine: MachineSpec, detail: str = "") -> None:
        with self._lock:
            self.calls.append((op, machine.name))
        logger.for_machine(machine.name).info(f"(dry-run) {op} {detail}".rstrip())

    def create_machine(self, machine: MachineSpec) -> None:
        self._record(
            "create",
            machine,
            f"box={machine.box} memory={machine.memory} cpus={machine.cpus} provider={machine.provider.type}",
        )
        with self._lock:
            self._created.add(machine.name)

    def attach_network(self, machine: MachineSpec) -> None:
        parts = []
        if machine.private_ip is not None:
            parts.append(f"private={machine.private_ip}")
        if machine.public_network.enabled:
            parts.append(f"public={machine.public_network.bridge or 'default'}")
        for port in machine.forwarded_ports:
            parts.append(f"forward={port.guest}->{port.host}/{port.protocol}")
        self._record("network", machine, " ".join(parts))

    def run_step(self, machine: MachineSpec, index: int, step: ProvisionStep) -> StepResult:
        self._record("provision", machine, f"#{index} {step.type}: {step.describe()}")
        return StepResult(exit_code=0)

    def exists(self, machine: MachineSpec) -> bool:
        # Provisioning a machine that was never brought up is still shown
        return True

    def status(self, machine: MachineSpec) -> str:
        with self._lock:
            return "running" if machine.name in self._created else "not_created"

    def destroy(self, machine: MachineSpec) -> None:
        self._record("destroy", machine)
        with self._lock:
            self._created.discard(machine.name)
