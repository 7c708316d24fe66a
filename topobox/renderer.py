# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Topology renderer.

Walks the machines of a topology and, for each one, asks the hypervisor to
create the machine, attach its networks and run its provisioning steps in
order. A failure stops that machine only; the remaining machines are still
rendered and every failure is reported with the machine name and, for
provisioning, the failing step index.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from topobox.errors import ConfigError, HypervisorError, ProvisionError, TopoboxError
from topobox.hypervisor.base import Hypervisor
from topobox.models.topology import MachineSpec, TopologyModel
from topobox.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MachineResult:
    """Outcome of one machine within a render."""

    name: str
    ok: bool = True
    steps_run: int = 0
    error: Optional[TopoboxError] = None
    state: Optional[str] = None


@dataclass
class RenderReport:
    """Per-machine results, in declared topology order."""

    operation: str
    results: List[MachineResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failures(self) -> List[MachineResult]:
        return [r for r in self.results if not r.ok]

    @property
    def errors(self) -> List[TopoboxError]:
        return [r.error for r in self.results if r.error is not None]

    def get(self, name: str) -> Optional[MachineResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None


def select_machines(topology: TopologyModel, names: Optional[Iterable[str]] = None) -> List[MachineSpec]:
    """Resolve target machine names to specs, keeping declared order.

    Raises:
        ConfigError: If a name is not declared in the topology.
    """
    if not names:
        return list(topology.machines)

    wanted = list(dict.fromkeys(names))
    unknown = [name for name in wanted if topology.get_machine(name) is None]
    if unknown:
        raise ConfigError(
            f"Unknown machine(s): {', '.join(unknown)}",
            hint=f"Declared machines: {', '.join(topology.machine_names())}",
        )
    return [m for m in topology.machines if m.name in wanted]


class TopologyRenderer:
    """Render a topology onto a hypervisor."""

    def __init__(self, hypervisor: Hypervisor, parallel: bool = False, max_workers: Optional[int] = None):
        self.hypervisor = hypervisor
        self.parallel = parallel
        self.max_workers = max_workers

    # ========== Per-machine pipelines ==========

    def _provision_steps(self, machine: MachineSpec, result: MachineResult) -> None:
        log = logger.for_machine(machine.name)
        for index, step in enumerate(machine.provision):
            log.info(f"step {index} ({step.type}) {step.describe()}")
            try:
                outcome = self.hypervisor.run_step(machine, index, step)
            except TopoboxError as e:
                if e.step_index is None:
                    e.step_index = index
                raise
            except Exception as e:
                raise HypervisorError(
                    f"{type(e).__name__}: {e}", machine=machine.name, step_index=index
                ) from e
            if not outcome.ok:
                raise ProvisionError(machine.name, index, outcome.exit_code, outcome.output)
            result.steps_run += 1

    def _bring_up(self, machine: MachineSpec) -> MachineResult:
        log = logger.for_machine(machine.name)
        result = MachineResult(name=machine.name)
        log.info(f"creating from {machine.box}")
        self.hypervisor.create_machine(machine)
        log.info("attaching network")
        self.hypervisor.attach_network(machine)
        self._provision_steps(machine, result)
        log.success(f"up, {result.steps_run} steps run")
        return result

    def _reprovision(self, machine: MachineSpec) -> MachineResult:
        result = MachineResult(name=machine.name)
        if not self.hypervisor.exists(machine):
            raise TopoboxError(
                "Machine has not been created",
                machine=machine.name,
                hint=f"Bring it up first: topobox up {machine.name}",
            )
        self._provision_steps(machine, result)
        return result

    def _teardown(self, machine: MachineSpec) -> MachineResult:
        logger.for_machine(machine.name).info("destroying")
        self.hypervisor.destroy(machine)
        return MachineResult(name=machine.name, state="not_created")

    def _query(self, machine: MachineSpec) -> MachineResult:
        return MachineResult(name=machine.name, state=self.hypervisor.status(machine))

    # ========== Topology-level driving ==========

    def _guarded(self, action: Callable[[MachineSpec], MachineResult], machine: MachineSpec) -> MachineResult:
        """Run one machine pipeline, converting its error into a failed result."""
        try:
            return action(machine)
        except TopoboxError as e:
            if e.machine is None:
                e.machine = machine.name
            logger.for_machine(machine.name).error("failed", exc=e)
            return MachineResult(name=machine.name, ok=False, error=e)
        except Exception as e:
            # Unexpected tool/library failure: still one machine's failure
            error = HypervisorError(f"{type(e).__name__}: {e}", machine=machine.name)
            error.__cause__ = e
            logger.for_machine(machine.name).error("failed unexpectedly", exc=e)
            return MachineResult(name=machine.name, ok=False, error=error)

    def _run(
        self,
        operation: str,
        action: Callable[[MachineSpec], MachineResult],
        topology: TopologyModel,
        names: Optional[Iterable[str]],
    ) -> RenderReport:
        machines = select_machines(topology, names)
        self.hypervisor.prepare(topology)

        if self.parallel and len(machines) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = {m.name: pool.submit(self._guarded, action, m) for m in machines}
                by_name: Dict[str, MachineResult] = {name: f.result() for name, f in futures.items()}
            results = [by_name[m.name] for m in machines]
        else:
            results = [self._guarded(action, m) for m in machines]

        report = RenderReport(operation=operation, results=results)
        failed = len(report.failures)
        if failed:
            logger.warning(f"{operation}: {len(results) - failed}/{len(results)} machines succeeded")
        else:
            logger.debug(f"{operation}: all {len(results)} machines succeeded")
        return report

    def render(self, topology: TopologyModel, machines: Optional[Iterable[str]] = None) -> RenderReport:
        """Bring up machines: create, attach networks, provision.

        Args:
            topology: Validated topology
            machines: Names to target; None or empty means all machines

        Raises:
            ConfigError: If a targeted name is not declared (before any hypervisor call).
        """
        return self._run("up", self._bring_up, topology, machines)

    def provision(self, topology: TopologyModel, machines: Optional[Iterable[str]] = None) -> RenderReport:
        """Re-run provisioning steps on machines that already exist."""
        return self._run("provision", self._reprovision, topology, machines)

    def destroy(self, topology: TopologyModel, machines: Optional[Iterable[str]] = None) -> RenderReport:
        return self._run("destroy", self._teardown, topology, machines)

    def status(self, topology: TopologyModel, machines: Optional[Iterable[str]] = None) -> RenderReport:
        return self._run("status", self._query, topology, machines)
