# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Vagrant-backed hypervisor.

All work is delegated to the vagrant CLI, run from a working directory that
holds the Vagrantfile rendered from the topology.
"""

import re
import shlex
import socket
import subprocess
import threading
from pathlib import Path
from typing import List, Optional

from topobox.config import resolve_script_path
from topobox.errors import HypervisorError, ImageNotFoundError, NetworkBindError
from topobox.hypervisor.base import Hypervisor, StepResult
from topobox.models.topology import DockerProvider, InlineStep, MachineSpec, ProvisionStep, TopologyModel
from topobox.paths import GuestPaths
from topobox.utils.logging import get_logger
from topobox.vagrantfile import render_vagrantfile

logger = get_logger(__name__)

# Failure output from `vagrant up` that points at the network layer
NETWORK_FAILURE_PATTERN = re.compile(
    r"bridge|host-?only|public_network|private_network|forwarded port|port collision|"
    r"address already in use|network interface|ip address",
    re.IGNORECASE,
)


def parse_machine_readable(output: str, kind: str) -> List[tuple]:
    """Extract (target, data) pairs of one type from --machine-readable output.

    Lines look like: timestamp,target,type,data[,data...]
    """
    rows = []
    for line in output.splitlines():
        parts = line.split(",", 3)
        if len(parts) >= 4 and parts[2] == kind:
            rows.append((parts[1], parts[3]))
    return rows


def host_interfaces() -> List[str]:
    """Names of network interfaces on this host."""
    try:
        return [name for _, name in socket.if_nameindex()]
    except OSError:
        return []


class VagrantHypervisor(Hypervisor):
    """Drive machines through the vagrant CLI."""

    name = "vagrant"

    def __init__(
        self,
        workdir: Path,
        base_dir: Optional[Path] = None,
        vagrant_bin: str = "vagrant",
        timeout: float = 1800.0,
        status_timeout: float = 30.0,
        auto_add_box: bool = True,
    ):
        super().__init__(base_dir)
        self.workdir = Path(workdir)
        self.vagrant_bin = vagrant_bin
        self.timeout = timeout
        self.status_timeout = status_timeout
        self.auto_add_box = auto_add_box
        self._box_lock = threading.Lock()

    # ========== Process helpers ==========

    def _run(self, args: List[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        cmd = [self.vagrant_bin, *args]
        logger.debug(f"Running: {shlex.join(cmd)}")
        try:
            return subprocess.run(
                cmd,
                cwd=self.workdir,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError as e:
            raise HypervisorError(
                f"'{self.vagrant_bin}' not found",
                hint="Install Vagrant or set vagrant.binary in ~/.config/topobox/config.yml",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise HypervisorError(f"'{shlex.join(cmd)}' timed out after {e.timeout}s") from e

    @staticmethod
    def _output(result: subprocess.CompletedProcess) -> str:
        return ((result.stdout or "") + (result.stderr or "")).strip()

    @staticmethod
    def _last_line(text: str) -> str:
        lines = [line for line in text.splitlines() if line.strip()]
        return lines[-1].strip() if lines else ""

    # ========== Lifecycle ==========

    def prepare(self, topology: TopologyModel) -> None:
        """Write the Vagrantfile for the topology into the working directory."""
        super().prepare(topology)
        self.workdir.mkdir(parents=True, exist_ok=True)
        vagrantfile = self.workdir / "Vagrantfile"
        content = render_vagrantfile(topology)
        if not vagrantfile.exists() or vagrantfile.read_text() != content:
            vagrantfile.write_text(content)
            logger.debug(f"Wrote {vagrantfile}")

    def installed_boxes(self) -> List[str]:
        result = self._run(["box", "list", "--machine-readable"], timeout=self.status_timeout)
        if result.returncode != 0:
            raise HypervisorError(f"vagrant box list failed: {self._last_line(self._output(result))}")
        return [data for _, data in parse_machine_readable(result.stdout, "box-name")]

    def create_machine(self, machine: MachineSpec) -> None:
        # The docker provider pulls its image during `vagrant up`
        if isinstance(machine.provider, DockerProvider):
            return

        # Parallel renders share boxes; list and add under one lock
        with self._box_lock:
            if machine.box in self.installed_boxes():
                logger.debug(f"Box {machine.box} already installed", console_output=False)
                return

            if not self.auto_add_box:
                raise ImageNotFoundError(machine.name, machine.box, "box is not installed")

            logger.info(f"Adding box {machine.box} for {machine.name}")
            args = ["box", "add", machine.box, "--provider", machine.provider.type]
            if machine.box_version:
                args += ["--box-version", machine.box_version]
            result = self._run(args)
            if result.returncode != 0:
                raise ImageNotFoundError(machine.name, machine.box, self._last_line(self._output(result)))

    def attach_network(self, machine: MachineSpec) -> None:
        bridge = machine.public_network.bridge
        if machine.public_network.enabled and bridge:
            interfaces = host_interfaces()
            if interfaces and bridge not in interfaces:
                raise NetworkBindError(
                    machine.name,
                    f"bridge interface '{bridge}' does not exist on this host",
                    hint=f"Available interfaces: {', '.join(interfaces)}",
                )

        # `vagrant up` both boots the machine and applies the networks from the Vagrantfile
        result = self._run(["up", machine.name, "--no-provision"])
        if result.returncode != 0:
            output = self._output(result)
            if NETWORK_FAILURE_PATTERN.search(output):
                raise NetworkBindError(machine.name, self._last_line(output))
            raise HypervisorError(
                f"vagrant up failed: {self._last_line(output)}", machine=machine.name
            )

    def _ssh(self, machine: MachineSpec, command: str) -> StepResult:
        result = self._run(["ssh", machine.name, "-c", command])
        return StepResult(exit_code=result.returncode, output=self._output(result))

    def run_step(self, machine: MachineSpec, index: int, step: ProvisionStep) -> StepResult:
        if isinstance(step, InlineStep):
            command = step.inline
            if step.privileged:
                command = f"sudo -H bash -c {shlex.quote(command)}"
            return self._ssh(machine, command)

        local = resolve_script_path(step, self.base_dir)
        if not local.is_file():
            return StepResult(exit_code=127, output=f"script not found: {local}")

        remote = GuestPaths.step_script(index)
        upload = self._run(["upload", str(local), remote, machine.name])
        if upload.returncode != 0:
            return StepResult(exit_code=upload.returncode, output=self._output(upload))

        command = shlex.join(["bash", remote, *step.args])
        if step.privileged:
            command = f"sudo -H {command}"
        return self._ssh(machine, command)

    def status(self, machine: MachineSpec) -> str:
        result = self._run(["status", machine.name, "--machine-readable"], timeout=self.status_timeout)
        if result.returncode != 0:
            raise HypervisorError(
                f"vagrant status failed: {self._last_line(self._output(result))}",
                machine=machine.name,
            )
        states = [data for target, data in parse_machine_readable(result.stdout, "state") if target == machine.name]
        return states[-1] if states else "unknown"

    def exists(self, machine: MachineSpec) -> bool:
        return self.status(machine) not in ("not_created", "unknown")

    def destroy(self, machine: MachineSpec) -> None:
        result = self._run(["destroy", "-f", machine.name])
        if result.returncode != 0:
            raise HypervisorError(
                f"vagrant destroy failed: {self._last_line(self._output(result))}",
                machine=machine.name,
            )
