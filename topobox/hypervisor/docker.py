# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Docker-backed hypervisor.

Each machine becomes a long-running container built from its box (used as
an image name). The private network is a user-defined bridge network with
the topology subnet; containers join it with their static IP. Containers
keep the default bridge so forwarded ports can be published, and
public_network with a bridge name joins that existing Docker network too.
"""

import threading
from ipaddress import IPv4Network
from typing import Optional

import docker
from docker.models.containers import Container
from docker.types import IPAMConfig, IPAMPool

from topobox.config import resolve_script_path
from topobox.errors import HypervisorError, ImageNotFoundError, NetworkBindError
from topobox.hypervisor.base import Hypervisor, StepResult
from topobox.models.topology import InlineStep, MachineSpec, ProvisionStep
from topobox.utils.logging import get_logger

logger = get_logger(__name__)

LABEL_TOPOLOGY = "topobox.topology"
LABEL_MACHINE = "topobox.machine"


class DockerHypervisor(Hypervisor):
    """Drive machines as Docker containers through the Docker SDK."""

    name = "docker"

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        base_dir=None,
        base_url: Optional[str] = None,
        keepalive_command: str = "sleep infinity",
    ):
        super().__init__(base_dir)
        self._client = client
        self.base_url = base_url
        self.keepalive_command = keepalive_command
        self._network_lock = threading.Lock()

    @property
    def client(self) -> docker.DockerClient:
        """Docker client, created on first use."""
        if self._client is None:
            try:
                if self.base_url:
                    self._client = docker.DockerClient(base_url=self.base_url)
                else:
                    self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise HypervisorError(f"Docker is not available: {e}") from e
        return self._client

    # ========== Naming ==========

    def container_name(self, machine: MachineSpec) -> str:
        return f"{self._topology_name()}-{machine.name}"

    def network_name(self) -> str:
        return f"{self._topology_name()}-private"

    def _topology_name(self) -> str:
        return self.topology.name if self.topology else "topology"

    def _get_container(self, machine: MachineSpec) -> Optional[Container]:
        try:
            return self.client.containers.get(self.container_name(machine))
        except docker.errors.NotFound:
            return None

    def _subnet_for(self, machine: MachineSpec) -> IPv4Network:
        if self.topology is not None and self.topology.network.subnet is not None:
            return self.topology.network.subnet
        return IPv4Network(f"{machine.private_ip}/24", strict=False)

    # ========== Lifecycle ==========

    def _ensure_image(self, machine: MachineSpec) -> None:
        try:
            self.client.images.get(machine.box)
            return
        except docker.errors.ImageNotFound:
            pass

        logger.info(f"Pulling image {machine.box} for {machine.name}")
        try:
            self.client.images.pull(machine.box)
        except (docker.errors.ImageNotFound, docker.errors.NotFound) as e:
            raise ImageNotFoundError(machine.name, machine.box, str(e)) from e
        except docker.errors.APIError as e:
            raise ImageNotFoundError(machine.name, machine.box, e.explanation or str(e)) from e

    def create_machine(self, machine: MachineSpec) -> None:
        self._ensure_image(machine)

        if self._get_container(machine) is not None:
            logger.debug(f"Reusing container {self.container_name(machine)}")
            return

        ports = {f"{port.guest}/{port.protocol}": port.host for port in machine.forwarded_ports}
        try:
            self.client.containers.create(
                machine.box,
                command=self.keepalive_command,
                name=self.container_name(machine),
                hostname=machine.effective_hostname,
                mem_limit=f"{machine.memory}m",
                nano_cpus=machine.cpus * 1_000_000_000,
                ports=ports,
                labels={LABEL_TOPOLOGY: self._topology_name(), LABEL_MACHINE: machine.name},
                detach=True,
            )
        except docker.errors.ImageNotFound as e:
            raise ImageNotFoundError(machine.name, machine.box, str(e)) from e
        except docker.errors.APIError as e:
            raise HypervisorError(
                f"Container creation failed: {e.explanation or e}", machine=machine.name
            ) from e

    def _ensure_private_network(self, machine: MachineSpec):
        name = self.network_name()
        with self._network_lock:
            try:
                return self.client.networks.get(name)
            except docker.errors.NotFound:
                pass
            ipam = IPAMConfig(pool_configs=[IPAMPool(subnet=str(self._subnet_for(machine)))])
            try:
                return self.client.networks.create(
                    name,
                    driver="bridge",
                    ipam=ipam,
                    labels={LABEL_TOPOLOGY: self._topology_name()},
                )
            except docker.errors.APIError as e:
                raise NetworkBindError(
                    machine.name, f"cannot create network {name}: {e.explanation or e}"
                ) from e

    def attach_network(self, machine: MachineSpec) -> None:
        container = self._get_container(machine)
        if container is None:
            raise HypervisorError("Container does not exist", machine=machine.name)

        connected = set(container.attrs.get("NetworkSettings", {}).get("Networks", {}).keys())

        if machine.private_ip is not None:
            network = self._ensure_private_network(machine)
            if network.name not in connected:
                try:
                    network.connect(container, ipv4_address=str(machine.private_ip))
                except docker.errors.APIError as e:
                    raise NetworkBindError(machine.name, e.explanation or str(e)) from e

        bridge = machine.public_network.bridge
        if machine.public_network.enabled and bridge and bridge not in connected:
            try:
                self.client.networks.get(bridge).connect(container)
            except docker.errors.NotFound as e:
                raise NetworkBindError(machine.name, f"Docker network '{bridge}' does not exist") from e
            except docker.errors.APIError as e:
                raise NetworkBindError(machine.name, e.explanation or str(e)) from e

        container.reload()
        if container.status != "running":
            try:
                container.start()
            except docker.errors.APIError as e:
                detail = e.explanation or str(e)
                if "port" in detail.lower() or "address already in use" in detail.lower():
                    raise NetworkBindError(machine.name, detail) from e
                raise HypervisorError(f"Container start failed: {detail}", machine=machine.name) from e

    def run_step(self, machine: MachineSpec, index: int, step: ProvisionStep) -> StepResult:
        container = self._get_container(machine)
        if container is None:
            raise HypervisorError("Container does not exist", machine=machine.name)

        if isinstance(step, InlineStep):
            command = ["sh", "-c", step.inline]
        else:
            local = resolve_script_path(step, self.base_dir)
            if not local.is_file():
                return StepResult(exit_code=127, output=f"script not found: {local}")
            # sh -c <text> <$0> <$1...>
            command = ["sh", "-c", local.read_text(), local.name, *step.args]

        result = container.exec_run(command, user="root" if step.privileged else "", stream=False, demux=False)
        output = result.output or b""
        return StepResult(exit_code=result.exit_code, output=output.decode("utf-8", errors="replace"))

    def status(self, machine: MachineSpec) -> str:
        container = self._get_container(machine)
        if container is None:
            return "not_created"
        return container.status

    def exists(self, machine: MachineSpec) -> bool:
        return self._get_container(machine) is not None

    def destroy(self, machine: MachineSpec) -> None:
        container = self._get_container(machine)
        if container is None:
            return
        try:
            container.remove(force=True)
        except docker.errors.APIError as e:
            raise HypervisorError(f"Container removal failed: {e.explanation or e}", machine=machine.name) from e

        with self._network_lock:
            try:
                network = self.client.networks.get(self.network_name())
                network.reload()
                if not network.containers:
                    network.remove()
            except docker.errors.NotFound:
                pass
            except docker.errors.APIError as e:
                logger.warning(f"Could not remove network {self.network_name()}: {e}")
