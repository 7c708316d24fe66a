# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Pydantic models for topology files (topology.yml)."""

import re
from collections import Counter
from ipaddress import IPv4Address, IPv4Network
from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Machine names end up in Vagrant define blocks, container names and hostnames
VALID_MACHINE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

DEFAULT_MEMORY_MB = 512
DEFAULT_CPUS = 1


class VirtualBoxProvider(BaseModel):
    """VirtualBox settings passed through Vagrant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["virtualbox"] = "virtualbox"
    gui: bool = False
    linked_clone: bool = False


class LibvirtProvider(BaseModel):
    """libvirt settings passed through Vagrant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["libvirt"] = "libvirt"
    driver: Literal["kvm", "qemu"] = "kvm"


class DockerProvider(BaseModel):
    """Docker provider: the box is used as an image name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["docker"] = "docker"


Provider = Annotated[
    Union[VirtualBoxProvider, LibvirtProvider, DockerProvider],
    Field(discriminator="type"),
]


class PublicNetwork(BaseModel):
    """Bridged public interface.

    YAML accepts either a boolean or a mapping:
        public_network: true
        public_network: {bridge: eth0}
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    bridge: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        if isinstance(data, bool):
            return {"enabled": data}
        if isinstance(data, str):
            return {"enabled": True, "bridge": data}
        if isinstance(data, dict) and "enabled" not in data:
            return {**data, "enabled": True}
        return data


class ForwardedPort(BaseModel):
    """A guest/host port pair, passed through unchanged."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    guest: int = Field(ge=1, le=65535)
    host: int = Field(ge=1, le=65535)
    protocol: Literal["tcp", "udp"] = "tcp"


class InlineStep(BaseModel):
    """Literal shell text executed on the machine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["inline"] = "inline"
    inline: str = Field(min_length=1)
    privileged: bool = True

    def describe(self) -> str:
        first = self.inline.strip().splitlines()[0] if self.inline.strip() else ""
        return first if len(first) <= 60 else first[:57] + "..."


class ScriptStep(BaseModel):
    """Script file on the host, uploaded and executed on the machine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["script"] = "script"
    path: str = Field(min_length=1)
    args: Tuple[str, ...] = ()
    privileged: bool = True

    def describe(self) -> str:
        return " ".join([self.path, *self.args])


ProvisionStep = Annotated[Union[InlineStep, ScriptStep], Field(discriminator="type")]


def _normalize_provider(provider: Any) -> Any:
    """Allow `provider: libvirt` as shorthand for `provider: {type: libvirt}`."""
    if isinstance(provider, str):
        return {"type": provider}
    return provider


def _normalize_step(step: Any) -> Any:
    """Accept shorthand step forms and tag them."""
    if isinstance(step, str):
        return {"type": "inline", "inline": step}
    if isinstance(step, dict) and "type" not in step:
        if "inline" in step:
            return {**step, "type": "inline"}
        if "script" in step:
            data = {k: v for k, v in step.items() if k != "script"}
            return {**data, "type": "script", "path": step["script"]}
        if "path" in step:
            return {**step, "type": "script"}
    return step


class MachineSpec(BaseModel):
    """One machine in a topology. Immutable once loaded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    box: str = Field(min_length=1)
    box_version: Optional[str] = None
    hostname: Optional[str] = None
    memory: int = Field(default=DEFAULT_MEMORY_MB, ge=64)
    cpus: int = Field(default=DEFAULT_CPUS, ge=1)
    provider: Provider = Field(default_factory=VirtualBoxProvider)
    private_ip: Optional[IPv4Address] = None
    public_network: PublicNetwork = Field(default_factory=PublicNetwork)
    forwarded_ports: Tuple[ForwardedPort, ...] = ()
    provision: Tuple[ProvisionStep, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name(cls, name: str) -> str:
        if not VALID_MACHINE_NAME.match(name):
            raise ValueError(
                f"Invalid machine name '{name}'. "
                "Must start alphanumeric with ._- allowed."
            )
        return name

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, provider: Any) -> Any:
        return _normalize_provider(provider)

    @field_validator("public_network", mode="before")
    @classmethod
    def normalize_public_network(cls, value: Any) -> Any:
        return {"enabled": False} if value is None else value

    @field_validator("provision", mode="before")
    @classmethod
    def normalize_steps(cls, steps: Any) -> Any:
        if steps is None:
            return ()
        if isinstance(steps, (list, tuple)):
            return [_normalize_step(step) for step in steps]
        return steps

    @property
    def effective_hostname(self) -> str:
        return self.hostname or self.name


class TopologyDefaults(BaseModel):
    """Values applied to machines that omit them."""

    model_config = ConfigDict(extra="forbid")

    box: Optional[str] = None
    box_version: Optional[str] = None
    memory: int = Field(default=DEFAULT_MEMORY_MB, ge=64)
    cpus: int = Field(default=DEFAULT_CPUS, ge=1)
    provider: Provider = Field(default_factory=VirtualBoxProvider)

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, provider: Any) -> Any:
        return _normalize_provider(provider)


class NetworkConfig(BaseModel):
    """Shared private network of a topology."""

    model_config = ConfigDict(extra="forbid")

    subnet: Optional[IPv4Network] = None


class TopologyModel(BaseModel):
    """Main topology model for topology.yml."""

    model_config = ConfigDict(extra="forbid")

    version: str = "1.0"
    name: str = "topology"
    defaults: TopologyDefaults = Field(default_factory=TopologyDefaults)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    machines: List[MachineSpec] = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def validate_topology_name(cls, name: str) -> str:
        if not VALID_MACHINE_NAME.match(name):
            raise ValueError(f"Invalid topology name '{name}'")
        return name

    @model_validator(mode="before")
    @classmethod
    def apply_defaults(cls, data: Any) -> Any:
        """Fill machine fields from the defaults section before validation."""
        if not isinstance(data, dict):
            return data
        defaults = data.get("defaults") or {}
        machines = data.get("machines")
        if not isinstance(defaults, dict) or not isinstance(machines, list):
            return data

        merged = []
        for machine in machines:
            if isinstance(machine, dict):
                machine = dict(machine)
                for key in ("box", "box_version", "memory", "cpus", "provider"):
                    if key not in machine and defaults.get(key) is not None:
                        machine[key] = defaults[key]
            merged.append(machine)
        return {**data, "machines": merged}

    @model_validator(mode="after")
    def check_unique(self) -> "TopologyModel":
        names = Counter(m.name for m in self.machines)
        duplicates = sorted(name for name, count in names.items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate machine names: {', '.join(duplicates)}")

        ips = Counter(str(m.private_ip) for m in self.machines if m.private_ip is not None)
        duplicates = sorted(ip for ip, count in ips.items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate private IPs: {', '.join(duplicates)}")

        host_ports = Counter(
            (p.host, p.protocol) for m in self.machines for p in m.forwarded_ports
        )
        duplicates = sorted(f"{port}/{proto}" for (port, proto), count in host_ports.items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate forwarded host ports: {', '.join(duplicates)}")

        subnet = self.network.subnet
        if subnet is not None:
            for machine in self.machines:
                if machine.private_ip is not None and machine.private_ip not in subnet:
                    raise ValueError(
                        f"Machine '{machine.name}' private IP {machine.private_ip} "
                        f"is outside subnet {subnet}"
                    )
        return self

    def machine_names(self) -> List[str]:
        return [m.name for m in self.machines]

    def get_machine(self, name: str) -> Optional[MachineSpec]:
        for machine in self.machines:
            if machine.name == name:
                return machine
        return None

    def shared_prefixes(self) -> List[IPv4Network]:
        """/24 prefixes used by private IPs, in order of first use."""
        prefixes: List[IPv4Network] = []
        for machine in self.machines:
            if machine.private_ip is None:
                continue
            prefix = IPv4Network(f"{machine.private_ip}/24", strict=False)
            if prefix not in prefixes:
                prefixes.append(prefix)
        return prefixes
