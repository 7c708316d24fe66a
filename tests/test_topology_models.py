# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tests for the topology pydantic models."""

from ipaddress import IPv4Address

import pytest
from pydantic import ValidationError

from topobox.models.topology import (
    DockerProvider,
    InlineStep,
    LibvirtProvider,
    MachineSpec,
    ScriptStep,
    TopologyModel,
    VirtualBoxProvider,
)


class TestMachineDefaults:
    """Test MachineSpec default values."""

    def test_memory_and_cpu_defaults(self):
        machine = MachineSpec(name="web01", box="ubuntu/jammy64")

        assert machine.memory == 512
        assert machine.cpus == 1
        assert machine.private_ip is None
        assert machine.public_network.enabled is False
        assert machine.forwarded_ports == ()
        assert machine.provision == ()
        assert isinstance(machine.provider, VirtualBoxProvider)

    def test_hostname_defaults_to_name(self):
        assert MachineSpec(name="web01", box="b").effective_hostname == "web01"
        assert MachineSpec(name="web01", box="b", hostname="www").effective_hostname == "www"

    def test_machine_is_immutable(self):
        machine = MachineSpec(name="web01", box="b")
        with pytest.raises(ValidationError):
            machine.memory = 2048


class TestMachineValidation:
    """Test MachineSpec field validation."""

    @pytest.mark.parametrize("name", ["web 01", "-web", "", "db/01"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValidationError):
            MachineSpec(name=name, box="b")

    def test_private_ip_must_be_ipv4(self):
        with pytest.raises(ValidationError):
            MachineSpec(name="web01", box="b", private_ip="192.168.56.300")

        machine = MachineSpec(name="web01", box="b", private_ip="192.168.56.41")
        assert machine.private_ip == IPv4Address("192.168.56.41")

    def test_port_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            MachineSpec(name="web01", box="b", forwarded_ports=[{"guest": 0, "host": 8080}])
        with pytest.raises(ValidationError):
            MachineSpec(name="web01", box="b", forwarded_ports=[{"guest": 80, "host": 70000}])

    def test_memory_floor(self):
        with pytest.raises(ValidationError):
            MachineSpec(name="web01", box="b", memory=32)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            MachineSpec(name="web01", box="b", ram=512)


class TestTaggedVariants:
    """Test provider, network and step shorthand normalization."""

    def test_provider_shorthand(self):
        assert isinstance(MachineSpec(name="a", box="b", provider="libvirt").provider, LibvirtProvider)
        assert isinstance(MachineSpec(name="a", box="b", provider="docker").provider, DockerProvider)

    def test_provider_mapping(self):
        machine = MachineSpec(name="a", box="b", provider={"type": "virtualbox", "gui": True})
        assert machine.provider.gui is True

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            MachineSpec(name="a", box="b", provider="hyperv")

    def test_public_network_bool(self):
        machine = MachineSpec(name="a", box="b", public_network=True)
        assert machine.public_network.enabled is True
        assert machine.public_network.bridge is None

    def test_public_network_bridge(self):
        machine = MachineSpec(name="a", box="b", public_network={"bridge": "eth0"})
        assert machine.public_network.enabled is True
        assert machine.public_network.bridge == "eth0"

    def test_step_shorthands(self):
        machine = MachineSpec(
            name="a",
            box="b",
            provision=[
                "echo one",
                {"inline": "echo two", "privileged": False},
                {"script": "scripts/setup.sh", "args": ["--fast"]},
                {"path": "scripts/other.sh"},
            ],
        )
        steps = machine.provision

        assert isinstance(steps[0], InlineStep) and steps[0].inline == "echo one"
        assert isinstance(steps[1], InlineStep) and steps[1].privileged is False
        assert isinstance(steps[2], ScriptStep) and steps[2].path == "scripts/setup.sh"
        assert steps[2].args == ("--fast",)
        assert isinstance(steps[3], ScriptStep) and steps[3].path == "scripts/other.sh"

    def test_step_order_preserved(self):
        commands = [f"echo {i}" for i in range(10)]
        machine = MachineSpec(name="a", box="b", provision=commands)
        assert [s.inline for s in machine.provision] == commands

    def test_loaded_sequences_cannot_be_mutated(self):
        machine = MachineSpec(
            name="a",
            box="b",
            forwarded_ports=[{"guest": 80, "host": 8080}],
            provision=["echo one", {"script": "setup.sh", "args": ["--fast"]}],
        )

        assert isinstance(machine.forwarded_ports, tuple)
        assert isinstance(machine.provision, tuple)
        assert isinstance(machine.provision[1].args, tuple)
        with pytest.raises(AttributeError):
            machine.provision.append(InlineStep(inline="echo two"))
        with pytest.raises(ValidationError):
            machine.provision = ()

    def test_unrecognized_step_rejected(self):
        with pytest.raises(ValidationError):
            MachineSpec(name="a", box="b", provision=[{"run": "echo"}])


class TestTopologyInvariants:
    """Test topology-wide uniqueness and subnet checks."""

    def _topology(self, machines, **extra):
        return TopologyModel.model_validate({"defaults": {"box": "b"}, "machines": machines, **extra})

    def test_defaults_applied(self):
        topology = TopologyModel.model_validate(
            {
                "defaults": {"box": "debian/bookworm64", "memory": 2048, "provider": "libvirt"},
                "machines": [{"name": "a"}, {"name": "b", "memory": 1024, "box": "other"}],
            }
        )
        a, b = topology.machines
        assert a.box == "debian/bookworm64" and a.memory == 2048
        assert isinstance(a.provider, LibvirtProvider)
        assert b.box == "other" and b.memory == 1024

    def test_empty_topology_rejected(self):
        with pytest.raises(ValidationError):
            self._topology([])

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate machine names: web"):
            self._topology([{"name": "web"}, {"name": "web"}])

    def test_duplicate_ips_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate private IPs"):
            self._topology(
                [
                    {"name": "a", "private_ip": "192.168.56.10"},
                    {"name": "b", "private_ip": "192.168.56.10"},
                ]
            )

    def test_duplicate_host_ports_rejected(self):
        with pytest.raises(ValidationError, match="8080/tcp"):
            self._topology(
                [
                    {"name": "a", "forwarded_ports": [{"guest": 80, "host": 8080}]},
                    {"name": "b", "forwarded_ports": [{"guest": 81, "host": 8080}]},
                ]
            )

    def test_same_host_port_different_protocol_allowed(self):
        topology = self._topology(
            [
                {"name": "a", "forwarded_ports": [{"guest": 53, "host": 5353, "protocol": "tcp"}]},
                {"name": "b", "forwarded_ports": [{"guest": 53, "host": 5353, "protocol": "udp"}]},
            ]
        )
        assert len(topology.machines) == 2

    def test_ip_outside_declared_subnet_rejected(self):
        with pytest.raises(ValidationError, match="outside subnet"):
            self._topology(
                [{"name": "a", "private_ip": "10.0.0.5"}],
                network={"subnet": "192.168.56.0/24"},
            )

    def test_machines_without_ip_allowed(self):
        topology = self._topology([{"name": "a"}, {"name": "b"}])
        assert topology.machine_names() == ["a", "b"]

    def test_get_machine(self):
        topology = self._topology([{"name": "a"}, {"name": "b"}])
        assert topology.get_machine("b").name == "b"
        assert topology.get_machine("c") is None

    def test_shared_prefixes(self):
        topology = self._topology(
            [
                {"name": "a", "private_ip": "192.168.56.10"},
                {"name": "b", "private_ip": "192.168.56.11"},
                {"name": "c", "private_ip": "192.168.57.10"},
            ]
        )
        assert [str(p) for p in topology.shared_prefixes()] == ["192.168.56.0/24", "192.168.57.0/24"]
