# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Render a topology to a Vagrantfile.

Provisioning steps are not part of the generated file; the renderer runs
them one at a time through the hypervisor.
"""

from typing import List

from topobox.models.topology import (
    DockerProvider,
    LibvirtProvider,
    MachineSpec,
    TopologyModel,
    VirtualBoxProvider,
)

HEADER = "# Generated by topobox from topology '{name}'. Edit topology.yml instead.\n"


def ruby_str(value: str) -> str:
    """Quote a value as a Ruby double-quoted string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")
    return f'"{escaped}"'


def ruby_bool(value: bool) -> str:
    return "true" if value else "false"


def _network_lines(machine: MachineSpec) -> List[str]:
    lines = []
    if machine.private_ip is not None:
        lines.append(f'machine.vm.network "private_network", ip: {ruby_str(str(machine.private_ip))}')
    if machine.public_network.enabled:
        if machine.public_network.bridge:
            lines.append(
                f'machine.vm.network "public_network", bridge: {ruby_str(machine.public_network.bridge)}'
            )
        else:
            lines.append('machine.vm.network "public_network"')
    for port in machine.forwarded_ports:
        lines.append(
            f'machine.vm.network "forwarded_port", guest: {port.guest}, host: {port.host}, '
            f"protocol: {ruby_str(port.protocol)}"
        )
    return lines


def _provider_lines(topology: TopologyModel, machine: MachineSpec) -> List[str]:
    provider = machine.provider
    vm_name = f"{topology.name}-{machine.name}"

    if isinstance(provider, VirtualBoxProvider):
        return [
            'machine.vm.provider "virtualbox" do |vb|',
            f"  vb.name = {ruby_str(vm_name)}",
            f"  vb.memory = {machine.memory}",
            f"  vb.cpus = {machine.cpus}",
            f"  vb.gui = {ruby_bool(provider.gui)}",
            f"  vb.linked_clone = {ruby_bool(provider.linked_clone)}",
            "end",
        ]
    if isinstance(provider, LibvirtProvider):
        return [
            'machine.vm.provider "libvirt" do |lv|',
            f"  lv.driver = {ruby_str(provider.driver)}",
            f"  lv.memory = {machine.memory}",
            f"  lv.cpus = {machine.cpus}",
            "end",
        ]
    if isinstance(provider, DockerProvider):
        return [
            'machine.vm.provider "docker" do |d|',
            f"  d.name = {ruby_str(vm_name)}",
            f"  d.image = {ruby_str(machine.box)}",
            "  d.has_ssh = true",
            f"  d.create_args = [{ruby_str(f'--memory={machine.memory}m')}, "
            f"{ruby_str(f'--cpus={machine.cpus}')}]",
            "end",
        ]
    raise TypeError(f"Unsupported provider: {provider!r}")


def render_machine(topology: TopologyModel, machine: MachineSpec) -> str:
    """Render the config.vm.define block for a single machine."""
    body = []
    # The docker provider takes the image from d.image instead of a box
    if not isinstance(machine.provider, DockerProvider):
        body.append(f"machine.vm.box = {ruby_str(machine.box)}")
        if machine.box_version:
            body.append(f"machine.vm.box_version = {ruby_str(machine.box_version)}")
    body.append(f"machine.vm.hostname = {ruby_str(machine.effective_hostname)}")
    body.extend(_network_lines(machine))
    body.extend(_provider_lines(topology, machine))

    lines = [f"  config.vm.define {ruby_str(machine.name)} do |machine|"]
    lines.extend(f"    {line}" for line in body)
    lines.append("  end")
    return "\n".join(lines)


def render_vagrantfile(topology: TopologyModel) -> str:
    """Render the full Vagrantfile for a topology.

    Output is deterministic: machines appear in declared order and values are
    copied literally from the model.
    """
    blocks = [render_machine(topology, machine) for machine in topology.machines]
    return (
        HEADER.format(name=topology.name)
        + 'Vagrant.configure("2") do |config|\n'
        + '  config.vm.synced_folder ".", "/vagrant", disabled: true\n\n'
        + "\n\n".join(blocks)
        + "\nend\n"
    )
