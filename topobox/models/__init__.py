# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Pydantic models for topology and host configuration."""

from topobox.models.host_config import HostConfigModel
from topobox.models.topology import (
    DockerProvider,
    ForwardedPort,
    InlineStep,
    LibvirtProvider,
    MachineSpec,
    NetworkConfig,
    ProvisionStep,
    Provider,
    PublicNetwork,
    ScriptStep,
    TopologyDefaults,
    TopologyModel,
    VirtualBoxProvider,
)

__all__ = [
    "DockerProvider",
    "ForwardedPort",
    "HostConfigModel",
    "InlineStep",
    "LibvirtProvider",
    "MachineSpec",
    "NetworkConfig",
    "ProvisionStep",
    "Provider",
    "PublicNetwork",
    "ScriptStep",
    "TopologyDefaults",
    "TopologyModel",
    "VirtualBoxProvider",
]
