# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Hypervisor backends."""

from pathlib import Path
from typing import Optional

from topobox.hypervisor.base import Hypervisor, StepResult

BACKENDS = ("vagrant", "docker", "dry-run")


def create_hypervisor(backend: str, project_dir: Path, base_dir: Optional[Path] = None) -> Hypervisor:
    """Build a hypervisor for a backend name using host configuration.

    Args:
        backend: One of BACKENDS
        project_dir: Project directory (Vagrant working state lives under it)
        base_dir: Directory relative script paths resolve against

    Raises:
        ValueError: If the backend is unknown.
    """
    from topobox.host_config import get_config

    config = get_config()
    base_dir = base_dir or project_dir

    if backend == "vagrant":
        from topobox.hypervisor.vagrant import VagrantHypervisor

        return VagrantHypervisor(
            workdir=config.vagrant_workdir(project_dir),
            base_dir=base_dir,
            vagrant_bin=config.vagrant_binary,
            timeout=config.get("timeouts", "command", default=1800.0),
            status_timeout=config.get("timeouts", "status", default=30.0),
            auto_add_box=config.get("vagrant", "auto_add_box", default=True),
        )
    if backend == "docker":
        from topobox.hypervisor.docker import DockerHypervisor

        return DockerHypervisor(
            base_dir=base_dir,
            base_url=config.get("docker", "base_url"),
            keepalive_command=config.get("docker", "keepalive_command", default="sleep infinity"),
        )
    if backend == "dry-run":
        from topobox.hypervisor.dryrun import DryRunHypervisor

        return DryRunHypervisor(base_dir=base_dir)

    raise ValueError(f"Unknown backend '{backend}'. Choose from: {', '.join(BACKENDS)}")


__all__ = ["BACKENDS", "Hypervisor", "StepResult", "create_hypervisor"]
