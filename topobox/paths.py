# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Centralized path definitions for topobox.

Paths are organized by context:

- HostPaths: Paths on the host machine (where the topobox CLI runs)
- ProjectPaths: Paths relative to a project directory
- GuestPaths: Paths inside provisioned machines

Usage:
    from topobox.paths import HostPaths, ProjectPaths

    config_file = HostPaths.config_file()
    topology = ProjectPaths.topology_file(project_dir)
"""

import os
from pathlib import Path
from typing import Optional


class HostPaths:
    """Paths on the host machine where the topobox CLI runs."""

    @staticmethod
    def config_dir() -> Path:
        """~/.config/topobox/"""
        return Path.home() / ".config" / "topobox"

    @staticmethod
    def config_file() -> Path:
        """~/.config/topobox/config.yml"""
        return HostPaths.config_dir() / "config.yml"


class ProjectPaths:
    """Paths relative to a project directory."""

    TOPOBOX_DIR = ".topobox"
    TOPOLOGY_FILENAMES = ("topology.yml", "topology.yaml")

    @staticmethod
    def resolve_project_dir(project_dir: Optional[Path] = None) -> Path:
        """Resolve the project directory.

        Resolution order:
        1. Explicit project_dir argument (if provided)
        2. TOPOBOX_PROJECT_DIR environment variable
        3. Current working directory
        """
        if project_dir is not None:
            return Path(project_dir).resolve()

        env_project_dir = os.getenv("TOPOBOX_PROJECT_DIR")
        if env_project_dir:
            return Path(env_project_dir).resolve()

        return Path.cwd().resolve()

    @staticmethod
    def topobox_dir(project_dir: Path) -> Path:
        """<project>/.topobox/"""
        return project_dir / ProjectPaths.TOPOBOX_DIR

    @staticmethod
    def topology_candidates(project_dir: Path) -> list[Path]:
        """Topology file locations, in lookup order."""
        candidates = [project_dir / name for name in ProjectPaths.TOPOLOGY_FILENAMES]
        candidates += [
            ProjectPaths.topobox_dir(project_dir) / name
            for name in ProjectPaths.TOPOLOGY_FILENAMES
        ]
        return candidates

    @staticmethod
    def topology_file(project_dir: Path) -> Path:
        """Default topology path for a new project."""
        return project_dir / ProjectPaths.TOPOLOGY_FILENAMES[0]

    @staticmethod
    def vagrant_dir(project_dir: Path) -> Path:
        """<project>/.topobox/vagrant/ - rendered Vagrantfile and Vagrant state."""
        return ProjectPaths.topobox_dir(project_dir) / "vagrant"

    @staticmethod
    def logs_dir(project_dir: Path) -> Path:
        """<project>/.topobox/logs/"""
        return ProjectPaths.topobox_dir(project_dir) / "logs"


class GuestPaths:
    """Paths inside provisioned machines."""

    # Scripts are uploaded here before execution
    UPLOAD_DIR = "/tmp"

    @staticmethod
    def step_script(step_index: int) -> str:
        return f"{GuestPaths.UPLOAD_DIR}/topobox-step-{step_index}.sh"
