# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Pydantic models for host configuration (~/.config/topobox/config.yml)."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class VagrantConfig(BaseModel):
    """Vagrant CLI settings."""

    binary: str = "vagrant"
    workdir: Optional[str] = None  # Where the Vagrantfile is written; defaults to .topobox/
    auto_add_box: bool = True


class DockerConfig(BaseModel):
    """Docker Engine settings."""

    base_url: Optional[str] = None  # None means docker.from_env()
    keepalive_command: str = "sleep infinity"


class RenderConfig(BaseModel):
    """Renderer behaviour."""

    parallel: bool = False
    max_workers: int = Field(default=4, ge=1)


class TimeoutsConfig(BaseModel):
    """Timeouts in seconds for external commands."""

    command: float = 1800.0
    status: float = 30.0


class HostConfigModel(BaseModel):
    """Main host configuration model."""

    version: str = "1.0"
    backend: Literal["vagrant", "docker", "dry-run"] = "vagrant"
    vagrant: VagrantConfig = Field(default_factory=VagrantConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)

    model_config = ConfigDict(extra="allow")  # Allow extra fields for forward compatibility
