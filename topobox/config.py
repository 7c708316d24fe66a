# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Loading topology files into validated models."""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from topobox.errors import ConfigError
from topobox.models.topology import ScriptStep, TopologyModel
from topobox.paths import ProjectPaths
from topobox.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_VERSION = "1.0"

TEMPLATE = """\
# topobox topology
version: "1.0"
name: multivms

defaults:
  box: ubuntu/jammy64
  provider: virtualbox
  memory: 512
  cpus: 1

# Shared host-only network. IPs outside the subnet are rejected.
network:
  subnet: 192.168.56.0/24

machines:
  - name: web01
    private_ip: 192.168.56.41
    forwarded_ports:
      - {guest: 80, host: 8080}
    provision:
      - apt-get update -y
      - apt-get install -y nginx

  - name: web02
    private_ip: 192.168.56.42
    forwarded_ports:
      - {guest: 80, host: 8081}
    provision:
      - apt-get update -y
      - apt-get install -y nginx

  - name: db01
    private_ip: 192.168.56.43
    memory: 1024
    provision:
      - apt-get update -y
      - apt-get install -y postgresql
"""


def _format_validation_error(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        message = err.get("msg", "invalid value")
        lines.append(f"{location}: {message}" if location else message)
    return "; ".join(lines)


def _machine_from_location(data: dict, exc: ValidationError) -> Optional[str]:
    """Best-effort machine name for a validation error under machines[N]."""
    for err in exc.errors():
        loc = err.get("loc", ())
        if len(loc) >= 2 and loc[0] == "machines" and isinstance(loc[1], int):
            machines = data.get("machines") or []
            if loc[1] < len(machines) and isinstance(machines[loc[1]], dict):
                return machines[loc[1]].get("name")
    return None


def parse_topology(data: object, path: Optional[Path] = None) -> TopologyModel:
    """Validate an already-parsed YAML document.

    Raises:
        ConfigError: If the document does not describe a valid topology.
    """
    if data is None:
        raise ConfigError("Topology file is empty", path=path)
    if not isinstance(data, dict):
        raise ConfigError("Topology must be a mapping at the top level", path=path)

    try:
        topology = TopologyModel.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            _format_validation_error(e),
            path=path,
            machine=_machine_from_location(data, e),
        ) from e

    if topology.version != SUPPORTED_VERSION:
        logger.warning(
            f"Unsupported topology version {topology.version}, expected {SUPPORTED_VERSION}"
        )

    if topology.network.subnet is None:
        prefixes = topology.shared_prefixes()
        if len(prefixes) > 1:
            logger.warning(
                "Private IPs span several networks "
                f"({', '.join(str(p) for p in prefixes)}); "
                "declare network.subnet to enforce one"
            )

    return topology


def load_topology(path: Union[str, Path]) -> TopologyModel:
    """Load and validate a topology file.

    Args:
        path: Path to a topology YAML file

    Returns:
        Validated TopologyModel

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError("Topology file not found", path=path, hint="Create one with: topobox init")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", path=path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read file: {e}", path=path) from e

    topology = parse_topology(data, path=path)
    logger.debug(f"Loaded topology '{topology.name}' with {len(topology.machines)} machines from {path}")
    return topology


def find_topology_file(project_dir: Optional[Path] = None) -> Path:
    """Locate the topology file for a project.

    Raises:
        ConfigError: If no topology file exists in the project.
    """
    project_dir = ProjectPaths.resolve_project_dir(project_dir)
    for candidate in ProjectPaths.topology_candidates(project_dir):
        if candidate.is_file():
            return candidate
    raise ConfigError(
        f"No topology file found in {project_dir}",
        hint="Create one with: topobox init",
    )


def resolve_script_path(step: ScriptStep, base_dir: Path) -> Path:
    """Resolve a script step path relative to the topology file's directory."""
    path = Path(step.path).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def write_template(path: Path, force: bool = False) -> bool:
    """Write a starter topology file.

    Returns:
        True if the file was written, False if it already existed.
    """
    if path.exists() and not force:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(TEMPLATE)
    return True
