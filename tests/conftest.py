# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Pytest fixtures for topobox tests.

These tests run on the HOST without Vagrant or Docker. Hypervisor calls go
to RecordingHypervisor, which counts invocations per machine and step.
"""

import os
import subprocess
import sys
import threading
from collections import Counter
from pathlib import Path

import pytest
import yaml

from topobox.hypervisor.base import Hypervisor, StepResult


def run_topobox(*args, cwd=None, check=True, capture_output=True, text=True):
    """Run topobox CLI via python module (tests actual code, not installed version).

    Uses: python -m topobox.cli instead of the 'topobox' command.
    """
    project_root = Path(__file__).parent.parent

    env = os.environ.copy()
    env["PYTHONPATH"] = str(project_root)

    return subprocess.run(
        [sys.executable, "-m", "topobox.cli", *args],
        cwd=cwd,
        check=check,
        capture_output=capture_output,
        text=text,
        env=env,
    )


class RecordingHypervisor(Hypervisor):
    """Hypervisor double that records every call.

    Args:
        fail_steps: {machine_name: {step_index: exit_code}} for steps that fail
        fail_create: {machine_name: exception} raised from create_machine
        fail_network: {machine_name: exception} raised from attach_network
        raise_steps: {machine_name: {step_index: exception}} raised from run_step
    """

    name = "recording"

    def __init__(self, fail_steps=None, fail_create=None, fail_network=None, raise_steps=None, base_dir=None):
        super().__init__(base_dir)
        self.fail_steps = fail_steps or {}
        self.raise_steps = raise_steps or {}
        self.fail_create = fail_create or {}
        self.fail_network = fail_network or {}
        self.calls = []
        self.step_counts = Counter()
        self.created = set()
        self.prepared = 0
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def prepare(self, topology):
        super().prepare(topology)
        self.prepared += 1

    def create_machine(self, machine):
        self._record("create", machine.name)
        if machine.name in self.fail_create:
            raise self.fail_create[machine.name]
        with self._lock:
            self.created.add(machine.name)

    def attach_network(self, machine):
        self._record("network", machine.name, machine.private_ip, tuple(machine.forwarded_ports))
        if machine.name in self.fail_network:
            raise self.fail_network[machine.name]

    def run_step(self, machine, index, step):
        self._record("step", machine.name, index)
        with self._lock:
            self.step_counts[(machine.name, index)] += 1
        error = self.raise_steps.get(machine.name, {}).get(index)
        if error is not None:
            raise error
        exit_code = self.fail_steps.get(machine.name, {}).get(index, 0)
        return StepResult(exit_code=exit_code, output=f"step {index} exit {exit_code}")

    def exists(self, machine):
        return machine.name in self.created

    def status(self, machine):
        return "running" if machine.name in self.created else "not_created"

    def destroy(self, machine):
        self._record("destroy", machine.name)
        with self._lock:
            self.created.discard(machine.name)

    def calls_for(self, name):
        return [call for call in self.calls if call[1] == name]


THREE_MACHINES = {
    "version": "1.0",
    "name": "multivms",
    "defaults": {"box": "ubuntu/jammy64", "memory": 512, "cpus": 1},
    "network": {"subnet": "192.168.56.0/24"},
    "machines": [
        {
            "name": "web01",
            "private_ip": "192.168.56.41",
            "forwarded_ports": [{"guest": 80, "host": 8080}],
            "provision": ["apt-get update -y", "apt-get install -y nginx"],
        },
        {
            "name": "web02",
            "private_ip": "192.168.56.42",
            "forwarded_ports": [{"guest": 80, "host": 8081}],
            "provision": ["apt-get update -y", "apt-get install -y nginx"],
        },
        {
            "name": "db01",
            "private_ip": "192.168.56.43",
            "memory": 1024,
            "provision": ["apt-get update -y", "apt-get install -y postgresql"],
        },
    ],
}


@pytest.fixture(autouse=True)
def isolated_host(tmp_path_factory, monkeypatch):
    """Point HOME at a temp dir so host config is never read from the real home."""
    from topobox.host_config import reset_config

    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("TOPOBOX_BACKEND", raising=False)
    monkeypatch.delenv("TOPOBOX_PROJECT_DIR", raising=False)
    reset_config()
    yield home
    reset_config()


@pytest.fixture
def topology_data():
    """A fresh deep copy of the three-machine example topology."""
    return yaml.safe_load(yaml.safe_dump(THREE_MACHINES))


@pytest.fixture
def write_topology(tmp_path):
    """Write a topology mapping (or raw text) to tmp_path/topology.yml."""

    def _write(data, name="topology.yml"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data)
        else:
            with open(path, "w") as f:
                yaml.safe_dump(data, f, sort_keys=False)
        return path

    return _write


@pytest.fixture
def three_machines(topology_data):
    from topobox.config import parse_topology

    return parse_topology(topology_data)


@pytest.fixture
def recorder():
    return RecordingHypervisor()
