# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tests for CLI command execution (not just help)."""

import pytest
import yaml
from click.testing import CliRunner

from topobox.cli import cli


@pytest.fixture
def runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def project(tmp_path, monkeypatch, topology_data):
    """A project directory holding the three-machine topology."""
    project_dir = tmp_path / "lab"
    project_dir.mkdir()
    with open(project_dir / "topology.yml", "w") as f:
        yaml.safe_dump(topology_data, f, sort_keys=False)
    monkeypatch.chdir(project_dir)
    return project_dir


class TestInitCommand:
    """Test 'topobox init' command execution."""

    def test_init_creates_topology(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(cli, ["init"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert (tmp_path / "topology.yml").exists()
        assert "Created" in result.output

    def test_init_idempotent(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result1 = runner.invoke(cli, ["init"])
        assert result1.exit_code == 0

        result2 = runner.invoke(cli, ["init"])
        assert result2.exit_code == 0
        assert "already" in result2.output.lower()

    def test_init_then_validate(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        runner.invoke(cli, ["init"])
        result = runner.invoke(cli, ["validate"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert "valid" in result.output


class TestValidateCommand:
    """Test 'topobox validate' and 'topobox list'."""

    def test_validate_ok(self, runner, project):
        result = runner.invoke(cli, ["validate"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert "web01" in result.output
        assert "db01" in result.output

    def test_validate_duplicate_names(self, runner, project, topology_data):
        topology_data["machines"][1]["name"] = "web01"
        with open(project / "topology.yml", "w") as f:
            yaml.safe_dump(topology_data, f)

        result = runner.invoke(cli, ["validate"])

        assert result.exit_code == 1
        assert "Duplicate" in result.output

    def test_validate_no_topology(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(cli, ["validate"])

        assert result.exit_code == 1
        assert "No topology file" in result.output

    def test_explicit_file(self, runner, project, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(cli, ["--file", str(project / "topology.yml"), "list"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert "web02" in result.output


class TestVagrantfileCommand:
    """Test 'topobox vagrantfile'."""

    def test_prints_vagrantfile(self, runner, project):
        result = runner.invoke(cli, ["vagrantfile"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert 'config.vm.define "web01"' in result.output
        assert 'machine.vm.network "forwarded_port", guest: 80, host: 8080, protocol: "tcp"' in result.output

    def test_writes_output_file(self, runner, project):
        target = project / "out" / "Vagrantfile"

        result = runner.invoke(cli, ["vagrantfile", "-o", str(target)])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert 'config.vm.define "db01"' in target.read_text()


class TestMachineCommands:
    """Test up/provision/status/destroy against the dry-run backend."""

    def test_up_dry_run(self, runner, project):
        result = runner.invoke(cli, ["up", "--dry-run"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert "dry-run" in result.output
        assert "db01" in result.output

    def test_up_targets_named_machine(self, runner, project):
        result = runner.invoke(cli, ["up", "web02", "--dry-run"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert "web02" in result.output
        assert "web01" not in result.output

    def test_up_unknown_machine(self, runner, project):
        result = runner.invoke(cli, ["up", "nope", "--dry-run"])

        assert result.exit_code == 1
        assert "Unknown machine" in result.output

    def test_backend_from_env(self, runner, project, monkeypatch):
        monkeypatch.setenv("TOPOBOX_BACKEND", "dry-run")

        result = runner.invoke(cli, ["provision", "db01"])

        assert result.exit_code == 0, f"Failed: {result.output}"

    def test_status(self, runner, project):
        result = runner.invoke(cli, ["status", "--backend", "dry-run"])

        assert result.exit_code == 0, f"Failed: {result.output}"
        assert "not_created" in result.output

    def test_destroy_requires_confirmation(self, runner, project):
        result = runner.invoke(cli, ["destroy", "--backend", "dry-run"], input="n\n")

        assert result.exit_code == 1
        assert "Aborted" in result.output

    def test_destroy_yes(self, runner, project):
        result = runner.invoke(cli, ["destroy", "-y", "--backend", "dry-run", "web01"])

        assert result.exit_code == 0, f"Failed: {result.output}"

    def test_failure_exit_code(self, runner, project):
        from unittest.mock import patch

        from tests.conftest import RecordingHypervisor

        hypervisor = RecordingHypervisor(fail_steps={"db01": {1: 1}})
        with patch("topobox.cli.commands.machines.create_hypervisor", return_value=hypervisor):
            result = runner.invoke(cli, ["up"])

        assert result.exit_code == 1
        assert "1 of 3 machines failed" in result.output
        assert hypervisor.step_counts[("web01", 1)] == 1
