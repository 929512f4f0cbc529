"""
Tests for the SSH command runner.

The runner is driven with a fake process manager so that only the argument
vectors and result handling are exercised.
"""

import pytest
from typing import List

from fuchsia_remote.core.exceptions import (
    CommandTimeoutError, InvalidAddressError, RemoteCommandError
)
from fuchsia_remote.infrastructure.ssh.command_runner import SSHCommandRunner
from fuchsia_remote.infrastructure.ssh.process import ProcessResult


class TestSSHCommandRunnerConstruction:
    """Test runner construction."""

    def test_invalid_address_fails_fast(self) -> None:
        with pytest.raises(InvalidAddressError):
            SSHCommandRunner(address="fuchsia-device")

    def test_defaults(self) -> None:
        runner = SSHCommandRunner(address="192.168.1.5")
        assert runner.interface == ""
        assert runner.ssh_config_path is None
        assert runner.timeout is None


class TestSSHArguments:
    """Test ssh argument building."""

    def test_ipv4_has_no_ipv6_flag(self) -> None:
        runner = SSHCommandRunner(address="192.168.1.5")
        assert runner.build_ssh_args("ls /tmp") == ["ssh", "192.168.1.5", "ls /tmp"]

    def test_ipv4_ignores_interface(self) -> None:
        runner = SSHCommandRunner(address="192.168.1.5", interface="eth0")
        args = runner.build_ssh_args("ls")
        assert "-6" not in args
        assert "192.168.1.5" in args
        assert "192.168.1.5%eth0" not in args

    def test_ipv6_with_interface(self) -> None:
        runner = SSHCommandRunner(address="fe80::1", interface="eth0")
        assert runner.build_ssh_args("ls") == ["ssh", "-6", "fe80::1%eth0", "ls"]

    def test_ipv6_without_interface(self) -> None:
        runner = SSHCommandRunner(address="fe80::1")
        assert runner.build_ssh_args("ls") == ["ssh", "-6", "fe80::1", "ls"]

    def test_config_path(self) -> None:
        runner = SSHCommandRunner(address="fe80::1", interface="eth0", ssh_config_path="/out/ssh_config")
        assert runner.build_ssh_args("ls") == [
            "ssh", "-F", "/out/ssh_config", "-6", "fe80::1%eth0", "ls"
        ]


class TestSCPArguments:
    """Test scp argument building."""

    def test_ipv4(self) -> None:
        runner = SSHCommandRunner(address="10.0.0.2", ssh_config_path="cfg")
        assert runner.build_scp_args("app.far", "/tmp") == [
            "scp", "-F", "cfg", "-r", "app.far", "10.0.0.2:/tmp"
        ]

    def test_ipv6_with_interface(self) -> None:
        runner = SSHCommandRunner(address="fe80::1", interface="en0")
        assert runner.build_scp_args("build", "/data") == [
            "scp", "-r", "build", "-6", "fe80::1%en0:/data"
        ]


class TestRun:
    """Test command execution."""

    @pytest.mark.asyncio
    async def test_run_splits_output(self, process_manager) -> None:
        process_manager.handler = lambda args: ProcessResult(args, 0, "31782\n1234\n", "")
        runner = SSHCommandRunner(address="192.168.1.5", process_manager=process_manager, timeout=5.0)

        lines = await runner.run("ls /tmp/dart.services")

        assert lines == ["31782", "1234", ""]
        args, timeout = process_manager.run_calls[0]
        assert args == ["ssh", "192.168.1.5", "ls /tmp/dart.services"]
        assert timeout == 5.0

    @pytest.mark.asyncio
    async def test_run_nonzero_exit_raises(self, process_manager) -> None:
        process_manager.handler = lambda args: ProcessResult(args, 255, "partial", "Connection refused")
        runner = SSHCommandRunner(address="192.168.1.5", process_manager=process_manager)

        with pytest.raises(RemoteCommandError) as exc_info:
            await runner.run("ls /tmp/dart.services")

        error = exc_info.value
        assert error.command == "ls /tmp/dart.services"
        assert error.exit_code == 255
        assert error.stdout == "partial"
        assert error.stderr == "Connection refused"
        assert "Command failed" in str(error)

    @pytest.mark.asyncio
    async def test_run_timeout_propagates(self) -> None:
        class HangingProcessManager:
            async def run(self, args: List[str], timeout=None) -> ProcessResult:
                raise CommandTimeoutError(" ".join(args), timeout)

        runner = SSHCommandRunner(address="192.168.1.5", process_manager=HangingProcessManager(), timeout=0.1)

        with pytest.raises(CommandTimeoutError):
            await runner.run("sleep 100")

    @pytest.mark.asyncio
    async def test_copy(self, process_manager) -> None:
        process_manager.handler = lambda args: ProcessResult(args, 0, "done\n", "")
        runner = SSHCommandRunner(address="fe80::1", interface="eth0", process_manager=process_manager)

        lines = await runner.copy("out/app", "/tmp")

        assert lines == ["done", ""]
        assert process_manager.run_calls[0][0] == ["scp", "-r", "out/app", "-6", "fe80::1%eth0:/tmp"]

    @pytest.mark.asyncio
    async def test_copy_failure_raises(self, process_manager) -> None:
        process_manager.handler = lambda args: ProcessResult(args, 1, "", "No such file")
        runner = SSHCommandRunner(address="10.0.0.2", process_manager=process_manager)

        with pytest.raises(RemoteCommandError, match="No such file"):
            await runner.copy("missing", "/tmp")
