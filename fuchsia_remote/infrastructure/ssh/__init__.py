"""
SSH services for remote devices.

This module provides the command runner and port forwarding built on the
system ssh and scp executables.
"""

from .command_runner import SSHCommandRunner
from .forwarder import ForwarderState, SSHPortForwarder, potentially_available_port
from .process import ProcessManager, ProcessResult

__all__ = [
    "SSHCommandRunner",
    "ForwarderState",
    "SSHPortForwarder",
    "potentially_available_port",
    "ProcessManager",
    "ProcessResult",
]
