"""
Infrastructure layer containing external dependencies and I/O operations.

This layer handles configuration, logging, the ssh/scp subprocesses, and the
VM service client.
"""

from .config.loader import ConfigLoader
from .logging.setup import setup_logging

__all__ = [
    "ConfigLoader",
    "setup_logging",
]
