"""
Logging infrastructure for the application.

This module provides centralized loguru configuration.
"""

from .setup import setup_logging

__all__ = [
    "setup_logging",
]
