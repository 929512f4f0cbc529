"""
Configuration models and data structures.

This module defines the configuration models used by the CLI and the
connection manager, providing type safety and validation for configuration
values.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class SSHSettings:
    """Remote device SSH settings."""
    address: Optional[str] = None
    interface: str = ""
    ssh_config_path: Optional[str] = None
    command_timeout: Optional[float] = 30.0


@dataclass
class VMServiceSettings:
    """VM service connection settings."""
    open_timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Fuchsia Remote"
    version: str = "0.1.0"
    debug: bool = False

    ssh: SSHSettings = field(default_factory=SSHSettings)
    vmservice: VMServiceSettings = field(default_factory=VMServiceSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Check every section, including values changed after construction.

        Raises:
            ValueError: If a timeout or the log level is invalid
        """
        self._validate_timeouts()
        self._validate_logging()

    def _validate_timeouts(self) -> None:
        """Validate timeout values."""
        if self.ssh.command_timeout is not None and self.ssh.command_timeout <= 0:
            raise ValueError(
                f"SSH command timeout must be positive, got {self.ssh.command_timeout}")
        if self.vmservice.open_timeout <= 0:
            raise ValueError(
                f"VM service open timeout must be positive, got {self.vmservice.open_timeout}")

    def _validate_logging(self) -> None:
        valid_levels = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if self.logging.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.logging.level}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        result = asdict(self)
        result.pop("config_file_path", None)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Fuchsia Remote'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            ssh=SSHSettings(**data.get('ssh', {})),
            vmservice=VMServiceSettings(**data.get('vmservice', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            config_file_path=data.get('config_file_path'),
        )
