"""pcss settings management.

This module provides the settings file that carries the defaults every
pipeline reads: which host alias to connect to, the job and results file
conventions, and the tunnel/discovery parameters.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNTING_COMMAND = "sacct --format=JobName%22,Nodelist%8 --state=R -nPX"


@dataclass
class ConnectionConfig:
    """Which host to reach and how to resolve it."""

    host: str = "eagle"
    ssh_config: str = "~/.ssh/config"
    verify_host_key: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "host": self.host,
            "ssh_config": self.ssh_config,
            "verify_host_key": self.verify_host_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionConfig":
        """Create from dictionary."""
        return cls(
            host=data.get("host", "eagle"),
            ssh_config=data.get("ssh_config", "~/.ssh/config"),
            verify_host_key=data.get("verify_host_key", False),
        )


@dataclass
class JobsConfig:
    """Job file and results directory conventions."""

    job_extension: str = ".mx3"
    results_extension: str = ".zarr"
    log_filename: str = "slurm.logs"
    remote_root: str = "jobs"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "job_extension": self.job_extension,
            "results_extension": self.results_extension,
            "log_filename": self.log_filename,
            "remote_root": self.remote_root,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobsConfig":
        """Create from dictionary."""
        return cls(
            job_extension=_dotted(data.get("job_extension", ".mx3")),
            results_extension=_dotted(data.get("results_extension", ".zarr")),
            log_filename=data.get("log_filename", "slurm.logs"),
            remote_root=data.get("remote_root", "jobs"),
        )


@dataclass
class TunnelConfig:
    """Discovery and port-forwarding settings."""

    port_range_start: int = 30000
    port_range_end: int = 45000
    node_pattern: str = "gpu"
    metadata_path: str = "~/jobs/{name}.zarr/gui"
    accounting_command: str = DEFAULT_ACCOUNTING_COMMAND
    field_delimiter: str = "|"
    ssh_executable: str = "ssh"
    refresh_interval: float = 0.25

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "port_range_start": self.port_range_start,
            "port_range_end": self.port_range_end,
            "node_pattern": self.node_pattern,
            "metadata_path": self.metadata_path,
            "accounting_command": self.accounting_command,
            "field_delimiter": self.field_delimiter,
            "ssh_executable": self.ssh_executable,
            "refresh_interval": self.refresh_interval,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TunnelConfig":
        """Create from dictionary."""
        return cls(
            port_range_start=int(data.get("port_range_start", 30000)),
            port_range_end=int(data.get("port_range_end", 45000)),
            node_pattern=data.get("node_pattern", "gpu"),
            metadata_path=data.get("metadata_path", "~/jobs/{name}.zarr/gui"),
            accounting_command=data.get("accounting_command", DEFAULT_ACCOUNTING_COMMAND),
            field_delimiter=data.get("field_delimiter", "|"),
            ssh_executable=data.get("ssh_executable", "ssh"),
            refresh_interval=float(data.get("refresh_interval", 0.25)),
        )


@dataclass
class LoggingConfig:
    """Logging configuration settings."""

    level: str = "INFO"
    file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"level": self.level, "file": self.file}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(level=data.get("level", "INFO"), file=data.get("file"))


@dataclass
class PcssConfig:
    """Main pcss configuration class.

    Holds every tunable the deploy and tunnel pipelines use. Instances are
    built once at startup and passed down explicitly; nothing reads settings
    from module-level state.
    """

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    tunnel: TunnelConfig = field(default_factory=TunnelConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @staticmethod
    def search_paths() -> List[Path]:
        """Locations checked, in order, when no settings path is given."""
        return [
            Path.cwd() / "pcss.yaml",
            Path.home() / ".config" / "pcss" / "config.yaml",
        ]

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> "PcssConfig":
        """Load pcss configuration from file.

        Args:
            config_path: Path to a settings file. If None, searches standard
                locations and falls back to defaults.

        Returns:
            PcssConfig instance

        Raises:
            ConfigError: If an explicit path is missing or any file is invalid
        """
        if config_path is None:
            for path in cls.search_paths():
                if path.exists():
                    config_path = path
                    break
            else:
                logger.debug("No pcss settings file found, using defaults")
                return cls()
        else:
            config_path = Path(config_path).expanduser()
            if not config_path.exists():
                raise ConfigError(f"Settings file not found: {config_path}")

        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read settings file {config_path}: {e}") from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigError(f"Settings file {config_path} must contain a mapping")

        try:
            config = cls.from_dict(config_data)
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid settings in {config_path}: {e}") from e

        logger.debug(f"Loaded pcss settings from {config_path}")
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PcssConfig":
        """Create PcssConfig from dictionary.

        Args:
            data: Dictionary containing configuration data

        Returns:
            PcssConfig instance
        """
        return cls(
            connection=ConnectionConfig.from_dict(data.get("connection") or {}),
            jobs=JobsConfig.from_dict(data.get("jobs") or {}),
            tunnel=TunnelConfig.from_dict(data.get("tunnel") or {}),
            logging=LoggingConfig.from_dict(data.get("logging") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "connection": self.connection.to_dict(),
            "jobs": self.jobs.to_dict(),
            "tunnel": self.tunnel.to_dict(),
            "logging": self.logging.to_dict(),
        }

    def save(self, output_path: Union[str, Path]) -> None:
        """Save settings to a YAML file.

        Args:
            output_path: Path where to save the configuration
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2, sort_keys=False)

        logger.debug(f"Saved pcss settings to {output_path}")

    @staticmethod
    def create_default_config(output_path: Union[str, Path]) -> None:
        """Create a default settings file with comments.

        Args:
            output_path: Path where to save the default configuration
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        config_content = f"""# pcss settings file

# Cluster connection
connection:
  host: "eagle"  # Host alias as declared in the SSH client config
  ssh_config: "~/.ssh/config"  # SSH client config holding HostName/User/IdentityFile
  verify_host_key: false  # Check the server key against ~/.ssh/known_hosts

# Job file conventions
jobs:
  job_extension: ".mx3"  # Input files picked up from the input directory
  results_extension: ".zarr"  # Replaces the job extension to name the results directory
  log_filename: "slurm.logs"  # SLURM output file inside the results directory
  remote_root: "jobs"  # Default remote jobs root (relative to the remote home)

# Running job discovery and tunnels
tunnel:
  port_range_start: 30000  # First local port tried
  port_range_end: 45000  # Scan stops before this port
  node_pattern: "gpu"  # Only nodes whose name contains this expose a dashboard
  metadata_path: "~/jobs/{{name}}.zarr/gui"  # File holding <node>:<port>, {{name}} is the job name
  accounting_command: "{DEFAULT_ACCOUNTING_COMMAND}"
  field_delimiter: "|"
  ssh_executable: "ssh"
  refresh_interval: 0.25  # Dashboard redraw interval (seconds)

# Logging
logging:
  level: "INFO"  # DEBUG, INFO, WARNING, ERROR
  file: null  # Optional log file, always written at DEBUG
"""

        with open(output_path, "w") as f:
            f.write(config_content)

        logger.info(f"Created default pcss settings at {output_path}")

    def __repr__(self) -> str:
        return f"PcssConfig({self.to_dict()})"


def _dotted(extension: str) -> str:
    return extension if extension.startswith(".") else f".{extension}"


def load_config(config_path: Optional[Union[str, Path]] = None) -> PcssConfig:
    """Load pcss settings from file, see :meth:`PcssConfig.load`."""
    return PcssConfig.load(config_path)
