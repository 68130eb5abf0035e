"""pcss - deploy simulation input files to an HPC cluster and tunnel into running jobs.

This package provides:
- An SSH session wrapper for remote commands and uploads
- The deploy-and-submit pipeline (path mapping, upload, sbatch submission)
- Running job discovery and per-job local port forwards
- A live terminal dashboard of open tunnels
"""

__version__ = "0.3.0"

from .errors import PcssError  # noqa: I001
from .config.profile import ConnectionProfile, load_profile
from .config.settings import PcssConfig, load_config
from .remote.session import RemoteCommandResult, SshSession
from .core.paths import PathMapping, map_paths
from .core.deployer import DeploymentResult, deploy
from .core.launcher import SubmittedJob, launch
from .core.discovery import Job, discover_running
from .core.tunnels import PortAllocator, Tunnel, TunnelManager
from .utils.logging import setup_logging

__all__ = [
    "PcssError",
    # Configuration
    "ConnectionProfile",
    "load_profile",
    "PcssConfig",
    "load_config",
    # Remote access
    "SshSession",
    "RemoteCommandResult",
    # Deploy-and-submit
    "PathMapping",
    "map_paths",
    "DeploymentResult",
    "deploy",
    "SubmittedJob",
    "launch",
    # Tunnel-and-monitor
    "Job",
    "discover_running",
    "PortAllocator",
    "Tunnel",
    "TunnelManager",
    # Utilities
    "setup_logging",
]
