"""Deployment, submission and tunnel components."""

from .deployer import DeploymentResult, check_template, deploy, ensure_remote_dir, upload_file
from .discovery import Job, discover_running
from .launcher import SubmittedJob, launch
from .paths import PathMapping, map_paths
from .tunnels import PortAllocator, Tunnel, TunnelManager

__all__ = [
    # Deploy-and-submit
    "PathMapping",
    "map_paths",
    "DeploymentResult",
    "check_template",
    "ensure_remote_dir",
    "upload_file",
    "deploy",
    "SubmittedJob",
    "launch",
    # Tunnel-and-monitor
    "Job",
    "discover_running",
    "PortAllocator",
    "Tunnel",
    "TunnelManager",
]
