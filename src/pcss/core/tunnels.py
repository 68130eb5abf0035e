"""Local port forwards into running jobs.

Each tunnel is an ``ssh -N -L`` child process started from the user's SSH
client configuration. The processes are independent of the session used for
discovery; the manager only starts and terminates them.
"""

from dataclasses import dataclass, field
import logging
import socket
import subprocess
from typing import Iterable, List, Optional, Set

from ..config.settings import TunnelConfig
from ..errors import PortExhaustionError, TunnelError
from .discovery import Job

logger = logging.getLogger(__name__)

BIND_ADDRESS = "127.0.0.1"
TERMINATE_TIMEOUT = 5.0


class PortAllocator:
    """Hands out free local ports from ``[start, end)``.

    A port is free when a throwaway listener can bind it. The check races with
    other local processes between release and use; ports handed out by this
    allocator are never handed out again until released.
    """

    def __init__(self, start: int = 30000, end: int = 45000, host: str = BIND_ADDRESS):
        if not 0 < start < end <= 65536:
            raise ValueError(f"Invalid port range {start}-{end}")
        self.start = start
        self.end = end
        self.host = host
        self.claimed: Set[int] = set()

    def _is_bindable(self, port: int) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((self.host, port))
            except OSError:
                return False
        return True

    def allocate(self) -> int:
        """Claim and return the lowest free port.

        Raises:
            PortExhaustionError: If every port in the range is taken
        """
        for port in range(self.start, self.end):
            if port in self.claimed:
                continue
            if self._is_bindable(port):
                self.claimed.add(port)
                return port
        raise PortExhaustionError(f"Couldn't find a free port in {self.start}-{self.end - 1}")

    def release(self, port: int) -> None:
        self.claimed.discard(port)


@dataclass
class Tunnel:
    """A running port forward for one job."""

    job: Job
    local_port: int
    process: subprocess.Popen = field(repr=False)

    @property
    def url(self) -> str:
        return f"http://localhost:{self.local_port}"

    @property
    def is_alive(self) -> bool:
        return self.process.poll() is None


class TunnelManager:
    """Opens and closes one port-forward process per job."""

    def __init__(
        self,
        host: str,
        settings: Optional[TunnelConfig] = None,
        ssh_config: Optional[str] = None,
        allocator: Optional[PortAllocator] = None,
    ):
        """Initialize the TunnelManager.

        Args:
            host: SSH host alias the forwards go through
            settings: Tunnel settings (defaults if None)
            ssh_config: SSH client config passed to ssh with ``-F``
            allocator: Port allocator (built from settings if None)
        """
        self.host = host
        self.settings = settings or TunnelConfig()
        self.ssh_config = ssh_config
        self.allocator = allocator or PortAllocator(
            self.settings.port_range_start, self.settings.port_range_end
        )
        self.tunnels: List[Tunnel] = []

    def forward_command(self, local_port: int, job: Job) -> List[str]:
        """Build the ssh argument list forwarding ``local_port`` to the job's service."""
        command = [self.settings.ssh_executable, "-N", "-T", "-o", "ExitOnForwardFailure=yes"]
        if self.ssh_config:
            command.extend(["-F", self.ssh_config])
        command.extend(["-L", f"{local_port}:{job.compute_node}:{job.remote_port}", self.host])
        return command

    def open(self, job: Job) -> Tunnel:
        """Allocate a port and start the forward for one job.

        Raises:
            PortExhaustionError: If no local port is free
            TunnelError: If the ssh client cannot be started
        """
        local_port = self.allocator.allocate()
        command = self.forward_command(local_port, job)
        logger.debug(f"Starting `{' '.join(command)}`")
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self.allocator.release(local_port)
            raise TunnelError(f"Couldn't start `{command[0]}` for {job.name}: {e}") from e

        tunnel = Tunnel(job=job, local_port=local_port, process=process)
        self.tunnels.append(tunnel)
        logger.info(
            f"Forwarding {tunnel.url} to {job.compute_node}:{job.remote_port} ({job.name})"
        )
        return tunnel

    def open_tunnels(self, jobs: Iterable[Job]) -> List[Tunnel]:
        """Open a tunnel for every job that can get a local port.

        Raises:
            PortExhaustionError: If jobs were given but none could be bound
            TunnelError: If the ssh client cannot be started; tunnels opened
                by this call are closed first
        """
        jobs = list(jobs)
        opened = []
        for job in jobs:
            try:
                opened.append(self.open(job))
            except PortExhaustionError as e:
                logger.warning(f"Skipping {job.name}: {e}")
            except TunnelError:
                for tunnel in opened:
                    self.close(tunnel)
                raise

        if jobs and not opened:
            raise PortExhaustionError(f"No local port could be bound for {len(jobs)} job(s)")
        return opened

    def close(self, tunnel: Tunnel) -> None:
        """Terminate the tunnel's process and release its port."""
        process = tunnel.process
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=TERMINATE_TIMEOUT)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        self.allocator.release(tunnel.local_port)
        if tunnel in self.tunnels:
            self.tunnels.remove(tunnel)
        logger.debug(f"Closed tunnel for {tunnel.job.name} on port {tunnel.local_port}")

    def close_all(self) -> None:
        for tunnel in list(self.tunnels):
            self.close(tunnel)

    def __enter__(self) -> "TunnelManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()
