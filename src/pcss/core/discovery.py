"""Discovery of running jobs that expose a dashboard."""

from dataclasses import dataclass
import logging
from typing import List, Optional, Tuple

from ..config.settings import TunnelConfig
from ..errors import QueryError
from ..remote.session import SshSession, quote_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Job:
    """A running job and the port its service listens on."""

    name: str
    compute_node: str
    remote_port: int


def parse_accounting_line(line: str, delimiter: str = "|") -> Optional[Tuple[str, str]]:
    """Split one accounting line into ``(name, node)``; None if it has too few fields."""
    fields = line.strip().split(delimiter)
    if len(fields) < 2:
        return None
    name, node = fields[0].strip(), fields[1].strip()
    if not name or not node:
        return None
    return name, node


def parse_metadata(content: str) -> Optional[int]:
    """Extract the port from ``<node>:<port>``; None if malformed."""
    _, sep, port = content.strip().rpartition(":")
    if not sep or not port.isdigit():
        return None
    port = int(port)
    if not 0 < port < 65536:
        return None
    return port


async def read_job_port(session: SshSession, metadata_path: str) -> Optional[int]:
    """Read a job's metadata file; None if it is missing or malformed."""
    result = await session.run(f"cat {quote_path(metadata_path)}")
    if not result.ok:
        logger.debug(f"No metadata at {metadata_path}: {result.stderr.strip()}")
        return None
    port = parse_metadata(result.stdout)
    if port is None:
        logger.debug(f"Malformed metadata at {metadata_path}: {result.stdout.strip()!r}")
    return port


async def discover_running(
    session: SshSession, settings: Optional[TunnelConfig] = None
) -> List[Job]:
    """List running jobs on dashboard nodes together with their service port.

    Lines that cannot be parsed, nodes without a dashboard, and jobs whose
    metadata file is missing or malformed are skipped.

    Args:
        session: Open SSH session
        settings: Discovery settings (defaults if None)

    Returns:
        Discovered jobs in accounting order

    Raises:
        QueryError: If the accounting query exits nonzero
    """
    settings = settings or TunnelConfig()

    result = await session.run(settings.accounting_command)
    if not result.ok:
        raise QueryError(
            f"`{settings.accounting_command}` exited with code {result.exit_code}: "
            f"{result.stderr.strip()}"
        )

    jobs = []
    for line in result.stdout.splitlines():
        if not line.strip():
            continue
        parsed = parse_accounting_line(line, settings.field_delimiter)
        if parsed is None:
            logger.debug(f"Skipping malformed accounting line: {line!r}")
            continue
        name, node = parsed
        if settings.node_pattern not in node:
            logger.debug(f"Skipping {name} on {node}")
            continue

        port = await read_job_port(session, settings.metadata_path.format(name=name))
        if port is None:
            continue
        jobs.append(Job(name=name, compute_node=node, remote_port=port))
        logger.debug(f"Found {name} on {node}:{port}")

    logger.info(f"Found {len(jobs)} running job(s) with a dashboard")
    return jobs
