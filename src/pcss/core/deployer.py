"""Upload of job files and the submission template."""

from dataclasses import dataclass, field
import logging
from pathlib import Path
import posixpath
from typing import List, Union

import asyncssh

from ..errors import DeployError, TemplateNotFoundError, TransferError
from ..remote.session import SshSession, quote_path
from .paths import PathMapping

logger = logging.getLogger(__name__)


@dataclass
class DeploymentResult:
    """Remote locations written by :func:`deploy`."""

    remote_dir: str
    remote_template: str
    remote_job_files: List[str] = field(default_factory=list)


def check_template(template_path: Union[str, Path]) -> Path:
    """Return the template path if it is an existing file.

    Raises:
        TemplateNotFoundError: If it does not exist
    """
    template_path = Path(template_path)
    if not template_path.is_file():
        raise TemplateNotFoundError(f"Sbatch file `{template_path}` doesn't exist")
    logger.debug(f"Found {template_path}")
    return template_path


async def ensure_remote_dir(session: SshSession, remote_dir: str) -> None:
    """Create ``remote_dir`` and its parents; an existing directory is fine.

    Raises:
        DeployError: If ``mkdir -p`` exits nonzero
    """
    command = f"mkdir -p {quote_path(remote_dir)}"
    result = await session.run(command)
    if not result.ok:
        raise DeployError(
            f"Couldn't create remote directory `{remote_dir}` "
            f"(exit code {result.exit_code}): {result.stderr.strip()}"
        )
    logger.debug(f"Sent command: `{command}`")


async def upload_file(session: SshSession, local_path: Path, remote_path: str) -> None:
    """Copy one local file to ``remote_path``, replacing any existing file.

    Raises:
        TransferError: If the local read or the remote write fails
    """
    try:
        buffer = Path(local_path).read_bytes()
    except OSError as e:
        raise TransferError(f"Couldn't read source file `{local_path}`: {e}") from e
    logger.debug(f"Read source file {local_path} into buffer ({len(buffer)} bytes)")

    handle = await session.open_upload(remote_path)
    try:
        async with handle:
            await handle.write(buffer)
    except (asyncssh.Error, OSError) as e:
        raise TransferError(
            f"Couldn't write source file `{local_path}` into `{remote_path}`: {e}"
        ) from e
    logger.info(f"Transferred {remote_path}")


async def deploy(
    session: SshSession,
    mapping: PathMapping,
    template_path: Union[str, Path],
    jobs_root: str,
) -> DeploymentResult:
    """Create the remote directory, upload every job file, then the template.

    Transfers run one at a time. On failure, files already uploaded stay on
    the cluster.

    Args:
        session: Open SSH session
        mapping: Local to remote job file mapping
        template_path: Local submission template
        jobs_root: Remote jobs root receiving the template

    Returns:
        DeploymentResult describing what was written
    """
    template_path = Path(template_path)

    await ensure_remote_dir(session, mapping.remote_dir)
    logger.info(f"Destination directory {mapping.remote_dir} created")

    for local, remote in mapping:
        await upload_file(session, local, remote)
    logger.info(f"All {len(mapping)} job file(s) transferred")

    remote_template = posixpath.join(jobs_root, template_path.name)
    await upload_file(session, template_path, remote_template)
    logger.info("Sbatch file transferred")

    return DeploymentResult(
        remote_dir=mapping.remote_dir,
        remote_template=remote_template,
        remote_job_files=mapping.remote_paths,
    )
