"""Submission of uploaded job files to SLURM."""

from dataclasses import dataclass
import logging
import posixpath
import re
from typing import Iterable, List, Optional

from ..errors import SubmissionError
from ..remote.session import SshSession, quote_path

logger = logging.getLogger(__name__)

_SUBMITTED_RE = re.compile(r"Submitted batch job (\d+)")


@dataclass
class SubmittedJob:
    """A job accepted by sbatch."""

    name: str
    job_file: str
    results_dir: str
    job_id: Optional[str] = None


def results_dir_for(job_file: str, results_extension: str = ".zarr") -> str:
    """``run1/a.mx3`` -> ``run1/a.zarr``."""
    root, _ = posixpath.splitext(job_file)
    return root + results_extension


def job_name_for(job_file: str) -> str:
    """``run1/a.mx3`` -> ``a``."""
    return posixpath.splitext(posixpath.basename(job_file))[0]


def build_submit_command(
    job_name: str, results_dir: str, template_name: str, job_file: str, log_filename: str
) -> str:
    """Build the sbatch command line for one job."""
    log_path = posixpath.join(results_dir, log_filename)
    return (
        f"sbatch --job-name={quote_path(job_name)} --output={quote_path(log_path)} "
        f"{quote_path(template_name)} {quote_path(job_file)}"
    )


def parse_job_id(sbatch_output: str) -> Optional[str]:
    match = _SUBMITTED_RE.search(sbatch_output)
    return match.group(1) if match else None


async def launch(
    session: SshSession,
    job_files: Iterable[str],
    template_name: str,
    results_extension: str = ".zarr",
    log_filename: str = "slurm.logs",
) -> List[SubmittedJob]:
    """Create each job's results directory and submit it with sbatch.

    Stops at the first failing command. Jobs submitted before the failure are
    left queued.

    Args:
        session: Open SSH session
        job_files: Remote paths of the uploaded job files
        template_name: Remote submission template passed to sbatch
        results_extension: Extension replacing the job file's to name the results dir
        log_filename: SLURM output file inside the results dir

    Returns:
        The submitted jobs, in order

    Raises:
        SubmissionError: If ``mkdir -p`` or ``sbatch`` exits nonzero
    """
    submitted = []
    for job_file in job_files:
        results_dir = results_dir_for(job_file, results_extension)
        job_name = job_name_for(job_file)

        command = f"mkdir -p {quote_path(results_dir)}"
        result = await session.run(command)
        if not result.ok:
            raise SubmissionError(command, result.exit_code, result.stderr)
        logger.debug(f"Sent command: `{command}`")

        command = build_submit_command(job_name, results_dir, template_name, job_file, log_filename)
        result = await session.run(command)
        if not result.ok:
            raise SubmissionError(command, result.exit_code, result.stderr)
        logger.debug(f"Sent command: `{command}`\n  `{result.stdout.strip()}`")

        job = SubmittedJob(
            name=job_name,
            job_file=job_file,
            results_dir=results_dir,
            job_id=parse_job_id(result.stdout),
        )
        submitted.append(job)
        if job.job_id:
            logger.info(f"Submitted job {job.job_id} for {posixpath.basename(job_file)}")
        else:
            logger.info(f"Submitted job for {posixpath.basename(job_file)}")

    return submitted
