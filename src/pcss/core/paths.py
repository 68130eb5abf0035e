"""Mapping of a local input directory onto the remote jobs root."""

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import posixpath
from typing import Iterator, List, Tuple, Union

from ..errors import MappingError, NoInputFilesError, SourceDirectoryError

logger = logging.getLogger(__name__)


@dataclass
class PathMapping:
    """Ordered ``(local_path, remote_path)`` pairs for one input directory."""

    source_dir: Path
    remote_dir: str
    entries: List[Tuple[Path, str]] = field(default_factory=list)

    def __iter__(self) -> Iterator[Tuple[Path, str]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def local_paths(self) -> List[Path]:
        return [local for local, _ in self.entries]

    @property
    def remote_paths(self) -> List[str]:
        return [remote for _, remote in self.entries]


def find_job_files(src_dir: Path, job_extension: str = ".mx3") -> List[Path]:
    """List the job files directly inside ``src_dir``, sorted by name.

    Raises:
        SourceDirectoryError: If ``src_dir`` is missing or not a directory
        NoInputFilesError: If no file has the job extension
    """
    if not src_dir.exists():
        raise SourceDirectoryError(f"Input directory `{src_dir}` doesn't exist")
    if not src_dir.is_dir():
        raise SourceDirectoryError(f"`{src_dir}` is not a directory")

    job_files = sorted(
        p for p in src_dir.iterdir() if p.suffix == job_extension and p.is_file()
    )
    if not job_files:
        raise NoInputFilesError(f"Couldn't find any {job_extension} files in `{src_dir}`")
    return job_files


def map_paths(
    src_dir: Union[str, Path], dst_root: str, job_extension: str = ".mx3"
) -> PathMapping:
    """Map the job files of ``src_dir`` to ``dst_root/<basename of src_dir>/``.

    ``dst_root`` is used exactly as given, so ``./jobs`` and ``jobs`` produce
    ``./jobs/...`` and ``jobs/...`` respectively.

    Args:
        src_dir: Local input directory
        dst_root: Remote jobs root
        job_extension: Suffix of the files to deploy

    Returns:
        PathMapping for the directory

    Raises:
        MappingError: If the directory is unusable or a file escapes it
    """
    src_dir = Path(src_dir)
    job_files = find_job_files(src_dir, job_extension)
    logger.info(f"Found {len(job_files)} {job_extension} file(s) in {src_dir}")

    # abspath collapses "." and "run1/" without following a symlinked directory
    dir_name = Path(os.path.abspath(src_dir)).name
    if not dir_name:
        raise MappingError(f"Couldn't determine the name of the input directory `{src_dir}`")
    remote_dir = posixpath.join(dst_root, dir_name)
    logger.debug(f"Destination dir: `{remote_dir}`")

    mapping = PathMapping(source_dir=src_dir, remote_dir=remote_dir)
    for local in job_files:
        try:
            relative = local.relative_to(src_dir)
        except ValueError as e:
            raise MappingError(f"`{local}` is not inside `{src_dir}`") from e
        remote = posixpath.join(remote_dir, relative.as_posix())
        mapping.entries.append((local, remote))
        logger.debug(f"{local} -> {remote}")

    return mapping
