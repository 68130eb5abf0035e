"""
Pytest configuration and shared fixtures for the pcss test suite.
"""

from pathlib import Path
import shutil
import tempfile
from typing import Dict, List, Optional

from click.testing import CliRunner
import pytest
from rich.console import Console

from pcss.remote.session import RemoteCommandResult


class FakeUpload:
    """Writable handle recording what is written to a remote path."""

    def __init__(self, session: "FakeSession", remote_path: str):
        self.session = session
        self.remote_path = remote_path
        self.buffer = b""

    async def write(self, data: bytes) -> int:
        self.buffer += data
        return len(data)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.session.uploads[self.remote_path] = self.buffer


class FakeSession:
    """Stands in for SshSession, answering commands from a table.

    Responses are looked up by exact command; a response that is an exception
    is raised. Commands without a response succeed with empty output.
    """

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses = responses or {}
        self.commands: List[str] = []
        self.uploads: Dict[str, bytes] = {}
        self.upload_order: List[str] = []

    async def run(self, command: str) -> RemoteCommandResult:
        self.commands.append(command)
        response = self.responses.get(command, RemoteCommandResult(stdout="", exit_code=0))
        if isinstance(response, Exception):
            raise response
        return response

    async def open_upload(self, remote_path: str) -> FakeUpload:
        self.upload_order.append(remote_path)
        return FakeUpload(self, remote_path)


@pytest.fixture
def cli_runner():
    """CliRunner whose invocations start with a wide, colourless console in ctx.obj."""

    class ConsoleCliRunner(CliRunner):
        def invoke(self, cli, args=None, **kwargs):
            kwargs.setdefault("obj", {"console": Console(force_terminal=False, width=200)})
            return super().invoke(cli, args, **kwargs)

    return ConsoleCliRunner()


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after the test."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def isolated_home(temp_dir, monkeypatch):
    """Run with an empty home and working directory so no real settings are picked up."""
    home = temp_dir / "home"
    home.mkdir()
    work = temp_dir / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return home


@pytest.fixture
def job_dir(temp_dir):
    """Input directory jobs/run1 holding two job files and an unrelated file."""
    run_dir = temp_dir / "jobs" / "run1"
    run_dir.mkdir(parents=True)
    (run_dir / "a.mx3").write_text("SetGridSize(64, 64, 1)\nRun(1e-9)\n")
    (run_dir / "b.mx3").write_text("SetGridSize(128, 128, 1)\nRun(2e-9)\n")
    (run_dir / "notes.txt").write_text("not a job\n")
    return run_dir


@pytest.fixture
def template_file(temp_dir):
    """A submission template named amumax.sh."""
    template = temp_dir / "amumax.sh"
    template.write_text("#!/bin/bash\n#SBATCH --gres=gpu:1\namumax \"$1\"\n")
    return template


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def ssh_config_file(temp_dir):
    """An SSH client config with complete and incomplete host entries."""
    key = temp_dir / "id_eagle"
    key.write_text("dummy key\n")
    config = temp_dir / "ssh_config"
    config.write_text(
        f"""Host eagle
    HostName eagle.man.poznan.pl
    User alice
    Port 2222
    IdentityFile {key}

Host plain
    User bob
    IdentityFile {key}

Host nouser
    HostName nouser.example.org
    IdentityFile {key}

Host nokey
    HostName nokey.example.org
    User carol
"""
    )
    return config


@pytest.fixture
def session_factory():
    """Build a FakeSession with scripted command responses."""
    return FakeSession
