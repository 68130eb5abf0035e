"""SSH session used by every remote step.

One :class:`SshSession` wraps one authenticated asyncssh connection. Each
:meth:`SshSession.run` call opens its own session channel; channels are never
reused for unrelated commands. File uploads go through a single SFTP
sub-channel that is started on first use.
"""

from dataclasses import dataclass
import logging
from pathlib import Path
import shlex
from typing import Optional

import asyncssh

from ..config.profile import ConnectionProfile
from ..errors import (
    AuthenticationError,
    CommandError,
    HandshakeError,
    HostUnreachableError,
    KeyFileError,
    TransferError,
)

logger = logging.getLogger(__name__)


@dataclass
class RemoteCommandResult:
    """Outcome of a remote command that ran to completion."""

    stdout: str
    exit_code: int
    stderr: str = ""  # Only populated when exit_code != 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def quote_path(path: str) -> str:
    """Shell-quote a remote path, leaving a leading ``~/`` for the remote shell to expand."""
    if path == "~":
        return path
    if path.startswith("~/"):
        return "~/" + shlex.quote(path[2:])
    return shlex.quote(path)


def _sftp_path(path: str) -> str:
    # SFTP does not expand ~; relative paths resolve against the login directory
    if path == "~":
        return "."
    if path.startswith("~/"):
        return path[2:]
    return path


class SshSession:
    """An authenticated SSH connection to the cluster login node."""

    def __init__(self, profile: ConnectionProfile, connection: "asyncssh.SSHClientConnection"):
        self.profile = profile
        self.connection = connection
        self._sftp: Optional["asyncssh.SFTPClient"] = None

    @classmethod
    async def connect(
        cls, profile: ConnectionProfile, verify_host_key: bool = False
    ) -> "SshSession":
        """Open and authenticate a session for ``profile``.

        The key file is checked and loaded before any network activity.

        Args:
            profile: Connection profile to use
            verify_host_key: Check the server key against the user's known_hosts

        Returns:
            Authenticated SshSession

        Raises:
            KeyFileError: Key file missing or unreadable
            HostUnreachableError: DNS or TCP failure
            HandshakeError: SSH protocol handshake failed
            AuthenticationError: Server rejected the key
        """
        key_path = Path(profile.key_path)
        if not key_path.is_file():
            raise KeyFileError(f"Key file `{key_path}` does not exist")
        try:
            client_key = asyncssh.read_private_key(str(key_path))
        except (asyncssh.KeyImportError, OSError) as e:
            raise KeyFileError(f"Could not load key file `{key_path}`: {e}") from e

        options = {
            "port": profile.port,
            "username": profile.user,
            "client_keys": [client_key],
            "agent_path": None,
            "config": None,
        }
        if not verify_host_key:
            options["known_hosts"] = None  # Skip host key verification

        logger.debug(f"Connecting to {profile.address} as {profile.user}")
        try:
            connection = await asyncssh.connect(profile.hostname, **options)
        except asyncssh.PermissionDenied as e:
            raise AuthenticationError(
                f"SSH authentication failed to `{profile.address}` with keyfile `{key_path}`: {e}"
            ) from e
        except asyncssh.Error as e:
            raise HandshakeError(f"Handshake with `{profile.address}` failed: {e}") from e
        except OSError as e:
            raise HostUnreachableError(
                f"Couldn't make a TCP connection to `{profile.address}`: {e}"
            ) from e

        logger.debug(f"Authenticated to {profile.address} with {key_path}")
        return cls(profile, connection)

    async def run(self, command: str) -> RemoteCommandResult:
        """Run ``command`` on a fresh channel and wait for it to finish.

        A nonzero exit status is returned in the result, not raised.

        Raises:
            CommandError: If the channel cannot be opened or its output read
        """
        logger.debug(f"Running `{command}`")
        try:
            completed = await self.connection.run(command, check=False)
        except (asyncssh.Error, OSError, UnicodeDecodeError) as e:
            raise CommandError(command, str(e)) from e

        if completed.exit_status is None:
            raise CommandError(command, "channel closed without an exit status")

        exit_code = completed.exit_status
        stdout = completed.stdout or ""
        stderr = (completed.stderr or "") if exit_code != 0 else ""
        logger.debug(f"`{command}` exited with {exit_code}")
        return RemoteCommandResult(stdout=stdout, exit_code=exit_code, stderr=stderr)

    async def open_upload(self, remote_path: str) -> "asyncssh.SFTPClientFile":
        """Create or truncate ``remote_path`` and return a writable handle.

        Raises:
            TransferError: If the SFTP channel or the remote file cannot be opened
        """
        try:
            if self._sftp is None:
                self._sftp = await self.connection.start_sftp_client()
                logger.debug("Made SFTP connection")
            return await self._sftp.open(_sftp_path(remote_path), "wb")
        except (asyncssh.Error, OSError) as e:
            raise TransferError(f"Couldn't create remote file `{remote_path}`: {e}") from e

    async def close(self) -> None:
        """Close the SFTP sub-channel and the connection."""
        if self._sftp is not None:
            self._sftp.exit()
            await self._sftp.wait_closed()
            self._sftp = None
        self.connection.close()
        await self.connection.wait_closed()

    async def __aenter__(self) -> "SshSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
