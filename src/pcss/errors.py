"""Exception hierarchy for pcss.

Every failure that aborts a pipeline derives from :class:`PcssError` so the
CLI can report it uniformly. Subclasses identify the step that failed.
"""

from typing import Optional


class PcssError(Exception):
    """Base class for all pcss errors."""

    pass


class ConfigError(PcssError):
    """Raised when the pcss settings file cannot be loaded."""

    pass


class ProfileError(ConfigError):
    """Raised when a host alias cannot be resolved from the SSH client config."""

    pass


class ConnectError(PcssError):
    """Raised when the SSH session cannot be established."""

    pass


class KeyFileError(ConnectError):
    """Raised when the private key is missing or cannot be loaded."""

    pass


class HostUnreachableError(ConnectError):
    """Raised on DNS resolution or TCP connection failure."""

    pass


class HandshakeError(ConnectError):
    """Raised when the SSH protocol handshake fails."""

    pass


class AuthenticationError(ConnectError):
    """Raised when the server rejects public key authentication."""

    pass


class CommandError(PcssError):
    """Raised when a remote command cannot be run or its output cannot be read.

    A command that runs and exits nonzero is not a ``CommandError``.
    """

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to run `{command}`: {reason}")


class TransferError(PcssError):
    """Raised when a local file cannot be read or a remote file cannot be written."""

    pass


class MappingError(PcssError):
    """Raised when local job files cannot be mapped to remote paths."""

    pass


class SourceDirectoryError(MappingError):
    """Raised when the input directory does not exist or is not a directory."""

    pass


class NoInputFilesError(MappingError):
    """Raised when the input directory holds no job files."""

    pass


class DeployError(PcssError):
    """Raised when the remote destination cannot be prepared."""

    pass


class TemplateNotFoundError(DeployError):
    """Raised when the local submission template does not exist."""

    pass


class SubmissionError(PcssError):
    """Raised when a job submission step exits nonzero."""

    def __init__(self, command: str, exit_code: int, stderr: Optional[str] = None):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr or ""
        message = f"`{command}` exited with code {exit_code}"
        if self.stderr.strip():
            message += f": {self.stderr.strip()}"
        super().__init__(message)


class QueryError(PcssError):
    """Raised when the running-jobs accounting query fails."""

    pass


class PortExhaustionError(PcssError):
    """Raised when no free local port is left in the configured range."""

    pass


class TunnelError(PcssError):
    """Raised when a port-forward process cannot be started."""

    pass
