"""Remote access over SSH."""

from .session import RemoteCommandResult, SshSession, quote_path

__all__ = ["SshSession", "RemoteCommandResult", "quote_path"]
