"""Connection profiles resolved from the SSH client configuration."""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Tuple, Union

import paramiko

from ..errors import ProfileError

logger = logging.getLogger(__name__)

DEFAULT_SSH_PORT = 22


@dataclass(frozen=True)
class ConnectionProfile:
    """Everything needed to open and authenticate an SSH session."""

    host: str  # Alias as written in the SSH config
    address: str  # "name:port"
    user: str
    key_path: Path

    @property
    def hostname(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]


def split_address(address: str) -> Tuple[str, int]:
    """Split ``name:port`` into its parts; the port defaults to 22."""
    name, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_SSH_PORT
    if not port.isdigit():
        raise ProfileError(f"Invalid port in address `{address}`")
    return name, int(port)


def load_profile(host: str, config_path: Union[str, Path] = "~/.ssh/config") -> ConnectionProfile:
    """Resolve a host alias into a :class:`ConnectionProfile`.

    Args:
        host: Host alias declared in the SSH client config
        config_path: Path to the SSH client config file

    Returns:
        ConnectionProfile for the alias

    Raises:
        ProfileError: If the file is unreadable, the alias is not declared, or
            ``User``/``IdentityFile`` is missing for it
    """
    path = Path(os.path.expanduser(str(config_path)))
    try:
        ssh_config = paramiko.SSHConfig.from_path(str(path))
    except OSError as e:
        raise ProfileError(f"Could not open SSH config file at `{path}`: {e}") from e
    except paramiko.ssh_exception.ConfigParseError as e:
        raise ProfileError(f"Failed to parse the SSH config file at `{path}`: {e}") from e

    if host not in ssh_config.get_hostnames():
        raise ProfileError(f"`{host}` was not found in the SSH config file `{path}`")

    host_config = ssh_config.lookup(host)

    user = host_config.get("user")
    if not user:
        raise ProfileError(f"`User` was not found for `{host}` in the SSH config file")

    keys = host_config.get("identityfile") or []
    if not keys:
        raise ProfileError(f"No key file was found for `{host}` in the SSH config file")

    hostname = host_config.get("hostname", host)
    port = int(host_config.get("port", DEFAULT_SSH_PORT))
    profile = ConnectionProfile(
        host=host,
        address=f"{hostname}:{port}",
        user=user,
        key_path=Path(os.path.expanduser(keys[0])),
    )
    logger.debug(f"Resolved `{host}` to {profile.user}@{profile.address} ({profile.key_path})")
    return profile
