"""Unit tests for the SSH session wrapper."""

import socket
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from pcss.config.profile import ConnectionProfile
from pcss.errors import (
    AuthenticationError,
    CommandError,
    ConnectError,
    HandshakeError,
    HostUnreachableError,
    KeyFileError,
    TransferError,
)
from pcss.remote.session import RemoteCommandResult, SshSession, quote_path

pytestmark = pytest.mark.unit


@pytest.fixture
def key_file(temp_dir):
    key = temp_dir / "id_test"
    key.write_text("placeholder")
    return key


@pytest.fixture
def profile(key_file):
    return ConnectionProfile(
        host="eagle", address="eagle.example.org:2222", user="alice", key_path=key_file
    )


@pytest.fixture
def connection():
    conn = MagicMock()
    conn.run = AsyncMock()
    conn.wait_closed = AsyncMock()
    return conn


def completed(exit_status, stdout="", stderr=""):
    return SimpleNamespace(exit_status=exit_status, stdout=stdout, stderr=stderr)


class TestConnect:
    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self, profile, temp_dir):
        missing = ConnectionProfile(
            host=profile.host,
            address=profile.address,
            user=profile.user,
            key_path=temp_dir / "does_not_exist",
        )
        with patch("pcss.remote.session.asyncssh.connect", new=AsyncMock()) as mock_connect:
            with pytest.raises(KeyFileError, match="does not exist"):
                await SshSession.connect(missing)
            mock_connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_key_fails_before_network(self, profile, key_file):
        key_file.write_text("this is not a private key")
        with patch("pcss.remote.session.asyncssh.connect", new=AsyncMock()) as mock_connect:
            with pytest.raises(KeyFileError, match="Could not load key file"):
                await SshSession.connect(profile)
            mock_connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connect_passes_profile(self, profile, connection):
        key = object()
        with patch("pcss.remote.session.asyncssh.read_private_key", return_value=key), patch(
            "pcss.remote.session.asyncssh.connect", new=AsyncMock(return_value=connection)
        ) as mock_connect:
            session = await SshSession.connect(profile)

        assert session.connection is connection
        assert session.profile is profile
        args, kwargs = mock_connect.call_args
        assert args == ("eagle.example.org",)
        assert kwargs["port"] == 2222
        assert kwargs["username"] == "alice"
        assert kwargs["client_keys"] == [key]
        assert kwargs["known_hosts"] is None

    @pytest.mark.asyncio
    async def test_host_key_verification_uses_known_hosts(self, profile, connection):
        with patch("pcss.remote.session.asyncssh.read_private_key"), patch(
            "pcss.remote.session.asyncssh.connect", new=AsyncMock(return_value=connection)
        ) as mock_connect:
            await SshSession.connect(profile, verify_host_key=True)

        assert "known_hosts" not in mock_connect.call_args.kwargs

    @pytest.mark.parametrize(
        "raised, expected",
        [
            (socket.gaierror(-2, "Name or service not known"), HostUnreachableError),
            (ConnectionRefusedError(111, "Connection refused"), HostUnreachableError),
            (asyncssh.KeyExchangeFailed("No matching algorithm"), HandshakeError),
            (asyncssh.PermissionDenied("Permission denied"), AuthenticationError),
        ],
    )
    @pytest.mark.asyncio
    async def test_failures_are_distinct(self, profile, raised, expected):
        with patch("pcss.remote.session.asyncssh.read_private_key"), patch(
            "pcss.remote.session.asyncssh.connect", new=AsyncMock(side_effect=raised)
        ):
            with pytest.raises(expected) as exc_info:
                await SshSession.connect(profile)

        assert isinstance(exc_info.value, ConnectError)
        assert exc_info.value.__cause__ is raised


class TestRun:
    @pytest.mark.asyncio
    async def test_success_has_empty_stderr(self, profile, connection):
        connection.run.return_value = completed(0, stdout="hello\n", stderr="noise\n")
        session = SshSession(profile, connection)

        result = await session.run("echo hello")

        assert result == RemoteCommandResult(stdout="hello\n", exit_code=0, stderr="")
        assert result.ok
        connection.run.assert_awaited_once_with("echo hello", check=False)

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_returned_with_stderr(self, profile, connection):
        connection.run.return_value = completed(
            1, stderr="mkdir: cannot create directory '/root/x': Permission denied\n"
        )
        session = SshSession(profile, connection)

        result = await session.run("mkdir -p /root/x")

        assert not result.ok
        assert result.exit_code == 1
        assert "Permission denied" in result.stderr

    @pytest.mark.asyncio
    async def test_repeated_mkdir_is_a_plain_success(self, profile, connection):
        connection.run.return_value = completed(0)
        session = SshSession(profile, connection)

        first = await session.run("mkdir -p jobs/run1")
        second = await session.run("mkdir -p jobs/run1")

        assert first.ok and second.ok
        assert connection.run.await_count == 2

    @pytest.mark.asyncio
    async def test_channel_failure_raises_command_error(self, profile, connection):
        connection.run.side_effect = asyncssh.ChannelOpenError(
            2, "Channel open failed"
        )
        session = SshSession(profile, connection)

        with pytest.raises(CommandError, match="Failed to run `ls`") as exc_info:
            await session.run("ls")
        assert exc_info.value.command == "ls"

    @pytest.mark.asyncio
    async def test_missing_exit_status_raises_command_error(self, profile, connection):
        connection.run.return_value = completed(None)
        session = SshSession(profile, connection)

        with pytest.raises(CommandError, match="without an exit status"):
            await session.run("sleep 100")


class TestUpload:
    @pytest.mark.asyncio
    async def test_sftp_channel_is_started_once(self, profile, connection):
        sftp = MagicMock()
        sftp.open = AsyncMock(return_value="handle")
        connection.start_sftp_client = AsyncMock(return_value=sftp)
        session = SshSession(profile, connection)

        assert await session.open_upload("jobs/run1/a.mx3") == "handle"
        await session.open_upload("jobs/run1/b.mx3")

        connection.start_sftp_client.assert_awaited_once()
        sftp.open.assert_any_await("jobs/run1/a.mx3", "wb")

    @pytest.mark.asyncio
    async def test_home_prefix_becomes_relative(self, profile, connection):
        sftp = MagicMock()
        sftp.open = AsyncMock()
        connection.start_sftp_client = AsyncMock(return_value=sftp)
        session = SshSession(profile, connection)

        await session.open_upload("~/jobs/run1/a.mx3")

        sftp.open.assert_awaited_once_with("jobs/run1/a.mx3", "wb")

    @pytest.mark.asyncio
    async def test_sftp_failure_raises_transfer_error(self, profile, connection):
        sftp = MagicMock()
        sftp.open = AsyncMock(side_effect=asyncssh.SFTPNoSuchFile("No such file"))
        connection.start_sftp_client = AsyncMock(return_value=sftp)
        session = SshSession(profile, connection)

        with pytest.raises(TransferError, match="missing/a.mx3"):
            await session.open_upload("missing/a.mx3")


class TestClose:
    @pytest.mark.asyncio
    async def test_context_manager_closes_sftp_and_connection(self, profile, connection):
        sftp = MagicMock()
        sftp.open = AsyncMock()
        sftp.wait_closed = AsyncMock()
        connection.start_sftp_client = AsyncMock(return_value=sftp)

        async with SshSession(profile, connection) as session:
            await session.open_upload("a.mx3")

        sftp.exit.assert_called_once()
        connection.close.assert_called_once()
        connection.wait_closed.assert_awaited_once()


class TestQuotePath:
    def test_safe_paths_are_unchanged(self):
        assert quote_path("./jobs/run1/a.zarr") == "./jobs/run1/a.zarr"

    def test_home_prefix_stays_expandable(self):
        assert quote_path("~/jobs/my run/a.zarr") == "~/'jobs/my run/a.zarr'"
        assert quote_path("~") == "~"

    def test_spaces_are_quoted(self):
        assert quote_path("jobs/my run") == "'jobs/my run'"
