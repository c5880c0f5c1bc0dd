"""Paramiko-backed SSH vendor for dulwich.

dulwich asks an ``SSHVendor`` to run ``git-upload-pack``/``git-receive-pack``
on the remote host and talks the Git protocol over whatever file-like object
comes back. `PinnedSSHVendor` opens those connections with paramiko under a
`SessionPolicy`: in-memory keys only, pinned host key only, nothing from
``~/.ssh``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import paramiko
from dulwich.client import SSHVendor

from gitwalk.errors import HostVerificationFailure, TransportError

if TYPE_CHECKING:
    from .session import SessionPolicy

logger = logging.getLogger(__name__)

SSH_PORT = 22


class ChannelConnection:
    """The read/write/close surface dulwich expects from an SSH command.

    Owns both the channel and the client; closing it tears down the whole
    connection.
    """

    def __init__(self, client: paramiko.SSHClient, channel: paramiko.Channel):
        self.client = client
        self.channel = channel
        self.channel.setblocking(True)

    @property
    def stderr(self):
        return self.channel.makefile_stderr("rb")

    def can_read(self) -> bool:
        return self.channel.recv_ready()

    def write(self, data: bytes) -> None:
        self.channel.sendall(data)

    def read(self, n: int | None = None) -> bytes:
        """Read exactly `n` bytes, or fewer at end of stream.

        With `n` None, read until the remote side closes the channel.
        """
        chunks: list[bytes] = []
        remaining = n
        while remaining is None or remaining > 0:
            data = self.channel.recv(remaining if remaining is not None else 32768)
            if not data:
                break
            chunks.append(data)
            if remaining is not None:
                remaining -= len(data)
        return b"".join(chunks)

    def close(self) -> None:
        self.channel.close()
        self.client.close()


class PinnedSSHVendor(SSHVendor):
    """dulwich SSH vendor bound to one `SessionPolicy`.

    Usage:
        with factory.build() as policy:
            client = SSHGitClient("github.com", username="git", vendor=policy.ssh_vendor())
            client.clone("me/repo", "repo")
    """

    def __init__(self, policy: SessionPolicy):
        self.policy = policy

    def connect(self, host: str, port: int | None = None, username: str | None = None) -> paramiko.SSHClient:
        """Open an authenticated SSH client.

        Each in-memory key is offered on its own fresh connection until one
        is accepted. The pinned-host-key policy runs after key exchange on
        every attempt, before any authentication request is sent.

        Raises:
            HostVerificationFailure: If the server presents any other host key.
            TransportError: On connection failures or when the server rejects
                every key.
        """
        port = port or SSH_PORT
        username = username or self.policy.default_username
        auth_errors: list[str] = []

        for pkey in self.policy.key_pairs:
            client = paramiko.SSHClient()
            client.set_missing_host_key_policy(self.policy.host_key_policy())
            try:
                client.connect(hostname=host, port=port, username=username, **self.policy.connect_kwargs(pkey))
            except HostVerificationFailure:
                client.close()
                raise
            except paramiko.AuthenticationException as e:
                client.close()
                logger.warning("Server %s:%s rejected %s key for %s", host, port, pkey.get_name(), username)
                auth_errors.append(f"{pkey.get_name()}: {e}")
                continue
            except (paramiko.SSHException, OSError) as e:
                client.close()
                raise TransportError(f"SSH Connection failed to {host}:{port}: {e}") from e
            logger.info("Authenticated to %s:%s as %s with %s key", host, port, username, pkey.get_name())
            return client

        raise TransportError(f"SSH Authentication failed for {username}@{host}: {'; '.join(auth_errors)}")

    def run_command(
        self,
        host,
        command,
        username=None,
        port=None,
        password=None,
        key_filename=None,
        ssh_command=None,
        protocol_version=None,
        **kwargs,
    ) -> ChannelConnection:
        if password or key_filename or ssh_command:
            logger.warning("Ignoring password, key file and ssh command for %s; only the in-memory key is offered", host)
        if isinstance(command, bytes):
            command = command.decode("utf-8")

        client = self.connect(host, port=port, username=username)
        try:
            channel = client.get_transport().open_session()
            if protocol_version is None or protocol_version == 2:
                channel.set_environment_variable(name="GIT_PROTOCOL", value="version=2")
            logger.debug("Running %r on %s", command, host)
            channel.exec_command(command)
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransportError(f"Failed to run {command!r} on {host}: {e}") from e
        return ChannelConnection(client, channel)
