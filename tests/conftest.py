"""Shared fixtures: generated keys, key text, local repositories and an
in-process paramiko SSH server.

Keys are generated per test session; nothing here touches ~/.ssh.
"""

import io
import os
import shlex
import socket
import threading

import paramiko
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519
from dulwich import porcelain
from dulwich.protocol import ReceivableProtocol
from dulwich.server import FileSystemBackend, ReceivePackHandler, UploadPackHandler

from gitwalk.config.manager import CONFIG_PATH_ENV, ENV_VARS

PASSPHRASE = "correct horse battery staple"

GIT_COMMANDS = {
    "git-upload-pack": UploadPackHandler,
    "git-receive-pack": ReceivePackHandler,
}


def private_key_text(key: paramiko.PKey, password: str | None = None) -> str:
    """Serialize a paramiko key as PEM text, encrypted when `password` is given."""
    buf = io.StringIO()
    key.write_private_key(buf, password=password)
    return buf.getvalue()


def public_key_line(key: paramiko.PKey) -> str:
    return f"{key.get_name()} {key.get_base64()}"


def openssh_ed25519_text(password: bytes | None = None) -> str:
    key = ed25519.Ed25519PrivateKey.generate()
    encryption = (
        serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
    )
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        encryption,
    ).decode("ascii")


# =============================================================================
# Keys
# =============================================================================


@pytest.fixture(scope="session")
def rsa_key() -> paramiko.RSAKey:
    return paramiko.RSAKey.generate(2048)


@pytest.fixture(scope="session")
def ecdsa_key() -> paramiko.ECDSAKey:
    return paramiko.ECDSAKey.generate()


@pytest.fixture(scope="session")
def host_key() -> paramiko.ECDSAKey:
    """Host key of the in-process SSH server."""
    return paramiko.ECDSAKey.generate()


@pytest.fixture(scope="session")
def other_host_key() -> paramiko.ECDSAKey:
    """Same algorithm as `host_key`, different key."""
    return paramiko.ECDSAKey.generate()


@pytest.fixture(scope="session")
def client_key() -> paramiko.ECDSAKey:
    """Identity the in-process SSH server accepts."""
    return paramiko.ECDSAKey.generate()


@pytest.fixture(scope="session")
def client_key_text(client_key) -> str:
    return private_key_text(client_key)


@pytest.fixture(scope="session")
def host_fingerprint_text(host_key) -> str:
    return public_key_line(host_key)


# =============================================================================
# In-process SSH server
# =============================================================================


class StubServer(paramiko.ServerInterface):
    """Public-key-only SSH server that records what clients asked for."""

    def __init__(self, authorized_key: paramiko.PKey, recorder: "LocalSSHServer"):
        self.authorized_key = authorized_key
        self.recorder = recorder
        self.command: str | None = None
        self.exec_event = threading.Event()

    def get_allowed_auths(self, username):
        return "publickey"

    def check_auth_publickey(self, username, key):
        self.recorder.auth_attempts.append((username, key.get_name()))
        if key.asbytes() == self.authorized_key.asbytes():
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_auth_password(self, username, password):
        self.recorder.auth_attempts.append((username, "password"))
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind, chanid):
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_channel_env_request(self, channel, name, value):
        return True

    def check_channel_exec_request(self, channel, command):
        self.command = command.decode("utf-8") if isinstance(command, bytes) else command
        self.recorder.commands.append(self.command)
        self.exec_event.set()
        return True


class LocalSSHServer:
    """Listens on 127.0.0.1 and handles each connection on its own thread.

    ``git-upload-pack``/``git-receive-pack`` commands are served from the
    local filesystem by dulwich's pack handlers; anything else gets its
    command line echoed back.
    """

    def __init__(self, host_key: paramiko.PKey, authorized_key: paramiko.PKey):
        self.host_key = host_key
        self.authorized_key = authorized_key
        self.auth_attempts: list[tuple[str, str]] = []
        self.commands: list[str] = []
        self.transports: list[paramiko.Transport] = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(5)
        self.host, self.port = self.sock.getsockname()
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def _accept_loop(self) -> None:
        while True:
            try:
                conn, _ = self.sock.accept()
            except OSError:
                return
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        transport = paramiko.Transport(conn)
        self.transports.append(transport)
        transport.add_server_key(self.host_key)
        server = StubServer(self.authorized_key, self)
        try:
            transport.start_server(server=server)
        except (paramiko.SSHException, EOFError, OSError):
            return
        channel = transport.accept(timeout=10)
        if channel is None or not server.exec_event.wait(10):
            return
        try:
            argv = shlex.split(server.command)
            handler_cls = GIT_COMMANDS.get(argv[0])
            if handler_cls is None:
                channel.sendall(f"ran: {server.command}".encode("utf-8"))
            else:
                # recv returns whatever has arrived, so a short pack never blocks the reader
                proto = ReceivableProtocol(channel.recv, channel.sendall)
                handler_cls(FileSystemBackend("/"), argv[1:], proto).handle()
            channel.send_exit_status(0)
        finally:
            channel.close()

    def close(self) -> None:
        self.sock.close()
        for transport in self.transports:
            transport.close()


@pytest.fixture
def ssh_server(host_key, client_key):
    server = LocalSSHServer(host_key, client_key)
    yield server
    server.close()


# =============================================================================
# Local repositories
# =============================================================================


@pytest.fixture
def origin_repo(tmp_path) -> str:
    """A bare repository with one commit, usable as a clone/push remote."""
    seed = tmp_path / "seed"
    seed.mkdir()
    with porcelain.init(str(seed)) as repo:
        readme = seed / "README.md"
        readme.write_text("# seed\n", encoding="utf-8")
        porcelain.add(repo, paths=[str(readme)])
        porcelain.commit(
            repo,
            message="Initial commit",
            author="Seed <seed@example.com>",
            committer="Seed <seed@example.com>",
        )
    origin = tmp_path / "origin.git"
    porcelain.clone(str(seed), str(origin), bare=True, errstream=io.BytesIO()).close()
    return str(origin)


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture
def environ(monkeypatch, tmp_path) -> dict[str, str]:
    """A private copy of ``os.environ`` without any gitwalk or SSH settings.

    Writes (including those made by python-dotenv) land in the copy and are
    discarded after the test.
    """
    owned = set(ENV_VARS.values()) | {CONFIG_PATH_ENV, "SSH_KEY", "SSH_KEY_PASSPHRASE"}
    copy = {k: v for k, v in os.environ.items() if k not in owned}
    copy["HOME"] = str(tmp_path / "home")
    monkeypatch.setattr(os, "environ", copy)
    monkeypatch.chdir(tmp_path)
    return copy
