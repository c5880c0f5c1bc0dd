"""Session factory: in-memory identity + pinned host key -> SSH session policy.

The factory parses its inputs once; every `SessionFactory.build` call then
produces an independent `SessionPolicy` with its own throwaway scratch
directory, which is removed when the policy is closed.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from types import TracebackType
from typing import Any

import paramiko

from gitwalk.errors import CredentialError

from .credentials import PrivateKeyMaterial, load_key_pairs
from .host_keys import PinnedHostKeyPolicy, PinnedHostKeyVerifier, TrustedHostFingerprint
from .utils.masking import redact
from .vendor import PinnedSSHVendor

logger = logging.getLogger(__name__)

SCRATCH_DIRECTORY_PREFIX = "ssh-temp-dir"


class SessionPolicy:
    """Everything an SSH connection needs, and nothing read from ``~/.ssh``.

    - identities: the in-memory key pairs, offered for public-key auth only
    - host verification: a single pinned key via `PinnedHostKeyPolicy`
    - config discovery: disabled (no ssh_config, no known_hosts, no agent)
    - home_directory: an empty scratch directory, the filesystem anchor some
      SSH stacks insist on; never read from, removed by `close`

    Usable as a context manager.
    """

    # Ambient key and agent discovery stay off
    look_for_keys = False
    allow_agent = False

    def __init__(
        self,
        key_pairs: tuple[paramiko.PKey, ...],
        verifier: PinnedHostKeyVerifier,
        home_directory: Path,
        *,
        default_username: str = "git",
        connect_timeout: float | None = 15.0,
    ):
        self.key_pairs = key_pairs
        self.verifier = verifier
        self.home_directory = home_directory
        self.default_username = default_username
        self.connect_timeout = connect_timeout

    @property
    def ssh_directory(self) -> Path:
        return self.home_directory

    @property
    def closed(self) -> bool:
        return not self.home_directory.exists()

    def host_key_policy(self) -> paramiko.MissingHostKeyPolicy:
        return PinnedHostKeyPolicy(self.verifier)

    def host_key_types(self, available: tuple[str, ...]) -> tuple[str, ...]:
        """Order `available` host-key algorithms so the pinned key type comes first.

        A server holding several host keys then presents the pinned one. A
        server without that key type still gets to present another, which the
        verifier rejects.
        """
        pinned = [name for name in self.verifier.trusted.host_key_algorithms() if name in available]
        return tuple(pinned) + tuple(name for name in available if name not in pinned)

    def transport_factory(self, sock, **kwargs) -> paramiko.Transport:
        """Build the client transport with the pinned host-key preference applied."""
        transport = paramiko.Transport(sock, **kwargs)
        options = transport.get_security_options()
        options.key_types = self.host_key_types(tuple(options.key_types))
        return transport

    def connect_kwargs(self, pkey: paramiko.PKey) -> dict[str, Any]:
        """Arguments for `paramiko.SSHClient.connect` offering only `pkey`."""
        return {
            "pkey": pkey,
            "password": None,
            "key_filename": None,
            "look_for_keys": self.look_for_keys,
            "allow_agent": self.allow_agent,
            "timeout": self.connect_timeout,
            "transport_factory": self.transport_factory,
        }

    def ssh_vendor(self) -> PinnedSSHVendor:
        """A dulwich SSH vendor that opens every connection under this policy."""
        return PinnedSSHVendor(self)

    def close(self) -> None:
        """Remove the scratch directory. Safe to call more than once."""
        if self.home_directory.exists():
            shutil.rmtree(self.home_directory)
            logger.debug("Removed SSH scratch directory %s", self.home_directory)

    def __enter__(self) -> "SessionPolicy":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        keys = ", ".join(k.get_name() for k in self.key_pairs)
        return f"SessionPolicy(keys=[{keys}], verifier={self.verifier!r}, home_directory={str(self.home_directory)!r})"


def build(
    key_pairs: PrivateKeyMaterial | tuple[paramiko.PKey, ...],
    trusted_fingerprint: TrustedHostFingerprint | PinnedHostKeyVerifier,
    *,
    default_username: str = "git",
    connect_timeout: float | None = 15.0,
) -> SessionPolicy:
    """Build a `SessionPolicy`, allocating a fresh scratch directory.

    Args:
        key_pairs: Parsed identities, as returned by `load_key_pairs`.
        trusted_fingerprint: The pinned host key, or a ready verifier for it.
        default_username: SSH user when the remote URL does not name one.
        connect_timeout: Socket timeout for each connection attempt.
    """
    key_pairs = tuple(key_pairs)
    if not key_pairs:
        raise CredentialError("At least one key pair is required to build an SSH session policy")
    if isinstance(trusted_fingerprint, TrustedHostFingerprint):
        verifier = PinnedHostKeyVerifier(trusted_fingerprint)
    else:
        verifier = trusted_fingerprint

    # Allocated last, once all inputs are known to be usable
    home_directory = Path(tempfile.mkdtemp(prefix=SCRATCH_DIRECTORY_PREFIX))
    logger.debug("Allocated SSH scratch directory %s", home_directory)
    return SessionPolicy(
        key_pairs,
        verifier,
        home_directory,
        default_username=default_username,
        connect_timeout=connect_timeout,
    )


class SessionFactory:
    """Builds SSH session policies from a private key and a trusted host key.

    Usage:
        factory = SessionFactory(os.environ["SSH_KEY"], None, GITHUB_ECDSA_HOST_KEY)
        with factory.build() as policy:
            clone_repository(url, LocalDirectory(base, "repo"), policy=policy)

    Args:
        private_key_text: OpenSSH or PEM private key text.
        passphrase: Passphrase for an encrypted key, or None.
        trusted_fingerprint: ``"<algorithm> <base64 key>"`` of the server.

    Raises:
        CredentialError: If the key cannot be loaded.
        FingerprintParseError: If the fingerprint text is malformed.
    """

    def __init__(
        self,
        private_key_text: str | None,
        passphrase: str | None,
        trusted_fingerprint: str | None,
        *,
        default_username: str = "git",
        connect_timeout: float | None = 15.0,
    ):
        self.key_material = load_key_pairs(private_key_text, passphrase)
        self.trusted_fingerprint = TrustedHostFingerprint.parse(trusted_fingerprint)
        self.verifier = PinnedHostKeyVerifier(self.trusted_fingerprint)
        self.default_username = default_username
        self.connect_timeout = connect_timeout

    def build(self) -> SessionPolicy:
        return build(
            self.key_material,
            self.verifier,
            default_username=self.default_username,
            connect_timeout=self.connect_timeout,
        )

    def __repr__(self) -> str:
        return (
            f"SessionFactory(key={redact(self.key_material.key_text)}, "
            f"trusted={self.trusted_fingerprint.algorithm} {self.trusted_fingerprint.sha256})"
        )
