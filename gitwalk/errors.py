"""Error taxonomy shared across the package.

Every error carries a ``phase`` so callers (and log readers) can tell a
configuration mistake apart from a failure on the wire.
"""

from __future__ import annotations

import paramiko


class GitWalkError(Exception):
    """Base class for all errors raised by gitwalk."""

    phase = "unknown"

    def __str__(self) -> str:
        return f"[{self.phase}] {super().__str__()}"


class ConfigurationError(GitWalkError, ValueError):
    """A required setting is missing or malformed."""

    phase = "configuration"


class SchemaError(ConfigurationError):
    """Raised when the YAML configuration structure is invalid."""


class FingerprintParseError(ConfigurationError):
    """The trusted host fingerprint text could not be parsed."""

    phase = "fingerprint parse"


class CredentialError(GitWalkError):
    """Private key text is unparsable or could not be decrypted."""

    phase = "credential load"


class HostVerificationFailure(GitWalkError, paramiko.BadHostKeyException):
    """The server presented a host key other than the pinned one.

    Args:
        hostname: Host the client was connecting to.
        got_key: Key the server presented.
        expected_key: The pinned key.
    """

    phase = "host verification"

    def __init__(self, hostname: str, got_key: paramiko.PKey, expected_key: paramiko.PKey):
        paramiko.BadHostKeyException.__init__(self, hostname, got_key, expected_key)

    def __str__(self) -> str:
        return (
            f"[{self.phase}] Host key for server '{self.hostname}' does not match the trusted key: "
            f"got {self.key.get_name()} {_sha256(self.key)}, "
            f"expected {self.expected_key.get_name()} {_sha256(self.expected_key)}"
        )


class TransportError(GitWalkError):
    """Network or protocol failure reported by the SSH or Git client."""

    phase = "transport"


class RepositoryStateError(GitWalkError):
    """The local directory is not in the state the requested step needs."""

    phase = "local repository"



def _sha256(key: paramiko.PKey) -> str:
    # gitwalk.SSH.host_keys imports this module
    from gitwalk.SSH.host_keys import sha256_fingerprint

    return sha256_fingerprint(key.asbytes())
