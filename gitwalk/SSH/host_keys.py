"""Pinned host-key verification.

A single trusted server key, written the way ``known_hosts`` writes it
(``"<algorithm> <base64 key>"``), is compared against whatever key the server
presents after key exchange. There is no known_hosts file, no DNS lookup and
no "unknown host, continue?" fallback: a key that is not byte-for-byte the
pinned one is rejected.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from typing import Protocol

import paramiko

from gitwalk.errors import FingerprintParseError, HostVerificationFailure

logger = logging.getLogger(__name__)

# Host-key algorithms a server may negotiate to present a key of a given type.
# RSA keys are signed with SHA-2 variants but still report themselves as "ssh-rsa".
_HOST_KEY_ALGORITHMS: dict[str, tuple[str, ...]] = {
    "ssh-rsa": ("rsa-sha2-512", "rsa-sha2-256", "ssh-rsa"),
}


def supported_algorithms() -> frozenset[str]:
    """Plain (non-certificate) key algorithms paramiko can decode."""
    return frozenset(
        name
        for key_class in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)
        for name in key_class.identifiers()
        if "-cert-" not in name
    )


def sha256_fingerprint(key_bytes: bytes) -> str:
    """Render key bytes the way ``ssh-keygen -lf`` does: ``SHA256:<base64>``."""
    digest = hashlib.sha256(key_bytes).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class TrustedHostFingerprint:
    """A pinned server public key: algorithm name plus its wire-encoded bytes."""

    algorithm: str
    key_bytes: bytes

    @classmethod
    def parse(cls, text: str | None) -> "TrustedHostFingerprint":
        """Parse ``"<algorithm> <base64 key> [comment]"``.

        The key blob must decode to a public key of the declared algorithm.

        Raises:
            FingerprintParseError: If the text is blank, malformed, uses an
                unsupported algorithm, or the blob does not match the algorithm.
        """
        if text is None or not text.strip():
            raise FingerprintParseError("Trusted host fingerprint is empty")

        fields = text.split()
        if len(fields) < 2:
            raise FingerprintParseError(
                f"Trusted host fingerprint must look like '<algorithm> <base64 key>', got {text.strip()!r}"
            )
        algorithm, encoded = fields[0], fields[1]

        try:
            key_bytes = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FingerprintParseError(f"Trusted host key for {algorithm} is not valid base64: {e}") from e

        fingerprint = cls(algorithm=algorithm, key_bytes=key_bytes)
        fingerprint.to_public_key()
        return fingerprint

    def to_public_key(self) -> paramiko.PKey:
        """Decode into a paramiko public key, checking the algorithm matches the blob."""
        if self.algorithm not in supported_algorithms():
            raise FingerprintParseError(f"Unsupported host key algorithm {self.algorithm!r}")
        try:
            key = paramiko.PKey.from_type_string(self.algorithm, self.key_bytes)
        except Exception as e:
            raise FingerprintParseError(f"Trusted host key is not a valid {self.algorithm} key: {e}") from e
        if key.get_name() != self.algorithm:
            raise FingerprintParseError(
                f"Trusted host key declares {self.algorithm!r} but encodes a {key.get_name()!r} key"
            )
        return key

    @property
    def sha256(self) -> str:
        return sha256_fingerprint(self.key_bytes)

    def host_key_algorithms(self) -> tuple[str, ...]:
        """Host-key algorithm names that make a server present this key type."""
        return _HOST_KEY_ALGORITHMS.get(self.algorithm, (self.algorithm,))

    def to_text(self) -> str:
        return f"{self.algorithm} {base64.b64encode(self.key_bytes).decode('ascii')}"

    def __str__(self) -> str:
        return self.to_text()


class HostKeyVerifier(Protocol):
    """Given a server key, decide whether to accept it."""

    def verify(self, server_key: paramiko.PKey) -> bool: ...


def verify(server_key: paramiko.PKey, trusted: TrustedHostFingerprint) -> bool:
    """Return True iff `server_key` is exactly the trusted key.

    Compares algorithm names and the wire-encoded key bytes, never the
    textual fingerprints.
    """
    return server_key.get_name() == trusted.algorithm and server_key.asbytes() == trusted.key_bytes


class PinnedHostKeyVerifier:
    """Accepts exactly one host key and nothing else."""

    def __init__(self, trusted: TrustedHostFingerprint):
        self.trusted = trusted
        self.expected_key = trusted.to_public_key()

    def verify(self, server_key: paramiko.PKey) -> bool:
        return verify(server_key, self.trusted)

    def __repr__(self) -> str:
        return f"PinnedHostKeyVerifier({self.trusted.algorithm} {self.trusted.sha256})"


class PinnedHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """Paramiko host-key policy that defers entirely to a `HostKeyVerifier`.

    `paramiko.SSHClient` calls ``missing_host_key`` whenever a server key is
    not in its in-memory host-key tables. The clients built by
    `gitwalk.SSH.vendor` never load any host keys, so this policy sees every
    connection, right after key exchange and before authentication.
    """

    def __init__(self, verifier: PinnedHostKeyVerifier):
        self.verifier = verifier

    def missing_host_key(self, client, hostname, key):
        presented = sha256_fingerprint(key.asbytes())
        if self.verifier.verify(key):
            logger.info("Host key for %s matches trusted %s key %s", hostname, key.get_name(), presented)
            return
        logger.error(
            "Rejecting %s host key %s for %s; trusted key is %s %s",
            key.get_name(),
            presented,
            hostname,
            self.verifier.trusted.algorithm,
            self.verifier.trusted.sha256,
        )
        raise HostVerificationFailure(hostname, key, self.verifier.expected_key)
