"""SSH session policy for Git transports.

This package loads an SSH identity from in-memory text, pins a single trusted
server host key, and hands dulwich a paramiko-based vendor that uses only
those two inputs.
"""

from .credentials import PrivateKeyMaterial, load_key_pairs, normalize_key_text
from .host_keys import (
    HostKeyVerifier,
    PinnedHostKeyPolicy,
    PinnedHostKeyVerifier,
    TrustedHostFingerprint,
    sha256_fingerprint,
    verify,
)
from .session import SessionFactory, SessionPolicy, build
from .vendor import ChannelConnection, PinnedSSHVendor

__all__ = [
    "PrivateKeyMaterial",
    "load_key_pairs",
    "normalize_key_text",
    "HostKeyVerifier",
    "PinnedHostKeyPolicy",
    "PinnedHostKeyVerifier",
    "TrustedHostFingerprint",
    "sha256_fingerprint",
    "verify",
    "SessionFactory",
    "SessionPolicy",
    "build",
    "ChannelConnection",
    "PinnedSSHVendor",
]
