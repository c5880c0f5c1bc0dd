from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from gitwalk.SSH.utils.masking import redact

SSH_KEY_ENV = "SSH_KEY"
SSH_KEY_PASSPHRASE_ENV = "SSH_KEY_PASSPHRASE"


@dataclass(frozen=True)
class SshSecrets:
    """SSH private key text and optional passphrase, as supplied by the operator."""

    key: str = field(repr=False)
    key_passphrase: str | None = field(default=None, repr=False)

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "SshSecrets | None":
        """Read ``SSH_KEY``/``SSH_KEY_PASSPHRASE``; None when no key is set."""
        environ = os.environ if environ is None else environ
        key = environ.get(SSH_KEY_ENV)
        if key is None:
            return None
        return cls(key=key, key_passphrase=environ.get(SSH_KEY_PASSPHRASE_ENV) or None)

    def __repr__(self) -> str:
        return f"SshSecrets(key={redact(self.key)}, key_passphrase={redact(self.key_passphrase)})"
