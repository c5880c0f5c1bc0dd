"""In-memory loading of SSH private keys.

Key text usually arrives through an environment variable (``SSH_KEY``), so
it is parsed straight from a string buffer: nothing is written to disk and
nothing under ``~/.ssh`` is consulted. Encrypted keys are decrypted with the
supplied passphrase; no prompt is ever shown.
"""

from __future__ import annotations

import io
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

import paramiko

from gitwalk.errors import CredentialError

from .host_keys import sha256_fingerprint
from .utils.masking import redact

logger = logging.getLogger(__name__)

# Tried in order. Ed25519 first because it only accepts OpenSSH-format text
# and rejects other key types cleanly.
_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)

_PEM_BLOCK_RE = re.compile(
    r"(?P<begin>-----BEGIN (?P<label>[A-Z0-9 ]+)-----)(?P<body>.*?)(?P<end>-----END (?P=label)-----)",
    re.DOTALL,
)

KeyPairSet = tuple[paramiko.PKey, ...]


@dataclass(frozen=True)
class PrivateKeyMaterial:
    """A parsed SSH identity held in memory only.

    Iterating yields the usable key pairs; a well-formed key text yields
    exactly one.
    """

    key_pairs: KeyPairSet
    key_text: str = field(repr=False)
    passphrase: str | None = field(default=None, repr=False)

    def __iter__(self) -> Iterator[paramiko.PKey]:
        return iter(self.key_pairs)

    def __len__(self) -> int:
        return len(self.key_pairs)

    def __repr__(self) -> str:
        keys = ", ".join(f"{k.get_name()} {_fingerprint(k)}" for k in self.key_pairs)
        return f"PrivateKeyMaterial(keys=[{keys}], key_text={redact(self.key_text)}, passphrase={redact(self.passphrase)})"


def normalize_key_text(key_text: str) -> str:
    """Restore the line structure of PEM/OpenSSH key text.

    Environment variables often carry a key as a single line, either with
    literal ``\\n`` sequences or with the newlines collapsed into spaces.
    Text that already spans several lines is returned stripped but otherwise
    untouched.
    """
    key_text = key_text.strip()
    if "\n" not in key_text and "\\n" in key_text:
        key_text = key_text.replace("\\r\\n", "\n").replace("\\n", "\n").strip()
    if "\n" in key_text:
        return key_text + "\n"

    match = _PEM_BLOCK_RE.search(key_text)
    if match is None:
        return key_text

    tokens = match.group("body").split()
    headers: list[str] = []
    # Encrypted traditional PEM keys carry "Name: value" headers before the body
    while len(tokens) >= 2 and tokens[0].endswith(":"):
        headers.append(f"{tokens[0]} {tokens[1]}")
        tokens = tokens[2:]

    base64_content = "".join(tokens)
    base64_lines = [base64_content[i : i + 64] for i in range(0, len(base64_content), 64)]

    lines = [match.group("begin")]
    if headers:
        lines.extend(headers)
        lines.append("")
    lines.extend(base64_lines)
    lines.append(match.group("end"))
    return "\n".join(lines) + "\n"


def load_key_pairs(private_key_text: str | None, passphrase: str | None = None) -> PrivateKeyMaterial:
    """Parse a private key from in-memory text.

    Args:
        private_key_text: OpenSSH or PEM private key text.
        passphrase: Passphrase for an encrypted key. Ignored for plain keys;
            an empty string counts as no passphrase.

    Returns:
        The parsed key material.

    Raises:
        CredentialError: If the text is empty, is not a recognizable private
            key, or cannot be decrypted with the given passphrase.
    """
    if not private_key_text or not private_key_text.strip():
        raise CredentialError("Failed to load ssh private key: key text is empty")

    passphrase = passphrase or None
    key_content = normalize_key_text(private_key_text)

    errors: list[str] = []
    needs_passphrase = False
    for key_class in _KEY_CLASSES:
        try:
            pkey = key_class.from_private_key(io.StringIO(key_content), password=passphrase)
        except paramiko.PasswordRequiredException as e:
            needs_passphrase = True
            errors.append(f"{key_class.__name__}: {e}")
        except Exception as e:
            # Each parser rejects the formats of the others; keep going and
            # report all of them if none succeeds.
            errors.append(f"{key_class.__name__}: {e}")
        else:
            logger.debug("Loaded %s private key %s", pkey.get_name(), _fingerprint(pkey))
            return PrivateKeyMaterial(key_pairs=(pkey,), key_text=private_key_text, passphrase=passphrase)

    if needs_passphrase and passphrase is None:
        raise CredentialError("Failed to load ssh private key: the key is encrypted and no passphrase was supplied")
    raise CredentialError(f"Failed to load ssh private key ({'; '.join(errors)})")


def _fingerprint(key: paramiko.PKey) -> str:
    return sha256_fingerprint(key.asbytes())
