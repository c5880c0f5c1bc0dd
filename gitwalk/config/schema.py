"""Schema validation for the optional YAML configuration file.

The file holds a single top-level ``gitwalk`` mapping whose keys mirror the
`Configuration` fields, e.g.::

    gitwalk:
      remote_url: ssh://git@github.com/my-username/my-repo
      local_directory_base: ~/gitwalk-cloned-repositories
      local_directory_name: my-repo
      delete_existing_directory_contents: false
      trusted_host_fingerprint: ecdsa-sha2-nistp256 AAAAE2VjZHNh...
"""

from __future__ import annotations

from typing import Any

from gitwalk.errors import SchemaError

STRING_FIELDS = (
    "remote_url",
    "local_directory_base",
    "local_directory_name",
    "trusted_host_fingerprint",
    "ssh_username",
    "ssh_key",
    "ssh_key_passphrase",
    "commit_message",
    "committer_name",
    "committer_email",
)
BOOL_FIELDS = ("delete_existing_directory_contents",)
NUMBER_FIELDS = ("connect_timeout",)

KNOWN_FIELDS = frozenset(STRING_FIELDS + BOOL_FIELDS + NUMBER_FIELDS)


def validate_config_schema(data: Any) -> dict[str, Any]:
    """Validate the YAML document and return its ``gitwalk`` section.

    Checks:
    - the document is a mapping with a ``gitwalk`` mapping inside
    - no unknown keys (a typo would otherwise be silently ignored)
    - strings are strings, booleans are booleans, timeouts are positive numbers

    Raises:
        SchemaError: on structural issues; the message names the offending key.
    """
    if not isinstance(data, dict):
        raise SchemaError("Top-level YAML must be a mapping/object")
    section = data.get("gitwalk")
    if not isinstance(section, dict):
        raise SchemaError("'gitwalk' must be a mapping/object")

    unknown = sorted(str(k) for k in section if k not in KNOWN_FIELDS)
    if unknown:
        raise SchemaError(f"Unknown configuration field(s): {', '.join(unknown)}")

    for name in STRING_FIELDS:
        if name in section and section[name] is not None and not isinstance(section[name], str):
            raise SchemaError(f"gitwalk.{name} must be a string if provided")
    for name in BOOL_FIELDS:
        if name in section and not isinstance(section[name], bool):
            raise SchemaError(f"gitwalk.{name} must be true or false if provided")
    for name in NUMBER_FIELDS:
        if name not in section:
            continue
        value = section[name]
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise SchemaError(f"gitwalk.{name} must be a positive number if provided")
    return section
