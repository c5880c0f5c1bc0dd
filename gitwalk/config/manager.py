"""Configuration loader for the Git-over-SSH walkthrough.

Settings come from, in increasing priority: built-in defaults, an optional
YAML file, and environment variables. Nothing is read from module-level
globals at call time; callers build a `Configuration` and pass it along.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import yaml

from gitwalk.errors import ConfigurationError
from gitwalk.git.local_directory import LocalDirectory
from gitwalk.SSH.session import SessionFactory

from .credentials import SshSecrets
from .schema import validate_config_schema

CONFIG_PATH_ENV = "GITWALK_CONFIG"

# GitHub's published ECDSA host key. Public knowledge, not a secret:
# https://docs.github.com/en/authentication/keeping-your-account-and-data-secure/githubs-ssh-key-fingerprints
GITHUB_ECDSA_HOST_KEY = (
    "ecdsa-sha2-nistp256 AAAAE2VjZHNhLXNoYTItbmlzdHAyNTYAAAAIbmlzdHAyNTYAAABBBEmKSENjQEezOmxkZMy7opKgwFB9nkt5"
    "YRrYMjNuG5N87uRgg6CLrbo5wAdT/y6v0mKV0U2w0WZ2YB/++Tpockg="
)

DEFAULT_REMOTE_URL = "ssh://git@github.com/my-username/my-repo"
DEFAULT_LOCAL_DIRECTORY_BASE = "~/gitwalk-cloned-repositories"
DEFAULT_LOCAL_DIRECTORY_NAME = "name-of-cloned-repo"
DEFAULT_COMMIT_MESSAGE = "Add all files"
DEFAULT_COMMITTER_NAME = "David Davies"
DEFAULT_COMMITTER_EMAIL = "david.davies@example.com"

# Configuration field -> environment variable
ENV_VARS: dict[str, str] = {
    "remote_url": "GIT_REMOTE_URL",
    "local_directory_base": "GIT_LOCAL_DIRECTORY_BASE",
    "local_directory_name": "GIT_LOCAL_DIRECTORY_NAME",
    "delete_existing_directory_contents": "GIT_DELETE_EXISTING_DIRECTORY_CONTENTS",
    "trusted_host_fingerprint": "SSH_TRUSTED_HOST_KEY",
    "ssh_username": "SSH_USERNAME",
    "connect_timeout": "SSH_CONNECT_TIMEOUT",
    "commit_message": "GIT_COMMIT_MESSAGE",
    "committer_name": "GIT_COMMITTER_NAME",
    "committer_email": "GIT_COMMITTER_EMAIL",
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be one of true/false/yes/no/on/off/1/0, got {value!r}")


def parse_timeout(name: str, value: str) -> float:
    try:
        timeout = float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}") from None
    if timeout <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return timeout


@dataclass(frozen=True)
class Configuration:
    """Everything the clone/commit/push steps need.

    Raises:
        ConfigurationError: If the remote URL, local directory or trusted
            fingerprint is blank.
    """

    remote_url: str = DEFAULT_REMOTE_URL
    local_directory_base: str = DEFAULT_LOCAL_DIRECTORY_BASE
    local_directory_name: str = DEFAULT_LOCAL_DIRECTORY_NAME
    delete_existing_directory_contents: bool = False
    trusted_host_fingerprint: str = GITHUB_ECDSA_HOST_KEY
    ssh_secrets: SshSecrets | None = None
    ssh_username: str = "git"
    connect_timeout: float = 15.0
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    committer_name: str = DEFAULT_COMMITTER_NAME
    committer_email: str = DEFAULT_COMMITTER_EMAIL
    source: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.remote_url or not self.remote_url.strip():
            raise ConfigurationError(
                "GIT_REMOTE_URL must be set. Example: ssh://git@github.com/my-username/my-repo"
            )
        if not self.local_directory_base.strip() or not self.local_directory_name.strip():
            raise ConfigurationError("GIT_LOCAL_DIRECTORY_BASE and GIT_LOCAL_DIRECTORY_NAME must be set")
        if not self.trusted_host_fingerprint or not self.trusted_host_fingerprint.strip():
            raise ConfigurationError(
                "SSH_TRUSTED_HOST_KEY must be set. Example: ecdsa-sha2-nistp256 AAAAE2VjZHNhLXNoYTItbmlzdHAyNTYAAAA..."
            )

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        config_path: Union[str, Path, None] = None,
    ) -> "Configuration":
        """Build a configuration from an optional YAML file and the environment.

        Args:
            environ: Environment mapping; defaults to ``os.environ``.
            config_path: YAML file; defaults to ``$GITWALK_CONFIG`` when set.
        """
        environ = os.environ if environ is None else environ
        config_path = config_path or environ.get(CONFIG_PATH_ENV) or None

        values: dict[str, Any] = {}
        if config_path:
            values.update({k: v for k, v in ConfigManager(config_path).settings.items() if v is not None})

        for name, env_var in ENV_VARS.items():
            raw = environ.get(env_var)
            if raw is None:
                continue
            if name == "delete_existing_directory_contents":
                values[name] = parse_bool(env_var, raw)
            elif name == "connect_timeout":
                values[name] = parse_timeout(env_var, raw)
            else:
                values[name] = raw

        secrets = SshSecrets.from_environment(environ)
        file_key = values.pop("ssh_key", None)
        file_passphrase = values.pop("ssh_key_passphrase", None)
        if secrets is None and file_key is not None:
            secrets = SshSecrets(key=file_key, key_passphrase=file_passphrase or None)

        if "connect_timeout" in values:
            values["connect_timeout"] = float(values["connect_timeout"])
        return cls(ssh_secrets=secrets, source=str(config_path) if config_path else None, **values)

    @property
    def local_repository_directory(self) -> LocalDirectory:
        return LocalDirectory(Path(self.local_directory_base).expanduser(), self.local_directory_name)

    @property
    def committer(self) -> str:
        return f"{self.committer_name} <{self.committer_email}>"

    def require_ssh_secrets(self) -> SshSecrets:
        """Return the SSH secrets, failing before any SSH activity if absent."""
        if self.ssh_secrets is None:
            raise ConfigurationError("SSH_KEY environment variable must be set")
        return self.ssh_secrets

    def session_factory(self) -> SessionFactory:
        """A `SessionFactory` for this configuration's key and trusted host key."""
        secrets = self.require_ssh_secrets()
        return SessionFactory(
            secrets.key,
            secrets.key_passphrase,
            self.trusted_host_fingerprint,
            default_username=self.ssh_username,
            connect_timeout=self.connect_timeout,
        )


class ConfigManager:
    """Manage access to settings defined in a YAML file.

    Args:
        config_path: Path to the YAML configuration file.
    """

    def __init__(self, config_path: Union[str, Path]):
        self.config_path = Path(config_path).expanduser()
        self.raw = self._load_config()
        self.settings = validate_config_schema(self.raw)

    def _load_config(self) -> Any:
        """Load the YAML document.

        Raises:
            ConfigurationError: If the file is missing or is not valid YAML.
        """
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}") from None
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Configuration file {self.config_path} is not valid YAML: {e}") from e
