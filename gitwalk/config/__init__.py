from .credentials import SshSecrets
from .manager import GITHUB_ECDSA_HOST_KEY, ConfigManager, Configuration
from .schema import validate_config_schema

__all__ = [
    "SshSecrets",
    "GITHUB_ECDSA_HOST_KEY",
    "ConfigManager",
    "Configuration",
    "validate_config_schema",
]
