"""Clone, commit and push to a Git remote over SSH with pinned host keys.

The package wires paramiko (SSH) into dulwich (Git) so that every outbound
connection uses an in-memory private key and a single trusted host key,
without consulting ~/.ssh or any known_hosts file.
"""

__version__ = "0.1.0"
