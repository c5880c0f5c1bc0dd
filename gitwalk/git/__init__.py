from .local_directory import LocalDirectory
from .operations import add_and_commit_changes, clone_repository, is_ssh_url, origin_url, push_changes

__all__ = [
    "LocalDirectory",
    "add_and_commit_changes",
    "clone_repository",
    "is_ssh_url",
    "origin_url",
    "push_changes",
]
