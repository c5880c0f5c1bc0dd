"""Walkthrough steps driven by a `Configuration`.

Step 1 clones the remote over SSH, step 2 stages and commits everything in
the working tree, step 3 pushes over SSH. Steps 1 and 3 each build a fresh
`SessionPolicy` and release it when done.
"""

from __future__ import annotations

import logging

from gitwalk.config import Configuration
from gitwalk.git import add_and_commit_changes, clone_repository, is_ssh_url, origin_url, push_changes
from gitwalk.SSH.session import SessionFactory
from gitwalk.SSH.utils.types import CloneResult, CommitResult, PushResult

logger = logging.getLogger(__name__)


def _session_factory(configuration: Configuration, remote_url: str) -> SessionFactory | None:
    if not is_ssh_url(remote_url):
        return None
    return configuration.session_factory()


def clone(configuration: Configuration) -> CloneResult:
    """Step 1: clone the configured remote into the local directory."""
    local_directory = configuration.local_repository_directory
    factory = _session_factory(configuration, configuration.remote_url)
    if factory is None:
        git_directory = clone_repository(
            configuration.remote_url,
            local_directory,
            configuration.delete_existing_directory_contents,
        )
    else:
        with factory.build() as policy:
            git_directory = clone_repository(
                configuration.remote_url,
                local_directory,
                configuration.delete_existing_directory_contents,
                policy,
            )
    return {
        "status": "cloned",
        "local_directory": str(local_directory.path),
        "remote_url": configuration.remote_url,
        "git_directory": git_directory,
    }


def commit(configuration: Configuration, message: str | None = None) -> CommitResult:
    """Step 2: stage and commit all changes. Purely local; no SSH involved."""
    local_directory = configuration.local_repository_directory
    message = message or configuration.commit_message
    commit_id = add_and_commit_changes(local_directory, message, configuration.committer)
    return {
        "status": "committed" if commit_id else "clean",
        "local_directory": str(local_directory.path),
        "commit": commit_id,
        "message": message if commit_id else None,
    }


def push(configuration: Configuration) -> PushResult:
    """Step 3: push the active branch to the clone's default remote."""
    local_directory = configuration.local_repository_directory
    # The clone's own origin decides, not GIT_REMOTE_URL
    factory = _session_factory(configuration, origin_url(local_directory))
    if factory is None:
        remote_url, branch = push_changes(local_directory)
    else:
        with factory.build() as policy:
            remote_url, branch = push_changes(local_directory, policy)
    return {
        "status": "pushed",
        "local_directory": str(local_directory.path),
        "remote_url": remote_url,
        "branch": branch,
    }
