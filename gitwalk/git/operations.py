"""The three walkthrough steps: clone, add+commit, push.

Each step is a plain function taking its inputs explicitly. SSH remotes are
reached through a dulwich `SSHGitClient` built around the pinned vendor of a
`SessionPolicy`; non-SSH remotes (local paths, file:// URLs) need no policy.
"""

from __future__ import annotations

import logging
import os
import shutil
import socket
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import unquote, urlparse

import paramiko
from dulwich import porcelain
from dulwich.client import GitClient, SSHGitClient, get_transport_and_path
from dulwich.errors import GitProtocolError
from dulwich.repo import Repo

from gitwalk.errors import ConfigurationError, GitWalkError, TransportError
from gitwalk.SSH.session import SessionPolicy

from .local_directory import LocalDirectory

logger = logging.getLogger(__name__)

SSH_SCHEMES = frozenset({"ssh", "git+ssh", "ssh+git"})

WIRE_ERRORS = (
    GitProtocolError,
    porcelain.Error,
    paramiko.SSHException,
    ConnectionError,
    socket.gaierror,
    socket.timeout,
)


class ProgressLog:
    """Byte stream that forwards dulwich progress output to the logger."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def write(self, data: bytes) -> int:
        text = data.decode("utf-8", errors="replace").strip()
        if text:
            self.log.debug("remote: %s", text)
        return len(data)

    def flush(self) -> None:
        pass


def is_ssh_url(url: str) -> bool:
    """True for ``ssh://`` style URLs and scp-like ``user@host:path`` remotes."""
    if "://" in url:
        return urlparse(url).scheme in SSH_SCHEMES
    if os.path.exists(url):
        return False
    head, sep, _ = url.partition(":")
    # A single letter before ":" is a Windows drive, not a host
    return bool(sep) and "/" not in head and len(head) > 1


def parse_ssh_url(url: str) -> tuple[str, int | None, str | None, str]:
    """Split an SSH remote into ``(host, port, username, path)``.

    Accepts ``ssh://[user@]host[:port]/path`` and scp-like
    ``[user@]host:path``. Port and username are None when absent.
    """
    if "://" in url:
        parsed = urlparse(url)
        host, port = parsed.hostname, parsed.port
        username = unquote(parsed.username) if parsed.username else None
        path = unquote(parsed.path)
        # ssh://host/~user/repo is relative to that user's home
        if path.startswith("/~"):
            path = path[1:]
    else:
        user_host, _, path = url.partition(":")
        username, _, host = user_host.rpartition("@")
        port, username = None, username or None
    if not host or not path:
        raise ConfigurationError(f"Cannot parse SSH remote {url!r}; expected ssh://user@host/path or user@host:path")
    return host, port, username, path


def git_client(url: str, policy: SessionPolicy | None) -> tuple[GitClient, str]:
    """dulwich client and remote path for `url`.

    SSH remotes get an `SSHGitClient` bound to the policy's pinned vendor,
    built here rather than through dulwich's URL dispatch so that no other
    SSH vendor can be picked up along the way.

    Raises:
        ConfigurationError: If `url` is an SSH remote and `policy` is None.
    """
    if not is_ssh_url(url):
        return get_transport_and_path(url)
    if policy is None:
        raise ConfigurationError(f"An SSH session policy is required to reach {url}")
    host, port, username, path = parse_ssh_url(url)
    client = SSHGitClient(host, port=port, username=username, vendor=policy.ssh_vendor())
    return client, path


@contextmanager
def transport_errors(action: str, remote_url: str) -> Iterator[None]:
    """Wrap SSH/Git wire failures in `TransportError`; gitwalk errors pass through."""
    try:
        yield
    except GitWalkError:
        raise
    except WIRE_ERRORS as e:
        raise TransportError(f"{action} {remote_url} failed: {e}") from e


def clone_repository(
    remote_url: str,
    local_directory: LocalDirectory,
    delete_existing_contents: bool = False,
    policy: SessionPolicy | None = None,
) -> str:
    """Clone `remote_url` into `local_directory`.

    Returns:
        Path of the new repository's control directory (``.git``).

    Raises:
        RepositoryStateError: If the directory exists and may not be deleted.
        HostVerificationFailure: If the server's host key is not the pinned one.
        TransportError: On network, protocol or authentication failures.
    """
    # Local remotes go through porcelain; SSH remotes need the pinned client
    client, path = git_client(remote_url, policy) if is_ssh_url(remote_url) else (None, remote_url)
    local_directory.ensure_directory_exists_and_is_empty(delete_existing_contents)

    logger.info("Attempting to clone repository at: %s", remote_url)
    try:
        with transport_errors("Cloning", remote_url):
            if client is not None:
                repo = client.clone(path, str(local_directory.path), mkdir=False, progress=ProgressLog().write)
            else:
                repo = porcelain.clone(remote_url, str(local_directory.path), errstream=ProgressLog())
    except BaseException:
        # Leave no half-initialised clone behind to block the next attempt
        shutil.rmtree(local_directory.path, ignore_errors=True)
        raise
    with repo:
        git_directory = repo.controldir()
    logger.info("Repository cloned to: %s", git_directory)
    return git_directory


def add_and_commit_changes(local_directory: LocalDirectory, message: str, committer: str) -> str | None:
    """Stage every change in the working tree and commit it.

    New and modified files are added and deleted files are removed from the
    index. `committer` (``"Name <email>"``) is used as author and committer.

    Returns:
        The new commit id, or None when there was nothing to commit.
    """
    local_directory.ensure_directory_exists_and_is_git_repository()

    logger.info("Attempting to open repository: %s", local_directory.path.resolve())
    with Repo(str(local_directory.path.resolve())) as repo:
        logger.info("Successfully opened repository: %s", repo.controldir())

        status = porcelain.status(repo)
        has_staged = any(status.staged.get(kind) for kind in ("add", "delete", "modify"))
        if not (has_staged or status.unstaged or status.untracked):
            logger.info("There are no uncommitted changes or untracked files in the repository. Nothing to commit.")
            return None

        # dulwich reports paths as str or bytes depending on its version
        root = Path(repo.path)
        to_add: list[str] = [str(root / os.fsdecode(p)) for p in status.untracked]
        to_remove: list[str] = []
        for p in status.unstaged:
            path = root / os.fsdecode(p)
            (to_add if path.exists() else to_remove).append(str(path))

        if to_add:
            porcelain.add(repo, paths=to_add)
        if to_remove:
            porcelain.remove(repo, paths=to_remove, cached=True)

        commit_id = porcelain.commit(repo, message=message, author=committer, committer=committer)

    commit = commit_id.decode("ascii")
    logger.info("Successfully staged and committed changes to the local repository (%s)", commit)
    return commit


def origin_url(local_directory: LocalDirectory) -> str:
    """URL of the default remote of the clone in `local_directory`."""
    local_directory.ensure_directory_exists_and_is_git_repository()
    with Repo(str(local_directory.path.resolve())) as repo:
        _, remote_url = porcelain.get_remote_repo(repo)
    return remote_url


def push_changes(local_directory: LocalDirectory, policy: SessionPolicy | None = None) -> tuple[str, str]:
    """Push the active branch to its default remote.

    Returns:
        ``(remote_url, branch)`` that was pushed.

    Raises:
        HostVerificationFailure: If the server's host key is not the pinned one.
        TransportError: On network, protocol or authentication failures, or
            when the remote refuses the update.
    """
    local_directory.ensure_directory_exists_and_is_git_repository()

    logger.info("Attempting to open repository: %s", local_directory.path.resolve())
    with Repo(str(local_directory.path.resolve())) as repo:
        logger.info("Successfully opened repository: %s", repo.controldir())
        _, remote_url = porcelain.get_remote_repo(repo)
        branch = porcelain.active_branch(repo)
        ref = b"refs/heads/" + branch
        local_sha = repo.refs[ref]
        client, path = git_client(remote_url, policy)

        def update_refs(refs):
            return {ref: local_sha}

        logger.info("Pushing %s to %s", branch.decode("utf-8"), remote_url)
        with transport_errors("Pushing to", remote_url):
            result = client.send_pack(
                path,
                update_refs,
                generate_pack_data=repo.object_store.generate_pack_data,
                progress=ProgressLog().write,
            )

    rejected = {name: error for name, error in (result.ref_status or {}).items() if error is not None}
    if rejected:
        details = ", ".join(f"{name.decode('utf-8')}: {error}" for name, error in rejected.items())
        raise TransportError(f"Pushing to {remote_url} was refused ({details})")

    logger.info("Successfully pushed changes to the repository")
    return remote_url, branch.decode("utf-8")
