"""MCP server exposing the walkthrough steps as tools.

Each tool reads its `Configuration` from the environment (and the optional
``GITWALK_CONFIG`` YAML file) at call time, so the server holds no
repository state between calls.

Tools provided:
- `git_clone()`: Clone the configured remote over SSH.
- `git_commit(message)`: Stage and commit all local changes.
- `git_push()`: Push the active branch over SSH.
"""

from typing import Annotated

from mcp.server.fastmcp import FastMCP

from gitwalk import steps
from gitwalk.config import Configuration
from gitwalk.SSH.utils.types import CloneResult, CommitResult, PushResult

mcp: FastMCP = FastMCP("GitWalk")


@mcp.tool(
    name="git_clone",
    description=(
        "Clone the configured remote repository (GIT_REMOTE_URL) into the configured local directory over SSH. "
        "The SSH identity comes from SSH_KEY/SSH_KEY_PASSPHRASE and the server must present the host key pinned in "
        "SSH_TRUSTED_HOST_KEY.\n\n"
        "Returns: { status: 'cloned', local_directory: string, remote_url: string, git_directory: string }.\n\n"
        "Errors: configuration, credential, host verification, transport, or local repository errors; the local "
        "directory must not already exist unless GIT_DELETE_EXISTING_DIRECTORY_CONTENTS is true."
    ),
)
def git_clone() -> CloneResult:
    """Clone the configured remote into the configured local directory."""
    return steps.clone(Configuration.from_environment())


@mcp.tool(
    name="git_commit",
    description=(
        "Stage every change in the local clone (new, modified and deleted files) and commit it.\n\n"
        "Parameters:\n"
        "- message (string, optional): Commit message; defaults to GIT_COMMIT_MESSAGE or 'Add all files'.\n"
        "Returns: { status: 'committed' | 'clean', local_directory: string, commit: string | null, "
        "message: string | null }.\n\n"
        "Errors: local repository errors when the directory has not been cloned yet."
    ),
)
def git_commit(
    message: Annotated[str | None, "Commit message; the configured default when omitted."] = None,
) -> CommitResult:
    """Commit all local changes."""
    return steps.commit(Configuration.from_environment(), message=message)


@mcp.tool(
    name="git_push",
    description=(
        "Push the active branch of the local clone to its default remote over SSH, using the same pinned host key "
        "and in-memory identity as git_clone.\n\n"
        "Returns: { status: 'pushed', local_directory: string, remote_url: string, branch: string }.\n\n"
        "Errors: configuration, credential, host verification, transport, or local repository errors."
    ),
)
def git_push() -> PushResult:
    """Push the active branch to its remote."""
    return steps.push(Configuration.from_environment())
