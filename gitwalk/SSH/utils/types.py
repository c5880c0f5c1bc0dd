"""Shared TypedDict contracts for the Git-over-SSH tools."""

from __future__ import annotations

from typing import TypedDict


class BaseResult(TypedDict):
    status: str
    local_directory: str


class CloneResult(BaseResult):
    remote_url: str
    git_directory: str


class CommitResult(BaseResult):
    commit: str | None
    message: str | None


class PushResult(BaseResult):
    remote_url: str | None
    branch: str | None
