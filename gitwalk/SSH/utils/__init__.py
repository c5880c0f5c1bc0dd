"""Utility helpers for the SSH layer.

- masking: redaction of key material for logs and reprs
- types: shared TypedDict contracts for step results
"""

from .masking import redact
from .types import BaseResult, CloneResult, CommitResult, PushResult

__all__ = [
    "redact",
    "BaseResult",
    "CloneResult",
    "CommitResult",
    "PushResult",
]
