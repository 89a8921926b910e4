"""Git working-copy primitives for server-resident repositories."""

from .git_error_classifier import GitCommandError, classify_git_error
from .working_copy import (
    LOCAL_BRANCH_PREFIX,
    REMOTE_BRANCH_PREFIX,
    CommitInfo,
    Credentials,
    GitInitializationError,
    GitWorkingCopy,
    RepositoryStatus,
    strip_branch_prefix,
)

__all__ = [
    "LOCAL_BRANCH_PREFIX",
    "REMOTE_BRANCH_PREFIX",
    "CommitInfo",
    "Credentials",
    "GitCommandError",
    "GitInitializationError",
    "GitWorkingCopy",
    "RepositoryStatus",
    "classify_git_error",
    "strip_branch_prefix",
]
