"""
Git error classifier for working-copy command failures.

Classifies git stderr output into coarse categories so callers can log an
actionable reason for a failed push, pull, or checkout without exposing the
raw tool output to HTTP clients.
"""

from typing import List, Optional, Sequence


class GitCommandError(Exception):
    """
    Raised when a git command exits with a non-zero status.

    Attributes:
        command: The git arguments that were executed (never includes secrets).
        returncode: Exit status of the git process (None on timeout).
        stderr: The raw stderr output from the failed command.
        category: One of "authentication", "network", "rejected",
                  "missing_ref", "nothing_to_commit", or "unknown".
    """

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: str = "",
        category: Optional[str] = None,
    ):
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        self.category = category or classify_git_error(stderr)


# Patterns indicating the remote refused our credentials.
AUTHENTICATION_PATTERNS: List[str] = [
    "Authentication failed",
    "could not read Username",
    "could not read Password",
    "Permission denied",
    "HTTP Basic: Access denied",
    "403",
]

# Patterns indicating the remote could not be reached.
NETWORK_PATTERNS: List[str] = [
    "Could not resolve host",
    "Connection refused",
    "Connection timed out",
    "Network is unreachable",
    "SSL",
    "unable to access",
    "does not appear to be a git repository",
]

# Patterns indicating the remote rejected the update (non-fast-forward etc.).
REJECTED_PATTERNS: List[str] = [
    "[rejected]",
    "non-fast-forward",
    "failed to push some refs",
    "Updates were rejected",
]

MISSING_REF_PATTERNS: List[str] = [
    "did not match any",
    "not a valid ref",
    "unknown revision",
    "invalid reference",
    "does not have any commits yet",
    "not a valid object name",
]

NOTHING_TO_COMMIT_PATTERNS: List[str] = [
    "nothing to commit",
    "nothing added to commit",
    "no changes added to commit",
]


def classify_git_error(stderr: str) -> str:
    """
    Classify a git failure from its stderr output.

    Authentication is checked before network because credential failures
    are frequently reported together with "unable to access".

    Args:
        stderr: The raw stderr (or combined output) of the failed command.

    Returns:
        "authentication", "network", "rejected", "missing_ref",
        "nothing_to_commit", or "unknown" when no known pattern matches.
    """
    if not stderr:
        return "unknown"

    for pattern in AUTHENTICATION_PATTERNS:
        if pattern in stderr:
            return "authentication"

    for pattern in NETWORK_PATTERNS:
        if pattern in stderr:
            return "network"

    for pattern in REJECTED_PATTERNS:
        if pattern in stderr:
            return "rejected"

    for pattern in MISSING_REF_PATTERNS:
        if pattern in stderr:
            return "missing_ref"

    for pattern in NOTHING_TO_COMMIT_PATTERNS:
        if pattern in stderr:
            return "nothing_to_commit"

    return "unknown"
