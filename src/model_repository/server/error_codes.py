"""
Error code registry for the model repository server.

Every error/warning log line carries a code of the form
{SUBSYSTEM}-{CATEGORY}-{NUMBER} registered here, so operators can look up
what a log entry means and what to do about it.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Severity(Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    description: str
    severity: Severity
    action: str


ERROR_CODE_PATTERN = re.compile(r"^[A-Z]+-[A-Z]+-\d{3}$")

_DEFINITIONS = [
    ErrorDefinition(
        code="REPO-REGISTRY-001",
        description="No repository registered for the requested project code and name",
        severity=Severity.WARNING,
        action="Check the repositories section of the server configuration",
    ),
    ErrorDefinition(
        code="REPO-PATH-001",
        description="Registered repository path does not exist",
        severity=Severity.WARNING,
        action="Create or clone the repository at the configured path",
    ),
    ErrorDefinition(
        code="REPO-PATH-002",
        description="Registered repository path is not a git repository",
        severity=Severity.WARNING,
        action="Initialize or clone a git repository at the configured path",
    ),
    ErrorDefinition(
        code="REPO-INPUT-001",
        description="Request rejected by validation (blank name, empty file, unsafe path)",
        severity=Severity.WARNING,
        action="Fix the request parameters",
    ),
    ErrorDefinition(
        code="REPO-FILE-001",
        description="Requested file was not found in the repository working tree",
        severity=Severity.WARNING,
        action="Verify the file name and branch",
    ),
    ErrorDefinition(
        code="REPO-GIT-001",
        description="Listing branches failed",
        severity=Severity.ERROR,
        action="Inspect the repository metadata for corruption",
    ),
    ErrorDefinition(
        code="REPO-GIT-002",
        description="Creating or pushing a branch failed",
        severity=Severity.ERROR,
        action="Check the source branch exists and the remote credentials are valid",
    ),
    ErrorDefinition(
        code="REPO-GIT-003",
        description="Committing a file failed",
        severity=Severity.ERROR,
        action="Check the target branch exists and the commit is not empty",
    ),
    ErrorDefinition(
        code="REPO-GIT-004",
        description="Push failed after a successful local commit; the local commit is not published",
        severity=Severity.CRITICAL,
        action="Push the dangling commit manually or reset the local branch to its remote",
    ),
    ErrorDefinition(
        code="REPO-GIT-005",
        description="Reading a file failed because of a git error",
        severity=Severity.ERROR,
        action="Check the requested branch exists locally",
    ),
    ErrorDefinition(
        code="REPO-GIT-006",
        description="Listing files failed because of a git error",
        severity=Severity.ERROR,
        action="Check the requested branch exists locally",
    ),
    ErrorDefinition(
        code="REPO-IO-001",
        description="Filesystem read or write failed",
        severity=Severity.ERROR,
        action="Check disk space and permissions of the repository directory",
    ),
    ErrorDefinition(
        code="REPO-LOCK-001",
        description="Repository lock could not be acquired before the timeout",
        severity=Severity.WARNING,
        action="Retry later or raise lock_timeout_seconds",
    ),
    ErrorDefinition(
        code="REPO-CONFIG-001",
        description="Server configuration value is invalid and was ignored",
        severity=Severity.WARNING,
        action="Fix the configuration file or environment variable",
    ),
]

ERROR_REGISTRY: Dict[str, ErrorDefinition] = {d.code: d for d in _DEFINITIONS}


def validate_error_code_format(code: str) -> bool:
    """Check that code matches {SUBSYSTEM}-{CATEGORY}-{NNN}."""
    return bool(code) and ERROR_CODE_PATTERN.match(code) is not None


def get_error_definition(code: str) -> Optional[ErrorDefinition]:
    return ERROR_REGISTRY.get(code)
