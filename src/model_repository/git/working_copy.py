"""
Git working copy - primitive git operations bound to one working directory.

Wraps the git command line through subprocess.run. Every non-zero exit is
raised as GitCommandError so callers decide how a failure is reported; nothing
here retries or swallows a failed command.

Credentials never appear in argv or in remote URLs. They are handed to git
through an inline credential helper that reads two environment variables
scoped to the single subprocess invocation.
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .git_error_classifier import GitCommandError

logger = logging.getLogger(__name__)

LOCAL_BRANCH_PREFIX = "refs/heads/"
REMOTE_BRANCH_PREFIX = "refs/remotes/origin/"
DEFAULT_REMOTE = "origin"

_USERNAME_ENV = "MODEL_REPO_GIT_USERNAME"
_PASSWORD_ENV = "MODEL_REPO_GIT_PASSWORD"
_CREDENTIAL_HELPER = (
    "!f() { "
    f'echo "username=${{{_USERNAME_ENV}}}"; '
    f'echo "password=${{{_PASSWORD_ENV}}}"; '
    "}; f"
)

# Field/record separators for machine-readable git log output
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


class GitInitializationError(Exception):
    """Raised when a working directory cannot be created, initialized or opened."""

    pass


@dataclass(frozen=True)
class Credentials:
    """Username/password pair for authenticating against a remote."""

    username: str
    password: str = field(repr=False)


@dataclass
class RepositoryStatus:
    """Snapshot of working-tree changes relative to the index and HEAD."""

    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def has_uncommitted_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    @property
    def is_clean(self) -> bool:
        return not (self.has_uncommitted_changes or self.untracked)


@dataclass(frozen=True)
class CommitInfo:
    """One entry of git log output."""

    sha: str
    author_name: str
    author_email: str
    authored_at: str
    message: str


def _run_git(
    args: Sequence[str],
    cwd: Path,
    timeout: int,
    credentials: Optional[Credentials] = None,
    extra_env: Optional[dict] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run a git command and return the completed process.

    Args:
        args: git arguments (without the leading "git")
        cwd: Directory to run in
        timeout: Seconds before the command is aborted
        credentials: Optional credentials exposed through the inline helper
        extra_env: Additional environment variables for this invocation
        check: Raise GitCommandError on non-zero exit when True

    Raises:
        GitCommandError: If the command fails (check=True) or times out
    """
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"  # never block on an interactive prompt
    if extra_env:
        env.update(extra_env)

    cmd = ["git"]
    if credentials is not None:
        # Empty helper first resets any helper inherited from user config
        cmd += ["-c", "credential.helper=", "-c", f"credential.helper={_CREDENTIAL_HELPER}"]
        env[_USERNAME_ENV] = credentials.username
        env[_PASSWORD_ENV] = credentials.password
    cmd += list(args)

    logger.debug(f"Executing: git {' '.join(args)} (cwd={cwd})")

    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        raise GitCommandError(
            f"git {args[0]} timed out after {timeout}s in {cwd}",
            command=args,
            returncode=None,
            stderr="",
            category="network",
        )
    except OSError as e:
        raise GitCommandError(
            f"git {args[0]} could not be started in {cwd}: {e}",
            command=args,
            returncode=None,
            stderr=str(e),
        ) from e

    if check and result.returncode != 0:
        # git reports some failures (e.g. "nothing to commit") on stdout
        output = result.stderr.strip() or result.stdout.strip()
        raise GitCommandError(
            f"git {args[0]} failed in {cwd} (exit {result.returncode})",
            command=args,
            returncode=result.returncode,
            stderr=output,
        )

    return result


def strip_branch_prefix(name: str) -> str:
    """Remove a local or remote-tracking ref prefix from a branch name."""
    name = name.replace(LOCAL_BRANCH_PREFIX, "")
    name = name.replace(REMOTE_BRANCH_PREFIX, "")
    return name


class GitWorkingCopy:
    """
    Stateful handle bound to exactly one on-disk git working directory.

    Instances are cheap; use open_or_init() or clone_repository() to obtain
    one, and close() (or a with-block) when the operation is finished.
    """

    def __init__(
        self,
        working_dir: Union[str, Path],
        local_timeout: int = 30,
        remote_timeout: int = 300,
    ):
        """
        Bind to a working directory without touching the filesystem.

        Args:
            working_dir: Repository working directory
            local_timeout: Timeout in seconds for local git commands
            remote_timeout: Timeout in seconds for push/pull/clone
        """
        self._working_dir = Path(working_dir)
        self.local_timeout = local_timeout
        self.remote_timeout = remote_timeout
        self._closed = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def open_or_init(
        cls,
        path: Union[str, Path],
        remote_url: Optional[str] = None,
        initial_branch: Optional[str] = None,
        local_timeout: int = 30,
        remote_timeout: int = 300,
    ) -> "GitWorkingCopy":
        """
        Open the repository at path, creating and initializing it if needed.

        Args:
            path: Working directory; created when missing
            remote_url: When given and no origin remote exists, added as origin
            initial_branch: Branch name for a freshly initialized repository
            local_timeout: Timeout in seconds for local git commands
            remote_timeout: Timeout in seconds for remote git commands

        Returns:
            Bound GitWorkingCopy

        Raises:
            GitInitializationError: If the directory cannot be created or the
                repository cannot be initialized/opened
        """
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise GitInitializationError(
                f"Failed to create working directory {path}: {e}"
            ) from e

        if not path.is_dir():
            raise GitInitializationError(f"Working directory {path} is not a directory")

        working_copy = cls(path, local_timeout=local_timeout, remote_timeout=remote_timeout)

        try:
            if not cls.is_repository(path):
                init_args = ["init"]
                if initial_branch:
                    init_args.append(f"--initial-branch={initial_branch}")
                working_copy._run(init_args)
                logger.info(f"Initialized empty git repository at {path}")
            else:
                working_copy._run(["rev-parse", "--git-dir"])

            if remote_url:
                working_copy._ensure_origin(remote_url)
        except GitCommandError as e:
            raise GitInitializationError(
                f"Failed to open git repository at {path}: {e.stderr or e}"
            ) from e

        return working_copy

    @classmethod
    def clone_repository(
        cls,
        remote_url: str,
        path: Union[str, Path],
        credentials: Optional[Credentials] = None,
        local_timeout: int = 30,
        remote_timeout: int = 300,
    ) -> "GitWorkingCopy":
        """
        Clone a remote repository into path.

        Args:
            remote_url: URL of the remote repository (without embedded secrets)
            path: Target directory; must not contain a non-empty directory
            credentials: Optional credentials for the remote

        Returns:
            Bound GitWorkingCopy for the clone

        Raises:
            GitCommandError: If the clone fails
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Cloning repository into {path}")
        _run_git(
            ["clone", "--", remote_url, str(path)],
            cwd=path.parent,
            timeout=remote_timeout,
            credentials=credentials,
        )
        return cls(path, local_timeout=local_timeout, remote_timeout=remote_timeout)

    @staticmethod
    def is_repository(path: Union[str, Path]) -> bool:
        """
        Check whether path is inside a git repository.

        Walks from path up through its parents looking for a .git entry, the
        same discovery rule git itself uses. Never raises.
        """
        try:
            candidate = Path(path).resolve()
            for directory in (candidate, *candidate.parents):
                if (directory / ".git").exists():
                    return True
            return False
        except (OSError, ValueError, RuntimeError):
            return False

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    def status(self) -> RepositoryStatus:
        """git status, parsed into added/modified/untracked/deleted lists."""
        result = self._run(["status", "--porcelain=v1", "-z", "--untracked-files=all"])
        status = RepositoryStatus()

        entries = result.stdout.split("\0")
        index = 0
        while index < len(entries):
            entry = entries[index]
            index += 1
            if len(entry) < 4:
                continue

            x, y, file_path = entry[0], entry[1], entry[3:]
            if x in ("R", "C"):
                # Renames/copies are followed by the original path
                index += 1

            if x == "?" and y == "?":
                status.untracked.append(file_path)
            elif x == "A":
                status.added.append(file_path)
            elif x == "D" or y == "D":
                status.deleted.append(file_path)
            elif x in ("M", "R", "C", "T") or y in ("M", "T"):
                status.modified.append(file_path)

        return status

    def stage_all(self) -> None:
        """git add --all"""
        self._run(["add", "--all", "--", "."])

    def commit(self, message: str, author_name: str, author_email: str) -> str:
        """
        Commit the staged tree with the given author (also used as committer).

        Returns:
            SHA of the new commit

        Raises:
            GitCommandError: If nothing is staged or git rejects the commit
        """
        identity = {
            "GIT_AUTHOR_NAME": author_name,
            "GIT_AUTHOR_EMAIL": author_email,
            "GIT_COMMITTER_NAME": author_name,
            "GIT_COMMITTER_EMAIL": author_email,
        }
        self._run(["commit", "-m", message], extra_env=identity)
        return self._run(["rev-parse", "HEAD"]).stdout.strip()

    def create_branch(self, name: str, checkout: bool = False) -> None:
        """
        Create a new local branch at HEAD.

        Args:
            name: Branch name, e.g. "feature/foo"
            checkout: Switch to the new branch afterwards

        Raises:
            GitCommandError: If the branch already exists or HEAD has no commit
        """
        self._run(["branch", name])
        if checkout:
            self.checkout(name)

    def checkout(self, name: str) -> None:
        """
        Switch the working tree and HEAD to an existing local branch.

        Never creates a branch from a remote-tracking ref and never treats
        name as a path.

        Raises:
            GitCommandError: If the branch does not exist locally
        """
        if name.startswith(LOCAL_BRANCH_PREFIX):
            name = name[len(LOCAL_BRANCH_PREFIX):]

        ref = self._run(
            ["show-ref", "--verify", "--quiet", f"{LOCAL_BRANCH_PREFIX}{name}"],
            check=False,
        )
        if ref.returncode != 0:
            raise GitCommandError(
                f"Branch '{name}' does not exist locally in {self._working_dir}",
                command=["checkout", name],
                returncode=ref.returncode,
                stderr=ref.stderr.strip(),
                category="missing_ref",
            )

        self._run(["checkout", name, "--"])

    def current_branch(self) -> Optional[str]:
        """Short name of the checked-out branch, None for a detached HEAD."""
        result = self._run(["symbolic-ref", "--short", "-q", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def list_local_branches(self) -> List[str]:
        """
        List local and remote-tracking branches as fully qualified ref names.

        Order is whatever git yields; callers must not depend on it.
        """
        result = self._run(
            ["for-each-ref", "--format=%(refname)", "refs/heads", "refs/remotes"]
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def push_branch(self, name: str, credentials: Optional[Credentials] = None) -> None:
        """
        Push a single local branch to origin.

        Args:
            name: Branch to push (refs/heads/ is prefixed automatically)
            credentials: Optional credentials; None means anonymous push

        Raises:
            ValueError: If name is blank
            GitCommandError: On authentication/network failure or rejection
        """
        if name is None or not name.strip():
            raise ValueError("branch name must not be blank")

        if name.startswith(LOCAL_BRANCH_PREFIX):
            name = name[len(LOCAL_BRANCH_PREFIX):]
        refspec = f"{LOCAL_BRANCH_PREFIX}{name}:{LOCAL_BRANCH_PREFIX}{name}"

        self._run(
            ["push", DEFAULT_REMOTE, refspec],
            timeout=self.remote_timeout,
            credentials=credentials,
        )
        logger.info(f"Pushed branch '{name}' from {self._working_dir}")

    def push(self, credentials: Optional[Credentials] = None) -> None:
        """git push --all"""
        self._run(
            ["push", "--all", DEFAULT_REMOTE],
            timeout=self.remote_timeout,
            credentials=credentials,
        )

    def pull(self, credentials: Optional[Credentials] = None) -> None:
        """
        git pull, fast-forward only.

        A divergent branch fails instead of producing a merge commit.
        """
        self._run(
            ["pull", "--ff-only"],
            timeout=self.remote_timeout,
            credentials=credentials,
        )

    def log(self, max_commits: int) -> List[CommitInfo]:
        """
        git log, newest first.

        Returns an empty list for a repository without commits.
        """
        if max_commits <= 0:
            raise ValueError("max_commits must be positive")

        head = self._run(["rev-parse", "--verify", "-q", "HEAD"], check=False)
        if head.returncode != 0:
            return []

        fmt = _FIELD_SEP.join(["%H", "%an", "%ae", "%aI", "%s"]) + _RECORD_SEP
        result = self._run(["log", f"--max-count={max_commits}", f"--format={fmt}"])

        commits = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, author_name, author_email, authored_at, message = record.split(_FIELD_SEP, 4)
            commits.append(
                CommitInfo(
                    sha=sha,
                    author_name=author_name,
                    author_email=author_email,
                    authored_at=authored_at,
                    message=message,
                )
            )
        return commits

    def find_file_by_name(self, name: str) -> Optional[Path]:
        """
        Find the first regular file whose base name equals name.

        Searches recursively, skipping the .git metadata directory. Symlinks
        are not regular files and never match.

        Args:
            name: Base file name, no path component

        Returns:
            Path of a matching file, or None when nothing matches or the
            working directory does not exist

        Raises:
            ValueError: If name is blank or contains a path separator
        """
        if name is None or not name.strip():
            raise ValueError("file name must not be blank")
        if "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"file name must not contain a path component: {name!r}")

        if not self._working_dir.is_dir():
            return None

        for root, dirnames, filenames in os.walk(self._working_dir):
            dirnames[:] = sorted(d for d in dirnames if d != ".git")
            if name in filenames:
                candidate = Path(root) / name
                if candidate.is_file() and not candidate.is_symlink():
                    return candidate

        return None

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the binding. Safe to call more than once."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "GitWorkingCopy":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _ensure_origin(self, remote_url: str) -> None:
        """Add remote_url as origin unless an origin remote is configured."""
        existing = self._run(["remote", "get-url", DEFAULT_REMOTE], check=False)
        if existing.returncode != 0:
            self._run(["remote", "add", DEFAULT_REMOTE, remote_url])
            logger.info(f"Configured origin remote for {self._working_dir}")

    def _run(
        self,
        args: Sequence[str],
        timeout: Optional[int] = None,
        credentials: Optional[Credentials] = None,
        extra_env: Optional[dict] = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        if self._closed:
            raise ValueError(f"Working copy for {self._working_dir} is closed")
        return _run_git(
            args,
            cwd=self._working_dir,
            timeout=timeout or self.local_timeout,
            credentials=credentials,
            extra_env=extra_env,
            check=check,
        )
