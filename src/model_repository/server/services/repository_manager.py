"""
Repository Manager.

Implements each caller-facing use case (list/create branch, get/commit file,
list files) as a fixed sequence of GitWorkingCopy primitives, applying the
validation and branch reconciliation policy.

Every operation:
- holds the repository-path lock for its whole duration, so a checkout can
  never interleave with another request on the same working tree
- opens a fresh working copy and closes it regardless of outcome
- validates input before touching the working tree where feasible

A push that fails after a successful local commit is raised as PublishError
carrying the dangling commit SHA; it is never reported as success.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from model_repository.git import (
    LOCAL_BRANCH_PREFIX,
    REMOTE_BRANCH_PREFIX,
    GitCommandError,
    GitWorkingCopy,
    strip_branch_prefix,
)
from model_repository.server.logging_utils import format_error_log, get_log_extra

from .repository_lock_manager import RepositoryLockManager
from .repository_registry import RepositoryDescriptor

logger = logging.getLogger(__name__)


class InvalidArgumentError(ValueError):
    """Request input rejected before any mutation (blank name, empty file, unsafe path)."""

    pass


class RepositoryNotFoundError(Exception):
    """Repository is not registered or its path does not exist."""

    pass


class NotARepositoryError(Exception):
    """Repository path exists but holds no git metadata."""

    pass


class FileNotInRepositoryError(Exception):
    """No file with the requested name exists in the working tree."""

    pass


class PublishError(GitCommandError):
    """
    Push failed after the local commit succeeded.

    Attributes:
        commit_sha: SHA of the local commit that was not published
        branch: Branch the commit was made on
    """

    def __init__(self, message: str, cause: GitCommandError, commit_sha: str, branch: str):
        super().__init__(
            message,
            command=cause.command,
            returncode=cause.returncode,
            stderr=cause.stderr,
            category=cause.category,
        )
        self.commit_sha = commit_sha
        self.branch = branch


@dataclass
class FileCommitIntent:
    """A file upload to be written, committed and pushed."""

    file_name: Optional[str]
    content: Optional[bytes]
    branch: Optional[str] = None
    commit_message: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None


@dataclass(frozen=True)
class CommitResult:
    branch: str
    file_path: str
    commit_sha: str
    state: str = "published"


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class RepositoryManager:
    """Use-case layer on top of GitWorkingCopy."""

    def __init__(
        self,
        lock_manager: Optional[RepositoryLockManager] = None,
        git_local_timeout: int = 30,
        git_remote_timeout: int = 300,
    ):
        self.lock_manager = lock_manager or RepositoryLockManager()
        self.git_local_timeout = git_local_timeout
        self.git_remote_timeout = git_remote_timeout

    def verify_repository(self, descriptor: RepositoryDescriptor) -> None:
        """
        Check the descriptor's path exists and is a git repository.

        Raises:
            RepositoryNotFoundError: If the path does not exist
            NotARepositoryError: If the path holds no git metadata
        """
        path = Path(descriptor.path)
        if not path.exists():
            raise RepositoryNotFoundError(f"Repository path does not exist: {path}")
        if not GitWorkingCopy.is_repository(path):
            raise NotARepositoryError(f"Repository path is not a git repository: {path}")

    def list_branches(self, descriptor: RepositoryDescriptor) -> List[str]:
        """Fully qualified local and remote-tracking branch names."""
        logger.info(f"Listing branches for repository {descriptor.name}")
        with self.lock_manager.hold(descriptor.path):
            with self._open(descriptor) as working_copy:
                return working_copy.list_local_branches()

    def create_branch(
        self,
        branch_name: Optional[str],
        source_branch: Optional[str],
        descriptor: RepositoryDescriptor,
    ) -> None:
        """
        Create a branch locally and publish it, skipping whatever already exists.

        Safe to retry: a second identical call neither recreates the local
        branch nor pushes again once the remote-tracking branch exists.

        Args:
            branch_name: New branch; refs/heads/ or refs/remotes/origin/ prefixes are stripped
            source_branch: Branch to fork from; defaults to the main branch
            descriptor: Target repository

        Raises:
            InvalidArgumentError: If branch_name is blank
            GitCommandError: If the source branch is missing or a git step fails
        """
        if _is_blank(branch_name):
            raise InvalidArgumentError("branchName must not be blank")

        branch_to_checkout = (
            source_branch if not _is_blank(source_branch) else descriptor.main_branch
        )
        name = strip_branch_prefix(branch_name)
        if _is_blank(name):
            raise InvalidArgumentError(f"branchName '{branch_name}' has no branch component")

        local_branch_name = f"{LOCAL_BRANCH_PREFIX}{name}"
        remote_branch_name = f"{REMOTE_BRANCH_PREFIX}{name}"

        logger.info(
            f"Creating branch '{name}' in repository {descriptor.name} from {branch_to_checkout}"
        )
        with self.lock_manager.hold(descriptor.path):
            with self._open(descriptor) as working_copy:
                if not _is_blank(branch_to_checkout):
                    working_copy.checkout(branch_to_checkout)

                branches = working_copy.list_local_branches()
                if local_branch_name not in branches:
                    logger.debug(f"Local branch '{local_branch_name}' does not exist, creating")
                    working_copy.create_branch(name, checkout=False)
                else:
                    logger.debug(f"Local branch '{local_branch_name}' already exists, skipping creation")

                if remote_branch_name not in branches:
                    logger.debug(f"Remote branch '{remote_branch_name}' does not exist, pushing")
                    working_copy.push_branch(name, descriptor.credentials())
                else:
                    logger.debug(f"Remote branch '{remote_branch_name}' already exists, skipping push")

        logger.info(f"Branch '{name}' processed for repository {descriptor.name}")

    def get_file(
        self, file_name: str, descriptor: RepositoryDescriptor, branch: Optional[str]
    ) -> bytes:
        """
        Read the first file named file_name on branch.

        Raises:
            ValueError: If file_name is blank or contains a path component
            GitCommandError: If the branch does not exist locally
            FileNotInRepositoryError: If no file matches
            OSError: If the file cannot be read
        """
        target_branch = branch if not _is_blank(branch) else descriptor.main_branch
        logger.info(
            f"Retrieving file '{file_name}' from branch '{target_branch}' in repository {descriptor.name}"
        )
        with self.lock_manager.hold(descriptor.path):
            with self._open(descriptor) as working_copy:
                self._ensure_checked_out(working_copy, target_branch)
                match = working_copy.find_file_by_name(file_name)
                if match is None:
                    raise FileNotInRepositoryError(
                        f"File '{file_name}' not found on branch '{target_branch}'"
                    )
                return match.read_bytes()

    def commit_file(self, intent: FileCommitIntent, descriptor: RepositoryDescriptor) -> CommitResult:
        """
        Write an uploaded file into the working tree, commit it and push it.

        Steps run in order and any failure aborts the rest. Files written to
        disk are not rolled back.

        Raises:
            InvalidArgumentError: Empty content, blank name/message, or a path outside the repository
            GitCommandError: If checkout, staging or commit fails
            PublishError: If the push fails after the local commit
            OSError: If the file cannot be written
        """
        if not intent.content:
            raise InvalidArgumentError("file must not be empty")
        if _is_blank(intent.file_name):
            raise InvalidArgumentError("file name must not be blank")
        if _is_blank(intent.commit_message):
            raise InvalidArgumentError("commit message must not be blank")

        branch = intent.branch if not _is_blank(intent.branch) else descriptor.main_branch
        repository_root = Path(descriptor.path)
        target_file = self._resolve_target_path(repository_root, intent.file_name)
        relative_path = target_file.relative_to(os.path.abspath(repository_root)).as_posix()

        author_name = (
            intent.author_name if not _is_blank(intent.author_name) else descriptor.default_commit_user
        )
        author_email = intent.author_email if intent.author_email is not None else ""

        logger.info(
            f"Committing file '{relative_path}' to branch '{branch}' in repository {descriptor.name}"
        )
        with self.lock_manager.hold(descriptor.path):
            with self._open(descriptor) as working_copy:
                working_copy.checkout(branch)
                self._ensure_within_root(repository_root, target_file)

                target_file.parent.mkdir(parents=True, exist_ok=True)
                target_file.write_bytes(intent.content)

                working_copy.stage_all()
                commit_sha = working_copy.commit(intent.commit_message, author_name, author_email)

                try:
                    working_copy.push_branch(branch, descriptor.credentials())
                except GitCommandError as e:
                    logger.error(
                        format_error_log(
                            "REPO-GIT-004",
                            "Push failed after local commit",
                            repository=descriptor.name,
                            branch=branch,
                            commit=commit_sha,
                            category=e.category,
                        ),
                        extra=get_log_extra("REPO-GIT-004"),
                    )
                    raise PublishError(
                        f"Commit {commit_sha} on '{branch}' was not published",
                        cause=e,
                        commit_sha=commit_sha,
                        branch=branch,
                    ) from e

        logger.info(
            f"File '{relative_path}' committed to branch '{branch}' in repository {descriptor.name}"
        )
        return CommitResult(branch=branch, file_path=relative_path, commit_sha=commit_sha)

    def list_files(
        self, descriptor: RepositoryDescriptor, branch: Optional[str] = None
    ) -> List[str]:
        """
        Immediate entries of the repository root (not recursive), sorted.

        The .git metadata directory is not listed.
        """
        target_branch = branch if not _is_blank(branch) else descriptor.main_branch
        logger.info(f"Listing files for repository {descriptor.name} on branch {target_branch}")
        repository_root = Path(descriptor.path)
        with self.lock_manager.hold(descriptor.path):
            with self._open(descriptor) as working_copy:
                self._ensure_checked_out(working_copy, target_branch)
                return sorted(
                    entry.relative_to(repository_root).as_posix()
                    for entry in repository_root.iterdir()
                    if entry.name != ".git"
                )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _open(self, descriptor: RepositoryDescriptor) -> GitWorkingCopy:
        return GitWorkingCopy.open_or_init(
            descriptor.path,
            remote_url=descriptor.remote_url,
            initial_branch=descriptor.main_branch,
            local_timeout=self.git_local_timeout,
            remote_timeout=self.git_remote_timeout,
        )

    def _ensure_checked_out(self, working_copy: GitWorkingCopy, branch: str) -> None:
        """Check out branch unless it is already the current branch."""
        if working_copy.current_branch() != branch:
            working_copy.checkout(branch)

    def _resolve_target_path(self, repository_root: Path, file_name: str) -> Path:
        """
        Resolve file_name against the repository root.

        Raises:
            InvalidArgumentError: If the result leaves the root (traversal,
                absolute path, symlink escape) or points into .git
        """
        if os.path.isabs(file_name) or file_name.startswith(("/", "\\")):
            raise InvalidArgumentError("file path must be relative to the repository")

        root = os.path.abspath(repository_root)
        target = os.path.normpath(os.path.join(root, file_name))

        if target == root or os.path.commonpath([root, target]) != root:
            raise InvalidArgumentError("file path must stay within repository")

        if ".git" in Path(os.path.relpath(target, root)).parts:
            raise InvalidArgumentError("file path must not point into .git")

        resolved = Path(target)
        self._ensure_within_root(repository_root, resolved)
        return resolved

    def _ensure_within_root(self, repository_root: Path, target: Path) -> None:
        """
        Reject a target whose real location, after following symlinks, leaves
        the repository root.

        Symlinks come from the checked-out tree, so commit_file repeats this
        check after switching to the target branch and before writing.

        Raises:
            InvalidArgumentError: If the target resolves outside the root
        """
        real_root = os.path.realpath(repository_root)
        real_target = os.path.realpath(target)
        if os.path.commonpath([real_root, real_target]) != real_root:
            raise InvalidArgumentError("file path must stay within repository")
