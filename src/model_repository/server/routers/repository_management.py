"""
Repository Management REST API Router.

Provides REST endpoints for managing files inside server-resident git
repositories addressed by {project_code}/{repository_name}: list branches,
create a branch, read a file, commit a file, and list root entries.

Failures are returned as coarse status codes with a short detail message;
git output and stack traces only go to the server log.
"""

import base64
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from model_repository.git import GitCommandError, GitInitializationError
from model_repository.server.logging_utils import format_error_log, get_log_extra
from model_repository.server.services.repository_lock_manager import RepositoryBusyError
from model_repository.server.services.repository_manager import (
    FileCommitIntent,
    FileNotInRepositoryError,
    InvalidArgumentError,
    NotARepositoryError,
    RepositoryManager,
    RepositoryNotFoundError,
)
from model_repository.server.services.repository_registry import (
    RepositoryDescriptor,
    RepositoryRegistry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repository-management", tags=["repository-management"])


class CreateBranchRequest(BaseModel):
    """Request body for POST /repository-management/{project_code}/{repository_name}/create-branch."""

    model_config = ConfigDict(populate_by_name=True)

    branch_name: Optional[str] = Field(
        default=None, alias="branchName", description="Branch to create"
    )
    source_branch: Optional[str] = Field(
        default=None,
        alias="sourceBranch",
        description="Branch to fork from; defaults to the repository's main branch",
    )


def get_repository_registry(request: Request) -> RepositoryRegistry:
    """Get repository registry from app state."""
    registry = getattr(request.app.state, "repository_registry", None)
    if registry is None:
        raise RuntimeError(
            "repository_registry not initialized. "
            "Server must set app.state.repository_registry during startup."
        )
    return registry


def get_repository_manager(request: Request) -> RepositoryManager:
    """Get repository manager from app state."""
    manager = getattr(request.app.state, "repository_manager", None)
    if manager is None:
        raise RuntimeError(
            "repository_manager not initialized. "
            "Server must set app.state.repository_manager during startup."
        )
    return manager


def _find_repository(
    registry: RepositoryRegistry, project_code: str, repository_name: str, operation: str
) -> RepositoryDescriptor:
    descriptor = registry.find(project_code, repository_name)
    if descriptor is None:
        logger.warning(
            format_error_log(
                "REPO-REGISTRY-001",
                "Repository not found",
                project_code=project_code,
                repository=repository_name,
                operation=operation,
            ),
            extra=get_log_extra("REPO-REGISTRY-001"),
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository '{project_code}/{repository_name}' not found",
        )
    return descriptor


def _verify_repository(
    manager: RepositoryManager, descriptor: RepositoryDescriptor, project_code: str
) -> None:
    """
    Check a registered repository's path is usable.

    Raises:
        HTTPException 404: Path missing
        HTTPException 400: Path exists but is not a git repository
    """
    try:
        manager.verify_repository(descriptor)
    except RepositoryNotFoundError:
        logger.warning(
            format_error_log(
                "REPO-PATH-001",
                "Repository path does not exist",
                repository=descriptor.name,
                path=descriptor.path,
            ),
            extra=get_log_extra("REPO-PATH-001"),
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository '{project_code}/{descriptor.name}' not found",
        )
    except NotARepositoryError:
        logger.warning(
            format_error_log(
                "REPO-PATH-002",
                "Repository path is not a git repository",
                repository=descriptor.name,
                path=descriptor.path,
            ),
            extra=get_log_extra("REPO-PATH-002"),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Repository '{project_code}/{descriptor.name}' is not a git repository",
        )


def _resolve_repository(
    registry: RepositoryRegistry,
    manager: RepositoryManager,
    project_code: str,
    repository_name: str,
    operation: str,
) -> RepositoryDescriptor:
    """Look up a registered repository and verify its path."""
    descriptor = _find_repository(registry, project_code, repository_name, operation)
    _verify_repository(manager, descriptor, project_code)
    return descriptor


def _git_failure(error_code: str, message: str, error: Exception, status_code: int, **context) -> HTTPException:
    """Log a git failure with full detail and build the coarse client error."""
    logger.error(
        format_error_log(
            error_code,
            message,
            category=getattr(error, "category", "unknown"),
            stderr=getattr(error, "stderr", str(error)),
            **context,
        ),
        extra=get_log_extra(error_code),
    )
    return HTTPException(status_code=status_code, detail="Version control operation failed")


def _io_failure(message: str, error: OSError, **context) -> HTTPException:
    logger.error(
        format_error_log("REPO-IO-001", message, error=error, **context),
        extra=get_log_extra("REPO-IO-001"),
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Repository I/O failure",
    )


def _invalid_argument(error: ValueError, **context) -> HTTPException:
    logger.warning(
        format_error_log("REPO-INPUT-001", "Invalid request", reason=error, **context),
        extra=get_log_extra("REPO-INPUT-001"),
    )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def _busy(error: RepositoryBusyError, **context) -> HTTPException:
    logger.warning(
        format_error_log("REPO-LOCK-001", "Repository busy", **context),
        extra=get_log_extra("REPO-LOCK-001"),
    )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Repository is busy, retry later",
    )


@router.get(
    "/{project_code}/{repository_name}/branches",
    response_model=List[str],
    responses={
        200: {"description": "Fully qualified branch references"},
        400: {"description": "Path is not a git repository"},
        404: {"description": "Repository not found"},
        500: {"description": "Version control failure"},
    },
)
def list_branches(
    project_code: str,
    repository_name: str,
    registry: RepositoryRegistry = Depends(get_repository_registry),
    manager: RepositoryManager = Depends(get_repository_manager),
) -> List[str]:
    """
    List local and remote-tracking branches of a repository.

    Returns:
        Branch references such as refs/heads/main and refs/remotes/origin/main
    """
    descriptor = _resolve_repository(registry, manager, project_code, repository_name, "list_branches")

    try:
        return manager.list_branches(descriptor)
    except RepositoryBusyError as e:
        raise _busy(e, repository=repository_name)
    except (GitCommandError, GitInitializationError) as e:
        raise _git_failure(
            "REPO-GIT-001",
            "Failed to list branches",
            e,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            repository=repository_name,
        )


@router.post(
    "/{project_code}/{repository_name}/create-branch",
    status_code=status.HTTP_201_CREATED,
    response_class=Response,
    responses={
        201: {"description": "Branch created (or already present) and published"},
        400: {"description": "Blank branch name, not a repository, or version control rejection"},
        404: {"description": "Repository not found"},
    },
)
def create_branch(
    project_code: str,
    repository_name: str,
    request: Optional[CreateBranchRequest] = Body(default=None),
    registry: RepositoryRegistry = Depends(get_repository_registry),
    manager: RepositoryManager = Depends(get_repository_manager),
) -> Response:
    """
    Create a branch and push it to origin.

    Idempotent: an existing local branch is not recreated and an existing
    remote-tracking branch is not pushed again.
    """
    descriptor = _find_repository(registry, project_code, repository_name, "create_branch")

    if request is None or request.branch_name is None or not request.branch_name.strip():
        logger.warning(
            format_error_log(
                "REPO-INPUT-001",
                "Invalid createBranch request payload",
                repository=repository_name,
            ),
            extra=get_log_extra("REPO-INPUT-001"),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="branchName must not be blank",
        )

    _verify_repository(manager, descriptor, project_code)

    try:
        manager.create_branch(request.branch_name, request.source_branch, descriptor)
    except InvalidArgumentError as e:
        raise _invalid_argument(e, repository=repository_name)
    except RepositoryBusyError as e:
        raise _busy(e, repository=repository_name)
    except (GitCommandError, GitInitializationError) as e:
        raise _git_failure(
            "REPO-GIT-002",
            "Git error while creating branch",
            e,
            status.HTTP_400_BAD_REQUEST,
            repository=repository_name,
            branch=request.branch_name,
        )
    except OSError as e:
        raise _io_failure("IO error creating branch", e, repository=repository_name)

    return Response(status_code=status.HTTP_201_CREATED)


@router.get(
    "/{project_code}/{repository_name}/file",
    response_class=PlainTextResponse,
    responses={
        200: {"description": "Base64-encoded file content"},
        400: {"description": "Invalid file name or not a repository"},
        404: {"description": "Repository or file not found"},
        500: {"description": "I/O or version control failure"},
    },
)
def get_file(
    project_code: str,
    repository_name: str,
    file_name: str = Query(..., alias="fileName", description="Base name of the file"),
    branch: Optional[str] = Query(None, description="Branch to read from; defaults to main branch"),
    registry: RepositoryRegistry = Depends(get_repository_registry),
    manager: RepositoryManager = Depends(get_repository_manager),
) -> PlainTextResponse:
    """
    Return a file's content, base64-encoded, as of the given branch.
    """
    descriptor = _resolve_repository(registry, manager, project_code, repository_name, "get_file")

    try:
        content = manager.get_file(file_name, descriptor, branch)
    except FileNotInRepositoryError:
        logger.warning(
            format_error_log(
                "REPO-FILE-001",
                "File not found",
                repository=repository_name,
                file=file_name,
                branch=branch,
            ),
            extra=get_log_extra("REPO-FILE-001"),
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File '{file_name}' not found",
        )
    except RepositoryBusyError as e:
        raise _busy(e, repository=repository_name)
    except (GitCommandError, GitInitializationError) as e:
        raise _git_failure(
            "REPO-GIT-005",
            "Git error retrieving file",
            e,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            repository=repository_name,
            file=file_name,
            branch=branch,
        )
    except ValueError as e:
        raise _invalid_argument(e, repository=repository_name, file=file_name)
    except OSError as e:
        raise _io_failure("IO error retrieving file", e, repository=repository_name, file=file_name)

    return PlainTextResponse(base64.b64encode(content).decode("ascii"))


@router.post(
    "/{project_code}/{repository_name}/commit-file",
    response_class=Response,
    responses={
        200: {"description": "File committed and pushed"},
        400: {"description": "Invalid upload, not a repository, or version control rejection"},
        404: {"description": "Repository not found"},
        500: {"description": "I/O failure"},
    },
)
def commit_file(
    project_code: str,
    repository_name: str,
    file: Optional[UploadFile] = File(default=None),
    branch: Optional[str] = Form(default=None),
    commit_message: Optional[str] = Form(default=None, alias="commitMessage"),
    author_name: Optional[str] = Form(default=None, alias="authorName"),
    author_email: Optional[str] = Form(default=None, alias="authorEmail"),
    registry: RepositoryRegistry = Depends(get_repository_registry),
    manager: RepositoryManager = Depends(get_repository_manager),
) -> Response:
    """
    Write an uploaded file into the repository, commit it on branch and push.
    """
    descriptor = _resolve_repository(registry, manager, project_code, repository_name, "commit_file")

    intent = FileCommitIntent(
        file_name=file.filename if file is not None else None,
        content=file.file.read() if file is not None else None,
        branch=branch,
        commit_message=commit_message,
        author_name=author_name,
        author_email=author_email,
    )

    try:
        manager.commit_file(intent, descriptor)
    except InvalidArgumentError as e:
        raise _invalid_argument(e, repository=repository_name)
    except RepositoryBusyError as e:
        raise _busy(e, repository=repository_name)
    except (GitCommandError, GitInitializationError) as e:
        raise _git_failure(
            "REPO-GIT-003",
            "Git error committing file",
            e,
            status.HTTP_400_BAD_REQUEST,
            repository=repository_name,
            branch=branch,
        )
    except OSError as e:
        raise _io_failure("IO error committing file", e, repository=repository_name)

    return Response(status_code=status.HTTP_200_OK)


@router.get(
    "/{project_code}/{repository_name}/files",
    response_model=List[str],
    responses={
        200: {"description": "Root entries relative to the repository root"},
        400: {"description": "Path is not a git repository"},
        404: {"description": "Repository not found"},
        500: {"description": "I/O or version control failure"},
    },
)
def list_files(
    project_code: str,
    repository_name: str,
    branch: Optional[str] = Query(None, description="Branch to list; defaults to main branch"),
    registry: RepositoryRegistry = Depends(get_repository_registry),
    manager: RepositoryManager = Depends(get_repository_manager),
) -> List[str]:
    """
    List the immediate entries of the repository root on branch.
    """
    descriptor = _resolve_repository(registry, manager, project_code, repository_name, "list_files")

    try:
        return manager.list_files(descriptor, branch)
    except RepositoryBusyError as e:
        raise _busy(e, repository=repository_name)
    except (GitCommandError, GitInitializationError) as e:
        raise _git_failure(
            "REPO-GIT-006",
            "Error listing files",
            e,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            repository=repository_name,
            branch=branch,
        )
    except OSError as e:
        raise _io_failure("IO error listing files", e, repository=repository_name, branch=branch)
