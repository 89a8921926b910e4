"""
Pytest fixtures for working-copy and repository manager integration tests.

Provides shared test fixtures for:
- A bare "remote" repository on the local filesystem
- A working repository with one commit on main, pushed to that remote
- A RepositoryDescriptor / RepositoryRegistry for the working repository
- FastAPI test application and TestClient wired to the real registry

All fixtures use REAL git operations - NO Python mocks for git commands.
"""

import logging
import subprocess
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from model_repository.server.app import create_app
from model_repository.server.services.repository_registry import (
    RepositoryDescriptor,
    RepositoryRegistry,
)
from model_repository.server.utils.config_manager import ServerConfig

logger = logging.getLogger(__name__)

PROJECT_CODE = "PRJ"
REPOSITORY_NAME = "models"


def run_git(*args: str, cwd: Path) -> str:
    """Run a git command for test setup/inspection and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """
    Create a bare repository acting as origin.

    Yields:
        Path to the bare repository
    """
    remote_path = tmp_path / "remote.git"
    remote_path.mkdir()
    run_git("init", "--bare", cwd=remote_path)
    run_git("symbolic-ref", "HEAD", "refs/heads/main", cwd=remote_path)
    return remote_path


@pytest.fixture
def local_test_repo(tmp_path: Path, remote_repo: Path) -> Generator[Path, None, None]:
    """
    Create a local test repository (no network access required).

    Layout on main:
        README.md
        models/order.bpmn

    Yields:
        Path to local test repository
    """
    repo_path = tmp_path / "test-repo"
    repo_path.mkdir()

    run_git("init", cwd=repo_path)
    run_git("config", "user.email", "test@example.com", cwd=repo_path)
    run_git("config", "user.name", "Test User", cwd=repo_path)
    run_git("remote", "add", "origin", str(remote_repo), cwd=repo_path)

    (repo_path / "README.md").write_text("# Test Repository\n")
    (repo_path / "models").mkdir()
    (repo_path / "models" / "order.bpmn").write_text("<definitions id='order'/>\n")

    run_git("add", ".", cwd=repo_path)
    run_git("commit", "-m", "Initial commit", cwd=repo_path)
    run_git("branch", "-M", "main", cwd=repo_path)
    run_git("push", "-u", "origin", "main", cwd=repo_path)

    logger.info(f"Created local test repository at {repo_path}")
    yield repo_path


@pytest.fixture
def descriptor(local_test_repo: Path, remote_repo: Path) -> RepositoryDescriptor:
    """Descriptor for the local test repository."""
    return RepositoryDescriptor(
        name=REPOSITORY_NAME,
        project_code=PROJECT_CODE,
        path=str(local_test_repo),
        remote_url=str(remote_repo),
        main_branch="main",
    )


@pytest.fixture
def test_app(tmp_path: Path, descriptor: RepositoryDescriptor):
    """
    Create FastAPI test application serving the local test repository.

    A second registered repository points at a plain directory so the
    not-a-repository path can be exercised.
    """
    plain_dir = tmp_path / "plain"
    plain_dir.mkdir()

    registry = RepositoryRegistry(
        [
            descriptor,
            RepositoryDescriptor(name="plain", project_code=PROJECT_CODE, path=str(plain_dir)),
            RepositoryDescriptor(
                name="missing", project_code=PROJECT_CODE, path=str(tmp_path / "does-not-exist")
            ),
        ]
    )
    config = ServerConfig(server_dir=str(tmp_path / "server"), lock_timeout_seconds=5)
    return create_app(config=config, registry=registry)


@pytest.fixture
def client(test_app) -> TestClient:
    """Create TestClient for making HTTP requests."""
    return TestClient(test_app)
