"""
End-to-end tests for the /repository-management REST API.

Drives the real FastAPI app over TestClient against a local working
repository with a bare origin: branch creation, file commit, read back,
and listing, plus the repository resolution failures.

Uses REAL git operations - NO Python mocks for git commands.
"""

import base64
from pathlib import Path

from .conftest import PROJECT_CODE, REPOSITORY_NAME, run_git

BASE = f"/repository-management/{PROJECT_CODE}/{REPOSITORY_NAME}"


def _commit(client, file_name: str, content: bytes, branch: str = "main", message: str = "Update model"):
    return client.post(
        f"{BASE}/commit-file",
        data={
            "branch": branch,
            "commitMessage": message,
            "authorName": "Jane Modeler",
            "authorEmail": "jane@example.com",
        },
        files={"file": (file_name, content, "application/octet-stream")},
    )


class TestRepositoryWorkflow:
    def test_branch_commit_read_list(self, client, remote_repo: Path):
        response = client.post(f"{BASE}/create-branch", json={"branchName": "feature/x"})
        assert response.status_code == 201

        branches = client.get(f"{BASE}/branches").json()
        assert "refs/heads/feature/x" in branches
        assert "refs/remotes/origin/feature/x" in branches

        response = _commit(client, "quote.bpmn", b"<definitions id='quote'/>", branch="feature/x")
        assert response.status_code == 200
        assert run_git("rev-parse", "refs/heads/feature/x", cwd=remote_repo)

        response = client.get(f"{BASE}/file", params={"fileName": "quote.bpmn", "branch": "feature/x"})
        assert response.status_code == 200
        assert base64.b64decode(response.text) == b"<definitions id='quote'/>"

        assert "quote.bpmn" in client.get(f"{BASE}/files", params={"branch": "feature/x"}).json()
        assert "quote.bpmn" not in client.get(f"{BASE}/files").json()

    def test_create_branch_twice_is_idempotent(self, client):
        first = client.post(f"{BASE}/create-branch", json={"branchName": "release/1"})
        second = client.post(f"{BASE}/create-branch", json={"branchName": "refs/heads/release/1"})

        assert first.status_code == 201
        assert second.status_code == 201

    def test_create_branch_missing_source(self, client):
        response = client.post(
            f"{BASE}/create-branch", json={"branchName": "feature/y", "sourceBranch": "nope"}
        )

        assert response.status_code == 400

    def test_get_nested_file_by_base_name(self, client):
        response = client.get(f"{BASE}/file", params={"fileName": "order.bpmn"})

        assert response.status_code == 200
        assert base64.b64decode(response.text) == b"<definitions id='order'/>\n"

    def test_get_missing_file(self, client):
        response = client.get(f"{BASE}/file", params={"fileName": "absent.bpmn"})

        assert response.status_code == 404

    def test_get_file_missing_branch(self, client):
        response = client.get(f"{BASE}/file", params={"fileName": "README.md", "branch": "nope"})

        assert response.status_code == 500

    def test_list_root_entries(self, client):
        response = client.get(f"{BASE}/files")

        assert response.status_code == 200
        assert response.json() == ["README.md", "models"]

    def test_commit_traversal_rejected(self, client, local_test_repo: Path):
        response = _commit(client, "../escape.txt", b"x")

        assert response.status_code == 400
        assert not (local_test_repo.parent / "escape.txt").exists()

    def test_commit_empty_file_rejected(self, client):
        response = _commit(client, "empty.txt", b"")

        assert response.status_code == 400

    def test_commit_push_failure_reported(self, client, local_test_repo: Path, tmp_path: Path):
        run_git("remote", "set-url", "origin", str(tmp_path / "gone.git"), cwd=local_test_repo)

        response = _commit(client, "unpublished.txt", b"data")

        assert response.status_code == 400
        # The local commit is kept
        assert run_git("log", "-1", "--format=%s", cwd=local_test_repo) == "Update model"


class TestRepositoryResolution:
    def test_unregistered_repository(self, client):
        assert client.get(f"/repository-management/{PROJECT_CODE}/unknown/files").status_code == 404

    def test_missing_path(self, client):
        assert client.get(f"/repository-management/{PROJECT_CODE}/missing/branches").status_code == 404

    def test_not_a_repository(self, client):
        response = client.get(f"/repository-management/{PROJECT_CODE}/plain/branches")

        assert response.status_code == 400

    def test_health_counts_repositories(self, client):
        assert client.get("/health").json()["repositories"] == 3
