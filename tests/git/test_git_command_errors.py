"""
Tests for git_error_classifier module.

Tests error classification logic for working-copy git failures:
- Authentication category: rejected credentials
- Network category: unreachable or missing remotes
- Rejected category: non-fast-forward pushes
- Missing ref / nothing to commit categories
- GitCommandError exception attributes
"""

import pytest

from model_repository.git.git_error_classifier import (
    GitCommandError,
    classify_git_error,
)


class TestClassifyGitError:
    """Test suite for classify_git_error() function."""

    def test_classify_authentication_failed(self):
        """'Authentication failed' classifies as authentication."""
        result = classify_git_error(
            "remote: Invalid username or password.\n"
            "fatal: Authentication failed for 'https://example.com/models.git/'"
        )
        assert result == "authentication"

    def test_classify_authentication_wins_over_network(self):
        """Credential failures reported with 'unable to access' stay authentication."""
        result = classify_git_error(
            "fatal: unable to access 'https://example.com/models.git/': "
            "The requested URL returned error: 403"
        )
        assert result == "authentication"

    def test_classify_could_not_read_username(self):
        """Prompt suppression failure classifies as authentication."""
        result = classify_git_error(
            "fatal: could not read Username for 'https://example.com': terminal prompts disabled"
        )
        assert result == "authentication"

    def test_classify_network_could_not_resolve_host(self):
        """'Could not resolve host' classifies as network."""
        result = classify_git_error(
            "fatal: unable to access 'https://nohost.invalid/models.git/': "
            "Could not resolve host: nohost.invalid"
        )
        assert result == "network"

    def test_classify_network_missing_remote_path(self):
        """A local remote path that is gone classifies as network."""
        result = classify_git_error(
            "fatal: '/srv/git/gone.git' does not appear to be a git repository\n"
            "fatal: Could not read from remote repository."
        )
        assert result == "network"

    def test_classify_rejected_non_fast_forward(self):
        """Non-fast-forward push classifies as rejected."""
        result = classify_git_error(
            " ! [rejected]        main -> main (non-fast-forward)\n"
            "error: failed to push some refs to '/srv/git/models.git'"
        )
        assert result == "rejected"

    def test_classify_missing_ref(self):
        """Unknown pathspec classifies as missing_ref."""
        result = classify_git_error(
            "error: pathspec 'feature/x' did not match any file(s) known to git"
        )
        assert result == "missing_ref"

    def test_classify_nothing_to_commit(self):
        """'nothing to commit' classifies as nothing_to_commit."""
        result = classify_git_error(
            "On branch main\nnothing to commit, working tree clean"
        )
        assert result == "nothing_to_commit"

    def test_classify_unknown(self):
        """Unrecognized output classifies as unknown."""
        assert classify_git_error("fatal: something unexpected happened") == "unknown"

    @pytest.mark.parametrize("stderr", ["", None])
    def test_classify_empty_is_unknown(self, stderr):
        """Empty stderr classifies as unknown."""
        assert classify_git_error(stderr) == "unknown"


class TestGitCommandError:
    """Test suite for GitCommandError exception."""

    def test_attributes_are_set(self):
        """Command, exit status and stderr are kept on the exception."""
        error = GitCommandError(
            "git push failed",
            command=["push", "origin", "refs/heads/main:refs/heads/main"],
            returncode=128,
            stderr="fatal: Authentication failed",
        )

        assert str(error) == "git push failed"
        assert error.command == ["push", "origin", "refs/heads/main:refs/heads/main"]
        assert error.returncode == 128
        assert error.stderr == "fatal: Authentication failed"

    def test_category_derived_from_stderr(self):
        """Category defaults to the classification of stderr."""
        error = GitCommandError("failed", stderr="Could not resolve host: x")
        assert error.category == "network"

    def test_explicit_category_overrides_classification(self):
        """An explicit category wins over stderr classification."""
        error = GitCommandError("timed out", stderr="", category="network")
        assert error.category == "network"

    def test_defaults(self):
        """Missing details default to empty values and unknown category."""
        error = GitCommandError("failed")
        assert error.command == []
        assert error.returncode is None
        assert error.stderr == ""
        assert error.category == "unknown"

    def test_is_exception(self):
        with pytest.raises(GitCommandError):
            raise GitCommandError("boom")
