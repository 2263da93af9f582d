# FILE: tests/test_refs.py
"""
Tests for repoqa/github/refs.py
"""
import pytest

from repoqa.errors import InvalidReference
from repoqa.github.refs import RepositoryReference, parse_repo_url


class TestParseRepoUrl:
    """URL shapes accepted by parse_repo_url."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/octo/widgets",
            "https://github.com/octo/widgets/",
            "https://github.com/octo/widgets.git",
            "https://github.com/octo/widgets/tree/dev/src",
            "git@github.com:octo/widgets.git",
            "octo/widgets",
            "  https://github.com/octo/widgets  ",
        ],
    )
    def test_accepts_common_forms(self, url):
        """Test common GitHub URL forms parse."""
        ref = parse_repo_url(url)
        assert ref.owner == "octo"
        assert ref.repo == "widgets"
        assert ref.branch == "main"

    @pytest.mark.parametrize("url", ["", "https://github.com/octo", "not a url", None])
    def test_rejects_missing_owner_or_repo(self, url):
        """Test URLs without owner or repo are rejected."""
        with pytest.raises(InvalidReference):
            parse_repo_url(url)

    def test_explicit_branch(self):
        """Test an explicit branch is kept."""
        assert parse_repo_url("octo/widgets", branch="develop").branch == "develop"


class TestRepositoryReference:
    """Test RepositoryReference helpers."""

    def test_full_name_and_url(self):
        """Test full name and canonical URL."""
        ref = RepositoryReference("octo", "widgets")
        assert ref.full_name == "octo/widgets"
        assert ref.url == "https://github.com/octo/widgets"

    def test_with_branch_returns_copy(self):
        """Test with_branch returns a new reference."""
        ref = RepositoryReference("octo", "widgets")
        other = ref.with_branch("master")
        assert other.branch == "master"
        assert ref.branch == "main"
