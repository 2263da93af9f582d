# FILE: tests/test_acquirer.py
"""
Tests for repoqa/github/acquirer.py

Covers:
- Size estimation from HEAD content-length
- Size policy enforced before any download
- main -> master fallback for both strategies
- Exact blob counting through the tree API
- Lazy unpacking of zip archives
"""
import httpx
import pytest

from fakes import json_response, make_github, make_zip
from repoqa.errors import InvalidArchive, RepositoryNotFound, RepositoryTooLarge
from repoqa.github.acquirer import (
    acquire,
    count_files_precise,
    estimate_archive,
    estimate_files_from_size,
    iter_archive_entries,
    open_archive,
    unpack_archive,
)
from repoqa.github.refs import RepositoryReference

MB = 1024 * 1024
REF = RepositoryReference("octo", "widgets")


class TestEstimateFilesFromSize:
    """Test the size to file-count heuristic."""

    @pytest.mark.parametrize(
        "size_mb,expected",
        [(0, 20), (0.1, 20), (1, 60), (10, 600), (100, 2000)],
    )
    def test_clamped_estimate(self, size_mb, expected):
        """Test the estimate is clamped to [20, 2000]."""
        assert estimate_files_from_size(size_mb) == expected


class TestEstimateArchive:
    """Test HEAD-based archive estimation."""

    @pytest.mark.asyncio
    async def test_uses_content_length(self):
        """Test size comes from content-length of a HEAD request."""
        def handler(request):
            assert request.method == "HEAD"
            return httpx.Response(200, headers={"content-length": str(2 * MB)})

        estimate = await estimate_archive(make_github(handler), REF)
        assert estimate.branch == "main"
        assert estimate.size_mb == pytest.approx(2.0)
        assert estimate.estimated_files == 120
        assert estimate.too_large is False

    @pytest.mark.asyncio
    async def test_falls_back_to_master(self):
        """Test a missing main branch falls back to master."""
        seen = []

        def handler(request):
            seen.append(request.url.path)
            if request.url.path.endswith("/main.zip"):
                return httpx.Response(404)
            return httpx.Response(200, headers={"content-length": str(MB)})

        estimate = await estimate_archive(make_github(handler), REF)
        assert estimate.branch == "master"
        assert seen == ["/octo/widgets/archive/main.zip", "/octo/widgets/archive/master.zip"]

    @pytest.mark.asyncio
    async def test_not_found_on_every_branch(self):
        """Test RepositoryNotFound when no branch answers."""
        with pytest.raises(RepositoryNotFound):
            await estimate_archive(make_github(lambda r: httpx.Response(404)), REF)

    @pytest.mark.asyncio
    async def test_non_default_branch_has_no_fallback(self):
        """Test an explicit branch is tried alone."""
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(404)

        with pytest.raises(RepositoryNotFound):
            await estimate_archive(make_github(handler), REF.with_branch("dev"))
        assert seen == ["/octo/widgets/archive/dev.zip"]


class TestCountFilesPrecise:
    """Test exact counting through the Git Trees API."""

    @pytest.mark.asyncio
    async def test_counts_blobs_only(self):
        """Test only blob entries are counted."""
        tree = {
            "tree": [
                {"path": "src", "type": "tree"},
                {"path": "src/a.py", "type": "blob"},
                {"path": "src/b.py", "type": "blob"},
                {"path": "README.md", "type": "blob"},
                {"path": "vendor/lib", "type": "commit"},
            ],
            "truncated": False,
        }

        def handler(request):
            if "/commits/" in request.url.path:
                return json_response({"commit": {"tree": {"sha": "t1"}}})
            return json_response(tree)

        count, branch = await count_files_precise(make_github(handler, token="t"), REF)
        assert count == 3
        assert branch == "main"

    @pytest.mark.asyncio
    async def test_falls_back_to_master(self):
        """Test an unresolvable main falls back to master."""
        def handler(request):
            if request.url.path.endswith("/commits/main"):
                return json_response({"message": "No commit found"}, status_code=422)
            if "/commits/" in request.url.path:
                return json_response({"commit": {"tree": {"sha": "t1"}}})
            return json_response({"tree": [{"type": "blob"}]})

        count, branch = await count_files_precise(make_github(handler, token="t"), REF)
        assert (count, branch) == (1, "master")

    @pytest.mark.asyncio
    async def test_missing_repository(self):
        """Test 404 on every branch raises RepositoryNotFound."""
        gh = make_github(lambda r: json_response({"message": "Not Found"}, status_code=404), token="t")
        with pytest.raises(RepositoryNotFound):
            await count_files_precise(gh, REF)


class TestUnpack:
    """Test archive unpacking."""

    def test_strips_top_directory_and_filters(self):
        """Test the top directory is stripped and filters apply."""
        data = make_zip({
            "src/app.py": b"print('hi')\n",
            "README.md": b"# Widgets\n",
            "node_modules/x/index.js": b"module.exports = 1",
            "logo.png": b"\x89PNG",
            "package-lock.json": b"{}",
        })
        files = unpack_archive(data)
        assert [f.path for f in files] == ["src/app.py", "README.md"]
        assert files[0].content == "print('hi')\n"

    def test_respects_max_files(self):
        """Test unpacking stops at the file cap."""
        data = make_zip({f"f{i}.py": b"x = 1\n" for i in range(10)})
        files = unpack_archive(data, max_files=3, chunk_size=2)
        assert [f.path for f in files] == ["f0.py", "f1.py", "f2.py"]

    def test_reads_every_chunk_to_the_end(self):
        """Test every file is read when the archive spans several chunks."""
        data = make_zip({f"f{i}.py": f"x = {i}\n".encode() for i in range(7)})
        files = unpack_archive(data, chunk_size=2)
        assert [f.path for f in files] == [f"f{i}.py" for i in range(7)]
        assert files[-1].content == "x = 6\n"

    def test_entries_are_lazy(self):
        """Test entries carry names and sizes and load on demand."""
        data = make_zip({"a.py": b"a = 1\n"})
        with open_archive(data) as archive:
            entries = list(iter_archive_entries(archive))
            assert entries[0].is_dir is True
            assert entries[1].name == "repo-main/a.py"
            assert entries[1].size == 6
            assert entries[1].load() == b"a = 1\n"

    def test_oversized_member_skipped(self):
        """Test a member larger than the byte cap is dropped."""
        data = make_zip({"big.txt": b"a" * 500_000, "ok.py": b"ok = 1\n"})
        assert [f.path for f in unpack_archive(data)] == ["ok.py"]

    def test_invalid_zip(self):
        """Test non-zip bytes raise InvalidArchive."""
        with pytest.raises(InvalidArchive):
            unpack_archive(b"definitely not a zip")


class TestAcquire:
    """Test both acquisition strategies end to end."""

    @pytest.mark.asyncio
    async def test_too_large_refuses_before_download(self):
        """Test an oversized anonymous archive is refused after HEAD only."""
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(200, headers={"content-length": str(20 * MB)})

        with pytest.raises(RepositoryTooLarge) as exc_info:
            await acquire(make_github(handler), REF)

        assert methods == ["HEAD"]
        assert exc_info.value.size_mb == pytest.approx(20.0)
        assert exc_info.value.remediation == "needs_token"

    @pytest.mark.asyncio
    async def test_anonymous_downloads_archive(self):
        """Test anonymous acquisition downloads the public archive."""
        archive = make_zip({"main.py": b"print(1)\n"})

        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(200, headers={"content-length": str(len(archive))})
            assert request.url.path == "/octo/widgets/archive/main.zip"
            return httpx.Response(200, content=archive)

        result = await acquire(make_github(handler), REF)
        assert result.exact is False
        assert result.file_count == 20
        assert result.reference.branch == "main"
        assert [f.path for f in result.files] == ["main.py"]

    @pytest.mark.asyncio
    async def test_authenticated_uses_zipball_and_exact_count(self):
        """Test authenticated acquisition counts exactly and pulls the zipball."""
        archive = make_zip({"a.py": b"a = 1\n", "b.py": b"b = 2\n"})

        def handler(request):
            path = request.url.path
            if path.endswith("/commits/main"):
                return json_response({"commit": {"tree": {"sha": "t1"}}})
            if "/git/trees/" in path:
                return json_response({"tree": [{"type": "blob"}, {"type": "blob"}]})
            assert path == "/repos/octo/widgets/zipball/main"
            assert request.headers["authorization"] == "Bearer t"
            return httpx.Response(200, content=archive)

        result = await acquire(make_github(handler, token="t"), REF)
        assert result.exact is True
        assert result.file_count == 2
        assert [f.path for f in result.files] == ["a.py", "b.py"]

    @pytest.mark.asyncio
    async def test_authenticated_has_no_size_policy(self):
        """Test authenticated acquisition never issues a HEAD size check."""
        archive = make_zip({"a.py": b"a = 1\n"})

        def handler(request):
            assert request.method != "HEAD"
            if "/commits/" in request.url.path:
                return json_response({"commit": {"tree": {"sha": "t1"}}})
            if "/git/trees/" in request.url.path:
                return json_response({"tree": [{"type": "blob"}] * 5000})
            return httpx.Response(200, content=archive)

        result = await acquire(make_github(handler, token="t"), REF)
        assert result.file_count == 5000
