"""Tests for directory feeds and .nupkg handling."""

import os
import zipfile

import pytest

from install.errors import InstallError, RepositoryUnavailableError
from install.models import RepositoryEndpoint
from registry.feed import create_feed, local_path_from_url
from registry.local import LocalFeed
from registry.nuget.client import NuGetFeed
from registry.nupkg import candidate_from_nuspec, extract_nupkg, read_nuspec


@pytest.fixture
def feed_dir(tmp_path, make_nupkg):
    root = tmp_path / "feed"
    make_nupkg(root, "Foo", "1.0.0", dependencies=[("Bar", "[1.0.0,2.0.0)")], tags=["PSModule", "PSCommand_Get-Foo"])
    make_nupkg(root, "Foo", "1.1.0")
    make_nupkg(root / "nested", "Foo", "2.0.0-preview")
    make_nupkg(root, "Bar", "1.0.0")
    (root / "broken.nupkg").write_text("not a zip")
    return root


class TestLocalFeed:
    """Query and download from a directory."""

    def test_query_versions(self, feed_dir):
        feed = LocalFeed(RepositoryEndpoint(name="Local", url=str(feed_dir)))
        assert [str(c.version) for c in feed.query_versions("foo", False)] == ["1.1.0", "1.0.0"]
        assert [str(c.version) for c in feed.query_versions("Foo", True)][0] == "2.0.0-preview"
        assert feed.query_versions("Missing", True) == []

    def test_candidate_metadata(self, feed_dir):
        feed = LocalFeed(RepositoryEndpoint(name="Local", url=str(feed_dir)))
        oldest = feed.query_versions("Foo", False)[-1]
        assert oldest.dependencies[0].id == "Bar"
        assert oldest.tags == ["PSModule", "PSCommand_Get-Foo"]
        assert oldest.repository_name == "Local"

    def test_download_extracts(self, feed_dir, tmp_path):
        feed = LocalFeed(RepositoryEndpoint(name="Local", url=feed_dir.as_uri()))
        candidate = feed.query_versions("Bar", False)[0]
        target = feed.download(candidate, str(tmp_path / "staging"))
        assert target == os.path.join(str(tmp_path / "staging"), "bar", "1.0.0")
        assert os.listdir(target) == ["Bar.psd1"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(RepositoryUnavailableError):
            LocalFeed(RepositoryEndpoint(name="Local", url=str(tmp_path / "missing")))


class TestCreateFeed:
    """Feed selection by URL."""

    def test_http_is_nuget(self):
        feed = create_feed(RepositoryEndpoint(name="G", url="https://www.powershellgallery.com/api/v2"))
        assert isinstance(feed, NuGetFeed)

    def test_path_and_file_url_are_local(self, tmp_path):
        assert isinstance(create_feed(RepositoryEndpoint(name="L", url=str(tmp_path))), LocalFeed)
        assert isinstance(create_feed(RepositoryEndpoint(name="L", url=tmp_path.as_uri())), LocalFeed)

    def test_unsupported_scheme(self):
        with pytest.raises(RepositoryUnavailableError):
            create_feed(RepositoryEndpoint(name="F", url="ftp://example.test/feed"))

    def test_local_path_from_url(self):
        assert local_path_from_url("https://example.test") is None
        assert local_path_from_url("/srv/feed") == "/srv/feed"


class TestNupkg:
    """Archive helpers."""

    def test_read_nuspec_and_candidate(self, tmp_path, make_nupkg):
        path = make_nupkg(tmp_path, "Foo", "1.2.3", require_license=True)
        candidate = candidate_from_nuspec(read_nuspec(path), repository_name="R")
        assert candidate.id == "Foo"
        assert str(candidate.version) == "1.2.3"
        assert candidate.require_license_acceptance
        assert candidate.authors == "Test Author"

    def test_grouped_dependencies(self):
        xml = (
            b"<package><metadata><id>Foo</id><version>1.0.0</version><dependencies>"
            b"<group targetFramework='net45'><dependency id='A' version='1.0' /></group>"
            b"<group><dependency id='B' /></group>"
            b"</dependencies></metadata></package>"
        )
        candidate = candidate_from_nuspec(xml)
        assert [(d.id, d.range_text) for d in candidate.dependencies] == [("A", "1.0"), ("B", None)]
        assert candidate.dependency_groups[0].target_framework == "net45"

    @pytest.mark.parametrize("xml", [b"<package", b"<package />", b"<package><metadata><id>Foo</id></metadata></package>"])
    def test_bad_nuspec(self, xml):
        with pytest.raises(ValueError):
            candidate_from_nuspec(xml)

    def test_read_nuspec_rejects_non_zip(self, tmp_path):
        path = tmp_path / "x.nupkg"
        path.write_text("nope")
        with pytest.raises(ValueError):
            read_nuspec(str(path))

    def test_extract_skips_packaging_metadata(self, tmp_path, make_nupkg):
        path = make_nupkg(tmp_path, "Foo", "1.0.0", files={"Foo.psd1": "@{}", "en-US/about_Foo%20Help.txt": "help"})
        target = extract_nupkg(path, str(tmp_path / "out"))
        assert sorted(os.listdir(target)) == ["Foo.psd1", "en-US"]
        assert os.listdir(os.path.join(target, "en-US")) == ["about_Foo Help.txt"]

    def test_extract_rejects_path_traversal(self, tmp_path):
        path = tmp_path / "evil.nupkg"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("../escape.txt", "x")
        with pytest.raises(InstallError):
            extract_nupkg(str(path), str(tmp_path / "out"))
        assert not (tmp_path / "escape.txt").exists()
