"""Tests for ranked repository fallback."""

import os

import pytest

from install.errors import InstallError, RepositoryUnavailableError
from install.host import ConfirmResult, NonInteractiveHost
from install.models import Credential, InstallOptions, RepositoryEndpoint
from install.selector import RepositorySelector
from install.staging import StagingEngine
from versioning.parser import parse_constraint

LATEST = parse_constraint(None)


@pytest.fixture
def repos():
    return [
        RepositoryEndpoint(name="First", url="https://first.example.test/api/v2", trusted=True, priority=10),
        RepositoryEndpoint(name="Second", url="https://second.example.test/api/v2", trusted=True, priority=20),
    ]


@pytest.fixture
def feeds(repos, feed_class):
    return {repo.name: feed_class(repo) for repo in repos}


def make_selector(paths, host, feeds, seen=None):
    def factory(repo):
        if seen is not None:
            seen.append(repo)
        return feeds[repo.name]
    return RepositorySelector(StagingEngine(paths, host, feed_factory=factory), host)


class TestFallback:
    """Names missing from one repository are tried in the next."""

    def test_second_repository_supplies_missing_package(self, install_paths, repos, feeds):
        feeds["First"].add("Foo", "1.0.0")
        feeds["Second"].add("Bar", "2.0.0")
        result = make_selector(install_paths, NonInteractiveHost(), feeds).install(
            ["Foo", "Bar"], LATEST, repos, InstallOptions()
        )
        assert result.not_found == []
        assert result.succeeded
        assert [(p.id, p.repository) for p in result.installed] == [("Foo", "First"), ("Bar", "Second")]
        assert feeds["First"].downloads == ["Foo 1.0.0"]
        assert feeds["Second"].downloads == ["Bar 2.0.0"]
        assert feeds["Second"].queries == ["Bar"]

    def test_stops_when_nothing_is_outstanding(self, install_paths, repos, feeds):
        feeds["First"].add("Foo", "1.0.0")
        result = make_selector(install_paths, NonInteractiveHost(), feeds).install(
            ["Foo"], LATEST, repos, InstallOptions()
        )
        assert result.repositories_tried == ["First"]
        assert feeds["Second"].queries == []

    def test_not_found_anywhere(self, install_paths, repos, feeds):
        result = make_selector(install_paths, NonInteractiveHost(), feeds).install(
            ["Ghost"], LATEST, repos, InstallOptions()
        )
        assert result.not_found == ["Ghost"]
        assert not result.succeeded
        assert result.repositories_tried == ["First", "Second"]

    def test_duplicate_names_are_collapsed(self, install_paths, repos, feeds):
        feeds["First"].add("Foo", "1.0.0")
        result = make_selector(install_paths, NonInteractiveHost(), feeds).install(
            ["Foo", "foo", " Foo "], LATEST, repos, InstallOptions()
        )
        assert len(result.installed) == 1

    def test_already_installed_is_reported(self, install_paths, repos, feeds, installed_module):
        installed_module(install_paths, "Foo", "1.0.0")
        feeds["First"].add("Foo", "1.0.0")
        result = make_selector(install_paths, NonInteractiveHost(), feeds).install(
            ["Foo"], LATEST, repos, InstallOptions()
        )
        assert result.already_satisfied == ["Foo"]
        assert result.to_dict()["installed"] == []


class TestTrust:
    """Untrusted repositories need confirmation."""

    @pytest.fixture
    def untrusted(self):
        return [
            RepositoryEndpoint(name="First", url="https://first.example.test/api/v2", priority=10),
            RepositoryEndpoint(name="Second", url="https://second.example.test/api/v2", priority=20),
        ]

    def test_declined_repositories_are_skipped(self, install_paths, untrusted, feeds):
        feeds["First"].add("Foo", "1.0.0")
        host = NonInteractiveHost(answer=ConfirmResult.NO)
        result = make_selector(install_paths, host, feeds).install(["Foo"], LATEST, untrusted, InstallOptions())
        assert result.not_found == ["Foo"]
        assert result.repositories_tried == []
        assert feeds["First"].queries == []

    def test_prompt_is_asked_once(self, install_paths, untrusted, feeds):
        feeds["Second"].add("Foo", "1.0.0")
        host = NonInteractiveHost(answer=ConfirmResult.YES)
        result = make_selector(install_paths, host, feeds).install(["Foo"], LATEST, untrusted, InstallOptions())
        assert result.not_found == []
        assert len(host.prompts) == 1
        assert host.prompts[0][0] == "Untrusted repository"
        assert "First" in host.prompts[0][1]

    @pytest.mark.parametrize("options", [InstallOptions(trust_repository=True), InstallOptions(force=True)])
    def test_trust_switches_skip_prompt(self, install_paths, untrusted, feeds, options):
        feeds["First"].add("Foo", "1.0.0")
        host = NonInteractiveHost()
        result = make_selector(install_paths, host, feeds).install(["Foo"], LATEST, untrusted, options)
        assert result.not_found == []
        assert host.prompts == []


class TestCredentialsAndErrors:
    """Credential injection and fatal errors."""

    def test_invocation_credential_fills_missing_repository_credential(self, install_paths, repos, feeds):
        feeds["First"].add("Foo", "1.0.0")
        seen = []
        selector = make_selector(install_paths, NonInteractiveHost(), feeds, seen)
        selector.install(["Foo"], LATEST, repos, InstallOptions(credential=Credential("me", "secret")))
        assert seen[0].credential == Credential("me", "secret")

    def test_repository_credential_wins(self, install_paths, feeds):
        own = RepositoryEndpoint(name="First", url="https://first.example.test", trusted=True,
                                 credential=Credential("repo-user", "x"))
        seen = []
        make_selector(install_paths, NonInteractiveHost(), feeds, seen).install(
            ["Foo"], LATEST, [own], InstallOptions(credential=Credential("me", "secret"))
        )
        assert seen[0].credential.username == "repo-user"

    def test_fatal_error_stops_and_names_repository(self, install_paths, repos):
        host = NonInteractiveHost()

        def broken(repo):
            raise RepositoryUnavailableError("connection refused")

        selector = RepositorySelector(StagingEngine(install_paths, host, feed_factory=broken), host)
        with pytest.raises(InstallError) as excinfo:
            selector.install(["Foo"], LATEST, repos, InstallOptions())
        assert excinfo.value.repository == "First"
        assert not os.path.exists(install_paths.modules_dir)
