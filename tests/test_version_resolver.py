"""Tests for the version resolver."""

import pytest

from install.models import PackageCandidate
from versioning.models import PackageRequest
from versioning.parser import parse_constraint
from versioning.resolver import VersionResolver
from versioning.version import NuGetVersion


def candidates(package_id, *versions):
    return [PackageCandidate(id=package_id, version=NuGetVersion.parse(text)) for text in versions]


@pytest.fixture
def resolver():
    return VersionResolver()


@pytest.fixture
def foo_versions():
    return candidates("Foo", "1.0.0", "1.1.0", "2.0.0-preview")


class TestLatest:
    """Unconstrained requests."""

    def test_latest_skips_prerelease(self, resolver, foo_versions):
        picked = resolver.resolve("Foo", parse_constraint(None), False, foo_versions)
        assert str(picked.version) == "1.1.0"

    def test_latest_with_prerelease(self, resolver, foo_versions):
        picked = resolver.resolve("Foo", parse_constraint(None), True, foo_versions)
        assert str(picked.version) == "2.0.0-preview"

    def test_feed_order_does_not_matter(self, resolver):
        picked = resolver.resolve("Foo", parse_constraint(None), False, candidates("Foo", "3.0.0", "1.0.0", "10.0.0"))
        assert str(picked.version) == "10.0.0"

    def test_id_matching_is_case_insensitive(self, resolver):
        picked = resolver.resolve("foo", parse_constraint(None), False, candidates("FOO", "1.0.0"))
        assert picked is not None

    def test_other_ids_are_ignored(self, resolver):
        assert resolver.resolve("Foo", parse_constraint(None), False, candidates("Bar", "1.0.0")) is None

    def test_empty_candidates(self, resolver):
        assert resolver.resolve("Foo", parse_constraint(None), False, []) is None


class TestExact:
    """Exact pins never return another version."""

    def test_exact_hit(self, resolver, foo_versions):
        picked = resolver.resolve("Foo", parse_constraint("1.0.0"), False, foo_versions)
        assert str(picked.version) == "1.0.0"

    def test_exact_miss_returns_none(self, resolver, foo_versions):
        assert resolver.resolve("Foo", parse_constraint("1.0.5"), False, foo_versions) is None

    def test_exact_prerelease_pin_allows_prerelease(self, resolver, foo_versions):
        picked = resolver.resolve("Foo", parse_constraint("2.0.0-preview"), False, foo_versions)
        assert str(picked.version) == "2.0.0-preview"

    def test_exact_matches_shorter_form(self, resolver):
        picked = resolver.resolve("Foo", parse_constraint("1.0"), False, candidates("Foo", "1.0.0"))
        assert picked is not None


class TestRange:
    """Range constraints pick the maximum satisfying version."""

    def test_picks_highest_in_range(self, resolver):
        pool = candidates("Foo", "0.9.0", "1.0.0", "1.5.0", "1.9.9", "2.0.0")
        picked = resolver.resolve("Foo", parse_constraint("[1.0.0,2.0.0)"), False, pool)
        assert str(picked.version) == "1.9.9"

    def test_nothing_in_range(self, resolver):
        pool = candidates("Foo", "0.9.0", "2.0.0")
        assert resolver.resolve("Foo", parse_constraint("[1.0.0,2.0.0)"), False, pool) is None

    def test_range_excludes_prerelease_unless_allowed(self, resolver):
        pool = candidates("Foo", "1.0.0", "1.5.0-beta")
        constraint = parse_constraint("[1.0.0,2.0.0)")
        assert str(resolver.resolve("Foo", constraint, False, pool).version) == "1.0.0"
        assert str(resolver.resolve("Foo", constraint, True, pool).version) == "1.5.0-beta"

    def test_resolve_request(self, resolver, foo_versions):
        req = PackageRequest(name="Foo", constraint=parse_constraint("[1.0.0,1.1.0]"))
        assert str(resolver.resolve_request(req, foo_versions).version) == "1.1.0"

    def test_pick_reports_reason(self, resolver):
        picked, count, error = resolver.pick("Foo", parse_constraint("[5.0.0,)"), False, candidates("Foo", "1.0.0"))
        assert picked is None
        assert count == 1
        assert "5.0.0" in error
