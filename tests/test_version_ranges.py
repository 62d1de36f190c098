"""Tests for NuGet range notation and user-facing constraint parsing."""

import pytest

from install.errors import ConstraintParseError
from versioning.models import ResolutionMode
from versioning.parser import parse_constraint, parse_request
from versioning.ranges import VersionRange
from versioning.version import NuGetVersion


def v(text):
    return NuGetVersion.parse(text)


class TestVersionRangeParse:
    """Range syntax."""

    def test_bare_version_is_minimum_inclusive(self):
        rng = VersionRange.parse("1.0")
        assert rng.satisfies(v("1.0.0"))
        assert rng.satisfies(v("5.0.0"))
        assert not rng.satisfies(v("0.9.9"))

    def test_bound_with_leading_zero_label(self):
        rng = VersionRange.parse("[1.0.0-beta.01, 2.0.0)")
        assert rng.satisfies(v("1.0.0-beta.2"))
        assert not rng.satisfies(v("1.0.0-alpha.5"))

    def test_exact_brackets(self):
        rng = VersionRange.parse("[1.2.0]")
        assert rng.is_exact
        assert rng.satisfies(v("1.2.0"))
        assert not rng.satisfies(v("1.2.1"))

    def test_half_open_interval(self):
        rng = VersionRange.parse("[1.0.0,2.0.0)")
        assert rng.satisfies(v("1.0.0"))
        assert rng.satisfies(v("1.5.0"))
        assert not rng.satisfies(v("2.0.0"))

    def test_exclusive_minimum_open_upper(self):
        rng = VersionRange.parse("(1.0,]")
        assert not rng.satisfies(v("1.0"))
        assert rng.satisfies(v("99.0"))

    def test_upper_bound_only(self):
        rng = VersionRange.parse("(,2.0]")
        assert rng.satisfies(v("0.1"))
        assert rng.satisfies(v("2.0"))
        assert not rng.satisfies(v("2.0.1"))

    def test_star_matches_everything(self):
        assert VersionRange.parse("*").satisfies(v("0.0.1"))

    def test_none_never_satisfies(self):
        assert not VersionRange.all().satisfies(None)

    @pytest.mark.parametrize("text", [
        "", "  ", "[1.0", "[1.0,2.0,3.0]", "(1.0)", "[,]", "[2.0,1.0]", "(1.0,1.0)", "[abc,2.0]", "1.0)",
    ])
    def test_malformed_ranges_raise(self, text):
        with pytest.raises(ConstraintParseError):
            VersionRange.parse(text)

    def test_str_round_trips_shape(self):
        assert str(VersionRange.parse("[1.0.0,2.0.0)")) == "[1.0.0, 2.0.0)"
        assert str(VersionRange.parse("[1.0]")) == "[1.0.0]"


class TestParseConstraint:
    """User-supplied version strings."""

    @pytest.mark.parametrize("text", [None, "", "latest", "LATEST"])
    def test_unconstrained(self, text):
        constraint = parse_constraint(text)
        assert constraint.mode == ResolutionMode.LATEST
        assert constraint.is_unconstrained
        assert str(constraint) == "latest"

    def test_plain_version_is_exact(self):
        constraint = parse_constraint("1.2.0")
        assert constraint.mode == ResolutionMode.EXACT
        assert constraint.satisfies(v("1.2.0"))
        assert not constraint.satisfies(v("1.3.0"))

    def test_prerelease_pin(self):
        assert parse_constraint("2.0.0-preview").pins_prerelease
        assert not parse_constraint("2.0.0").pins_prerelease

    def test_range(self):
        constraint = parse_constraint("[1.0.0,2.0.0)")
        assert constraint.mode == ResolutionMode.RANGE
        assert constraint.satisfies(v("1.5.0"))

    def test_bracketed_exact_is_exact(self):
        assert parse_constraint("[1.0.0]").mode == ResolutionMode.EXACT

    def test_star_is_latest(self):
        assert parse_constraint("*").mode == ResolutionMode.LATEST

    def test_garbage_raises(self):
        with pytest.raises(ConstraintParseError):
            parse_constraint("not a version")

    def test_parse_request_strips_name(self):
        req = parse_request("  Foo ", "1.0.0", prerelease=True, source="manifest")
        assert req.name == "Foo"
        assert req.prerelease
        assert req.source == "manifest"
