"""Tests for CLI argument parsing and option building."""

import pytest

from args import parse_args
from cli_config import apply_cli_overrides, build_credential, build_options
from constants import Constants


def test_install_with_names_and_switches():
    args = parse_args([
        "install", "-n", "Foo", "Bar", "-v", "[1.0,2.0)", "--prerelease", "-r", "Internal", "PSGallery",
        "--accept-license", "--no-clobber", "--max-download-workers", "4",
    ])
    assert args.action == "install"
    assert args.NAME == ["Foo", "Bar"]
    assert args.VERSION == "[1.0,2.0)"
    assert args.REPOSITORY == ["Internal", "PSGallery"]
    assert args.SCOPE == "CurrentUser"
    assert args.LOG_LEVEL == "INFO"

    options = build_options(args)
    assert options.prerelease
    assert options.accept_license
    assert options.no_clobber
    assert not options.update
    assert options.max_download_workers == 4


def test_update_action_sets_update():
    args = parse_args(["update", "-n", "Foo"])
    assert build_options(args).update


def test_required_resource_is_exclusive_with_names():
    with pytest.raises(SystemExit):
        parse_args(["install", "-n", "Foo", "--required-resource", "{}"])


def test_names_or_resources_required():
    with pytest.raises(SystemExit):
        parse_args(["install"])


@pytest.mark.parametrize("argv", [
    ["remove", "-n", "Foo"],
    ["install", "-n", "Foo", "--scope", "Machine"],
    ["install", "-n", "Foo", "--max-download-workers", "0"],
    ["install", "-n", "Foo", "--timeout", "-1"],
])
def test_invalid_values(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)


def test_timeout_override(monkeypatch):
    monkeypatch.setattr(Constants, "REQUEST_TIMEOUT", 30)
    apply_cli_overrides(parse_args(["install", "-n", "Foo", "--timeout", "5"]))
    assert Constants.REQUEST_TIMEOUT == 5.0


def test_build_credential_from_env():
    credential = build_credential("me", interactive=False, environ={"PSRESGET_PASSWORD": "pw"})
    assert credential.as_auth() == ("me", "pw")
    assert build_credential(None) is None


def test_build_credential_non_interactive_without_password():
    assert build_credential("me", interactive=False, environ={}).password == ""
