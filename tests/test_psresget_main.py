"""End-to-end CLI runs against a directory feed."""

import json
import os
from unittest.mock import patch

import pytest

from psresget import main


@pytest.fixture
def cli_env(tmp_path, make_nupkg, monkeypatch):
    """A directory feed, a settings file pointing at it and an install root."""
    monkeypatch.setenv("PSRESGET_LOG_LEVEL", "INFO")
    monkeypatch.delenv("PSRESGET_PASSWORD", raising=False)
    feed = tmp_path / "feed"
    make_nupkg(feed, "Foo", "1.0.0", dependencies=[("Bar", "[1.0.0, )")], tags=["PSModule"])
    make_nupkg(feed, "Bar", "1.0.0", tags=["PSModule"])
    make_nupkg(feed, "Licensed", "1.0.0", require_license=True, files={"Licensed.psd1": "@{}", "License.txt": "terms"})
    settings = tmp_path / "repositories.json"
    settings.write_text(json.dumps({"repositories": [{"name": "Local", "url": str(feed), "trusted": True}]}))
    return {
        "settings": str(settings),
        "root": str(tmp_path / "store"),
        "output": str(tmp_path / "result.json"),
    }


def run_cli(env, *argv):
    base = ["-c", env["settings"], "--install-root", env["root"], "-o", env["output"], "--non-interactive"]
    with patch("psresget.configure_logging"):
        with pytest.raises(SystemExit) as excinfo:
            main(list(argv) + base)
    with open(env["output"], encoding="utf-8") as fh:
        return excinfo.value.code, json.load(fh)


def test_install_with_dependencies(cli_env):
    code, result = run_cli(cli_env, "install", "-n", "Foo")
    assert code == 0
    assert sorted(pkg["id"] for pkg in result["installed"]) == ["Bar", "Foo"]
    assert result["repositories_tried"] == ["Local"]
    assert os.path.isdir(os.path.join(cli_env["root"], "Modules", "Foo", "1.0.0"))
    assert os.path.isdir(os.path.join(cli_env["root"], "Modules", "Bar", "1.0.0"))


def test_second_run_is_already_satisfied(cli_env):
    run_cli(cli_env, "install", "-n", "Foo", "-v", "1.0.0")
    code, result = run_cli(cli_env, "install", "-n", "Foo", "-v", "1.0.0")
    assert code == 0
    assert result["installed"] == []
    assert result["already_satisfied"] == ["Foo"]


def test_missing_package_exit_code(cli_env):
    code, result = run_cli(cli_env, "install", "-n", "Nope")
    assert code == 3
    assert result["not_found"] == ["Nope"]


def test_declined_license_is_an_install_error(cli_env):
    code, result = run_cli(cli_env, "install", "-n", "Licensed")
    assert code == 4
    assert result["error"]["kind"] == "LicenseNotAccepted"
    assert result["error"]["package_id"] == "Licensed"
    assert not os.path.exists(os.path.join(cli_env["root"], "Modules", "Licensed"))


def test_accept_license_flag(cli_env):
    code, result = run_cli(cli_env, "install", "-n", "Licensed", "--accept-license")
    assert code == 0
    assert [pkg["id"] for pkg in result["installed"]] == ["Licensed"]


def test_required_resource_json(cli_env):
    code, result = run_cli(cli_env, "install", "--required-resource", '{"Bar": "1.0.0", "Licensed": {"acceptLicense": true}}')
    assert code == 0
    assert sorted(pkg["id"] for pkg in result["installed"]) == ["Bar", "Licensed"]


def test_bad_settings_file(cli_env, tmp_path):
    broken = tmp_path / "broken.yml"
    broken.write_text("repositories: [")
    cli_env["settings"] = str(broken)
    code, result = run_cli(cli_env, "install", "-n", "Foo")
    assert code == 1
    assert result["error"]["kind"] == "RepositorySettingsError"


def test_bad_version_range(cli_env):
    code, result = run_cli(cli_env, "install", "-n", "Foo", "-v", "[1.0")
    assert code == 4
    assert result["error"]["kind"] == "ConstraintParseError"


def test_update_of_missing_module(cli_env):
    code, result = run_cli(cli_env, "update", "-n", "Foo")
    assert code == 4
    assert result["error"]["kind"] == "ModuleNotInstalledForUpdate"


def test_unwritable_store_is_an_install_error(cli_env):
    with patch("install.paths.InstallPaths.ensure", side_effect=PermissionError("read-only store")):
        code, result = run_cli(cli_env, "install", "-n", "Bar")
    assert code == 4
    assert result["error"]["kind"] == "InstallError"
    assert result["error"]["package_id"] == "Bar"
    assert result["error"]["repository"] == "Local"
    assert "read-only store" in result["error"]["message"]
