"""Tests for scope path resolution."""

import os
from unittest.mock import patch

import pytest

from install.errors import AdminPrivilegeRequiredError
from install.paths import InstallPaths, resolve_install_paths


def test_root_override(tmp_path):
    paths = resolve_install_paths("currentuser", str(tmp_path), environ={})
    assert paths.scope == "CurrentUser"
    assert paths.modules_dir == os.path.join(str(tmp_path), "Modules")
    assert paths.script_infos_dir == os.path.join(str(tmp_path), "Scripts", "InstalledScriptInfos")


def test_env_root(tmp_path):
    paths = resolve_install_paths(None, environ={"PSRESGET_INSTALL_ROOT": str(tmp_path)})
    assert paths.root == str(tmp_path)


def test_unknown_scope():
    with pytest.raises(ValueError):
        resolve_install_paths("Machine", environ={})


@patch("install.paths.is_elevated", return_value=False)
def test_all_users_requires_elevation(_mock_elevated):
    with pytest.raises(AdminPrivilegeRequiredError):
        resolve_install_paths("AllUsers", environ={})


@patch("install.paths.is_elevated", return_value=False)
def test_all_users_with_override_skips_elevation(_mock_elevated, tmp_path):
    assert resolve_install_paths("AllUsers", str(tmp_path), environ={}).scope == "AllUsers"


@patch("install.paths.is_elevated", return_value=True)
def test_all_users_elevated_uses_system_root(_mock_elevated):
    paths = resolve_install_paths("AllUsers", environ={})
    assert paths.scope == "AllUsers"
    assert paths.root != os.path.expanduser("~")


def test_ensure_creates_directories(tmp_path):
    paths = InstallPaths(root=str(tmp_path / "store"))
    paths.ensure()
    assert os.path.isdir(paths.modules_dir)
    assert os.path.isdir(paths.script_infos_dir)
