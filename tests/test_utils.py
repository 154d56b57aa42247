"""
Tests for helper modules (utils.py).
"""

from importlib import metadata
import os

import pytest

import utils


@pytest.fixture
def no_distribution(mocker):
    mocker.patch("utils.metadata.version", side_effect=metadata.PackageNotFoundError("dsmr-reader"))


def test_get_version_from_env(mocker):
    """Test get_version from environment variable."""
    mocker.patch.dict(os.environ, {"DSMR_READER_VERSION": "1.2.0"})
    assert utils.get_version() == "1.2.0"


def test_get_version_from_metadata(mocker):
    mocker.patch.dict(os.environ, {}, clear=True)
    mocker.patch("utils.metadata.version", return_value="0.9.1")
    assert utils.get_version() == "0.9.1"


def test_get_version_fallback(mocker, tmp_path, monkeypatch, no_distribution):
    """Test get_version fallback when env is missing and no config file."""
    monkeypatch.chdir(tmp_path)
    mocker.patch.dict(os.environ, {}, clear=True)
    mocker.patch("utils.__file__", str(tmp_path / "utils.py"))
    assert utils.get_version() == "dev"


def test_get_version_config_yaml(mocker, tmp_path, monkeypatch, no_distribution):
    """Test get_version reading from config.yaml."""
    monkeypatch.chdir(tmp_path)
    mocker.patch.dict(os.environ, {}, clear=True)

    config_file = tmp_path / "config.yaml"
    config_file.write_text("version: '2.0.0-test'\n", encoding="utf-8")
    mocker.patch("utils.__file__", str(tmp_path / "utils.py"))

    assert utils.get_version() == "2.0.0-test (local)"


def test_get_version_invalid_yaml(mocker, tmp_path, monkeypatch, no_distribution):
    """Test get_version handles invalid YAML gracefully."""
    monkeypatch.chdir(tmp_path)
    mocker.patch.dict(os.environ, {}, clear=True)

    config_file = tmp_path / "config.yaml"
    config_file.write_text("{invalid yaml: [}", encoding="utf-8")
    mocker.patch("utils.__file__", str(tmp_path / "utils.py"))

    assert utils.get_version() == "dev"


def test_get_version_yaml_no_version_key(mocker, tmp_path, monkeypatch, no_distribution):
    monkeypatch.chdir(tmp_path)
    mocker.patch.dict(os.environ, {}, clear=True)

    config_file = tmp_path / "config.yaml"
    config_file.write_text("name: 'DSMR Reader'\n", encoding="utf-8")
    mocker.patch("utils.__file__", str(tmp_path / "utils.py"))

    assert utils.get_version() == "dev"
