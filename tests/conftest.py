"""Pytest configuration and fixtures for the test suite."""

from pathlib import Path

import pytest

from apkg_srs.anki.package import AnkiPackage
from apkg_srs.config import Settings, reset_config, set_config
from tests.fixtures import build_sample_apkg


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point scratch directories into tmp_path and ignore the user's environment."""
    for name in ("APKG_SRS_CONFIG", "APKG_SRS_ERROR_HANDLING", "APKG_SRS_SCRATCH_ROOT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    settings = Settings(scratch_root=tmp_path / "scratch")
    set_config(settings)
    yield settings
    reset_config()


@pytest.fixture
def scratch_root(isolated_config) -> Path:
    return isolated_config.scratch_root


@pytest.fixture
def sample_apkg(tmp_path) -> Path:
    """Path to a freshly built sample export."""
    return build_sample_apkg(tmp_path)


@pytest.fixture
def sample_package(sample_apkg):
    """The sample export, opened; cleaned up after the test."""
    result = AnkiPackage.from_anki_export(sample_apkg)
    assert result.status.value == "success", [str(i) for i in result.issues]
    package = result.data
    yield package
    package.cleanup()
