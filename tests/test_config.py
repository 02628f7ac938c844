"""Tests for settings loading."""

from pathlib import Path

import pytest

from apkg_srs.config import Settings, get_config, load_config, reset_config
from apkg_srs.exceptions import ConfigurationError
from apkg_srs.issues import ConversionOptions, ErrorHandling


def test_defaults():
    settings = load_config()
    assert settings.error_handling == "best-effort"
    assert settings.allowed_extensions == [".apkg", ".colpkg"]
    assert settings.scratch_root is None
    assert settings.log_level == "INFO"


def test_yaml_file_in_working_directory(tmp_path):
    (tmp_path / "apkg-srs.yaml").write_text(
        "error_handling: strict\nscratch_root: work\nallowed_extensions: apkg, ZIP\n",
        encoding="utf-8",
    )
    settings = load_config()
    assert settings.error_handling == "strict"
    assert settings.scratch_root == Path("work")
    assert settings.allowed_extensions == [".apkg", ".zip"]


def test_explicit_path_wins_over_environment(tmp_path, monkeypatch):
    env_file = tmp_path / "env.yaml"
    env_file.write_text("log_level: debug\n", encoding="utf-8")
    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("log_level: error\n", encoding="utf-8")
    monkeypatch.setenv("APKG_SRS_CONFIG", str(env_file))

    assert load_config().log_level == "DEBUG"
    assert load_config(explicit).log_level == "ERROR"


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("APKG_SRS_ERROR_HANDLING", "strict")
    assert load_config().error_handling == "strict"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    ("content", "fragment"),
    [
        ("error_handling: [unclosed\n", "Failed to parse"),
        ("- just\n- a list\n", "must contain a mapping"),
        ("error_handling: sometimes\n", "Invalid apkg-srs configuration"),
        ("log_level: LOUD\n", "Invalid apkg-srs configuration"),
        ("allowed_extensions: []\n", "Invalid apkg-srs configuration"),
    ],
)
def test_bad_files(tmp_path, content, fragment):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(path)
    assert fragment in exc_info.value.message
    assert exc_info.value.suggestion


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path).error_handling == "best-effort"


def test_singleton(tmp_path):
    reset_config()
    first = get_config()
    assert get_config() is first


def test_options_from_settings():
    options = ConversionOptions(Settings(error_handling="strict").error_handling)
    assert options.error_handling is ErrorHandling.STRICT
