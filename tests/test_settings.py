"""Tests for harness settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from vanilla_smoke.settings import (
    DEFAULT_BASE_URL,
    SmokeSettings,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and ./.env."""
    for name in SmokeSettings.model_fields:
        monkeypatch.delenv(f"VANILLA_{name.upper()}", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.mark.unit
class TestSmokeSettings:

    def test_defaults(self):
        settings = SmokeSettings()

        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.table_prefix == "GDN_"
        assert settings.cookie_name == "Vanilla"
        assert settings.cookie_hash_method == "md5"
        assert settings.config_path is None

    def test_strips_trailing_slash(self):
        assert SmokeSettings(base_url="http://forum.test/").base_url == "http://forum.test"

    def test_hash_method_normalized(self):
        assert SmokeSettings(cookie_hash_method="SHA1").cookie_hash_method == "sha1"

    @pytest.mark.parametrize("field,value", [
        ("timeout", 0),
        ("max_retries", 0),
        ("cookie_hash_method", "rot13"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            SmokeSettings(**{field: value})


@pytest.mark.unit
class TestEnvironment:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VANILLA_BASE_URL", "http://env.test")
        monkeypatch.setenv("VANILLA_MAX_RETRIES", "5")
        monkeypatch.setenv("VANILLA_CONFIG_PATH", "/srv/forum/conf/config.php")

        settings = SmokeSettings.from_env()

        assert settings.base_url == "http://env.test"
        assert settings.max_retries == 5
        assert settings.config_path == Path("/srv/forum/conf/config.php")

    def test_empty_variable_ignored(self, monkeypatch):
        monkeypatch.setenv("VANILLA_BASE_URL", "")
        assert SmokeSettings.from_env().base_url == DEFAULT_BASE_URL

    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / "smoke.env"
        env_file.write_text("VANILLA_COOKIE_SALT=fromfile\n")
        # load_dotenv writes to os.environ; let monkeypatch undo it
        monkeypatch.setenv("VANILLA_COOKIE_SALT", "")
        monkeypatch.delenv("VANILLA_COOKIE_SALT")

        assert SmokeSettings.from_env(env_file).cookie_salt == "fromfile"

    def test_environment_wins_over_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / "smoke.env"
        env_file.write_text("VANILLA_COOKIE_SALT=fromfile\n")
        monkeypatch.setenv("VANILLA_COOKIE_SALT", "fromenv")

        assert SmokeSettings.from_env(env_file).cookie_salt == "fromenv"

    def test_missing_env_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SmokeSettings.from_env(tmp_path / "nope.env")


@pytest.mark.unit
class TestProfiles:

    def test_from_profile(self, tmp_path):
        profile = tmp_path / "local.yaml"
        profile.write_text("base_url: http://profile.test\ntimeout: 10\n")

        settings = SmokeSettings.from_profile(profile)

        assert settings.base_url == "http://profile.test"
        assert settings.timeout == 10.0

    def test_unknown_keys_ignored(self, tmp_path, caplog):
        profile = tmp_path / "local.yaml"
        profile.write_text("base_url: http://profile.test\ncolour: blue\n")

        settings = SmokeSettings.from_profile(profile)

        assert settings.base_url == "http://profile.test"
        assert "colour" in caplog.text

    def test_profile_must_be_mapping(self, tmp_path):
        profile = tmp_path / "bad.yaml"
        profile.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            SmokeSettings.from_profile(profile)

    def test_empty_profile(self, tmp_path):
        profile = tmp_path / "empty.yaml"
        profile.write_text("")
        assert SmokeSettings.from_profile(profile) == SmokeSettings()


@pytest.mark.unit
class TestLoadSettings:
    """Tests for layering sources."""

    def test_precedence(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VANILLA_BASE_URL", "http://env.test")
        monkeypatch.setenv("VANILLA_COOKIE_SALT", "envsalt")
        monkeypatch.setenv("VANILLA_TABLE_PREFIX", "ENV_")
        profile = tmp_path / "p.yaml"
        profile.write_text("base_url: http://profile.test\ncookie_salt: profilesalt\n")

        settings = load_settings(profile=profile, base_url="http://cli.test", cookie_salt=None)

        assert settings.base_url == "http://cli.test"
        assert settings.cookie_salt == "profilesalt"
        assert settings.table_prefix == "ENV_"

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            load_settings(timeout=-1)
