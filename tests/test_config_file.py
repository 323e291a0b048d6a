"""Tests for editing the forum's PHP config file."""

import pytest

from vanilla_smoke.config_file import (
    FILE_HEADER,
    ConfigFile,
    flatten,
    parse_php_literal,
    php_literal,
)
from vanilla_smoke.exceptions import ConfigWriteError

EXISTING = """<?php if (!defined('APPLICATION')) exit();

// Database
$Configuration['Database']['Name'] = 'vanilla';
$Configuration['Garden']['Registration']['Method'] = 'Captcha';
$Configuration['Garden']['Registration']['CaptchaPublicKey'] = 'abc';
$Configuration['EnabledPlugins'] = array(
    'HtmLawed' => 'HtmLawed',
);
$Configuration['Garden']['Title'] = 'It\\'s a forum';
"""


@pytest.fixture
def config(tmp_path):
    return ConfigFile(tmp_path / "config.php")


@pytest.fixture
def existing(config):
    config.path.write_text(EXISTING)
    return config


@pytest.mark.unit
class TestPhpLiterals:

    @pytest.mark.parametrize("value,expected", [
        (None, "null"),
        (True, "true"),
        (False, "false"),
        (3, "3"),
        (1.5, "1.5"),
        ("Basic", "'Basic'"),
        ("It's", "'It\\'s'"),
        (["a", 1], "['a', 1]"),
        ({"k": "v"}, "['k' => 'v']"),
    ])
    def test_php_literal(self, value, expected):
        assert php_literal(value) == expected

    def test_php_literal_rejects_objects(self):
        with pytest.raises(TypeError):
            php_literal(object())

    @pytest.mark.parametrize("source,expected", [
        ("TRUE", True),
        ("false", False),
        ("null", None),
        ("-12", -12),
        ("0.25", 0.25),
        ("'It\\'s'", "It's"),
        ('"double"', "double"),
        ("array(1, 2)", "array(1, 2)"),
    ])
    def test_parse_php_literal(self, source, expected):
        assert parse_php_literal(source) == expected

    def test_flatten(self):
        assert flatten({"Garden": {"Email": {"Disabled": True}, "Title": "x"}}) == {
            "Garden.Email.Disabled": True,
            "Garden.Title": "x",
        }


@pytest.mark.unit
class TestConfigFileRead:

    def test_missing_file(self, config):
        assert config.read() == {}

    def test_read(self, existing):
        values = existing.read()

        assert values["Database.Name"] == "vanilla"
        assert values["Garden.Registration.Method"] == "Captcha"
        assert values["Garden.Title"] == "It's a forum"
        assert values["EnabledPlugins"].startswith("array(")


@pytest.mark.unit
class TestConfigFileSave:
    """Tests for save()."""

    def test_creates_file_with_header(self, config):
        config.save({"Garden.Registration.Method": "Basic"})

        source = config.path.read_text()
        assert source.startswith(FILE_HEADER)
        assert "$Configuration['Garden']['Registration']['Method'] = 'Basic';" in source

    def test_creates_parent_directories(self, tmp_path):
        config = ConfigFile(tmp_path / "conf" / "nested" / "config.php")
        config.save({"Garden.Email.Disabled": True})
        assert config.read() == {"Garden.Email.Disabled": True}

    def test_replaces_existing_key(self, existing):
        existing.save({"Garden.Registration.Method": "Basic"})

        source = existing.path.read_text()
        assert "'Captcha'" not in source
        assert source.count("['Registration']['Method']") == 1
        assert existing.read()["Garden.Registration.Method"] == "Basic"

    def test_keeps_other_lines(self, existing):
        existing.save({"Garden.Email.Disabled": True})

        source = existing.path.read_text()
        assert "// Database" in source
        assert "    'HtmLawed' => 'HtmLawed'," in source
        assert existing.read()["Garden.Registration.CaptchaPublicKey"] == "abc"

    def test_replaces_multi_line_statement(self, existing):
        existing.save({"EnabledPlugins": {"Quotes": True}})

        source = existing.path.read_text()
        assert "HtmLawed" not in source
        assert existing.read()["EnabledPlugins.Quotes"] is True

    def test_branch_replaced(self, existing):
        """Test setting a mapping drops everything below that key."""
        existing.save({"Garden.Registration": {"Method": "Basic", "ConfirmEmail": False}})

        values = existing.read()
        assert "Garden.Registration.CaptchaPublicKey" not in values
        assert values["Garden.Registration.Method"] == "Basic"
        assert values["Garden.Registration.ConfirmEmail"] is False
        assert values["Garden.Title"] == "It's a forum"

    def test_trailing_comment_keeps_next_line(self, config):
        """Test a commented assignment does not swallow the lines after it."""
        config.path.write_text(
            "<?php\n"
            "$Configuration['Garden']['Title'] = 'Forum'; // site title\n"
            "$Configuration['Garden']['Cookie']['Salt'] = 'ABC';\n"
            "$Configuration['Garden']['Domain'] = 'forum.test'; # cookie domain\n"
        )

        assert config.read() == {
            "Garden.Title": "Forum",
            "Garden.Cookie.Salt": "ABC",
            "Garden.Domain": "forum.test",
        }

        config.save({"Garden.Title": "Smoke"})

        source = config.path.read_text()
        assert "site title" not in source
        assert "$Configuration['Garden']['Cookie']['Salt'] = 'ABC';" in source
        assert "# cookie domain" in source
        assert config.read()["Garden.Title"] == "Smoke"

    def test_semicolon_inside_string(self, config):
        config.path.write_text(
            "<?php\n"
            "$Configuration['Garden']['Description'] = 'one; two';\n"
            "$Configuration['Garden']['Locale'] = 'en';\n"
        )

        config.save({"Garden.Description": "three"})

        assert config.read() == {"Garden.Description": "three", "Garden.Locale": "en"}

    def test_unfinished_statement_kept(self, config):
        """Test an assignment that never completes is left alone by later saves."""
        config.path.write_text(
            "<?php\n"
            "$Configuration['Broken'] = array(\n"
            "$Configuration['Garden']['Locale'] = 'en';\n"
        )

        config.save({"Broken": 1, "Garden.Locale": "de"})

        source = config.path.read_text()
        assert "$Configuration['Broken'] = array(" in source
        assert "'en'" not in source
        assert config.read()["Garden.Locale"] == "de"

    def test_save_twice(self, config):
        config.save({"Garden.Registration.Method": "Captcha"})
        config.save({"Garden.Registration.Method": "Basic", "Garden.Registration.SkipCaptcha": True})

        assert config.read() == {
            "Garden.Registration.Method": "Basic",
            "Garden.Registration.SkipCaptcha": True,
        }

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        config = ConfigFile(blocker / "config.php")

        with pytest.raises(ConfigWriteError):
            config.save({"A": 1})


@pytest.mark.unit
class TestSnapshots:

    def test_restore_contents(self, existing):
        snapshot = existing.snapshot()
        existing.save({"Garden.Registration.Method": "Basic"})

        existing.restore(snapshot)

        assert existing.path.read_text() == EXISTING

    def test_restore_missing_file(self, config):
        snapshot = config.snapshot()
        assert snapshot is None

        config.save({"A": 1})
        config.restore(snapshot)

        assert not config.path.exists()

    def test_restore_none_without_file(self, config):
        config.restore(None)
        assert not config.path.exists()
