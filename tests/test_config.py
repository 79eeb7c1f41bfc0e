"""Tests for config loading and JSON preprocessing."""

import json
from pathlib import Path

import pytest

from devsetup.config import (
    Settings,
    _format_syntax_error,
    load_jsonish,
    load_requirements,
    parse_requirements,
)
from devsetup.errors import ConfigError
from devsetup.execution import INSTALL_TIMEOUT
from devsetup.json_parser import preprocess_jsonish
from devsetup.paths import CONFIG_ENV_VAR, CONFIG_FILENAME, find_config_file


def _dep(**overrides) -> dict:
    data = {
        "id": "node",
        "name": "Node.js",
        "requiredVersion": "^18.17.0",
        "cliName": "node",
        "versionFlag": "-v",
    }
    data.update(overrides)
    return data


class TestPreprocessJsonish:
    """Tests for the JSON preprocessor."""

    def test_valid_strict_json_unchanged(self):
        text = '{"name": "test", "version": "1.0.0"}'
        assert preprocess_jsonish(text) == text

    def test_trailing_commas(self):
        assert json.loads(preprocess_jsonish("[1, 2, 3,]")) == [1, 2, 3]
        assert json.loads(preprocess_jsonish('{"a": 1,\n}')) == {"a": 1}

    def test_line_comment(self):
        text = '{\n  // the tools\n  "a": 1 // inline\n}'
        assert json.loads(preprocess_jsonish(text)) == {"a": 1}

    def test_block_comment(self):
        text = '{"a": /* one */ 1, /* multi\nline */ "b": 2}'
        assert json.loads(preprocess_jsonish(text)) == {"a": 1, "b": 2}

    def test_comment_between_comma_and_bracket(self):
        assert json.loads(preprocess_jsonish("[1, 2, // last\n]")) == [1, 2]

    def test_comment_markers_inside_strings_kept(self):
        text = '{"url": "https://example.com//x", "glob": "/* not a comment */"}'
        assert json.loads(preprocess_jsonish(text)) == {
            "url": "https://example.com//x",
            "glob": "/* not a comment */",
        }

    def test_escaped_quote_in_string(self):
        text = '{"a": "say \\"hi\\" // still string", }'
        assert json.loads(preprocess_jsonish(text)) == {"a": 'say "hi" // still string'}

    def test_positions_preserved(self):
        text = '{\n  // comment\n  "a": 1,\n}'
        result = preprocess_jsonish(text)
        assert len(result) == len(text)
        assert result.count("\n") == text.count("\n")


class TestLoadJsonish:
    def test_from_file(self, temp_dir):
        path = temp_dir / CONFIG_FILENAME
        path.write_text('{"dependencies": [], // none yet\n}')
        assert load_jsonish(path) == {"dependencies": []}

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError, match="not found"):
            load_jsonish(temp_dir / "missing.json")

    def test_not_an_object(self):
        with pytest.raises(ConfigError, match="must be a JSON object"):
            load_jsonish("[1, 2]")

    def test_syntax_error_points_at_line(self):
        with pytest.raises(ConfigError) as exc_info:
            load_jsonish('{\n  "dependencies": [\n    {"id": }\n  ]\n}')
        message = str(exc_info.value)
        assert "line 3" in message
        assert '{"id": }' in message
        assert "^" in message

    def test_format_syntax_error_caret_column(self):
        text = '{"a": ]}'
        try:
            json.loads(text)
        except json.JSONDecodeError as e:
            formatted = _format_syntax_error(text, e)
        lines = formatted.split("\n")
        assert lines[1] == text
        assert lines[2] == " " * 6 + "^"


class TestParseRequirements:
    def test_valid(self):
        [req] = parse_requirements({"dependencies": [_dep()]})
        assert req.id == "node"
        assert req.name == "Node.js"
        assert req.required_version == "^18.17.0"
        assert req.cli_name == "node"
        assert req.version_flag == "-v"
        assert req.version_command == ["node", "-v"]

    def test_version_flag_defaults(self):
        data = _dep()
        del data["versionFlag"]
        [req] = parse_requirements({"dependencies": [data]})
        assert req.version_flag == "--version"

    def test_multi_word_version_flag(self):
        [req] = parse_requirements(
            {"dependencies": [_dep(id="go", cliName="go", versionFlag="version -m")]}
        )
        assert req.version_command == ["go", "version", "-m"]

    def test_order_preserved(self):
        deps = [_dep(id="b", cliName="b"), _dep(id="a", cliName="a")]
        assert [r.id for r in parse_requirements({"dependencies": deps})] == ["b", "a"]

    def test_no_dependencies_key(self):
        assert parse_requirements({}) == []

    def test_dependencies_not_a_list(self):
        with pytest.raises(ConfigError, match="must be a list"):
            parse_requirements({"dependencies": {"node": {}}})

    def test_entry_not_an_object(self):
        with pytest.raises(ConfigError, match=r"dependencies\[0\] must be an object"):
            parse_requirements({"dependencies": ["node"]})

    @pytest.mark.parametrize("field", ["id", "name", "requiredVersion", "cliName"])
    def test_required_fields(self, field):
        data = _dep()
        del data[field]
        with pytest.raises(ConfigError, match=f"field '{field}' is required"):
            parse_requirements({"dependencies": [data]})

    def test_blank_field(self):
        with pytest.raises(ConfigError, match="Dependency 'node' field 'name' must be a non-empty string"):
            parse_requirements({"dependencies": [_dep(name="  ")]})

    def test_cli_name_with_spaces(self):
        with pytest.raises(ConfigError, match="single executable name"):
            parse_requirements({"dependencies": [_dep(cliName="node -v")]})

    @pytest.mark.parametrize(
        "declared", [">= 2.30.0", "< 3", "^ 18.17.0", "~ 1.2.3", ">=1.2.3 < 2"]
    )
    def test_range_with_spaced_operators(self, declared):
        [req] = parse_requirements({"dependencies": [_dep(requiredVersion=declared)]})
        assert req.required_version == declared

    def test_invalid_range(self):
        with pytest.raises(ConfigError, match="not a valid semver range"):
            parse_requirements({"dependencies": [_dep(requiredVersion="eighteen")]})

    def test_duplicate_ids(self):
        with pytest.raises(ConfigError, match="duplicate id 'node'"):
            parse_requirements({"dependencies": [_dep(), _dep(name="Node again")]})


class TestLoadRequirements:
    def test_no_file_means_nothing_to_audit(self):
        assert load_requirements(None) == []

    def test_from_file(self, temp_dir):
        path = temp_dir / CONFIG_FILENAME
        path.write_text(json.dumps({"dependencies": [_dep()]}))
        assert [r.id for r in load_requirements(path)] == ["node"]


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DEVSETUP_SILENT_TIMEOUT", raising=False)
        monkeypatch.delenv("DEVSETUP_CATALOG", raising=False)
        settings = Settings.from_env()
        assert settings.silent_timeout == INSTALL_TIMEOUT
        assert settings.catalog_path is None
        assert settings.os_release_path == Path("/etc/os-release")

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("DEVSETUP_SILENT_TIMEOUT", "90")
        monkeypatch.setenv("DEVSETUP_CATALOG", "/tmp/packages.yaml")
        settings = Settings.from_env()
        assert settings.silent_timeout == 90.0
        assert settings.catalog_path == Path("/tmp/packages.yaml")

    @pytest.mark.parametrize("value", ["soon", "0", "-5"])
    def test_invalid_timeout(self, monkeypatch, value):
        monkeypatch.setenv("DEVSETUP_SILENT_TIMEOUT", value)
        with pytest.raises(ConfigError, match="DEVSETUP_SILENT_TIMEOUT"):
            Settings.from_env()


class TestFindConfigFile:
    def test_env_var_wins(self, temp_dir, monkeypatch):
        (temp_dir / CONFIG_FILENAME).write_text("{}")
        monkeypatch.setenv(CONFIG_ENV_VAR, "/nowhere/deps.json")
        assert find_config_file([temp_dir]) == Path("/nowhere/deps.json")

    def test_first_directory_with_file(self, temp_dir, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        first = temp_dir / "first"
        second = temp_dir / "second"
        first.mkdir()
        second.mkdir()
        (second / CONFIG_FILENAME).write_text("{}")
        assert find_config_file([first, second]) == second / CONFIG_FILENAME

    def test_defaults_to_cwd(self, temp_dir, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(temp_dir)
        assert find_config_file() is None
        (temp_dir / CONFIG_FILENAME).write_text("{}")
        assert find_config_file().resolve() == (temp_dir / CONFIG_FILENAME).resolve()
