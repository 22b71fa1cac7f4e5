"""Unit tests for cli.config module."""

import pytest

from page_sync.cli.config import ConfigLoader
from page_sync.cli.errors import ConfigError
from page_sync.cli.models import ClientSettings


class TestConfigLoader:
    """Test cases for ConfigLoader.load."""

    def test_load_all_fields(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(
            "url: https://example.atlassian.net/wiki\n"
            "timeout_ms: 20000\n"
            "page_size: 200\n"
        )

        settings = ConfigLoader.load(str(config_file))

        assert settings == ClientSettings(
            url="https://example.atlassian.net/wiki",
            timeout_ms=20000,
            page_size=200,
        )

    def test_partial_file_keeps_defaults(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("page_size: 50\n")

        settings = ConfigLoader.load(str(config_file))

        assert settings.url is None
        assert settings.timeout_ms == 10000
        assert settings.page_size == 50

    def test_missing_file_gives_defaults(self, tmp_path):
        assert ConfigLoader.load(str(tmp_path / "nonexistent.yaml")) == ClientSettings()

    @pytest.mark.parametrize("content", ["", "   \n", "# only a comment\n"])
    def test_empty_file_gives_defaults(self, tmp_path, content):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(content)

        assert ConfigLoader.load(str(config_file)) == ClientSettings()

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("url: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML syntax"):
            ConfigLoader.load(str(config_file))

    def test_non_mapping_raises(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("- url\n- page_size\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader.load(str(config_file))

    def test_unknown_key_raises(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("api_token: secret\n")

        with pytest.raises(ConfigError, match="api_token"):
            ConfigLoader.load(str(config_file))

    @pytest.mark.parametrize("content", [
        "url: not a url\n",
        "url: 42\n",
        "timeout_ms: 0\n",
        "timeout_ms: fast\n",
        "page_size: -5\n",
        "page_size: true\n",
    ])
    def test_invalid_values_raise(self, tmp_path, content):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(content)

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(config_file))

        assert exc_info.value.config_path == str(config_file)

    def test_directory_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read file"):
            ConfigLoader.load(str(tmp_path))
