"""Tests for duet.config and duet.config_loader."""

from pathlib import Path

import pytest

from duet._errors import ConfigError
from duet.config import DuetConfig
from duet.config_loader import load_config


class TestDuetConfig:
    """DuetConfig — frozen dataclass with sensible defaults."""

    def test_defaults(self) -> None:
        config = DuetConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 8000
        assert config.debug is False
        assert config.stream_path == "/__duet/stream"
        assert config.event_path == "/__duet/event"
        assert config.stats_path == "/__duet/stats"
        assert (config.default_width, config.default_height) == (960, 540)
        assert config.max_events == 10_000
        assert config.inject_client is True

    def test_frozen(self) -> None:
        config = DuetConfig()
        with pytest.raises(AttributeError):
            config.port = 9000  # type: ignore[misc]

    def test_url(self) -> None:
        assert DuetConfig(host="0.0.0.0", port=9000).url == "http://0.0.0.0:9000"

    @pytest.mark.parametrize("port", [-1, 70000, "80", True])
    def test_invalid_port(self, port: object) -> None:
        with pytest.raises(ConfigError, match="port"):
            DuetConfig(port=port)  # type: ignore[arg-type]

    @pytest.mark.parametrize("key", ["default_width", "default_height", "max_events"])
    def test_non_positive_sizes(self, key: str) -> None:
        with pytest.raises(ConfigError, match=key):
            DuetConfig(**{key: 0})

    def test_path_must_be_absolute(self) -> None:
        with pytest.raises(ConfigError, match="'/'"):
            DuetConfig(stream_path="stream")

    def test_paths_must_differ(self) -> None:
        with pytest.raises(ConfigError, match="differ"):
            DuetConfig(event_path="/__duet/stream")


class TestLoadConfig:
    """load_config — file discovery and overrides."""

    def test_no_file(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == DuetConfig()

    def test_toml_top_level(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text('port = 9001\nhost = "0.0.0.0"\n')
        config = load_config(tmp_path)
        assert (config.host, config.port) == ("0.0.0.0", 9001)

    def test_toml_section(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text("[duet]\ndefault_width = 400\ndebug = true\n")
        config = load_config(tmp_path)
        assert config.default_width == 400
        assert config.debug is True

    def test_yaml(self, tmp_path: Path) -> None:
        pytest.importorskip("yaml")
        (tmp_path / "duet.yaml").write_text("duet:\n  port: 9002\n  inject_client: false\n")
        config = load_config(tmp_path)
        assert config.port == 9002
        assert config.inject_client is False

    def test_yaml_preferred_over_toml(self, tmp_path: Path) -> None:
        pytest.importorskip("yaml")
        (tmp_path / "duet.yml").write_text("port: 9003\n")
        (tmp_path / "duet.toml").write_text("port = 9004\n")
        assert load_config(tmp_path).port == 9003

    def test_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text("port = 9001\n")
        assert load_config(tmp_path, port=9100).port == 9100

    def test_none_overrides_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text("port = 9001\n")
        assert load_config(tmp_path, port=None, host=None).port == 9001

    def test_unrelated_top_level_keys_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text('port = 9001\n[tool]\nname = "x"\n')
        assert load_config(tmp_path).port == 9001

    def test_unknown_section_key(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text("[duet]\ncolour = 1\n")
        with pytest.raises(ConfigError, match="colour"):
            load_config(tmp_path)

    def test_unknown_override(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="workers"):
            load_config(tmp_path, workers=4)

    def test_malformed_toml(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text("port = = 1\n")
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path)

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        pytest.importorskip("yaml")
        (tmp_path / "duet.yaml").write_text("port: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_yaml_not_a_mapping(self, tmp_path: Path) -> None:
        pytest.importorskip("yaml")
        (tmp_path / "duet.yaml").write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(tmp_path)

    def test_invalid_value_from_file(self, tmp_path: Path) -> None:
        (tmp_path / "duet.toml").write_text("port = -3\n")
        with pytest.raises(ConfigError, match="port"):
            load_config(tmp_path)
