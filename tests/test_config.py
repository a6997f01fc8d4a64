"""Tests for unify.config and unify.config_loader."""

from pathlib import Path

import pytest

from unify._errors import ConfigError
from unify.config import UnifyConfig
from unify.config_loader import load_config


class TestUnifyConfig:
    """UnifyConfig — frozen dataclass with sensible defaults."""

    def test_defaults(self) -> None:
        config = UnifyConfig()
        assert config.source_dir == "src"
        assert config.output == Path("dist")
        assert config.includes_dir == "_includes"
        assert config.area_prefix == "unify-"
        assert config.debounce_ms == 100
        assert config.pretty_urls is False
        assert config.minify is False
        assert config.clean is False
        assert config.cache_file == ".unify-cache.json"

    def test_frozen(self) -> None:
        config = UnifyConfig()
        with pytest.raises(AttributeError):
            config.minify = True  # type: ignore[misc]

    def test_paths_resolve_from_root(self, tmp_path: Path) -> None:
        config = UnifyConfig(root=tmp_path)
        assert config.source_path == tmp_path / "src"
        assert config.output_path == tmp_path / "dist"
        assert config.cache_path == tmp_path / "dist" / ".unify-cache.json"

    def test_absolute_output_preserved(self, tmp_path: Path) -> None:
        output = tmp_path / "elsewhere"
        config = UnifyConfig(root=tmp_path / "site", output=output)
        assert config.output_path == output
        assert config.cache_path == output / ".unify-cache.json"

    def test_absolute_cache_file(self, tmp_path: Path) -> None:
        cache = tmp_path / "cache.json"
        assert UnifyConfig(root=tmp_path, cache_file=str(cache)).cache_path == cache

    def test_relative_root_resolved_to_absolute(self) -> None:
        config = UnifyConfig(root=Path("my-site"))
        assert config.root.is_absolute()
        assert config.root.name == "my-site"

    def test_absolute_root_unchanged(self, tmp_path: Path) -> None:
        assert UnifyConfig(root=tmp_path).root == tmp_path


class TestLoadConfig:
    """load_config — file discovery, merging and validation."""

    def test_no_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.root == tmp_path
        assert config.source_dir == "src"

    def test_yaml_top_level_keys(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yaml").write_text("source_dir: pages\npretty_urls: true\noutput: public\n")
        config = load_config(tmp_path)
        assert config.source_dir == "pages"
        assert config.pretty_urls is True
        assert config.output == Path("public")

    def test_yaml_unify_section(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yml").write_text("unify:\n  minify: true\n  debounce_ms: '250'\n")
        config = load_config(tmp_path)
        assert config.minify is True
        assert config.debounce_ms == 250

    def test_yaml_ignores_unrelated_top_level_keys(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yaml").write_text("title: My site\nclean: true\n")
        assert load_config(tmp_path).clean is True

    def test_toml(self, tmp_path: Path) -> None:
        (tmp_path / "unify.toml").write_text('[unify]\nsource_dir = "content"\narea_prefix = "area-"\n')
        config = load_config(tmp_path)
        assert config.source_dir == "content"
        assert config.area_prefix == "area-"

    def test_yaml_preferred_over_toml(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yaml").write_text("source_dir: from-yaml\n")
        (tmp_path / "unify.toml").write_text('source_dir = "from-toml"\n')
        assert load_config(tmp_path).source_dir == "from-yaml"

    def test_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yaml").write_text("source_dir: pages\nminify: true\n")
        config = load_config(tmp_path, source_dir="site", minify=None)
        assert config.source_dir == "site"
        assert config.minify is True

    def test_string_output_becomes_path(self, tmp_path: Path) -> None:
        assert load_config(tmp_path, output="build").output == Path("build")

    def test_unknown_section_key_raises(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yaml").write_text("unify:\n  port: 3000\n")
        with pytest.raises(ConfigError, match="Unknown configuration keys: port"):
            load_config(tmp_path)

    def test_unknown_override_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path, base_url="https://example.com")

    def test_unreadable_yaml_ignored(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "unify.yaml").write_text("source_dir: [unclosed\n")
        config = load_config(tmp_path)
        assert config.source_dir == "src"
        assert "Ignoring unreadable config unify.yaml" in capsys.readouterr().err

    def test_unreadable_toml_ignored(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "unify.toml").write_text("source_dir = \n")
        assert load_config(tmp_path).source_dir == "src"
        assert "Ignoring unreadable config unify.toml" in capsys.readouterr().err

    def test_non_mapping_yaml_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "unify.yaml").write_text("- a\n- b\n")
        assert load_config(tmp_path).source_dir == "src"
