"""Load UnifyConfig from unify.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import sys
from pathlib import Path

from unify._errors import ConfigError
from unify.config import UnifyConfig

_CONFIG_KEYS = frozenset({
    "source_dir", "output", "includes_dir", "area_prefix", "debounce_ms",
    "pretty_urls", "minify", "clean", "cache_file",
})


def load_config(root: Path, **overrides: object) -> UnifyConfig:
    """Load UnifyConfig from root, optionally merging unify.yaml.

    Looks for unify.yaml, unify.yml, or unify.toml in root. If found, loads
    and merges with overrides. Overrides whose value is None are ignored so
    that unset CLI flags don't mask file values.

    Raises:
        ConfigError: If a merged key has no matching configuration field.

    """
    file_config = _read_unify_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    unknown = sorted(set(merged) - _CONFIG_KEYS)
    if unknown:
        msg = f"Unknown configuration keys: {', '.join(unknown)}"
        raise ConfigError(msg)
    if "output" in merged and not isinstance(merged["output"], Path):
        merged["output"] = Path(str(merged["output"]))
    if "debounce_ms" in merged:
        merged["debounce_ms"] = int(merged["debounce_ms"])  # type: ignore[call-overload]
    return UnifyConfig(root=root, **merged)  # type: ignore[arg-type]


def _read_unify_config(root: Path) -> dict[str, object]:
    """Read unify config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("unify.yaml", "unify.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "unify.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config. Returns empty dict on error."""
    import yaml

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        print(f"  Ignoring unreadable config {path.name}: {exc}", file=sys.stderr)
        return {}
    if not isinstance(data, dict):
        return {}
    return _flatten_unify_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config. Returns empty dict on error."""
    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        print(f"  Ignoring unreadable config {path.name}: {exc}", file=sys.stderr)
        return {}
    return _flatten_unify_section(data)


def _flatten_unify_section(data: dict[str, object]) -> dict[str, object]:
    """Extract unify.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("unify")
    if isinstance(section, dict):
        result.update(section)
    for k, v in data.items():
        if k != "unify" and k in _CONFIG_KEYS:
            result[k] = v
    return result
