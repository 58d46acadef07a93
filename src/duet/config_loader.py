"""Load DuetConfig from duet.yaml / duet.toml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

from pathlib import Path

from duet._errors import ConfigError
from duet.config import DuetConfig

_KEYS = frozenset(DuetConfig.__dataclass_fields__)


def load_config(root: Path | str = ".", **overrides: object) -> DuetConfig:
    """Load DuetConfig from *root*, optionally merging a config file.

    Looks for duet.yaml, duet.yml, or duet.toml in root. If found, loads
    and merges with overrides. Overrides that are None are ignored so
    unset CLI flags fall through to the file.

    Raises:
        ConfigError: Unreadable file, unknown key, or invalid value.

    """
    file_config = _read_duet_config(Path(root))
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    unknown = sorted(set(merged) - _KEYS)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
    return DuetConfig(**merged)  # type: ignore[arg-type]


def _read_duet_config(root: Path) -> dict[str, object]:
    """Read duet config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("duet.yaml", "duet.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "duet.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        import yaml
    except ImportError as exc:
        raise ConfigError(f"{path.name} found but PyYAML is not installed (pip install duet[yaml])") from exc
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping")
    return _flatten_duet_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    return _flatten_duet_section(data)


def _flatten_duet_section(data: dict[str, object]) -> dict[str, object]:
    """Extract duet.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("duet")
    if isinstance(section, dict):
        result.update(section)
    for k, v in data.items():
        if k != "duet" and k in _KEYS:
            result[k] = v
    return result
