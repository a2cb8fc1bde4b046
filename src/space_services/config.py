"""Configuration loader for space-services.

Values are resolved from several sources, later sources winning:

1. Built-in defaults.
2. ``~/.config/space-services/config.yml`` (or an override path).
3. Environment variables prefixed with ``SPACE_SERVICES_``.
4. Explicit overrides supplied programmatically (CLI flags).

Environment keys map one to one onto the top-level config keys, e.g.::

    export SPACE_SERVICES_RESULTS_PER_PAGE=50
    export SPACE_SERVICES_COLOR=false

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally; ``debug`` and ``color`` also accept ``0`` and ``1``. The
legacy ``DEBUG=1`` toggle honoured by the ``cf`` plugin ecosystem also enables
debug tracing.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered by packaging
    raise RuntimeError(
        "PyYAML is required to load space-services configuration. Install with "
        "`pip install space-services` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "SPACE_SERVICES_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
LEGACY_DEBUG_ENV_VAR = "DEBUG"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}
MAX_RESULTS_PER_PAGE = 100


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for space-services."""

    config_file: Path
    logs_dir: Path
    cf_home: Path | None
    cf_bin: str
    api_version: str
    results_per_page: int
    cell_spacing: int
    max_workers: int | None
    request_timeout: float | None
    debug: bool
    color: bool

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "cf_home": str(self.cf_home) if self.cf_home is not None else None,
            "cf_bin": self.cf_bin,
            "api_version": self.api_version,
            "results_per_page": self.results_per_page,
            "cell_spacing": self.cell_spacing,
            "max_workers": self.max_workers,
            "request_timeout": self.request_timeout,
            "debug": self.debug,
            "color": self.color,
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.config/space-services/config.yml",
    "logs_dir": "~/.local/state/space-services/logs",
    "cf_home": None,  # falls back to $CF_HOME, then the home directory
    "cf_bin": "cf",
    "api_version": "v2",
    "results_per_page": 99,
    "cell_spacing": 3,
    "max_workers": None,
    "request_timeout": None,
    "debug": False,
    "color": True,
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = dict(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    merged.update(_load_yaml_file(config_path))

    if resolved_env.get(LEGACY_DEBUG_ENV_VAR) == "1":
        merged["debug"] = True

    merged.update(_build_env_overrides(resolved_env))
    merged.update(overrides or {})

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for key in ("cf_bin", "api_version"):
        value = raw.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{key} must be a non-empty string.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    logs_dir = _to_path(raw.get("logs_dir"))

    cf_home_value = raw.get("cf_home")
    cf_home: Path | None = None
    if isinstance(cf_home_value, (str, Path)):
        if str(cf_home_value).strip():
            cf_home = _to_path(cf_home_value)
    elif cf_home_value is not None:
        raise ConfigError("cf_home must be a string, Path, or null.")

    results_per_page = _expect_int(raw.get("results_per_page"), "results_per_page", default=99)
    if not 1 <= results_per_page <= MAX_RESULTS_PER_PAGE:
        raise ConfigError(
            f"results_per_page must be between 1 and {MAX_RESULTS_PER_PAGE}. "
            f"Got {results_per_page}."
        )

    cell_spacing = _expect_int(raw.get("cell_spacing"), "cell_spacing", default=3)
    if cell_spacing < 0:
        raise ConfigError("cell_spacing must be non-negative.")

    max_workers_value = raw.get("max_workers")
    max_workers: int | None = None
    if max_workers_value is not None:
        max_workers = _expect_int(max_workers_value, "max_workers", default=1)
        if max_workers < 1:
            raise ConfigError("max_workers must be at least 1 when specified.")

    timeout_value = raw.get("request_timeout")
    request_timeout = (
        _expect_positive_float(timeout_value, "request_timeout")
        if timeout_value is not None
        else None
    )

    return AppConfig(
        config_file=config_file,
        logs_dir=logs_dir,
        cf_home=cf_home,
        cf_bin=str(raw.get("cf_bin", "cf")).strip(),
        api_version=str(raw.get("api_version", "v2")).strip().strip("/"),
        results_per_page=results_per_page,
        cell_spacing=cell_spacing,
        max_workers=max_workers,
        request_timeout=request_timeout,
        debug=_expect_bool(raw.get("debug"), "debug", default=False),
        color=_expect_bool(raw.get("color"), "color", default=True),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX) :].lower()
        if name:
            overrides[name] = _coerce_value(value)
    return overrides


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ConfigError(f"{label} must be a boolean. Got {value!r}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_positive_float(value: object, label: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "load_config",
]
