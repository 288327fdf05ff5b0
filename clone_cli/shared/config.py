"""Configuration loading utilities for the table cloning tools."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class SourceSettings:
    """Connection settings for the source SQL Server instance."""

    server: str
    port: int
    user: str | None
    password_env: str
    database: str
    login_timeout: int

    def password(self, env: Mapping[str, str] | None = None) -> str | None:
        """Return the password from the configured environment variable."""
        env = env if env is not None else os.environ
        return env.get(self.password_env) or None


@dataclass(frozen=True, slots=True)
class TargetSettings:
    """Destination settings; the source database is used when unset."""

    database: str | None


@dataclass(frozen=True, slots=True)
class CloneSettings:
    """Default behaviour for clone runs, overridable per invocation."""

    delimiter: str
    continue_on_error: bool
    translate_user_types: bool
    preserve_source_collation: bool
    create_missing_target_schema: bool


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    source: SourceSettings
    target: TargetSettings
    clone: CloneSettings

    @property
    def target_database(self) -> str:
        return self.target.database or self.source.database

    def with_source_database(self, database: str) -> AppConfig:
        """Return a copy connected to a different source database."""
        return replace(self, source=replace(self.source, database=database))

    def with_target_database(self, database: str | None) -> AppConfig:
        """Return a copy with an updated target database."""
        return replace(self, target=replace(self.target, database=database))


def _default_config() -> dict[str, Any]:
    return {
        "source": {
            "server": "localhost",
            "port": 1433,
            "user": None,
            "password_env": "TABLECLONE_PASSWORD",
            "database": "master",
            "login_timeout": 60,
        },
        "target": {
            "database": None,
        },
        "clone": {
            "delimiter": ",",
            "continue_on_error": False,
            "translate_user_types": True,
            "preserve_source_collation": False,
            "create_missing_target_schema": True,
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "source.server": ("TABLECLONE_SERVER", str),
    "source.port": ("TABLECLONE_PORT", int),
    "source.user": ("TABLECLONE_USER", str),
    "source.password_env": ("TABLECLONE_PASSWORD_ENV", str),
    "source.database": ("TABLECLONE_DATABASE", str),
    "source.login_timeout": ("TABLECLONE_LOGIN_TIMEOUT", int),
    "target.database": ("TABLECLONE_TARGET_DATABASE", str),
    "clone.delimiter": ("TABLECLONE_DELIMITER", str),
    "clone.continue_on_error": ("TABLECLONE_CONTINUE_ON_ERROR", bool),
    "clone.translate_user_types": ("TABLECLONE_TRANSLATE_USER_TYPES", bool),
    "clone.preserve_source_collation": ("TABLECLONE_PRESERVE_COLLATION", bool),
    "clone.create_missing_target_schema": ("TABLECLONE_CREATE_SCHEMA", bool),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(env or os.environ)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(
    config_path: str | Path | None, env: Mapping[str, str]
) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    # Delimiters may legitimately be whitespace, so strings are not stripped.
    if expected_type is str:
        return raw
    cleaned = raw.strip()
    if expected_type is bool:
        lowered = cleaned.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError("expected boolean (true/false)")
    if expected_type is int:
        return int(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        src_cfg = data["source"]
        source = SourceSettings(
            server=str(src_cfg["server"]),
            port=int(src_cfg["port"]),
            user=_optional_str(src_cfg["user"]),
            password_env=str(src_cfg["password_env"]),
            database=str(src_cfg["database"]),
            login_timeout=int(src_cfg["login_timeout"]),
        )
        target = TargetSettings(database=_optional_str(data["target"]["database"]))
        clone_cfg = data["clone"]
        clone = CloneSettings(
            delimiter=str(clone_cfg["delimiter"]),
            continue_on_error=bool(clone_cfg["continue_on_error"]),
            translate_user_types=bool(clone_cfg["translate_user_types"]),
            preserve_source_collation=bool(clone_cfg["preserve_source_collation"]),
            create_missing_target_schema=bool(clone_cfg["create_missing_target_schema"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if len(clone.delimiter) != 1:
        raise ConfigurationError(
            f"clone.delimiter must be a single character, got {clone.delimiter!r}."
        )

    return AppConfig(source_path=source_path, source=source, target=target, clone=clone)
