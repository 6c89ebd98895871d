"""Configuration loading for stampgraph (.stampgraph.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".stampgraph.yml"

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
DEFAULT_SECURITY_REPORT = "stamp_security_report.json"

INCLUDE_CODE_MODES = ("none", "header", "full")
PRESETS = ("submit-only", "nav-only", "display-only", "none")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ContextConfig:
    """Bundle budget and output settings from the ``context`` section."""

    depth: int = 1
    max_nodes: int = 100
    include_code: str = "header"
    profile: Optional[str] = None
    preset: str = "none"
    strict_missing: bool = False
    hash_lock: bool = False
    output_dir: str = "."
    hash_indices: bool = False


@dataclass(frozen=True)
class Profile:
    """Named override set applied on top of the context settings."""

    depth: Optional[int] = None
    max_nodes: Optional[int] = None
    include_code: Optional[str] = None
    strict_missing: Optional[bool] = None


PROFILES: Dict[str, Profile] = {
    "llm-chat": Profile(depth=1, max_nodes=100, include_code="header"),
    "llm-safe": Profile(depth=1, max_nodes=30, include_code="header"),
    "ci-strict": Profile(include_code="none", strict_missing=True),
}


@dataclass
class StampGraphConfig:
    """Represents the high-level settings defined in .stampgraph.yml."""

    root: Path
    context: ContextConfig = field(default_factory=ContextConfig)
    exclude_paths: List[str] = field(default_factory=list)
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    security_report: str = DEFAULT_SECURITY_REPORT


def apply_profile(context: ContextConfig, profile: Optional[str]) -> ContextConfig:
    """Return ``context`` with the named profile's overrides applied."""
    if not profile:
        return context
    overrides = PROFILES.get(profile)
    if overrides is None:
        raise ConfigError(f"Unknown profile '{profile}' (expected one of: {', '.join(PROFILES)})")
    updated = replace(context, profile=profile)
    if overrides.depth is not None:
        updated.depth = overrides.depth
    if overrides.max_nodes is not None:
        updated.max_nodes = overrides.max_nodes
    if overrides.include_code is not None:
        updated.include_code = overrides.include_code
    if overrides.strict_missing is not None:
        updated.strict_missing = overrides.strict_missing
    return updated


def load_config(config_path: Path) -> StampGraphConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return StampGraphConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    context = ContextConfig()
    context_data = _as_dict(data.get("context"))
    if context_data:
        depth = _as_int(context_data.get("depth"))
        if depth is not None:
            if depth < 0:
                raise ConfigError("context.depth must be zero or positive")
            context.depth = depth
        max_nodes = _as_int(context_data.get("max_nodes"))
        if max_nodes is not None:
            if max_nodes < 1:
                raise ConfigError("context.max_nodes must be at least 1")
            context.max_nodes = max_nodes
        include_code = _as_str(context_data.get("include_code"))
        if include_code is not None:
            if include_code not in INCLUDE_CODE_MODES:
                raise ConfigError(
                    f"context.include_code must be one of {', '.join(INCLUDE_CODE_MODES)}"
                )
            context.include_code = include_code
        preset = _as_str(context_data.get("preset"))
        if preset is not None:
            if preset not in PRESETS:
                raise ConfigError(f"context.preset must be one of {', '.join(PRESETS)}")
            context.preset = preset
        context.strict_missing = _as_bool(context_data.get("strict_missing")) or False
        context.hash_lock = _as_bool(context_data.get("hash_lock")) or False
        context.hash_indices = _as_bool(context_data.get("hash_indices")) or False
        output_dir = _as_str(context_data.get("output_dir"))
        if output_dir:
            context.output_dir = output_dir
        context = apply_profile(context, _as_str(context_data.get("profile")))

    extensions = _as_str_list(data.get("extensions")) or list(DEFAULT_EXTENSIONS)
    extensions = [ext if ext.startswith(".") else f".{ext}" for ext in extensions]

    return StampGraphConfig(
        root=root,
        context=context,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        extensions=extensions,
        security_report=_as_str(data.get("security_report")) or DEFAULT_SECURITY_REPORT,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
