"""
Configuration loader -- YAML file to ``MillConfig``.

Internal to ``mill_config``; callers use ``get_active_config()``.

Failure modes:
* Missing file    -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key     -> ``ValueError``.
* Bad value       -> ``ValueError`` from the section's ``__post_init__``.
"""

from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from mill_config.schema import (
    ApiConfig,
    DatabaseConfig,
    LoggingConfig,
    MillConfig,
    NumberingConfig,
    ProductionConfig,
    ScrapConfig,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "logging": LoggingConfig,
    "numbering": NumberingConfig,
    "production": ProductionConfig,
    "scrap": ScrapConfig,
    "api": ApiConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_section(name: str, data: dict[str, Any] | None) -> Any:
    """Build one section dataclass, rejecting keys it does not define."""
    section_cls = _SECTIONS[name]
    data = dict(data or {})
    known = {f.name for f in fields(section_cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown {name} settings: {', '.join(unknown)}")
    if name == "api" and "cors_origins" in data:
        data["cors_origins"] = tuple(data["cors_origins"] or ())
    return section_cls(**data)


def parse_config(data: dict[str, Any], source: str | None = None) -> MillConfig:
    """Build a ``MillConfig`` from a parsed YAML mapping."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(unknown)}")
    sections = {name: parse_section(name, data.get(name)) for name in _SECTIONS}
    return MillConfig(**sections, source=source)


def load_config_file(path: Path) -> MillConfig:
    return parse_config(load_yaml_file(path), source=str(path))
