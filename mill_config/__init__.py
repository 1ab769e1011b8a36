"""
mill_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Resolution order:
    1. ``config_path`` argument
    2. ``MILL_CONFIG`` environment variable
    3. the packaged ``defaults.yaml``

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- unknown keys or invalid values.
"""

import logging
import os
from pathlib import Path

from mill_config.loader import load_config_file
from mill_config.schema import (
    ApiConfig,
    DatabaseConfig,
    LoggingConfig,
    MillConfig,
    NumberingConfig,
    ProductionConfig,
    ScrapConfig,
)

_logger = logging.getLogger("mill_kernel.config")

CONFIG_ENV_VAR = "MILL_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> MillConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``MillConfig`` has passed every section's validation.
        - A ``mill_config_loaded`` log entry is emitted on every call.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    path = Path(config_path)

    config = load_config_file(path)

    _logger.info(
        "mill_config_loaded",
        extra={
            "source": str(path),
            "database_dialect": config.database.url.split(":", 1)[0],
            "enforce_available_input": config.production.enforce_available_input,
        },
    )
    return config


__all__ = [
    "ApiConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "MillConfig",
    "NumberingConfig",
    "ProductionConfig",
    "ScrapConfig",
    "get_active_config",
]
