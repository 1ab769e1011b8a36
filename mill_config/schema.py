"""
Configuration schema -- frozen dataclasses for every settings section.

Each section validates itself in ``__post_init__`` and raises
``ValueError`` on a bad value, so a loaded ``MillConfig`` is always usable.
"""

from dataclasses import dataclass, field

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class DatabaseConfig:
    """Engine settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///mill.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self):
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size <= 0:
            raise ValueError("database.pool_size must be positive")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self):
        if self.level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got '{self.level}'"
            )


@dataclass(frozen=True)
class NumberingConfig:
    """Document number format: {prefix}-{companyCode}-{YYYYMMDD}-{seq}."""

    fallback_company_code: str = "COMP"
    sequence_width: int = 4
    scrap_prefix: str = "SCRAP"
    movement_prefix: str = "MOV"
    # Regenerate-and-retry attempts after a duplicate document number
    max_number_retries: int = 1

    def __post_init__(self):
        if not self.fallback_company_code:
            raise ValueError("numbering.fallback_company_code is required")
        if self.sequence_width < 1:
            raise ValueError("numbering.sequence_width must be at least 1")
        if self.max_number_retries < 0:
            raise ValueError("numbering.max_number_retries cannot be negative")


@dataclass(frozen=True)
class ProductionConfig:
    # Reject stage entries claiming more input than upstream produced
    enforce_available_input: bool = True


@dataclass(frozen=True)
class ScrapConfig:
    default_unit: str = "pcs"
    top_items_limit: int = 10
    default_page_size: int = 20
    max_page_size: int = 100

    def __post_init__(self):
        if self.top_items_limit <= 0:
            raise ValueError("scrap.top_items_limit must be positive")
        if self.default_page_size <= 0:
            raise ValueError("scrap.default_page_size must be positive")
        if self.max_page_size < self.default_page_size:
            raise ValueError("scrap.max_page_size cannot be below default_page_size")


@dataclass(frozen=True)
class ApiConfig:
    title: str = "Mill Ledger API"
    # Include exception text in 500 responses (development only)
    debug: bool = False
    cors_origins: tuple[str, ...] = ()
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ValueError(f"api.port must be between 1 and 65535, got {self.port}")


@dataclass(frozen=True)
class MillConfig:
    """Complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    production: ProductionConfig = field(default_factory=ProductionConfig)
    scrap: ScrapConfig = field(default_factory=ScrapConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    source: str | None = None
