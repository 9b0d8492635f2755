"""
Centralized configuration management for the evaluation service.

Provides environment-specific configuration with validation, type safety,
and settings management using Pydantic. Scoring weights and banding
cut-offs live here too so the scoring engine receives them by injection.
"""

from __future__ import annotations

import dataclasses
import os
from functools import cached_property, lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL
from sqlalchemy.pool import StaticPool

from ..domain.models import BandThresholds, CategoryWeights, ScoreRange
from .exceptions import ConfigurationError


class DatabaseConfig(BaseSettings):
    """
    Where evaluations are stored: a SQLite file (the default) or MySQL.

    Example:
        >>> DatabaseConfig(backend="sqlite", sqlite_path="data/grid.db").get_connection_url()
        'sqlite:///data/grid.db'
    """

    backend: Literal["sqlite", "mysql"] = Field("sqlite", description="Database backend type")

    sqlite_path: str | None = Field("./talentgrid.db", description="SQLite file, or :memory:")

    mysql_host: str | None = Field("localhost", description="MySQL host")
    mysql_port: int | None = Field(3306, ge=1, le=65535, description="MySQL port")
    mysql_user: str | None = Field("root", description="MySQL username")
    mysql_password: str | None = Field("", description="MySQL password")
    mysql_database: str | None = Field("talentgrid", description="MySQL schema")
    mysql_charset: str = Field("utf8mb4", description="Connection character set")

    pool_pre_ping: bool = Field(True, description="Check connections before use")
    pool_recycle: int = Field(3600, ge=60, description="MySQL connection lifetime, seconds")
    echo: bool = Field(False, description="Echo SQL statements")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Create the parent directory and default the suffix to .db."""
        if not v or v == ":memory:":
            return v
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path) if path.suffix else str(path.with_suffix(".db"))

    @model_validator(mode="after")
    def validate_mysql_config(self):
        if self.backend != "mysql":
            return self
        required = ("mysql_host", "mysql_user", "mysql_database")
        missing = [name for name in required if not getattr(self, name)]
        if missing:
            raise ValueError(f"MySQL backend requires: {', '.join(missing)}")
        return self

    def get_connection_url(self) -> str:
        if self.backend == "mysql":
            url = URL.create(
                "mysql+pymysql",
                username=self.mysql_user,
                password=self.mysql_password or None,
                host=self.mysql_host,
                port=self.mysql_port,
                database=self.mysql_database,
                query={"charset": self.mysql_charset},
            )
        else:
            url = URL.create("sqlite", database=self.sqlite_path)
        return url.render_as_string(hide_password=False)

    def get_engine_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_engine``."""
        options: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": self.pool_pre_ping}
        if self.backend == "mysql":
            options["pool_recycle"] = self.pool_recycle
            return options

        # Sessions are used from FastAPI's threadpool
        options["connect_args"] = {"check_same_thread": False}
        if self.sqlite_path == ":memory:":
            # One shared connection, otherwise every session sees an empty database
            options["poolclass"] = StaticPool
        return options


# Per environment logging defaults
ENVIRONMENT_LOGGING: dict[str, dict[str, Any]] = {
    "development": {"level": "DEBUG", "structured": False, "file_path": "./logs/development.log"},
    "testing": {"level": "WARNING", "console_enabled": False, "file_path": None},
    "production": {"level": "INFO", "console_enabled": False, "file_path": "./logs/production.log"},
}


class LoggingConfig(BaseSettings):
    """
    Where log records go and how verbose they are. The file handler
    rotates at ``rotate_mb`` megabytes and keeps ``backups`` old files.

    Example:
        >>> LoggingConfig(file_path=None).get_file_handler_config() is None
        True
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_path: str | None = Field("./logs/talentgrid.log", description="Rotating JSON log file")
    rotate_mb: int = Field(10, ge=1, description="Size at which the log file rotates")
    backups: int = Field(5, ge=1, description="Rotated files kept")
    structured: bool = Field(True, description="JSON lines on the console too")
    console_enabled: bool = Field(True, description="Log to stdout")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    @classmethod
    def for_environment(cls, environment: str) -> LoggingConfig:
        """
        Settings for an environment. Any LOG_* variable that is set wins
        over the environment default.

        Example:
            >>> LoggingConfig.for_environment("testing").file_path is None
            True
        """
        defaults = ENVIRONMENT_LOGGING.get(environment, ENVIRONMENT_LOGGING["development"])
        explicit = {k: v for k, v in defaults.items() if f"LOG_{k.upper()}" not in os.environ}
        return cls(**explicit)

    def get_file_handler_config(self) -> dict[str, Any] | None:
        """dictConfig handler entry for the log file, None when disabled."""
        if not self.file_path:
            return None
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.rotate_mb * 1024 * 1024,
            "backupCount": self.backups,
            "encoding": "utf-8",
        }


class ScoringConfig(BaseSettings):
    """
    Weights, banding cut-offs and accepted score ranges for the scoring engine.

    The interactive evaluation forms accept scores in [1, 4] while the bulk
    upload accepts [1, 5]. Both are kept as separate settings.

    Example:
        >>> scoring = ScoringConfig(technical_weight=0.6, behavioral_weight=0.2)
        >>> scoring.category_weights().technical
        0.6
    """

    technical_weight: float = Field(0.5, ge=0, description="Weight of technical competencies")
    behavioral_weight: float = Field(0.3, ge=0, description="Weight of behavioral competencies")
    deliveries_weight: float = Field(0.2, ge=0, description="Weight of deliveries")

    low_band_max: float = Field(2.0, description="Scores up to this value band as low")
    medium_band_max: float = Field(3.0, description="Scores up to this value band as medium")

    interactive_min_score: float = Field(1, description="Lowest score on evaluation forms")
    interactive_max_score: float = Field(4, description="Highest score on evaluation forms")
    bulk_min_score: float = Field(1, description="Lowest score accepted by bulk upload")
    bulk_max_score: float = Field(5, description="Highest score accepted by bulk upload")

    decimal_places: int = Field(3, ge=0, le=6, description="Rounding applied to derived scores")

    model_config = {"env_prefix": "SCORING_", "case_sensitive": False}

    @model_validator(mode="after")
    def validate_bands_and_ranges(self):
        """Cut-offs must be ordered and ranges non-empty."""
        if self.low_band_max >= self.medium_band_max:
            raise ValueError("low_band_max must be lower than medium_band_max")
        if self.interactive_min_score > self.interactive_max_score:
            raise ValueError("interactive score range is empty")
        if self.bulk_min_score > self.bulk_max_score:
            raise ValueError("bulk score range is empty")
        if self.technical_weight + self.behavioral_weight + self.deliveries_weight <= 0:
            raise ValueError("At least one category weight must be positive")
        return self

    def category_weights(self) -> CategoryWeights:
        return CategoryWeights(
            technical=self.technical_weight,
            behavioral=self.behavioral_weight,
            deliveries=self.deliveries_weight,
        )

    def band_thresholds(self) -> BandThresholds:
        return BandThresholds(low_max=self.low_band_max, medium_max=self.medium_band_max)

    def interactive_range(self) -> ScoreRange:
        return ScoreRange(self.interactive_min_score, self.interactive_max_score)

    def bulk_range(self) -> ScoreRange:
        return ScoreRange(self.bulk_min_score, self.bulk_max_score)


ENVIRONMENT_ALIASES = {"dev": "development", "test": "testing", "prod": "production"}


class ApplicationConfig(BaseSettings):
    """
    API metadata and the environment the service runs in.

    Example:
        >>> config = get_settings()
        >>> print(config.app.environment)
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    title: str = Field("TalentGrid", description="API title")
    version: str = Field("0.1.0", description="Application version")

    # CORS settings for the browser client
    cors_origins: list[str] = Field(["*"], description="Allowed CORS origins")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @field_validator("environment", mode="before")
    def normalise_environment(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return ENVIRONMENT_ALIASES.get(v, v)
        return v

    @model_validator(mode="after")
    def debug_outside_production(self):
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


class Settings:
    """
    All configuration sections, each read from the environment on first use.

    Example:
        >>> settings = get_settings()
        >>> print(settings.database.get_connection_url())
        >>> print(settings.scoring.category_weights())
    """

    @cached_property
    def app(self) -> ApplicationConfig:
        return ApplicationConfig()

    @cached_property
    def database(self) -> DatabaseConfig:
        return DatabaseConfig()

    @cached_property
    def logging(self) -> LoggingConfig:
        return LoggingConfig.for_environment(self.app.environment)

    @cached_property
    def scoring(self) -> ScoringConfig:
        try:
            return ScoringConfig()
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid scoring settings: {e}", config_key="SCORING") from e

    def is_testing(self) -> bool:
        return self.app.environment == "testing"

    def get_environment_info(self) -> dict[str, Any]:
        """Summary of the active configuration, safe to log."""
        scoring = self.scoring
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "database_backend": self.database.backend,
            "logging_level": self.logging.level,
            "scoring": {
                "weights": dataclasses.asdict(scoring.category_weights()),
                "interactive_range": [scoring.interactive_min_score, scoring.interactive_max_score],
                "bulk_range": [scoring.bulk_min_score, scoring.bulk_max_score],
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Process wide settings, built once until ``reset_settings`` is called.

    Example:
        >>> settings = get_settings()
        >>> db_url = settings.database.get_connection_url()
    """
    return Settings()


def override_settings(**kwargs) -> Settings:
    """
    Set environment variables and rebuild the settings.

    Keys are lower case variable names, so ``scoring_technical_weight=0.6``
    sets ``SCORING_TECHNICAL_WEIGHT``.

    Example:
        >>> settings = override_settings(app_environment="testing", db_sqlite_path=":memory:")
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Forget cached settings so the next access rereads the environment."""
    get_settings.cache_clear()


def get_database_config() -> DatabaseConfig:
    return get_settings().database
