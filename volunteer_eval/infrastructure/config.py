"""
Settings for the volunteer evaluation service.

Each section reads its own environment prefix (``DB_``, ``LOG_``, ``APP_``,
``SCORING_``) through pydantic-settings, so a deployment only sets what it
changes. ``get_settings()`` returns the process-wide instance.
"""

from __future__ import annotations

from functools import cached_property, lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class DatabaseConfig(BaseSettings):
    """
    Where evaluations are stored.

    SQLite is the default for local work and tests; MySQL (through PyMySQL)
    is what the association runs in production.

    Example:
        >>> DatabaseConfig(backend="sqlite", sqlite_path=":memory:").get_connection_url()
        'sqlite:///:memory:'
    """

    backend: Literal["sqlite", "mysql"] = "sqlite"
    sqlite_path: str = Field("./volunteer_eval.db", description="File path or :memory:")

    mysql_host: str = "localhost"
    mysql_port: int = Field(3306, ge=1, le=65535)
    mysql_user: str = "root"
    mysql_password: SecretStr = SecretStr("")
    mysql_database: str = "volunteer_eval"
    mysql_charset: str = "utf8mb4"

    pool_size: int = Field(5, ge=1, description="MySQL pool size")
    max_overflow: int = Field(10, ge=0, description="Extra MySQL connections under load")
    pool_recycle: int = Field(3600, ge=60, description="Seconds before a MySQL connection is replaced")
    pool_pre_ping: bool = True
    echo: bool = Field(False, description="Echo SQL statements")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def normalise_sqlite_path(cls, v):
        if v == ":memory:":
            return v
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path if path.suffix else path.with_suffix(".db"))

    @model_validator(mode="after")
    def require_mysql_target(self):
        if self.backend == "mysql":
            blank = [
                name
                for name in ("mysql_host", "mysql_user", "mysql_database")
                if not getattr(self, name).strip()
            ]
            if blank:
                raise ValueError(f"MySQL backend requires: {', '.join(blank)}")
        return self

    def get_url(self) -> URL:
        if self.backend == "sqlite":
            return URL.create("sqlite", database=self.sqlite_path)
        return URL.create(
            "mysql+pymysql",
            username=self.mysql_user,
            password=self.mysql_password.get_secret_value() or None,
            host=self.mysql_host,
            port=self.mysql_port,
            database=self.mysql_database,
            query={"charset": self.mysql_charset},
        )

    def get_connection_url(self) -> str:
        """
        The URL as a string, password included, with special characters escaped.

        Example:
            >>> DatabaseConfig(
            ...     backend="mysql", mysql_host="db", mysql_user="app",
            ...     mysql_password="p@ss", mysql_database="volunteers",
            ... ).get_connection_url()
            'mysql+pymysql://app:p%40ss@db:3306/volunteers?charset=utf8mb4'
        """
        return self.get_url().render_as_string(hide_password=False)

    def get_engine_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": self.pool_pre_ping}
        if self.backend == "mysql":
            options.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=self.pool_recycle,
            )
        return options


class LoggingConfig(BaseSettings):
    """
    Log level and outputs.

    The file output rotates; ``file_path=None`` turns it off.

    Example:
        >>> LoggingConfig(file_path=None).get_file_handler_config() is None
        True
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_path: str | None = "./logs/volunteer_eval.log"
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024)
    backup_count: int = Field(5, ge=1)
    structured: bool = Field(True, description="JSON lines instead of plain text")
    console_enabled: bool = True

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    @field_validator("level", mode="before")
    def upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    def get_file_handler_config(self) -> dict[str, Any] | None:
        if not self.file_path:
            return None
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


class ScoringConfig(BaseSettings):
    """
    Scoring, freeze and alert thresholds.

    Example:
        >>> ScoringConfig().max_freezes_per_year
        2
        >>> ScoringConfig(weak_performance_threshold=55).weak_performance_threshold
        55.0
    """

    choice_fallback_ratio: float = Field(
        0.8, ge=0, le=1, description="Share of max_score awarded for an unlisted choice label"
    )
    max_freezes_per_year: int = Field(2, ge=0, description="Active freezes allowed per year")

    weak_performance_threshold: float = Field(
        60.0, ge=0, le=100, description="Percentage below which a month counts as weak"
    )
    weak_performance_min_months: int = Field(3, ge=1, description="Weak months that raise an alert")
    weak_performance_window_months: int = Field(
        12, ge=1, description="Trailing window (months) for weak performance"
    )

    interaction_score_threshold: float = Field(
        3.0, ge=0, description="Interaction score below which a month counts as inactive"
    )
    no_interaction_min_months: int = Field(
        2, ge=1, description="Inactive months that raise an alert"
    )
    no_interaction_window_months: int = Field(
        2, ge=1, description="Trailing window (months) for group interaction"
    )
    interaction_keywords: list[str] = Field(
        ["interaction", "group"],
        description="Case-insensitive fragments identifying interaction criteria",
    )

    trend_delta: float = Field(5.0, ge=0, description="Mean difference that marks a trend")

    model_config = {"env_prefix": "SCORING_", "case_sensitive": False}

    @field_validator("interaction_keywords")
    def normalise_keywords(cls, v):
        keywords = [k.strip().lower() for k in v if k and k.strip()]
        if not keywords:
            raise ValueError("At least one interaction keyword is required")
        return keywords


class ApplicationConfig(BaseSettings):
    """
    Environment and API metadata.

    Example:
        >>> ApplicationConfig(environment="testing").is_development
        False
    """

    environment: Literal["development", "testing", "production"] = "development"
    debug: bool = False
    version: str = "0.1.0"
    title: str = "Volunteer Evaluation API"
    cors_origins: list[str] = Field(["*"], description="Origins allowed to call the API")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def no_debug_in_production(self):
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


class Settings:
    """
    All configuration sections, each read from the environment on first use.

    When ``LOG_LEVEL`` is not set the level follows the application: DEBUG
    with ``APP_DEBUG``, WARNING in production, INFO otherwise.
    """

    @cached_property
    def app(self) -> ApplicationConfig:
        return ApplicationConfig()

    @cached_property
    def database(self) -> DatabaseConfig:
        return DatabaseConfig()

    @cached_property
    def scoring(self) -> ScoringConfig:
        return ScoringConfig()

    @cached_property
    def logging(self) -> LoggingConfig:
        config = LoggingConfig()
        if "level" in config.model_fields_set:
            return config
        if self.app.environment == "production":
            level = "WARNING"
        else:
            level = "DEBUG" if self.app.debug else "INFO"
        return config.model_copy(update={"level": level})


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def get_scoring_config() -> ScoringConfig:
    return get_settings().scoring
