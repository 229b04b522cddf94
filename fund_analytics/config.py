"""Service configuration loaded from the environment with Pydantic Settings."""

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ENVIRONMENTS = {"development", "testing", "production"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Runtime settings of the analytics service.

    Every field maps to an upper-case environment variable (see the aliases)
    and may also come from a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Monte Carlo request defaults and the caps enforced by AnalyticsService
    default_path_count: int = Field(default=10000, ge=1, alias="DEFAULT_PATH_COUNT")
    max_path_count: int = Field(default=200000, ge=1, alias="MAX_PATH_COUNT")
    default_confidence_level: float = Field(
        default=0.95, alias="DEFAULT_CONFIDENCE_LEVEL"
    )
    max_simulation_workers: int = Field(
        default=8, ge=1, alias="MAX_SIMULATION_WORKERS"
    )
    max_horizon_years: float = Field(default=100.0, gt=0, alias="MAX_HORIZON_YEARS")
    # Normal draws per run: path_count for terminal runs, path_count * steps
    # for daily-stepped runs
    max_simulation_draws: int = Field(
        default=100_000_000, ge=1, alias="MAX_SIMULATION_DRAWS"
    )

    # Annual rates in percent, used when a request omits them
    default_risk_free_rate_percent: float = Field(
        default=4.0, alias="DEFAULT_RISK_FREE_RATE_PERCENT"
    )
    default_discount_rate_percent: float = Field(
        default=10.0, alias="DEFAULT_DISCOUNT_RATE_PERCENT"
    )

    @field_validator("app_env")
    @classmethod
    def check_app_env(cls, v: str) -> str:
        if v not in APP_ENVIRONMENTS:
            raise ValueError(f"APP_ENV must be one of {sorted(APP_ENVIRONMENTS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(LOG_LEVELS)}")
        return level

    @field_validator("default_confidence_level")
    @classmethod
    def check_confidence_level(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("DEFAULT_CONFIDENCE_LEVEL must be strictly between 0 and 1")
        return v

    @model_validator(mode="after")
    def check_path_counts(self) -> "Settings":
        """The default simulation size has to fit under the cap."""
        if self.default_path_count > self.max_path_count:
            raise ValueError(
                f"DEFAULT_PATH_COUNT ({self.default_path_count}) cannot exceed "
                f"MAX_PATH_COUNT ({self.max_path_count})"
            )
        return self


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Build settings from the environment, optionally reading a specific env file."""
    if env_file is None:
        return Settings()
    return Settings(_env_file=env_file)


# Process-wide instance, built lazily so tests can patch the environment first
_settings: Optional[Settings] = None


def get_global_settings() -> Settings:
    """Return the process-wide settings, building them on first use."""
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def reset_global_settings() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
