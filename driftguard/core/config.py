"""Configuration management for the driftguard backtest and drift monitoring system."""

from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# System Configuration
# =============================================================================


class SystemConfig(BaseSettings):
    """System-level configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", validation_alias="ENVIRONMENT"
    )
    app_name: str = Field(default="driftguard", validation_alias="APP_NAME")
    app_version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    timezone: str = Field(default="UTC", validation_alias="TIMEZONE")


# =============================================================================
# Backtest Configuration
# =============================================================================


class BacktestConfig(BaseSettings):
    """Defaults for simulated backtest runs."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    initial_capital: Decimal = Field(
        default=Decimal("10000"), validation_alias="BACKTEST_INITIAL_CAPITAL"
    )

    # A snapshot is recorded every N ticks (plus the final tick)
    snapshot_interval: int = Field(
        default=24, ge=1, validation_alias="BACKTEST_SNAPSHOT_INTERVAL"
    )

    # Metrics annualization
    metrics_timeframe: Literal["hourly", "daily", "weekly", "monthly"] = Field(
        default="daily", validation_alias="BACKTEST_METRICS_TIMEFRAME"
    )
    risk_free_rate: float = Field(default=0.02, validation_alias="BACKTEST_RISK_FREE_RATE")
    use_crypto_calendar: bool = Field(
        default=True, validation_alias="BACKTEST_USE_CRYPTO_CALENDAR"
    )

    @field_validator("initial_capital")
    @classmethod
    def validate_initial_capital(cls, v):
        if v <= 0:
            raise ValueError("initial_capital must be positive")
        return v


# =============================================================================
# Monitoring Configuration
# =============================================================================


class MonitoringConfig(BaseSettings):
    """Live performance monitoring and drift check configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Rolling statistics
    rolling_window_days: int = Field(
        default=30, ge=1, validation_alias="MONITORING_ROLLING_WINDOW_DAYS"
    )
    annualization_days: int = Field(
        default=252, ge=1, validation_alias="MONITORING_ANNUALIZATION_DAYS"
    )

    # Trend classification (short vs long window)
    trend_short_window_days: int = Field(
        default=7, ge=1, validation_alias="MONITORING_TREND_SHORT_WINDOW"
    )
    trend_long_window_days: int = Field(
        default=30, ge=1, validation_alias="MONITORING_TREND_LONG_WINDOW"
    )
    trend_sharpe_delta: float = Field(
        default=0.2, ge=0, validation_alias="MONITORING_TREND_SHARPE_DELTA"
    )

    # Scheduled drift checks
    drift_check_interval_minutes: int = Field(
        default=60, ge=1, validation_alias="DRIFT_CHECK_INTERVAL_MINUTES"
    )

    @field_validator("trend_long_window_days")
    @classmethod
    def validate_trend_windows(cls, v, info):
        short = info.data.get("trend_short_window_days")
        if short is not None and v <= short:
            raise ValueError("trend_long_window_days must exceed trend_short_window_days")
        return v


# =============================================================================
# Database Configuration
# =============================================================================


class DatabaseConfig(BaseSettings):
    """Database configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    database_url: str = Field(
        default="sqlite:///./data/driftguard.db", validation_alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, validation_alias="DATABASE_ECHO")


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Log level
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )

    # Log settings
    log_file: str = Field(default="logs/driftguard.log", validation_alias="LOG_FILE")

    # Audit log
    audit_log_enabled: bool = Field(default=True, validation_alias="AUDIT_LOG_ENABLED")
    audit_log_file: str = Field(default="logs/audit.log", validation_alias="AUDIT_LOG_FILE")


# =============================================================================
# Global Configuration Container
# =============================================================================


class DriftGuardConfig:
    """
    Container for all driftguard configurations.

    Usage:
        from driftguard.core.config import app_config

        window = app_config.monitoring.rolling_window_days
        capital = app_config.backtest.initial_capital
    """

    def __init__(self):
        self.system = SystemConfig()
        self.backtest = BacktestConfig()
        self.monitoring = MonitoringConfig()
        self.database = DatabaseConfig()
        self.logging = LoggingConfig()

    def validate_configuration(self) -> dict:
        """
        Validate the complete configuration and return any issues.

        Returns:
            Dictionary with 'valid' boolean and 'issues' list
        """
        issues = []

        if not self.database.database_url:
            issues.append("DATABASE_URL is empty")

        if self.monitoring.rolling_window_days < self.monitoring.trend_short_window_days:
            issues.append(
                "Rolling window should be at least as long as the short trend window"
            )

        if self.backtest.risk_free_rate < 0:
            issues.append("Risk-free rate must not be negative")

        return {"valid": len(issues) == 0, "issues": issues}


# =============================================================================
# Global Configuration Instances
# =============================================================================

backtest_config = BacktestConfig()
monitoring_config = MonitoringConfig()
database_config = DatabaseConfig()
logging_config = LoggingConfig()

app_config = DriftGuardConfig()


__all__ = [
    "DriftGuardConfig",
    "app_config",
    "backtest_config",
    "monitoring_config",
    "database_config",
    "logging_config",
    "SystemConfig",
    "BacktestConfig",
    "MonitoringConfig",
    "DatabaseConfig",
    "LoggingConfig",
]
