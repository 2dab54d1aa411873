"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import validator
from pydantic_settings import BaseSettings
from typing import Optional


class TokenConfig(BaseSettings):
    """Simple DeFi Token ledger configuration"""

    # Token metadata
    token_name: str = "Simple DeFi Token"
    token_symbol: str = "SDFT"
    token_decimals: int = 18
    initial_supply: str = "1000000"  # Whole tokens, credited to the deployer at genesis

    # Business rules configuration
    burn_rate_percent: int = 10  # Share of an auto-burn transfer that is destroyed
    reject_zero_recipient: bool = True  # Plain transfers to the zero address fail

    # Storage configuration
    database_url: str = "memory"  # "memory" or sqlite:///path/to/audit.db

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Feature flags
    enable_audit_logging: bool = True

    @validator("burn_rate_percent")
    def validate_burn_rate(cls, value):
        if not 0 <= value <= 100:
            raise ValueError("burn_rate_percent must be between 0 and 100")
        return value

    @validator("log_level")
    def validate_log_level(cls, value):
        if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value.upper()

    @validator("token_decimals")
    def validate_decimals(cls, value):
        if value < 0:
            raise ValueError("token_decimals must be non-negative")
        return value

    class Config:
        env_prefix = "SDFT_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance, read from the environment on first use
config: Optional[TokenConfig] = None


def get_config() -> TokenConfig:
    """Get global configuration instance"""
    global config
    if config is None:
        config = TokenConfig()
    return config


def reload_config() -> TokenConfig:
    """Reload configuration from environment"""
    global config
    config = TokenConfig()
    return config
