"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class MicrofundConfig(BaseSettings):
    """Microfund bookkeeping configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # memory, sqlite or file
    database_path: str = "microfund.db"
    data_dir: str = "microfund_data"  # Used by the file backend
    storage_key: str = "MF_PRO_DB_v4"  # Fixed identifier of the snapshot

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    session_timeout_minutes: int = 480

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    enforce_cash_sufficiency: bool = False  # Reject cash outflows that overdraw a branch

    # Default seed used when no snapshot exists
    seed_branch_id: str = "br_main"
    seed_branch_name: str = "Head Office"
    seed_branch_address: str = "123 Finance Plaza, Dhaka"
    seed_initial_capital: str = "1000000"
    seed_default_loan_rate: str = "12"
    seed_default_dps_rate: str = "8"
    seed_default_fdr_rate: str = "10"
    seed_admin_id: str = "u_admin"
    seed_admin_username: str = "admin"
    seed_admin_password: str = "admin"
    seed_admin_name: str = "Administrator"

    class Config:
        env_prefix = "MICROFUND_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = MicrofundConfig()


def get_config() -> MicrofundConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> MicrofundConfig:
    """Reload configuration from environment"""
    global config
    config = MicrofundConfig()
    return config
