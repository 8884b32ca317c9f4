"""
Application settings using Pydantic.

Provides environment-based configuration loading with ENVREFRESH_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Restore timing
    poll_interval_seconds: float = 30.0
    propagation_delay_minutes: int = 10
    default_max_wait_minutes: int = 60
    default_throttle_limit: int = 10
    default_restore_offset_minutes: int = 15
    default_timezone: str = "UTC"

    # Naming
    restored_suffix: str = "-restored"
    excluded_name_patterns: list[str] = ["master", "restored", "landlord", "Copy"]
    database_name_template: str = "db-{Product}-{Type}-{Service}-{Environment}-{Location}"

    # Parameter defaults
    default_source_namespace: str = "manufacturo"
    default_destination_namespace: str = "test"
    default_cloud: str = "AzureCloud"

    # Restore request shape
    restore_edition: str = "Standard"
    restore_service_objective: str = "S3"

    # Permission grant endpoint
    service_account: str = "SelfServiceRefresh"
    permission_function_url: str | None = None
    permission_function_key: str | None = None
    permission_propagation_seconds: float = 30.0

    # HTTP client settings
    http_timeout: int = 60
    http_max_retries: int = 3

    # Azure CLI and data copy
    az_path: str = "az"
    azcopy_path: str = "azcopy"
    attachment_containers: list[str] = [
        "ewp-attachments",
        "core-attachments",
        "reports",
        "file-storage",
        "nc-attachments",
        "integrator-plus-site-files",
    ]
    sas_expiry_hours: int = 2

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "ENVREFRESH_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
