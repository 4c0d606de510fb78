# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Configuration management for Press Ledger.

This module handles application configuration from environment variables.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Assumptions:
    - Environment variables override defaults
    - API version is configurable
    - LOG_JSON=false switches to the console renderer for local work
    """

    # Database
    database_url: str = "sqlite:///./pressledger.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_version: str = "v1"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )


settings = Settings()
