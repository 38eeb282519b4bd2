"""Configuration management for Productshot Studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the PRODUCTSHOT_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (PRODUCTSHOT_* prefix)
2. .env file in the project root
3. Default values defined in ProductshotConfig

Example .env file:
    PRODUCTSHOT_MODEL_NAME=gemini-2.5-flash-image
    PRODUCTSHOT_QUOTA_COOLDOWN=5
    PRODUCTSHOT_BATCH_STRATEGY=sequential
    PRODUCTSHOT_API_KEYS=key-one,key-two

Credentials Are Not Settings
----------------------------
API keys are not fields of this class.  The settings object is built once at
import time, while the credential pool is re-read on every dispatch.
``credential_sources``, ``credentials_env_file`` and ``credentials_file`` only
describe *where* to look; :mod:`productshot.core.credentials` does the
looking.

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.

Usage Example
-------------
    from productshot.core.config import config

    print(config.model_name)
    print(config.quota_cooldown)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Bundled presets live next to the package modules.
_PACKAGE_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class ProductshotConfig(BaseSettings):
    """Main configuration for Productshot Studio.

    Attributes
    ----------
    Credential Lookup:
        credential_sources : list[str]
            Environment variable names tried in order; the first non-empty
            value is used as the credential string.
        credentials_env_file : Path | None
            Dotenv file consulted (with the same variable names) after the
            process environment.
        credentials_file : Path | None
            Plain text key file consulted last.

    Remote Generation:
        model_name : str
            Gemini model used for image generation.
        request_timeout : float
            Per-attempt transport timeout in seconds.

    Retry Timing:
        quota_cooldown : float
            Delay after a rate-limit signal without a suggested wait.
        retry_after_margin : float
            Safety margin added to a provider-suggested wait.
        max_cooldown : float
            Upper bound on the fixed cooldowns.  A provider-suggested wait
            is honoured in full.
        transient_delay : float
            Delay after a server fault or network failure.

    Batch Settings:
        batch_size : int
            Number of images generated per request (1-8).
        batch_strategy : Literal["concurrent", "sequential"]
            Whether batch slots are dispatched together or one by one.
        sequential_cooldown : float
            Pause between slots when running sequentially.

    Paths / Server:
        data_dir : Path
            Directory holding ``presets.json``.
        server_host, server_port, log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PRODUCTSHOT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Credential lookup
    credential_sources: list[str] = Field(
        default_factory=lambda: ["PRODUCTSHOT_API_KEYS", "API_KEY", "VITE_API_KEY"],
        description="Environment variable names searched for credentials, in priority order",
    )
    credentials_env_file: Path | None = Field(
        default=Path(".env"),
        description="Dotenv file searched after the process environment",
    )
    credentials_file: Path | None = Field(
        default=None,
        description="Plain text key file searched last (comma/newline separated)",
    )

    # Remote generation
    model_name: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini model used for image generation and editing",
    )
    request_timeout: float = Field(
        default=120.0,
        description="Per-attempt transport timeout in seconds",
        gt=0,
    )

    # Retry timing
    quota_cooldown: float = Field(
        default=5.0,
        description="Cooldown after a rate-limit signal with no suggested wait",
        ge=0,
    )
    retry_after_margin: float = Field(
        default=2.0,
        description="Seconds added to a provider-suggested retry delay",
        ge=0,
    )
    max_cooldown: float = Field(
        default=60.0,
        description="Upper bound on the fixed cooldowns (provider hints are not capped)",
        ge=0,
    )
    transient_delay: float = Field(
        default=1.0,
        description="Delay after a server fault or network failure",
        ge=0,
    )

    # Batch settings
    batch_size: int = Field(default=4, ge=1, le=8)
    batch_strategy: Literal["concurrent", "sequential"] = Field(
        default="concurrent",
        description="Dispatch batch slots concurrently or one after another",
    )
    sequential_cooldown: float = Field(
        default=1.0,
        description="Pause between slots in sequential mode",
        ge=0,
    )

    # Paths
    data_dir: Path = Field(
        default=_PACKAGE_DATA_DIR,
        description="Directory containing presets.json",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level applied by the CLI entry point",
    )


# Global configuration instance
# Loads values from environment variables (PRODUCTSHOT_* prefix) and .env file.
config = ProductshotConfig()
