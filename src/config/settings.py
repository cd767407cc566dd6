"""
Staging API configuration, via pydantic-settings.

Values come from environment variables or a .env file. Types and bounds
are validated when Settings is built, so a bad value stops the process
at startup rather than surfacing mid-request.

Snowflake mock mode swaps every repository for an in-memory one, which
is enough to run the whole API locally without a database.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Settings for the staging API, read from the environment or .env.

    List-valued settings (API keys, CORS origins) are comma-separated
    strings; use the *_list properties to read them.
    """

    # API access
    api_title: str = "Exercise Staging API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. A list allows key rotation without downtime."
    )
    maintenance_api_keys: str = Field(
        default="",
        description="Comma-separated keys allowed to call the maintenance sweeps. Empty means any API key."
    )

    # Extraction (Claude)
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key used for exercise extraction."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for extraction."
    )
    anthropic_max_tokens: int = Field(
        default=4096,
        description="Max tokens for extraction responses. Long videos produce long exercise lists."
    )
    anthropic_temperature: float = Field(
        default=0.2,
        description="Low temperature keeps the extracted JSON consistent between runs."
    )

    # Snowflake
    snowflake_account: str = Field(default="", description="Snowflake account identifier")
    snowflake_user: str = Field(default="", description="Snowflake service account username")
    snowflake_password: str = Field(default="", description="Snowflake service account password")
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="PEM key file for key-pair auth"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64 of the PEM key, for hosts that cannot mount a key file"
    )
    snowflake_database: str = Field(default="EXERCISE_LIBRARY", description="Snowflake database name")
    snowflake_schema: str = Field(default="STAGING", description="Snowflake schema name")
    snowflake_warehouse: str = Field(default="COMPUTE_WH", description="Snowflake warehouse for query execution")
    snowflake_role: Optional[str] = Field(default=None, description="Snowflake role to use (optional)")
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory repositories instead of Snowflake. Enables local dev without DB."
    )

    # Staging behavior
    session_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="Hours a staging session stays open before its exercises are auto-imported."
    )
    max_open_sessions: int = Field(
        default=3,
        ge=1,
        description="Open (pending or in-progress) sessions allowed per owner."
    )
    new_flag_ttl_days: int = Field(
        default=7,
        ge=1,
        description="Days an imported exercise keeps its 'New' badge in the library."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level name, e.g. DEBUG or INFO"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated origins the review UI is served from"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        return _split_csv(self.api_keys)

    @property
    def maintenance_api_keys_list(self) -> list[str]:
        return _split_csv(self.maintenance_api_keys)

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)

    @property
    def new_flag_ttl(self) -> timedelta:
        return timedelta(days=self.new_flag_ttl_days)

    def validate_required_fields(self) -> list[str]:
        """
        Return the names of required settings that are missing.

        Separate from Pydantic validation because what's required depends
        on mock mode.
        """
        missing = []

        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")

        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not (
                self.snowflake_password
                or self.snowflake_private_key_path
                or self.snowflake_private_key_base64
            ):
                missing.append(
                    "SNOWFLAKE_PASSWORD, SNOWFLAKE_PRIVATE_KEY_PATH or SNOWFLAKE_PRIVATE_KEY_BASE64"
                )

        return missing


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process. Tests override this dependency instead of mutating env."""
    return Settings()
