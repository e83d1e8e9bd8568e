"""Ledger simulator server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class LedgerServerSettings(BaseSettings):
    model_config = {"env_prefix": "LEDGER_"}

    log_dir: str = Field(default="backend/logs/ledger", min_length=1)
    journal_dir: str = Field(default="backend/data/journals", min_length=1)
    journal_name: str = Field(default="ledger", min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    cors_origins: list[str] = ["http://localhost:3000"]
    lamports_per_byte_year: int = Field(default=3480, ge=0)
    genesis_timestamp: int = Field(default=0, ge=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
