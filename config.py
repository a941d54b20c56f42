"""
Application configuration via Pydantic Settings.
All values can be overridden by environment variables or a .env file.
"""
from __future__ import annotations

import warnings
from typing import List, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from monitor.state import ThresholdConfig


class _CommaFallbackMixin:
    """Return the raw string when JSON parsing fails.

    pydantic-settings ≥2.7 calls json.loads() on complex-typed fields
    (e.g. List[str]) before field_validators run.  A plain comma-separated
    value like ``default,ingress-nginx`` is not valid JSON and raises
    SettingsError before the parse_namespaces validator can split it.
    """

    def prepare_field_value(self, field_name, field, value, value_is_complex):  # type: ignore[override]
        try:
            return super().prepare_field_value(field_name, field, value, value_is_complex)  # type: ignore[misc]
        except ValueError:
            return value


class _CSVEnvSource(_CommaFallbackMixin, EnvSettingsSource):
    pass


class _CSVDotEnvSource(_CommaFallbackMixin, DotEnvSettingsSource):
    pass


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Cluster access ─────────────────────────────────────────────────────
    KUBECONFIG: str = ""              # Empty = in-cluster service account
    KUBE_CONTEXT: str = ""
    KUBE_REQUEST_TIMEOUT: float = Field(default=30.0, gt=0)

    # ── Discovery ──────────────────────────────────────────────────────────
    SOURCE_KIND: Literal["secret", "ingress"] = "secret"
    WATCH_NAMESPACES: List[str] = []  # Empty = every visible namespace

    # ── Refresh cadence ────────────────────────────────────────────────────
    UPDATE_INTERVAL: int = Field(default=60, ge=1)

    # ── Classification ─────────────────────────────────────────────────────
    DAYS_LEFT_CRITICAL_THRESHOLD: int = Field(default=3, ge=0)
    DAYS_LEFT_WARN_THRESHOLD: int = Field(default=30, ge=0)
    HOSTNAME_MISMATCH_IS_ERROR: bool = False

    # ── Status endpoint ────────────────────────────────────────────────────
    LISTEN_HOST: str = "0.0.0.0"
    LISTEN_PORT: int = Field(default=8080, ge=0, le=65535)

    # ── Logging ────────────────────────────────────────────────────────────
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            _CSVEnvSource(settings_cls),
            _CSVDotEnvSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("WATCH_NAMESPACES", mode="before")
    @classmethod
    def parse_namespaces(cls, v: object) -> List[str]:
        """Accept comma-separated string or list."""
        if isinstance(v, str):
            return [ns.strip() for ns in v.split(",") if ns.strip()]
        return v  # type: ignore[return-value]

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        if self.DAYS_LEFT_WARN_THRESHOLD <= self.DAYS_LEFT_CRITICAL_THRESHOLD:
            warnings.warn(
                f"DAYS_LEFT_WARN_THRESHOLD ({self.DAYS_LEFT_WARN_THRESHOLD}) does not exceed "
                f"DAYS_LEFT_CRITICAL_THRESHOLD ({self.DAYS_LEFT_CRITICAL_THRESHOLD}); "
                "no certificate will ever be classified as WARN.",
                UserWarning,
                stacklevel=2,
            )
        return self

    def thresholds(self) -> ThresholdConfig:
        return ThresholdConfig(
            critical_days_left=self.DAYS_LEFT_CRITICAL_THRESHOLD,
            warn_days_left=self.DAYS_LEFT_WARN_THRESHOLD,
        )


# Module-level singleton - import and use everywhere.
settings = Settings()
