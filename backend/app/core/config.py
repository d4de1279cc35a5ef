from functools import lru_cache
from typing import Any

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item for item in (part.strip() for part in value.split(",")) if item]
    return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    log_level: str = Field(default="INFO", description="Minimum loguru log level")
    data_api_base_url: AnyUrl = Field(
        default="https://data-api.polymarket.com",
        description="Base URL for the Polymarket data API (leaderboard, positions, activity)",
    )
    gamma_api_base_url: AnyUrl = Field(
        default="https://gamma-api.polymarket.com",
        description="Base URL for the Polymarket Gamma API (search, events)",
    )
    clob_api_base_url: AnyUrl = Field(
        default="https://clob.polymarket.com",
        description="Base URL for the Polymarket CLOB API (order books)",
    )
    upstream_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to every outbound Polymarket request",
        gt=0,
    )
    allowed_origins: list[str] | str = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:8080",
        ],
        description="Exact browser origins allowed to call the proxy; the first one is the CORS default",
    )
    trusted_origin_suffixes: list[str] | str = Field(
        default_factory=lambda: [".lovable.app", ".lovableproject.com"],
        description="Host suffixes of trusted deployment domains accepted over https",
    )
    allow_missing_origin: bool = Field(
        default=False,
        description="Accept requests without an Origin header (server-to-server callers)",
    )
    supabase_url: AnyUrl | str | None = Field(
        default=None,
        description="Supabase project URL used to verify bearer tokens",
    )
    supabase_anon_key: str | None = Field(
        default=None,
        description="Supabase anon key sent as the apikey header during verification",
    )

    @field_validator("allowed_origins", mode="after")
    @classmethod
    def _parse_allowed_origins(cls, value: Any) -> list[str]:
        origins = [origin.rstrip("/") for origin in _split_csv(value) if origin]
        if not origins:
            raise ValueError("ALLOWED_ORIGINS must contain at least one origin")
        return origins

    @field_validator("trusted_origin_suffixes", mode="after")
    @classmethod
    def _parse_trusted_suffixes(cls, value: Any) -> list[str]:
        suffixes: list[str] = []
        for item in _split_csv(value) or []:
            suffix = item.strip().lower().lstrip("*")
            if not suffix:
                continue
            suffixes.append(suffix if suffix.startswith(".") else f".{suffix}")
        return suffixes

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def default_origin(self) -> str:
        return self.allowed_origins[0]

    def api_base_url(self, api: str) -> str:
        """Return the configured base URL for one of the data/gamma/clob APIs."""

        bases = {
            "data": self.data_api_base_url,
            "gamma": self.gamma_api_base_url,
            "clob": self.clob_api_base_url,
        }
        try:
            return str(bases[api]).rstrip("/")
        except KeyError as exc:
            raise ValueError(f"Unknown upstream API {api!r}") from exc


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
