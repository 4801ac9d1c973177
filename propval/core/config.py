import os
from functools import lru_cache
from typing import Mapping

from pydantic import BaseModel, model_validator

LISTING_PLATFORM_URL = "https://apis.resta.vn/erest-listing"
GOV_PRICE_URL = "https://guland.vn"
PERPLEXITY_URL = "https://api.perplexity.ai"

_PROVIDER_MODES = ("mock", "http")


def _flag(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _strip_bearer(value: str | None) -> str | None:
    # Keys are sometimes pasted with the header prefix still attached
    if value and value.lower().startswith("bearer "):
        return value[7:].strip()
    return value or None


class AIProviderSettings(BaseModel):
    """One OpenAI-compatible chat completion endpoint. `provider_id` is its tier, `vendor` who serves it."""
    provider_id: str
    vendor: str
    base_url: str | None = None
    api_key: str | None = None
    model: str
    search_model: str
    timeout_seconds: float
    enabled: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.enabled and self.base_url and self.api_key)


class Settings(BaseModel):
    """
    Process-wide configuration. Field names mirror the environment variables.
    Build it once with `Settings.from_env()` and pass it down; nothing else
    reads the environment.
    """
    # Basic
    ENV: str = "dev"
    DEFAULT_CURRENCY: str = "VND"
    LOG_LEVEL: str = "INFO"
    CACHE_TTL_SECONDS: int = 3600

    # Listing platform data providers
    LOCATION_PROVIDER: str = "mock"     # mock | http
    LOCATION_BASE_URL: str | None = LISTING_PLATFORM_URL
    LOCATION_TIMEOUT_SECONDS: float = 10.0
    TRENDS_PROVIDER: str = "mock"       # mock | http
    TRENDS_BASE_URL: str | None = LISTING_PLATFORM_URL
    TRENDS_TIMEOUT_SECONDS: float = 10.0
    UTILITIES_PROVIDER: str = "mock"    # mock | http
    UTILITIES_BASE_URL: str | None = LISTING_PLATFORM_URL
    UTILITIES_TIMEOUT_SECONDS: float = 10.0
    GOV_PRICE_PROVIDER: str = "mock"    # mock | http
    GOV_PRICE_BASE_URL: str | None = GOV_PRICE_URL
    GOV_PRICE_TIMEOUT_SECONDS: float = 15.0

    # AI providers: primary proxy server, secondary Perplexity
    PROXY_SERVER_URL: str | None = None
    PROXY_SERVER_API_KEY: str | None = None
    PROXY_SERVER_ENABLED: bool = True
    PROXY_SERVER_MODEL: str = "pplx-claude-4.0-sonnet"
    PROXY_SEARCH_MODEL: str = "pplx-sonar"
    PROXY_TIMEOUT_SECONDS: float = 30.0
    PERPLEXITY_API_URL: str = PERPLEXITY_URL
    PERPLEXITY_API_KEY: str | None = None
    PERPLEXITY_MODEL: str = "sonar-pro"
    PERPLEXITY_SEARCH_MODEL: str = "sonar-pro"
    PERPLEXITY_TIMEOUT_SECONDS: float = 10.0

    # Caller-visible bound for a whole valuation run
    PIPELINE_TIMEOUT_SECONDS: float = 90.0

    # Security
    API_KEY: str | None = None
    RATE_LIMIT_RPM: int = 60

    # CORS
    ALLOW_ORIGINS: str = "*"

    # Cache
    USE_REDIS: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"

    # Metrics
    PROMETHEUS_ENABLED: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        values: dict = {}
        for name, field in cls.model_fields.items():
            raw = env.get(name)
            if raw is None or raw == "":
                continue
            if field.annotation is bool:
                values[name] = _flag(raw, bool(field.default))
            else:
                values[name] = raw
        # Older deployments used the AI_SERVER_PROXY_* names
        values.setdefault("PROXY_SERVER_URL", env.get("AI_SERVER_PROXY_URL") or None)
        values.setdefault("PROXY_SERVER_API_KEY", env.get("AI_SERVER_PROXY_API_KEY") or None)
        values["PROXY_SERVER_API_KEY"] = _strip_bearer(values["PROXY_SERVER_API_KEY"])
        return cls(**values)

    @model_validator(mode="after")
    def _check(self) -> "Settings":
        for prefix in ("LOCATION", "TRENDS", "UTILITIES", "GOV_PRICE"):
            mode = getattr(self, f"{prefix}_PROVIDER")
            if mode not in _PROVIDER_MODES:
                raise ValueError(f"{prefix}_PROVIDER must be one of {_PROVIDER_MODES}, got {mode!r}")
            if mode == "http" and not getattr(self, f"{prefix}_BASE_URL"):
                raise ValueError(f"{prefix}_BASE_URL is required when {prefix}_PROVIDER=http")
            if getattr(self, f"{prefix}_TIMEOUT_SECONDS") <= 0:
                raise ValueError(f"{prefix}_TIMEOUT_SECONDS must be positive")
        for name in ("PROXY_TIMEOUT_SECONDS", "PERPLEXITY_TIMEOUT_SECONDS", "PIPELINE_TIMEOUT_SECONDS"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        return self

    def primary_provider(self) -> AIProviderSettings:
        return AIProviderSettings(
            provider_id="primary",
            vendor="proxy",
            base_url=self.PROXY_SERVER_URL,
            api_key=self.PROXY_SERVER_API_KEY,
            model=self.PROXY_SERVER_MODEL,
            search_model=self.PROXY_SEARCH_MODEL,
            timeout_seconds=self.PROXY_TIMEOUT_SECONDS,
            enabled=self.PROXY_SERVER_ENABLED,
        )

    def secondary_provider(self) -> AIProviderSettings:
        return AIProviderSettings(
            provider_id="secondary",
            vendor="perplexity",
            base_url=self.PERPLEXITY_API_URL,
            api_key=self.PERPLEXITY_API_KEY,
            model=self.PERPLEXITY_MODEL,
            search_model=self.PERPLEXITY_SEARCH_MODEL,
            timeout_seconds=self.PERPLEXITY_TIMEOUT_SECONDS,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
