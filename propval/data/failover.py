"""
Two-tier AI provider access.

Every AI call in the pipeline (listing search, valuation refinement, property
analysis) goes through `ProviderFailoverClient.call`: the primary proxy server
is tried first, then Perplexity, each once and each under its own timeout.
Results name the tier that answered ("primary" or "secondary"). Log lines
and error messages name the vendor behind it. The call never raises;
callers inspect `ProviderResult.success`.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field

from openai import AsyncOpenAI

from ..core.config import AIProviderSettings, Settings
from ..core.errors import (
    AuthRejected, ErrorKind, ParseError, PipelineError, Timeout, UpstreamUnavailable, classify_error,
)
from ..core.logging import log_event
from ..core.metrics import observe_provider_attempt
from ..core.utils import elapsed_ms, mask_endpoint, mask_secret

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]

_ERROR_BY_KIND = {
    ErrorKind.UPSTREAM_UNAVAILABLE: UpstreamUnavailable,
    ErrorKind.AUTH_REJECTED: AuthRejected,
    ErrorKind.PARSE_ERROR: ParseError,
    ErrorKind.TIMEOUT: Timeout,
}


@dataclass(frozen=True)
class ProviderAttempt:
    provider_id: str
    ok: bool
    elapsed_ms: float
    error_kind: ErrorKind | None = None
    error: str | None = None


@dataclass(frozen=True)
class ProviderResult:
    content: str
    provider_id: str | None
    success: bool
    error: str | None = None
    citations: tuple[str, ...] = ()
    attempts: tuple[ProviderAttempt, ...] = field(default_factory=tuple)

    def as_error(self, source: str) -> PipelineError:
        """
        The failure to raise for an unsuccessful result: the kind of the last
        attempt, with every provider's message.
        """
        if self.success:
            raise ValueError("successful result has no error")
        failed = [a for a in self.attempts if not a.ok]
        message = f"{source}: {self.error or 'no AI provider configured'}"
        kind = failed[-1].error_kind if failed else ErrorKind.UPSTREAM_UNAVAILABLE
        return _ERROR_BY_KIND.get(kind, PipelineError)(message, source=source)


class ChatProvider:
    """
    One OpenAI-compatible chat completion endpoint. `models` maps a call
    purpose (search, valuation, analysis) to the model name to request.
    """
    def __init__(self, provider_id: str, base_url: str, api_key: str, timeout_seconds: float,
                 models: dict[str, str], client: AsyncOpenAI | None = None, vendor: str | None = None):
        self.provider_id = provider_id
        self.vendor = vendor or provider_id
        self.base_url = base_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.models = models
        # Retries are the failover client's job, not the SDK's
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout_seconds, max_retries=0
        )

    @classmethod
    def from_settings(cls, cfg: AIProviderSettings) -> "ChatProvider":
        return cls(
            provider_id=cfg.provider_id,
            vendor=cfg.vendor,
            base_url=cfg.base_url,
            api_key=cfg.api_key,
            timeout_seconds=cfg.timeout_seconds,
            models={"search": cfg.search_model, "valuation": cfg.model, "analysis": cfg.model},
        )

    def model_for(self, purpose: str) -> str:
        return self.models.get(purpose) or self.models["valuation"]

    async def complete(self, messages: Messages, model: str, temperature: float,
                       max_tokens: int) -> tuple[str, list[str]]:
        completion = await self.client.chat.completions.create(
            model=model, messages=messages, temperature=temperature, max_tokens=max_tokens
        )
        choices = completion.choices or []
        content = choices[0].message.content if choices and choices[0].message else None
        if not content or not content.strip():
            raise ParseError(f"{self.vendor} returned an empty completion", source=self.vendor)
        # Perplexity attaches source URLs as a top-level extra field
        citations = getattr(completion, "citations", None) or []
        return content, [str(c) for c in citations]

    def describe(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "vendor": self.vendor,
            "endpoint": mask_endpoint(self.base_url),
            "api_key": mask_secret(self.api_key),
            "timeout_seconds": self.timeout_seconds,
            "models": dict(self.models),
        }

    async def aclose(self):
        await self.client.close()


class ProviderFailoverClient:
    def __init__(self, primary: ChatProvider | None = None, secondary: ChatProvider | None = None):
        self.primary = primary
        self.secondary = secondary

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderFailoverClient":
        primary, secondary = settings.primary_provider(), settings.secondary_provider()
        return cls(
            primary=ChatProvider.from_settings(primary) if primary.configured else None,
            secondary=ChatProvider.from_settings(secondary) if secondary.configured else None,
        )

    @property
    def providers(self) -> list[ChatProvider]:
        return [p for p in (self.primary, self.secondary) if p is not None]

    async def call(self, messages: Messages, *, purpose: str = "valuation",
                   temperature: float = 0.2, max_tokens: int = 1000) -> ProviderResult:
        attempts: list[ProviderAttempt] = []
        for provider in self.providers:
            model = provider.model_for(purpose)
            start = time.perf_counter()
            log_event(logger, "ai_provider_attempt", provider=provider.provider_id, vendor=provider.vendor,
                      purpose=purpose, model=model, endpoint=mask_endpoint(provider.base_url),
                      api_key=mask_secret(provider.api_key))
            try:
                content, citations = await asyncio.wait_for(
                    provider.complete(messages, model, temperature, max_tokens),
                    timeout=provider.timeout_seconds,
                )
            except Exception as exc:
                err = classify_error(exc, provider.vendor)
                attempt = ProviderAttempt(provider.provider_id, False, elapsed_ms(start), err.kind, str(err))
                attempts.append(attempt)
                observe_provider_attempt(provider.provider_id, err.kind.value)
                log_event(logger, "ai_provider_failed", logging.WARNING, provider=provider.provider_id,
                          vendor=provider.vendor, purpose=purpose, error_kind=err.kind.value, error=str(err),
                          elapsed_ms=attempt.elapsed_ms)
                continue

            attempts.append(ProviderAttempt(provider.provider_id, True, elapsed_ms(start)))
            observe_provider_attempt(provider.provider_id, "ok")
            log_event(logger, "ai_provider_succeeded", provider=provider.provider_id, vendor=provider.vendor,
                      purpose=purpose, elapsed_ms=attempts[-1].elapsed_ms)
            return ProviderResult(
                content=content,
                provider_id=provider.provider_id,
                success=True,
                citations=tuple(citations),
                attempts=tuple(attempts),
            )

        error = "; ".join(a.error for a in attempts if a.error) or "no AI provider configured"
        return ProviderResult(content="", provider_id=None, success=False, error=error, attempts=tuple(attempts))

    def status(self) -> dict:
        """Masked view of which providers are available, for operators."""
        return {
            "primary": self.primary.describe() if self.primary else None,
            "secondary": self.secondary.describe() if self.secondary else None,
            "available": bool(self.providers),
        }

    async def aclose(self):
        for provider in self.providers:
            await provider.aclose()

