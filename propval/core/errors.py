"""
Error taxonomy shared by every pipeline stage.

Stages never leak transport exceptions: whatever httpx, openai or asyncio
raised is mapped onto one of the kinds below by `classify_error`, recorded
against the stage, and the degradation policy decides what replaces the
missing value.
"""
import asyncio
import json
import logging
from enum import Enum

import httpx
import openai

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    AUTH_REJECTED = "auth_rejected"
    PARSE_ERROR = "parse_error"
    TIMEOUT = "timeout"
    INTERNAL = "internal_error"


class PipelineError(Exception):
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, source: str | None = None):
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        return self.message


class ValidationError(PipelineError):
    """Caller input rejected before any upstream call."""
    kind = ErrorKind.VALIDATION


class UpstreamUnavailable(PipelineError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class AuthRejected(PipelineError):
    kind = ErrorKind.AUTH_REJECTED


class ParseError(PipelineError):
    kind = ErrorKind.PARSE_ERROR


class Timeout(PipelineError):
    kind = ErrorKind.TIMEOUT


def classify_error(exc: BaseException, source: str) -> PipelineError:
    """
    Map a raw exception onto the taxonomy. Messages carry status codes and
    exception class names only, never response bodies (they can echo keys).
    """
    if isinstance(exc, PipelineError):
        return exc

    # Timeouts first: openai's timeout error is also a connection error
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException, openai.APITimeoutError)):
        return Timeout(f"{source} timed out", source=source)

    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        if code in (401, 403):
            return AuthRejected(f"{source} rejected credentials (HTTP {code})", source=source)
        return UpstreamUnavailable(f"{source} returned HTTP {code}", source=source)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthRejected(f"{source} rejected credentials (HTTP {exc.status_code})", source=source)
    if isinstance(exc, openai.APIStatusError):
        return UpstreamUnavailable(f"{source} returned HTTP {exc.status_code}", source=source)

    if isinstance(exc, (httpx.RequestError, openai.APIConnectionError)):
        return UpstreamUnavailable(f"{source} unreachable ({type(exc).__name__})", source=source)

    if isinstance(exc, json.JSONDecodeError):
        return ParseError(f"{source} returned an unexpected payload ({type(exc).__name__})", source=source)

    logger.error("unexpected failure in %s", source, exc_info=exc)
    return PipelineError(f"{source} failed ({type(exc).__name__})", source=source)
