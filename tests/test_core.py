import asyncio
import json
import logging

import httpx
import openai
import pytest
from pydantic import ValidationError as SettingsError

from propval.core.cache import Cache
from propval.core.config import Settings
from propval.core.errors import (
    AuthRejected, ErrorKind, ParseError, PipelineError, Timeout, UpstreamUnavailable, classify_error,
)
from propval.core.logging import JsonFormatter, RequestIdFilter, log_event, request_id_var
from propval.core.utils import fold_text, mask_endpoint, mask_secret, to_number
from propval.services.context import PipelineRun, RunStatus
from tests.fakes import FakeRedis, http_error


def test_settings_defaults():
    s = Settings.from_env({})
    assert s.LOCATION_PROVIDER == "mock"
    assert s.PIPELINE_TIMEOUT_SECONDS == 90.0
    assert s.primary_provider().configured is False
    assert s.secondary_provider().configured is False
    assert s.secondary_provider().base_url == "https://api.perplexity.ai"


def test_settings_from_env_coerces_and_reads_legacy_names():
    s = Settings.from_env({
        "AI_SERVER_PROXY_URL": "https://proxy.example.com/v1",
        "AI_SERVER_PROXY_API_KEY": "Bearer legacy-key-1234",
        "PROXY_TIMEOUT_SECONDS": "12.5",
        "USE_REDIS": "0",
        "PROMETHEUS_ENABLED": "false",
        "RATE_LIMIT_RPM": "30",
    })
    assert s.PROXY_SERVER_URL == "https://proxy.example.com/v1"
    assert s.PROXY_SERVER_API_KEY == "legacy-key-1234"
    assert s.PROXY_TIMEOUT_SECONDS == 12.5
    assert s.USE_REDIS is False
    assert s.PROMETHEUS_ENABLED is False
    assert s.RATE_LIMIT_RPM == 30
    assert s.primary_provider().configured is True


def test_new_proxy_names_win_over_legacy():
    s = Settings.from_env({"PROXY_SERVER_URL": "https://new.example.com", "AI_SERVER_PROXY_URL": "https://old.example.com"})
    assert s.PROXY_SERVER_URL == "https://new.example.com"


@pytest.mark.parametrize("env", [
    {"TRENDS_PROVIDER": "ftp"},
    {"GOV_PRICE_TIMEOUT_SECONDS": "0"},
    {"PIPELINE_TIMEOUT_SECONDS": "-1"},
])
def test_invalid_settings_rejected(env):
    with pytest.raises(SettingsError):
        Settings.from_env(env)


def test_http_provider_needs_base_url():
    with pytest.raises(SettingsError):
        Settings(LOCATION_PROVIDER="http", LOCATION_BASE_URL=None)


def test_classify_error_mapping():
    request = httpx.Request("POST", "https://ai.test/v1/chat/completions")
    assert isinstance(classify_error(asyncio.TimeoutError(), "x"), Timeout)
    assert isinstance(classify_error(httpx.ReadTimeout("slow"), "x"), Timeout)
    assert isinstance(classify_error(openai.APITimeoutError(request=request), "x"), Timeout)
    assert isinstance(classify_error(http_error(403), "x"), AuthRejected)
    assert isinstance(classify_error(http_error(502), "x"), UpstreamUnavailable)
    assert isinstance(classify_error(httpx.ConnectError("refused"), "x"), UpstreamUnavailable)
    assert isinstance(classify_error(json.JSONDecodeError("bad", "{", 0), "x"), ParseError)

    auth = openai.AuthenticationError(
        "key sk-secret-123 rejected", response=httpx.Response(401, request=request), body=None
    )
    err = classify_error(auth, "proxy")
    assert isinstance(err, AuthRejected)
    assert "sk-secret-123" not in str(err)
    assert err.source == "proxy"


def test_classify_error_passthrough_and_internal():
    parse_error = ParseError("bad", source="valuation")
    assert classify_error(parse_error, "other") is parse_error

    err = classify_error(RuntimeError("boom"), "merge")
    assert type(err) is PipelineError
    assert err.kind is ErrorKind.INTERNAL


@pytest.mark.parametrize("exc", [KeyError("price"), IndexError("list index"), TypeError("None"), ValueError("bad")])
def test_programming_errors_are_internal_not_parse_errors(exc):
    err = classify_error(exc, "merge")
    assert type(err) is PipelineError
    assert err.kind is ErrorKind.INTERNAL


@pytest.mark.asyncio
async def test_settle_turns_failures_into_outcomes():
    run = PipelineRun(request_id="r-1")

    async def ok():
        return 42

    async def broken():
        raise http_error(500)

    async def slow():
        await asyncio.sleep(0.5)

    good = await run.settle("a", ok())
    bad = await run.settle("b", broken())
    late = await run.settle("c", slow(), timeout=0.01)

    assert good.ok and good.value == 42
    assert not bad.ok and bad.value_or("default") == "default"
    assert late.error.kind is ErrorKind.TIMEOUT
    assert set(run.stage_errors) == {"b", "c"}
    assert set(run.stage_ms) == {"a", "b", "c"}
    assert run.finish() is RunStatus.DEGRADED
    assert run.total_ms is not None
    assert run.error_messages()["b"] == "b returned HTTP 500"


def test_finish_without_errors_is_success():
    run = PipelineRun()
    assert run.finish() is RunStatus.SUCCESS
    assert PipelineRun().finish(RunStatus.FAILED) is RunStatus.FAILED


def test_utils():
    assert to_number("1,250") == 1250.0
    assert to_number("abc") == 0.0
    assert to_number(True) == 0.0
    assert to_number(float("nan")) == 0.0
    assert fold_text("Quận Đống Đa") == "quandongda"
    assert fold_text("dong_da") == "dongda"
    assert mask_secret("pplx-abcdefgh1234") == "pplx***1234"
    assert mask_secret("short") == "***"
    assert mask_secret(None) == "not set"
    assert mask_endpoint("https://api.perplexity.ai/v1") == "https://api*perplexity*ai/***"


@pytest.mark.asyncio
async def test_cache_counter_and_json():
    cache = Cache(ttl_seconds=60)
    assert await cache.incr("k") == 1
    assert await cache.incr("k") == 2
    await cache.set_json("j", [{"a": "Đống Đa"}])
    assert await cache.get_json("j") == [{"a": "Đống Đa"}]
    assert await cache.get_json("missing") is None
    cache.clear()
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_cache_awaits_the_redis_backend():
    cache = Cache(ttl_seconds=60)
    cache.backend = FakeRedis()

    assert await cache.incr("rate:anon", ttl_seconds=30) == 1
    assert await cache.incr("rate:anon", ttl_seconds=30) == 2
    await cache.set_json("trend:ha_noi", [1, 2])

    assert cache.backend.expiry == {"rate:anon": 30, "trend:ha_noi": 60}
    assert await cache.get_json("trend:ha_noi") == [1, 2]
    assert cache._local.get("trend:ha_noi") is None
    await cache.aclose()
    assert cache.backend.closed is True


def test_json_log_lines_carry_request_id_and_fields():
    logger = logging.getLogger("propval.test")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, "stage_finished", (), None,
        extra={"fields": {"event": "stage_finished", "stage": "location", "elapsed_ms": 1.5}},
    )
    token = request_id_var.set("req-9")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_var.reset(token)

    line = json.loads(JsonFormatter().format(record))
    assert line["request_id"] == "req-9"
    assert line["stage"] == "location"
    assert line["msg"] == "stage_finished"


def test_log_event_uses_structured_fields(caplog):
    logger = logging.getLogger("propval.test")
    with caplog.at_level(logging.INFO, logger="propval.test"):
        log_event(logger, "ai_provider_attempt", provider="primary", vendor="proxy")
    assert caplog.records[-1].fields == {"event": "ai_provider_attempt", "provider": "primary", "vendor": "proxy"}
