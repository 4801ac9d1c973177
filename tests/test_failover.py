import httpx
import pytest
import respx
from httpx import Response

from propval.core.config import Settings
from propval.core.errors import AuthRejected, ErrorKind, Timeout, UpstreamUnavailable
from propval.data.failover import ChatProvider, ProviderFailoverClient
from tests.fakes import FakeChatProvider, http_error

PRIMARY_URL = "http://primary.test/v1"
SECONDARY_URL = "http://secondary.test/v1"
PRIMARY_KEY = "sk-primary-abcdefgh12345678"
SECONDARY_KEY = "pplx-secondary-abcdefgh87654321"
MESSAGES = [{"role": "user", "content": "price per m2 in Dong Da?"}]


def completion(content: str, **extra) -> dict:
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 1,
        "model": "m",
        "choices": [{"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}],
        **extra,
    }


def real_client() -> ProviderFailoverClient:
    models = {"search": "search-m", "valuation": "value-m", "analysis": "value-m"}
    return ProviderFailoverClient(
        primary=ChatProvider("primary", PRIMARY_URL, PRIMARY_KEY, 5.0, models, vendor="proxy"),
        secondary=ChatProvider("secondary", SECONDARY_URL, SECONDARY_KEY, 5.0, models, vendor="perplexity"),
    )


@pytest.mark.asyncio
async def test_primary_timeout_falls_back_to_secondary():
    client = real_client()
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            primary = respx_mock.post(f"{PRIMARY_URL}/chat/completions").mock(
                side_effect=httpx.ReadTimeout("slow")
            )
            respx_mock.post(f"{SECONDARY_URL}/chat/completions").mock(
                return_value=Response(200, json=completion("from secondary", citations=["https://a.example/1"]))
            )
            result = await client.call(MESSAGES, purpose="search")

        assert result.success is True
        assert result.provider_id == "secondary"
        assert result.content == "from secondary"
        assert result.citations == ("https://a.example/1",)
        assert primary.call_count == 1
        assert [a.provider_id for a in result.attempts] == ["primary", "secondary"]
        assert result.attempts[0].error_kind is ErrorKind.TIMEOUT
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_primary_success_skips_secondary_and_sends_purpose_model():
    client = real_client()
    try:
        with respx.mock(assert_all_called=False) as respx_mock:
            primary = respx_mock.post(f"{PRIMARY_URL}/chat/completions").mock(
                return_value=Response(200, json=completion("ok"))
            )
            secondary = respx_mock.post(f"{SECONDARY_URL}/chat/completions").mock(
                return_value=Response(200, json=completion("unused"))
            )
            result = await client.call(MESSAGES, purpose="search")

        assert result.provider_id == "primary"
        assert secondary.call_count == 0
        sent = primary.calls.last.request
        assert b'"search-m"' in sent.content
        assert sent.headers["Authorization"] == f"Bearer {PRIMARY_KEY}"
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_both_fail_reports_every_provider_without_credentials():
    client = real_client()
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            primary = respx_mock.post(f"{PRIMARY_URL}/chat/completions").mock(
                return_value=Response(500, json={"error": {"message": f"bad key {PRIMARY_KEY}"}})
            )
            secondary = respx_mock.post(f"{SECONDARY_URL}/chat/completions").mock(
                return_value=Response(401, json={"error": {"message": "unauthorized"}})
            )
            result = await client.call(MESSAGES)

        assert result.success is False
        assert result.provider_id is None
        assert "proxy" in result.error and "perplexity" in result.error
        assert PRIMARY_KEY not in result.error
        assert SECONDARY_KEY not in result.error
        # Each provider tried exactly once
        assert primary.call_count == 1
        assert secondary.call_count == 1
        assert isinstance(result.as_error("valuation"), AuthRejected)
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_attempt_bounded_by_provider_timeout():
    slow = FakeChatProvider("primary", delay_seconds=0.5, timeout_seconds=0.05)
    fast = FakeChatProvider("secondary")
    client = ProviderFailoverClient(primary=slow, secondary=fast)

    result = await client.call(MESSAGES, purpose="valuation")

    assert result.success is True
    assert result.provider_id == "secondary"
    assert result.attempts[0].error_kind is ErrorKind.TIMEOUT
    assert slow.calls == ["valuation-model"]


@pytest.mark.asyncio
async def test_empty_completion_moves_to_secondary():
    client = real_client()
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.post(f"{PRIMARY_URL}/chat/completions").mock(
                return_value=Response(200, json=completion("   "))
            )
            respx_mock.post(f"{SECONDARY_URL}/chat/completions").mock(
                return_value=Response(200, json=completion("answer"))
            )
            result = await client.call(MESSAGES)

        assert result.provider_id == "secondary"
        assert result.attempts[0].error_kind is ErrorKind.PARSE_ERROR
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_only_secondary_configured():
    client = ProviderFailoverClient(primary=None, secondary=FakeChatProvider("secondary"))
    result = await client.call(MESSAGES)
    assert result.provider_id == "secondary"
    assert len(result.attempts) == 1


@pytest.mark.asyncio
async def test_no_providers_is_a_failure_not_an_exception():
    result = await ProviderFailoverClient().call(MESSAGES)

    assert result.success is False
    assert result.error == "no AI provider configured"
    assert isinstance(result.as_error("listing search"), UpstreamUnavailable)


@pytest.mark.asyncio
async def test_error_kind_follows_last_attempt():
    client = ProviderFailoverClient(
        primary=FakeChatProvider("primary", responses={}, default=http_error(401)),
        secondary=FakeChatProvider("secondary", delay_seconds=0.5, timeout_seconds=0.05),
    )
    result = await client.call(MESSAGES)
    assert isinstance(result.as_error("valuation"), Timeout)


def test_from_settings_builds_only_configured_providers():
    settings = Settings.from_env({
        "PROXY_SERVER_URL": "https://proxy.example.com/v1",
        "PROXY_SERVER_API_KEY": "Bearer proxy-key-12345678",
    })
    client = ProviderFailoverClient.from_settings(settings)

    assert client.primary is not None
    assert client.primary.provider_id == "primary"
    assert client.primary.vendor == "proxy"
    assert client.primary.api_key == "proxy-key-12345678"
    assert client.secondary is None

    status = client.status()
    assert status["available"] is True
    assert status["primary"]["vendor"] == "proxy"
    assert status["primary"]["api_key"] == "prox***5678"
    assert status["primary"]["endpoint"] == "https://proxy*example*com/***"
    assert status["secondary"] is None


def test_disabled_primary_is_skipped():
    settings = Settings.from_env({
        "PROXY_SERVER_URL": "https://proxy.example.com/v1",
        "PROXY_SERVER_API_KEY": "proxy-key-12345678",
        "PROXY_SERVER_ENABLED": "false",
        "PERPLEXITY_API_KEY": "pplx-key-12345678",
    })
    client = ProviderFailoverClient.from_settings(settings)

    assert client.primary is None
    assert client.secondary.provider_id == "secondary"
    assert client.secondary.vendor == "perplexity"
    assert client.secondary.models["search"] == "sonar-pro"
