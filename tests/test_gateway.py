"""Tests for gateway failure classification and backends."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from carelink.config import GatewayConfig
from carelink.exceptions import GatewayError, GatewayErrorReason
from carelink.gateway import build_gateway
from carelink.gateway.base import FAILURE_MESSAGES, classify_failure, failure_message
from carelink.gateway.offline import CANNED_REPLIES, DEFAULT_REPLY, OfflineResponseGateway
from carelink.gateway.openai_gateway import OpenAIResponseGateway
from carelink.prompts.system_prompts import SUPPORT_SYSTEM_PROMPT

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestClassifyFailure:
    @pytest.mark.parametrize("description,expected", [
        ("API key not valid. Please pass a valid API key.", GatewayErrorReason.API_KEY_INVALID),
        ("missing api_key", GatewayErrorReason.API_KEY_INVALID),
        ("You exceeded your current quota", GatewayErrorReason.QUOTA_EXCEEDED),
        ("Rate limit reached for requests", GatewayErrorReason.QUOTA_EXCEEDED),
        ("network is unreachable", GatewayErrorReason.NETWORK_UNAVAILABLE),
        ("Connection reset by peer", GatewayErrorReason.NETWORK_UNAVAILABLE),
        ("something odd happened", GatewayErrorReason.UNKNOWN),
    ])
    def test_description_patterns(self, description, expected):
        assert classify_failure(RuntimeError(description)) == expected

    def test_typed_error_keeps_reason(self):
        exc = GatewayError(GatewayErrorReason.QUOTA_EXCEEDED, "network down")
        assert classify_failure(exc) == GatewayErrorReason.QUOTA_EXCEEDED

    def test_builtin_connection_errors(self):
        assert classify_failure(ConnectionError()) == GatewayErrorReason.NETWORK_UNAVAILABLE
        assert classify_failure(TimeoutError()) == GatewayErrorReason.NETWORK_UNAVAILABLE

    def test_every_reason_has_a_message(self):
        assert set(FAILURE_MESSAGES) == set(GatewayErrorReason)
        assert failure_message(RuntimeError("boom")) == FAILURE_MESSAGES[GatewayErrorReason.UNKNOWN]


class TestOfflineGateway:
    @pytest.mark.asyncio
    async def test_keyword_reply(self):
        gateway = OfflineResponseGateway()
        reply = await gateway.send([{"role": "user", "text": "I feel so anxious today"}])
        assert reply == CANNED_REPLIES["anxious"]

    @pytest.mark.asyncio
    async def test_uses_latest_user_turn(self):
        gateway = OfflineResponseGateway()
        reply = await gateway.send([
            {"role": "user", "text": "I can't sleep"},
            {"role": "assistant", "text": "..."},
            {"role": "user", "text": "thanks"},
        ])
        assert reply == DEFAULT_REPLY

    @pytest.mark.asyncio
    async def test_no_user_turn_raises(self):
        with pytest.raises(GatewayError) as excinfo:
            await OfflineResponseGateway().send([])
        assert excinfo.value.reason == GatewayErrorReason.UNKNOWN


class TestOpenAIGateway:
    @pytest.mark.asyncio
    async def test_sends_primer_then_history(self):
        completions = FakeCompletions(content="  You're not alone.  ")
        gateway = OpenAIResponseGateway(GatewayConfig(model="test-model"), client=_client(completions))

        reply = await gateway.send([{"role": "user", "text": "hello"}])

        assert reply == "You're not alone."
        messages = completions.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": SUPPORT_SYSTEM_PROMPT}
        assert messages[1]["role"] == "assistant"
        assert messages[-1] == {"role": "user", "content": "hello"}
        assert completions.kwargs["model"] == "test-model"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,expected", [
        (openai.APIConnectionError(request=_REQUEST), GatewayErrorReason.NETWORK_UNAVAILABLE),
        (
            openai.RateLimitError(
                "Rate limited", response=httpx.Response(429, request=_REQUEST), body=None
            ),
            GatewayErrorReason.QUOTA_EXCEEDED,
        ),
        (
            openai.AuthenticationError(
                "Incorrect key", response=httpx.Response(401, request=_REQUEST), body=None
            ),
            GatewayErrorReason.API_KEY_INVALID,
        ),
    ])
    async def test_sdk_errors_mapped(self, error, expected):
        gateway = OpenAIResponseGateway(GatewayConfig(), client=_client(FakeCompletions(error=error)))
        with pytest.raises(GatewayError) as excinfo:
            await gateway.send([{"role": "user", "text": "hello"}])
        assert excinfo.value.reason == expected

    @pytest.mark.asyncio
    async def test_empty_completion_is_unknown(self):
        gateway = OpenAIResponseGateway(GatewayConfig(), client=_client(FakeCompletions(content="")))
        with pytest.raises(GatewayError) as excinfo:
            await gateway.send([{"role": "user", "text": "hello"}])
        assert excinfo.value.reason == GatewayErrorReason.UNKNOWN

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        gateway = OpenAIResponseGateway(GatewayConfig(api_key=None))
        with pytest.raises(GatewayError) as excinfo:
            await gateway.send([{"role": "user", "text": "hello"}])
        assert excinfo.value.reason == GatewayErrorReason.API_KEY_INVALID


class TestBuildGateway:
    def test_offline_backend(self):
        assert isinstance(build_gateway(GatewayConfig(backend="offline")), OfflineResponseGateway)

    def test_openai_backend(self):
        gateway = build_gateway(GatewayConfig(backend="openai", api_key="sk-test"))
        assert isinstance(gateway, OpenAIResponseGateway)
