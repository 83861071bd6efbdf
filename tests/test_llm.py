"""
Tests for the completion service: message conversion, ChatOpenAI calls and
Exa-backed web search.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from jarvis.config import Settings
from jarvis.exceptions import ExternalServiceError
from jarvis.llm import OpenAICompletionService, parse_exa_results, to_langchain_messages

EXA_PAYLOAD = {
    "results": [
        {
            "url": "https://docs.python.org/3/library/asyncio.html",
            "title": "asyncio - Asynchronous I/O",
            "text": "asyncio is a library to write concurrent code. " * 20,
            "publishedDate": "2024-05-01",
        },
        {"title": "No URL, dropped"},
        {"url": "https://realpython.com/async-io-python/", "title": None, "text": None},
    ]
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def exa_settings():
    return Settings(
        _env_file=None,
        openai_api_key="sk-process",
        exa_api_key="exa-key",
        exa_base_url="https://exa.test/",
    )


def exa_service(settings, handler):
    return OpenAICompletionService(settings, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

class TestConversion:
    """Role dicts to LangChain messages, Exa payloads to SearchResults."""

    def test_to_langchain_messages(self):
        converted = to_langchain_messages([
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ])
        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage]
        assert converted[1].content == "hi"

    def test_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown message role"):
            to_langchain_messages([{"role": "tool", "content": "x"}])

    def test_parse_exa_results(self):
        results = parse_exa_results(EXA_PAYLOAD)

        assert [r.rank for r in results] == [1, 3]
        first, second = results
        assert first.name == "asyncio - Asynchronous I/O"
        assert first.host_name == "docs.python.org"
        assert len(first.snippet) == 500
        assert first.date == "2024-05-01"
        assert second.name == ""
        assert second.snippet == ""

    def test_parse_empty_payload(self):
        assert parse_exa_results({}) == []


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------

class TestComplete:
    """ChatOpenAI-backed completions."""

    @pytest.mark.asyncio
    async def test_returns_content(self, exa_settings):
        model = MagicMock()
        model.ainvoke = AsyncMock(return_value=AIMessage(content="Paris"))
        service = OpenAICompletionService(exa_settings)

        with patch.object(service, "_chat_model", return_value=model) as chat_model:
            result = await service.complete([{"role": "user", "content": "capital of France?"}], 0.2, 50, api_key="sk-user")

        assert result == "Paris"
        chat_model.assert_called_once_with(0.2, 50, "sk-user")
        (messages,) = model.ainvoke.call_args.args
        assert isinstance(messages[0], HumanMessage)

    @pytest.mark.asyncio
    async def test_failure_is_external_service_error(self, exa_settings):
        model = MagicMock()
        model.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))
        service = OpenAICompletionService(exa_settings)

        with patch.object(service, "_chat_model", return_value=model):
            with pytest.raises(ExternalServiceError, match="completion failed: rate limited"):
                await service.complete([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_empty_content_is_an_error(self, exa_settings):
        model = MagicMock()
        model.ainvoke = AsyncMock(return_value=AIMessage(content="   "))
        service = OpenAICompletionService(exa_settings)

        with patch.object(service, "_chat_model", return_value=model):
            with pytest.raises(ExternalServiceError, match="No response received"):
                await service.complete([{"role": "user", "content": "hi"}])

    def test_chat_model_prefers_user_key(self, exa_settings):
        service = OpenAICompletionService(exa_settings)

        user_model = service._chat_model(0.3, 100, "sk-user")
        process_model = service._chat_model(0.3, 100, None)

        assert user_model.openai_api_key.get_secret_value() == "sk-user"
        assert process_model.openai_api_key.get_secret_value() == "sk-process"
        assert user_model.model_name == "gpt-4o-mini"


# ---------------------------------------------------------------------------
# Function invocation
# ---------------------------------------------------------------------------

class TestInvoke:
    """web_search over the Exa API."""

    @pytest.mark.asyncio
    async def test_web_search(self, exa_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers["x-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=EXA_PAYLOAD)

        results = await exa_service(exa_settings, handler).invoke("web_search", {"query": "asyncio", "num": 3})

        assert seen["url"] == "https://exa.test/search"
        assert seen["api_key"] == "exa-key"
        assert seen["body"]["query"] == "asyncio"
        assert seen["body"]["numResults"] == 3
        assert [r.url for r in results] == [
            "https://docs.python.org/3/library/asyncio.html",
            "https://realpython.com/async-io-python/",
        ]

    @pytest.mark.asyncio
    async def test_http_error(self, exa_settings):
        service = exa_service(exa_settings, lambda request: httpx.Response(401, json={"error": "bad key"}))

        with pytest.raises(ExternalServiceError, match="web_search failed"):
            await service.invoke("web_search", {"query": "asyncio"})

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        settings = Settings(_env_file=None, exa_api_key="")
        service = exa_service(settings, lambda request: httpx.Response(200, json=EXA_PAYLOAD))

        with pytest.raises(ExternalServiceError, match="EXA_API_KEY is not configured"):
            await service.invoke("web_search", {"query": "asyncio"})

    @pytest.mark.asyncio
    async def test_unknown_function(self, exa_settings):
        service = OpenAICompletionService(exa_settings)

        with pytest.raises(ExternalServiceError, match="Unknown function: translate"):
            await service.invoke("translate", {"text": "hola"})
