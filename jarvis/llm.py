"""
LLM integration for Jarvis.

`CompletionService` is the collaborator the specialists talk to: chat
completions plus named function invocation (currently only `web_search`).
`OpenAICompletionService` backs completions with ChatOpenAI and web search
with the Exa search API.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .config import Settings, get_settings
from .exceptions import ExternalServiceError
from .models import SearchResult

logger = logging.getLogger(__name__)

# A chat message is {"role": "system" | "user" | "assistant", "content": str}
ChatMessage = Dict[str, str]


# --------------------------------------------------------------------------- #
# Interface
# --------------------------------------------------------------------------- #

class CompletionService(ABC):
    """Chat completion and function invocation."""

    @abstractmethod
    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
        api_key: Optional[str] = None,
    ) -> str:
        """
        Run one chat completion.

        Args:
            messages: Ordered chat messages
            temperature: Sampling temperature
            max_tokens: Completion length cap
            api_key: Per-user key overriding the process-wide one

        Returns:
            The assistant message text

        Raises:
            ExternalServiceError: If the call fails or returns no content
        """

    @abstractmethod
    async def invoke(self, name: str, args: Dict[str, Any]) -> List[SearchResult]:
        """
        Invoke a named function.

        Raises:
            ExternalServiceError: If the function is unknown or the call fails
        """


# --------------------------------------------------------------------------- #
# Message conversion
# --------------------------------------------------------------------------- #

_ROLE_TO_MESSAGE = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def to_langchain_messages(messages: List[ChatMessage]) -> List[BaseMessage]:
    """Convert role/content dicts into LangChain message objects."""
    converted: List[BaseMessage] = []
    for message in messages:
        role = message.get("role", "user")
        message_cls = _ROLE_TO_MESSAGE.get(role)
        if message_cls is None:
            raise ValueError(f"Unknown message role: {role}")
        converted.append(message_cls(content=message.get("content", "")))
    return converted


def parse_exa_results(payload: Dict[str, Any]) -> List[SearchResult]:
    """Map an Exa /search response body to ranked search results."""
    results: List[SearchResult] = []
    for i, item in enumerate(payload.get("results", [])):
        url = item.get("url")
        if not url:
            continue
        results.append(SearchResult(
            url=url,
            name=item.get("title") or "",
            snippet=(item.get("text") or "")[:500],
            host_name=urlparse(url).netloc,
            rank=i + 1,
            date=item.get("publishedDate"),
        ))
    return results


# --------------------------------------------------------------------------- #
# OpenAI + Exa implementation
# --------------------------------------------------------------------------- #

class OpenAICompletionService(CompletionService):
    """ChatOpenAI completions and Exa-backed web search."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Settings to read model, keys and timeouts from
            transport: Optional httpx transport for the search client
        """
        self.settings = settings or get_settings()
        self._transport = transport

    def _chat_model(self, temperature: float, max_tokens: int, api_key: Optional[str]) -> ChatOpenAI:
        return ChatOpenAI(
            model=self.settings.llm_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.settings.llm_timeout,
            api_key=api_key or self.settings.openai_api_key,
        )

    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 1000,
        api_key: Optional[str] = None,
    ) -> str:
        llm = self._chat_model(temperature, max_tokens, api_key)
        try:
            response = await llm.ainvoke(to_langchain_messages(messages))
        except Exception as e:
            logger.warning(f"Completion call failed: {e}")
            raise ExternalServiceError("completion", str(e)) from e

        content = response.content if isinstance(response.content, str) else ""
        if not content.strip():
            raise ExternalServiceError("completion", "No response received from LLM API")
        return content

    async def invoke(self, name: str, args: Dict[str, Any]) -> List[SearchResult]:
        if name == "web_search":
            return await self._web_search(args.get("query", ""), int(args.get("num", 10)))
        raise ExternalServiceError(name, f"Unknown function: {name}")

    async def _web_search(self, query: str, num: int) -> List[SearchResult]:
        if not self.settings.exa_api_key:
            raise ExternalServiceError("web_search", "EXA_API_KEY is not configured")

        url = f"{self.settings.exa_base_url.rstrip('/')}/search"
        body = {
            "query": query,
            "numResults": num,
            "contents": {"text": {"maxCharacters": 500}},
        }
        headers = {
            "x-api-key": self.settings.exa_api_key,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.llm_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=body, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Exa search failed for {query!r}: {e}")
            raise ExternalServiceError("web_search", str(e)) from e

        results = parse_exa_results(payload)
        logger.info(f"Exa search returned {len(results)} results for {query!r}")
        return results
