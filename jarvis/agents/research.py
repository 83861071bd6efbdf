"""
Research specialist.

Web search through the completion service's `web_search` function, page
scraping and summaries through the web fetcher, and direct completion calls
with the user's own stored API key.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..exceptions import ExternalServiceError, ValidationError
from ..integrations.web.client import WebPageFetcher
from ..llm import ChatMessage, CompletionService
from ..models import AgentType, Context, Response, ResponseType, SearchResult, WebSearch
from ..personality import PersonalityEngine
from ..storage import DataStore
from ..vault import CredentialVault
from .base import BaseAgent, Handler, plural

logger = logging.getLogger(__name__)

SEARCH_RESULT_COUNT = 10
DEFAULT_LLM_SERVICE = "openai"
SUMMARY_INPUT_CHARS = 4000

_SUMMARY_SYSTEM = "You are a helpful assistant that creates concise summaries of web content."
_JARVIS_SYSTEM = (
    "You are JARVIS, a highly intelligent and helpful AI assistant. "
    "Respond in a professional yet friendly manner."
)
_RESEARCH_SYSTEM = (
    "You are a research assistant. Using only the search results provided, "
    "write a short briefing that answers the query and cites sources by number."
)


def validate_url(url: str) -> str:
    """Return the URL if it is an absolute http(s) URL, else raise ValidationError."""
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid URL format", details={"url": url})
    return url.strip()


def _results_digest(results: List[SearchResult]) -> str:
    lines = []
    for r in results:
        lines.append(f"[{r.rank}] {r.name} ({r.url})\n{r.snippet}")
    return "\n\n".join(lines)


class ResearchAgent(BaseAgent):
    agent_type = AgentType.RESEARCH

    def __init__(
        self,
        store: DataStore,
        personality: PersonalityEngine,
        llm: CompletionService,
        fetcher: WebPageFetcher,
        vault: Optional[CredentialVault] = None,
    ):
        super().__init__(store, personality)
        self.llm = llm
        self.fetcher = fetcher
        self.vault = vault

    def handlers(self) -> Dict[str, Handler]:
        return {
            "web_search": self.perform_search,
            "research": self.research,
            "scrape_url": self.scrape_url,
            "summarize_web_page": self.summarize_web_page,
            "ask_llm": self.call_llm_api,
        }

    # ----------------------------------------------------------------------- #
    # Search
    # ----------------------------------------------------------------------- #

    async def _search(self, query: str, context: Context) -> WebSearch:
        results = await self.llm.invoke("web_search", {"query": query, "num": SEARCH_RESULT_COUNT})
        return self.store.insert_web_search(WebSearch(
            user_id=context.user_id,
            query=query,
            results=[r.model_dump() for r in results],
            urls=[r.url for r in results],
        ))

    async def perform_search(self, params: Dict[str, Any], context: Context) -> Response:
        self.require(params, "query", message="Search query is required")
        query = str(params["query"]).strip()
        web_search = await self._search(query, context)
        count = len(web_search.results)

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve conducted a thorough search for "{query}" and found {plural(count, "result")}, Sir/Madam.',
            f'Found {plural(count, "result")} for "{query}"',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.LINK,
            raw_content={"query": query, "results": web_search.results, "web_search": web_search},
            humor_key="search_completed",
            completion="Web search completed successfully.",
        )

    async def research(self, params: Dict[str, Any], context: Context) -> Response:
        """Search, then brief the results with a completion call."""
        self.require(params, "query", message="Research query is required")
        query = str(params["query"]).strip()
        results = await self.llm.invoke("web_search", {"query": query, "num": SEARCH_RESULT_COUNT})

        prefs = self.preferences(context)
        summary = None
        if results:
            summary = await self.llm.complete(
                [
                    {"role": "system", "content": _RESEARCH_SYSTEM},
                    {"role": "user", "content": f"Query: {query}\n\nResults:\n{_results_digest(results)}"},
                ],
                temperature=prefs.temperature,
                max_tokens=prefs.max_tokens,
            )

        web_search = self.store.insert_web_search(WebSearch(
            user_id=context.user_id,
            query=query,
            results=[r.model_dump() for r in results],
            urls=[r.url for r in results],
            summary=summary,
        ))

        if summary:
            content = summary
        else:
            content = self.personality.phrase(
                prefs,
                f'I\'m afraid my research on "{query}" turned up nothing, Sir/Madam.',
                f'No results for "{query}"',
            )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.LINK,
            raw_content={"query": query, "summary": summary, "web_search": web_search},
            acknowledgment=self.personality.phrase(prefs, "I shall conduct the research, Sir/Madam.", "I'll look into it."),
            completion="Your research has been completed.",
        )

    # ----------------------------------------------------------------------- #
    # Pages
    # ----------------------------------------------------------------------- #

    async def scrape_url(self, params: Dict[str, Any], context: Context) -> Response:
        self.require(params, "url", message="URL is required")
        url = validate_url(str(params["url"]))
        page = await self.fetcher.fetch(url)

        web_search = self.store.insert_web_search(WebSearch(
            user_id=context.user_id,
            query=f"Scrape: {url}",
            results=[{
                "url": url,
                "title": page.title or "Scraped Content",
                "snippet": page.snippet,
                "content": page.text,
            }],
            urls=[url],
        ))

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f"I've successfully scraped the content from {url} for you, Sir/Madam.",
            f"Content from {url} has been scraped successfully",
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.LINK,
            raw_content={"url": url, "content": page.text, "web_search": web_search},
            humor_key="page_scraped",
            completion="Web content scraped successfully.",
        )

    async def summarize_web_page(self, params: Dict[str, Any], context: Context) -> Response:
        self.require(params, "url", message="URL is required")
        url = validate_url(str(params["url"]))
        page = await self.fetcher.fetch(url)
        prefs = self.preferences(context)

        summary = await self.llm.complete(
            [
                {"role": "system", "content": _SUMMARY_SYSTEM},
                {"role": "user", "content": (
                    "Please provide a concise summary of the following content:\n\n"
                    f"{page.text[:SUMMARY_INPUT_CHARS]}"
                )},
            ],
            temperature=prefs.temperature,
            max_tokens=prefs.max_tokens,
        )

        web_search = self.store.insert_web_search(WebSearch(
            user_id=context.user_id,
            query=f"Summarize: {url}",
            results=[{
                "url": url,
                "title": page.title or "Summarized Content",
                "snippet": summary[:200],
                "summary": summary,
            }],
            urls=[url],
            summary=summary,
        ))

        content = self.personality.phrase(
            prefs,
            f"I've generated a comprehensive summary of the web page {url} for you, Sir/Madam.",
            f"Web page {url} has been summarized successfully",
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.LINK,
            raw_content={"url": url, "summary": summary, "web_search": web_search},
            humor_key="page_summarized",
            completion="Web page summarized successfully.",
        )

    # ----------------------------------------------------------------------- #
    # Direct completion with the user's key
    # ----------------------------------------------------------------------- #

    async def call_llm_api(self, params: Dict[str, Any], context: Context) -> Response:
        """Send a prompt to the completion service with the user's stored key."""
        self.require(params, "prompt", message="No prompt provided for LLM API call")
        service_name = params.get("service_name") or DEFAULT_LLM_SERVICE

        if self.vault is None:
            logger.warning("Credential vault is not configured; no stored API keys available")
            api_key = None
        else:
            api_key = self.vault.get_key(context.user_id, service_name)
        if not api_key:
            raise ExternalServiceError(service_name, f"No API key found for service: {service_name}")

        prefs = self.preferences(context)
        messages: List[ChatMessage] = [
            {"role": "system", "content": _JARVIS_SYSTEM},
            {"role": "user", "content": str(params["prompt"])},
        ]
        result = await self.llm.complete(
            messages,
            temperature=prefs.temperature,
            max_tokens=prefs.max_tokens,
            api_key=api_key,
        )
        return self.success(
            result, prefs, context,
            response_type=ResponseType.TEXT,
            raw_content={"result": result, "service_name": service_name},
            decorate=False,
        )
