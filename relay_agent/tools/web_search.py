"""Web search tool: Brave Search results plus the readable text of each page."""

import os
import re
from typing import Any
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from relay_agent.config import WebSearchToolConfig, get_config
from relay_agent.logging import get_logger
from relay_agent.tools.registry import Tool

log = get_logger(__name__)

MIN_RESULTS = 3

_NOISE_TAGS = [
    "script", "style", "link", "meta", "noscript", "template", "svg", "canvas", "iframe",
    "nav", "aside", "header", "footer", "form", "button", "input", "select", "textarea",
]
_NOISE_SELECTORS = [
    '[class*="footer"]',
    '[class*="promo"]',
    '[class*="banner"]',
    '[class*="popup"]',
    '[class*="modal"]',
    '[class*="overlay"]',
    '[class*="social"]',
    '[class*="breadcrumb"]',
    '[class*="pagination"]',
    '[class*="cookie"]',
    '[class*="comment"]',
    '[style*="display:none"]',
    '[style*="visibility:hidden"]',
]


def extract_readable_text(html: str, base_url: str | None = None) -> str:
    """Extract human-readable text from raw HTML, without page chrome."""
    soup = BeautifulSoup(html, "html.parser")

    # Nested matches may already be gone with their ancestor.
    for tag in [*soup(_NOISE_TAGS), *soup.select(", ".join(_NOISE_SELECTORS))]:
        if not tag.decomposed:
            tag.decompose()

    for anchor in soup.find_all("a"):
        href = (anchor.get("href") or "").strip()
        label = anchor.get_text(" ", strip=True)
        if not href or not label:
            continue
        absolute = urljoin(base_url, href) if base_url else href
        anchor.replace_with(f"{label} ({absolute})")

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    lines: list[str] = []
    for line in soup.get_text(separator="\n").splitlines():
        cleaned = re.sub(r"\s+", " ", line).strip()
        if cleaned:
            lines.append(cleaned)

    text = "\n".join(lines)
    if title and not text.startswith(title):
        return f"{title}\n\n{text}" if text else title
    return text


class WebSearchArgs(BaseModel):
    """Input parameters for a web search."""

    query: str = Field(
        min_length=1,
        description='The search query. Example: "latest technology trends"',
    )
    num_of_results: int = Field(
        default=MIN_RESULTS,
        ge=1,
        le=10,
        description="How many top results to read, sorted by relevance. Example: 3",
    )
    reasoning: str | None = Field(
        default=None,
        description="Why did you choose this tool and this particular query?",
    )
    reflection: str | None = Field(
        default=None,
        description="How could the query be improved to get better results?",
    )


class WebSearchTool(Tool):
    """Search the web and read the top pages."""

    name = "web_search"
    description = (
        "Searches the web and returns the readable text of the top-ranked pages, "
        "each headed by its title."
    )
    Args = WebSearchArgs

    def __init__(self, client: httpx.AsyncClient | None = None, config: WebSearchToolConfig | None = None):
        self.config = config
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "Relay Agent/0.1.0 (Web Search Tool)"},
        )

    async def search(self, query: str, count: int, search_cfg: WebSearchToolConfig) -> list[dict[str, str]]:
        """Return ``title``/``url`` pairs from Brave Search, best first."""
        api_key = search_cfg.api_key.strip() or str(os.environ.get("BRAVE_API_KEY", "")).strip()
        if not api_key:
            raise RuntimeError(
                "Missing Brave API key. Set tools.web_search.api_key in config "
                "or BRAVE_API_KEY environment variable."
            )

        try:
            response = await self.client.get(
                search_cfg.base_url,
                params={"q": query, "count": count, "safesearch": search_cfg.safesearch},
                headers={"Accept": "application/json", "X-Subscription-Token": api_key},
                timeout=search_cfg.timeout,
            )
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPStatusError as e:
            log.error("Web search failed", query=query, status=e.response.status_code)
            raise RuntimeError(f"Failed to fetch search results: HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            log.error("Web search failed", query=query, error=str(e))
            raise RuntimeError(f"Failed to fetch search results: {e}") from e

        web_block = payload.get("web", {}) if isinstance(payload, dict) else {}
        results = web_block.get("results", []) if isinstance(web_block, dict) else []
        found: list[dict[str, str]] = []
        for item in results if isinstance(results, list) else []:
            if not isinstance(item, dict):
                continue
            url = str(item.get("url", "") or "").strip()
            if url:
                found.append({"title": str(item.get("title", "") or url).strip(), "url": url})
        log.info("Web search results", query=query, count=len(found))
        return found

    async def fetch_page(self, url: str, search_cfg: WebSearchToolConfig) -> str:
        """Fetch one page and return its readable text, truncated."""
        response = await self.client.get(url, timeout=search_cfg.fetch_timeout)
        response.raise_for_status()
        content = extract_readable_text(response.text, base_url=url)
        if len(content) > search_cfg.max_chars_per_page:
            content = content[: search_cfg.max_chars_per_page] + "\n... [truncated]"
        return content

    async def invoke(self, tool_args: WebSearchArgs, user_message: str) -> str:
        search_cfg = self.config or get_config().tools.web_search
        query = tool_args.query.strip()
        count = max(tool_args.num_of_results, MIN_RESULTS)

        sections: list[str] = []
        for result in (await self.search(query, count, search_cfg))[:count]:
            try:
                content = await self.fetch_page(result["url"], search_cfg)
            except httpx.HTTPError as e:
                log.warning("Page fetch failed", url=result["url"], error=str(e))
                content = "Error fetching content for this link."
            sections.append(f"**{result['title']}**\n{content or 'No readable text found.'}\n")

        if not sections:
            return f"No results found for: {query}"
        return "\n".join(sections)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
