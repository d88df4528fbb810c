from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Dict, List, Tuple
from urllib.parse import quote, urlparse

import httpx
from ddgs import DDGS

from app.core.config import Settings, get_settings
from app.core.errors import ProviderError
from app.core.logger import get_logger
from app.core.services import prepare_search_data

logger = get_logger("search")

PERPLEXITY_SYSTEM_PROMPT = (
    "You are a medical search assistant focused on providing accurate medical information.\n"
    "For the following query, provide a structured search result with:\n"
    "1. A brief summary of the topic (2-3 sentences)\n"
    "2. A list of the most relevant sources with their URL and a brief snippet\n"
    "3. If available, key facts about the medical topic\n"
    "Please be concise, accurate, and provide only evidence-based information.\n"
    'Format your response as detailed JSON with: { "summary": "...", "results": '
    '[{"title": "...", "url": "...", "displayUrl": "...", "snippet": "..."}] }'
)

_SUMMARY_CHARS = 200
_SNIPPET_CHARS = 150

SearchProvider = Callable[[str, Settings], Awaitable[Dict[str, Any]]]


def _medlineplus_url(query: str) -> str:
    return f"https://medlineplus.gov/search?query={quote(query, safe='')}"


def _extract_json(text: str) -> str:
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        return match.group(0)
    return "{}"


def _display_url(url: str) -> str:
    parsed = urlparse(url or "")
    if not parsed.netloc:
        return url or ""
    parts = [parsed.netloc] + [p for p in parsed.path.split("/") if p]
    return " › ".join(parts[:4])


def _clip(text: str, limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _normalize_result(item: Any) -> Dict[str, str] | None:
    if not isinstance(item, dict):
        return None
    url = str(item.get("url") or item.get("href") or "").strip()
    title = str(item.get("title") or "").strip()
    if not url and not title:
        return None
    return {
        "title": title or url,
        "url": url,
        "displayUrl": str(item.get("displayUrl") or _display_url(url)),
        "snippet": str(item.get("snippet") or item.get("body") or "").strip(),
    }


def _shape_perplexity_content(query: str, content: str) -> Dict[str, Any]:
    """Turn the model's answer into the search payload shape."""
    try:
        parsed = json.loads(_extract_json(content))
    except ValueError:
        parsed = {}
    results = [r for r in (_normalize_result(i) for i in parsed.get("results") or []) if r]
    summary = parsed.get("summary")
    if isinstance(summary, str) and summary.strip():
        payload: Dict[str, Any] = {
            "title": str(parsed.get("title") or query),
            "summary": summary.strip(),
            "results": results,
        }
        featured = parsed.get("featuredInfo")
        if isinstance(featured, dict) and isinstance(featured.get("content"), list):
            payload["featuredInfo"] = {
                "title": str(featured.get("title") or ""),
                "content": [str(line) for line in featured["content"]],
                "source": str(featured.get("source") or ""),
            }
        return payload
    # Plain text answer
    return {
        "title": query,
        "summary": _clip(content, _SUMMARY_CHARS),
        "results": [
            {
                "title": "Medical Information",
                "url": _medlineplus_url(query),
                "displayUrl": "medlineplus.gov",
                "snippet": _clip(content, _SNIPPET_CHARS),
            }
        ],
    }


def is_augmented_search_available(settings: Settings | None = None) -> bool:
    settings = settings or get_settings()
    return bool(settings.perplexity_api_key)


async def search_with_perplexity(query: str, settings: Settings | None = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    if not settings.perplexity_api_key:
        raise ProviderError("perplexity", "PERPLEXITY_API_KEY is not configured")
    url = f"{settings.perplexity_base_url.rstrip('/')}/chat/completions"
    payload = {
        "model": settings.perplexity_model,
        "messages": [
            {"role": "system", "content": PERPLEXITY_SYSTEM_PROMPT},
            {"role": "user", "content": f"I need authoritative medical information about: {query}"},
        ],
        "temperature": 0.2,
        "max_tokens": 1024,
        "search_domain_filter": [],
        "search_recency_filter": "month",
        "return_related_questions": False,
        "frequency_penalty": 1,
    }
    headers = {
        "Authorization": f"Bearer {settings.perplexity_api_key}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.perplexity_timeout_sec)) as client:
        try:
            resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError("perplexity", f"request failed: {exc.__class__.__name__}") from exc
        if resp.status_code >= 400:
            raise ProviderError("perplexity", f"HTTP {resp.status_code}: {(resp.text or '').strip()[:300]}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError("perplexity", "invalid JSON body") from exc

    choices = data.get("choices") or []
    content = ((choices[0] if choices else {}).get("message") or {}).get("content") or ""
    if not content.strip():
        raise ProviderError("perplexity", "empty answer")
    result = _shape_perplexity_content(query, content.strip())
    citations = data.get("citations")
    if isinstance(citations, list) and citations:
        result["citations"] = [str(c) for c in citations]
    return result


def _sync_ddg_search(query: str, region: str, safesearch: str, max_results: int) -> Tuple[List[dict[str, Any]], str | None]:
    try:
        items = DDGS().text(query, region=region, safesearch=safesearch, max_results=max_results) or []
        return list(items)[:max_results], None
    except Exception as exc:  # pragma: no cover - network dependent
        return [], exc.__class__.__name__


async def search_duckduckgo(query: str, settings: Settings | None = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    loop = asyncio.get_running_loop()
    items, error = await loop.run_in_executor(
        None,
        _sync_ddg_search,
        query,
        settings.duckduckgo_region,
        settings.duckduckgo_safe_search,
        settings.duckduckgo_max_results,
    )
    if error:
        raise ProviderError("duckduckgo", error)
    results = [r for r in (_normalize_result(i) for i in items) if r]
    if not results:
        raise ProviderError("duckduckgo", "no results")
    return {
        "title": query,
        "summary": _clip(results[0]["snippet"], _SUMMARY_CHARS) or f"Information about {query}",
        "results": results,
    }


def _provider_chain(settings: Settings) -> List[Tuple[str, SearchProvider]]:
    chain: List[Tuple[str, SearchProvider]] = []
    if is_augmented_search_available(settings):
        chain.append(("perplexity", search_with_perplexity))
    if settings.duckduckgo_enabled:
        chain.append(("duckduckgo", search_duckduckgo))
    return chain


async def search_medical_information(query: str, settings: Settings | None = None) -> Dict[str, Any]:
    """Search with each configured provider in turn; static content closes the chain."""
    settings = settings or get_settings()
    topic = (query or "").strip()
    if topic:
        for name, provider in _provider_chain(settings):
            try:
                result = await provider(topic, settings)
            except ProviderError as exc:
                logger.warning("Search provider failed: %s", exc, extra={"provider": name})
                continue
            except Exception as exc:
                logger.error("Search provider crashed: %s", exc, extra={"provider": name})
                continue
            logger.info("Search answered by provider", extra={"provider": name, "query": topic})
            return result
    return prepare_search_data(topic)
