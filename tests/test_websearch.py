import json
from typing import Any

import httpx
import pytest

from app.core import websearch
from app.core.config import Settings
from app.core.errors import ProviderError
from app.core.services import prepare_search_data


class DummyResponse:
    reason_phrase = "OK"

    def __init__(self, status_code: int, payload: dict[str, Any]) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> dict[str, Any]:
        return self._payload

    @property
    def text(self) -> str:
        return json.dumps(self._payload)


def _patch_perplexity(monkeypatch, response: DummyResponse, captured: dict[str, Any] | None = None) -> None:
    class DummyClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def post(self, url: str, *, json=None, headers=None):
            if captured is not None:
                captured.update(url=url, payload=json, headers=headers)
            return response

    monkeypatch.setattr(httpx, "AsyncClient", lambda *args, **kwargs: DummyClient(*args, **kwargs))


def _answer(content: str, citations: list[str] | None = None) -> DummyResponse:
    payload: dict[str, Any] = {"choices": [{"message": {"content": content}}]}
    if citations is not None:
        payload["citations"] = citations
    return DummyResponse(200, payload)


def test_augmented_search_requires_key() -> None:
    assert websearch.is_augmented_search_available(Settings(perplexity_api_key=None)) is False
    assert websearch.is_augmented_search_available(Settings(perplexity_api_key="k")) is True


@pytest.mark.asyncio
async def test_chain_without_providers_returns_static_payload() -> None:
    settings = Settings(perplexity_api_key=None, duckduckgo_enabled=False)
    result = await websearch.search_medical_information("diabetes", settings)
    assert result == prepare_search_data("diabetes")


@pytest.mark.asyncio
async def test_perplexity_json_answer_is_used(monkeypatch) -> None:
    captured: dict[str, Any] = {}
    content = (
        "Here is what I found:\n"
        '{"summary": "Asthma narrows the airways.", "results": ['
        '{"title": "Asthma | NHLBI", "url": "https://www.nhlbi.nih.gov/health/asthma", "snippet": "Overview"}]}'
    )
    _patch_perplexity(monkeypatch, _answer(content, ["https://www.nhlbi.nih.gov/health/asthma"]), captured)
    settings = Settings(perplexity_api_key="pkey")

    result = await websearch.search_medical_information("asthma", settings)

    assert result["summary"] == "Asthma narrows the airways."
    assert result["results"][0]["displayUrl"] == "www.nhlbi.nih.gov › health › asthma"
    assert result["citations"] == ["https://www.nhlbi.nih.gov/health/asthma"]
    assert captured["url"] == "https://api.perplexity.ai/chat/completions"
    assert captured["payload"]["temperature"] == 0.2
    assert captured["headers"]["Authorization"] == "Bearer pkey"


@pytest.mark.asyncio
async def test_perplexity_plain_text_is_reshaped(monkeypatch) -> None:
    content = "Migraines are recurrent headaches. " * 20
    _patch_perplexity(monkeypatch, _answer(content))

    result = await websearch.search_with_perplexity("migraine", Settings(perplexity_api_key="pkey"))

    assert result["title"] == "migraine"
    assert result["summary"].endswith("...")
    assert len(result["summary"]) == 203
    assert result["results"][0]["url"] == "https://medlineplus.gov/search?query=migraine"


@pytest.mark.asyncio
async def test_perplexity_error_status_raises(monkeypatch) -> None:
    _patch_perplexity(monkeypatch, DummyResponse(401, {"error": "unauthorized"}))
    with pytest.raises(ProviderError):
        await websearch.search_with_perplexity("flu", Settings(perplexity_api_key="bad"))


@pytest.mark.asyncio
async def test_failed_provider_falls_through_to_duckduckgo(monkeypatch) -> None:
    _patch_perplexity(monkeypatch, DummyResponse(500, {"error": "down"}))

    def fake_ddg(query: str, region: str, safesearch: str, max_results: int):
        return [{"title": "Flu - CDC", "href": "https://www.cdc.gov/flu/index.html", "body": "Influenza basics"}], None

    monkeypatch.setattr(websearch, "_sync_ddg_search", fake_ddg)
    settings = Settings(perplexity_api_key="pkey", duckduckgo_enabled=True)

    result = await websearch.search_medical_information("flu", settings)

    assert result["results"] == [
        {
            "title": "Flu - CDC",
            "url": "https://www.cdc.gov/flu/index.html",
            "displayUrl": "www.cdc.gov › flu › index.html",
            "snippet": "Influenza basics",
        }
    ]
    assert result["summary"] == "Influenza basics"


@pytest.mark.asyncio
async def test_every_provider_failing_returns_static_payload(monkeypatch) -> None:
    _patch_perplexity(monkeypatch, DummyResponse(500, {"error": "down"}))
    monkeypatch.setattr(websearch, "_sync_ddg_search", lambda *args: ([], "RatelimitException"))
    settings = Settings(perplexity_api_key="pkey", duckduckgo_enabled=True)

    result = await websearch.search_medical_information("sore throat", settings)

    assert result == prepare_search_data("sore throat")
