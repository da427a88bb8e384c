"""
Tests for the connectors - grounding response mapping, HTML extraction,
NewsAPI parsing and the concurrent search fan-out.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from stablemap.core.config import Settings
from stablemap.core.errors import ConnectorError
from stablemap.schemas.directory import SearchResult
from stablemap.services.connectors import SearchQuery, SearchResponse, run_searches
from stablemap.services.connectors.google_search import (
    GoogleSearchConnector,
    build_search_prompt,
    parse_grounding_response,
)
from stablemap.services.connectors.news_api import NewsApiConnector, parse_articles
from stablemap.services.connectors.url_fetcher import TRUNCATION_MARKER, UrlFetcher, html_to_text


PROXY_URI = "https://vertexaisearch.cloud.google.com/grounding-api-redirect/abc"

GROUNDED = {
    "candidates": [
        {
            "content": {"parts": [{"text": "Circle and Visa expanded USDC settlement."}]},
            "groundingMetadata": {
                "groundingChunks": [
                    {"web": {"uri": PROXY_URI, "title": "coindesk.com"}},
                    {"web": {"uri": "https://www.reuters.com/markets/x", "title": "Visa expands USDC - Reuters"}},
                ],
                "groundingSupports": [
                    {"segment": {"text": "Circle partners with Visa."}, "groundingChunkIndices": [0]},
                    {"segment": {"text": "Visa expands USDC."}, "groundingChunkIndices": [1, 0]},
                ],
                "searchEntryPoint": {
                    "renderedContent": (
                        '<a href="https://www.coindesk.com/business/circle-visa">CoinDesk</a>'
                        '<a href="https://www.google.com/search?q=circle">more</a>'
                    )
                },
            },
        }
    ]
}


# ---------------------------------------------------------------------------
# Google grounding search
# ---------------------------------------------------------------------------

class TestSearchPrompt:
    def test_all_modifiers(self):
        prompt = build_search_prompt("stablecoin", date_restrict="m1", site_search="circle.com", sort="date")
        assert prompt == "stablecoin site:circle.com from the past month, most recent first"

    def test_existing_site_clause_not_repeated(self):
        assert build_search_prompt("site:circle.com usdc", site_search="circle.com") == "site:circle.com usdc"

    def test_unknown_restrict_ignored(self):
        assert build_search_prompt("usdc", date_restrict="x9") == "usdc"


class TestGroundingResponse:
    def test_chunks_become_results(self):
        response = parse_grounding_response(GROUNDED)
        assert response.model_summary == "Circle and Visa expanded USDC settlement."
        first, second = response.results

        # Proxy URL swapped for the real one; domain-only title replaced by a headline
        assert first.link == "https://www.coindesk.com/business/circle-visa"
        assert first.display_link == "www.coindesk.com"
        assert first.snippet == "Circle partners with Visa. Visa expands USDC."
        assert first.title == "Circle partners with Visa"

        assert second.title == "Visa expands USDC"
        assert second.snippet == "Visa expands USDC."
        assert second.display_link == "www.reuters.com"

    def test_unresolved_proxy_uses_title_domain(self):
        data = {
            "candidates": [
                {
                    "groundingMetadata": {
                        "groundingChunks": [{"web": {"uri": PROXY_URI, "title": "CoinDesk.com"}}],
                    }
                }
            ]
        }
        result = parse_grounding_response(data).results[0]
        assert result.link == PROXY_URI
        assert result.display_link == "coindesk.com"

    def test_result_cap_and_empty(self):
        assert len(parse_grounding_response(GROUNDED, num=1).results) == 1
        assert parse_grounding_response({}).results == []


class TestGoogleSearchConnector:
    def test_blank_query_short_circuits(self):
        connector = GoogleSearchConnector()
        assert asyncio.run(connector.search("  ")).results == []

    def test_missing_key_raises(self):
        with patch("stablemap.services.connectors.google_search.settings", Settings(GOOGLE_AI_API_KEY=None)):
            connector = GoogleSearchConnector()
            with pytest.raises(ConnectorError):
                asyncio.run(connector.search("usdc"))

    def test_cache_hit_skips_request(self):
        cached = {"results": [{"title": "Cached", "link": "https://a.com/x"}], "model_summary": "s"}
        with patch("stablemap.services.connectors.google_search.settings", Settings(GOOGLE_AI_API_KEY="k")), \
                patch("stablemap.services.connectors.google_search.cached_get", AsyncMock(return_value=cached)), \
                patch.object(GoogleSearchConnector, "_generate", AsyncMock()) as generate:
            response = asyncio.run(GoogleSearchConnector().search("usdc"))
        assert [r.title for r in response.results] == ["Cached"]
        assert response.model_summary == "s"
        generate.assert_not_called()

    def test_miss_requests_and_stores(self):
        cache = AsyncMock(return_value=None)
        with patch("stablemap.services.connectors.google_search.settings", Settings(GOOGLE_AI_API_KEY="k")), \
                patch("stablemap.services.connectors.google_search.cached_get", cache), \
                patch.object(GoogleSearchConnector, "_generate", AsyncMock(return_value=GROUNDED)):
            response = asyncio.run(GoogleSearchConnector().search("usdc", num=5))
        assert len(response.results) == 2
        assert cache.await_count == 2
        assert "set_value" in cache.await_args.kwargs


# ---------------------------------------------------------------------------
# URL fetcher
# ---------------------------------------------------------------------------

class TestHtmlToText:
    def test_title_and_visible_text(self):
        html = (
            "<html><head><title> Circle  Careers </title><style>.x{color:red}</style></head>"
            "<body><h1>Jobs</h1><p>Head of   Partnerships</p><script>var a = 1;</script></body></html>"
        )
        title, text = html_to_text(html)
        assert title == "Circle Careers"
        assert text == "Jobs\nHead of Partnerships"

    def test_empty_document(self):
        assert html_to_text("") == ("", "")


class TestUrlFetcher:
    @pytest.mark.parametrize("url", ["", "ftp://files.example.com/a", "not a url", "https://"])
    def test_non_http_urls(self, url):
        assert asyncio.run(UrlFetcher().fetch(url)) is None

    def test_download_failure_is_flagged(self):
        failing = AsyncMock(side_effect=ConnectorError("url_fetcher", "Failed to fetch URL: 403", status_code=403))
        with patch.object(UrlFetcher, "_download", failing):
            page = asyncio.run(UrlFetcher().fetch("https://jobs.example.com/1"))
        assert page.fetch_failed

    def test_transport_errors_after_retries_are_flagged(self):
        get = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        with patch.object(httpx.AsyncClient, "get", get):
            page = asyncio.run(UrlFetcher().fetch("https://jobs.example.com/1"))
        assert page.fetch_failed
        assert get.await_count == 3

    def test_long_pages_are_truncated(self):
        with patch.object(UrlFetcher, "_download", AsyncMock(return_value="<p>abcdefghijklmnop</p>")):
            fetcher = UrlFetcher()
            fetcher.max_chars = 10
            page = asyncio.run(fetcher.fetch("https://jobs.example.com/1"))
        assert page.truncated
        assert page.content == "abcdefghij" + TRUNCATION_MARKER
        assert page.content_length == 16
        assert not page.fetch_failed

    def test_empty_page_counts_as_failed(self):
        with patch.object(UrlFetcher, "_download", AsyncMock(return_value="<script>app()</script>")):
            page = asyncio.run(UrlFetcher().fetch("https://jobs.example.com/1"))
        assert page.fetch_failed


# ---------------------------------------------------------------------------
# NewsAPI
# ---------------------------------------------------------------------------

class TestNewsApi:
    def test_parse_articles(self):
        data = {
            "articles": [
                {
                    "title": "Circle files for IPO",
                    "source": {"name": "Reuters"},
                    "publishedAt": "2025-06-10T08:00:00Z",
                    "description": "Circle filed.",
                    "url": "https://www.reuters.com/a",
                    "author": "",
                },
                {"title": None, "source": None},
            ]
        }
        first, second = parse_articles(data)
        assert (first.source, first.date, first.author) == ("Reuters", "2025-06-10", None)
        assert (second.title, second.source, second.date, second.url) == ("", "Unknown", "", "#")

    def test_missing_key_raises(self):
        with patch("stablemap.services.connectors.news_api.settings", Settings(NEWS_API_KEY=None)):
            with pytest.raises(ConnectorError):
                asyncio.run(NewsApiConnector().everything("stablecoin"))

    def test_error_status_raises(self):
        with patch("stablemap.services.connectors.news_api.settings", Settings(NEWS_API_KEY="k")), \
                patch.object(NewsApiConnector, "_get", AsyncMock(return_value={"status": "error", "message": "rateLimited"})):
            with pytest.raises(ConnectorError, match="rateLimited"):
                asyncio.run(NewsApiConnector().everything("stablecoin"))


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

class BranchSearch:
    async def search(self, query, num=10, date_restrict=None, site_search=None, sort=None):
        if query == "bad":
            raise ConnectorError("fake", "boom")
        if query == "worse":
            raise RuntimeError("unexpected")
        return SearchResponse(
            results=[
                SearchResult(title=f"{query} a", link="https://www.a.com/x/"),
                SearchResult(title=f"{query} b", link=f"https://b.com/{query}"),
            ],
            model_summary=f"summary {query}",
        )


class TestRunSearches:
    def test_failed_branches_contribute_nothing(self):
        queries = [SearchQuery("one"), SearchQuery("bad"), SearchQuery("worse"), SearchQuery("two")]
        response = asyncio.run(run_searches(BranchSearch(), queries))
        assert [r.link for r in response.results] == [
            "https://www.a.com/x/",
            "https://b.com/one",
            "https://b.com/two",
        ]
        assert response.model_summary == "summary one\n\nsummary two"
