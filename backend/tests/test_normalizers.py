"""
Tests for normalizers.py - titles, source labels, amounts and websites.
"""
import pytest

from stablemap.schemas.directory import SearchResult
from stablemap.services.normalizers import (
    clean_search_title,
    dedupe_results_by_url,
    format_financial_amount,
    looks_like_url,
    normalize_title_key,
    parse_amount,
    resolve_source_name,
    sanitize_website,
    truncate_text,
)
from stablemap.services.sources import SourceConfig


class TestCleanSearchTitle:
    """Search titles lose site suffixes and never stay as bare domains."""

    @pytest.mark.parametrize("title,expected", [
        ("Circle launches EURC - CoinDesk", "Circle launches EURC"),
        ("Paxos gets OCC charter | Reuters", "Paxos gets OCC charter"),
        ("Plain headline", "Plain headline"),
    ])
    def test_site_suffix_stripped(self, title, expected):
        assert clean_search_title(title) == expected

    def test_domain_title_replaced_by_first_sentence(self):
        snippet = "Circle launched EURC in Europe today. More detail follows here."
        assert clean_search_title("coindesk.com", snippet) == "Circle launched EURC in Europe today"

    def test_url_title_with_long_snippet_cut_at_word_boundary(self):
        snippet = "word " * 60
        title = clean_search_title("https://example.com/a", snippet)
        assert len(title) <= 120
        assert not title.endswith(" ")

    def test_empty_inputs_give_placeholder(self):
        assert clean_search_title("", "") == "Untitled"

    @pytest.mark.parametrize("value,expected", [
        ("https://x.com/a", True),
        ("www.coindesk.com", True),
        ("coindesk.com", True),
        ("Circle raises $50M", False),
        ("", False),
    ])
    def test_looks_like_url(self, value, expected):
        assert looks_like_url(value) is expected


class TestResolveSourceName:
    """Publication labels come from the registry, then the hostname."""

    def test_registry_match(self):
        assert resolve_source_name("https://www.coindesk.com/markets/x") == "CoinDesk"

    def test_subdomain_registry_match(self):
        assert resolve_source_name("https://markets.businessinsider.com/news/x") == "Business Insider"

    def test_display_link_used_for_redirect_urls(self):
        url = "https://vertexaisearch.cloud.google.com/grounding-api-redirect/abc"
        assert resolve_source_name(url, "theblock.co") == "The Block"

    def test_unknown_host_gets_derived_label(self):
        assert resolve_source_name("https://www.stable-insights.io/post") == "Stable Insights"

    def test_excluded_source_falls_back_to_label(self):
        config = SourceConfig(excluded_domains=frozenset({"coindesk.com"}))
        assert resolve_source_name("https://www.coindesk.com/x", config=config) == "Coindesk"

    def test_nothing_usable(self):
        assert resolve_source_name("", "") == "Web"


class TestAmounts:
    """Money amounts are re-rendered in $K / $M / $B notation."""

    @pytest.mark.parametrize("raw,expected", [
        ("$1.5 billion", "$1.5B"),
        ("450M", "$450M"),
        ("2,000,000", "$2M"),
        ("$250 thousand", "$250K"),
        ("$1.1B", "$1.1B"),
        ("undisclosed", "undisclosed"),
        ("", ""),
    ])
    def test_format_financial_amount(self, raw, expected):
        assert format_financial_amount(raw) == expected

    def test_parse_amount(self):
        assert parse_amount("$1.1B") == pytest.approx(1.1e9)
        assert parse_amount("no number here") is None


class TestSanitizeWebsite:
    """Websites are normalised to https URLs or rejected."""

    @pytest.mark.parametrize("raw,expected", [
        ("circle.com", "https://circle.com"),
        ("circle.com.com/", "https://circle.com"),
        ("HTTPS://Circle.com/about/", "https://circle.com/about"),
        ("http://paxos.com", "http://paxos.com"),
        ("ftp://files.circle.com", ""),
        ("not a url", ""),
        ("", ""),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_website(raw) == expected


class TestMisc:
    def test_truncate_appends_marker_only_when_cut(self):
        assert truncate_text("abcdef", 10, "...") == "abcdef"
        assert truncate_text("abcdef", 3, "...") == "abc..."

    def test_title_key_ignores_punctuation_and_case(self):
        assert normalize_title_key("Circle & Visa: USDC!") == normalize_title_key("circle visa usdc")

    def test_dedupe_by_url_ignores_www_and_trailing_slash(self):
        results = [
            SearchResult(title="A", link="https://www.circle.com/about/"),
            SearchResult(title="B", link="https://circle.com/about"),
            SearchResult(title="C", link="https://circle.com/blog"),
        ]
        assert [r.title for r in dedupe_results_by_url(results)] == ["A", "C"]
