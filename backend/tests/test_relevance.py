"""
Tests for relevance.py - noise filtering and news source-type derivation.
"""
import pytest

from stablemap.schemas.directory import NewsItem
from stablemap.services.relevance import (
    classify_news_source_type,
    irrelevance_reason,
    is_irrelevant_news,
)


def _item(**kwargs) -> NewsItem:
    base = dict(id="n1", title="Headline", source="Reuters", date="2025-06-01", url="https://reuters.com/x")
    base.update(kwargs)
    return NewsItem(**base)


class TestIrrelevantNews:
    """Price talk, launches, spam and explainers are rejected."""

    @pytest.mark.parametrize("title,group", [
        ("Bitcoin price prediction for 2025", "price_speculation"),
        ("Will XRP reach $10 this year?", "price_speculation"),
        ("ETH hits all-time high", "price_speculation"),
        ("Massive airdrop coming for early users", "token_launch"),
        ("Top 5 crypto exchanges to use in 2025", "exchange_spam"),
        ("Use this referral code for a bonus", "exchange_spam"),
        ("Free trading signals every day", "trading_signals"),
        ("What is a stablecoin?", "explainer"),
        ("How to buy USDC: a beginner's guide", "explainer"),
    ])
    def test_noise_rejected(self, title, group):
        assert irrelevance_reason(title, "") == group
        assert is_irrelevant_news(title, "")

    @pytest.mark.parametrize("title", [
        "Circle partners with Visa on USDC settlement",
        "Paxos receives OCC conditional approval",
        "JPMorgan expands Kinexys to tokenized deposits",
    ])
    def test_strategic_news_kept(self, title):
        assert not is_irrelevant_news(title, "Settlement and custody details.")

    def test_summary_is_checked_too(self):
        assert is_irrelevant_news("Market update", "Analysts say a bull run is starting")

    @pytest.mark.parametrize("url", [
        "https://en.wikipedia.org/wiki/Stablecoin",
        "https://coinmarketcap.com/currencies/usdc/",
        "https://www.binance.com/en/square/post/1",
    ])
    def test_blocked_domains(self, url):
        assert irrelevance_reason("Circle overview", "", url) == "blocked_domain"

    def test_lookalike_domain_not_blocked(self):
        assert not is_irrelevant_news("Circle overview", "", "https://notwikipedia.org/page")


class TestSourceType:
    """source_type is derived from content, not trusted from storage."""

    def test_partnership_title(self):
        assert classify_news_source_type(_item(title="Circle partners with Visa")) == "partnership"

    def test_directory_generated_partnership(self):
        item = _item(title="Circle Partnership: Visa", source="Directory Intelligence", url="#")
        assert classify_news_source_type(item) == "partnership"

    @pytest.mark.parametrize("source", ["Business Wire", "PR Newswire", "GlobeNewswire", "Manual Entry"])
    def test_wire_sources_are_press_releases(self, source):
        assert classify_news_source_type(_item(title="Acme launches product", source=source)) == "press_release"

    def test_missing_url_is_press_release(self):
        assert classify_news_source_type(_item(title="Acme launches product", url="#")) == "press_release"

    def test_announcement_wording_is_press_release(self):
        item = _item(title="Acme today announced a new stablecoin product")
        assert classify_news_source_type(item) == "press_release"

    def test_independent_reporting_is_press(self):
        item = _item(title="Regulators weigh stablecoin rules", summary="Lawmakers debated the bill.")
        assert classify_news_source_type(item) == "press"

    def test_stored_type_is_ignored(self):
        item = _item(title="Regulators weigh stablecoin rules", source_type="press_release")
        assert classify_news_source_type(item) == "press"
