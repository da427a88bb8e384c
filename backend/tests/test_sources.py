"""
Tests for sources.py - the trusted source registry and site: biasing.
"""
import random
from unittest.mock import patch

from stablemap.schemas.directory import SearchResult
from stablemap.services.sources import (
    TRUSTED_SOURCES,
    SourceConfig,
    TrustedSource,
    active_sources,
    build_site_clause,
    host_of,
    is_trusted_url,
    lookup_source,
    sort_trusted_first,
)


class TestRegistry:
    def test_domains_are_unique(self):
        domains = [s.domain for s in TRUSTED_SOURCES]
        assert len(domains) == len(set(domains))

    def test_host_of_strips_www_and_path(self):
        assert host_of("https://www.CoinDesk.com/markets/x?y=1") == "coindesk.com"
        assert host_of("theblock.co/post/1") == "theblock.co"
        assert host_of("") == ""

    def test_lookup_exact_and_subdomain(self):
        assert lookup_source("reuters.com").name == "Reuters"
        assert lookup_source("www.reuters.com").name == "Reuters"
        assert lookup_source("markets.businessinsider.com").name == "Business Insider"
        assert lookup_source("example.com") is None

    def test_longer_domain_not_matched_as_suffix(self):
        assert lookup_source("fakereuters.com") is None

    def test_excluded_domains_are_inactive(self):
        config = SourceConfig().with_excluded(["https://www.coindesk.com/"])
        assert "coindesk.com" in config.excluded_domains
        assert all(s.domain != "coindesk.com" for s in active_sources(config))
        assert not is_trusted_url("https://coindesk.com/x", config)

    def test_custom_sources_are_active(self):
        custom = TrustedSource("stableinsider.io", "Stable Insider", "crypto")
        config = SourceConfig(custom_sources=(custom,))
        assert lookup_source("stableinsider.io", config) == custom

    def test_from_settings_reads_excluded_domains(self):
        with patch("stablemap.services.sources.get_settings") as mock_settings:
            mock_settings.return_value.EXCLUDED_SOURCE_DOMAINS = "coindesk.com, www.decrypt.co"
            config = SourceConfig.from_settings()
        assert config.excluded_domains == frozenset({"coindesk.com", "decrypt.co"})


class TestSiteClause:
    def test_clause_shape_and_size(self):
        clause = build_site_clause(k=4, rng=random.Random(1))
        assert clause.startswith("(") and clause.endswith(")")
        assert clause.count("site:") == 4
        assert clause.count(" OR ") == 3

    def test_same_seed_same_clause(self):
        assert build_site_clause(rng=random.Random(3)) == build_site_clause(rng=random.Random(3))

    def test_tiers_filter_pool(self):
        clause = build_site_clause(k=50, rng=random.Random(0), tiers=["regulatory"])
        assert "site:sec.gov" in clause
        assert "site:coindesk.com" not in clause

    def test_excluded_domains_never_picked(self):
        config = SourceConfig(excluded_domains=frozenset({"coindesk.com"}))
        for seed in range(20):
            assert "site:coindesk.com)" not in build_site_clause(config, k=10, rng=random.Random(seed))
            assert "site:coindesk.com " not in build_site_clause(config, k=10, rng=random.Random(seed))

    def test_empty_pool_gives_empty_clause(self):
        assert build_site_clause(tiers=["nonexistent"]) == ""


class TestSortTrustedFirst:
    def test_trusted_results_first_and_stable(self):
        results = [
            SearchResult(title="blog", link="https://someblog.net/a"),
            SearchResult(title="reuters", link="https://www.reuters.com/a"),
            SearchResult(title="other", link="https://other.org/a"),
            SearchResult(title="block", link="https://theblock.co/a"),
        ]
        ordered = [r.title for r in sort_trusted_first(results)]
        assert ordered == ["reuters", "block", "blog", "other"]
