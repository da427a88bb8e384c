"""
Tests for classification.py - category rules, focus and industry.
"""
import pytest

from stablemap.schemas.directory import Category
from stablemap.services.classification import (
    CATEGORY_RULES,
    apply_rules,
    categorize_from_text,
    determine_focus,
    determine_industry,
    focus_scores,
    is_bank,
    is_blockchain_entity,
    is_central_bank,
)


class TestBlockchainEntity:
    """A blockchain network is only Infrastructure (plus Issuer if it issues one)."""

    def test_name_and_consensus_terms(self):
        assert is_blockchain_entity("A proof-of-stake network with 100 validators.", "Stellar Network")

    def test_explicit_layer_statement(self):
        assert is_blockchain_entity("Plasma is a layer 1 blockchain built for stablecoins.", "Plasma")

    def test_name_alone_is_not_enough(self):
        assert not is_blockchain_entity("Provides payments APIs for merchants.", "Chainlink Labs")

    def test_blockchain_collapses_to_infrastructure(self):
        text = "Tempo Network is a layer 1 blockchain for payments, wallets and custody."
        assert categorize_from_text(text, "Tempo Network") == [Category.INFRASTRUCTURE]

    def test_blockchain_that_issues_a_stablecoin(self):
        text = "Celo is a layer 1 blockchain that issues cUSD stablecoins for mobile payments."
        assert categorize_from_text(text, "Celo") == [Category.ISSUER, Category.INFRASTRUCTURE]

    def test_layer_one_network_is_only_infrastructure(self):
        text = "Solana is a high-performance Layer-1 blockchain"
        assert categorize_from_text(text, "Solana") == [Category.INFRASTRUCTURE]

    def test_blockchain_rule_stops_evaluation(self):
        assert CATEGORY_RULES[0].name == "blockchain_entity"
        assert CATEGORY_RULES[0].stop


class TestKeywordTriggers:
    @pytest.mark.parametrize("text,expected", [
        ("Circle is a stablecoin issuer.", Category.ISSUER),
        ("Bridge offers stablecoin orchestration APIs.", Category.INFRASTRUCTURE),
        ("A self-custodial wallet for USDC.", Category.WALLET),
        ("Cross-border payments for merchants.", Category.PAYMENTS),
        ("A DeFi lending protocol with liquidity pools.", Category.DEFI),
        ("Qualified custodian for digital assets.", Category.CUSTODY),
    ])
    def test_single_trigger(self, text, expected):
        assert expected in categorize_from_text(text, "Acme")

    def test_tags_are_ordered_and_unique(self):
        text = "Payments infrastructure with wallets, more payments and more wallets."
        assert categorize_from_text(text, "Acme") == [Category.INFRASTRUCTURE, Category.WALLET, Category.PAYMENTS]

    def test_no_signal_gives_empty_list(self):
        assert categorize_from_text("A bakery in Lyon.", "Boulangerie") == []

    @pytest.mark.parametrize("text,name", [
        ("Solana is a high-performance Layer-1 blockchain", "Solana"),
        ("JPMorgan Chase is a multinational bank offering...", "JPMorgan Chase"),
        ("Payments infrastructure with wallets and custody for merchants.", "Acme"),
    ])
    def test_repeated_calls_agree(self, text, name):
        assert categorize_from_text(text, name) == categorize_from_text(text, name)


class TestSuppression:
    """Banks, central banks, VCs and consultancies are not protocol infrastructure."""

    def test_central_bank_drops_infrastructure(self):
        text = "The Monetary Authority of Singapore is building tokenization infrastructure."
        tags = categorize_from_text(text, "Monetary Authority of Singapore")
        assert Category.CENTRAL_BANKS in tags
        assert Category.INFRASTRUCTURE not in tags
        assert Category.BANKS not in tags

    def test_bank_by_name_drops_infrastructure(self):
        tags = categorize_from_text("Runs settlement network infrastructure for clients.", "JPMorgan Chase")
        assert tags == [Category.BANKS]

    def test_multinational_bank(self):
        tags = categorize_from_text("JPMorgan Chase is a multinational bank offering...", "JPMorgan Chase")
        assert Category.BANKS in tags
        assert Category.INFRASTRUCTURE not in tags

    def test_bank_by_charter_text(self):
        assert Category.BANKS in categorize_from_text("Anchorage is a federally chartered bank.", "Anchorage Digital")

    def test_word_bank_in_unrelated_text_is_not_a_bank(self):
        assert not is_bank("A data bank of token prices.", "Kaiko")

    def test_vc_drops_infrastructure(self):
        text = "A venture capital firm that invests in stablecoin infrastructure."
        tags = categorize_from_text(text, "Dragonfly")
        assert Category.VC in tags
        assert Category.INFRASTRUCTURE not in tags

    def test_consultancy_drops_infrastructure(self):
        tags = categorize_from_text("A consulting firm advising on blockchain infrastructure.", "Acme Advisory")
        assert Category.CONSULTANCY in tags
        assert Category.INFRASTRUCTURE not in tags

    def test_central_bank_by_name(self):
        assert is_central_bank("", "Bank of England")
        assert is_central_bank("It is the central bank of Brazil.", "BCB")
        assert not is_central_bank("Partners with central banks on CBDC pilots.", "Ripple")

    def test_apply_rules_returns_frozenset(self):
        assert apply_rules("Cross-border payments.", "Acme") == frozenset({Category.PAYMENTS})


class TestFocus:
    def test_crypto_native(self):
        text = "A blockchain company building stablecoin and DeFi tools on-chain for web3."
        assert determine_focus(text, "Acme") == "Crypto-First"

    def test_traditional(self):
        text = "A multinational bank, publicly traded on the NYSE, with a wealth management arm."
        assert determine_focus(text, "Acme") == "Crypto-Second"

    def test_tie_is_crypto_second(self):
        text = "A bank that offers stablecoin services."
        crypto, traditional = focus_scores(text, "Acme")
        assert crypto == traditional
        assert determine_focus(text, "Acme") == "Crypto-Second"

    def test_crypto_name_adds_a_signal(self):
        assert focus_scores("", "Uniswap")[0] == 1
        assert focus_scores("", "Acme")[0] == 0


class TestIndustry:
    @pytest.mark.parametrize("text,expected", [
        ("The central bank of Norway.", "Central Banking"),
        ("A venture capital firm.", "Venture Capital"),
        ("A global bank.", "Banking"),
        ("Stablecoin payments for merchants.", "Payments"),
        ("A stablecoin issuer.", "Digital Assets"),
        ("Builds electric vehicles.", "Automotive"),
        ("Makes developer tools.", "Technology"),
    ])
    def test_first_match_wins(self, text, expected):
        assert determine_industry(text) == expected
