"""
Unit tests for market allocation

Tests cover:
- Shares summing to one over active firms
- Bankrupt firms excluded from the market
- Price and marketing response
- Median reference price and degenerate inputs
"""

import math

import numpy as np
import pytest

from companies import Balance, Company, CompanyStatus, Decisions
from config import CONFIG
from market import allocate_market, reference_price


def make_company(company_id, status=CompanyStatus.ACTIVE):
    balance = Balance(
        cash=100000.0,
        inventory_units=0.0,
        fixed_assets_net=250000.0,
        equity=350000.0,
        debt=0.0,
        machines=5,
        workers=10,
    )
    return Company(id=company_id, name=company_id.upper(), balance=balance, status=status)


def make_decisions(price=30.0, marketing=35000.0):
    return Decisions(price=price, marketing=marketing, workers=10, production_target=5000.0)


class TestAllocateMarket:
    """Test suite for allocate_market"""

    def test_shares_sum_to_one(self):
        """Active shares always add up to 1"""
        companies = [make_company(f"f{i}") for i in range(4)]
        decisions = {
            "f0": make_decisions(price=12.0, marketing=0.0),
            "f1": make_decisions(price=30.0, marketing=90000.0),
            "f2": make_decisions(price=55.0, marketing=1000.0),
            "f3": make_decisions(price=31.0, marketing=35000.0),
        }

        shares = allocate_market(companies, decisions)

        assert sum(shares.values()) == pytest.approx(1.0, abs=1e-12)
        assert all(0.0 <= s <= 1.0 for s in shares.values())

    def test_symmetric_firms_split_evenly(self):
        """Identical decisions give identical shares"""
        companies = [make_company(f"f{i}") for i in range(4)]
        decisions = {c.id: make_decisions() for c in companies}

        shares = allocate_market(companies, decisions)

        for share in shares.values():
            assert share == pytest.approx(0.25, abs=1e-12)

    def test_bankrupt_firm_gets_zero_share(self):
        """Bankrupt firms are left out; the rest still sum to 1"""
        companies = [
            make_company("a"),
            make_company("b", status=CompanyStatus.BANKRUPT),
            make_company("c"),
        ]
        decisions = {c.id: make_decisions() for c in companies}

        shares = allocate_market(companies, decisions)

        assert shares["b"] == 0.0
        assert shares["a"] == pytest.approx(0.5)
        assert shares["c"] == pytest.approx(0.5)

    def test_no_active_firms_returns_zeros(self):
        """With nobody active every share is 0"""
        companies = [make_company(f"f{i}", status=CompanyStatus.BANKRUPT) for i in range(3)]
        decisions = {c.id: make_decisions() for c in companies}

        shares = allocate_market(companies, decisions)

        assert shares == {"f0": 0.0, "f1": 0.0, "f2": 0.0}

    def test_bankrupt_firm_without_decisions_is_ignored(self):
        """Decisions are only read for active firms"""
        companies = [make_company("a"), make_company("b", status=CompanyStatus.BANKRUPT)]

        shares = allocate_market(companies, {"a": make_decisions()})

        assert shares == {"a": pytest.approx(1.0), "b": 0.0}

    def test_undercutting_the_median_increases_share(self):
        """Dropping price below the median raises the firm's share"""
        companies = [make_company(f"f{i}") for i in range(4)]
        base = {c.id: make_decisions(price=30.0) for c in companies}
        cheaper = dict(base)
        cheaper["f0"] = make_decisions(price=24.0)

        before = allocate_market(companies, base)["f0"]
        after = allocate_market(companies, cheaper)["f0"]

        assert after > before

    def test_more_marketing_never_lowers_share(self):
        """Share is non-decreasing in marketing spend"""
        companies = [make_company(f"f{i}") for i in range(3)]
        previous = 0.0
        for spend in [0.0, 100.0, 5000.0, 35000.0, 200000.0]:
            decisions = {c.id: make_decisions() for c in companies}
            decisions["f0"] = make_decisions(marketing=spend)
            share = allocate_market(companies, decisions)["f0"]
            assert share >= previous
            previous = share

    def test_attractiveness_formula_with_even_count(self):
        """Shares follow exp(-k(p/Pref-1)) with Pref the mean of the middle prices"""
        companies = [make_company(f"f{i}") for i in range(4)]
        prices = [10.0, 20.0, 30.0, 40.0]
        decisions = {
            c.id: make_decisions(price=p, marketing=0.0) for c, p in zip(companies, prices)
        }

        shares = allocate_market(companies, decisions)

        k = CONFIG.market.price_sensitivity
        attrs = [math.exp(-k * (p / 25.0 - 1.0)) for p in prices]
        total = sum(attrs)
        for c, attr in zip(companies, attrs):
            assert shares[c.id] == pytest.approx(attr / total)

    def test_negative_inputs_are_floored(self):
        """Negative price acts like the price floor, negative marketing like zero"""
        companies = [make_company("a"), make_company("b")]
        floored = {
            "a": make_decisions(price=-5.0, marketing=-100.0),
            "b": make_decisions(price=30.0, marketing=0.0),
        }
        explicit = {
            "a": make_decisions(price=CONFIG.market.min_price, marketing=0.0),
            "b": make_decisions(price=30.0, marketing=0.0),
        }

        assert allocate_market(companies, floored) == allocate_market(companies, explicit)


class TestReferencePrice:
    """Test suite for the median reference price"""

    def test_odd_count_uses_middle_value(self):
        assert reference_price(np.array([50.0, 10.0, 30.0])) == 30.0

    def test_even_count_averages_middle_values(self):
        assert reference_price(np.array([40.0, 10.0, 20.0, 30.0])) == 25.0

    def test_zero_median_falls_back(self):
        """A zero median would divide by zero; the fallback is used instead"""
        assert reference_price(np.array([0.0, 0.0])) == CONFIG.market.fallback_reference_price
