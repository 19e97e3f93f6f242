from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from premium_engine.domain.errors import MalformedCoverageError
from premium_engine.domain.policy import PolicyType
from premium_engine.services.composer import compose, deductible_discount, monthly_from_annual
from premium_engine.services.tariff import DEFAULT_TARIFF

RATE = Decimal("0.008")


def test_bare_aggregate_is_composed():
    quote = compose(Decimal("1000000"), RATE, Decimal("1.2"), Decimal("0"), PolicyType.HOME)
    assert quote.annual_premium == Decimal("9600.00")
    assert quote.monthly_premium == Decimal("800.00")
    assert quote.risk_multiplier == Decimal("1.2")
    assert quote.risk_score.categories == ()
    assert quote.breakdown()["multipliers"] == []
    assert dict(quote.coverage) == {"total": Decimal("1000000")}


def test_compose_defaults_to_the_current_year():
    quote = compose(Decimal("250000"), RATE, Decimal("1"), Decimal("1000"), PolicyType.HOME)
    assert quote.valuation_year == date.today().year
    pinned = compose(Decimal("250000"), RATE, Decimal("1"), Decimal("1000"), PolicyType.HOME, valuation_year=2026)
    assert pinned.valuation_year == 2026


@pytest.mark.parametrize("total", [Decimal("0"), Decimal("-1"), Decimal("1e30")])
def test_compose_rejects_out_of_range_totals(total):
    with pytest.raises(MalformedCoverageError):
        compose(total, RATE, Decimal("1"), Decimal("0"), PolicyType.HOME)


def test_premium_never_falls_as_risk_rises():
    premiums = [
        compose(Decimal("600000"), RATE, Decimal(score), Decimal("2500"), PolicyType.HOME).annual_premium
        for score in ("0.5", "0.8", "1", "1.25", "2", "3")
    ]
    assert premiums == sorted(premiums)
    assert len(set(premiums)) == len(premiums)


def test_minimum_premium_floor():
    quote = compose(Decimal("1000"), RATE, Decimal("1"), Decimal("0"), PolicyType.HOME)
    assert quote.minimum_premium_applied is True
    assert quote.annual_premium == DEFAULT_TARIFF.minimum_annual_premium
    assert quote.monthly_premium == monthly_from_annual(quote.annual_premium)


@pytest.mark.parametrize("policy_type", list(PolicyType))
def test_deductible_discount_curve(policy_type):
    assert deductible_discount(Decimal("0"), policy_type) == Decimal("0")
    discounts = [deductible_discount(Decimal(d), policy_type) for d in (1, 100, 1000, 10000, 50000)]
    assert all(a < b for a, b in zip(discounts, discounts[1:]))
    assert discounts[-1] < DEFAULT_TARIFF.max_deductible_discount


def test_discount_reaches_half_the_cap_at_the_reference():
    ref = DEFAULT_TARIFF.deductible_reference[PolicyType.AUTO]
    assert deductible_discount(ref, PolicyType.AUTO) == DEFAULT_TARIFF.max_deductible_discount / 2
