from __future__ import annotations

from decimal import Decimal

import pytest

from premium_engine.domain.errors import MalformedCoverageError, UnsupportedPolicyTypeError
from premium_engine.domain.policy import (
    CoverageBreakdown,
    PolicyType,
    derive_coverage_breakdown,
    total_coverage,
)


def test_total_coverage_sums_components():
    assert total_coverage({"dwelling": 700000, "personalProperty": "200000.50", "liability": 99999.5}) == Decimal(
        "1000000.00"
    )


def test_component_names_are_snake_cased():
    breakdown = CoverageBreakdown.from_mapping({"medicalPayments": 5000, "other_structures": 1000})
    assert set(breakdown) == {"medical_payments", "other_structures"}
    assert breakdown.as_dict() == {"medical_payments": "5000", "other_structures": "1000"}


def test_unset_components_are_skipped():
    assert total_coverage({"dwelling": 100, "liability": None}) == Decimal("100")


@pytest.mark.parametrize("raw", [{}, {"dwelling": -5}, {"dwelling": "a lot"}, {"dwelling": True}])
def test_malformed_breakdowns(raw):
    with pytest.raises(MalformedCoverageError):
        CoverageBreakdown.from_mapping(raw)


@pytest.mark.parametrize("amount", ["1000000", "333333.33", "0.07", "12345.67"])
def test_derived_split_always_sums_to_amount(amount):
    for policy_type in PolicyType:
        breakdown = derive_coverage_breakdown(Decimal(amount), policy_type)
        assert breakdown.total == Decimal(amount)
        assert breakdown.derived is True


def test_policy_type_parsing():
    assert PolicyType.parse("home") is PolicyType.HOME
    assert PolicyType.parse(PolicyType.AUTO) is PolicyType.AUTO
    with pytest.raises(UnsupportedPolicyTypeError) as exc:
        PolicyType.parse("BUSINESS")
    assert exc.value.to_dict()["fieldErrors"]["policy_type"]


def test_breakdowns_are_hashable():
    a = CoverageBreakdown.from_mapping({"dwelling": 700000, "liability": 100000})
    b = CoverageBreakdown.from_mapping({"dwelling": "700000", "liability": "100000"})
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b, derive_coverage_breakdown(Decimal("800000"), PolicyType.HOME)}) == 2
