from __future__ import annotations

import logging
from decimal import Decimal

from premium_engine.domain.errors import UnsupportedPolicyTypeError, ValidationError
from premium_engine.domain.policy import PolicyType
from premium_engine.services.pricing import calculate_premium
from premium_engine.services.recalculation import RecalculationItem, recalculate_premiums

YEAR = 2026


def _rf(age=35):
    return {"location": {"province": "Gauteng", "postalCode": "2000"}, "demographics": {"age": age}}


def test_batch_keeps_going_past_failures(caplog):
    current = calculate_premium(PolicyType.HOME, {"dwelling": 300000}, _rf(), 1000, valuation_year=YEAR)
    items = [
        RecalculationItem(
            key="POL-1",
            policy_type="HOME",
            risk_factors=_rf(),
            deductible=1000,
            coverage={"dwelling": 300000},
            current_premium=str(current.annual_premium),
        ),
        RecalculationItem(key="POL-2", policy_type="HOME", risk_factors=_rf(age=16), coverage_amount=500000),
        RecalculationItem(key="POL-3", policy_type="BUSINESS", risk_factors=_rf(), coverage_amount=500000),
        RecalculationItem(
            key="POL-4", policy_type="HOME", risk_factors=_rf(), coverage_amount=500000, current_premium="10.00"
        ),
        RecalculationItem(key="POL-5", policy_type="HOME", risk_factors=_rf()),
    ]

    with caplog.at_level(logging.WARNING, logger="premium_engine.services.recalculation"):
        report = recalculate_premiums(items, valuation_year=YEAR)

    assert [r.key for r in report.results] == ["POL-1", "POL-4"]
    assert [f.key for f in report.failures] == ["POL-2", "POL-3", "POL-5"]
    assert isinstance(report.failures[0].error, ValidationError)
    assert isinstance(report.failures[1].error, UnsupportedPolicyTypeError)
    assert "POL-2" in caplog.text

    unchanged, repriced = report.results
    assert unchanged.delta == Decimal("0")
    assert not unchanged.changed
    assert repriced.delta > 0
    assert [r.key for r in report.changed] == ["POL-4"]

    summary = report.to_dict()
    assert summary["recalculated"] == 2
    assert summary["failed"] == 3
    assert summary["failures"][0]["error"]["fieldErrors"]["demographics.age"]


def test_oversized_stored_coverage_fails_only_its_own_item():
    items = [
        RecalculationItem(key="POL-BIG", policy_type="HOME", risk_factors=_rf(), coverage_amount="1e30"),
        RecalculationItem(key="POL-HUGE", policy_type="HOME", risk_factors=_rf(), coverage={"dwelling": "1e30"}),
        RecalculationItem(key="POL-OK", policy_type="HOME", risk_factors=_rf(), coverage_amount=500000),
    ]
    report = recalculate_premiums(items, valuation_year=YEAR)
    assert [r.key for r in report.results] == ["POL-OK"]
    assert [f.key for f in report.failures] == ["POL-BIG", "POL-HUGE"]
    assert all(isinstance(f.error, ValidationError) for f in report.failures)
