from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Tuple, Union

from premium_engine.domain.errors import MalformedCoverageError
from premium_engine.domain.policy import CoverageBreakdown, PolicyType, quantize_cents
from premium_engine.domain.pricing import PremiumQuote, RiskScore
from premium_engine.services.tariff import DEFAULT_TARIFF, Tariff

MONTHS_PER_YEAR = Decimal("12")


def deductible_discount(deductible: Decimal, policy_type: PolicyType, tariff: Tariff = DEFAULT_TARIFF) -> Decimal:
    """
    max_discount * d / (d + reference)

    Zero for no deductible, strictly increasing with diminishing returns,
    and always below ``tariff.max_deductible_discount``.
    """
    if deductible <= 0:
        return Decimal("0")
    reference = tariff.deductible_reference_for(policy_type)
    discount = tariff.max_deductible_discount * deductible / (deductible + reference)
    return min(discount, tariff.max_deductible_discount)


def monthly_from_annual(annual_premium: Decimal) -> Decimal:
    return quantize_cents(annual_premium / MONTHS_PER_YEAR)


def premium_figures(
    total_coverage: Decimal,
    base_rate: Decimal,
    aggregate_risk: Decimal,
    discount: Decimal,
    minimum_annual_premium: Decimal,
) -> Tuple[Decimal, Decimal, Decimal, bool]:
    """(raw_annual, risk_adjusted_annual, annual_premium, minimum_applied)"""
    raw_annual = total_coverage * base_rate
    risk_adjusted = raw_annual * aggregate_risk
    annual = quantize_cents(risk_adjusted * (Decimal("1") - discount))
    if annual < minimum_annual_premium:
        return raw_annual, risk_adjusted, quantize_cents(minimum_annual_premium), True
    return raw_annual, risk_adjusted, annual, False


def compose(
    total_coverage: Decimal,
    base_rate: Decimal,
    risk_score: Union[RiskScore, Decimal],
    deductible: Decimal,
    policy_type: PolicyType,
    tariff: Tariff = DEFAULT_TARIFF,
    *,
    coverage: Optional[CoverageBreakdown] = None,
    valuation_year: Optional[int] = None,
    warnings: Tuple[str, ...] = (),
) -> PremiumQuote:
    if total_coverage <= 0:
        raise MalformedCoverageError(field_name="coverage", detail="Total coverage must be greater than zero.")
    if total_coverage > tariff.maximum_coverage:
        raise MalformedCoverageError(
            field_name="coverage", detail=f"Total coverage must not exceed {tariff.maximum_coverage}."
        )
    if not isinstance(risk_score, RiskScore):
        # a bare aggregate carries no category breakdown
        risk_score = RiskScore(categories=(), raw_product=risk_score, aggregate=risk_score)

    discount = deductible_discount(deductible, policy_type, tariff)
    raw_annual, risk_adjusted, annual, minimum_applied = premium_figures(
        total_coverage, base_rate, risk_score.aggregate, discount, tariff.minimum_annual_premium
    )

    return PremiumQuote(
        policy_type=policy_type,
        coverage=coverage if coverage is not None else CoverageBreakdown(components={"total": total_coverage}),
        total_coverage=total_coverage,
        deductible=deductible,
        base_rate=base_rate,
        raw_annual=raw_annual,
        risk_score=risk_score,
        risk_adjusted_annual=risk_adjusted,
        deductible_discount=discount,
        annual_premium=annual,
        monthly_premium=monthly_from_annual(annual),
        valuation_year=valuation_year if valuation_year is not None else date.today().year,
        minimum_premium_applied=minimum_applied,
        warnings=warnings,
    )
