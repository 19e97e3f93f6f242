from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Union

from premium_engine.domain.errors import MalformedCoverageError, ValidationError
from premium_engine.domain.policy import (
    CoverageBreakdown,
    PolicyType,
    derive_coverage_breakdown,
    to_money,
)
from premium_engine.domain.pricing import PremiumQuote
from premium_engine.domain.risk import NormalizedRiskFactors, RiskFactors
from premium_engine.services.composer import compose
from premium_engine.services.normalizer import normalize_risk_factors, validate_deductible
from premium_engine.services.reference import generate_quote_number
from premium_engine.services.risk import risk_warnings, score_risk
from premium_engine.services.tariff import DEFAULT_TARIFF, Tariff

DEFAULT_DEDUCTIBLE = Decimal("1000")

RiskInput = Union[RiskFactors, Mapping[str, Any], None]


@dataclass(frozen=True)
class PricingRequest:
    """What both coverage models reduce to before scoring and composition."""

    policy_type: PolicyType
    total_coverage: Decimal
    coverage: CoverageBreakdown
    risk_factors: NormalizedRiskFactors
    deductible: Decimal


def _prepare(
    pt: PolicyType,
    coverage: CoverageBreakdown,
    risk_factors: RiskInput,
    deductible: Any,
    tariff: Tariff,
    valuation_year: Optional[int],
) -> PricingRequest:
    field_errors: Dict[str, str] = {}
    normalized = None
    ded = None
    try:
        normalized = normalize_risk_factors(risk_factors, valuation_year=valuation_year, tariff=tariff)
    except ValidationError as e:
        field_errors.update(e.field_errors)
    try:
        ded = validate_deductible(deductible, pt, tariff)
    except ValidationError as e:
        field_errors.update(e.field_errors)
    if field_errors:
        raise ValidationError.from_field_errors(field_errors)

    if coverage.total <= 0:
        raise MalformedCoverageError(field_name="coverage", detail="Total coverage must be greater than zero.")
    if coverage.total > tariff.maximum_coverage:
        raise MalformedCoverageError(
            field_name="coverage", detail=f"Total coverage must not exceed {tariff.maximum_coverage}."
        )

    return PricingRequest(
        policy_type=pt,
        total_coverage=coverage.total,
        coverage=coverage,
        risk_factors=normalized,
        deductible=ded,
    )


def _price(request: PricingRequest, tariff: Tariff) -> PremiumQuote:
    rf = request.risk_factors
    score = score_risk(rf, request.policy_type, tariff)
    return compose(
        request.total_coverage,
        tariff.base_rate(request.policy_type),
        score,
        request.deductible,
        request.policy_type,
        tariff,
        coverage=request.coverage,
        valuation_year=rf.valuation_year,
        warnings=risk_warnings(rf, tariff),
    )


def calculate_premium(
    policy_type: Any,
    coverage: Union[CoverageBreakdown, Mapping[str, Any]],
    risk_factors: RiskInput,
    deductible: Any = DEFAULT_DEDUCTIBLE,
    *,
    tariff: Optional[Tariff] = None,
    valuation_year: Optional[int] = None,
) -> PremiumQuote:
    """Coverage-breakdown model: price itemised coverage amounts."""
    tariff = tariff or DEFAULT_TARIFF
    pt = PolicyType.parse(policy_type)
    # unsupported types fail before any input is inspected
    tariff.base_rate(pt)
    breakdown = CoverageBreakdown.from_mapping(coverage)
    request = _prepare(pt, breakdown, risk_factors, deductible, tariff, valuation_year)
    return _price(request, tariff)


def calculate_premium_per_amount(
    policy_type: Any,
    coverage_amount: Any,
    risk_factors: RiskInput,
    deductible: Any = DEFAULT_DEDUCTIBLE,
    *,
    tariff: Optional[Tariff] = None,
    valuation_year: Optional[int] = None,
) -> PremiumQuote:
    """
    Per-amount model: price a single total.

    The itemised split on the returned quote is derived for display only;
    pricing uses ``coverage_amount`` directly.
    """
    tariff = tariff or DEFAULT_TARIFF
    pt = PolicyType.parse(policy_type)
    tariff.base_rate(pt)
    try:
        amount = to_money(coverage_amount)
    except ValueError:
        raise ValidationError(field_name="coverage_amount", detail="Coverage amount must be a number.") from None
    if amount < 0:
        raise ValidationError(field_name="coverage_amount", detail="Coverage amount must not be negative.")
    if amount == 0:
        raise MalformedCoverageError(field_name="coverage_amount", detail="Coverage amount must be greater than zero.")
    if amount > tariff.maximum_coverage:
        raise ValidationError(
            field_name="coverage_amount", detail=f"Coverage amount must not exceed {tariff.maximum_coverage}."
        )

    request = _prepare(pt, derive_coverage_breakdown(amount, pt), risk_factors, deductible, tariff, valuation_year)
    return _price(dataclasses.replace(request, total_coverage=amount), tariff)


def build_quote(
    policy_type: Any,
    coverage: Union[CoverageBreakdown, Mapping[str, Any]],
    risk_factors: RiskInput,
    deductible: Any = DEFAULT_DEDUCTIBLE,
    *,
    tariff: Optional[Tariff] = None,
    valuation_year: Optional[int] = None,
) -> PremiumQuote:
    quote = calculate_premium(
        policy_type, coverage, risk_factors, deductible, tariff=tariff, valuation_year=valuation_year
    )
    return dataclasses.replace(quote, reference=generate_quote_number(quote.policy_type))


def build_quote_per_amount(
    policy_type: Any,
    coverage_amount: Any,
    risk_factors: RiskInput,
    deductible: Any = DEFAULT_DEDUCTIBLE,
    *,
    tariff: Optional[Tariff] = None,
    valuation_year: Optional[int] = None,
) -> PremiumQuote:
    quote = calculate_premium_per_amount(
        policy_type, coverage_amount, risk_factors, deductible, tariff=tariff, valuation_year=valuation_year
    )
    return dataclasses.replace(quote, reference=generate_quote_number(quote.policy_type))
