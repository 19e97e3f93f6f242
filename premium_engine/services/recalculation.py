"""
Bulk premium recalculation for admin operations.

This sits on the caller side of the engine: it prices a batch of stored
policies through the same pipeline as single quotes, keeps going when an
item fails, and reports what changed. Persisting the new premiums is left
to whoever owns the policy records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from premium_engine.domain.errors import PremiumEngineError, ValidationError
from premium_engine.domain.policy import to_money
from premium_engine.domain.pricing import PremiumQuote
from premium_engine.services.pricing import (
    DEFAULT_DEDUCTIBLE,
    RiskInput,
    calculate_premium,
    calculate_premium_per_amount,
)
from premium_engine.services.tariff import DEFAULT_TARIFF, Tariff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecalculationItem:
    key: str
    policy_type: Any
    risk_factors: RiskInput
    deductible: Any = DEFAULT_DEDUCTIBLE
    coverage: Optional[Mapping[str, Any]] = None
    coverage_amount: Any = None
    current_premium: Any = None


@dataclass(frozen=True)
class RecalculatedPremium:
    key: str
    quote: PremiumQuote
    previous_premium: Optional[Decimal]

    @property
    def delta(self) -> Optional[Decimal]:
        if self.previous_premium is None:
            return None
        return self.quote.annual_premium - self.previous_premium

    @property
    def changed(self) -> bool:
        return self.previous_premium is None or self.delta != 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "previousPremium": None if self.previous_premium is None else str(self.previous_premium),
            "annualPremium": str(self.quote.annual_premium),
            "monthlyPremium": str(self.quote.monthly_premium),
            "delta": None if self.delta is None else str(self.delta),
        }


@dataclass(frozen=True)
class RecalculationFailure:
    key: str
    error: PremiumEngineError

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "error": self.error.to_dict()}


@dataclass
class RecalculationReport:
    results: List[RecalculatedPremium] = field(default_factory=list)
    failures: List[RecalculationFailure] = field(default_factory=list)

    @property
    def changed(self) -> List[RecalculatedPremium]:
        return [r for r in self.results if r.changed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recalculated": len(self.results),
            "changed": len(self.changed),
            "failed": len(self.failures),
            "results": [r.to_dict() for r in self.results],
            "failures": [f.to_dict() for f in self.failures],
        }


def _previous_premium(item: RecalculationItem) -> Optional[Decimal]:
    if item.current_premium is None:
        return None
    try:
        return to_money(item.current_premium)
    except ValueError:
        raise ValidationError(field_name="current_premium", detail="Stored premium must be a number.") from None


def recalculate_item(
    item: RecalculationItem, *, tariff: Tariff = DEFAULT_TARIFF, valuation_year: Optional[int] = None
) -> RecalculatedPremium:
    previous = _previous_premium(item)
    if item.coverage is not None:
        quote = calculate_premium(
            item.policy_type,
            item.coverage,
            item.risk_factors,
            item.deductible,
            tariff=tariff,
            valuation_year=valuation_year,
        )
    elif item.coverage_amount is not None:
        quote = calculate_premium_per_amount(
            item.policy_type,
            item.coverage_amount,
            item.risk_factors,
            item.deductible,
            tariff=tariff,
            valuation_year=valuation_year,
        )
    else:
        raise ValidationError(field_name="coverage", detail="Either coverage or coverage_amount is required.")
    return RecalculatedPremium(key=item.key, quote=quote, previous_premium=previous)


def recalculate_premiums(
    items: Iterable[RecalculationItem],
    *,
    tariff: Optional[Tariff] = None,
    valuation_year: Optional[int] = None,
) -> RecalculationReport:
    tariff = tariff or DEFAULT_TARIFF
    report = RecalculationReport()
    for item in items:
        try:
            report.results.append(recalculate_item(item, tariff=tariff, valuation_year=valuation_year))
        except PremiumEngineError as e:
            logger.warning("Premium recalculation failed for %s: %s", item.key, e)
            report.failures.append(RecalculationFailure(key=item.key, error=e))

    logger.info(
        "Recalculated %d premiums (%d changed, %d failed)",
        len(report.results),
        len(report.changed),
        len(report.failures),
    )
    return report
