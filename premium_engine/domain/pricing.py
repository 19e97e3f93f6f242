from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from premium_engine.domain.policy import CoverageBreakdown, PolicyType


@dataclass(frozen=True)
class RiskMultiplier:
    code: str
    value: Decimal
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "value": str(self.value), "note": self.note}


@dataclass(frozen=True)
class RiskCategory:
    """One risk category: its clamped multiplier and the factors that produced it."""

    code: str
    value: Decimal
    factors: Tuple[RiskMultiplier, ...] = ()
    clamped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "value": str(self.value),
            "clamped": self.clamped,
            "factors": [f.to_dict() for f in self.factors],
        }


@dataclass(frozen=True)
class RiskScore:
    categories: Tuple[RiskCategory, ...]
    raw_product: Decimal
    aggregate: Decimal
    clamped: bool = False

    def category(self, code: str) -> RiskCategory:
        for c in self.categories:
            if c.code == code:
                return c
        raise KeyError(f"Unknown risk category: {code}")

    def multipliers(self) -> Dict[str, Decimal]:
        return {c.code: c.value for c in self.categories}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "raw_product": str(self.raw_product),
            "aggregate": str(self.aggregate),
            "clamped": self.clamped,
        }


@dataclass(frozen=True)
class PremiumQuote:
    policy_type: PolicyType
    coverage: CoverageBreakdown
    total_coverage: Decimal
    deductible: Decimal
    base_rate: Decimal
    raw_annual: Decimal
    risk_score: RiskScore
    risk_adjusted_annual: Decimal
    deductible_discount: Decimal
    annual_premium: Decimal
    monthly_premium: Decimal
    valuation_year: int
    minimum_premium_applied: bool = False
    reference: Optional[str] = None
    warnings: Tuple[str, ...] = field(default=())

    @property
    def risk_multiplier(self) -> Decimal:
        return self.risk_score.aggregate

    def breakdown(self) -> Dict[str, Any]:
        return {
            "base_rate": str(self.base_rate),
            "total_coverage": str(self.total_coverage),
            "raw_annual": str(self.raw_annual),
            "multipliers": [c.to_dict() for c in self.risk_score.categories],
            "multipliers_product": str(self.risk_score.raw_product),
            "risk_multiplier": str(self.risk_score.aggregate),
            "risk_multiplier_clamped": self.risk_score.clamped,
            "risk_adjusted_annual": str(self.risk_adjusted_annual),
            "deductible": str(self.deductible),
            "deductible_discount": str(self.deductible_discount),
            "minimum_premium_applied": self.minimum_premium_applied,
            "annual_premium": str(self.annual_premium),
            "monthly_premium": str(self.monthly_premium),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quoteNumber": self.reference,
            "policyType": self.policy_type.value,
            "coverage": self.coverage.as_dict(),
            "coverageDerived": self.coverage.derived,
            "annualPremium": str(self.annual_premium),
            "monthlyPremium": str(self.monthly_premium),
            "riskMultiplier": str(self.risk_score.aggregate),
            "valuationYear": self.valuation_year,
            "breakdown": self.breakdown(),
            "warnings": list(self.warnings),
        }
