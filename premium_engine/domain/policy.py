from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Tuple, Union

from premium_engine.domain.errors import MalformedCoverageError, UnsupportedPolicyTypeError

CENT = Decimal("0.01")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class PolicyType(str, Enum):
    HOME = "HOME"
    AUTO = "AUTO"
    LIFE = "LIFE"
    HEALTH = "HEALTH"

    @classmethod
    def parse(cls, value: Any) -> "PolicyType":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise UnsupportedPolicyTypeError(policy_type=str(value))


def to_money(value: Any) -> Decimal:
    """Exact decimal from int/str/Decimal; floats go through str() like JSON numbers."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError("not a number") from e
    else:
        raise ValueError("not a number")
    if not result.is_finite():
        raise ValueError("not a finite number")
    return result


def quantize_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def component_key(name: str) -> str:
    """personalProperty -> personal_property; already snake_case names pass through."""
    return _CAMEL_BOUNDARY.sub("_", name.strip()).lower()


@dataclass(frozen=True)
class CoverageBreakdown(Mapping[str, Decimal]):
    """Coverage amount per named component. ``derived`` marks a synthesised split."""

    components: Mapping[str, Decimal]
    derived: bool = False
    total: Decimal = field(init=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(dict(self.components))
        object.__setattr__(self, "components", frozen)
        object.__setattr__(self, "total", sum(frozen.values(), Decimal("0")))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "CoverageBreakdown":
        if isinstance(raw, CoverageBreakdown):
            return raw
        if not isinstance(raw, Mapping) or not raw:
            raise MalformedCoverageError(
                field_name="coverage", detail="Coverage breakdown must name at least one component."
            )

        field_errors: Dict[str, str] = {}
        components: Dict[str, Decimal] = {}
        for name, amount in raw.items():
            key = component_key(str(name))
            path = f"coverage.{key}"
            if not key:
                field_errors["coverage"] = "Coverage component name must not be empty."
                continue
            if amount is None:
                # unset form inputs
                continue
            try:
                value = to_money(amount)
            except ValueError:
                field_errors[path] = "Coverage amount must be a number."
                continue
            if value < 0:
                field_errors[path] = "Coverage amount must not be negative."
                continue
            components[key] = components.get(key, Decimal("0")) + value

        if field_errors:
            raise MalformedCoverageError.from_field_errors(field_errors)
        return cls(components=components)

    def __getitem__(self, key: str) -> Decimal:
        return self.components[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.components)

    def __len__(self) -> int:
        return len(self.components)

    def __hash__(self) -> int:
        return hash((tuple(self.components.items()), self.derived))

    def as_dict(self) -> Dict[str, str]:
        return {k: str(v) for k, v in self.components.items()}


def total_coverage(breakdown: Union[CoverageBreakdown, Mapping[str, Any]]) -> Decimal:
    return CoverageBreakdown.from_mapping(breakdown).total


# Per-amount model: synthetic split for consumers that still expect itemised figures.
COVERAGE_SPLITS: Mapping[PolicyType, Tuple[Tuple[str, Decimal], ...]] = MappingProxyType(
    {
        PolicyType.HOME: (
            ("dwelling", Decimal("0.70")),
            ("personal_property", Decimal("0.20")),
            ("liability", Decimal("0.10")),
        ),
        PolicyType.AUTO: (
            ("collision", Decimal("0.50")),
            ("comprehensive", Decimal("0.30")),
            ("liability", Decimal("0.20")),
        ),
        PolicyType.LIFE: (("death_benefit", Decimal("1")),),
        PolicyType.HEALTH: (("medical_payments", Decimal("1")),),
    }
)


def derive_coverage_breakdown(amount: Decimal, policy_type: PolicyType) -> CoverageBreakdown:
    split = COVERAGE_SPLITS[policy_type]
    parts: Dict[str, Decimal] = {}
    for name, share in split[1:]:
        parts[name] = quantize_cents(amount * share)
    # first component absorbs rounding so parts always add up to the amount
    first = split[0][0]
    derived = {first: amount - sum(parts.values(), Decimal("0")), **parts}
    return CoverageBreakdown(components=derived, derived=True)
