from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from premium_engine.domain.errors import ValidationError
from premium_engine.domain.policy import PolicyType, to_money
from premium_engine.domain.risk import (
    NEUTRAL_CATEGORY,
    NormalizedLocation,
    NormalizedPersonal,
    NormalizedProperty,
    NormalizedRiskFactors,
    NormalizedVehicle,
    RiskFactors,
)
from premium_engine.services.tariff import DEFAULT_TARIFF, Tariff

T = TypeVar("T")

AGE_RANGE = (18, 120)
CREDIT_SCORE_RANGE = (300, 850)
CLAIMS_HISTORY_RANGE = (0, 20)
SQUARE_FOOTAGE_RANGE = (100, 50000)
EARLIEST_YEAR_BUILT = 1800
EARLIEST_VEHICLE_YEAR = 1980
SAFETY_RATING_RANGE = (1, 5)
ANNUAL_MILEAGE_RANGE = (0, 500_000)

RISK_LEVELS = ("low", "medium", "high")
SMOKING_STATUSES = ("smoker", "former-smoker", "non-smoker")


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("Expected a whole number, got a boolean.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    if isinstance(value, str) and value.strip() != "":
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError("Expected a whole number.")


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    raise ValueError("Expected text.")


def _as_category(value: Any) -> str:
    return _as_str(value).lower().replace(" ", "_")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "1", "false", "no", "0"}:
        return value.strip().lower() in {"true", "yes", "1"}
    raise ValueError("Expected true or false.")


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    if isinstance(value, str):
        # single selection might arrive as string
        return [value]
    raise ValueError("Expected a list of names.")


def _in_range(lo: int, hi: int) -> Callable[[int], int]:
    def check(v: int) -> int:
        if v < lo:
            raise ValueError(f"Value is below the minimum {lo}.")
        if v > hi:
            raise ValueError(f"Value is above the maximum {hi}.")
        return v

    return check


def _one_of(allowed: Tuple[str, ...]) -> Callable[[str], str]:
    def check(v: str) -> str:
        if v not in allowed:
            raise ValueError("Expected one of: " + ", ".join(allowed) + ".")
        return v

    return check


class _Collector:
    """Gathers every failing field so the caller sees all problems at once."""

    def __init__(self) -> None:
        self.field_errors: Dict[str, str] = {}

    def take(
        self,
        path: str,
        value: Any,
        coerce: Callable[[Any], T],
        check: Optional[Callable[[T], T]] = None,
        default: Any = None,
    ) -> Any:
        if value is None or value == "":
            return default
        try:
            v = coerce(value)
            return check(v) if check else v
        except ValueError as e:
            self.field_errors[path] = str(e)
            return default

    def raise_if_any(self) -> None:
        if self.field_errors:
            raise ValidationError.from_field_errors(self.field_errors)


def _safety_features(c: _Collector, value: Any) -> Tuple[str, ...]:
    try:
        names = _as_str_list(value)
    except ValueError as e:
        c.field_errors["property.safety_features"] = str(e)
        return ()
    seen = set()
    uniq: List[str] = []
    for name in names:
        key = name.strip().lower().replace(" ", "_").replace("-", "_")
        if key and key not in seen:
            seen.add(key)
            uniq.append(key)
    return tuple(uniq)


def normalize_risk_factors(
    risk_factors: Union[RiskFactors, Mapping[str, Any], None],
    *,
    valuation_year: Optional[int] = None,
    tariff: Tariff = DEFAULT_TARIFF,
) -> NormalizedRiskFactors:
    """
    Validate and default a possibly partial risk-factor bundle.

    Missing optional data falls back to neutral values. Only explicitly
    supplied out-of-range values, and a missing applicant age, raise
    ``ValidationError`` (one error listing every failing field).
    """
    rf = RiskFactors.from_dict(risk_factors) if not isinstance(risk_factors, RiskFactors) else risk_factors
    year = valuation_year if valuation_year is not None else date.today().year
    c = _Collector()

    # demographics: age is mandatory wherever demographic risk is scored
    age = None
    if rf.demographics is None or rf.demographics.age is None or rf.demographics.age == "":
        c.field_errors["demographics.age"] = "Applicant age is required."
    else:
        age = c.take("demographics.age", rf.demographics.age, _as_int, _in_range(*AGE_RANGE))

    location = NormalizedLocation()
    if rf.location is not None:
        loc = rf.location
        location = NormalizedLocation(
            province=c.take("location.province", loc.province, _as_str, default="").upper(),
            postal_code=c.take("location.postal_code", loc.postal_code, lambda v: str(v).strip(), default=""),
            crime_rate=c.take(
                "location.crime_rate", loc.crime_rate, _as_category, _one_of(RISK_LEVELS), default="medium"
            ),
            natural_disaster_risk=c.take(
                "location.natural_disaster_risk",
                loc.natural_disaster_risk,
                _as_category,
                _one_of(RISK_LEVELS),
                default="medium",
            ),
        )

    prop = NormalizedProperty()
    if rf.property is not None:
        p = rf.property
        prop = NormalizedProperty(
            year_built=c.take("property.year_built", p.year_built, _as_int, _in_range(EARLIEST_YEAR_BUILT, year)),
            square_footage=c.take(
                "property.square_footage", p.square_footage, _as_int, _in_range(*SQUARE_FOOTAGE_RANGE)
            ),
            construction_type=c.take(
                "property.construction_type", p.construction_type, _as_category, default=NEUTRAL_CATEGORY
            ),
            safety_features=_safety_features(c, p.safety_features),
            has_pool=c.take("property.has_pool", p.has_pool, _as_bool, default=False),
            has_garage=c.take("property.has_garage", p.has_garage, _as_bool, default=False),
            foundation_type=c.take(
                "property.foundation_type", p.foundation_type, _as_category, default=NEUTRAL_CATEGORY
            ),
            roof_type=c.take("property.roof_type", p.roof_type, _as_category, default=NEUTRAL_CATEGORY),
            heating_type=c.take("property.heating_type", p.heating_type, _as_category, default=NEUTRAL_CATEGORY),
        )

    personal = NormalizedPersonal(credit_score=tariff.default_credit_score)
    if rf.personal is not None:
        pers = rf.personal
        personal = NormalizedPersonal(
            credit_score=c.take(
                "personal.credit_score",
                pers.credit_score,
                _as_int,
                _in_range(*CREDIT_SCORE_RANGE),
                default=tariff.default_credit_score,
            ),
            claims_history=c.take(
                "personal.claims_history", pers.claims_history, _as_int, _in_range(*CLAIMS_HISTORY_RANGE), default=0
            ),
            smoking_status=c.take(
                "personal.smoking_status",
                pers.smoking_status,
                lambda v: _as_str(v).lower().replace("_", "-").replace(" ", "-"),
                _one_of(SMOKING_STATUSES),
            ),
        )

    vehicle = None
    if rf.vehicle is not None:
        v = rf.vehicle
        vehicle = NormalizedVehicle(
            year=c.take("vehicle.year", v.year, _as_int, _in_range(EARLIEST_VEHICLE_YEAR, year + 1)),
            safety_rating=c.take("vehicle.safety_rating", v.safety_rating, _as_int, _in_range(*SAFETY_RATING_RANGE)),
            annual_mileage=c.take(
                "vehicle.annual_mileage", v.annual_mileage, _as_int, _in_range(*ANNUAL_MILEAGE_RANGE)
            ),
        )

    c.raise_if_any()
    return NormalizedRiskFactors(
        age=age,
        valuation_year=year,
        location=location,
        property=prop,
        personal=personal,
        vehicle=vehicle,
    )


def validate_deductible(deductible: Any, policy_type: PolicyType, tariff: Tariff = DEFAULT_TARIFF) -> Decimal:
    try:
        value = to_money(deductible)
    except ValueError:
        raise ValidationError(field_name="deductible", detail="Deductible must be a number.") from None
    if value < 0:
        raise ValidationError(field_name="deductible", detail="Deductible must not be negative.")
    cap = tariff.deductible_cap_for(policy_type)
    if value > cap:
        raise ValidationError(field_name="deductible", detail=f"Deductible must not exceed {cap}.")
    return value
