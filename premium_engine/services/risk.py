from __future__ import annotations

from decimal import Decimal
from typing import List, Mapping, Optional, Tuple

from premium_engine.domain.policy import PolicyType
from premium_engine.domain.pricing import RiskCategory, RiskMultiplier, RiskScore
from premium_engine.domain.risk import (
    NEUTRAL_CATEGORY,
    NormalizedLocation,
    NormalizedPersonal,
    NormalizedProperty,
    NormalizedRiskFactors,
    NormalizedVehicle,
)
from premium_engine.services.tariff import DEFAULT_TARIFF, Tariff, lookup_band, lookup_floor

ONE = Decimal("1")


def clamp(value: Decimal, bounds: Tuple[Decimal, Decimal]) -> Decimal:
    low, high = bounds
    return max(low, min(high, value))


def _product(factors: List[RiskMultiplier]) -> Decimal:
    product = ONE
    for f in factors:
        product *= f.value
    return product


def _category(code: str, factors: List[RiskMultiplier], tariff: Tariff) -> RiskCategory:
    raw = _product(factors)
    value = clamp(raw, tariff.clamp_for(code))
    return RiskCategory(code=code, value=value, factors=tuple(factors), clamped=value != raw)


def _table_factor(code: str, table: Mapping[str, Decimal], key: str) -> RiskMultiplier:
    if key == NEUTRAL_CATEGORY:
        return RiskMultiplier(code=code, value=ONE, note="not supplied")
    if key not in table:
        return RiskMultiplier(code=code, value=ONE, note=f"{key}: not rated")
    return RiskMultiplier(code=code, value=table[key], note=key)


def location_risk(location: NormalizedLocation, tariff: Tariff = DEFAULT_TARIFF) -> RiskCategory:
    factors = [
        RiskMultiplier(
            code="region",
            value=tariff.region_multipliers.get(location.province, ONE),
            note=location.province or None,
        ),
        RiskMultiplier(code="crime_rate", value=tariff.crime_rate.get(location.crime_rate, ONE), note=location.crime_rate),
        RiskMultiplier(
            code="natural_disaster_risk",
            value=tariff.natural_disaster_risk.get(location.natural_disaster_risk, ONE),
            note=location.natural_disaster_risk,
        ),
    ]
    return _category("location", factors, tariff)


def safety_discount(features: Tuple[str, ...], tariff: Tariff = DEFAULT_TARIFF) -> Decimal:
    recognized = [f for f in features if f in tariff.recognized_safety_features]
    return min(len(recognized) * tariff.safety_feature_discount, tariff.safety_discount_cap)


def property_risk(prop: NormalizedProperty, valuation_year: int, tariff: Tariff = DEFAULT_TARIFF) -> RiskCategory:
    factors: List[RiskMultiplier] = []

    if prop.year_built is None:
        factors.append(RiskMultiplier(code="building_age", value=ONE, note="not supplied"))
    else:
        age = max(0, valuation_year - prop.year_built)
        factors.append(
            RiskMultiplier(code="building_age", value=lookup_band(tariff.building_age_bands, age), note=f"{age} years")
        )

    factors.append(_table_factor("construction_type", tariff.construction_types, prop.construction_type))

    discount = safety_discount(prop.safety_features, tariff)
    factors.append(
        RiskMultiplier(code="safety_features", value=ONE - discount, note=f"{len(prop.safety_features)} listed")
    )

    if prop.has_pool:
        factors.append(RiskMultiplier(code="pool", value=tariff.pool_multiplier, note="liability"))
    if prop.has_garage:
        factors.append(RiskMultiplier(code="garage", value=tariff.garage_multiplier))

    factors.append(_table_factor("foundation_type", tariff.foundation_types, prop.foundation_type))
    factors.append(_table_factor("roof_type", tariff.roof_types, prop.roof_type))
    factors.append(_table_factor("heating_type", tariff.heating_types, prop.heating_type))

    return _category("property", factors, tariff)


def claims_surcharge(claims_history: int, tariff: Tariff = DEFAULT_TARIFF) -> Decimal:
    """Compounding surcharge per prior claim, capped so pricing cannot run away."""
    surcharge = (ONE + tariff.claims_surcharge_rate) ** max(0, claims_history)
    return min(surcharge, max(ONE, tariff.claims_surcharge_cap))


def personal_risk(
    personal: NormalizedPersonal, policy_type: PolicyType, tariff: Tariff = DEFAULT_TARIFF
) -> RiskCategory:
    factors = [
        RiskMultiplier(
            code="credit_score",
            value=lookup_floor(tariff.credit_bands, personal.credit_score),
            note=str(personal.credit_score),
        ),
        RiskMultiplier(
            code="claims_history",
            value=claims_surcharge(personal.claims_history, tariff),
            note=f"{personal.claims_history} prior claims",
        ),
    ]
    # smoking only rates life/health cover
    if personal.smoking_status and policy_type in tariff.smoking_policy_types:
        factors.append(
            RiskMultiplier(
                code="smoking_status",
                value=tariff.smoking_status.get(personal.smoking_status, ONE),
                note=personal.smoking_status,
            )
        )
    return _category("personal", factors, tariff)


def demographic_risk(age: int, policy_type: PolicyType, tariff: Tariff = DEFAULT_TARIFF) -> RiskCategory:
    bands = tariff.age_bands.get(policy_type)
    value = lookup_band(bands, age) if bands else ONE
    return _category("demographic", [RiskMultiplier(code="age", value=value, note=str(age))], tariff)


def vehicle_risk(vehicle: NormalizedVehicle, valuation_year: int, tariff: Tariff = DEFAULT_TARIFF) -> RiskCategory:
    factors: List[RiskMultiplier] = []
    if vehicle.year is not None:
        age = max(0, valuation_year - vehicle.year)
        factors.append(
            RiskMultiplier(code="vehicle_age", value=lookup_band(tariff.vehicle_age_bands, age), note=f"{age} years")
        )
    if vehicle.safety_rating is not None:
        factors.append(
            RiskMultiplier(
                code="safety_rating",
                value=tariff.vehicle_safety_rating.get(vehicle.safety_rating, ONE),
                note=f"{vehicle.safety_rating} stars",
            )
        )
    if vehicle.annual_mileage is not None:
        factors.append(
            RiskMultiplier(
                code="annual_mileage",
                value=lookup_band(tariff.vehicle_mileage_bands, vehicle.annual_mileage),
                note=str(vehicle.annual_mileage),
            )
        )
    return _category("vehicle", factors, tariff)


def score_risk(
    normalized: NormalizedRiskFactors,
    policy_type: PolicyType,
    tariff: Tariff = DEFAULT_TARIFF,
    valuation_year: Optional[int] = None,
) -> RiskScore:
    """
    Aggregate risk score: product of every category multiplier, clamped to
    the tariff's aggregate bounds.
    """
    year = valuation_year if valuation_year is not None else normalized.valuation_year
    categories = [
        location_risk(normalized.location, tariff),
        property_risk(normalized.property, year, tariff),
        personal_risk(normalized.personal, policy_type, tariff),
        demographic_risk(normalized.age, policy_type, tariff),
    ]
    # vehicle data only rates motor cover
    if policy_type is PolicyType.AUTO and normalized.vehicle is not None:
        categories.append(vehicle_risk(normalized.vehicle, year, tariff))

    raw = ONE
    for c in categories:
        raw *= c.value
    aggregate = clamp(raw, tariff.aggregate_clamp)
    return RiskScore(categories=tuple(categories), raw_product=raw, aggregate=aggregate, clamped=aggregate != raw)


def risk_warnings(normalized: NormalizedRiskFactors, tariff: Tariff = DEFAULT_TARIFF) -> Tuple[str, ...]:
    """Inputs that were accepted but priced as neutral, for the caller to surface."""
    warnings: List[str] = []
    prop = normalized.property
    for feature in prop.safety_features:
        if feature not in tariff.recognized_safety_features:
            warnings.append(f"Safety feature '{feature}' is not recognised and earns no discount.")
    for label, table, key in (
        ("construction type", tariff.construction_types, prop.construction_type),
        ("foundation type", tariff.foundation_types, prop.foundation_type),
        ("roof type", tariff.roof_types, prop.roof_type),
        ("heating type", tariff.heating_types, prop.heating_type),
    ):
        if key != NEUTRAL_CATEGORY and key not in table:
            warnings.append(f"The {label} '{key}' is not rated; a neutral multiplier was used.")
    return tuple(warnings)
