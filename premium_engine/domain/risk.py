from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from premium_engine.domain.errors import ValidationError

# Keys accepted from the web layer, camelCase and snake_case alike.
_ALIASES: Dict[str, Tuple[str, ...]] = {
    "province": ("province", "state"),
    "postal_code": ("postal_code", "postalCode", "zipCode", "zip_code"),
    "crime_rate": ("crime_rate", "crimeRate"),
    "natural_disaster_risk": ("natural_disaster_risk", "naturalDisasterRisk"),
    "year_built": ("year_built", "yearBuilt", "buildYear"),
    "square_footage": ("square_footage", "squareFootage", "squareFeet", "square_feet"),
    "construction_type": ("construction_type", "constructionType"),
    "safety_features": ("safety_features", "safetyFeatures", "securityFeatures"),
    "has_pool": ("has_pool", "hasPool"),
    "has_garage": ("has_garage", "hasGarage"),
    "foundation_type": ("foundation_type", "foundationType"),
    "roof_type": ("roof_type", "roofType"),
    "heating_type": ("heating_type", "heatingType"),
    "credit_score": ("credit_score", "creditScore"),
    "claims_history": ("claims_history", "claimsHistory", "previousClaims", "previous_claims"),
    "smoking_status": ("smoking_status", "smokingStatus"),
    "safety_rating": ("safety_rating", "safetyRating"),
    "annual_mileage": ("annual_mileage", "annualMileage"),
}


def _pick(raw: Mapping[str, Any], name: str) -> Any:
    for key in _ALIASES.get(name, (name,)):
        if key in raw and raw[key] is not None and raw[key] != "":
            return raw[key]
    return None


def _section(raw: Mapping[str, Any], name: str) -> Optional[Mapping[str, Any]]:
    value = raw.get(name)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError(field_name=name, detail="Risk factor section must be an object.")
    return value


# ---- loose input (what the caller sends, every field optional) ----


@dataclass(frozen=True)
class LocationFactors:
    province: Optional[str] = None
    postal_code: Optional[str] = None
    crime_rate: Optional[str] = None
    natural_disaster_risk: Optional[str] = None


@dataclass(frozen=True)
class Demographics:
    age: Optional[int] = None


@dataclass(frozen=True)
class PropertyFactors:
    year_built: Optional[int] = None
    square_footage: Optional[int] = None
    construction_type: Optional[str] = None
    safety_features: Sequence[str] = ()
    has_pool: Optional[bool] = None
    has_garage: Optional[bool] = None
    foundation_type: Optional[str] = None
    roof_type: Optional[str] = None
    heating_type: Optional[str] = None


@dataclass(frozen=True)
class PersonalFactors:
    credit_score: Optional[int] = None
    claims_history: Optional[int] = None
    smoking_status: Optional[str] = None


@dataclass(frozen=True)
class VehicleFactors:
    year: Optional[int] = None
    safety_rating: Optional[int] = None
    annual_mileage: Optional[int] = None


@dataclass(frozen=True)
class RiskFactors:
    location: Optional[LocationFactors] = None
    demographics: Optional[Demographics] = None
    property: Optional[PropertyFactors] = None
    personal: Optional[PersonalFactors] = None
    vehicle: Optional[VehicleFactors] = None

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "RiskFactors":
        """Build from the JSON bundle the web layer sends; values are not validated here."""
        if payload is None:
            return cls()
        if isinstance(payload, RiskFactors):
            return payload
        if not isinstance(payload, Mapping):
            raise ValidationError(field_name="risk_factors", detail="Risk factors must be an object.")

        loc = _section(payload, "location")
        demo = _section(payload, "demographics")
        prop = _section(payload, "property")
        pers = _section(payload, "personal")
        veh = _section(payload, "vehicle")

        return cls(
            location=None
            if loc is None
            else LocationFactors(
                province=_pick(loc, "province"),
                postal_code=_pick(loc, "postal_code"),
                crime_rate=_pick(loc, "crime_rate"),
                natural_disaster_risk=_pick(loc, "natural_disaster_risk"),
            ),
            demographics=None if demo is None else Demographics(age=_pick(demo, "age")),
            property=None
            if prop is None
            else PropertyFactors(
                year_built=_pick(prop, "year_built"),
                square_footage=_pick(prop, "square_footage"),
                construction_type=_pick(prop, "construction_type"),
                safety_features=_pick(prop, "safety_features") or (),
                has_pool=_pick(prop, "has_pool"),
                has_garage=_pick(prop, "has_garage"),
                foundation_type=_pick(prop, "foundation_type"),
                roof_type=_pick(prop, "roof_type"),
                heating_type=_pick(prop, "heating_type"),
            ),
            personal=None
            if pers is None
            else PersonalFactors(
                credit_score=_pick(pers, "credit_score"),
                claims_history=_pick(pers, "claims_history"),
                smoking_status=_pick(pers, "smoking_status"),
            ),
            vehicle=None
            if veh is None
            else VehicleFactors(
                year=_pick(veh, "year"),
                safety_rating=_pick(veh, "safety_rating"),
                annual_mileage=_pick(veh, "annual_mileage"),
            ),
        )


# ---- normalized (every field concrete, produced only by the normalizer) ----

NEUTRAL_CATEGORY = "average"


@dataclass(frozen=True)
class NormalizedLocation:
    province: str = ""
    postal_code: str = ""
    crime_rate: str = "medium"
    natural_disaster_risk: str = "medium"


@dataclass(frozen=True)
class NormalizedProperty:
    year_built: Optional[int] = None
    square_footage: Optional[int] = None
    construction_type: str = NEUTRAL_CATEGORY
    safety_features: Tuple[str, ...] = ()
    has_pool: bool = False
    has_garage: bool = False
    foundation_type: str = NEUTRAL_CATEGORY
    roof_type: str = NEUTRAL_CATEGORY
    heating_type: str = NEUTRAL_CATEGORY


@dataclass(frozen=True)
class NormalizedPersonal:
    credit_score: int = 650
    claims_history: int = 0
    smoking_status: Optional[str] = None


@dataclass(frozen=True)
class NormalizedVehicle:
    year: Optional[int] = None
    safety_rating: Optional[int] = None
    annual_mileage: Optional[int] = None


@dataclass(frozen=True)
class NormalizedRiskFactors:
    age: int
    # year used for building and vehicle age
    valuation_year: int
    location: NormalizedLocation = field(default_factory=NormalizedLocation)
    property: NormalizedProperty = field(default_factory=NormalizedProperty)
    personal: NormalizedPersonal = field(default_factory=NormalizedPersonal)
    vehicle: Optional[NormalizedVehicle] = None
