from __future__ import annotations

from decimal import Decimal

import pytest

from premium_engine.domain.errors import ValidationError
from premium_engine.domain.policy import PolicyType
from premium_engine.domain.risk import Demographics, RiskFactors
from premium_engine.services.normalizer import normalize_risk_factors, validate_deductible
from premium_engine.services.tariff import DEFAULT_TARIFF


def test_defaults_for_omitted_sections():
    n = normalize_risk_factors({"demographics": {"age": 35}}, valuation_year=2026)
    assert n.age == 35
    assert n.location.crime_rate == "medium"
    assert n.location.natural_disaster_risk == "medium"
    assert n.property.safety_features == ()
    assert n.property.has_pool is False
    assert n.personal.credit_score == 650
    assert n.personal.claims_history == 0
    assert n.vehicle is None
    assert n.valuation_year == 2026


def test_typed_input_is_accepted():
    n = normalize_risk_factors(RiskFactors(demographics=Demographics(age=50)))
    assert n.age == 50


def test_loose_json_is_coerced():
    n = normalize_risk_factors(
        {
            "location": {"state": "ca", "zipCode": 90210, "crimeRate": "HIGH"},
            "demographics": {"age": "42"},
            "property": {
                "buildYear": "1999",
                "safetyFeatures": "Smoke Detector",
                "hasPool": "yes",
                "roofType": "Metal",
            },
            "personal": {"previousClaims": "3", "smokingStatus": "former smoker"},
        },
        valuation_year=2026,
    )
    assert n.age == 42
    assert n.location.province == "CA"
    assert n.location.postal_code == "90210"
    assert n.location.crime_rate == "high"
    assert n.property.year_built == 1999
    assert n.property.safety_features == ("smoke_detector",)
    assert n.property.has_pool is True
    assert n.property.roof_type == "metal"
    assert n.personal.claims_history == 3
    assert n.personal.smoking_status == "former-smoker"


def test_duplicate_safety_features_collapse():
    n = normalize_risk_factors(
        {"demographics": {"age": 30}, "property": {"safetyFeatures": ["cctv", "CCTV", "burglar-bars", ""]}}
    )
    assert n.property.safety_features == ("cctv", "burglar_bars")


@pytest.mark.parametrize("age", [17, 121, "abc", True, 35.5])
def test_bad_age_is_rejected(age):
    with pytest.raises(ValidationError) as exc:
        normalize_risk_factors({"demographics": {"age": age}})
    assert exc.value.field_name == "demographics.age"


@pytest.mark.parametrize("age", [18, 120])
def test_age_bounds_are_inclusive(age):
    assert normalize_risk_factors({"demographics": {"age": age}}).age == age


def test_unknown_risk_level_is_rejected():
    with pytest.raises(ValidationError) as exc:
        normalize_risk_factors({"demographics": {"age": 30}, "location": {"naturalDisasterRisk": "extreme"}})
    assert exc.value.field_name == "location.natural_disaster_risk"


def test_future_build_year_is_rejected():
    with pytest.raises(ValidationError) as exc:
        normalize_risk_factors({"demographics": {"age": 30}, "property": {"yearBuilt": 2031}}, valuation_year=2026)
    assert "property.year_built" in exc.value.field_errors


def test_section_must_be_an_object():
    with pytest.raises(ValidationError) as exc:
        normalize_risk_factors({"demographics": {"age": 30}, "personal": "good"})
    assert exc.value.field_name == "personal"


def test_validate_deductible():
    assert validate_deductible("2500", PolicyType.HOME) == Decimal("2500")
    assert validate_deductible(0, PolicyType.HOME, DEFAULT_TARIFF) == Decimal("0")
    with pytest.raises(ValidationError):
        validate_deductible(-0.01, PolicyType.HOME)
    with pytest.raises(ValidationError):
        validate_deductible("lots", PolicyType.HOME)


def test_mileage_above_ceiling_is_rejected():
    rf = {"demographics": {"age": 30}, "vehicle": {"annualMileage": 500_001}}
    with pytest.raises(ValidationError) as exc:
        normalize_risk_factors(rf, valuation_year=2026)
    assert exc.value.field_name == "vehicle.annual_mileage"
    rf["vehicle"]["annualMileage"] = 500_000
    assert normalize_risk_factors(rf, valuation_year=2026).vehicle.annual_mileage == 500_000
