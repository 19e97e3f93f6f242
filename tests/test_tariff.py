from __future__ import annotations

import json
import logging
from decimal import Decimal

import pytest

from premium_engine.domain.errors import MalformedCoverageError, TariffConfigError, UnsupportedPolicyTypeError
from premium_engine.domain.policy import PolicyType
from premium_engine.services.pricing import calculate_premium
from premium_engine.services.tariff import (
    DEFAULT_TARIFF,
    Band,
    load_tariff,
    lookup_band,
    tariff_from_dict,
)


def _write(tmp_path, payload) -> str:
    path = tmp_path / "tariff.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_every_policy_type_has_a_base_rate():
    for policy_type in PolicyType:
        assert DEFAULT_TARIFF.base_rate(policy_type) > 0
    assert DEFAULT_TARIFF.base_rate("home") == Decimal("0.008")


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_TARIFF.base_rates[PolicyType.HOME] = Decimal("1")  # type: ignore[index]


def test_lookup_band_picks_first_match():
    bands = (Band(10, Decimal("0.9")), Band(None, Decimal("1.2")))
    assert lookup_band(bands, 3) == Decimal("0.9")
    assert lookup_band(bands, 10) == Decimal("1.2")


def test_overrides_replace_whole_tables(tmp_path, caplog):
    path = _write(tmp_path, {"base_rates": {"HOME": "0.004"}, "minimum_annual_premium": 100})
    with caplog.at_level(logging.INFO, logger="premium_engine.services.tariff"):
        tariff = load_tariff(path)
    assert "Loaded tariff" in caplog.text

    assert tariff.base_rate(PolicyType.HOME) == Decimal("0.004")
    assert tariff.minimum_annual_premium == Decimal("100")
    # untouched tables keep their defaults
    assert tariff.crime_rate == DEFAULT_TARIFF.crime_rate
    with pytest.raises(UnsupportedPolicyTypeError):
        tariff.base_rate(PolicyType.AUTO)
    assert load_tariff(path) is tariff


def test_priced_with_custom_tariff(tmp_path):
    tariff = load_tariff(_write(tmp_path, {"base_rates": {"HOME": 0.004, "AUTO": 0.012}}))
    rf = {"demographics": {"age": 40}}
    default = calculate_premium(PolicyType.HOME, {"dwelling": 400000}, rf, 0, valuation_year=2026)
    cheaper = calculate_premium(PolicyType.HOME, {"dwelling": 400000}, rf, 0, tariff=tariff, valuation_year=2026)
    assert cheaper.annual_premium * 2 == default.annual_premium
    with pytest.raises(UnsupportedPolicyTypeError):
        calculate_premium(PolicyType.LIFE, {"death_benefit": 100000}, rf, tariff=tariff)


@pytest.mark.parametrize(
    "payload",
    [
        {"no_such_table": 1},
        {"base_rates": {"BUSINESS": 0.025}},
        {"base_rates": {"HOME": -1}},
        {"crime_rate": ["low"]},
        {"building_age_bands": [[10, 1.0], [5, 1.1]]},
        {"building_age_bands": [[None, 1.0], [5, 1.1]]},
        {"aggregate_clamp": [3.0, 0.5]},
        {"max_deductible_discount": 1.5},
        {"default_credit_score": 900},
    ],
)
def test_invalid_overrides_are_rejected(payload):
    with pytest.raises(TariffConfigError):
        tariff_from_dict(payload)


def test_unreadable_file(tmp_path):
    with pytest.raises(TariffConfigError):
        load_tariff(str(tmp_path / "missing.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(TariffConfigError):
        load_tariff(str(bad))


def test_maximum_coverage_can_be_overridden():
    tariff = tariff_from_dict({"maximum_coverage": 500000})
    rf = {"demographics": {"age": 40}}
    assert calculate_premium(PolicyType.HOME, {"dwelling": 500000}, rf, tariff=tariff, valuation_year=2026)
    with pytest.raises(MalformedCoverageError):
        calculate_premium(PolicyType.HOME, {"dwelling": 500001}, rf, tariff=tariff, valuation_year=2026)
    with pytest.raises(TariffConfigError):
        tariff_from_dict({"maximum_coverage": 0})
