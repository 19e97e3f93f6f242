"""
Tariff tables: every business constant the engine prices with.

The built-in ``DEFAULT_TARIFF`` is immutable and shared by all callers.
A product owner can supply replacement tables as JSON; ``load_tariff``
reads such a file once per path and returns another immutable ``Tariff``.

JSON layout (every key optional, a supplied table replaces the default
table as a whole, so omitting a policy type from ``base_rates`` removes it):

    {
      "base_rates": {"HOME": 0.008},
      "crime_rate": {"low": 0.95, "medium": 1.0, "high": 1.2},
      "building_age_bands": [[5, 0.9], [15, 0.95], [null, 1.2]],
      "credit_bands": [[800, 0.85], [300, 1.3]],
      "category_clamps": {"location": [0.8, 1.5]},
      "aggregate_clamp": [0.5, 3.0],
      "maximum_coverage": 10000000,
      "minimum_annual_premium": 50
    }
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from premium_engine.domain.errors import TariffConfigError, UnsupportedPolicyTypeError
from premium_engine.domain.policy import PolicyType, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Band:
    """Applies to values below ``upper`` (exclusive); ``upper=None`` is the catch-all."""

    upper: Optional[int]
    value: Decimal


@dataclass(frozen=True)
class Floor:
    """Applies to values at or above ``lower``; floors are kept in descending order."""

    lower: int
    value: Decimal


def lookup_band(bands: Tuple[Band, ...], x: int) -> Decimal:
    for band in bands:
        if band.upper is None or x < band.upper:
            return band.value
    return Decimal("1")


def lookup_floor(floors: Tuple[Floor, ...], x: int) -> Decimal:
    for f in floors:
        if x >= f.lower:
            return f.value
    return floors[-1].value if floors else Decimal("1")


def _d(value: str) -> Decimal:
    return Decimal(value)


def _table(items: Mapping[str, str]) -> Mapping[str, Decimal]:
    return MappingProxyType({k: _d(v) for k, v in items.items()})


def _bands(*pairs: Tuple[Optional[int], str]) -> Tuple[Band, ...]:
    return tuple(Band(upper=u, value=_d(v)) for u, v in pairs)


@dataclass(frozen=True)
class Tariff:
    # annual premium per currency unit of coverage
    base_rates: Mapping[PolicyType, Decimal]

    # location
    region_multipliers: Mapping[str, Decimal]
    crime_rate: Mapping[str, Decimal]
    natural_disaster_risk: Mapping[str, Decimal]

    # property
    building_age_bands: Tuple[Band, ...]
    construction_types: Mapping[str, Decimal]
    recognized_safety_features: FrozenSet[str]
    safety_feature_discount: Decimal
    safety_discount_cap: Decimal
    pool_multiplier: Decimal
    garage_multiplier: Decimal
    foundation_types: Mapping[str, Decimal]
    roof_types: Mapping[str, Decimal]
    heating_types: Mapping[str, Decimal]

    # personal
    default_credit_score: int
    credit_bands: Tuple[Floor, ...]
    claims_surcharge_rate: Decimal
    claims_surcharge_cap: Decimal
    smoking_status: Mapping[str, Decimal]
    smoking_policy_types: FrozenSet[PolicyType]

    # demographic
    age_bands: Mapping[PolicyType, Tuple[Band, ...]]

    # vehicle (AUTO)
    vehicle_age_bands: Tuple[Band, ...]
    vehicle_safety_rating: Mapping[int, Decimal]
    vehicle_mileage_bands: Tuple[Band, ...]

    # bounds
    category_clamps: Mapping[str, Tuple[Decimal, Decimal]]
    aggregate_clamp: Tuple[Decimal, Decimal]

    # coverage, deductible and premium floor
    maximum_coverage: Decimal
    deductible_reference: Mapping[PolicyType, Decimal]
    deductible_cap: Mapping[PolicyType, Decimal]
    max_deductible_discount: Decimal
    minimum_annual_premium: Decimal

    def base_rate(self, policy_type: Any) -> Decimal:
        pt = PolicyType.parse(policy_type)
        try:
            return self.base_rates[pt]
        except KeyError:
            raise UnsupportedPolicyTypeError(policy_type=pt.value) from None

    def clamp_for(self, category: str) -> Tuple[Decimal, Decimal]:
        return self.category_clamps.get(category, self.aggregate_clamp)

    def deductible_cap_for(self, policy_type: PolicyType) -> Decimal:
        self.base_rate(policy_type)
        return self.deductible_cap[policy_type]

    def deductible_reference_for(self, policy_type: PolicyType) -> Decimal:
        self.base_rate(policy_type)
        return self.deductible_reference[policy_type]


DEFAULT_TARIFF = Tariff(
    base_rates=MappingProxyType(
        {
            PolicyType.HOME: _d("0.008"),
            PolicyType.AUTO: _d("0.012"),
            PolicyType.LIFE: _d("0.015"),
            PolicyType.HEALTH: _d("0.045"),
        }
    ),
    region_multipliers=_table(
        {
            "CA": "1.15",
            "FL": "1.15",
            "TX": "1.15",
            "NY": "1.15",
            "LA": "1.15",
            "VT": "0.9",
            "ME": "0.9",
            "NH": "0.9",
            "WY": "0.9",
            "ND": "0.9",
        }
    ),
    crime_rate=_table({"low": "0.95", "medium": "1.0", "high": "1.2"}),
    natural_disaster_risk=_table({"low": "0.95", "medium": "1.0", "high": "1.25"}),
    building_age_bands=_bands((5, "0.9"), (15, "0.95"), (30, "1.0"), (50, "1.1"), (None, "1.2")),
    construction_types=_table(
        {"steel": "0.85", "masonry": "0.9", "brick": "0.9", "concrete": "0.9", "frame": "1.0", "wood": "1.1"}
    ),
    recognized_safety_features=frozenset(
        {
            "smoke_detector",
            "fire_extinguisher",
            "sprinkler_system",
            "burglar_alarm",
            "monitored_alarm",
            "burglar_bars",
            "security_gate",
            "electric_fence",
            "deadbolt_locks",
            "cctv",
        }
    ),
    safety_feature_discount=_d("0.02"),
    safety_discount_cap=_d("0.15"),
    pool_multiplier=_d("1.05"),
    garage_multiplier=_d("0.98"),
    foundation_types=_table(
        {"concrete_slab": "0.98", "slab": "0.98", "basement": "1.0", "crawlspace": "1.03", "pier": "1.05"}
    ),
    roof_types=_table(
        {"metal": "0.95", "slate": "0.95", "tile": "0.97", "shingle": "1.0", "flat": "1.05", "thatch": "1.25"}
    ),
    heating_types=_table(
        {
            "heat_pump": "0.98",
            "solar": "0.97",
            "electric": "1.0",
            "gas": "1.03",
            "wood": "1.1",
            "paraffin": "1.15",
        }
    ),
    default_credit_score=650,
    credit_bands=(
        Floor(800, _d("0.85")),
        Floor(740, _d("0.9")),
        Floor(640, _d("1.0")),
        Floor(580, _d("1.15")),
        Floor(300, _d("1.3")),
    ),
    claims_surcharge_rate=_d("0.10"),
    claims_surcharge_cap=_d("1.75"),
    smoking_status=_table({"smoker": "1.5", "former-smoker": "1.2", "non-smoker": "0.95"}),
    smoking_policy_types=frozenset({PolicyType.LIFE, PolicyType.HEALTH}),
    age_bands=MappingProxyType(
        {
            PolicyType.HOME: _bands((25, "1.1"), (30, "1.05"), (61, "1.0"), (75, "1.05"), (None, "1.1")),
            PolicyType.AUTO: _bands((25, "1.4"), (35, "1.1"), (65, "1.0"), (None, "1.15")),
            PolicyType.LIFE: _bands((30, "0.8"), (40, "0.9"), (50, "1.0"), (60, "1.3"), (None, "1.8")),
            PolicyType.HEALTH: _bands((None, "1.0")),
        }
    ),
    vehicle_age_bands=_bands((2, "1.1"), (5, "1.0"), (10, "0.95"), (None, "0.9")),
    vehicle_safety_rating=MappingProxyType(
        {1: _d("1.1"), 2: _d("1.1"), 3: _d("1.0"), 4: _d("0.95"), 5: _d("0.9")}
    ),
    vehicle_mileage_bands=_bands((7500, "0.9"), (15001, "1.0"), (None, "1.15")),
    category_clamps=MappingProxyType(
        {
            "location": (_d("0.8"), _d("1.5")),
            "property": (_d("0.7"), _d("1.4")),
            "personal": (_d("0.7"), _d("2.5")),
            "demographic": (_d("0.7"), _d("2.0")),
            "vehicle": (_d("0.8"), _d("1.3")),
        }
    ),
    aggregate_clamp=(_d("0.5"), _d("3.0")),
    maximum_coverage=_d("10000000"),
    deductible_reference=MappingProxyType(
        {
            PolicyType.HOME: _d("5000"),
            PolicyType.AUTO: _d("1000"),
            PolicyType.LIFE: _d("5000"),
            PolicyType.HEALTH: _d("2500"),
        }
    ),
    deductible_cap=MappingProxyType({pt: _d("50000") for pt in PolicyType}),
    max_deductible_discount=_d("0.30"),
    minimum_annual_premium=_d("50.00"),
)


# ---- JSON overrides ----


def _number(source: str, key: str, value: Any) -> Decimal:
    try:
        d = to_money(value)
    except ValueError:
        raise TariffConfigError(source=source, detail=f"{key}: expected a number, got {value!r}") from None
    if d < 0:
        raise TariffConfigError(source=source, detail=f"{key}: must not be negative")
    return d


def _positive(source: str, key: str, value: Any) -> Decimal:
    d = _number(source, key, value)
    if d == 0:
        raise TariffConfigError(source=source, detail=f"{key}: must be positive")
    return d


def _mapping(source: str, key: str, value: Any) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise TariffConfigError(source=source, detail=f"{key}: expected an object")
    return value


def _category_table(source: str, key: str, value: Any) -> Mapping[str, Decimal]:
    raw = _mapping(source, key, value)
    return MappingProxyType(
        {str(k).strip().lower(): _positive(source, f"{key}.{k}", v) for k, v in raw.items()}
    )


def _region_table(source: str, key: str, value: Any) -> Mapping[str, Decimal]:
    raw = _mapping(source, key, value)
    return MappingProxyType(
        {str(k).strip().upper(): _positive(source, f"{key}.{k}", v) for k, v in raw.items()}
    )


def _policy_table(source: str, key: str, value: Any) -> Mapping[PolicyType, Decimal]:
    raw = _mapping(source, key, value)
    table: Dict[PolicyType, Decimal] = {}
    for k, v in raw.items():
        try:
            pt = PolicyType.parse(k)
        except UnsupportedPolicyTypeError:
            raise TariffConfigError(source=source, detail=f"{key}: unknown policy type {k!r}") from None
        table[pt] = _positive(source, f"{key}.{k}", v)
    return MappingProxyType(table)


def _band_list(source: str, key: str, value: Any) -> Tuple[Band, ...]:
    if not isinstance(value, list) or not value:
        raise TariffConfigError(source=source, detail=f"{key}: expected a non-empty list of [upper, value]")
    bands = []
    previous: Optional[int] = None
    for i, item in enumerate(value):
        if not isinstance(item, list) or len(item) != 2:
            raise TariffConfigError(source=source, detail=f"{key}[{i}]: expected [upper, value]")
        upper, mult = item
        if upper is not None:
            if isinstance(upper, bool) or not isinstance(upper, int):
                raise TariffConfigError(source=source, detail=f"{key}[{i}]: upper must be an integer or null")
            if previous is not None and upper <= previous:
                raise TariffConfigError(source=source, detail=f"{key}: bands must ascend")
            previous = upper
        elif i != len(value) - 1:
            raise TariffConfigError(source=source, detail=f"{key}: only the last band may be open-ended")
        bands.append(Band(upper=upper, value=_positive(source, f"{key}[{i}]", mult)))
    return tuple(bands)


def _floor_list(source: str, key: str, value: Any) -> Tuple[Floor, ...]:
    if not isinstance(value, list) or not value:
        raise TariffConfigError(source=source, detail=f"{key}: expected a non-empty list of [lower, value]")
    floors = []
    for i, item in enumerate(value):
        if not isinstance(item, list) or len(item) != 2 or isinstance(item[0], bool) or not isinstance(item[0], int):
            raise TariffConfigError(source=source, detail=f"{key}[{i}]: expected [lower, value]")
        floors.append(Floor(lower=item[0], value=_positive(source, f"{key}[{i}]", item[1])))
    floors.sort(key=lambda f: f.lower, reverse=True)
    return tuple(floors)


def _bounds(source: str, key: str, value: Any) -> Tuple[Decimal, Decimal]:
    if not isinstance(value, list) or len(value) != 2:
        raise TariffConfigError(source=source, detail=f"{key}: expected [low, high]")
    low = _positive(source, f"{key}[0]", value[0])
    high = _positive(source, f"{key}[1]", value[1])
    if low > high:
        raise TariffConfigError(source=source, detail=f"{key}: low bound exceeds high bound")
    return low, high


def _clamp_table(source: str, key: str, value: Any) -> Mapping[str, Tuple[Decimal, Decimal]]:
    raw = _mapping(source, key, value)
    return MappingProxyType({str(k): _bounds(source, f"{key}.{k}", v) for k, v in raw.items()})


def _age_table(source: str, key: str, value: Any) -> Mapping[PolicyType, Tuple[Band, ...]]:
    raw = _mapping(source, key, value)
    table: Dict[PolicyType, Tuple[Band, ...]] = {}
    for k, v in raw.items():
        try:
            pt = PolicyType.parse(k)
        except UnsupportedPolicyTypeError:
            raise TariffConfigError(source=source, detail=f"{key}: unknown policy type {k!r}") from None
        table[pt] = _band_list(source, f"{key}.{k}", v)
    return MappingProxyType(table)


def _rating_table(source: str, key: str, value: Any) -> Mapping[int, Decimal]:
    raw = _mapping(source, key, value)
    table: Dict[int, Decimal] = {}
    for k, v in raw.items():
        try:
            rating = int(k)
        except ValueError:
            raise TariffConfigError(source=source, detail=f"{key}: rating keys must be integers") from None
        table[rating] = _positive(source, f"{key}.{k}", v)
    return MappingProxyType(table)


def _name_set(source: str, key: str, value: Any) -> FrozenSet[str]:
    if not isinstance(value, list):
        raise TariffConfigError(source=source, detail=f"{key}: expected a list of names")
    return frozenset(str(v).strip().lower() for v in value)


def _policy_set(source: str, key: str, value: Any) -> FrozenSet[PolicyType]:
    if not isinstance(value, list):
        raise TariffConfigError(source=source, detail=f"{key}: expected a list of policy types")
    try:
        return frozenset(PolicyType.parse(v) for v in value)
    except UnsupportedPolicyTypeError as e:
        raise TariffConfigError(source=source, detail=f"{key}: {e}") from None


def _fraction(source: str, key: str, value: Any) -> Decimal:
    d = _number(source, key, value)
    if d >= 1:
        raise TariffConfigError(source=source, detail=f"{key}: must be below 1")
    return d


def _credit_score(source: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 300 <= value <= 850:
        raise TariffConfigError(source=source, detail=f"{key}: expected an integer in 300..850")
    return value


_PARSERS: Dict[str, Callable[[str, str, Any], Any]] = {
    "base_rates": _policy_table,
    "region_multipliers": _region_table,
    "crime_rate": _category_table,
    "natural_disaster_risk": _category_table,
    "building_age_bands": _band_list,
    "construction_types": _category_table,
    "recognized_safety_features": _name_set,
    "safety_feature_discount": _fraction,
    "safety_discount_cap": _fraction,
    "pool_multiplier": _positive,
    "garage_multiplier": _positive,
    "foundation_types": _category_table,
    "roof_types": _category_table,
    "heating_types": _category_table,
    "default_credit_score": _credit_score,
    "credit_bands": _floor_list,
    "claims_surcharge_rate": _number,
    "claims_surcharge_cap": _positive,
    "smoking_status": _category_table,
    "smoking_policy_types": _policy_set,
    "age_bands": _age_table,
    "vehicle_age_bands": _band_list,
    "vehicle_safety_rating": _rating_table,
    "vehicle_mileage_bands": _band_list,
    "category_clamps": _clamp_table,
    "aggregate_clamp": _bounds,
    "maximum_coverage": _positive,
    "deductible_reference": _policy_table,
    "deductible_cap": _policy_table,
    "max_deductible_discount": _fraction,
    "minimum_annual_premium": _positive,
}


def tariff_from_dict(
    raw: Mapping[str, Any], *, base: Tariff = DEFAULT_TARIFF, source: str = "<dict>"
) -> Tariff:
    """Replace the tables named in ``raw`` on top of ``base``; unknown keys are rejected."""
    if not isinstance(raw, Mapping):
        raise TariffConfigError(source=source, detail="tariff must be a JSON object")

    unknown = sorted(set(raw) - set(_PARSERS))
    if unknown:
        raise TariffConfigError(source=source, detail="unknown tariff keys: " + ", ".join(unknown))

    changes = {key: _PARSERS[key](source, key, value) for key, value in raw.items()}
    tariff = dataclasses.replace(base, **changes)

    for pt in tariff.base_rates:
        if pt not in tariff.deductible_cap or pt not in tariff.deductible_reference:
            raise TariffConfigError(
                source=source, detail=f"policy type {pt.value} has a base rate but no deductible settings"
            )
    return tariff


@lru_cache(maxsize=8)
def load_tariff(tariff_path: str) -> Tariff:
    path = Path(tariff_path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TariffConfigError(source=tariff_path, detail=f"cannot read tariff file: {e}") from e
    except json.JSONDecodeError as e:
        raise TariffConfigError(source=tariff_path, detail=f"invalid JSON: {e}") from e

    tariff = tariff_from_dict(raw, source=tariff_path)
    logger.info("Loaded tariff from %s (%d table overrides)", tariff_path, len(raw))
    return tariff
