from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping


class PremiumEngineError(Exception):
    title: ClassVar[str] = "Pricing failed"

    @property
    def problem_detail(self) -> str:
        return str(self)

    @property
    def problem_fields(self) -> Dict[str, str]:
        return {}

    def to_dict(self, request_id: str | None = None) -> Dict[str, Any]:
        return {
            "title": self.title,
            "detail": self.problem_detail,
            "fieldErrors": self.problem_fields,
            "requestId": request_id,
        }


@dataclass(eq=False)
class ValidationError(PremiumEngineError):
    """
    An input value outside its documented bound.

    ``field_name`` is the first failing field (dotted path such as
    ``demographics.age``); ``field_errors`` holds every failing field.
    """

    title: ClassVar[str] = "Validation failed"

    field_name: str
    detail: str
    field_errors: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.field_errors:
            self.field_errors = {self.field_name: self.detail}
        super().__init__(f"{self.field_name}: {self.detail}")

    @classmethod
    def from_field_errors(cls, field_errors: Mapping[str, str]) -> "ValidationError":
        if not field_errors:
            raise ValueError("field_errors must not be empty")
        first = next(iter(field_errors))
        return cls(field_name=first, detail=field_errors[first], field_errors=dict(field_errors))

    @property
    def problem_detail(self) -> str:
        return self.detail

    @property
    def problem_fields(self) -> Dict[str, str]:
        return dict(self.field_errors)


@dataclass(eq=False)
class MalformedCoverageError(ValidationError):
    title: ClassVar[str] = "Malformed coverage"


@dataclass(eq=False)
class UnsupportedPolicyTypeError(PremiumEngineError):
    title: ClassVar[str] = "Unsupported policy type"

    policy_type: str

    def __post_init__(self) -> None:
        super().__init__(f"No base rate for policy type {self.policy_type!r}")

    @property
    def problem_fields(self) -> Dict[str, str]:
        return {"policy_type": str(self)}


@dataclass(eq=False)
class TariffConfigError(PremiumEngineError):
    title: ClassVar[str] = "Invalid tariff"

    source: str
    detail: str

    def __post_init__(self) -> None:
        super().__init__(f"{self.source}: {self.detail}")
