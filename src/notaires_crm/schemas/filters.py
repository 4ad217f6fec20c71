"""Filter configuration for the record list and map."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import ContactStatus, RecordStatus
from .zones import InterestZoneModel


class FilterSpec(BaseModel):
    record_type: Literal["all", "individual", "grouped"] = Field(
        default="all",
        description="'grouped' offices have more than one associate.",
    )
    negotiation_service: Literal["all", "yes", "no"] = "all"
    min_associates: int = Field(default=0, ge=0)
    max_associates: int = Field(default=10, ge=0)
    min_employees: int = Field(default=0, ge=0)
    max_employees: int = Field(default=100, ge=0)
    statuses: list[RecordStatus] = Field(default_factory=list)
    contact_statuses: list[ContactStatus] = Field(default_factory=list)
    show_uncontacted: bool = False
    show_only_with_email: bool = False
    show_only_in_radius: bool = False
    interest_zones: list[InterestZoneModel] = Field(default_factory=list)

    @field_validator("interest_zones", mode="before")
    @classmethod
    def _accept_domain_zones(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [asdict(item) if is_dataclass(item) and not isinstance(item, type) else item for item in value]
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> "FilterSpec":
        if self.min_associates > self.max_associates:
            raise ValueError("min_associates must be <= max_associates")
        if self.min_employees > self.max_employees:
            raise ValueError("min_employees must be <= max_employees")
        return self


class RecordSearchRequest(BaseModel):
    filters: FilterSpec = Field(default_factory=FilterSpec)
    query: str = ""
