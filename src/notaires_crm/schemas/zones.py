"""Interest zone API schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..models.domain import InterestZone


class InterestZoneModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    radius_km: Optional[float] = Field(default=None, gt=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    region: Optional[str] = None
    population: Optional[int] = Field(default=None, ge=0)

    @classmethod
    def from_domain(cls, zone: InterestZone) -> "InterestZoneModel":
        return cls(
            id=zone.id,
            name=zone.name,
            radius_km=zone.radius_km,
            latitude=zone.latitude,
            longitude=zone.longitude,
            region=zone.region,
            population=zone.population,
        )

    def to_domain(self) -> InterestZone:
        return InterestZone(
            id=self.id,
            name=self.name,
            radius_km=self.radius_km,
            latitude=self.latitude,
            longitude=self.longitude,
            region=self.region,
            population=self.population,
        )
