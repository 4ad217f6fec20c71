"""Record-facing API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ..models.domain import (
    Contact,
    ContactKind,
    ContactResponse,
    ContactStatus,
    GeocodeAttempt,
    GeocodeStatus,
    Record,
    RecordStatus,
)


class ContactResponseModel(BaseModel):
    date: str
    positive: bool
    comment: str = ""


class ContactModel(BaseModel):
    date: str
    kind: ContactKind
    by: str = ""
    status: ContactStatus
    response: Optional[ContactResponseModel] = None

    @classmethod
    def from_domain(cls, contact: Contact) -> "ContactModel":
        response = None
        if contact.response is not None:
            response = ContactResponseModel(
                date=contact.response.date,
                positive=contact.response.positive,
                comment=contact.response.comment,
            )
        return cls(date=contact.date, kind=contact.kind, by=contact.by, status=contact.status, response=response)

    def to_domain(self) -> Contact:
        response = None
        if self.response is not None:
            response = ContactResponse(
                date=self.response.date,
                positive=self.response.positive,
                comment=self.response.comment,
            )
        return Contact(date=self.date, kind=self.kind, by=self.by, status=self.status, response=response)


class ContactCreate(BaseModel):
    """Body of ``POST /records/{id}/contacts``; the date defaults to now."""

    date: Optional[str] = None
    kind: ContactKind = ContactKind.INITIAL
    by: str = ""
    status: ContactStatus = ContactStatus.MAIL_SENT
    response: Optional[ContactResponseModel] = None


class GeocodeAttemptModel(BaseModel):
    date: str
    address: str
    success: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class RecordModel(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    street: str = ""
    postal_code: str = ""
    city: str = ""
    department: str = ""
    email: str = ""
    associate_names: str = ""
    employee_names: str = ""
    associate_count: int = Field(default=0, ge=0)
    employee_count: int = Field(default=0, ge=0)
    negotiation_service: bool = False
    status: RecordStatus = RecordStatus.UNDEFINED
    notes: str = ""
    contacts: List[ContactModel] = Field(default_factory=list)
    modified_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geocode_score: Optional[float] = None
    geocode_history: List[GeocodeAttemptModel] = Field(default_factory=list)
    geocode_status: Optional[GeocodeStatus] = None
    needs_geocoding: bool = False

    @classmethod
    def from_domain(cls, record: Record) -> "RecordModel":
        return cls(
            id=record.id,
            name=record.name,
            street=record.street,
            postal_code=record.postal_code,
            city=record.city,
            department=record.department,
            email=record.email,
            associate_names=record.associate_names,
            employee_names=record.employee_names,
            associate_count=record.associate_count,
            employee_count=record.employee_count,
            negotiation_service=record.negotiation_service,
            status=record.status,
            notes=record.notes,
            contacts=[ContactModel.from_domain(contact) for contact in record.contacts],
            modified_at=record.modified_at,
            latitude=record.latitude,
            longitude=record.longitude,
            geocode_score=record.geocode_score,
            geocode_history=[
                GeocodeAttemptModel(
                    date=attempt.date,
                    address=attempt.address,
                    success=attempt.success,
                    latitude=attempt.latitude,
                    longitude=attempt.longitude,
                )
                for attempt in record.geocode_history
            ],
            geocode_status=record.geocode_status,
            needs_geocoding=record.needs_geocoding,
        )

    def to_domain(self) -> Record:
        return Record(
            id=self.id,
            name=self.name,
            street=self.street,
            postal_code=self.postal_code,
            city=self.city,
            department=self.department,
            email=self.email,
            associate_names=self.associate_names,
            employee_names=self.employee_names,
            associate_count=self.associate_count,
            employee_count=self.employee_count,
            negotiation_service=self.negotiation_service,
            status=self.status,
            notes=self.notes,
            contacts=tuple(contact.to_domain() for contact in self.contacts),
            modified_at=self.modified_at,
            latitude=self.latitude,
            longitude=self.longitude,
            geocode_score=self.geocode_score,
            geocode_history=tuple(
                GeocodeAttempt(
                    date=attempt.date,
                    address=attempt.address,
                    success=attempt.success,
                    latitude=attempt.latitude,
                    longitude=attempt.longitude,
                )
                for attempt in self.geocode_history
            ),
            geocode_status=self.geocode_status,
            needs_geocoding=self.needs_geocoding,
        )


class RecordListResponse(BaseModel):
    items: List[RecordModel]
    total: int


class RecordUpdateResponse(BaseModel):
    record: RecordModel
    queued: bool
    written: Optional[bool] = None


class QueueEntryModel(BaseModel):
    id: str
    name: str
    attempts: int
    enqueued_at: datetime


class QueueStatusResponse(BaseModel):
    pending_count: int
    in_progress: bool
    entries: List[QueueEntryModel]
    failures: List[dict[str, Any]]
    written_count: int
    failed_count: int


class ServiceStatusResponse(BaseModel):
    initialized: bool
    loading: bool
    state: str
    record_count: int
    interest_zone_count: int
    subscriber_count: int
    timers_running: bool
    queue: QueueStatusResponse


class GeocodeRunResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    skipped: int


class AddressSuggestionModel(BaseModel):
    label: str
    score: float
    postcode: str
    city: str
    latitude: float
    longitude: float
