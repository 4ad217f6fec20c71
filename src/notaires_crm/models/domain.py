"""Domain models for notary offices, their contact history and interest zones."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class RecordStatus(str, Enum):
    FAVORITE = "favorite"
    CONSIDERING = "considering"
    NOT_INTERESTED = "not_interested"
    UNDEFINED = "undefined"


class ContactKind(str, Enum):
    INITIAL = "initial"
    FOLLOWUP = "followup"


class ContactStatus(str, Enum):
    MAIL_SENT = "mail_sent"
    FOLLOWUP_SENT = "followup_sent"
    RESPONSE_RECEIVED = "response_received"
    CLOSED = "closed"


class GeocodeStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ContactResponse:
    date: str
    positive: bool
    comment: str = ""


@dataclass(frozen=True, slots=True)
class Contact:
    """One outreach step; a record's contacts are kept in chronological order."""

    date: str
    kind: ContactKind
    by: str
    status: ContactStatus
    response: Optional[ContactResponse] = None


@dataclass(frozen=True, slots=True)
class GeocodeAttempt:
    """Audit entry appended every time an address is sent to the geocoder."""

    date: str
    address: str
    success: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True, slots=True)
class Record:
    """A notary office tracked as a prospect."""

    id: str
    name: str
    street: str = ""
    postal_code: str = ""
    city: str = ""
    department: str = ""
    email: str = ""
    associate_names: str = ""
    employee_names: str = ""
    associate_count: int = 0
    employee_count: int = 0
    negotiation_service: bool = False
    status: RecordStatus = RecordStatus.UNDEFINED
    notes: str = ""
    contacts: tuple[Contact, ...] = field(default_factory=tuple)
    modified_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geocode_score: Optional[float] = None
    geocode_history: tuple[GeocodeAttempt, ...] = field(default_factory=tuple)
    geocode_status: Optional[GeocodeStatus] = None
    needs_geocoding: bool = False

    @property
    def full_address(self) -> str:
        locality = f"{self.postal_code} {self.city}".strip()
        if self.street.strip():
            return f"{self.street.strip()}, {locality}".strip().rstrip(",")
        return locality

    @property
    def has_coordinates(self) -> bool:
        # zero is the sheet's placeholder for "not geocoded yet"
        return bool(self.latitude) and bool(self.longitude)

    @property
    def last_contact(self) -> Optional[Contact]:
        return self.contacts[-1] if self.contacts else None

    @property
    def is_grouped(self) -> bool:
        return self.associate_count > 1


@dataclass(frozen=True, slots=True)
class InterestZone:
    """A named centre and radius used to scope the map geographically."""

    id: str
    name: str
    radius_km: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    region: Optional[str] = None
    population: Optional[int] = None
