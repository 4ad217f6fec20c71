"""Row codecs between the spreadsheet ranges and the domain dataclasses.

Column order is a contract with the sheet: reordering the tuples below is a
breaking change for every deployed spreadsheet.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from ..models.domain import (
    Contact,
    ContactKind,
    ContactResponse,
    ContactStatus,
    GeocodeAttempt,
    GeocodeStatus,
    InterestZone,
    Record,
    RecordStatus,
)
from ..services.geospatial import is_valid_latitude, is_valid_longitude

logger = logging.getLogger(__name__)

RECORD_COLUMNS: tuple[str, ...] = (
    "id",
    "office_name",
    "street",
    "postal_code",
    "city",
    "department",
    "email",
    "associate_names",
    "employee_names",
    "associate_count",
    "employee_count",
    "negotiation_service",
    "status",
    "notes",
    "contacts",
    "modified_at",
    "latitude",
    "longitude",
    "geocode_score",
    "geocode_history",
)

ZONE_COLUMNS: tuple[str, ...] = (
    "id",
    "name",
    "radius_km",
    "latitude",
    "longitude",
    "region",
    "population",
)

RECORD_LAST_COLUMN = "T"
ZONE_LAST_COLUMN = "G"

STATUS_LABELS: dict[RecordStatus, str] = {
    RecordStatus.FAVORITE: "favori",
    RecordStatus.CONSIDERING: "envisage",
    RecordStatus.NOT_INTERESTED: "non_interesse",
    RecordStatus.UNDEFINED: "non_defini",
}

_STATUS_ALIASES: dict[str, RecordStatus] = {
    "favori": RecordStatus.FAVORITE,
    "favoris": RecordStatus.FAVORITE,
    "envisage": RecordStatus.CONSIDERING,
    "envisagé": RecordStatus.CONSIDERING,
    "à envisager": RecordStatus.CONSIDERING,
    "a envisager": RecordStatus.CONSIDERING,
    "non interesse": RecordStatus.NOT_INTERESTED,
    "non intéressé": RecordStatus.NOT_INTERESTED,
    "non intéresse": RecordStatus.NOT_INTERESTED,
    "non_interesse": RecordStatus.NOT_INTERESTED,
    "non défini": RecordStatus.UNDEFINED,
    "non defini": RecordStatus.UNDEFINED,
    "non_defini": RecordStatus.UNDEFINED,
}
_STATUS_ALIASES.update({status.value: status for status in RecordStatus})

CONTACT_KIND_LABELS: dict[ContactKind, str] = {
    ContactKind.INITIAL: "initial",
    ContactKind.FOLLOWUP: "relance",
}

CONTACT_STATUS_LABELS: dict[ContactStatus, str] = {
    ContactStatus.MAIL_SENT: "mail_envoye",
    ContactStatus.FOLLOWUP_SENT: "relance_envoyee",
    ContactStatus.RESPONSE_RECEIVED: "reponse_recue",
    ContactStatus.CLOSED: "cloture",
}

_CONTACT_KIND_ALIASES = {label: kind for kind, label in CONTACT_KIND_LABELS.items()}
_CONTACT_KIND_ALIASES.update({kind.value: kind for kind in ContactKind})
_CONTACT_STATUS_ALIASES = {label: status for status, label in CONTACT_STATUS_LABELS.items()}
_CONTACT_STATUS_ALIASES.update({status.value: status for status in ContactStatus})

_TRUTHY = {"oui", "yes", "true", "1", "vrai", "x"}


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _coerce_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(str(value).strip().replace(",", "."))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _coerce_count(value: Optional[str]) -> int:
    number = _coerce_float(value)
    if number is None or number < 0:
        return 0
    return int(number)


def _coerce_datetime(value: str) -> Optional[datetime]:
    if not value or value == "[]":
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_status(value: Any) -> RecordStatus:
    normalized = str(value or "").strip().lower()
    return _STATUS_ALIASES.get(normalized, RecordStatus.UNDEFINED)


def _parse_contact(payload: Any) -> Optional[Contact]:
    if not isinstance(payload, dict):
        return None
    kind = _CONTACT_KIND_ALIASES.get(str(payload.get("type", "")).strip().lower(), ContactKind.INITIAL)
    status = _CONTACT_STATUS_ALIASES.get(str(payload.get("statut", "")).strip().lower(), ContactStatus.MAIL_SENT)
    response = None
    raw_response = payload.get("reponseRecue")
    if isinstance(raw_response, dict):
        response = ContactResponse(
            date=str(raw_response.get("date") or ""),
            positive=bool(raw_response.get("positive")),
            comment=str(raw_response.get("commentaire") or ""),
        )
    return Contact(
        date=str(payload.get("date") or ""),
        kind=kind,
        by=str(payload.get("par") or ""),
        status=status,
        response=response,
    )


def parse_contacts(value: str) -> tuple[Contact, ...]:
    """Decode the contacts cell; free text becomes a single commented contact."""

    if not value or value == "[]":
        return ()
    try:
        payload = json.loads(value)
    except json.JSONDecodeError:
        now = datetime.now(timezone.utc).isoformat()
        return (
            Contact(
                date=now,
                kind=ContactKind.INITIAL,
                by="",
                status=ContactStatus.MAIL_SENT,
                response=ContactResponse(date=now, positive=False, comment=value),
            ),
        )
    if not isinstance(payload, list):
        return ()
    contacts = (_parse_contact(item) for item in payload)
    return tuple(contact for contact in contacts if contact is not None)


def parse_geocode_history(value: str) -> tuple[GeocodeAttempt, ...]:
    if not value or value == "[]":
        return ()
    try:
        payload = json.loads(value)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed geocode history cell")
        return ()
    if not isinstance(payload, list):
        return ()
    attempts: list[GeocodeAttempt] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        coordinates = item.get("coordinates") if isinstance(item.get("coordinates"), dict) else {}
        attempts.append(
            GeocodeAttempt(
                date=str(item.get("date") or ""),
                address=str(item.get("address") or ""),
                success=bool(item.get("success")),
                latitude=_coerce_float(coordinates.get("lat")),
                longitude=_coerce_float(coordinates.get("lon")),
            )
        )
    return tuple(attempts)


def _normalize_address(address: str) -> str:
    return " ".join(address.lower().split())


def address_changed(record: Record) -> bool:
    """True when the last geocode attempt was made for another address."""

    if not record.geocode_history:
        return True
    last = record.geocode_history[-1]
    return _normalize_address(last.address) != _normalize_address(record.full_address)


def decode_record_row(row: Sequence[Any]) -> Record:
    """Build a record from one sheet row without validating it."""

    latitude = _coerce_float(_cell(row, 16))
    longitude = _coerce_float(_cell(row, 17))
    record = Record(
        id=_cell(row, 0),
        name=_cell(row, 1),
        street=_cell(row, 2),
        postal_code=_cell(row, 3),
        city=_cell(row, 4),
        department=_cell(row, 5),
        email=_cell(row, 6),
        associate_names=_cell(row, 7),
        employee_names=_cell(row, 8),
        associate_count=_coerce_count(_cell(row, 9)),
        employee_count=_coerce_count(_cell(row, 10)),
        negotiation_service=_cell(row, 11).lower() in _TRUTHY,
        status=parse_status(_cell(row, 12)),
        notes=_cell(row, 13),
        contacts=parse_contacts(_cell(row, 14)),
        modified_at=_coerce_datetime(_cell(row, 15)),
        latitude=latitude if is_valid_latitude(latitude) else None,
        longitude=longitude if is_valid_longitude(longitude) else None,
        geocode_score=_coerce_float(_cell(row, 18)),
        geocode_history=parse_geocode_history(_cell(row, 19)),
    )
    needs_geocoding = not record.has_coordinates or address_changed(record)
    return _replace_geocode_flags(record, needs_geocoding)


def _replace_geocode_flags(record: Record, needs_geocoding: bool) -> Record:
    return replace(
        record,
        needs_geocoding=needs_geocoding,
        geocode_status=GeocodeStatus.PENDING if needs_geocoding else GeocodeStatus.SUCCESS,
    )


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _contact_payload(contact: Contact) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "date": contact.date,
        "type": CONTACT_KIND_LABELS[contact.kind],
        "par": contact.by,
        "statut": CONTACT_STATUS_LABELS[contact.status],
    }
    if contact.response is not None:
        payload["reponseRecue"] = {
            "date": contact.response.date,
            "positive": contact.response.positive,
            "commentaire": contact.response.comment,
        }
    return payload


def _history_payload(attempt: GeocodeAttempt) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "date": attempt.date,
        "address": attempt.address,
        "success": attempt.success,
    }
    if attempt.latitude is not None and attempt.longitude is not None:
        payload["coordinates"] = {"lat": attempt.latitude, "lon": attempt.longitude}
    return payload


def encode_record_row(record: Record) -> list[str]:
    """Serialize a record into exactly one row of ``len(RECORD_COLUMNS)`` cells."""

    row = [
        record.id,
        record.name,
        record.street,
        record.postal_code,
        record.city,
        record.department,
        record.email,
        record.associate_names,
        record.employee_names,
        str(record.associate_count),
        str(record.employee_count),
        "oui" if record.negotiation_service else "non",
        STATUS_LABELS[record.status],
        record.notes,
        json.dumps([_contact_payload(c) for c in record.contacts], ensure_ascii=False),
        record.modified_at.isoformat() if record.modified_at else "",
        _format_number(record.latitude),
        _format_number(record.longitude),
        _format_number(record.geocode_score),
        json.dumps([_history_payload(a) for a in record.geocode_history], ensure_ascii=False),
    ]
    return row


def decode_zone_row(row: Sequence[Any]) -> InterestZone:
    population = _coerce_float(_cell(row, 6))
    region = _cell(row, 5)
    return InterestZone(
        id=_cell(row, 0),
        name=_cell(row, 1),
        radius_km=_coerce_float(_cell(row, 2)),
        latitude=_coerce_float(_cell(row, 3)),
        longitude=_coerce_float(_cell(row, 4)),
        region=region,
        population=int(population) if population is not None and population >= 0 else None,
    )


def encode_zone_row(zone: InterestZone) -> list[str]:
    return [
        zone.id,
        zone.name,
        _format_number(zone.radius_km),
        _format_number(zone.latitude),
        _format_number(zone.longitude),
        zone.region or "",
        "" if zone.population is None else str(zone.population),
    ]


def blank_row(width: int) -> list[str]:
    return [""] * width


def record_row_range(sheet: str, row_number: int) -> str:
    return f"{sheet}!A{row_number}:{RECORD_LAST_COLUMN}{row_number}"


def zones_write_range(sheet: str, first_row: int, row_count: int) -> str:
    last_row = first_row + max(row_count, 1) - 1
    return f"{sheet}!A{first_row}:{ZONE_LAST_COLUMN}{last_row}"
