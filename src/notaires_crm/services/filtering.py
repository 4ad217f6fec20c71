"""Visible-subset computation for the record list and map.

``filter_records`` is a conjunction of independent predicates, evaluated
cheapest first. It never mutates its inputs and returns a new list.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..models.domain import Record
from ..schemas.filters import FilterSpec
from ..schemas.zones import InterestZoneModel
from .geospatial import within_radius


def _search_terms(query: str) -> list[str]:
    return query.lower().split()


def _searchable_text(record: Record) -> str:
    return " ".join(
        (
            record.name,
            record.street,
            record.postal_code,
            record.city,
            record.email,
            record.associate_names,
            record.employee_names,
        )
    ).lower()


def matches_query(record: Record, terms: Sequence[str]) -> bool:
    if not terms:
        return True
    text = _searchable_text(record)
    return all(term in text for term in terms)


def _matches_type(record: Record, spec: FilterSpec) -> bool:
    if spec.record_type == "individual":
        return not record.is_grouped
    if spec.record_type == "grouped":
        return record.is_grouped
    return True


def _matches_negotiation(record: Record, spec: FilterSpec) -> bool:
    if spec.negotiation_service == "all":
        return True
    return record.negotiation_service is (spec.negotiation_service == "yes")


def _matches_counts(record: Record, spec: FilterSpec) -> bool:
    return (
        spec.min_associates <= record.associate_count <= spec.max_associates
        and spec.min_employees <= record.employee_count <= spec.max_employees
    )


def _matches_contact_status(record: Record, spec: FilterSpec) -> bool:
    last = record.last_contact
    wanted = set(spec.contact_statuses)
    if spec.show_uncontacted and wanted:
        return last is None or last.status in wanted
    if spec.show_uncontacted:
        return last is None
    if wanted:
        return last is not None and last.status in wanted
    return True


def in_any_zone(record: Record, zones: Iterable[InterestZoneModel]) -> bool:
    """True if the record lies within the radius of at least one zone."""

    if not record.has_coordinates:
        return False
    for zone in zones:
        if not zone.latitude or not zone.longitude or zone.radius_km is None:
            continue
        if within_radius(record.latitude, record.longitude, zone.latitude, zone.longitude, zone.radius_km):
            return True
    return False


def filter_records(records: Sequence[Record], spec: FilterSpec, query: str = "") -> list[Record]:
    terms = _search_terms(query or "")
    statuses = set(spec.statuses)
    use_radius = spec.show_only_in_radius and bool(spec.interest_zones)

    visible: list[Record] = []
    for record in records:
        if not matches_query(record, terms):
            continue
        if not _matches_type(record, spec):
            continue
        if not _matches_negotiation(record, spec):
            continue
        if not _matches_counts(record, spec):
            continue
        if statuses and record.status not in statuses:
            continue
        if spec.show_only_with_email and not record.email:
            continue
        if not _matches_contact_status(record, spec):
            continue
        if use_radius and not in_any_zone(record, spec.interest_zones):
            continue
        visible.append(record)
    return visible
