import pytest
from pydantic import ValidationError

from fakes import make_record
from notaires_crm.models.domain import Contact, ContactKind, ContactStatus, InterestZone, RecordStatus
from notaires_crm.schemas.filters import FilterSpec
from notaires_crm.services.filtering import filter_records, in_any_zone
from notaires_crm.services.geospatial import haversine_km


def _contact(status: ContactStatus) -> Contact:
    return Contact(date="2024-03-01", kind=ContactKind.INITIAL, by="LC", status=status)


@pytest.fixture
def records():
    return [
        make_record(
            "r1",
            "Etude Martin",
            city="Paris",
            email="martin@notaires.fr",
            associate_count=1,
            employee_count=4,
            status=RecordStatus.FAVORITE,
            latitude=48.85,
            longitude=2.35,
        ),
        make_record(
            "r2",
            "SCP Dupont et Associes",
            city="Lyon",
            associate_count=3,
            employee_count=25,
            negotiation_service=True,
            contacts=(_contact(ContactStatus.MAIL_SENT), _contact(ContactStatus.RESPONSE_RECEIVED)),
            latitude=45.76,
            longitude=4.83,
        ),
        make_record(
            "r3",
            "Office Bernard",
            city="Paris",
            associate_count=2,
            employee_count=150,
            contacts=(_contact(ContactStatus.MAIL_SENT),),
        ),
    ]


def _ids(items):
    return [record.id for record in items]


def test_default_filter_keeps_records_within_default_bounds(records) -> None:
    # r3 has more employees than the default maximum
    assert _ids(filter_records(records, FilterSpec())) == ["r1", "r2"]


def test_query_matches_every_term_case_insensitively(records) -> None:
    spec = FilterSpec(max_employees=1000)

    assert _ids(filter_records(records, spec, "paris")) == ["r1", "r3"]
    assert _ids(filter_records(records, spec, "  DUPONT lyon ")) == ["r2"]
    assert _ids(filter_records(records, spec, "paris lyon")) == []


def test_record_type_and_negotiation_filters(records) -> None:
    assert _ids(filter_records(records, FilterSpec(record_type="individual"))) == ["r1"]
    assert _ids(filter_records(records, FilterSpec(record_type="grouped", max_employees=1000))) == ["r2", "r3"]
    assert _ids(filter_records(records, FilterSpec(negotiation_service="yes"))) == ["r2"]
    assert _ids(filter_records(records, FilterSpec(negotiation_service="no"))) == ["r1"]


def test_count_ranges_are_inclusive(records) -> None:
    spec = FilterSpec(min_associates=3, max_associates=3, min_employees=25, max_employees=25)

    assert _ids(filter_records(records, spec)) == ["r2"]


def test_status_and_email_filters(records) -> None:
    assert _ids(filter_records(records, FilterSpec(statuses=[RecordStatus.FAVORITE]))) == ["r1"]
    assert _ids(filter_records(records, FilterSpec(show_only_with_email=True))) == ["r1"]


def test_contact_status_uses_the_latest_contact(records) -> None:
    spec = FilterSpec(max_employees=1000, contact_statuses=[ContactStatus.MAIL_SENT])

    assert _ids(filter_records(records, spec)) == ["r3"]


def test_uncontacted_toggle_alone_and_combined(records) -> None:
    only_uncontacted = FilterSpec(max_employees=1000, show_uncontacted=True)
    combined = FilterSpec(
        max_employees=1000,
        show_uncontacted=True,
        contact_statuses=[ContactStatus.RESPONSE_RECEIVED],
    )

    assert _ids(filter_records(records, only_uncontacted)) == ["r1"]
    assert _ids(filter_records(records, combined)) == ["r1", "r2"]


def test_radius_filter_includes_nearby_record() -> None:
    record = make_record(latitude=48.85, longitude=2.35)
    zone = InterestZone(id="z1", name="Paris", radius_km=5, latitude=48.86, longitude=2.34)

    distance = haversine_km(48.85, 2.35, 48.86, 2.34)
    assert 1.2 < distance < 1.5
    spec = FilterSpec(show_only_in_radius=True, interest_zones=[zone])
    assert _ids(filter_records([record], spec)) == ["r1"]


def test_radius_boundary_is_inclusive() -> None:
    zone_lat, zone_lon = 48.8566, 2.3522
    record = make_record(latitude=48.90, longitude=2.40)
    distance = haversine_km(record.latitude, record.longitude, zone_lat, zone_lon)

    at_boundary = InterestZone(id="z1", name="Paris", radius_km=distance, latitude=zone_lat, longitude=zone_lon)
    just_short = InterestZone(id="z1", name="Paris", radius_km=distance - 1e-6, latitude=zone_lat, longitude=zone_lon)

    assert in_any_zone(record, [at_boundary])
    assert not in_any_zone(record, [just_short])


def test_radius_filter_drops_records_without_coordinates(records) -> None:
    zone = InterestZone(id="z1", name="Paris", radius_km=50, latitude=48.8566, longitude=2.3522)
    spec = FilterSpec(max_employees=1000, show_only_in_radius=True, interest_zones=[zone])

    assert _ids(filter_records(records, spec)) == ["r1"]


def test_radius_toggle_without_zones_is_ignored(records) -> None:
    spec = FilterSpec(show_only_in_radius=True)

    assert _ids(filter_records(records, spec)) == ["r1", "r2"]


def test_zones_without_centre_are_skipped() -> None:
    record = make_record(latitude=48.85, longitude=2.35)
    zone = InterestZone(id="z1", name="Unplaced", radius_km=10_000)

    assert not in_any_zone(record, [zone])


def test_filtering_is_repeatable_and_leaves_input_alone(records) -> None:
    snapshot = list(records)
    spec = FilterSpec(max_employees=1000, statuses=[RecordStatus.FAVORITE, RecordStatus.UNDEFINED])

    first = filter_records(records, spec, "etude")
    second = filter_records(records, spec, "etude")

    assert first == second
    assert first is not second
    assert records == snapshot


def test_filter_spec_rejects_inverted_ranges() -> None:
    with pytest.raises(ValidationError):
        FilterSpec(min_associates=5, max_associates=2)
    with pytest.raises(ValidationError):
        FilterSpec(min_employees=10, max_employees=1)


def test_filter_spec_accepts_zone_payloads() -> None:
    spec = FilterSpec.model_validate(
        {"interest_zones": [{"id": "z1", "name": "Paris", "radius_km": 5, "latitude": 48.86, "longitude": 2.34}]}
    )

    assert spec.interest_zones[0].radius_km == 5
    assert spec.interest_zones[0].latitude == 48.86
