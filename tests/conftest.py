from __future__ import annotations

import pytest

from fakes import FakeRemoteStore, record_row, zone_row


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore(
        record_rows=[
            record_row("r1", "Etude Martin"),
            record_row("r2", "Office Dupont", city="Lyon", postal_code="69001"),
            record_row("r3", "SCP Bernard", associates="3", employees="12"),
        ],
        zone_rows=[zone_row("z1", "Paris")],
    )
