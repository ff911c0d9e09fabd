from datetime import date
from decimal import Decimal

import pytest

from offshore_enrichment.models import FacilityProfile, FacilityType, RateScheduleEntry, VesselProfile
from offshore_enrichment.rules.reference import ReferenceTables


def gulf_facilities():
    return [
        FacilityProfile("Fourchon", FacilityType.BASE, aliases=("Port Fourchon",)),
        FacilityProfile(
            "Argos",
            FacilityType.PRODUCTION,
            is_production_capable=True,
            production_codes=frozenset({"9999", "9779"}),
        ),
        FacilityProfile(
            "Thunder Horse PDQ",
            FacilityType.INTEGRATED,
            is_drilling_capable=True,
            is_production_capable=True,
            aliases=("Thunder Horse",),
            drilling_keywords=("drill", "casing", "mud"),
            production_keywords=("production", "chemical", "methanol"),
        ),
        FacilityProfile(
            "Thunder Horse Prod",
            FacilityType.PRODUCTION,
            is_production_capable=True,
            parent_facility="Thunder Horse PDQ",
            production_codes=frozenset({"9360", "10052"}),
        ),
        FacilityProfile(
            "Thunder Horse Drilling",
            FacilityType.DRILLING,
            is_drilling_capable=True,
            parent_facility="Thunder Horse PDQ",
            drilling_codes=frozenset({"10053"}),
        ),
        FacilityProfile(
            "Stena IceMAX",
            FacilityType.DRILLING,
            is_drilling_capable=True,
            drilling_codes=frozenset({"10100"}),
        ),
    ]


def fleet_rates():
    return [
        RateScheduleEntry(None, date(2024, 1, 1), date(2025, 4, 1), Decimal("33000"), "Jan 2024 - Mar 2025 Rate"),
        RateScheduleEntry(None, date(2025, 4, 1), date(2025, 6, 1), Decimal("37800"), "Apr-May 2025 Rate"),
    ]


def fleet_vessels():
    return [
        VesselProfile("V1", "OSV", Decimal("280"), "Edison Chouest Offshore", "OSV"),
        VesselProfile("Fast Giant", "FSV", Decimal("194"), "Edison Chouest Offshore", "FSV"),
        VesselProfile("HOS Commander", "OSV", Decimal("320"), "Hornbeck Offshore", "OSV"),
    ]


@pytest.fixture
def reference():
    return ReferenceTables.build(
        facilities=gulf_facilities(),
        rate_entries=fleet_rates(),
        vessels=fleet_vessels(),
    )
