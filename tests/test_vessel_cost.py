from datetime import date
from decimal import Decimal

import pytest

from conftest import fleet_rates, fleet_vessels
from offshore_enrichment.exceptions import ReferenceDataError
from offshore_enrichment.models import RateScheduleEntry
from offshore_enrichment.rules.vessel_cost import (
    RateSchedule,
    SizeTier,
    VesselCostCalculator,
    VesselRegistry,
)


@pytest.fixture
def calculator():
    return VesselCostCalculator(RateSchedule(fleet_rates()), VesselRegistry(fleet_vessels()))


def test_hourly_rate_from_daily():
    schedule = RateSchedule([RateScheduleEntry("OSV", date(2024, 1, 1), date(2025, 1, 1), Decimal("33000"))])
    calc = VesselCostCalculator(schedule, VesselRegistry(fleet_vessels()))

    cost = calc.daily_rate("V1", date(2024, 6, 15))

    assert cost.daily_rate == Decimal("33000.00")
    assert cost.hourly_rate == Decimal("1375.00")
    assert cost.source == "schedule"


@pytest.mark.parametrize(
    "on, daily",
    [
        (date(2024, 1, 1), Decimal("33000.00")),
        (date(2025, 3, 31), Decimal("33000.00")),
        (date(2025, 4, 1), Decimal("37800.00")),
        (date(2025, 5, 31), Decimal("37800.00")),
    ],
)
def test_period_boundaries_end_exclusive(calculator, on, daily):
    cost = calculator.daily_rate("V1", on)

    assert cost.daily_rate == daily
    assert cost.source == "fleet_schedule"


def test_total_cost_for_hours(calculator):
    cost = calculator.calculate("V1", date(2024, 6, 15), Decimal("6.5"))

    assert cost.total_cost == Decimal("8937.50")
    assert cost.rate_description == "Jan 2024 - Mar 2025 Rate"


def test_class_entry_beats_fleet_entry():
    schedule = RateSchedule(
        fleet_rates() + [RateScheduleEntry("fsv", date(2024, 1, 1), None, Decimal("21000"), "FSV charter")]
    )
    calc = VesselCostCalculator(schedule, VesselRegistry(fleet_vessels()))

    assert calc.daily_rate("Fast Giant", date(2024, 6, 1)).daily_rate == Decimal("21000.00")
    assert calc.daily_rate("V1", date(2024, 6, 1)).daily_rate == Decimal("33000.00")


@pytest.mark.parametrize(
    "vessel, daily",
    [
        ("Fast Giant", Decimal("25000.00")),
        ("V1", Decimal("33000.00")),
        ("HOS Commander", Decimal("37800.00")),
        ("Unknown Vessel", Decimal("37800.00")),
    ],
)
def test_default_tier_outside_schedule(calculator, vessel, daily):
    cost = calculator.daily_rate(vessel, date(2026, 1, 1))

    assert cost.source == "default_tier"
    assert cost.daily_rate == daily
    assert "tier applied" in cost.rate_description


def test_missing_date_uses_tier(calculator):
    cost = calculator.calculate("V1", None, Decimal("24"))

    assert cost.source == "default_tier"
    assert cost.total_cost == Decimal("33000.00")


@pytest.mark.parametrize(
    "entries",
    [
        [
            RateScheduleEntry("OSV", date(2024, 1, 1), date(2024, 7, 1), Decimal("30000")),
            RateScheduleEntry("OSV", date(2024, 6, 1), date(2025, 1, 1), Decimal("31000")),
        ],
        [
            RateScheduleEntry(None, date(2024, 1, 1), None, Decimal("30000")),
            RateScheduleEntry(None, date(2025, 1, 1), None, Decimal("31000")),
        ],
        [RateScheduleEntry("OSV", date(2024, 6, 1), date(2024, 6, 1), Decimal("30000"))],
        [RateScheduleEntry("OSV", date(2024, 6, 1), None, Decimal("0"))],
    ],
)
def test_bad_schedules_raise(entries):
    with pytest.raises(ReferenceDataError):
        RateSchedule(entries)


def test_adjacent_entries_are_allowed():
    schedule = RateSchedule(fleet_rates())

    assert len(schedule.entries(None)) == 2
    assert schedule.entry_for(None, date(2025, 6, 1)) is None


@pytest.mark.parametrize(
    "tiers",
    [
        [],
        [SizeTier(Decimal("200"), Decimal("25000"), "small")],
        [SizeTier(None, Decimal("25000"), "a"), SizeTier(None, Decimal("30000"), "b")],
        [
            SizeTier(Decimal("250"), Decimal("25000"), "a"),
            SizeTier(Decimal("200"), Decimal("30000"), "b"),
            SizeTier(None, Decimal("33000"), "c"),
        ],
    ],
)
def test_bad_tiers_raise(tiers):
    with pytest.raises(ReferenceDataError):
        VesselCostCalculator(RateSchedule([]), tiers=tiers)


def test_duplicate_vessel_raises():
    with pytest.raises(ReferenceDataError):
        VesselRegistry(fleet_vessels() + fleet_vessels()[:1])
