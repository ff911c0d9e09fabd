from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import gulf_facilities
from offshore_enrichment.exceptions import ReferenceDataError
from offshore_enrichment.models import BulkTransferRecord, FluidCategory
from offshore_enrichment.rules.bulk_fluids import (
    BulkActionKind,
    BulkFluidEngine,
    FluidTaxonomy,
    TaxonomyEntry,
    action_kind,
    deduplication_report,
    to_barrels,
)
from offshore_enrichment.rules.facilities import FacilityRegistry

T0 = datetime(2024, 6, 15, 8, 0)


def _bulk(action, quantity, *, unit="bbl", fluid="WBM", hours=0, tank=None, origin="Fourchon",
          destination="Stena IceMAX", vessel="V1", remarks=None, density=None, description=None):
    return BulkTransferRecord(
        vessel=vessel,
        start=T0 + timedelta(hours=hours),
        action=action,
        quantity=Decimal(str(quantity)),
        unit=unit,
        fluid_type=fluid,
        description=description,
        origin_port=origin,
        destination_port=destination,
        tank=tank,
        density_ppg=density,
        remarks=remarks,
    )


@pytest.fixture
def engine():
    return BulkFluidEngine(FluidTaxonomy(), FacilityRegistry(gulf_facilities()))


@pytest.mark.parametrize(
    "fluid, category, specific",
    [
        ("WBM", FluidCategory.DRILLING, "WBM"),
        ("Synthetic Based Mud", FluidCategory.DRILLING, "SBM"),
        ("OBM", FluidCategory.DRILLING, "OBM"),
        ("Pre-Mix", FluidCategory.DRILLING, "Premix"),
        ("BASEOIL", FluidCategory.DRILLING, "Baseoil"),
        ("Drill Water", FluidCategory.DRILLING, "Drill Water"),
        ("Drilling Mud", FluidCategory.DRILLING, None),
        ("CaBr2", FluidCategory.COMPLETION_INTERVENTION, "Calcium Bromide"),
        ("Calcium Chloride", FluidCategory.COMPLETION_INTERVENTION, "Calcium Chloride"),
        ("KCL", FluidCategory.COMPLETION_INTERVENTION, "KCL"),
        ("Clayfix", FluidCategory.COMPLETION_INTERVENTION, "Clayfix"),
        ("Workover Fluid", FluidCategory.COMPLETION_INTERVENTION, None),
        ("Methanol", FluidCategory.PRODUCTION_CHEMICAL, "Methanol"),
        ("LDHI", FluidCategory.PRODUCTION_CHEMICAL, "LDHI"),
        ("Subsea 525", FluidCategory.PRODUCTION_CHEMICAL, "Subsea 525"),
        ("Potable Water", FluidCategory.UTILITY, "Potable Water"),
        ("Diesel", FluidCategory.PETROLEUM, "Diesel"),
        ("Nitrogen", FluidCategory.OTHER, None),
    ],
)
def test_fluid_taxonomy(fluid, category, specific):
    result = FluidTaxonomy().classify(fluid)

    assert result.category is category
    assert result.specific_type == specific


def test_description_is_also_matched():
    result = FluidTaxonomy().classify("Chemical", "asphaltene inhibitor tote")

    assert result.category is FluidCategory.PRODUCTION_CHEMICAL
    assert result.specific_type == "Asphaltene Inhibitor"


def test_taxonomy_rejects_conflicting_keywords():
    with pytest.raises(ReferenceDataError):
        FluidTaxonomy([
            TaxonomyEntry("brine", FluidCategory.COMPLETION_INTERVENTION),
            TaxonomyEntry("brine", FluidCategory.UTILITY),
        ])


@pytest.mark.parametrize(
    "action, kind",
    [
        ("Offload", BulkActionKind.DISCHARGE),
        ("Discharge", BulkActionKind.DISCHARGE),
        ("Load", BulkActionKind.LOAD),
        ("Backload", BulkActionKind.LOAD),
        ("Transfer", BulkActionKind.TRANSFER),
        ("Circulate", BulkActionKind.OTHER),
        (None, BulkActionKind.OTHER),
    ],
)
def test_action_kind(action, kind):
    assert action_kind(action) is kind


@pytest.mark.parametrize(
    "quantity, unit, density, expected",
    [
        ("420", "gal", None, Decimal("10")),
        ("250", "bbls", None, Decimal("250")),
        ("3498.6", "lbs", None, Decimal("10")),
        ("4410", "LBS", Decimal("10.5"), Decimal("10")),
        ("1", "ton", None, Decimal("6.30")),
        ("2", "MT", None, Decimal("12.60")),
        ("1", "tonnes", Decimal("2204.62262"), Decimal("0.02")),
    ],
)
def test_to_barrels(quantity, unit, density, expected):
    barrels, warning = to_barrels(Decimal(quantity), unit, density_ppg=density)

    assert barrels.quantize(Decimal("0.01")) == expected
    assert warning is None


def test_unknown_unit_treated_as_barrels():
    barrels, warning = to_barrels(Decimal("12"), "totes")

    assert barrels == Decimal("12")
    assert "totes" in warning


def test_drill_water_gallons(engine):
    result = engine.run([_bulk("Offload", 420, unit="gal", fluid="Drill Water")])

    (operation,) = result.operations
    assert operation.volume_bbls == Decimal("10.00")
    assert operation.classification.category is FluidCategory.DRILLING
    assert operation.classification.is_drilling_fluid


def test_load_and_discharge_pair_uses_delivery_volume(engine):
    records = [_bulk("Load", 500), _bulk("Offload", 495, hours=10)]

    (operation,) = engine.run(records).operations

    assert operation.volume_bbls == Decimal("495.00")
    assert not operation.volume_mismatch
    assert operation.duplicates_removed == 1
    assert operation.movement_type == "Base-to-Offshore"
    assert operation.is_delivery
    assert operation.is_valid


def test_volume_mismatch_keeps_larger_side(engine):
    records = [_bulk("Load", 500), _bulk("Offload", 400, hours=10)]

    result = engine.run(records)
    (operation,) = result.operations

    assert operation.volume_mismatch
    assert operation.volume_bbls == Decimal("500.00")
    assert operation.warnings
    assert result.volume_mismatches == 1


def test_exact_reupload_collapses(engine):
    records = [_bulk("Offload", 300), _bulk("Offload", 300)]

    (operation,) = engine.run(records).operations

    assert operation.volume_bbls == Decimal("300.00")
    assert operation.duplicates_removed == 1


def test_reversed_port_pair_groups_together(engine):
    records = [
        _bulk("Load", 200),
        _bulk("Offload", 200, hours=4, origin="Stena IceMAX", destination="Fourchon"),
    ]

    assert len(engine.run(records).operations) == 1


def test_time_window_separates_operations(engine):
    records = [_bulk("Offload", 100), _bulk("Offload", 120, hours=30)]

    assert len(engine.run(records).operations) == 2


def test_incompatible_tanks_stay_apart(engine):
    records = [_bulk("Offload", 100, tank="Tank 1"), _bulk("Offload", 100, tank="Tank 2", hours=1)]

    assert len(engine.run(records).operations) == 2


@pytest.mark.parametrize(
    "origin, destination, movement",
    [
        ("Fourchon", "Stena IceMAX", "Base-to-Offshore"),
        ("Stena IceMAX", "Argos", "Offshore-to-Offshore"),
        ("Argos", "Fourchon", "Offshore-to-Base"),
        ("Argos", "Argos", "Vessel-to-Facility"),
        ("Mobile", "Galveston", "Other"),
    ],
)
def test_movement_types(engine, origin, destination, movement):
    (operation,) = engine.run([_bulk("Load", 10, origin=origin, destination=destination)]).operations

    assert operation.movement_type == movement


def test_return_flag_from_remarks(engine):
    (operation,) = engine.run([_bulk("Backload", 80, remarks="Return to base for disposal")]).operations

    assert operation.is_return


def test_every_record_lands_in_exactly_one_operation(engine):
    records = [
        _bulk("Load", 500),
        _bulk("Offload", 495, hours=10),
        _bulk("Offload", 495, hours=10),
        _bulk("Load", 120, fluid="Methanol", origin="Fourchon", destination="Argos"),
        _bulk("Offload", 60, vessel="Fast Giant", unit="gal", fluid="Diesel"),
        _bulk("Offload", 70, hours=48),
        _bulk("Transfer", 15, fluid="KCL", tank="Tank 3"),
    ]

    result = engine.run(records)
    seen = [id(r) for op in result.operations for r in op.records]

    assert sorted(seen) == sorted(id(r) for r in records)
    assert len(seen) == len(set(seen))
    assert result.original_records == len(records)


def test_report_lines(engine):
    result = engine.run([_bulk("Load", 500), _bulk("Offload", 400, hours=10)])

    text = deduplication_report(result)

    assert "BULK FLUID DEDUPLICATION REPORT" in text
    assert "Original records: 2" in text
    assert "WARNINGS:" in text


def test_blank_fluid_type_and_vessel_still_consolidate(engine):
    records = [
        _bulk("Load", 10, fluid=None, description="drill water"),
        _bulk("Offload", 10, fluid=None, vessel=None, description="drill water", hours=2),
    ]

    result = engine.run(records)

    assert len(result.operations) == 2
    first = result.operations[0]
    assert first.fluid_type == ""
    assert first.classification.category is FluidCategory.DRILLING
    assert first.classification.specific_type == "Drill Water"
    assert first.operation_id.endswith("-fluid-0")
    assert result.operations[1].vessel == ""
    assert sum(len(op.records) for op in result.operations) == len(records)
