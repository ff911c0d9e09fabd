"""Bulk fluid deduplication, volume reconciliation and fluid classification.

A single physical bulk transfer usually shows up more than once in the
exports: the vessel logs a load at the origin and a discharge at the
destination, and re-uploaded spreadsheets repeat whole rows. The engine
works in three steps:

1. **Grouping.** The batch is indexed once by (vessel, fluid type, port pair);
   inside each bucket records are swept in start order and join the first
   open group whose anchor time is within the tolerance and whose tank is
   compatible.
2. **Consolidation.** Exact repeats collapse, load and discharge sides are
   reconciled within a tolerance percentage (delivery volume when they agree,
   the larger side plus a warning when they do not) and every quantity is
   converted to barrels first.
3. **Classification.** The fluid text is matched against an ordered keyword
   taxonomy.

Every input record ends up in exactly one :class:`ConsolidatedOperation`;
nothing is dropped, mismatches are flagged instead.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..exceptions import ReferenceDataError
from ..models import (
    BulkTransferRecord,
    ConsolidatedOperation,
    FacilityType,
    FluidCategory,
    FluidClassification,
    _hours,
)
from .facilities import FacilityRegistry, normalize_location

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TAXONOMY",
    "BulkActionKind",
    "BulkFluidEngine",
    "BulkRunResult",
    "FluidTaxonomy",
    "TaxonomyEntry",
    "action_kind",
    "deduplication_report",
    "to_barrels",
]

GALLONS_PER_BARREL = Decimal("42")
LBS_PER_METRIC_TON = Decimal("2204.62262")

_UNITS = {
    "bbl": "bbl", "bbls": "bbl", "barrel": "bbl", "barrels": "bbl",
    "gal": "gal", "gals": "gal", "gallon": "gal", "gallons": "gal",
    "lb": "lbs", "lbs": "lbs", "pound": "lbs", "pounds": "lbs",
    "ton": "ton", "tons": "ton", "mt": "ton", "tonne": "ton", "tonnes": "ton",
}


# -------------------------------
# Fluid taxonomy
# -------------------------------

@dataclass(frozen=True)
class TaxonomyEntry:
    keyword: str
    category: FluidCategory
    specific_type: Optional[str] = None


def _entries(category: FluidCategory, rows: Sequence[Tuple[str, Optional[str]]]) -> List[TaxonomyEntry]:
    return [TaxonomyEntry(keyword, category, specific) for keyword, specific in rows]


# Evaluated top to bottom; the first keyword found in "<type> <description>" wins.
DEFAULT_TAXONOMY: Tuple[TaxonomyEntry, ...] = tuple(
    _entries(FluidCategory.DRILLING, [
        ("water based mud", "WBM"), ("wbm", "WBM"),
        ("synthetic based mud", "SBM"), ("sbm", "SBM"),
        ("oil based mud", "OBM"), ("obm", "OBM"),
        ("premix", "Premix"), ("pre-mix", "Premix"),
        ("base oil", "Baseoil"), ("baseoil", "Baseoil"), ("base-oil", "Baseoil"),
        ("drill water", "Drill Water"), ("drillwater", "Drill Water"),
        ("drilling mud", None), ("drilling fluid", None), ("drill fluid", None),
        ("mud", None), ("drilling", None),
    ])
    + _entries(FluidCategory.COMPLETION_INTERVENTION, [
        ("calcium bromide", "Calcium Bromide"), ("cabr2", "Calcium Bromide"), ("ca br2", "Calcium Bromide"),
        ("calcium chloride", "Calcium Chloride"), ("cacl2", "Calcium Chloride"), ("ca cl2", "Calcium Chloride"),
        ("sodium chloride", "Sodium Chloride"), ("nacl", "Sodium Chloride"),
        ("potassium chloride", "KCL"), ("kcl", "KCL"),
        ("clayfix", "Clayfix"), ("clay fix", "Clayfix"),
        ("completion fluid", None), ("completion brine", None),
        ("intervention fluid", None), ("workover fluid", None), ("brine", None),
    ])
    + _entries(FluidCategory.PRODUCTION_CHEMICAL, [
        ("asphaltene", "Asphaltene Inhibitor"),
        ("calcium nitrate", "Calcium Nitrate (Petrocare 45)"), ("petrocare", "Calcium Nitrate (Petrocare 45)"),
        ("methanol", "Methanol"),
        ("xylene", "Xylene"),
        ("corrosion inhibitor", "Corrosion Inhibitor"),
        ("scale inhibitor", "Scale Inhibitor"),
        ("low dosage hydrate inhibitor", "LDHI"), ("ldhi", "LDHI"),
        ("subsea 525", "Subsea 525"), ("subsea525", "Subsea 525"),
        ("inhibitor", None), ("chemical", None),
    ])
    + _entries(FluidCategory.UTILITY, [
        ("potable water", "Potable Water"), ("fresh water", "Fresh Water"), ("water", None),
    ])
    + _entries(FluidCategory.PETROLEUM, [
        ("diesel", "Diesel"), ("fuel", "Fuel"), ("oil", None),
    ])
)


class FluidTaxonomy:
    def __init__(self, entries: Iterable[TaxonomyEntry] = DEFAULT_TAXONOMY):
        self.entries: Tuple[TaxonomyEntry, ...] = tuple(entries)
        seen: Dict[str, FluidCategory] = {}
        for entry in self.entries:
            keyword = entry.keyword.strip().lower()
            if not keyword:
                raise ReferenceDataError("fluid_taxonomy", "empty keyword")
            if not isinstance(entry.category, FluidCategory):
                raise ReferenceDataError("fluid_taxonomy", f"unknown category for '{entry.keyword}'")
            if keyword in seen and seen[keyword] is not entry.category:
                raise ReferenceDataError(
                    "fluid_taxonomy",
                    f"keyword '{keyword}' mapped to {seen[keyword].value} and {entry.category.value}",
                )
            seen[keyword] = entry.category

    def classify(self, fluid_type: Optional[str], description: Optional[str] = None) -> FluidClassification:
        text = f"{fluid_type or ''} {description or ''}".lower()
        for entry in self.entries:
            keyword = entry.keyword.strip().lower()
            if keyword in text:
                return FluidClassification(entry.category, entry.specific_type, keyword)
        return FluidClassification(FluidCategory.OTHER)


# -------------------------------
# Actions & units
# -------------------------------

class BulkActionKind(Enum):
    LOAD = "load"
    DISCHARGE = "discharge"
    TRANSFER = "transfer"
    OTHER = "other"


def action_kind(action: Optional[str]) -> BulkActionKind:
    txt = (action or "").strip().lower()
    # "offload" contains "load", so discharge words are checked first
    if any(word in txt for word in ("offload", "discharge", "unload", "deliver")):
        return BulkActionKind.DISCHARGE
    if "load" in txt:
        return BulkActionKind.LOAD
    if "transfer" in txt:
        return BulkActionKind.TRANSFER
    return BulkActionKind.OTHER


def to_barrels(
    quantity: Decimal | int | float | None,
    unit: Optional[str],
    *,
    density_ppg: Optional[Decimal] = None,
    default_density_ppg: Decimal = Decimal("8.33"),
) -> Tuple[Decimal, Optional[str]]:
    """Convert a bulk quantity to barrels. Returns (barrels, warning)."""
    qty = Decimal(str(quantity or 0))
    key = _UNITS.get((unit or "").strip().lower().rstrip("."))

    if key == "bbl":
        return qty, None
    if key == "gal":
        return qty / GALLONS_PER_BARREL, None
    if key in {"lbs", "ton"}:
        ppg = Decimal(str(density_ppg)) if density_ppg else Decimal(str(default_density_ppg))
        pounds = qty * LBS_PER_METRIC_TON if key == "ton" else qty
        return pounds / ppg / GALLONS_PER_BARREL, None
    return qty, f"unrecognised unit '{unit}'; quantity treated as barrels"


# -------------------------------
# Results
# -------------------------------

@dataclass
class BulkRunResult:
    operations: List[ConsolidatedOperation] = field(default_factory=list)
    original_records: int = 0
    duplicates_removed: int = 0
    volume_mismatches: int = 0
    total_volume_original: Decimal = Decimal("0.00")
    total_volume_consolidated: Decimal = Decimal("0.00")
    rules: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class _OpenGroup:
    anchor: datetime
    tank: Optional[str]
    members: List[Tuple[int, BulkTransferRecord]]

    def accepts(self, record: BulkTransferRecord, tank: Optional[str], tolerance: timedelta) -> bool:
        if record.start - self.anchor > tolerance:
            return False
        return tank is None or self.tank is None or tank == self.tank


def _slug(value: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-") or "fluid"


# -------------------------------
# Engine
# -------------------------------

class BulkFluidEngine:
    def __init__(
        self,
        taxonomy: FluidTaxonomy,
        facilities: Optional[FacilityRegistry] = None,
        *,
        volume_tolerance_pct: Decimal = Decimal("2.0"),
        time_tolerance: timedelta = timedelta(hours=24),
        default_density_ppg: Decimal = Decimal("8.33"),
    ):
        self.taxonomy = taxonomy
        self.facilities = facilities or FacilityRegistry(())
        self.volume_tolerance_pct = Decimal(str(volume_tolerance_pct))
        self.time_tolerance = time_tolerance
        self.default_density_ppg = Decimal(str(default_density_ppg))

    # ------------- step 1: grouping -------------

    @staticmethod
    def _index_key(record: BulkTransferRecord) -> Tuple[str, str, FrozenSet[str]]:
        ports = frozenset(
            p for p in (normalize_location(record.origin_port), normalize_location(record.destination_port)) if p
        )
        return normalize_location(record.vessel), normalize_location(record.fluid_type), ports

    def group(self, records: Sequence[BulkTransferRecord]) -> List[List[BulkTransferRecord]]:
        index: Dict[Tuple[str, str, FrozenSet[str]], List[Tuple[int, BulkTransferRecord]]] = {}
        for position, record in enumerate(records):
            index.setdefault(self._index_key(record), []).append((position, record))

        groups: List[_OpenGroup] = []
        for bucket in index.values():
            open_groups: List[_OpenGroup] = []
            for position, record in sorted(bucket, key=lambda item: (item[1].start, item[0])):
                tank = normalize_location(record.tank) or None
                target = next(
                    (g for g in open_groups if g.accepts(record, tank, self.time_tolerance)),
                    None,
                )
                if target is None:
                    target = _OpenGroup(anchor=record.start, tank=tank, members=[])
                    open_groups.append(target)
                elif target.tank is None:
                    target.tank = tank
                target.members.append((position, record))
            groups.extend(open_groups)

        groups.sort(key=lambda g: min(position for position, _ in g.members))
        return [[record for _, record in g.members] for g in groups]

    # ------------- step 2: consolidation -------------

    def _movement_type(self, origin: str, destination: str) -> str:
        if origin and origin == destination:
            return "Vessel-to-Facility"
        o = self.facilities.match_location(origin)
        d = self.facilities.match_location(destination)
        o_base = o is not None and o.facility_type is FacilityType.BASE
        d_base = d is not None and d.facility_type is FacilityType.BASE
        if o_base and d is not None and d.is_offshore:
            return "Base-to-Offshore"
        if o is not None and o.is_offshore and d is not None and d.is_offshore:
            return "Offshore-to-Offshore"
        if o is not None and o.is_offshore and d_base:
            return "Offshore-to-Base"
        return "Other"

    def consolidate(self, group: Sequence[BulkTransferRecord], ordinal: int = 0) -> ConsolidatedOperation:
        first = group[0]
        warnings: List[str] = []

        seen = set()
        sides: Dict[BulkActionKind, List[Decimal]] = {kind: [] for kind in BulkActionKind}
        duplicates = 0
        for record in group:
            volume, unit_warning = to_barrels(
                record.quantity,
                record.unit,
                density_ppg=record.density_ppg,
                default_density_ppg=self.default_density_ppg,
            )
            if unit_warning and unit_warning not in warnings:
                warnings.append(unit_warning)
            kind = action_kind(record.action)
            signature = (kind, record.start, _hours(volume), normalize_location(record.tank))
            if signature in seen:
                duplicates += 1
                continue
            seen.add(signature)
            sides[kind].append(volume)

        loads = sides[BulkActionKind.LOAD]
        discharges = sides[BulkActionKind.DISCHARGE]
        extra = sum(sides[BulkActionKind.TRANSFER] + sides[BulkActionKind.OTHER], Decimal("0"))
        load_total = sum(loads, Decimal("0"))
        discharge_total = sum(discharges, Decimal("0"))

        mismatch = False
        if loads and discharges:
            larger = max(load_total, discharge_total)
            allowed = larger * self.volume_tolerance_pct / Decimal("100")
            if abs(load_total - discharge_total) <= allowed:
                volume = discharge_total + extra
                duplicates += len(loads)
                notes = "Load/discharge pair - using delivery volume"
            else:
                mismatch = True
                volume = larger + extra
                duplicates += min(len(loads), len(discharges))
                notes = f"Volume discrepancy: loaded {_hours(load_total)}, delivered {_hours(discharge_total)}"
                warnings.append(
                    f"volume mismatch for {first.vessel} {first.fluid_type}: "
                    f"loaded {_hours(load_total)} bbl, delivered {_hours(discharge_total)} bbl"
                )
        else:
            volume = load_total + discharge_total + extra
            if loads:
                notes = "Load operations only"
            elif discharges:
                notes = "Discharge operations only"
            else:
                notes = "Transfer operations only"

        # the load side is logged at the origin, so prefer it for the port pair
        anchor = next((r for r in group if action_kind(r.action) is BulkActionKind.LOAD), first)
        origin = normalize_location(anchor.origin_port)
        destination = normalize_location(anchor.destination_port)
        movement = self._movement_type(origin, destination)
        if movement == "Vessel-to-Facility":
            notes = f"{notes}; vessel-to-facility transfer (same location)"

        is_delivery = movement == "Base-to-Offshore" and bool(loads or discharges)
        is_return = movement == "Offshore-to-Base" or any(
            "return" in (r.remarks or "").lower() for r in group
        )

        start = min(r.start for r in group)
        return ConsolidatedOperation(
            operation_id=f"{_slug(first.vessel)}-{start:%Y%m%d%H%M}-{_slug(first.fluid_type)}-{ordinal}",
            records=tuple(group),
            vessel=first.vessel or "",
            start=start,
            origin=anchor.origin_port or "",
            destination=anchor.destination_port or "",
            fluid_type=first.fluid_type or "",
            volume_bbls=_hours(volume),
            classification=self.taxonomy.classify(first.fluid_type, first.description),
            movement_type=movement,
            is_delivery=is_delivery,
            is_return=is_return,
            duplicates_removed=duplicates,
            volume_mismatch=mismatch,
            warnings=tuple(warnings),
            notes=notes,
        )

    # ------------- full batch -------------

    def run(self, records: Sequence[BulkTransferRecord]) -> BulkRunResult:
        result = BulkRunResult(original_records=len(records))
        groups = self.group(records)
        logger.debug("Grouped %d bulk records into %d candidate operations", len(records), len(groups))

        for ordinal, group in enumerate(groups):
            operation = self.consolidate(group, ordinal)
            result.operations.append(operation)
            result.duplicates_removed += operation.duplicates_removed
            result.rules.append(
                f"{operation.vessel} {operation.fluid_type}: {len(group)} record(s) -> "
                f"{operation.volume_bbls} bbl ({operation.notes})"
            )
            if operation.volume_mismatch:
                result.volume_mismatches += 1
                logger.warning("Bulk reconciliation mismatch in %s: %s", operation.operation_id, operation.notes)
            result.warnings.extend(operation.warnings)

        result.total_volume_original = _hours(
            sum(
                (
                    to_barrels(
                        r.quantity, r.unit, density_ppg=r.density_ppg, default_density_ppg=self.default_density_ppg
                    )[0]
                    for r in records
                ),
                Decimal("0"),
            )
        )
        result.total_volume_consolidated = _hours(sum((op.volume_bbls for op in result.operations), Decimal("0")))

        logger.info(
            "Bulk deduplication: %d records -> %d operations, %d duplicates removed, %s -> %s bbl",
            result.original_records,
            len(result.operations),
            result.duplicates_removed,
            result.total_volume_original,
            result.total_volume_consolidated,
        )
        return result


def deduplication_report(result: BulkRunResult) -> str:
    lines = [
        "BULK FLUID DEDUPLICATION REPORT",
        "=" * 50,
        "",
        f"Original records: {result.original_records:,}",
        f"Consolidated operations: {len(result.operations):,}",
        f"Duplicates removed: {result.duplicates_removed:,}",
        f"Volume processed: {result.total_volume_original:,} bbls",
        f"Volume after deduplication: {result.total_volume_consolidated:,} bbls",
        "",
        "DEDUPLICATION RULES APPLIED:",
        *(f"  - {rule}" for rule in result.rules),
        "",
    ]
    if result.warnings:
        lines.append("WARNINGS:")
        lines.extend(f"  - {warning}" for warning in result.warnings)
        lines.append("")
    return "\n".join(lines)
