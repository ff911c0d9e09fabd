from __future__ import annotations
from typing import Optional, Tuple, Union
import datetime
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum


def _hours(value: Decimal | int | float | str | None) -> Decimal:
    """Quantize an hours/percentage figure to the 2 dp precision of the source exports."""

    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class Department(Enum):
    DRILLING = "Drilling"
    PRODUCTION = "Production"
    LOGISTICS = "Logistics"


class MappingStatus(Enum):
    LC_MAPPED = "LC Mapped"
    SPECIAL_CASE = "Special Case Mapping"
    NO_LC_INFO = "No LC Info"
    LC_UNMAPPED = "LC Unmapped"
    ERROR = "Error"


class DataIntegrity(Enum):
    VALID = "Valid"
    VALID_SPECIAL_CASE = "Valid - Special Case"
    MISSING_LC = "Missing LC"
    UNKNOWN_LC = "Unknown LC"
    ERROR = "Error"


class ActivityCategory(Enum):
    PRODUCTIVE = "Productive"
    NON_PRODUCTIVE = "Non-Productive"
    NEEDS_REVIEW = "Needs Review - Null Event"


class FacilityType(Enum):
    PRODUCTION = "Production"
    DRILLING = "Drilling"
    INTEGRATED = "Integrated"
    BASE = "Base"


class FluidCategory(Enum):
    PRODUCTION_CHEMICAL = "Production Chemical"
    DRILLING = "Drilling"
    COMPLETION_INTERVENTION = "Completion/Intervention"
    UTILITY = "Utility"
    PETROLEUM = "Petroleum"
    OTHER = "Other"


class RecordKind(Enum):
    EVENT = "event"
    MANIFEST = "manifest"
    COST = "cost"


# ---------- Raw input rows (immutable once parsed) ----------

@dataclass(frozen=True)
class RawEventRecord:
    vessel: str
    voyage_number: str
    parent_event: Optional[str]
    event: Optional[str]
    location: str
    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None
    hours: Optional[Decimal] = None
    cost_dedicated_to: Optional[str] = None
    remarks: Optional[str] = None
    port_type: Optional[str] = None  # "rig" | "base"
    mission: Optional[str] = None

    @property
    def effective_hours(self) -> Decimal:
        """Raw hours, or the start/end window when the export left hours blank or zero."""
        hours = _hours(self.hours)
        if hours == 0 and self.start and self.end:
            seconds = Decimal(str((self.end - self.start).total_seconds()))
            hours = _hours(seconds / Decimal("3600"))
        return hours

    @property
    def record_date(self) -> Optional[datetime.date]:
        return self.start.date() if self.start else None


@dataclass(frozen=True)
class RawManifestRecord:
    voyage_id: str
    manifest_number: str
    transporter: str
    manifest_date: Optional[datetime.date]
    cost_code: Optional[str] = None
    from_location: Optional[str] = None
    offshore_location: str = ""
    deck_tons: Decimal = Decimal("0")
    rt_tons: Decimal = Decimal("0")
    lifts: int = 0
    wet_bulk_bbls: Decimal = Decimal("0")
    wet_bulk_gals: Decimal = Decimal("0")
    remarks: Optional[str] = None

    @property
    def wet_bulk_volume_bbls(self) -> Decimal:
        if self.wet_bulk_bbls:
            return _hours(self.wet_bulk_bbls)
        return _hours(Decimal(str(self.wet_bulk_gals)) / Decimal("42"))

    @property
    def record_date(self) -> Optional[datetime.date]:
        return self.manifest_date


@dataclass(frozen=True)
class RawCostRecord:
    lc_number: Optional[str]
    location_reference: str
    period: Optional[datetime.date]
    allocated_days: Decimal = Decimal("0")
    description: Optional[str] = None
    project_type: Optional[str] = None
    vessel: Optional[str] = None

    @property
    def allocated_hours(self) -> Decimal:
        return _hours(Decimal(str(self.allocated_days)) * 24)

    @property
    def record_date(self) -> Optional[datetime.date]:
        return self.period


RawRecord = Union[RawEventRecord, RawManifestRecord, RawCostRecord]


@dataclass(frozen=True)
class BulkTransferRecord:
    vessel: Optional[str]
    start: datetime.datetime
    action: str
    quantity: Decimal
    unit: str
    fluid_type: Optional[str]
    description: Optional[str] = None
    origin_port: Optional[str] = None
    destination_port: Optional[str] = None
    tank: Optional[str] = None
    port_type: Optional[str] = None
    density_ppg: Optional[Decimal] = None
    remarks: Optional[str] = None


# ---------- Reference data (read-only during enrichment) ----------

@dataclass(frozen=True)
class FacilityProfile:
    name: str
    facility_type: FacilityType
    is_drilling_capable: bool = False
    is_production_capable: bool = False
    parent_facility: Optional[str] = None  # lookup only, never ownership
    region: Optional[str] = None
    drilling_codes: frozenset[str] = frozenset()
    production_codes: frozenset[str] = frozenset()
    aliases: Tuple[str, ...] = ()
    drilling_keywords: Tuple[str, ...] = ()
    production_keywords: Tuple[str, ...] = ()

    @property
    def is_offshore(self) -> bool:
        return self.facility_type is not FacilityType.BASE


@dataclass(frozen=True)
class RateScheduleEntry:
    vessel_class: Optional[str]  # None applies fleet-wide
    effective_start: datetime.date
    effective_end: Optional[datetime.date]  # exclusive; None is open-ended
    daily_rate: Decimal
    description: Optional[str] = None

    def covers(self, on: datetime.date) -> bool:
        if on < self.effective_start:
            return False
        return self.effective_end is None or on < self.effective_end


@dataclass(frozen=True)
class VesselProfile:
    name: str
    vessel_class: Optional[str] = None
    length_ft: Optional[Decimal] = None
    company: Optional[str] = None
    vessel_type: Optional[str] = None


# ---------- Derived entities (fresh per enrichment run) ----------

@dataclass(frozen=True)
class AllocationSplit:
    allocation_code: Optional[str]
    percentage: Decimal
    final_hours: Decimal
    resolved_location: Optional[str] = None
    is_special_case: bool = False


@dataclass(frozen=True)
class EnrichedRecord:
    source: RawRecord
    kind: RecordKind
    split_index: int
    split_count: int
    allocation_code: Optional[str]
    allocation_percentage: Decimal
    final_hours: Decimal
    department: Optional[Department]
    department_rule: Optional[str]
    resolved_location: Optional[str]
    is_special_case: bool
    mapping_status: MappingStatus
    data_integrity: DataIntegrity
    event_date: Optional[datetime.date] = None
    activity_category: Optional[ActivityCategory] = None
    daily_rate: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None
    rate_description: Optional[str] = None
    company: Optional[str] = None

    @property
    def vessel(self) -> Optional[str]:
        if isinstance(self.source, RawManifestRecord):
            return self.source.transporter
        return self.source.vessel

    @property
    def location_type(self) -> str:
        port_type = getattr(self.source, "port_type", None)
        if port_type == "rig":
            return "Offshore"
        if port_type == "base":
            return "Onshore"
        return "Other"

    @property
    def year(self) -> Optional[int]:
        return self.event_date.year if self.event_date else None

    @property
    def month(self) -> Optional[int]:
        return self.event_date.month if self.event_date else None

    @property
    def quarter(self) -> Optional[str]:
        if self.event_date is None:
            return None
        return f"Q{(self.event_date.month - 1) // 3 + 1}"

    @property
    def month_year(self) -> Optional[str]:
        if self.event_date is None:
            return None
        return self.event_date.strftime("%b-%y")


@dataclass(frozen=True)
class FluidClassification:
    category: FluidCategory
    specific_type: Optional[str] = None
    matched_keyword: Optional[str] = None

    @property
    def is_drilling_fluid(self) -> bool:
        return self.category is FluidCategory.DRILLING

    @property
    def is_completion_fluid(self) -> bool:
        return self.category is FluidCategory.COMPLETION_INTERVENTION


@dataclass(frozen=True)
class ConsolidatedOperation:
    operation_id: str
    records: Tuple[BulkTransferRecord, ...]
    vessel: str
    start: datetime.datetime
    origin: str
    destination: str
    fluid_type: str
    volume_bbls: Decimal
    classification: FluidClassification
    movement_type: str
    is_delivery: bool
    is_return: bool
    duplicates_removed: int = 0
    volume_mismatch: bool = False
    warnings: Tuple[str, ...] = field(default_factory=tuple)
    notes: str = ""

    @property
    def is_valid(self) -> bool:
        return not self.volume_mismatch and not self.warnings
