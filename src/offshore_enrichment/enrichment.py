"""Enrichment orchestrator.

Runs two independent passes over one batch of raw exports:

* events, manifests and cost rows go through LC allocation parsing, the
  department cascade, vessel costing (events and cost rows) and activity
  labelling (events only), producing one :class:`EnrichedRecord` per split;
* bulk fluid rows go through grouping, reconciliation and classification.

Both passes feed a :class:`QualityReport`. The engine does no I/O; reference
tables and settings are passed in.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    ActivityCategory,
    ConsolidatedOperation,
    DataIntegrity,
    EnrichedRecord,
    RawCostRecord,
    RawEventRecord,
    RawManifestRecord,
    RawRecord,
    RecordKind,
    _hours,
)
from .rules.activity import ActivityClassification, classify_activity
from .rules.bulk_fluids import BulkFluidEngine, BulkRunResult
from .rules.department import DepartmentClassifier
from .rules.lc_allocation import AllocationParseResult, parse_allocations
from .rules.reference import ReferenceTables
from .rules.reference_loader import load_reference_tables
from .rules.vessel_cost import VesselCostCalculator, _money
from .settings import EnrichmentSettings

logger = logging.getLogger(__name__)

__all__ = [
    "EnrichmentEngine",
    "EnrichmentResult",
    "QualityReport",
]

_VALID_INTEGRITY = {DataIntegrity.VALID, DataIntegrity.VALID_SPECIAL_CASE}
UNASSIGNED = "Unassigned"


@dataclass
class QualityReport:
    source_records: int = 0
    enriched_records: int = 0
    by_mapping_status: Dict[str, int] = field(default_factory=dict)
    by_data_integrity: Dict[str, int] = field(default_factory=dict)
    by_department: Dict[str, int] = field(default_factory=dict)
    by_activity: Dict[str, int] = field(default_factory=dict)
    npt_events: int = 0
    malformed_tokens: int = 0
    normalized_allocations: int = 0
    total_hours: Decimal = Decimal("0.00")
    total_cost: Decimal = Decimal("0.00")
    bulk_records: int = 0
    bulk_operations: int = 0
    bulk_duplicates_removed: int = 0
    volume_mismatches: int = 0
    total_reconciled_volume_bbls: Decimal = Decimal("0.00")
    needs_review: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name, value in self.__dict__.items():
            if isinstance(value, Decimal):
                out[name] = str(value)
            elif isinstance(value, dict):
                out[name] = dict(sorted(value.items()))
            else:
                out[name] = value
        return out


@dataclass
class EnrichmentResult:
    records: List[EnrichedRecord]
    operations: List[ConsolidatedOperation]
    report: QualityReport
    bulk: Optional[BulkRunResult] = None


class EnrichmentEngine:
    def __init__(self, reference: ReferenceTables, settings: Optional[EnrichmentSettings] = None):
        self.reference = reference
        self.settings = settings or EnrichmentSettings()
        self.departments = DepartmentClassifier(reference.facilities)
        self.costs = VesselCostCalculator(reference.rate_schedule, reference.vessels, reference.size_tiers)
        self.bulk_engine = BulkFluidEngine(
            reference.taxonomy,
            reference.facilities,
            volume_tolerance_pct=self.settings.bulk_volume_tolerance_pct,
            time_tolerance=timedelta(hours=self.settings.bulk_time_tolerance_hours),
            default_density_ppg=self.settings.default_fluid_density_ppg,
        )

    @classmethod
    def from_settings(cls, settings: Optional[EnrichmentSettings] = None) -> "EnrichmentEngine":
        """Build an engine over the registry named by ``OFFSHORE_REFERENCE_PATH`` (or the bundled one)."""
        settings = settings or EnrichmentSettings()
        return cls(load_reference_tables(settings=settings), settings)

    # ------------- per-row enrichment -------------

    def _expand(
        self,
        source: RawRecord,
        kind: RecordKind,
        parsed: AllocationParseResult,
        *,
        location: Optional[str],
        parent_event: Optional[str] = None,
        event: Optional[str] = None,
        remarks: Optional[str] = None,
        event_date: Optional[date] = None,
        activity: Optional[ActivityClassification] = None,
        vessel: Optional[str] = None,
        priced: bool = False,
    ) -> List[EnrichedRecord]:
        profile = self.reference.vessels.get(vessel)
        rows: List[EnrichedRecord] = []
        for index, split in enumerate(parsed.splits):
            split, assignment = self.departments.classify_split(
                split,
                location=location,
                parent_event=parent_event,
                event=event,
                remarks=remarks,
                parse_status=parsed.status,
            )
            cost = self.costs.calculate(vessel, event_date, split.final_hours) if priced else None
            rows.append(
                EnrichedRecord(
                    source=source,
                    kind=kind,
                    split_index=index,
                    split_count=len(parsed.splits),
                    allocation_code=split.allocation_code,
                    allocation_percentage=split.percentage,
                    final_hours=split.final_hours,
                    department=assignment.department,
                    department_rule=assignment.rule,
                    resolved_location=split.resolved_location,
                    is_special_case=split.is_special_case,
                    mapping_status=assignment.mapping_status,
                    data_integrity=assignment.data_integrity,
                    event_date=event_date,
                    activity_category=activity.category if activity else None,
                    daily_rate=cost.daily_rate if cost else None,
                    hourly_rate=cost.hourly_rate if cost else None,
                    total_cost=cost.total_cost if cost else None,
                    rate_description=cost.rate_description if cost else None,
                    company=profile.company if profile else None,
                )
            )
        return rows

    def enrich_event(self, record: RawEventRecord):
        parsed = parse_allocations(
            record.cost_dedicated_to,
            record.effective_hours,
            tolerance=self.settings.lc_percent_tolerance,
        )
        activity = classify_activity(record.parent_event, record.event, record.remarks)
        rows = self._expand(
            record,
            RecordKind.EVENT,
            parsed,
            location=record.location,
            parent_event=record.parent_event,
            event=record.event,
            remarks=record.remarks,
            event_date=record.record_date,
            activity=activity,
            vessel=record.vessel,
            priced=True,
        )
        return rows, parsed, activity

    def enrich_manifest(self, record: RawManifestRecord):
        # manifests carry no hours: the splits only apportion the manifest
        parsed = parse_allocations(record.cost_code, 0, tolerance=self.settings.lc_percent_tolerance)
        rows = self._expand(
            record,
            RecordKind.MANIFEST,
            parsed,
            location=record.offshore_location,
            remarks=record.remarks,
            event_date=record.record_date,
            vessel=record.transporter,
        )
        return rows, parsed

    def enrich_cost(self, record: RawCostRecord):
        parsed = parse_allocations(
            record.lc_number,
            record.allocated_hours,
            tolerance=self.settings.lc_percent_tolerance,
        )
        rows = self._expand(
            record,
            RecordKind.COST,
            parsed,
            location=record.location_reference,
            event=record.project_type,
            remarks=record.description,
            event_date=record.record_date,
            vessel=record.vessel,
            priced=True,
        )
        return rows, parsed

    # ------------- full batch -------------

    def run(
        self,
        events: Sequence[RawEventRecord] = (),
        manifests: Sequence[RawManifestRecord] = (),
        costs: Sequence[RawCostRecord] = (),
        bulk: Sequence = (),
    ) -> EnrichmentResult:
        report = QualityReport()
        records: List[EnrichedRecord] = []
        activities: Counter = Counter()
        parses: List[AllocationParseResult] = []

        for event in events:
            rows, parsed, activity = self.enrich_event(event)
            records.extend(rows)
            parses.append(parsed)
            activities[activity.category.value] += 1
            if activity.is_npt:
                report.npt_events += 1
        for manifest in manifests:
            rows, parsed = self.enrich_manifest(manifest)
            records.extend(rows)
            parses.append(parsed)
        for cost in costs:
            rows, parsed = self.enrich_cost(cost)
            records.extend(rows)
            parses.append(parsed)

        bulk_result = self.bulk_engine.run(list(bulk))

        report.source_records = len(events) + len(manifests) + len(costs)
        report.enriched_records = len(records)
        report.by_mapping_status = dict(Counter(r.mapping_status.value for r in records))
        report.by_data_integrity = dict(Counter(r.data_integrity.value for r in records))
        report.by_department = dict(
            Counter(r.department.value if r.department else UNASSIGNED for r in records)
        )
        report.by_activity = dict(activities)
        report.malformed_tokens = sum(p.malformed_tokens for p in parses)
        report.normalized_allocations = sum(1 for p in parses if p.normalized)
        report.total_hours = _hours(sum((r.final_hours for r in records), Decimal("0")))
        report.total_cost = _money(sum((r.total_cost for r in records if r.total_cost is not None), Decimal("0")))

        report.bulk_records = bulk_result.original_records
        report.bulk_operations = len(bulk_result.operations)
        report.bulk_duplicates_removed = bulk_result.duplicates_removed
        report.volume_mismatches = bulk_result.volume_mismatches
        report.total_reconciled_volume_bbls = bulk_result.total_volume_consolidated

        report.needs_review = (
            sum(
                1
                for r in records
                if r.data_integrity not in _VALID_INTEGRITY
                or r.activity_category is ActivityCategory.NEEDS_REVIEW
            )
            + bulk_result.volume_mismatches
        )

        logger.info(
            "Enrichment run: %d source rows -> %d enriched rows, %d bulk records -> %d operations, "
            "%d NPT events, %d need review",
            report.source_records,
            report.enriched_records,
            report.bulk_records,
            report.bulk_operations,
            report.npt_events,
            report.needs_review,
        )
        return EnrichmentResult(
            records=records,
            operations=bulk_result.operations,
            report=report,
            bulk=bulk_result,
        )
