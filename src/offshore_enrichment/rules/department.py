"""Department inference as an ordered rule cascade.

Each rule inspects one :class:`DepartmentContext` (an allocation code plus the
record's location and activity text) and either returns an assignment or
passes. The first rule that answers wins:

  1. known production code            -> Production
  2. known drilling code              -> Drilling
  3. integrated facility location     -> keyword disambiguation (Drilling when unsure)
  4. drilling rig location            -> Drilling
  5. production platform location     -> Production
  6. base / shore location            -> Logistics
  7. nothing matched                  -> no department, LC Unmapped
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence, Tuple

from ..models import (
    AllocationSplit,
    DataIntegrity,
    Department,
    FacilityProfile,
    FacilityType,
    MappingStatus,
)
from .facilities import FacilityRegistry

__all__ = [
    "DEFAULT_DRILLING_TERMS",
    "DEFAULT_PRODUCTION_TERMS",
    "DEPARTMENT_RULES",
    "DepartmentAssignment",
    "DepartmentClassifier",
    "DepartmentContext",
    "DepartmentRule",
]

# Used only when an integrated facility's profile carries no keyword lists of its own.
DEFAULT_DRILLING_TERMS: Tuple[str, ...] = (
    "drill", "completion", "workover", "casing", "cement", "mud", "spud", "bop", "riser run",
)
DEFAULT_PRODUCTION_TERMS: Tuple[str, ...] = (
    "production", "chemical", "methanol", "process", "export", "flowline", "topsides",
)


@dataclass(frozen=True)
class DepartmentContext:
    allocation_code: Optional[str]
    location: Optional[str]
    parent_event: Optional[str] = None
    event: Optional[str] = None
    remarks: Optional[str] = None

    @property
    def activity_text(self) -> str:
        parts = (self.parent_event, self.event, self.remarks, self.location)
        return " ".join(p for p in parts if p).lower()


@dataclass(frozen=True)
class DepartmentAssignment:
    department: Optional[Department]
    rule: str
    mapping_status: MappingStatus
    data_integrity: DataIntegrity
    resolved_location: Optional[str]
    is_special_case: bool = False


@dataclass(frozen=True)
class DepartmentRule:
    name: str
    apply: Callable[[DepartmentContext, FacilityRegistry], Optional[DepartmentAssignment]]


def _mapped(
    ctx: DepartmentContext,
    department: Department,
    rule: str,
    resolved_location: Optional[str],
) -> DepartmentAssignment:
    if ctx.allocation_code:
        status, integrity = MappingStatus.LC_MAPPED, DataIntegrity.VALID
    else:
        status, integrity = MappingStatus.NO_LC_INFO, DataIntegrity.MISSING_LC
    return DepartmentAssignment(department, rule, status, integrity, resolved_location)


def _production_code(ctx: DepartmentContext, facilities: FacilityRegistry) -> Optional[DepartmentAssignment]:
    owner = facilities.production_facility_for(ctx.allocation_code)
    if owner is None:
        return None
    return _mapped(ctx, Department.PRODUCTION, "production_code", owner.name)


def _drilling_code(ctx: DepartmentContext, facilities: FacilityRegistry) -> Optional[DepartmentAssignment]:
    owner = facilities.drilling_facility_for(ctx.allocation_code)
    if owner is None:
        return None
    return _mapped(ctx, Department.DRILLING, "drilling_code", owner.name)


def _integrated_department(facility: FacilityProfile, text: str) -> Department:
    drilling_terms = facility.drilling_keywords or DEFAULT_DRILLING_TERMS
    production_terms = facility.production_keywords or DEFAULT_PRODUCTION_TERMS
    drilling_hit = any(term.lower() in text for term in drilling_terms)
    production_hit = any(term.lower() in text for term in production_terms)
    if production_hit and not drilling_hit:
        return Department.PRODUCTION
    return Department.DRILLING


def _integrated_facility(ctx: DepartmentContext, facilities: FacilityRegistry) -> Optional[DepartmentAssignment]:
    facility = facilities.match_location(ctx.location)
    if facility is None or facility.facility_type is not FacilityType.INTEGRATED:
        return None

    department = _integrated_department(facility, ctx.activity_text)
    child_type = FacilityType.PRODUCTION if department is Department.PRODUCTION else FacilityType.DRILLING
    child = facilities.child_of(facility, child_type)
    return DepartmentAssignment(
        department=department,
        rule="integrated_facility",
        mapping_status=MappingStatus.SPECIAL_CASE,
        data_integrity=DataIntegrity.VALID_SPECIAL_CASE,
        resolved_location=child.name if child else facility.name,
        is_special_case=True,
    )


def _location_rule(facility_type: FacilityType, department: Department, rule: str):
    def apply(ctx: DepartmentContext, facilities: FacilityRegistry) -> Optional[DepartmentAssignment]:
        facility = facilities.match_location(ctx.location)
        if facility is None or facility.facility_type is not facility_type:
            return None
        return _mapped(ctx, department, rule, facility.name)

    return apply


def _unmapped(ctx: DepartmentContext, facilities: FacilityRegistry) -> Optional[DepartmentAssignment]:
    if ctx.allocation_code:
        status, integrity = MappingStatus.LC_UNMAPPED, DataIntegrity.UNKNOWN_LC
    else:
        status, integrity = MappingStatus.NO_LC_INFO, DataIntegrity.MISSING_LC
    return DepartmentAssignment(None, "unmapped", status, integrity, ctx.location)


DEPARTMENT_RULES: Tuple[DepartmentRule, ...] = (
    DepartmentRule("production_code", _production_code),
    DepartmentRule("drilling_code", _drilling_code),
    DepartmentRule("integrated_facility", _integrated_facility),
    DepartmentRule("rig_location", _location_rule(FacilityType.DRILLING, Department.DRILLING, "rig_location")),
    DepartmentRule(
        "production_location",
        _location_rule(FacilityType.PRODUCTION, Department.PRODUCTION, "production_location"),
    ),
    DepartmentRule("base_location", _location_rule(FacilityType.BASE, Department.LOGISTICS, "base_location")),
    DepartmentRule("unmapped", _unmapped),
)


class DepartmentClassifier:
    def __init__(self, facilities: FacilityRegistry, rules: Sequence[DepartmentRule] = DEPARTMENT_RULES):
        self.facilities = facilities
        self.rules = tuple(rules)

    def classify(self, ctx: DepartmentContext) -> DepartmentAssignment:
        for rule in self.rules:
            assignment = rule.apply(ctx, self.facilities)
            if assignment is not None:
                return assignment
        return _unmapped(ctx, self.facilities)

    def classify_split(
        self,
        split: AllocationSplit,
        *,
        location: Optional[str],
        parent_event: Optional[str] = None,
        event: Optional[str] = None,
        remarks: Optional[str] = None,
        parse_status: Optional[MappingStatus] = None,
    ) -> Tuple[AllocationSplit, DepartmentAssignment]:
        """Classify one split and return a resolved copy of it alongside the assignment."""
        ctx = DepartmentContext(
            allocation_code=split.allocation_code,
            location=location,
            parent_event=parent_event,
            event=event,
            remarks=remarks,
        )
        assignment = self.classify(ctx)
        if parse_status is MappingStatus.ERROR:
            assignment = replace(
                assignment,
                mapping_status=MappingStatus.ERROR,
                data_integrity=DataIntegrity.ERROR,
            )
        resolved = replace(
            split,
            resolved_location=assignment.resolved_location,
            is_special_case=assignment.is_special_case,
        )
        return resolved, assignment
