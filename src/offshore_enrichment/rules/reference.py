"""Validated bundle of the reference tables the enrichment rules read."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from ..models import FacilityProfile, RateScheduleEntry, VesselProfile
from .bulk_fluids import DEFAULT_TAXONOMY, FluidTaxonomy, TaxonomyEntry
from .facilities import FacilityRegistry
from .vessel_cost import DEFAULT_SIZE_TIERS, RateSchedule, SizeTier, VesselRegistry, _check_tiers

__all__ = ["ReferenceTables"]


@dataclass(frozen=True)
class ReferenceTables:
    facilities: FacilityRegistry
    rate_schedule: RateSchedule
    vessels: VesselRegistry
    size_tiers: Tuple[SizeTier, ...]
    taxonomy: FluidTaxonomy

    @classmethod
    def build(
        cls,
        facilities: Iterable[FacilityProfile],
        rate_entries: Iterable[RateScheduleEntry],
        vessels: Iterable[VesselProfile] = (),
        size_tiers: Sequence[SizeTier] = DEFAULT_SIZE_TIERS,
        taxonomy: Iterable[TaxonomyEntry] = DEFAULT_TAXONOMY,
    ) -> "ReferenceTables":
        """Validate every table up front; raises ``ReferenceDataError`` on the first problem."""
        return cls(
            facilities=FacilityRegistry(facilities),
            rate_schedule=RateSchedule(rate_entries),
            vessels=VesselRegistry(vessels),
            size_tiers=_check_tiers(size_tiers),
            taxonomy=FluidTaxonomy(taxonomy),
        )
