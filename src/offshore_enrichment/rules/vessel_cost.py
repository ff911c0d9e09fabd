"""Vessel day-rate lookup and event cost calculation."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..exceptions import ReferenceDataError
from ..models import RateScheduleEntry, VesselProfile, _hours
from .facilities import normalize_location

__all__ = [
    "DEFAULT_SIZE_TIERS",
    "RateSchedule",
    "SizeTier",
    "VesselCost",
    "VesselCostCalculator",
    "VesselRegistry",
]

HOURS_PER_DAY = Decimal("24")


def _money(x: Decimal | int | float | str) -> Decimal:
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SizeTier:
    max_length_ft: Optional[Decimal]  # exclusive upper bound; None for the top tier
    daily_rate: Decimal
    label: str


# Fallback charter rates by vessel length when no schedule entry covers the date.
DEFAULT_SIZE_TIERS: Tuple[SizeTier, ...] = (
    SizeTier(Decimal("200"), Decimal("25000"), "small (<200 ft)"),
    SizeTier(Decimal("250"), Decimal("30000"), "medium (200-249 ft)"),
    SizeTier(Decimal("300"), Decimal("33000"), "large (250-299 ft)"),
    SizeTier(None, Decimal("37800"), "extra large (300+ ft)"),
)


@dataclass(frozen=True)
class VesselCost:
    daily_rate: Decimal
    hourly_rate: Decimal
    total_cost: Decimal
    rate_description: str
    source: str  # "schedule" | "fleet_schedule" | "default_tier"
    entry: Optional[RateScheduleEntry] = None
    tier: Optional[SizeTier] = None


class VesselRegistry:
    def __init__(self, vessels: Iterable[VesselProfile] = ()):
        self._by_name: Dict[str, VesselProfile] = {}
        for vessel in vessels:
            key = normalize_location(vessel.name)
            if not key:
                raise ReferenceDataError("vessels", "vessel name is required")
            if key in self._by_name:
                raise ReferenceDataError("vessels", f"duplicate vessel {vessel.name}")
            self._by_name[key] = vessel

    def __len__(self) -> int:
        return len(self._by_name)

    def get(self, name: Optional[str]) -> Optional[VesselProfile]:
        return self._by_name.get(normalize_location(name))


class RateSchedule:
    """Date-disjoint day-rate entries per vessel class.

    Entries are validated on construction: for any (class, date) at most one
    entry may apply, so overlapping or inverted ranges raise
    :class:`ReferenceDataError` instead of being resolved silently.
    """

    def __init__(self, entries: Iterable[RateScheduleEntry]):
        grouped: Dict[Optional[str], List[RateScheduleEntry]] = {}
        for entry in entries:
            self._check_entry(entry)
            grouped.setdefault(self._class_key(entry.vessel_class), []).append(entry)

        self._by_class: Dict[Optional[str], Tuple[RateScheduleEntry, ...]] = {}
        for key, rows in grouped.items():
            rows.sort(key=lambda e: e.effective_start)
            for current, following in zip(rows, rows[1:]):
                if current.effective_end is None or current.effective_end > following.effective_start:
                    raise ReferenceDataError(
                        "rate_schedule",
                        f"overlapping entries for vessel class {key or 'fleet-wide'}: "
                        f"{self._span(current)} and {self._span(following)}",
                    )
            self._by_class[key] = tuple(rows)

    @staticmethod
    def _class_key(vessel_class: Optional[str]) -> Optional[str]:
        if vessel_class is None or not str(vessel_class).strip():
            return None
        return str(vessel_class).strip().upper()

    @staticmethod
    def _span(entry: RateScheduleEntry) -> str:
        end = entry.effective_end.isoformat() if entry.effective_end else "open"
        return f"[{entry.effective_start.isoformat()}, {end})"

    def _check_entry(self, entry: RateScheduleEntry) -> None:
        if entry.daily_rate is None or Decimal(str(entry.daily_rate)) <= 0:
            raise ReferenceDataError("rate_schedule", f"non-positive daily rate in {self._span(entry)}")
        if entry.effective_end is not None and entry.effective_end <= entry.effective_start:
            raise ReferenceDataError("rate_schedule", f"entry ends before it starts: {self._span(entry)}")

    def entries(self, vessel_class: Optional[str] = None) -> Tuple[RateScheduleEntry, ...]:
        return self._by_class.get(self._class_key(vessel_class), ())

    def entry_for(self, vessel_class: Optional[str], on: date) -> Optional[RateScheduleEntry]:
        for entry in self.entries(vessel_class):
            if entry.covers(on):
                return entry
        return None


def _check_tiers(tiers: Sequence[SizeTier]) -> Tuple[SizeTier, ...]:
    if not tiers:
        raise ReferenceDataError("size_tiers", "at least one default tier is required")
    previous: Optional[Decimal] = None
    for i, tier in enumerate(tiers):
        last = i == len(tiers) - 1
        if Decimal(str(tier.daily_rate)) <= 0:
            raise ReferenceDataError("size_tiers", f"non-positive daily rate for tier {tier.label}")
        if last and tier.max_length_ft is not None:
            raise ReferenceDataError("size_tiers", "the last tier must be open-ended")
        if not last:
            if tier.max_length_ft is None:
                raise ReferenceDataError("size_tiers", f"only the last tier may be open-ended ({tier.label})")
            if previous is not None and tier.max_length_ft <= previous:
                raise ReferenceDataError("size_tiers", "tier thresholds must be strictly increasing")
            previous = tier.max_length_ft
    return tuple(tiers)


class VesselCostCalculator:
    def __init__(
        self,
        schedule: RateSchedule,
        vessels: Optional[VesselRegistry] = None,
        tiers: Sequence[SizeTier] = DEFAULT_SIZE_TIERS,
    ):
        self.schedule = schedule
        self.vessels = vessels or VesselRegistry()
        self.tiers = _check_tiers(tiers)

    def tier_for(self, length_ft: Optional[Decimal]) -> SizeTier:
        """Length bucket; an unknown length is priced at the top tier."""
        if length_ft is None:
            return self.tiers[-1]
        for tier in self.tiers:
            if tier.max_length_ft is None or Decimal(str(length_ft)) < tier.max_length_ft:
                return tier
        return self.tiers[-1]

    def daily_rate(self, vessel: Optional[str], on: Optional[date]) -> VesselCost:
        profile = self.vessels.get(vessel)
        vessel_class = profile.vessel_class if profile else None

        if on is not None:
            if vessel_class is not None:
                entry = self.schedule.entry_for(vessel_class, on)
                if entry is not None:
                    return self._from_entry(entry, "schedule")
            entry = self.schedule.entry_for(None, on)
            if entry is not None:
                return self._from_entry(entry, "fleet_schedule")

        tier = self.tier_for(profile.length_ft if profile else None)
        rate = _money(tier.daily_rate)
        return VesselCost(
            daily_rate=rate,
            hourly_rate=_money(rate / HOURS_PER_DAY),
            total_cost=Decimal("0.00"),
            rate_description=f"tier applied: default {tier.label}, no explicit schedule entry",
            source="default_tier",
            tier=tier,
        )

    def _from_entry(self, entry: RateScheduleEntry, source: str) -> VesselCost:
        rate = _money(entry.daily_rate)
        description = entry.description or (
            f"{RateSchedule._span(entry)}: ${rate:,.2f}/day"
        )
        return VesselCost(
            daily_rate=rate,
            hourly_rate=_money(rate / HOURS_PER_DAY),
            total_cost=Decimal("0.00"),
            rate_description=description,
            source=source,
            entry=entry,
        )

    def calculate(
        self,
        vessel: Optional[str],
        on: Optional[date],
        hours: Decimal | int | float,
    ) -> VesselCost:
        """Price ``hours`` of ``vessel`` time on ``on``; never raises for a lookup miss."""
        rate = self.daily_rate(vessel, on)
        total = _money(rate.daily_rate * _hours(hours) / HOURS_PER_DAY)
        return replace(rate, total_cost=total)
