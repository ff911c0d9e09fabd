"""Reference registry loader."""
from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..exceptions import MissingReferenceField, ReferenceDataError
from ..models import FacilityProfile, FacilityType, FluidCategory, RateScheduleEntry, VesselProfile
from ..settings import EnrichmentSettings
from .bulk_fluids import DEFAULT_TAXONOMY, TaxonomyEntry
from .reference import ReferenceTables
from .vessel_cost import DEFAULT_SIZE_TIERS, SizeTier

logger = logging.getLogger(__name__)

__all__ = [
    "load_reference_tables",
]

_DEFAULT_REGISTRY_PATH = Path(__file__).with_name("reference_registry.json")

_REQUIRED_TOP_KEYS = ("facilities", "rate_schedule")
_REQUIRED_FACILITY_KEYS = ("name", "type")
_REQUIRED_RATE_KEYS = ("start", "daily_rate")
_REQUIRED_VESSEL_KEYS = ("name",)
_REQUIRED_TIER_KEYS = ("daily_rate", "label")
_REQUIRED_TAXONOMY_KEYS = ("keyword", "category")


def _resolve_registry_path(
    path: str | os.PathLike[str] | None, settings: Optional[EnrichmentSettings] = None
) -> Path:
    if path is not None:
        return Path(path)
    override = (settings or EnrichmentSettings()).reference_path
    if override:
        return Path(override)
    return _DEFAULT_REGISTRY_PATH


# Not cached: every call re-reads the file.
def _load_registry(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, Mapping):
        raise ValueError("reference registry must be a mapping of table name to rows")
    return dict(data)


def _ensure_keys(prefix: str, record: Any, keys: Sequence[str]) -> None:
    if not isinstance(record, Mapping):
        raise ValueError(f"invalid registry entry at {prefix}")
    for key in keys:
        if key not in record or record[key] is None:
            raise MissingReferenceField(f"{prefix}.{key}")


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def _to_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return datetime.strptime(str(value), "%Y-%m-%d").date()


def _rows(registry: Mapping[str, Any], table: str) -> List[Any]:
    rows = registry.get(table) or []
    if not isinstance(rows, list):
        raise ValueError(f"{table} must be a list")
    return rows


def _facility(prefix: str, row: Mapping[str, Any]) -> FacilityProfile:
    _ensure_keys(prefix, row, _REQUIRED_FACILITY_KEYS)
    try:
        facility_type = FacilityType(row["type"])
    except ValueError:
        raise ReferenceDataError("facilities", f"{row['name']} has unknown facility type {row['type']!r}")
    return FacilityProfile(
        name=str(row["name"]),
        facility_type=facility_type,
        is_drilling_capable=bool(row.get("drilling_capable", False)),
        is_production_capable=bool(row.get("production_capable", False)),
        parent_facility=row.get("parent"),
        region=row.get("region"),
        drilling_codes=frozenset(str(c) for c in row.get("drilling_codes", ())),
        production_codes=frozenset(str(c) for c in row.get("production_codes", ())),
        aliases=tuple(row.get("aliases", ())),
        drilling_keywords=tuple(row.get("drilling_keywords", ())),
        production_keywords=tuple(row.get("production_keywords", ())),
    )


def _rate_entry(prefix: str, row: Mapping[str, Any]) -> RateScheduleEntry:
    _ensure_keys(prefix, row, _REQUIRED_RATE_KEYS)
    return RateScheduleEntry(
        vessel_class=row.get("vessel_class"),
        effective_start=_to_date(row["start"]),
        effective_end=_to_date(row.get("end")),
        daily_rate=_to_decimal(row["daily_rate"]),
        description=row.get("description"),
    )


def _vessel(prefix: str, row: Mapping[str, Any]) -> VesselProfile:
    _ensure_keys(prefix, row, _REQUIRED_VESSEL_KEYS)
    return VesselProfile(
        name=str(row["name"]),
        vessel_class=row.get("class"),
        length_ft=_to_decimal(row.get("length_ft")),
        company=row.get("company"),
        vessel_type=row.get("type"),
    )


def _tier(prefix: str, row: Mapping[str, Any]) -> SizeTier:
    _ensure_keys(prefix, row, _REQUIRED_TIER_KEYS)
    return SizeTier(
        max_length_ft=_to_decimal(row.get("max_length_ft")),
        daily_rate=_to_decimal(row["daily_rate"]),
        label=str(row["label"]),
    )


def _taxonomy_entry(prefix: str, row: Mapping[str, Any]) -> TaxonomyEntry:
    _ensure_keys(prefix, row, _REQUIRED_TAXONOMY_KEYS)
    try:
        category = FluidCategory(row["category"])
    except ValueError:
        raise ReferenceDataError("fluid_taxonomy", f"unknown category {row['category']!r} for '{row['keyword']}'")
    return TaxonomyEntry(str(row["keyword"]), category, row.get("specific_type"))


def load_reference_tables(
    path: str | os.PathLike[str] | None = None,
    *,
    settings: Optional[EnrichmentSettings] = None,
) -> ReferenceTables:
    """Read the JSON registry and build validated tables.

    The file is ``path`` when given, else ``settings.reference_path``
    (``OFFSHORE_REFERENCE_PATH`` from the environment or ``.env``), else the
    bundled registry.

    Optional tables fall back to the in-code defaults: ``vessels`` to none,
    ``size_tiers`` to the four length tiers, ``fluid_taxonomy`` to the default
    keyword taxonomy.
    """

    resolved = _resolve_registry_path(path, settings)
    registry = _load_registry(resolved)

    for key in _REQUIRED_TOP_KEYS:
        if key not in registry:
            raise MissingReferenceField(key)

    facilities = [_facility(f"facilities[{i}]", row) for i, row in enumerate(_rows(registry, "facilities"))]
    rates = [_rate_entry(f"rate_schedule[{i}]", row) for i, row in enumerate(_rows(registry, "rate_schedule"))]
    vessels = [_vessel(f"vessels[{i}]", row) for i, row in enumerate(_rows(registry, "vessels"))]

    tier_rows = _rows(registry, "size_tiers")
    tiers = [_tier(f"size_tiers[{i}]", row) for i, row in enumerate(tier_rows)] if tier_rows else DEFAULT_SIZE_TIERS

    taxonomy_rows = _rows(registry, "fluid_taxonomy")
    taxonomy = (
        [_taxonomy_entry(f"fluid_taxonomy[{i}]", row) for i, row in enumerate(taxonomy_rows)]
        if taxonomy_rows
        else DEFAULT_TAXONOMY
    )

    tables = ReferenceTables.build(
        facilities=facilities,
        rate_entries=rates,
        vessels=vessels,
        size_tiers=tiers,
        taxonomy=taxonomy,
    )
    logger.info(
        "Loaded reference registry %s: %d facilities, %d rate entries, %d vessels",
        resolved,
        len(facilities),
        len(rates),
        len(vessels),
    )
    return tables
