"""Facility registry: name/alias matching and allocation-code ownership."""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from ..exceptions import ReferenceDataError
from ..models import FacilityProfile, FacilityType

# (is_drilling_capable, is_production_capable) each facility type must declare
_EXPECTED_FLAGS: Dict[FacilityType, Tuple[bool, bool]] = {
    FacilityType.DRILLING: (True, False),
    FacilityType.PRODUCTION: (False, True),
    FacilityType.INTEGRATED: (True, True),
    FacilityType.BASE: (False, False),
}


def normalize_location(value: Optional[str]) -> str:
    if not value:
        return ""
    txt = re.sub(r"['\"]", "", str(value)).strip().lower()
    return re.sub(r"\s+", " ", txt)


class FacilityRegistry:
    """Read-only index over :class:`FacilityProfile` rows.

    Construction validates the table and raises :class:`ReferenceDataError`
    for contradictory flags, duplicate names, unknown parents and codes that
    are claimed by more than one department or facility.
    """

    def __init__(self, facilities: Iterable[FacilityProfile]):
        self._by_name: Dict[str, FacilityProfile] = {}
        self._keys: Dict[str, FacilityProfile] = {}
        self._production_codes: Dict[str, FacilityProfile] = {}
        self._drilling_codes: Dict[str, FacilityProfile] = {}

        for facility in facilities:
            self._add(facility)
        self._check_parents()

        # longest names first so "thunder horse prod" beats "thunder horse"
        self._patterns: List[Tuple[Pattern[str], FacilityProfile]] = [
            (re.compile(rf"(?<![a-z0-9]){re.escape(key)}(?![a-z0-9])"), facility)
            for key, facility in sorted(self._keys.items(), key=lambda kv: (-len(kv[0]), kv[0]))
        ]

    # ------------- construction -------------

    def _add(self, facility: FacilityProfile) -> None:
        name = normalize_location(facility.name)
        if not name:
            raise ReferenceDataError("facilities", "facility name is required")

        expected = _EXPECTED_FLAGS[facility.facility_type]
        declared = (facility.is_drilling_capable, facility.is_production_capable)
        if declared != expected:
            raise ReferenceDataError(
                "facilities",
                f"{facility.name} is {facility.facility_type.value} but declares "
                f"drilling_capable={declared[0]} production_capable={declared[1]}",
            )

        if name in self._by_name:
            raise ReferenceDataError("facilities", f"duplicate facility {facility.name}")
        self._by_name[name] = facility

        for key in (name, *(normalize_location(a) for a in facility.aliases)):
            if not key:
                continue
            owner = self._keys.get(key)
            if owner is not None and owner is not facility:
                raise ReferenceDataError(
                    "facilities", f"name or alias '{key}' used by {owner.name} and {facility.name}"
                )
            self._keys[key] = facility

        for code in facility.production_codes:
            self._claim(self._production_codes, code, facility, "production")
        for code in facility.drilling_codes:
            self._claim(self._drilling_codes, code, facility, "drilling")

    def _claim(
        self,
        table: Dict[str, FacilityProfile],
        code: str,
        facility: FacilityProfile,
        kind: str,
    ) -> None:
        code = str(code).strip()
        other_table = self._drilling_codes if kind == "production" else self._production_codes
        if code in other_table:
            raise ReferenceDataError(
                "facilities",
                f"code {code} is both a drilling and a production code "
                f"({other_table[code].name}, {facility.name})",
            )
        if code in table and table[code] is not facility:
            raise ReferenceDataError(
                "facilities", f"{kind} code {code} claimed by {table[code].name} and {facility.name}"
            )
        table[code] = facility

    def _check_parents(self) -> None:
        for facility in self._by_name.values():
            parent = facility.parent_facility
            if parent and normalize_location(parent) not in self._by_name:
                raise ReferenceDataError(
                    "facilities", f"{facility.name} references unknown parent facility {parent}"
                )

    # ------------- lookups -------------

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self):
        return iter(self._by_name.values())

    def get(self, name: Optional[str]) -> Optional[FacilityProfile]:
        return self._by_name.get(normalize_location(name))

    def production_facility_for(self, code: Optional[str]) -> Optional[FacilityProfile]:
        if not code:
            return None
        return self._production_codes.get(code.strip())

    def drilling_facility_for(self, code: Optional[str]) -> Optional[FacilityProfile]:
        if not code:
            return None
        return self._drilling_codes.get(code.strip())

    def match_location(self, location: Optional[str]) -> Optional[FacilityProfile]:
        """Exact name/alias match first, then the longest name/alias found inside ``location``."""
        loc = normalize_location(location)
        if not loc:
            return None
        exact = self._keys.get(loc)
        if exact is not None:
            return exact
        for pattern, facility in self._patterns:
            if pattern.search(loc):
                return facility
        return None

    def child_of(self, parent: FacilityProfile, facility_type: FacilityType) -> Optional[FacilityProfile]:
        parent_key = normalize_location(parent.name)
        matches = sorted(
            (
                f
                for f in self._by_name.values()
                if f.facility_type is facility_type and normalize_location(f.parent_facility) == parent_key
            ),
            key=lambda f: f.name,
        )
        return matches[0] if matches else None
