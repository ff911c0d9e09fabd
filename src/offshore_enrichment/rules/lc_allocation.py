"""Cost-dedicated-to (LC) allocation parsing.

A voyage event export carries a free-text ``Cost Dedicated to`` column that
attributes the event's hours to one or more allocation codes, e.g.::

    "10052-60,10053"        -> 10052 at 60 %, 10053 takes the remaining 40 %
    "9358 45; 10137 12/10101" -> explicit 45 % and 12 %, 10101 takes 43 %

This module turns that text into :class:`AllocationSplit` rows whose
percentages sum to exactly 100 and whose final hours sum to the raw hours.
It is pure: malformed tokens are counted and returned, never logged.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence, Tuple

from ..models import AllocationSplit, MappingStatus, _hours

__all__ = [
    "AllocationParseResult",
    "parse_allocations",
    "split_hours",
]

HUNDRED = Decimal("100")

_DELIMITERS = re.compile(r"[,/;|]")
_CODE_WITH_PERCENT = re.compile(r"(?P<code>[^\s\-%]+)(?:\s*-\s*|\s+)(?P<pct>[^\s%]*)\s*%?")
_CODE_ONLY = re.compile(r"[^\s\-%]+")


@dataclass(frozen=True)
class AllocationParseResult:
    splits: Tuple[AllocationSplit, ...]
    malformed_tokens: int = 0
    # NO_LC_INFO / ERROR are settled here; None means "let the department rules decide".
    status: Optional[MappingStatus] = None
    normalized: bool = False

    @property
    def dominant(self) -> AllocationSplit:
        return max(self.splits, key=lambda s: s.percentage)

    @property
    def total_percentage(self) -> Decimal:
        return sum((s.percentage for s in self.splits), Decimal("0"))


def _parse_percentage(raw: str) -> Optional[Decimal]:
    try:
        pct = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        return None
    return pct


def _tokenize(text: str) -> Tuple[List[Tuple[str, Optional[Decimal]]], int]:
    parsed: List[Tuple[str, Optional[Decimal]]] = []
    malformed = 0
    for raw in _DELIMITERS.split(text):
        token = raw.strip()
        if not token:
            continue
        if _CODE_ONLY.fullmatch(token):
            parsed.append((token, None))
            continue
        match = _CODE_WITH_PERCENT.fullmatch(token)
        pct = _parse_percentage(match.group("pct")) if match else None
        if pct is None:
            malformed += 1
            continue
        parsed.append((match.group("code"), pct))
    return parsed, malformed


def _largest_index(values: Sequence[Decimal]) -> int:
    return max(range(len(values)), key=lambda i: (values[i], -i))


def _settle_residue(values: List[Decimal], target: Decimal) -> List[Decimal]:
    """Round each value to 2 dp and push the rounding residue onto the largest one."""
    rounded = [_hours(v) for v in values]
    residue = target - sum(rounded, Decimal("0"))
    if residue and rounded:
        idx = _largest_index(rounded)
        rounded[idx] = rounded[idx] + residue
    return rounded


def split_hours(raw_hours: Decimal, percentages: Sequence[Decimal]) -> List[Decimal]:
    """Apportion ``raw_hours`` by ``percentages`` so that the parts sum back to the whole."""
    total = _hours(raw_hours)
    if not percentages:
        return []
    shares = [total * pct / HUNDRED for pct in percentages]
    return _settle_residue(shares, total)


def _assign_percentages(
    parsed: List[Tuple[str, Optional[Decimal]]], tolerance: Decimal
) -> Tuple[List[Decimal], bool]:
    explicit_total = sum((pct for _, pct in parsed if pct is not None), Decimal("0"))
    implicit = [code for code, pct in parsed if pct is None]

    share = Decimal("0")
    if implicit:
        remaining = max(Decimal("0"), HUNDRED - explicit_total)
        share = remaining / len(implicit)

    raw = [pct if pct is not None else share for _, pct in parsed]
    total = sum(raw, Decimal("0"))

    normalized = False
    if total == 0:
        raw = [HUNDRED / len(raw)] * len(raw)
        normalized = True
    elif abs(total - HUNDRED) > tolerance:
        raw = [pct * HUNDRED / total for pct in raw]
        normalized = True

    return _settle_residue(raw, HUNDRED), normalized


def parse_allocations(
    text: Optional[str],
    raw_hours: Decimal | int | float | None,
    *,
    tolerance: Decimal = Decimal("0.01"),
) -> AllocationParseResult:
    """Parse a ``Cost Dedicated to`` value into allocation splits for ``raw_hours``."""

    hours = _hours(raw_hours)

    if text is None or not str(text).strip():
        whole = AllocationSplit(allocation_code=None, percentage=Decimal("100.00"), final_hours=hours)
        return AllocationParseResult(splits=(whole,), status=MappingStatus.NO_LC_INFO)

    parsed, malformed = _tokenize(str(text))
    if not parsed:
        whole = AllocationSplit(allocation_code=None, percentage=Decimal("100.00"), final_hours=hours)
        return AllocationParseResult(
            splits=(whole,),
            malformed_tokens=malformed,
            status=MappingStatus.ERROR,
        )

    percentages, normalized = _assign_percentages(parsed, Decimal(str(tolerance)))
    final_hours = split_hours(hours, percentages)

    splits = tuple(
        AllocationSplit(allocation_code=code, percentage=pct, final_hours=part)
        for (code, _), pct, part in zip(parsed, percentages, final_hours)
    )
    return AllocationParseResult(
        splits=splits,
        malformed_tokens=malformed,
        normalized=normalized,
    )
