"""Productive / non-productive (NPT) labelling of voyage events."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from ..models import ActivityCategory

__all__ = [
    "ACTIVITY_RULES",
    "CARGO_KEYWORDS",
    "NPT_KEYWORDS",
    "ActivityClassification",
    "ActivityInput",
    "ActivityRule",
    "classify_activity",
]

NPT_KEYWORDS: Tuple[str, ...] = (
    "waiting",
    "wait on",
    "delay",
    "breakdown",
    "break down",
    "weather",
    "standby",
    "equipment failure",
    "mechanical problem",
    "mechanical issue",
    "port or supply base closed",
    "downtime",
)

CARGO_KEYWORDS: Tuple[str, ...] = (
    "cargo ops",
    "cargo operations",
    "cargo loading",
    "loading or discharging",
    "discharging",
    "offload",
    "backload",
    "load - fuel",
    "bulk displacement",
    "simops",
)


@dataclass(frozen=True)
class ActivityInput:
    parent_event: Optional[str]
    event: Optional[str]
    remarks: Optional[str] = None

    @property
    def full_text(self) -> str:
        return " ".join(p for p in (self.parent_event, self.event, self.remarks) if p).lower()

    @property
    def event_text(self) -> str:
        return " ".join(p for p in (self.parent_event, self.event) if p).lower()


@dataclass(frozen=True)
class ActivityClassification:
    category: ActivityCategory
    rule: str
    keyword: Optional[str] = None

    @property
    def is_npt(self) -> bool:
        return self.category is ActivityCategory.NON_PRODUCTIVE


@dataclass(frozen=True)
class ActivityRule:
    name: str
    category: ActivityCategory
    match: Callable[[ActivityInput], Tuple[bool, Optional[str]]]


def _first_keyword(text: str, keywords: Sequence[str]) -> Tuple[bool, Optional[str]]:
    for keyword in keywords:
        if keyword in text:
            return True, keyword
    return False, None


def _npt(data: ActivityInput) -> Tuple[bool, Optional[str]]:
    return _first_keyword(data.full_text, NPT_KEYWORDS)


def _cargo(data: ActivityInput) -> Tuple[bool, Optional[str]]:
    return _first_keyword(data.event_text, CARGO_KEYWORDS)


def _null_event(data: ActivityInput) -> Tuple[bool, Optional[str]]:
    return (data.event is None or not data.event.strip()), None


def _default(data: ActivityInput) -> Tuple[bool, Optional[str]]:
    return True, None


# Order is the contract: NPT beats cargo, cargo beats a missing event.
ACTIVITY_RULES: Tuple[ActivityRule, ...] = (
    ActivityRule("npt_keyword", ActivityCategory.NON_PRODUCTIVE, _npt),
    ActivityRule("cargo_operations", ActivityCategory.PRODUCTIVE, _cargo),
    ActivityRule("null_event", ActivityCategory.NEEDS_REVIEW, _null_event),
    ActivityRule("default", ActivityCategory.PRODUCTIVE, _default),
)


def classify_activity(
    parent_event: Optional[str],
    event: Optional[str],
    remarks: Optional[str] = None,
    *,
    rules: Sequence[ActivityRule] = ACTIVITY_RULES,
) -> ActivityClassification:
    data = ActivityInput(parent_event=parent_event, event=event, remarks=remarks)
    for rule in rules:
        matched, keyword = rule.match(data)
        if matched:
            return ActivityClassification(rule.category, rule.name, keyword)
    return ActivityClassification(ActivityCategory.PRODUCTIVE, "default")
