import pytest

from offshore_enrichment.models import ActivityCategory
from offshore_enrichment.rules.activity import classify_activity


@pytest.mark.parametrize(
    "parent, event, remarks, category, rule",
    [
        ("Cargo Ops", "Load - Fuel, Water or Methanol", "waiting on weather", ActivityCategory.NON_PRODUCTIVE, "npt_keyword"),
        ("Cargo Ops", "Cargo Loading or Discharging", None, ActivityCategory.PRODUCTIVE, "cargo_operations"),
        ("Waiting on Installation", "Waiting on Weather", None, ActivityCategory.NON_PRODUCTIVE, "npt_keyword"),
        ("Maneuvering", "Standby", None, ActivityCategory.NON_PRODUCTIVE, "npt_keyword"),
        ("Transit", None, None, ActivityCategory.NEEDS_REVIEW, "null_event"),
        ("Transit", "   ", None, ActivityCategory.NEEDS_REVIEW, "null_event"),
        ("Cargo Ops", None, None, ActivityCategory.PRODUCTIVE, "cargo_operations"),
        ("Transit", "Steam from Port", None, ActivityCategory.PRODUCTIVE, "default"),
        ("Port or Supply Base closed", "Tied up", None, ActivityCategory.NON_PRODUCTIVE, "npt_keyword"),
    ],
)
def test_activity_rules(parent, event, remarks, category, rule):
    result = classify_activity(parent, event, remarks)

    assert result.category is category
    assert result.rule == rule


def test_npt_beats_cargo():
    result = classify_activity("Cargo Ops", "Offload", "Delay due to crane breakdown")

    assert result.is_npt
    assert result.keyword == "delay"


def test_cargo_words_in_remarks_do_not_count():
    result = classify_activity("Transit", None, "offload planned at rig")

    assert result.category is ActivityCategory.NEEDS_REVIEW
