import pytest

from modules.report import build_report
from modules.schema import parse_analysis


def test_full_report(sample_result):
    report = build_report(parse_analysis(sample_result))

    assert report["skin_type"] == "Combination"
    assert report["skin_type_initial"] == "C"
    assert not report["healthy"]
    assert [c["badge"] for c in report["immediate_concerns"]] == ["badge-medium", "badge-low"]
    assert report["morning"][0]["product_type"] == "Cleanser"
    assert report["expected_timeline"] == "4-6 weeks"
    assert report["tips"] == sample_result["progress_tracking"]["tips"]
    assert report["price_range"] == "mid range"


def test_routine_sorted_by_step(sample_result):
    sample_result["skincare_routine"]["evening"].reverse()
    report = build_report(parse_analysis(sample_result))
    assert [s["step"] for s in report["evening"]] == [1, 2, 3]


def test_minimal_report_has_empty_optionals():
    report = build_report(parse_analysis({
        "skin_profile": {"type": "normal", "concerns": ["no visible issues found"]},
        "skincare_routine": {"morning": [{"product_type": "sunscreen"}]},
    }))

    assert report["healthy"]
    assert report["immediate_concerns"] == []
    assert report["tips"] == []
    assert report["expected_timeline"] is None
    assert report["check_in_days"] is None
    assert report["avoid_ingredients"] == []
    assert report["evening"] == []
    assert report["morning"][0]["step"] == 1


def test_tips_fall_back_to_recommendations(sample_result):
    del sample_result["progress_tracking"]["tips"]
    report = build_report(parse_analysis(sample_result))
    assert report["tips"] == [
        "Use a niacinamide serum on the T-zone once daily",
        "Apply a ceramide moisturizer to dry areas",
    ]


def test_unknown_urgency_badge(sample_result):
    sample_result["immediate_concerns"][0]["urgency"] = "asap"
    report = build_report(parse_analysis(sample_result))
    first = report["immediate_concerns"][0]
    assert first["urgency"] == "unknown"
    assert first["badge"] == "badge-unknown"


def test_null_optional_fields_render(sample_result):
    sample_result["skin_profile"]["skin_tone"] = None
    sample_result["immediate_concerns"][0]["recommendation"] = None
    sample_result["product_filters"]["price_range"] = None
    sample_result["progress_tracking"]["expected_timeline"] = None

    report = build_report(parse_analysis(sample_result))
    assert report["skin_tone"] == ""
    assert report["immediate_concerns"][0]["recommendation"] == ""
    assert report["price_range"] == ""
    assert report["expected_timeline"] is None


@pytest.mark.parametrize("concerns,healthy", [
    (["None"], True),
    (["no visible issues found"], True),
    (["uneven tone, none severe"], False),
    (["dry cheeks", "none"], False),
])
def test_healthy_marker_matches_whole_concern(concerns, healthy):
    report = build_report(parse_analysis({
        "skin_profile": {"type": "normal", "concerns": concerns},
        "skincare_routine": {},
    }))
    assert report["healthy"] is healthy
