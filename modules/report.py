"""
結果表示モジュール
Builds the results page context from a validated analysis result.
"""
from modules.schema import AnalysisResult

HEALTHY_MARKERS = ("no visible issues", "no issues")
HEALTHY_WORDS = ("none", "n/a")

URGENCY_BADGES = {
    "high": "badge-high",
    "medium": "badge-medium",
    "low": "badge-low",
}


def _is_healthy(concerns: list) -> bool:
    if not concerns:
        return True
    return all(_healthy_concern(c.strip(" .").lower()) for c in concerns)


def _healthy_concern(text: str) -> bool:
    return text in HEALTHY_WORDS or any(m in text for m in HEALTHY_MARKERS)


def _routine(steps) -> list:
    ordered = sorted(steps, key=lambda s: s.step)
    return [
        {
            "step": s.step or index + 1,
            "product_type": s.product_type.replace("_", " ").title(),
            "ingredients": s.ingredients,
            "purpose": s.purpose,
        }
        for index, s in enumerate(ordered)
    ]


def build_report(result: AnalysisResult) -> dict:
    """
    Template context for results.html.

    Optional sections (product_filters, progress_tracking and its
    expected_timeline / tips) come back as empty values when absent.
    """
    profile = result.skin_profile
    skin_type = profile.type.strip().title() or "Unknown"

    concerns = [
        {
            "issue": c.issue,
            "urgency": c.urgency if c.urgency_known else "unknown",
            "badge": URGENCY_BADGES.get(c.urgency, "badge-unknown"),
            "recommendation": c.recommendation,
        }
        for c in result.immediate_concerns
    ]

    tracking = result.progress_tracking
    tips = list(tracking.tips) if tracking else []
    if not tips:
        tips = [c.recommendation for c in result.immediate_concerns if c.recommendation]

    filters = result.product_filters
    return {
        "analysis_id": result.analysis_id,
        "timestamp": result.timestamp,
        "skin_type": skin_type,
        "skin_type_initial": skin_type[0],
        "skin_tone": profile.skin_tone,
        "age_range": profile.age_range,
        "concerns": profile.concerns,
        "healthy": _is_healthy(profile.concerns),
        "immediate_concerns": concerns,
        "morning": _routine(result.skincare_routine.morning),
        "evening": _routine(result.skincare_routine.evening),
        "tips": tips,
        "preferred_ingredients": filters.preferred_ingredients if filters else [],
        "avoid_ingredients": filters.avoid_ingredients if filters else [],
        "price_range": (filters.price_range.replace("_", " ") if filters else ""),
        "check_in_days": tracking.check_in_days if tracking else None,
        "expected_improvements": tracking.expected_improvements if tracking else [],
        "warning_signs": tracking.warning_signs if tracking else [],
        "expected_timeline": tracking.expected_timeline if tracking else None,
    }
