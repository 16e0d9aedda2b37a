"""
解析結果スキーマ
Analysis result schema returned by the AI skin analysis service.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

URGENCY_LEVELS = ("low", "medium", "high")


class AnalysisError(Exception):
    """Base class for analysis failures shown to the user."""

    user_message = "Skin analysis failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail

    @property
    def message(self) -> str:
        if self.detail:
            return f"Skin analysis failed: {self.detail}"
        return self.user_message


class IncompleteAnalysisError(AnalysisError):
    user_message = "Incomplete analysis result from AI"


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        # null means "not applicable"; required fields still fail as missing
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class SkinProfile(_Lenient):
    type: str
    concerns: List[str] = []
    skin_tone: str = ""
    age_range: str = ""

    @field_validator("concerns", mode="before")
    @classmethod
    def _listify(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class ImmediateConcern(_Lenient):
    issue: str
    urgency: str = "low"
    recommendation: str = ""

    @field_validator("urgency", mode="before")
    @classmethod
    def _normalise_urgency(cls, v):
        return str(v or "low").strip().lower()

    @property
    def urgency_known(self) -> bool:
        return self.urgency in URGENCY_LEVELS


class RoutineStep(_Lenient):
    step: int = 0
    product_type: str
    ingredients: List[str] = []
    purpose: str = ""


class SkincareRoutine(_Lenient):
    morning: List[RoutineStep] = []
    evening: List[RoutineStep] = []


class ProductFilters(_Lenient):
    avoid_ingredients: List[str] = []
    preferred_ingredients: List[str] = []
    skin_type_tags: List[str] = []
    price_range: str = ""


class ProgressTracking(_Lenient):
    check_in_days: Optional[int] = None
    expected_improvements: List[str] = []
    warning_signs: List[str] = []
    # read by the results page, not always sent by the service
    expected_timeline: Optional[str] = None
    tips: List[str] = []

    @field_validator("check_in_days", mode="before")
    @classmethod
    def _days(cls, v):
        try:
            return int(v)
        except (TypeError, ValueError):
            return None


class AnalysisResult(_Lenient):
    analysis_id: str = ""
    timestamp: str = ""
    skin_profile: SkinProfile
    immediate_concerns: List[ImmediateConcern] = []
    skincare_routine: SkincareRoutine
    product_filters: Optional[ProductFilters] = None
    progress_tracking: Optional[ProgressTracking] = None

    @field_validator("immediate_concerns", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


def _missing_fields(err: ValidationError) -> List[str]:
    return sorted({".".join(str(p) for p in e["loc"]) for e in err.errors()})


def parse_analysis(payload: dict) -> AnalysisResult:
    """
    Validate a decoded analysis document and backfill its identifiers.

    Raises:
        IncompleteAnalysisError: required fields are missing or malformed.
    """
    if not isinstance(payload, dict):
        raise IncompleteAnalysisError("expected a JSON object")

    try:
        result = AnalysisResult.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(_missing_fields(e))
        raise IncompleteAnalysisError(f"missing or invalid fields: {fields}") from e

    now = datetime.now(timezone.utc)
    if not result.analysis_id:
        result.analysis_id = f"skin_analysis_{int(now.timestamp() * 1000)}"
    if not result.timestamp:
        result.timestamp = now.isoformat()
    return result
