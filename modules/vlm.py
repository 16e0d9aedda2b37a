"""
SkinAI — Vision Language Model (VLM) Integration
Sends a face photo to OpenAI (or Google Gemini) and validates the
returned skin analysis JSON.
"""
import json
import logging
from datetime import datetime, timezone

import google.generativeai as genai
import requests

import config
from modules.imaging import ImagePayload
from modules.schema import (
    AnalysisError,
    AnalysisResult,
    IncompleteAnalysisError,
    parse_analysis,
)

logger = logging.getLogger(__name__)


class AnalysisNotConfigured(AnalysisError):
    user_message = "Analysis service not configured. Please check your configuration."

    @property
    def message(self) -> str:
        return self.user_message


class AnalysisServiceError(AnalysisError):
    user_message = "Analysis service unavailable"


class MalformedAnalysisError(AnalysisError):
    user_message = "Invalid response format from AI analysis"

    @property
    def message(self) -> str:
        return self.user_message


ANALYSIS_PROMPT = """
You are an expert dermatologist and skincare specialist.

Your task is to analyze the provided facial image and return a comprehensive skin assessment in the form of a **valid JSON object**.

Your analysis must cover:
1. Skin type (e.g., oily, dry, combination, normal, sensitive)
2. Visible concerns (e.g., acne, pores, pigmentation, wrinkles, redness)
3. Skin tone (e.g., light, medium, dark)
4. Estimated age range (e.g., 20-30)
5. Immediate skincare concerns with urgency and treatment
6. A complete morning and evening skincare routine
7. Product ingredient preferences and restrictions
8. Progress tracking plan

VERY IMPORTANT RULES:
- If NO visible issues are detected, set "concerns" to ["no visible issues found"]
- If no immediate concerns, set "immediate_concerns" to an empty array []
- ONLY list concerns that are clearly visible. DO NOT assume or invent problems
- Be conservative in diagnosis. Healthy skin should be recognized as such
- Ingredient recommendations should be evidence-based and safe

Do NOT return any explanation, just a valid JSON object in this exact structure:

{
  "analysis_id": "skin_analysis_[random_id]",
  "timestamp": "[current_iso_timestamp]",
  "skin_profile": {
    "type": "[skin_type]",
    "concerns": ["concern1", "concern2"],
    "skin_tone": "[light/medium/dark]",
    "age_range": "[age_range]"
  },
  "immediate_concerns": [
    {
      "issue": "[concern]",
      "urgency": "[high/medium/low]",
      "recommendation": "[specific_advice]"
    }
  ],
  "skincare_routine": {
    "morning": [
      {
        "step": 1,
        "product_type": "[cleanser/serum/moisturizer/sunscreen]",
        "ingredients": ["ingredient1", "ingredient2"],
        "purpose": "[specific_purpose]"
      }
    ],
    "evening": [
      {
        "step": 1,
        "product_type": "[product_type]",
        "ingredients": ["ingredient1"],
        "purpose": "[purpose]"
      }
    ]
  },
  "product_filters": {
    "avoid_ingredients": ["ingredient1", "ingredient2"],
    "preferred_ingredients": ["ingredient1", "ingredient2"],
    "skin_type_tags": ["tag1", "tag2"],
    "price_range": "[budget/mid_range/luxury]"
  },
  "progress_tracking": {
    "check_in_days": 14,
    "expected_improvements": ["improvement1", "improvement2"],
    "warning_signs": ["sign1", "sign2"],
    "expected_timeline": "[when_results_should_show]",
    "tips": ["tip1", "tip2"]
  }
}

Be specific with ingredient recommendations and ensure all advice is evidence-based and safe.
"""

SAMPLE_RESULT = {
    "analysis_id": "skin_analysis_sample",
    "skin_profile": {
        "type": "combination",
        "concerns": ["enlarged pores", "oily t-zone", "dry cheeks"],
        "skin_tone": "medium",
        "age_range": "25-35",
    },
    "immediate_concerns": [
        {
            "issue": "enlarged pores",
            "urgency": "medium",
            "recommendation": "Use a niacinamide serum on the T-zone once daily",
        },
        {
            "issue": "dry cheeks",
            "urgency": "low",
            "recommendation": "Apply a ceramide moisturizer to dry areas",
        },
    ],
    "skincare_routine": {
        "morning": [
            {"step": 1, "product_type": "cleanser",
             "ingredients": ["glycerin"], "purpose": "Gentle cleanse without over-drying"},
            {"step": 2, "product_type": "serum",
             "ingredients": ["niacinamide"], "purpose": "Minimize pores and control oil"},
            {"step": 3, "product_type": "moisturizer",
             "ingredients": ["hyaluronic acid", "ceramides"], "purpose": "Hydrate dry areas"},
            {"step": 4, "product_type": "sunscreen",
             "ingredients": ["zinc oxide"], "purpose": "Daily UV protection"},
        ],
        "evening": [
            {"step": 1, "product_type": "cleanser",
             "ingredients": ["glycerin"], "purpose": "Remove sunscreen and oil"},
            {"step": 2, "product_type": "serum",
             "ingredients": ["niacinamide"], "purpose": "Balance the T-zone"},
            {"step": 3, "product_type": "moisturizer",
             "ingredients": ["ceramides"], "purpose": "Overnight repair"},
        ],
    },
    "product_filters": {
        "avoid_ingredients": ["alcohol denat"],
        "preferred_ingredients": ["niacinamide", "hyaluronic acid"],
        "skin_type_tags": ["combination", "oily"],
        "price_range": "mid_range",
    },
    "progress_tracking": {
        "check_in_days": 14,
        "expected_improvements": ["less shine on the T-zone", "more even hydration"],
        "warning_signs": ["persistent redness", "stinging"],
        "expected_timeline": "4-6 weeks",
        "tips": [
            "Use a gentle cleanser twice daily to avoid over-stripping your skin",
            "Always use sunscreen, even indoors, to prevent premature aging",
            "Introduce new products gradually to avoid irritation",
        ],
    },
}


def _has_key(key: str) -> bool:
    return bool(key) and key not in config.PLACEHOLDER_KEYS


def get_analysis_config() -> dict:
    """Settings in effect for the analysis call (never the key itself)."""
    provider = config.ANALYSIS_PROVIDER
    if provider == "gemini":
        return {
            "provider": provider,
            "has_api_key": _has_key(config.GOOGLE_API_KEY),
            "model": config.GEMINI_MODEL,
            "max_tokens": config.OPENAI_MAX_TOKENS,
            "temperature": config.OPENAI_TEMPERATURE,
        }
    return {
        "provider": provider,
        "has_api_key": provider == "mock" or _has_key(config.OPENAI_API_KEY),
        "model": config.OPENAI_MODEL,
        "max_tokens": config.OPENAI_MAX_TOKENS,
        "temperature": config.OPENAI_TEMPERATURE,
        "detail_level": config.IMAGE_DETAIL_LEVEL,
    }


def extract_json(text: str) -> dict:
    """Strip markdown code fences and decode the JSON object."""
    if not text or not text.strip():
        raise AnalysisServiceError("No analysis received from the AI service")

    # Clean markdown code blocks if present
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse analysis response: %s", text[:300])
        raise MalformedAnalysisError(str(e)) from e

    if not isinstance(data, dict):
        logger.error("Analysis response is not an object: %s", text[:300])
        raise MalformedAnalysisError("expected a JSON object")
    return data


def analyze_skin(image: ImagePayload) -> AnalysisResult:
    """
    Analyze a face photo and return the validated result.

    Args:
        image: normalised JPEG payload from modules.imaging

    Returns:
        AnalysisResult with analysis_id and timestamp always set

    Raises:
        AnalysisNotConfigured, AnalysisServiceError,
        MalformedAnalysisError, IncompleteAnalysisError
    """
    provider = config.ANALYSIS_PROVIDER
    logger.info("Starting skin analysis via %s (%d bytes)", provider, image.size_bytes)

    if provider == "openai":
        text = _analyze_with_openai(image)
    elif provider == "gemini":
        text = _analyze_with_gemini(image)
    elif provider == "mock":
        text = json.dumps(
            dict(SAMPLE_RESULT, timestamp=datetime.now(timezone.utc).isoformat())
        )
    else:
        raise AnalysisNotConfigured(f"unknown provider {provider!r}")

    try:
        result = parse_analysis(extract_json(text))
    except IncompleteAnalysisError as e:
        logger.error("Incomplete analysis result: %s", e.detail)
        raise

    logger.info("Analysis %s complete (skin type: %s)",
                result.analysis_id, result.skin_profile.type)
    return result


def _analyze_with_openai(image: ImagePayload) -> str:
    if not _has_key(config.OPENAI_API_KEY):
        raise AnalysisNotConfigured()

    url = f"{config.OPENAI_BASE_URL.rstrip('/')}/chat/completions"
    headers = {
        "Authorization": f"Bearer {config.OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }
    body = {
        "model": config.OPENAI_MODEL,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": ANALYSIS_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": image.to_data_url(),
                            "detail": config.IMAGE_DETAIL_LEVEL,
                        },
                    },
                ],
            }
        ],
        "max_tokens": config.OPENAI_MAX_TOKENS,
        "temperature": config.OPENAI_TEMPERATURE,
        "response_format": {"type": "json_object"},
    }

    try:
        response = requests.post(
            url, headers=headers, json=body, timeout=config.ANALYSIS_TIMEOUT
        )
    except requests.exceptions.Timeout as e:
        logger.error("Analysis request timed out")
        raise AnalysisServiceError("Request timeout - please try again") from e
    except requests.exceptions.RequestException as e:
        logger.error("Analysis request failed: %s", e)
        raise AnalysisServiceError(str(e)) from e

    if response.status_code != 200:
        detail = _error_message(response)
        logger.error("Analysis API error %s: %s", response.status_code, detail)
        if response.status_code == 401:
            raise AnalysisNotConfigured(detail)
        raise AnalysisServiceError(detail)

    try:
        payload = response.json()
        return payload["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.error("Unexpected completion envelope: %s", response.text[:300])
        raise MalformedAnalysisError("unexpected completion envelope") from e


def _error_message(response) -> str:
    try:
        error = response.json().get("error", {})
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
    except (ValueError, AttributeError):
        pass
    return f"API error: {response.status_code}"


def _analyze_with_gemini(image: ImagePayload) -> str:
    if not _has_key(config.GOOGLE_API_KEY):
        raise AnalysisNotConfigured()

    try:
        genai.configure(api_key=config.GOOGLE_API_KEY)
        model = genai.GenerativeModel(config.GEMINI_MODEL)
        response = model.generate_content(
            [
                {"mime_type": image.mime_type, "data": image.data},
                ANALYSIS_PROMPT,
            ],
            generation_config={
                "response_mime_type": "application/json",
                "max_output_tokens": config.OPENAI_MAX_TOKENS,
                "temperature": config.OPENAI_TEMPERATURE,
            },
            request_options={"timeout": config.ANALYSIS_TIMEOUT},
        )
        return response.text
    except Exception as e:
        logger.error("Gemini analysis failed: %s", e)
        raise AnalysisServiceError(str(e)) from e
