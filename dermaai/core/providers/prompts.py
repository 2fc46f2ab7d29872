"""
Provider Prompts and Response Parsing

Every provider receives the same instruction text and is expected to answer
with the same JSON document, so prompt construction and response parsing
live here rather than in each client.
"""
from typing import Any, Dict, List
import json
import re

from dermaai.core.case import (
    AnalysisContext,
    Language,
    RawDiagnosis,
    FailureCode,
    clamp_confidence,
)
from dermaai.utils import ProviderResponseError

# Providers are asked for exactly this many differentials
EXPECTED_DIAGNOSES = 5

SYSTEM_PROMPT = """You are an expert dermatologist AI assistant. Analyze the provided skin lesion image(s) and patient information to provide differential diagnoses.

If the image(s) do not show human skin or a skin lesion, respond ONLY with:
{"error": true, "message": "<short explanation>"}"""

RESPONSE_FORMAT = """Respond with JSON in this exact format:
{
  "diagnoses": [
    {
      "name": "Diagnosis name",
      "confidence": 85,
      "description": "Brief clinical description",
      "keyFeatures": ["Feature 1", "Feature 2", "Feature 3"],
      "recommendations": ["Recommendation 1", "Recommendation 2"]
    }
  ]
}"""

_LANGUAGE_INSTRUCTIONS = {
    Language.ENGLISH: "Write all descriptions, features and recommendations in English.",
    Language.TURKISH: (
        "Write all descriptions, features and recommendations in Turkish. "
        "Keep the diagnosis names in standard English medical terminology."
    ),
}

_AUDIENCE_INSTRUCTIONS = {
    True: "The reader is a health professional: use precise clinical terminology.",
    False: "The reader is a patient: use plain, non-alarming language and always advise seeing a dermatologist.",
}

# Some models wrap JSON in markdown fences despite the JSON response mode
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def build_prompt(symptoms: str, context: AnalysisContext, image_count: int = 1) -> str:
    """
    Build the user prompt shared by all providers.

    Args:
        symptoms: Comma-joined symptom labels or free text
        context: Lesion location, history, language and audience hints
        image_count: Number of images attached to the request

    Returns:
        Prompt text
    """
    history = ", ".join(context.medical_history) if context.medical_history else "None specified"
    views = (
        f"{image_count} images of the same lesion are attached; consider all views together."
        if image_count > 1 else "One image of the lesion is attached."
    )

    return f"""{views}

Consider:
- Visual characteristics of the lesion (color, shape, size, texture, borders)
- Patient symptoms: {symptoms or "None specified"}
- Lesion location: {context.lesion_location or "Not specified"}
- Medical history: {history}

Provide exactly {EXPECTED_DIAGNOSES} differential diagnoses ranked by confidence level, with confidence scores between 0-100.
{_LANGUAGE_INSTRUCTIONS[context.language]}
{_AUDIENCE_INSTRUCTIONS[bool(context.is_health_professional)]}

{RESPONSE_FORMAT}"""


def _load_json(text: str) -> Dict[str, Any]:
    if not text or not text.strip():
        raise ProviderResponseError("Empty response from provider", code=FailureCode.INVALID_RESPONSE.value)

    cleaned = text.strip()
    fenced = _CODE_FENCE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderResponseError(
            f"Provider returned malformed JSON: {e.msg}",
            code=FailureCode.INVALID_RESPONSE.value
        )
    if not isinstance(payload, dict):
        raise ProviderResponseError("Provider response is not a JSON object", code=FailureCode.INVALID_RESPONSE.value)
    return payload


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _parse_entry(entry: Any) -> RawDiagnosis:
    if not isinstance(entry, dict):
        raise ProviderResponseError("Diagnosis entry is not an object", code=FailureCode.INVALID_RESPONSE.value)

    name = entry.get("name")
    confidence = entry.get("confidence")
    if not isinstance(name, str) or not name.strip():
        raise ProviderResponseError("Diagnosis entry has no name", code=FailureCode.INVALID_RESPONSE.value)
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ProviderResponseError(
            f"Diagnosis '{name}' has a non-numeric confidence",
            code=FailureCode.INVALID_RESPONSE.value
        )

    return RawDiagnosis(
        name=name.strip(),
        confidence=clamp_confidence(confidence),
        description=str(entry.get("description") or ""),
        key_features=_string_list(entry.get("keyFeatures")),
        recommendations=_string_list(entry.get("recommendations")),
    )


def parse_diagnoses(text: str) -> List[RawDiagnosis]:
    """
    Parse a provider's JSON answer into at most five raw diagnoses.

    The first five are kept in the provider's own order, without
    re-sorting by confidence. Fewer than five are returned as given.

    Raises:
        ProviderResponseError: INVALID_IMAGE when the provider rejected the
            image, INVALID_RESPONSE when the document is unusable
    """
    payload = _load_json(text)

    if payload.get("error"):
        raise ProviderResponseError(
            str(payload.get("message") or "Image does not appear to be a skin lesion"),
            code=FailureCode.INVALID_IMAGE.value
        )

    entries = payload.get("diagnoses")
    if not isinstance(entries, list):
        raise ProviderResponseError("Response has no diagnoses list", code=FailureCode.INVALID_RESPONSE.value)

    # NOTE: truncation happens before any sort; a provider that lists a
    # higher-confidence entry sixth loses it here.
    return [_parse_entry(entry) for entry in entries[:EXPECTED_DIAGNOSES]]
