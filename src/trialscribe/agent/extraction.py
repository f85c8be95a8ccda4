"""
Patient attribute extraction.

Sends a clinical conversation transcript to a chat model and asks for a
strict JSON-schema response with exactly three fields: the primary
condition, the patient's age and gender. Output that does not conform to the
schema, or that names no condition, is rejected.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from trialscribe.config import Settings
from trialscribe.errors import ExtractionFailed

from .chat_models import get_chat_model

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert medical assistant. Extract the patient's primary condition, age, and gender "
    "from the transcript to search for clinical trials. Be precise and concise."
)


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class PatientDataOutput(BaseModel):
    """Schema the chat model is constrained to."""

    condition: str = Field(
        description=(
            "The primary medical condition or diagnosis. Provide a single concise term "
            "(e.g., 'Asthma', 'Type 2 Diabetes')."
        ),
    )
    age: float | None = Field(
        description="The patient's age in years, if mentioned. Null if not mentioned.",
    )
    gender: Gender | None = Field(
        description="The patient's biological gender, if mentioned. Null if not mentioned.",
    )


class PatientAttributes(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: str = Field(min_length=1)
    age: int | None = Field(default=None, ge=0)
    gender: Gender | None = None

    @field_validator("condition", mode="before")
    @classmethod
    def _strip_condition(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("age", mode="before")
    @classmethod
    def _whole_years(cls, value: Any) -> Any:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError("age must be a whole number of years")
            return int(value)
        return value

    @classmethod
    def from_output(cls, output: PatientDataOutput) -> "PatientAttributes":
        """Validate model output at the service boundary."""
        condition = (output.condition or "").strip()
        if not condition:
            raise ExtractionFailed()
        try:
            return cls(condition=condition, age=output.age, gender=output.gender)
        except ValidationError as exc:
            raise ExtractionFailed(details=exc.errors(include_url=False)) from exc


class Extractor(Protocol):
    def extract(self, transcript: str) -> PatientAttributes: ...


class LLMExtractor:
    """Extractor backed by a chat model with structured output."""

    def __init__(self, model: BaseChatModel | None, *, system_prompt: str = SYSTEM_PROMPT) -> None:
        self.system_prompt = system_prompt
        self._structured = None
        if model is not None:
            self._structured = model.with_structured_output(
                PatientDataOutput,
                method="json_schema",
                strict=True,
                include_raw=True,
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMExtractor":
        # Missing credentials must not break startup; extract() reports them instead.
        if settings.provider.lower() == "openai" and not settings.has_llm_credentials:
            logger.warning("OPENAI_API_KEY is not set; transcript extraction will fail until it is configured")
            return cls(None)
        try:
            model = get_chat_model(
                settings.model_name,
                settings.provider,
                model_parameters={"temperature": settings.temperature},
                request_timeout=settings.llm_timeout,
                base_url=settings.openai_base_url,
                api_key=settings.openai_api_key,
            )
        except Exception as exc:
            logger.error("Could not configure chat model %r (%s): %s", settings.model_name, settings.provider, exc)
            return cls(None)
        return cls(model)

    def extract(self, transcript: str) -> PatientAttributes:
        if self._structured is None:
            raise ExtractionFailed("Language model credentials are not configured.", upstream=True)

        messages = [SystemMessage(content=self.system_prompt), HumanMessage(content=transcript)]
        try:
            result = self._structured.invoke(messages)
        except Exception as exc:
            logger.error("Language model call failed: %s", exc)
            raise ExtractionFailed(
                "An error occurred while processing the request.", upstream=True
            ) from exc

        parsed, parsing_error = _unpack(result)
        if parsing_error is not None:
            logger.warning("Model output did not match the extraction schema: %s", parsing_error)
            raise ExtractionFailed(details=str(parsing_error))
        if parsed is None:
            logger.warning("Model returned no structured output (refusal or empty response)")
            raise ExtractionFailed()

        if isinstance(parsed, dict):
            try:
                parsed = PatientDataOutput.model_validate(parsed)
            except ValidationError as exc:
                raise ExtractionFailed(details=exc.errors(include_url=False)) from exc

        attributes = PatientAttributes.from_output(parsed)
        logger.info(
            "Extracted condition=%r age=%s gender=%s",
            attributes.condition,
            attributes.age,
            attributes.gender.value if attributes.gender else None,
        )
        return attributes


def _unpack(result: Any) -> tuple[Any, Any]:
    # include_raw=True yields {"raw": ..., "parsed": ..., "parsing_error": ...}
    if isinstance(result, dict) and "parsed" in result:
        return result.get("parsed"), result.get("parsing_error")
    return result, None
