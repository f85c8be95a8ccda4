"""
Request orchestration: validate → extract → search.

Each call to ``handle`` walks a fresh ``PipelineRun`` through

    IDLE → VALIDATING → EXTRACTING → SEARCHING → COMPLETED

with ERRORED reachable from the three working states. The search never
starts unless extraction produced a condition, and no partial result is ever
returned next to an error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from trialscribe.agent.extraction import Extractor, LLMExtractor, PatientAttributes
from trialscribe.config import Settings
from trialscribe.errors import ExtractionFailed, InvalidInput, SearchFailed, TrialScribeError, UnexpectedFailure
from trialscribe.search.clinical_trial_search import ClinicalTrialsGovSearcher, TrialRecord, TrialSearcher

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    SEARCHING = "searching"
    COMPLETED = "completed"
    ERRORED = "errored"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.VALIDATING}),
    PipelineState.VALIDATING: frozenset({PipelineState.EXTRACTING, PipelineState.ERRORED}),
    PipelineState.EXTRACTING: frozenset({PipelineState.SEARCHING, PipelineState.ERRORED}),
    PipelineState.SEARCHING: frozenset({PipelineState.COMPLETED, PipelineState.ERRORED}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.ERRORED: frozenset(),
}


class PipelineRun:
    """State of a single request. Never shared between requests."""

    def __init__(self) -> None:
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]

    @property
    def finished(self) -> bool:
        return self.state in (PipelineState.COMPLETED, PipelineState.ERRORED)

    def advance(self, new_state: PipelineState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {new_state.value}")
        logger.debug("pipeline %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)


@dataclass(frozen=True)
class TrialMatchResponse:
    patient_data: PatientAttributes
    trials: list[TrialRecord] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "patientData": self.patient_data.model_dump(mode="json"),
            "trials": [trial.to_response() for trial in self.trials],
        }


@dataclass(frozen=True)
class HandleResult:
    status_code: int
    payload: dict[str, Any]
    state: PipelineState

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def _validated_transcript(body: Any) -> str:
    if not isinstance(body, Mapping):
        raise InvalidInput()
    transcript = body.get("transcript")
    if not isinstance(transcript, str) or not transcript.strip():
        raise InvalidInput()
    return transcript


class TrialMatchOrchestrator:
    def __init__(self, extractor: Extractor, searcher: TrialSearcher) -> None:
        self.extractor = extractor
        self.searcher = searcher

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrialMatchOrchestrator":
        return cls(
            extractor=LLMExtractor.from_settings(settings),
            searcher=ClinicalTrialsGovSearcher(settings.ctgov_base_url, timeout=settings.ctgov_timeout),
        )

    def run(self, body: Any, pipeline: PipelineRun | None = None) -> TrialMatchResponse:
        """Execute the pipeline, raising the typed error of the failing step."""
        pipeline = pipeline or PipelineRun()

        pipeline.advance(PipelineState.VALIDATING)
        transcript = _validated_transcript(body)

        pipeline.advance(PipelineState.EXTRACTING)
        patient_data = self.extractor.extract(transcript)
        if patient_data is None or not patient_data.condition.strip():
            raise ExtractionFailed()

        pipeline.advance(PipelineState.SEARCHING)
        trials = list(self.searcher.search(patient_data.condition))

        pipeline.advance(PipelineState.COMPLETED)
        return TrialMatchResponse(patient_data=patient_data, trials=trials)

    def handle(self, body: Any) -> HandleResult:
        """Run the pipeline and map the outcome to an HTTP status and JSON body."""
        pipeline = PipelineRun()
        try:
            response = self.run(body, pipeline)
        except TrialScribeError as exc:
            error = exc
        except Exception as exc:
            logger.exception("Unexpected failure while %s", pipeline.state.value)
            error = UnexpectedFailure()
            error.__cause__ = exc
        else:
            return HandleResult(status_code=200, payload=response.to_payload(), state=pipeline.state)

        if not pipeline.finished and pipeline.state is not PipelineState.IDLE:
            pipeline.advance(PipelineState.ERRORED)
        _log_failure(error)
        return HandleResult(
            status_code=error.status_code,
            payload={"error": error.message},
            state=pipeline.state,
        )


def _log_failure(error: TrialScribeError) -> None:
    if isinstance(error, SearchFailed):
        logger.error(
            "Trial search failed: %s (upstream_status=%s, upstream_body=%s)",
            error.message,
            error.upstream_status,
            error.upstream_body,
        )
    elif isinstance(error, ExtractionFailed):
        logger.warning("Extraction failed (status %s): %s", error.status_code, error.details or error.message)
    elif isinstance(error, InvalidInput):
        logger.info("Rejected request: %s", error.message)
    elif not isinstance(error, UnexpectedFailure):
        logger.error("Request failed: %s", error.message)
