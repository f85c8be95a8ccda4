from __future__ import annotations

from typing import Any

import pytest

from trialscribe.agent.extraction import PatientAttributes
from trialscribe.search.clinical_trial_search import TrialRecord


def make_study(
    nct_id: str | None = "NCT01234567",
    title: str = "A Study of Inhaled Therapy in Uncontrolled Asthma",
    conditions: list[str] | None = None,
    status: str = "RECRUITING",
) -> dict[str, Any]:
    ident: dict[str, Any] = {"briefTitle": title}
    if nct_id is not None:
        ident["nctId"] = nct_id
    return {
        "protocolSection": {
            "identificationModule": ident,
            "statusModule": {"overallStatus": status},
            "conditionsModule": {"conditions": conditions if conditions is not None else ["Asthma"]},
            "eligibilityModule": {
                "eligibilityCriteria": "Inclusion Criteria:\n* Age 18-65",
                "sex": "ALL",
                "minimumAge": "18 Years",
                "maximumAge": "65 Years",
            },
        }
    }


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        text: str | None = None,
        url: str = "https://clinicaltrials.gov/api/v2/studies",
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))
        self.url = url

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeExtractor:
    def __init__(self, result: PatientAttributes | None = None, error: Exception | None = None) -> None:
        self.result = result or PatientAttributes(condition="Asthma", age=32)
        self.error = error
        self.calls: list[str] = []

    def extract(self, transcript: str) -> PatientAttributes:
        self.calls.append(transcript)
        if self.error is not None:
            raise self.error
        return self.result


class FakeSearcher:
    def __init__(self, records: list[TrialRecord] | None = None, error: Exception | None = None) -> None:
        self.records = records if records is not None else [TrialRecord.from_study(make_study())]
        self.error = error
        self.calls: list[str] = []

    def search(self, condition: str) -> list[TrialRecord]:
        self.calls.append(condition)
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def fake_searcher() -> FakeSearcher:
    return FakeSearcher()


@pytest.fixture(autouse=True)
def _no_llm_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


class FakeStructuredRunnable:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[list[Any]] = []

    def invoke(self, messages: list[Any]) -> Any:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.result


class FakeChatModel:
    """Stands in for a LangChain chat model; records the structured-output request."""

    def __init__(self, runnable: FakeStructuredRunnable) -> None:
        self.runnable = runnable
        self.schema: Any = None
        self.kwargs: dict[str, Any] = {}

    def with_structured_output(self, schema: Any, **kwargs: Any) -> FakeStructuredRunnable:
        self.schema = schema
        self.kwargs = kwargs
        return self.runnable
