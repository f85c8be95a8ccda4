from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

import trialscribe.search.clinical_trial_search as ctsearch
from conftest import FakeChatModel, FakeExtractor, FakeResponse, FakeSearcher, FakeStructuredRunnable, make_study
from trialscribe.agent.extraction import LLMExtractor, PatientDataOutput
from trialscribe.config import Settings
from trialscribe.errors import SearchFailed
from trialscribe.search.clinical_trial_search import ClinicalTrialsGovSearcher
from trialscribe.server import webapp
from trialscribe.server.orchestrator import TrialMatchOrchestrator


def _client(extractor: Any, searcher: Any) -> TestClient:
    app = webapp.create_webapp(
        orchestrator=TrialMatchOrchestrator(extractor, searcher),
        settings=Settings(),
    )
    return TestClient(app)


def test_ok() -> None:
    client = _client(FakeExtractor(), FakeSearcher())
    response = client.get("/ok")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "version": "v1"}


@pytest.mark.parametrize("path", ["/trials", "/api/trials"])
def test_post_trials_success(path: str, fake_extractor: FakeExtractor, fake_searcher: FakeSearcher) -> None:
    client = _client(fake_extractor, fake_searcher)

    response = client.post(path, json={"transcript": "32 year old with asthma"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["patientData"] == {"condition": "Asthma", "age": 32, "gender": None}
    assert payload["trials"][0]["nctId"] == "NCT01234567"
    assert payload["trials"][0]["url"] == "https://clinicaltrials.gov/study/NCT01234567"
    assert "X-Request-ID" in response.headers


def test_request_id_is_echoed(fake_extractor: FakeExtractor, fake_searcher: FakeSearcher) -> None:
    client = _client(fake_extractor, fake_searcher)
    response = client.post("/trials", json={"transcript": "asthma"}, headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.parametrize("body", [{}, {"transcript": ""}, {"transcript": "   "}, {"text": "asthma"}])
def test_missing_transcript_is_400(body: dict[str, Any], fake_extractor: FakeExtractor, fake_searcher: FakeSearcher) -> None:
    client = _client(fake_extractor, fake_searcher)

    response = client.post("/trials", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Transcript is required"}
    assert fake_extractor.calls == []
    assert fake_searcher.calls == []


@pytest.mark.parametrize("content", [b"", b"{not json", b"\x80abc"])
def test_unparseable_body_is_400(content: bytes, fake_extractor: FakeExtractor, fake_searcher: FakeSearcher) -> None:
    client = _client(fake_extractor, fake_searcher)

    response = client.post("/trials", content=content, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Transcript is required"}
    assert "X-Request-ID" in response.headers
    assert fake_extractor.calls == []


def test_search_failure_is_500(fake_extractor: FakeExtractor) -> None:
    searcher = FakeSearcher(error=SearchFailed("ClinicalTrials.gov API returned status: 500", upstream_status=500))
    client = _client(fake_extractor, searcher)

    response = client.post("/trials", json={"transcript": "asthma"})

    assert response.status_code == 500
    assert set(response.json()) == {"error"}


def test_upstream_registry_error_is_500_not_partial(monkeypatch: pytest.MonkeyPatch, fake_extractor: FakeExtractor) -> None:
    monkeypatch.setattr(
        ctsearch.requests,
        "get",
        lambda url, **kw: FakeResponse(status_code=400, text='{"message": "bad query"}'),
    )
    client = _client(fake_extractor, ClinicalTrialsGovSearcher())

    response = client.post("/trials", json={"transcript": "asthma"})

    assert response.status_code == 500
    payload = response.json()
    assert "trials" not in payload
    assert "patientData" not in payload


def test_round_trip_asthma_transcript(monkeypatch: pytest.MonkeyPatch) -> None:
    params_seen: list[dict[str, Any]] = []

    def fake_get(url: str, **kwargs: Any) -> FakeResponse:
        params_seen.append(kwargs["params"])
        studies = [
            make_study("NCT05000001", "Biologic Therapy for Uncontrolled Asthma", ["Asthma", "Severe Asthma"]),
            make_study("NCT05000002", "Digital Inhaler Adherence in Adults", ["Asthma"]),
        ]
        return FakeResponse(payload={"studies": studies})

    monkeypatch.setattr(ctsearch.requests, "get", fake_get)
    runnable = FakeStructuredRunnable(
        {"raw": None, "parsed": PatientDataOutput(condition="Asthma", age=32, gender=None), "parsing_error": None}
    )
    client = _client(LLMExtractor(FakeChatModel(runnable)), ClinicalTrialsGovSearcher())  # type: ignore[arg-type]

    response = client.post(
        "/trials",
        json={"transcript": "The patient is a 32-year-old with uncontrolled asthma."},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["patientData"] == {"condition": "Asthma", "age": 32, "gender": None}
    assert params_seen == [{"query.cond": "Asthma", "filter.overallStatus": "RECRUITING", "pageSize": 10}]
    assert len(payload["trials"]) == 2
    assert all(t["nctId"] and t["briefTitle"] for t in payload["trials"])


def test_default_app_without_credentials_fails_cleanly(monkeypatch: pytest.MonkeyPatch) -> None:
    searched: list[str] = []
    monkeypatch.setattr(ctsearch.requests, "get", lambda url, **kw: searched.append(url))

    app = webapp.create_webapp(settings=Settings(openai_api_key=None))
    client = TestClient(app)

    assert client.get("/ok").status_code == 200
    response = client.post("/trials", json={"transcript": "asthma"})

    assert response.status_code == 500
    assert "credentials" in response.json()["error"]
    assert searched == []
