"""
ClinicalTrials.gov search gateway.

Queries the registry's v2 ``/studies`` endpoint for actively recruiting
studies matching a condition and maps each study's ``protocolSection`` into a
``TrialRecord``.

Only the condition is sent. Demographic terms such as "32 Years" or "FEMALE"
make the registry's full-text matching return nothing far too often, because
trial text is not standardized to those phrases; ``query.cond`` alone pulls
the active matches and the reviewer filters on age/sex by reading the cards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field, computed_field

from trialscribe.config import (
    CTGOV_STUDIES_URL,
    CTGOV_STUDY_PAGE_URL,
    RECRUITING_STATUS,
    TRIALS_PAGE_SIZE,
)
from trialscribe.errors import SearchFailed

logger = logging.getLogger(__name__)

USER_AGENT = "trialscribe/0.1"
_BODY_PREVIEW_CHARS = 500


def study_url(nct_id: str) -> str:
    """Canonical registry page for a study."""
    return f"{CTGOV_STUDY_PAGE_URL}/{nct_id}"


def _as_dict(obj: Any) -> dict[str, Any]:
    return obj if isinstance(obj, dict) else {}


def _as_str_list(obj: Any) -> list[str]:
    if not isinstance(obj, list):
        return []
    return [str(x) for x in obj if isinstance(x, str) and x.strip()]


@dataclass(frozen=True)
class TrialQuery:
    condition: str
    overall_status: str = RECRUITING_STATUS
    page_size: int = TRIALS_PAGE_SIZE

    def to_params(self) -> dict[str, Any]:
        return {
            "query.cond": self.condition,
            "filter.overallStatus": self.overall_status,
            "pageSize": self.page_size,
        }


class TrialRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    nct_id: str = Field(alias="nctId", min_length=1)
    brief_title: str = Field(alias="briefTitle")
    overall_status: str | None = Field(default=None, alias="overallStatus")
    conditions: list[str] = Field(default_factory=list)
    eligibility_criteria: str | None = Field(default=None, alias="eligibilityCriteria")
    sex: str | None = None
    minimum_age: str | None = Field(default=None, alias="minimumAge")
    maximum_age: str | None = Field(default=None, alias="maximumAge")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def url(self) -> str:
        return study_url(self.nct_id)

    @classmethod
    def from_study(cls, study: dict[str, Any]) -> "TrialRecord | None":
        """Build a record from one registry study; ``None`` when it has no NCT id."""
        protocol = _as_dict(_as_dict(study).get("protocolSection"))
        ident = _as_dict(protocol.get("identificationModule"))
        status = _as_dict(protocol.get("statusModule"))
        conds = _as_dict(protocol.get("conditionsModule"))
        elig = _as_dict(protocol.get("eligibilityModule"))

        nct_id = str(ident.get("nctId") or "").strip()
        if not nct_id:
            return None

        return cls(
            nct_id=nct_id,
            brief_title=str(ident.get("briefTitle") or ident.get("officialTitle") or nct_id),
            overall_status=status.get("overallStatus"),
            conditions=_as_str_list(conds.get("conditions")),
            eligibility_criteria=elig.get("eligibilityCriteria"),
            sex=elig.get("sex"),
            minimum_age=elig.get("minimumAge"),
            maximum_age=elig.get("maximumAge"),
        )

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TrialSearcher(Protocol):
    def search(self, condition: str) -> list[TrialRecord]: ...


class ClinicalTrialsGovSearcher:
    """Single-page, read-only search against the registry. No retries."""

    def __init__(
        self,
        base_url: str = CTGOV_STUDIES_URL,
        *,
        timeout: float = 30.0,
        page_size: int = TRIALS_PAGE_SIZE,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.page_size = page_size
        self.user_agent = user_agent

    def build_query(self, condition: str) -> TrialQuery:
        return TrialQuery(condition=condition, page_size=self.page_size)

    def search(self, condition: str) -> list[TrialRecord]:
        query = self.build_query(condition)
        params = query.to_params()
        try:
            resp = requests.get(
                self.base_url,
                params=params,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
        except requests.RequestException as exc:
            logger.error("ClinicalTrials.gov request failed: %s (params=%s)", exc, params)
            raise SearchFailed(
                "Could not reach the clinical trials registry.",
                upstream_body=str(exc),
            ) from exc

        if not resp.ok:
            body = (resp.text or "")[:_BODY_PREVIEW_CHARS]
            logger.error("ClinicalTrials.gov API error: status=%s body=%s url=%s", resp.status_code, body, resp.url)
            raise SearchFailed(
                f"ClinicalTrials.gov API returned status: {resp.status_code}",
                upstream_status=resp.status_code,
                upstream_body=body,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise SearchFailed(
                "Invalid JSON from the clinical trials registry.",
                upstream_status=resp.status_code,
                upstream_body=(resp.text or "")[:_BODY_PREVIEW_CHARS],
            ) from exc

        studies = _as_dict(data).get("studies") or []
        records: list[TrialRecord] = []
        for study in studies:
            record = TrialRecord.from_study(study)
            if record is None:
                logger.warning("Skipping registry study without an NCT id")
                continue
            records.append(record)

        records = records[: self.page_size]
        logger.info("Found %d recruiting studies for condition %r", len(records), condition)
        return records
