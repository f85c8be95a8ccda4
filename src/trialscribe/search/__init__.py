from .clinical_trial_search import (
    ClinicalTrialsGovSearcher,
    TrialQuery,
    TrialRecord,
    TrialSearcher,
    study_url,
)

__all__ = [
    "ClinicalTrialsGovSearcher",
    "TrialQuery",
    "TrialRecord",
    "TrialSearcher",
    "study_url",
]
