"""Match clinical conversation transcripts to recruiting ClinicalTrials.gov studies."""

__version__ = "0.1.0"
