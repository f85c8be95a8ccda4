"""Process-wide settings, read once from the environment at startup."""

from __future__ import annotations

import os

CTGOV_STUDIES_URL = "https://clinicaltrials.gov/api/v2/studies"
CTGOV_STUDY_PAGE_URL = "https://clinicaltrials.gov/study"

# Registry query policy. Not configurable.
RECRUITING_STATUS = "RECRUITING"
TRIALS_PAGE_SIZE = 10


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


class Settings:
    """Read-only configuration shared by every request."""

    def __init__(
        self,
        *,
        openai_api_key: str | None = None,
        openai_base_url: str | None = None,
        model_name: str = "gpt-4o-mini",
        provider: str = "openai",
        temperature: float = 0.0,
        llm_timeout: float = 60.0,
        ctgov_base_url: str = CTGOV_STUDIES_URL,
        ctgov_timeout: float = 30.0,
        log_level: str = "INFO",
        api_url: str = "http://127.0.0.1:8000",
    ) -> None:
        self.openai_api_key = openai_api_key
        self.openai_base_url = openai_base_url
        self.model_name = model_name
        self.provider = provider
        self.temperature = temperature
        self.llm_timeout = llm_timeout
        self.ctgov_base_url = ctgov_base_url
        self.ctgov_timeout = ctgov_timeout
        self.log_level = log_level
        self.api_url = api_url

    @property
    def has_llm_credentials(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip() or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL", "").strip() or None,
            model_name=os.getenv("TRIALSCRIBE_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini",
            provider=os.getenv("TRIALSCRIBE_PROVIDER", "openai").strip() or "openai",
            temperature=_env_float("TRIALSCRIBE_TEMPERATURE", 0.0),
            llm_timeout=_env_float("TRIALSCRIBE_LLM_TIMEOUT", 60.0),
            ctgov_base_url=os.getenv("TRIALSCRIBE_CTGOV_BASE_URL", "").strip() or CTGOV_STUDIES_URL,
            ctgov_timeout=_env_float("TRIALSCRIBE_CTGOV_TIMEOUT", 30.0),
            log_level=os.getenv("TRIALSCRIBE_LOG_LEVEL", "INFO").strip() or "INFO",
            api_url=os.getenv("TRIALSCRIBE_API_URL", "").strip() or "http://127.0.0.1:8000",
        )
