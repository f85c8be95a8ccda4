"""
View state for the terminal client.

    IDLE → LOADING → SUCCESS | ERROR

A new search always starts from a cleared LOADING state; results and errors
from the previous search are never carried over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ViewPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ViewState:
    phase: ViewPhase = ViewPhase.IDLE
    patient_data: dict[str, Any] | None = None
    trials: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    error: str | None = None


def idle() -> ViewState:
    return ViewState()


def start_loading() -> ViewState:
    return ViewState(phase=ViewPhase.LOADING)


def succeed(payload: dict[str, Any]) -> ViewState:
    return ViewState(
        phase=ViewPhase.SUCCESS,
        patient_data=dict(payload.get("patientData") or {}),
        trials=tuple(payload.get("trials") or ()),
    )


def fail(message: str) -> ViewState:
    return ViewState(phase=ViewPhase.ERROR, error=message)
