"""
Terminal client for the trial matching API.

Collects a transcript (typed, read from a file, or taken from the rotating
set of sample consultations), posts it to ``/trials`` and renders the
extracted profile and matching trials.

Run via: trialscribe client [--base-url URL] [--transcript-file PATH | --sample]
"""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any

import requests
from rich.console import Console

from . import state as view
from .render import render_view
from .state import ViewState

DEFAULT_ERROR_MESSAGE = "Failed to fetch trials"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"

SAMPLE_TRANSCRIPTS: tuple[str, ...] = (
    """Dr. Smith: Good morning, Sarah. How have you been feeling since we last adjusted your asthma medication?
Sarah: Hi Dr. Smith. Honestly, it's been a bit of a struggle. I'm still using my rescue inhaler almost every day, especially after I exercise.
Dr. Smith: I see. That means your asthma isn't as controlled as we'd like. Remind me, you're 32 now, correct?
Sarah: Yes, that's right.
Dr. Smith: Okay. Given that the current inhaler isn't fully managing your symptoms, I think we should look into some alternative therapies. There are some promising new treatments, including some clinical trials for severe or uncontrolled asthma that might be a good fit for you. Let's explore those options.""",
    """Dr. Patel: Mr. Alvarez, your latest A1C came back at 8.9 percent, which is higher than last time.
Mr. Alvarez: I've been taking the metformin every morning like you said, but my sugars are still all over the place.
Dr. Patel: You're 58, and you've had type 2 diabetes for about six years now. I think it's time we talk about adding something new.
Mr. Alvarez: I'm open to it, as long as it's not more injections than I can handle.
Dr. Patel: There are a few studies enrolling patients like you who aren't controlled on metformin alone. Let's see what's recruiting.""",
    """Dr. Nguyen: Thanks for coming in, Linda. I've reviewed the pathology report from your biopsy.
Linda: Is it what we were afraid of?
Dr. Nguyen: It is an early-stage HER2-positive breast cancer. The good news is that it was caught early.
Linda: I'm only 47. What are my options?
Dr. Nguyen: Surgery and targeted therapy are standard, but there are also trials looking at newer HER2 treatments that could be worth considering.""",
    """Dr. Okafor: How has the breathing been since the winter?
James: Worse, doc. I get winded walking to the mailbox now. The coughing in the morning is the worst part.
Dr. Okafor: Your spirometry confirms moderate COPD. At 67, with your smoking history, that isn't surprising.
James: I quit three years ago, for what it's worth.
Dr. Okafor: That helps a lot. I'd also like to check whether any COPD trials near us are recruiting.""",
)


class ClientRequestError(Exception):
    """The API answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SampleTranscripts:
    """Endless rotation over the canned demo transcripts."""

    def __init__(self, samples: tuple[str, ...] = SAMPLE_TRANSCRIPTS) -> None:
        if not samples:
            raise ValueError("At least one sample transcript is required.")
        self._cycle = itertools.cycle(samples)

    def next(self) -> str:
        return next(self._cycle)


class TrialMatchClient:
    def __init__(self, base_url: str, *, timeout: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def find_matches(self, transcript: str) -> dict[str, Any]:
        try:
            resp = requests.post(
                f"{self.base_url}/trials",
                json={"transcript": transcript},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ClientRequestError(f"Could not reach {self.base_url}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.ok:
            message = data.get("error") if isinstance(data, dict) else None
            raise ClientRequestError(message or DEFAULT_ERROR_MESSAGE, status_code=resp.status_code)
        if not isinstance(data, dict):
            raise ClientRequestError(UNEXPECTED_ERROR_MESSAGE, status_code=resp.status_code)
        return data


class TrialMatchSession:
    """Holds the current view; ``search`` is the only way it changes."""

    def __init__(self, client: TrialMatchClient, console: Console | None = None) -> None:
        self.client = client
        self.console = console or Console()
        self.state: ViewState = view.idle()

    def search(self, transcript: str) -> ViewState:
        if not transcript.strip():
            return self.state

        self.state = view.start_loading()
        with self.console.status("Analyzing transcript..."):
            try:
                payload = self.client.find_matches(transcript)
            except ClientRequestError as exc:
                self.state = view.fail(exc.message)
            else:
                self.state = view.succeed(payload)
        return self.state

    def show(self) -> None:
        render_view(self.state, self.console)


def run_once(session: TrialMatchSession, transcript: str) -> int:
    session.search(transcript)
    session.show()
    return 1 if session.state.phase is view.ViewPhase.ERROR else 0


def run_repl(session: TrialMatchSession, samples: SampleTranscripts | None = None) -> None:
    samples = samples or SampleTranscripts()
    console = session.console

    console.print("[bold blue]Clinical Trials Matcher[/bold blue]")
    console.print("Paste a transcript line, or use: /sample, /file <path>, /quit")
    session.show()

    while True:
        try:
            user_input = console.input("[bold]Transcript> [/bold]").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\nBye.")
            break
        if not user_input:
            continue

        if user_input.startswith("/"):
            parts = user_input.split(maxsplit=1)
            cmd = parts[0].lower()
            arg = parts[1].strip() if len(parts) > 1 else ""

            if cmd in ("/quit", "/exit"):
                console.print("Bye.")
                break
            if cmd == "/sample":
                transcript = samples.next()
                console.print(f"[dim]{transcript}[/dim]")
                session.search(transcript)
                session.show()
                continue
            if cmd == "/file":
                if not arg:
                    console.print("Usage: /file <path>")
                    continue
                try:
                    transcript = Path(arg).expanduser().read_text(encoding="utf-8")
                except OSError as e:
                    console.print(f"[red]Could not read {arg}: {e}[/red]")
                    continue
                session.search(transcript)
                session.show()
                continue
            console.print(f"Unknown command: {cmd}. Use /sample, /file, /quit")
            continue

        session.search(user_input)
        session.show()
