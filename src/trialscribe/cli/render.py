"""Rich rendering for the terminal client. Display formatting only."""

from __future__ import annotations

from typing import Any

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from trialscribe.search.clinical_trial_search import study_url

from .state import ViewPhase, ViewState

NOT_SPECIFIED = "Not specified"
NO_TRIALS_MESSAGE = "No actively recruiting trials found for this profile."
IDLE_MESSAGE = "Enter a transcript and find matches to see extracted patient profiles and clinical trials."
MAX_CONDITION_TAGS = 3


def format_age(age: Any) -> str:
    if age is None or age == "":
        return NOT_SPECIFIED
    return f"{age} years"


def format_gender(gender: Any) -> str:
    if not gender:
        return NOT_SPECIFIED
    return str(gender).lower()


def condition_tags(conditions: list[str] | None, limit: int = MAX_CONDITION_TAGS) -> list[str]:
    """First ``limit`` condition labels, plus a "+N more" tag for the rest."""
    conditions = list(conditions or [])
    tags = conditions[:limit]
    if len(conditions) > limit:
        tags.append(f"+{len(conditions) - limit} more")
    return tags


def trial_link(trial: dict[str, Any]) -> str:
    return trial.get("url") or study_url(str(trial.get("nctId", "")))


def render_profile(patient_data: dict[str, Any]) -> Panel:
    grid = Table(box=box.SIMPLE, show_edge=False, expand=True)
    grid.add_column("Condition", style="bold")
    grid.add_column("Age")
    grid.add_column("Gender")
    grid.add_row(
        str(patient_data.get("condition") or NOT_SPECIFIED),
        format_age(patient_data.get("age")),
        format_gender(patient_data.get("gender")),
    )
    return Panel(grid, title="[bold green]Extracted Patient Profile[/bold green]", border_style="green")


def render_trial_card(trial: dict[str, Any]) -> Panel:
    nct_id = str(trial.get("nctId", ""))
    header = Text()
    header.append(nct_id, style=f"bold blue link {trial_link(trial)}")
    header.append("  ")
    header.append(str(trial.get("overallStatus") or "RECRUITING"), style="bold green")

    body: list[Any] = [header, Text(str(trial.get("briefTitle", "")), style="bold")]
    tags = condition_tags(trial.get("conditions"))
    if tags:
        tag_line = Text()
        for i, tag in enumerate(tags):
            if i:
                tag_line.append("  ")
            style = "dim" if tag.startswith("+") and tag.endswith(" more") else "on grey23"
            tag_line.append(f" {tag} ", style=style)
        body.append(tag_line)
    body.append(Text(trial_link(trial), style="dim"))
    return Panel(Group(*body), box=box.ROUNDED, border_style="grey50")


def render_trials(trials: list[dict[str, Any]]) -> Panel:
    title = f"[bold magenta]Clinical Trial Matches[/bold magenta] [dim]({len(trials)} found)[/dim]"
    if not trials:
        return Panel(Text(NO_TRIALS_MESSAGE, style="dim", justify="center"), title=title, border_style="magenta")
    return Panel(Group(*(render_trial_card(t) for t in trials)), title=title, border_style="magenta")


def render_view(state: ViewState, console: Console | None = None) -> None:
    console = console or Console()

    if state.phase is ViewPhase.IDLE:
        console.print(Panel(Text(IDLE_MESSAGE, style="dim", justify="center"), border_style="grey50"))
        return

    if state.phase is ViewPhase.LOADING:
        console.print("[cyan]Analyzing transcript...[/cyan]")
        return

    if state.phase is ViewPhase.ERROR:
        console.print(Panel(Text(state.error or "", style="red"), title="Error", border_style="red"))
        return

    if state.patient_data is not None:
        console.print(render_profile(state.patient_data))
        console.print(render_trials(list(state.trials)))
