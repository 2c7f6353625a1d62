"""Breath trainer developer CLI.

Runs the same gate and state machine as the API:
- programs: list the catalog
- check: eligibility for a profile described by flags
- simulate: run a whole session instantly on a simulated clock
- run: run a session in real time (Ctrl+C triggers an emergency stop)
- server: serve the FastAPI app
"""

import threading
from dataclasses import dataclass
from datetime import timedelta

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from breath.config.settings import settings
from breath.core.logger import setup_logger
from breath.programs.catalog import get_program, list_programs
from breath.programs.types import HoldPolicy, SessionConfig
from breath.safety.errors import SessionDeniedError
from breath.safety.gate import validate_eligibility
from breath.safety.types import SafetyProfile
from breath.session.clock import ManualClock, SessionClock, SystemClock
from breath.session.events import OutcomeReason, PhaseEvent, SessionOutcome
from breath.session.machine import SessionStateMachine

console = Console()

app = typer.Typer(
    name="breath",
    help="Breath trainer CLI - safety-gated breath-hold sessions",
    add_completion=False,
)

PHASE_STYLES = {
    "preparation": "cyan",
    "breath_hold": "bold magenta",
    "recovery": "green",
    "completed": "bold green",
    "aborted": "bold red",
}


@dataclass
class ProfileOptions:
    """Profile facts collected from command-line flags."""

    age: int | None
    disclaimer: bool
    education_days_ago: int | None
    education_score: float
    emergency_contact: bool


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    """Configure logging for every command."""
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=settings.log_file)


def _build_profile(options: ProfileOptions, clock: SessionClock) -> SafetyProfile:
    completed_at = None
    if options.education_days_ago is not None:
        completed_at = clock.now() - timedelta(days=options.education_days_ago)
    return SafetyProfile(
        age_years=options.age,
        education_completed_at=completed_at,
        education_score=options.education_score,
        medical_disclaimer_accepted=options.disclaimer,
        emergency_contact_on_file=options.emergency_contact,
    )


def _profile_options(
    age: int | None,
    disclaimer: bool,
    education_days_ago: int | None,
    education_score: float,
    emergency_contact: bool,
) -> ProfileOptions:
    return ProfileOptions(
        age=age,
        disclaimer=disclaimer,
        education_days_ago=education_days_ago,
        education_score=education_score,
        emergency_contact=emergency_contact,
    )


def _load_config(program_name: str, clamp: bool) -> SessionConfig:
    try:
        program = get_program(program_name)
    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        raise typer.Exit(2) from e
    return SessionConfig(program=program, hold_policy=HoldPolicy.CLAMP if clamp else HoldPolicy.REJECT)


def _print_event(event: PhaseEvent, offset_seconds: float | None = None) -> None:
    style = PHASE_STYLES.get(event.phase.value, "white")
    prefix = f"[dim]{offset_seconds:7.1f}s[/dim] " if offset_seconds is not None else ""
    label = event.phase.value.replace("_", " ").upper()
    line = f"{prefix}[{style}]{label:<12}[/{style}] round {event.round_index + 1:>2}  {event.message}"
    if event.is_advisory:
        line += f" [yellow](requested {event.clamped_from_original:g}s)[/yellow]"
    console.print(line)


def _print_outcome(outcome: SessionOutcome) -> None:
    style = "green" if outcome.reason is OutcomeReason.COMPLETED else "red"
    holds = ", ".join(f"{hold:g}s" for hold in outcome.hold_durations_by_round) or "none"
    body = (
        f"Reason: {outcome.reason.value}\n"
        f"Rounds completed: {outcome.rounds_completed}\n"
        f"Total duration: {outcome.total_duration:.1f}s\n"
        f"Holds: {holds}\n"
        f"Level: {outcome.experience_level.display_name}"
    )
    console.print(Panel(Text(body), title=outcome.program_name, border_style=style))


def _start_or_exit(machine: SessionStateMachine, config: SessionConfig, profile: SafetyProfile) -> None:
    try:
        machine.start_session(config, profile)
    except SessionDeniedError as e:
        console.print(
            Panel(
                Text(e.message, style="bold red"),
                subtitle=e.code,
                border_style="red",
            )
        )
        raise typer.Exit(1) from e


@app.command()
def programs() -> None:
    """List the built-in training programs."""
    table = Table(title="Training programs")
    table.add_column("Name", style="bold")
    table.add_column("Level")
    table.add_column("Rounds", justify="right")
    table.add_column("Holds (s)")
    table.add_column("Est. minutes", justify="right")

    for program in list_programs():
        first = program.hold_time_for_round(0)
        last = program.hold_time_for_round(program.target_round_count - 1)
        holds = f"{first:g}" if first == last else f"{first:g}-{last:g}"
        table.add_row(
            program.name,
            program.required_level.display_name,
            str(program.target_round_count),
            holds,
            f"{program.estimated_duration_seconds / 60:.1f}",
        )

    console.print(table)


@app.command()
def check(
    age: int | None = typer.Option(None, "--age", help="Verified age in years"),
    disclaimer: bool = typer.Option(False, "--disclaimer/--no-disclaimer", help="Medical disclaimer accepted"),
    education_days_ago: int | None = typer.Option(None, "--education-days-ago", help="Days since safety education was passed"),
    education_score: float = typer.Option(1.0, "--education-score", help="Safety education score (0-1)"),
    emergency_contact: bool = typer.Option(False, "--emergency-contact/--no-emergency-contact", help="Emergency contact on file"),
) -> None:
    """Check training eligibility for a profile."""
    clock = SystemClock()
    options = _profile_options(age, disclaimer, education_days_ago, education_score, emergency_contact)
    decision = validate_eligibility(_build_profile(options, clock), clock.now())

    if decision.approved:
        console.print(Panel(Text(decision.message, style="bold green"), border_style="green"))
        return

    console.print(
        Panel(
            Text(decision.message, style="bold red"),
            subtitle=decision.reason.value,
            border_style="red",
        )
    )
    raise typer.Exit(1)


@app.command()
def simulate(
    program: str = typer.Option("Beginner Foundation", "--program", "-p", help="Catalog program name"),
    clamp: bool = typer.Option(False, "--clamp", help="Clamp over-ceiling holds instead of refusing"),
    emergency_at: float | None = typer.Option(None, "--emergency-at", help="Trigger an emergency stop after N seconds"),
    age: int | None = typer.Option(30, "--age", help="Verified age in years"),
    disclaimer: bool = typer.Option(True, "--disclaimer/--no-disclaimer", help="Medical disclaimer accepted"),
    education_days_ago: int | None = typer.Option(1, "--education-days-ago", help="Days since safety education was passed"),
    education_score: float = typer.Option(1.0, "--education-score", help="Safety education score (0-1)"),
    emergency_contact: bool = typer.Option(True, "--emergency-contact/--no-emergency-contact", help="Emergency contact on file"),
) -> None:
    """Run a whole session instantly on a simulated clock."""
    clock = ManualClock()
    started_at = clock.now()
    outcomes: list[SessionOutcome] = []

    def _guidance(event: PhaseEvent) -> None:
        _print_event(event, (clock.now() - started_at).total_seconds())

    machine = SessionStateMachine(clock, guidance_sink=_guidance, result_sink=outcomes.append)
    options = _profile_options(age, disclaimer, education_days_ago, education_score, emergency_contact)
    profile = _build_profile(options, clock)
    config = _load_config(program, clamp)

    _start_or_exit(machine, config, profile)

    if emergency_at is not None:
        clock.advance(emergency_at)
        machine.emergency_stop()
    clock.run_until_idle()

    if outcomes:
        _print_outcome(outcomes[-1])


@app.command()
def run(
    program: str = typer.Option("Beginner Foundation", "--program", "-p", help="Catalog program name"),
    clamp: bool = typer.Option(False, "--clamp", help="Clamp over-ceiling holds instead of refusing"),
    age: int | None = typer.Option(None, "--age", help="Verified age in years"),
    disclaimer: bool = typer.Option(False, "--disclaimer/--no-disclaimer", help="Medical disclaimer accepted"),
    education_days_ago: int | None = typer.Option(None, "--education-days-ago", help="Days since safety education was passed"),
    education_score: float = typer.Option(1.0, "--education-score", help="Safety education score (0-1)"),
    emergency_contact: bool = typer.Option(False, "--emergency-contact/--no-emergency-contact", help="Emergency contact on file"),
) -> None:
    """Run a session in real time. Press Ctrl+C for an emergency stop."""
    clock = SystemClock()
    finished = threading.Event()
    outcomes: list[SessionOutcome] = []

    def _record(outcome: SessionOutcome) -> None:
        outcomes.append(outcome)
        finished.set()

    machine = SessionStateMachine(clock, guidance_sink=_print_event, result_sink=_record)
    options = _profile_options(age, disclaimer, education_days_ago, education_score, emergency_contact)
    _start_or_exit(machine, _load_config(program, clamp), _build_profile(options, clock))

    try:
        while not finished.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        logger.warning("Keyboard interrupt, triggering emergency stop")
        machine.emergency_stop()

    if outcomes:
        _print_outcome(outcomes[-1])


@app.command()
def server(
    host: str = typer.Option(settings.api_host, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.api_port, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("breath.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
