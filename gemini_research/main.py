"""gemini-research CLI — the user interface.

Commands:
    gemini-research run      — Plan, confirm, run a Deep Research job, save the report
    gemini-research plan     — Only draft the research plan
    gemini-research status   — One-shot status check for a job ID
    gemini-research trace    — View the Synapse event trace for a job
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.status import Status
from rich.table import Table

from gemini_research.errors import ConfigError, GeminiResearchError
from gemini_research.models.synapse import SynapseEvent, SynapseEventBus
from gemini_research.utils import setup_logging

# Initialize logging on import
setup_logging()

app = typer.Typer(
    name="gemini-research",
    help="🔬 gemini-research — Gemini Deep Research from the terminal",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_RESEARCHING = "Researching (this may take 10+ minutes)..."


class _SpinnerSynapse(SynapseEventBus):
    """SynapseEventBus that mirrors notable events into the active spinner."""

    def __init__(self) -> None:
        super().__init__()
        self.status: Status | None = None

    def emit(self, event: SynapseEvent) -> None:  # type: ignore[override]
        super().emit(event)
        if self.status is None:
            return
        if event.event_type == "model_fallback":
            self.status.update(f"Generating research plan with {event.payload.get('to')}...")
        elif event.event_type == "poll_transient_error":
            self.status.update(f"Researching (retrying after error: {escape(event.error[:80])})...")
        elif event.event_type == "poll_pending":
            minutes = int(event.elapsed_seconds // 60)
            self.status.update(f"{_RESEARCHING} [dim]{minutes}m elapsed[/]")


def _require_api_key() -> str:
    """Refuse to start without a credential."""
    from gemini_research.config import require_api_key

    try:
        return require_api_key()
    except ConfigError as e:
        console.print(f"[red]✖ {escape(str(e))}[/]")
        raise typer.Exit(1)


# ── gemini-research run ───────────────────────────────────────


@app.command()
def run(
    topic: str = typer.Argument(None, help="Topic to research (prompted for when omitted)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the plan confirmation prompt"),
    poll_interval: float = typer.Option(None, "--poll-interval", help="Seconds between status polls"),
    timeout: float = typer.Option(None, "--timeout", help="Give up after this many seconds"),
    output_dir: Path = typer.Option(None, "--output-dir", "-o", help="Directory for the saved report"),
):
    """🔬 Plan and run a Deep Research job, then save the report."""
    api_key = _require_api_key()

    if not topic:
        topic = console.input("[blue]Enter research topic: [/]").strip()
    if not topic:
        console.print("[red]No topic provided. Exiting.[/]")
        return

    try:
        code = asyncio.run(_run(
            topic,
            api_key=api_key,
            assume_yes=yes,
            poll_interval=poll_interval,
            timeout=timeout,
            output_dir=output_dir,
        ))
    except (GeminiResearchError, OSError) as e:
        console.print(f"[red]Unexpected error:[/] {escape(str(e))}")
        raise typer.Exit(1)
    if code:
        raise typer.Exit(code)


async def _run(
    topic: str,
    *,
    api_key: str,
    assume_yes: bool,
    poll_interval: float | None,
    timeout: float | None,
    output_dir: Path | None,
) -> int:
    from gemini_research.errors import SubmissionError
    from gemini_research.research import JobController, PlanGenerator, build_job_input
    from gemini_research.tools.gemini_client import GeminiClient

    client = GeminiClient(api_key=api_key)
    synapse = _SpinnerSynapse()

    try:
        # Step 1: plan
        with console.status("Generating research plan...", spinner="dots") as status:
            synapse.status = status
            plan = await PlanGenerator(client, synapse).generate(topic)
        synapse.status = None

        failures = synapse.events_of("plan_failed")
        if failures:
            console.print(f"[red]✖ Failed to generate plan: {escape(failures[-1].error)}[/]")
            console.print("[yellow]Proceeding with raw topic...[/]")
        else:
            console.print("[green]✔ Research plan generated:[/]")

        console.rule(style="dim")
        console.print(plan, markup=False, highlight=False)
        console.rule(style="dim")

        # Step 2: confirm
        if not assume_yes:
            answer = console.input("[yellow]Proceed with this research plan? (Y/n): [/]")
            if answer.strip().lower() == "n":
                console.print("[blue]Aborted.[/]")
                return 0

        # Step 3: submit
        controller = JobController(client, synapse)
        try:
            with console.status("Initializing Deep Research Agent...", spinner="dots"):
                handle = await controller.submit(build_job_input(plan))
        except SubmissionError as e:
            console.print(f"[red]✖ {escape(str(e))}[/]")
            return 1
        console.print("[green]✔ Deep Research Agent started.[/]")
        console.print(f"[dim]ID: {handle.resource_name or handle.id}[/]")

        # Step 4: poll
        with console.status(_RESEARCHING, spinner="dots") as status:
            synapse.status = status
            result = await controller.run(handle, poll_interval=poll_interval, timeout=timeout)
        synapse.status = None

        return _report_outcome(result, topic, output_dir)
    finally:
        await client.close()


def _report_outcome(result, topic: str, output_dir: Path | None) -> int:
    """Print the terminal result, save the report if there is one, return the exit code."""
    from gemini_research.research import save_report

    if result.succeeded:
        console.print("[green]✔ Research Completed![/]")
        if not result.report:
            console.print("[yellow]No report content found.[/]")
            return 0
        path = save_report(result.report, topic, output_dir)
        console.print(f"\n[green]Report saved to: {path}[/]")
        console.rule(style="dim")
        return 0

    if result.timed_out:
        minutes = round(result.elapsed_seconds / 60)
        console.print(f"[red]✖ Research timed out after {minutes} minutes.[/]")
    elif result.status_code is not None:
        message = result.error.get("message", "") if isinstance(result.error, dict) else result.error
        console.print(f"[red]✖ Fatal API Error ({result.status_code}): {escape(str(message))}[/]")
    else:
        console.print(f"[red]✖ Research Failed: {escape(json.dumps(result.error, default=str))}[/]")
    console.print(f"[dim]Trace: gemini-research trace {result.job_id}[/]")
    return 1


# ── gemini-research plan ──────────────────────────────────────


@app.command()
def plan(topic: str = typer.Argument(..., help="Topic to plan research for")):
    """🗂 Draft a research plan without starting a job."""
    api_key = _require_api_key()
    console.print(asyncio.run(_plan(topic, api_key)), markup=False, highlight=False)


async def _plan(topic: str, api_key: str) -> str:
    from gemini_research.research import PlanGenerator
    from gemini_research.tools.gemini_client import GeminiClient

    client = GeminiClient(api_key=api_key)
    try:
        with console.status("Generating research plan...", spinner="dots"):
            return await PlanGenerator(client, SynapseEventBus(persist=False)).generate(topic)
    finally:
        await client.close()


# ── gemini-research status ────────────────────────────────────


@app.command()
def status(job_id: str = typer.Argument(..., help="Job ID or resource name (interactions/...)")):
    """📡 Fetch a job's current status once."""
    api_key = _require_api_key()
    try:
        interaction = asyncio.run(_status(job_id, api_key))
    except GeminiResearchError as e:
        console.print(f"[red]✖ {escape(str(e))}[/]")
        raise typer.Exit(1)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("ID", interaction.identifier or job_id)
    table.add_row("Status", f"{interaction.job_status.value} [dim]({interaction.status or '—'})[/]")
    table.add_row("Outputs", str(len(interaction.outputs)))
    if interaction.error is not None:
        table.add_row("Error", f"[red]{escape(json.dumps(interaction.error, default=str)[:200])}[/]")
    console.print(Panel(table, title="[bold cyan]📡 Research Job[/]", border_style="cyan"))


async def _status(job_id: str, api_key: str):
    from gemini_research.tools.gemini_client import GeminiClient

    client = GeminiClient(api_key=api_key)
    try:
        return await client.get_job(job_id)
    finally:
        await client.close()


# ── gemini-research trace ─────────────────────────────────────


@app.command()
def trace(
    correlation_id: str = typer.Argument(
        None,
        help="Job ID to trace. If omitted, shows recent traces from disk.",
    ),
):
    """🔍 View the Synapse event trace for a job."""
    synapse = SynapseEventBus(persist=False)

    if not correlation_id:
        trace_ids = synapse.list_traces(limit=15)
        if not trace_ids:
            console.print("[yellow]No traces found. Run 'gemini-research run' first.[/]")
            return
        for cid in trace_ids:
            console.print(f"  [cyan]{cid}[/]")
        return

    t = synapse.get_trace(correlation_id)
    if not t.events:
        console.print(f"[yellow]No trace found for: {correlation_id}[/]")
        return

    started = t.started_at.strftime("%H:%M:%S") if t.started_at else "?"
    console.print(Panel(
        f"[bold]Job ID:[/] {t.correlation_id}\n"
        f"[bold]Started:[/] {started}\n"
        f"[bold]Duration:[/] {t.total_duration_ms / 1000:.1f}s\n"
        f"[bold]Success:[/] {'✅' if t.success else '❌'}",
        title="[bold blue]🔍 Synapse Trace[/]",
        border_style="blue",
    ))

    table = Table(title="Events", show_lines=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Elapsed", style="dim", width=9)
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Source", style="green", no_wrap=True)
    table.add_column("Info", style="white")

    for i, event in enumerate(t.events, 1):
        info = ""
        if event.error:
            info = f"[red]ERR: {escape(event.error[:60])}[/]"
        elif event.payload:
            info = escape(", ".join(f"{k}={v}" for k, v in event.payload.items())[:80])
        table.add_row(str(i), f"{event.elapsed_seconds:.0f}s", event.event_type, event.source, info)

    console.print(table)


if __name__ == "__main__":
    app()
