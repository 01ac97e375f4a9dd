"""Concord CLI — Typer + Rich terminal interface.

Commands: create, vote, status, list, cancel, delete, finalize,
reminders, record, export. All output is Rich-powered with color-coded
panels and tables.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from concord import __version__
from concord.config_loader import load_engine_config
from concord.consensus.evaluator import calculate_outcome
from concord.consensus.voting import tally_votes
from concord.output.record import render_record
from concord.output.writer import write_record
from concord.persistence.database import close_db, init_db
from concord.persistence.export import export_json
from concord.persistence.store import DecisionStore
from concord.schemas.config import DecisionQuery, EngineConfig
from concord.schemas.decision import DecisionStatus
from concord.schemas.lifecycle import TransitionKind, TransitionResult
from concord.service import ConsensusService

console = Console()

T = TypeVar("T")

_STATUS_STYLE: dict[DecisionStatus, str] = {
    DecisionStatus.ACTIVE: "cyan",
    DecisionStatus.APPROVED: "green",
    DecisionStatus.REJECTED: "red",
    DecisionStatus.CANCELLED: "yellow",
    DecisionStatus.DELETED: "dim",
}

app = typer.Typer(
    name="concord",
    help="Asynchronous group decisions with a consensus engine.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"concord {__version__}")
        raise typer.Exit()


# ── App Callback ────────────────────────────────────────────────


@app.callback()
def main(
    ctx: typer.Context,
    db: str = typer.Option(
        None, "--db",
        help="Decision database path (overrides config and CONCORD_DB_PATH)",
    ),
    config_path: Path = typer.Option(
        None, "--config",
        help="Path to an engine config TOML file",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Log engine activity to the terminal",
    ),
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Concord — propose, vote, and record group decisions."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    try:
        config = load_engine_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None

    if db:
        config.db_path = db
    ctx.obj = config


# ── Helpers ──────────────────────────────────────────────────────


def _run(
    ctx: typer.Context,
    handler: Callable[[ConsensusService, DecisionStore], Awaitable[T]],
) -> T:
    """Open the database, run ``handler`` against it, and close it."""
    config: EngineConfig = ctx.obj

    async def _go() -> T:
        db = await init_db(config.db_path)
        try:
            store = DecisionStore(db)
            return await handler(ConsensusService(store, config), store)
        finally:
            await close_db(db)

    return asyncio.run(_go())


def _print_transition(result: TransitionResult) -> None:
    if result.kind is TransitionKind.TRANSITIONED:
        console.print(f"[green]{result.message}[/green]")
    elif result.kind in (TransitionKind.NOT_FOUND, TransitionKind.UNAUTHORIZED):
        console.print(f"[red]{result.message}[/red]")
        raise typer.Exit(1)
    else:
        console.print(f"[yellow]{result.message}[/yellow]")


def _print_finalization(result: TransitionResult) -> None:
    if result.kind is not TransitionKind.TRANSITIONED or result.result is None:
        _print_transition(result)
        return

    passed = result.result.passed
    style = "green" if passed else "red"
    title = "✅ APPROVED" if passed else "❌ REJECTED"
    counts = result.result.vote_counts
    console.print(Panel(
        f"{result.result.reason}\n\n"
        f"Yes: {counts.yes}  No: {counts.no}  "
        f"Abstain: {counts.abstain}  Total: {counts.total}\n"
        f"[dim]Finalized because {result.finalization_reason}[/dim]",
        title=f"[bold {style}]{title}[/bold {style}] {result.decision_id}",
        border_style=style,
    ))
    if result.record_path:
        console.print(f"[dim]Decision record written to {result.record_path}[/dim]")
    if result.record_error:
        console.print(
            f"[yellow]Decision record could not be generated:[/yellow] "
            f"{result.record_error}"
        )


# ── Commands ────────────────────────────────────────────────────


@app.command()
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Decision title"),
    proposal: str = typer.Option(..., "--proposal", "-p", help="Proposal text"),
    creator: str = typer.Option(..., "--creator", "-c", help="Creator user ID"),
    voters: list[str] = typer.Option(
        ..., "--voter", "-v", help="Required voter user ID (repeatable)",
    ),
    criteria: str = typer.Option(
        None, "--criteria",
        help="simple_majority, super_majority, or unanimous",
    ),
    deadline: str = typer.Option(
        None, "--deadline", "-d",
        help="Deadline as YYYY-MM-DD (default: N business days from today)",
    ),
    decision_id: str = typer.Option(None, "--id", help="Explicit decision ID"),
    channel: str = typer.Option("", "--channel", help="Channel the decision belongs to"),
) -> None:
    """Create a decision and its voter roster."""

    async def _create(service: ConsensusService, store: DecisionStore):
        return await service.create_decision(
            name,
            proposal,
            creator,
            voters,
            success_criteria=criteria,
            deadline=deadline,
            decision_id=decision_id,
            channel_id=channel,
        )

    try:
        decision = _run(ctx, _create)
    except ValueError as e:
        console.print(f"[red]Could not create decision:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(Panel(
        f"[bold]{decision.name}[/bold]\n\n{decision.proposal}\n\n"
        f"Success criteria: {decision.success_criteria.value}\n"
        f"Deadline: {decision.deadline}\n"
        f"Voters: {len(set(voters))}",
        title=f"Decision {decision.id}",
        border_style="cyan",
    ))


@app.command()
def vote(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision ID"),
    user: str = typer.Argument(..., help="Voter user ID"),
    choice: str = typer.Argument(..., help="yes, no, or abstain"),
) -> None:
    """Cast or change a vote."""

    async def _vote(service: ConsensusService, store: DecisionStore):
        return await service.record_vote(decision_id, user, choice)

    outcome = _run(ctx, _vote)
    if not outcome.accepted:
        console.print(f"[red]{outcome.message}[/red]")
        raise typer.Exit(1)

    console.print(outcome.message)
    if outcome.deadlock and outcome.deadlock.is_deadlocked:
        console.print(f"[yellow]⚠ {outcome.deadlock.reason}[/yellow]")
    if outcome.finalization:
        _print_finalization(outcome.finalization)


@app.command()
def status(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision ID"),
) -> None:
    """Show a decision's tally, missing voters, and deadlock advice."""

    async def _snapshot(service: ConsensusService, store: DecisionStore):
        return await service.snapshot(decision_id)

    snap = _run(ctx, _snapshot)
    if snap is None:
        console.print(f"[red]Decision not found:[/red] {decision_id}")
        raise typer.Exit(1)

    decision = snap.decision
    style = _STATUS_STYLE[decision.status]
    meta = Table(title=f"Decision: {decision.id}", show_header=False, show_lines=True)
    meta.add_column("Field", style="bold")
    meta.add_column("Value")
    meta.add_row("Name", decision.name)
    meta.add_row("Status", f"[{style}]{decision.status.value}[/{style}]")
    meta.add_row("Success Criteria", decision.success_criteria.value)
    deadline_note = " [red](passed)[/red]" if snap.deadline_passed else ""
    meta.add_row("Deadline", f"{decision.deadline}{deadline_note}")
    meta.add_row("Creator", decision.creator_id)
    counts = snap.vote_counts
    meta.add_row(
        "Votes",
        f"{counts.total}/{snap.required_voters_count} "
        f"(yes {counts.yes}, no {counts.no}, abstain {counts.abstain})",
    )
    if snap.missing_user_ids:
        meta.add_row("Waiting On", ", ".join(snap.missing_user_ids))
    console.print(meta)

    if decision.status is DecisionStatus.ACTIVE and snap.deadlock.is_deadlocked:
        console.print(f"[yellow]⚠ Deadlocked:[/yellow] {snap.deadlock.reason}")


@app.command("list")
def list_decisions(
    ctx: typer.Context,
    status_filter: str = typer.Option(None, "--status", "-s", help="Filter by status"),
    creator: str = typer.Option(None, "--creator", help="Filter by creator"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max decisions to show"),
) -> None:
    """Show recent decisions."""
    try:
        query = DecisionQuery(status=status_filter, creator_id=creator, limit=limit)
    except ValueError:
        console.print(f"[red]Invalid status:[/red] '{status_filter}'")
        raise typer.Exit(1) from None

    async def _list(service: ConsensusService, store: DecisionStore):
        return await store.list_decisions(query)

    decisions = _run(ctx, _list)
    if not decisions:
        console.print("[dim]No decisions found.[/dim]")
        return

    table = Table(title=f"Decisions ({len(decisions)} shown)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", max_width=40)
    table.add_column("Criteria", style="dim")
    table.add_column("Deadline")
    table.add_column("Status")
    for d in decisions:
        style = _STATUS_STYLE[d.status]
        table.add_row(
            d.id, d.name, d.success_criteria.value, d.deadline,
            f"[{style}]{d.status.value}[/{style}]",
        )
    console.print(table)


@app.command()
def cancel(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision ID"),
    user: str = typer.Option(..., "--user", "-u", help="User ID cancelling"),
) -> None:
    """Cancel an active decision."""

    async def _cancel(service: ConsensusService, store: DecisionStore):
        return await service.cancel_decision(decision_id, user)

    _print_transition(_run(ctx, _cancel))


@app.command()
def delete(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision ID"),
    user: str = typer.Option(..., "--user", "-u", help="User ID deleting (must be creator)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Delete an active decision. Only its creator may do this."""
    if not yes:
        confirm = typer.confirm(f"Delete decision {decision_id}? This cannot be undone.")
        if not confirm:
            console.print("[dim]Cancelled.[/dim]")
            return

    async def _delete(service: ConsensusService, store: DecisionStore):
        return await service.delete_decision(decision_id, user)

    _print_transition(_run(ctx, _delete))


@app.command()
def finalize(
    ctx: typer.Context,
    decision_id: str = typer.Argument(
        None, help="Decision ID (omit to sweep all active decisions)",
    ),
) -> None:
    """Finalize decisions that are complete or past their deadline."""
    if decision_id:
        async def _one(service: ConsensusService, store: DecisionStore):
            return await service.finalize_decision(decision_id)

        _print_finalization(_run(ctx, _one))
        return

    async def _sweep(service: ConsensusService, store: DecisionStore):
        return await service.finalize_ready()

    summary = _run(ctx, _sweep)
    for result in summary.results:
        if result.kind is TransitionKind.TRANSITIONED:
            _print_finalization(result)
    console.print(
        f"[bold]{summary.finalized}[/bold] finalized, "
        f"{summary.skipped} skipped of {summary.total} active."
    )


@app.command()
def reminders(ctx: typer.Context) -> None:
    """List voters who still owe a vote on open decisions."""

    async def _pending(service: ConsensusService, store: DecisionStore):
        return await service.pending_voters()

    pending = _run(ctx, _pending)
    if not pending:
        console.print("[dim]Nobody is waiting on a vote.[/dim]")
        return

    table = Table(title="Pending Votes")
    table.add_column("Decision", style="cyan")
    table.add_column("Name", max_width=40)
    table.add_column("Deadline")
    table.add_column("Votes", justify="right")
    table.add_column("Waiting On")
    reminders_due = 0
    for p in pending:
        reminders_due += len(p.missing_user_ids)
        table.add_row(
            p.decision_id, p.name, p.deadline,
            f"{p.votes_cast}/{p.required_voters_count}",
            ", ".join(p.missing_user_ids),
        )
    console.print(table)
    console.print(f"{reminders_due} reminder(s) due.")


@app.command()
def record(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision ID"),
    output: str = typer.Option(
        None, "--output", "-o", help="Write the record into this directory",
    ),
) -> None:
    """Render the decision record (ADR) of a finalized decision."""

    async def _load(service: ConsensusService, store: DecisionStore):
        decision = await store.get_decision(decision_id)
        if decision is None:
            return None, [], []
        return decision, await store.list_voters(decision_id), await store.query_votes(decision_id)

    decision, voters, votes = _run(ctx, _load)
    if decision is None:
        console.print(f"[red]Decision not found:[/red] {decision_id}")
        raise typer.Exit(1)
    if decision.status not in (DecisionStatus.APPROVED, DecisionStatus.REJECTED):
        console.print(
            f"[yellow]Decision {decision_id} is {decision.status.value}; "
            "records exist only for approved or rejected decisions.[/yellow]"
        )
        raise typer.Exit(1)

    result = calculate_outcome(votes, decision.success_criteria, len(voters))
    markdown = render_record(
        decision, tally_votes(votes), result,
        votes=votes, required_voters=len(voters),
    )
    if output:
        path = write_record(decision, markdown, output)
        console.print(f"[green]Wrote[/green] {path}")
    else:
        console.print(Markdown(markdown))


@app.command()
def export(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision ID"),
) -> None:
    """Export a decision with its roster and votes as JSON."""

    async def _load(service: ConsensusService, store: DecisionStore):
        decision = await store.get_decision(decision_id)
        if decision is None:
            return None
        return export_json(
            decision,
            await store.list_voters(decision_id),
            await store.query_votes(decision_id),
        )

    payload = _run(ctx, _load)
    if payload is None:
        console.print(f"[red]Decision not found:[/red] {decision_id}")
        raise typer.Exit(1)
    # Plain print keeps the JSON free of Rich markup
    print(payload)
