"""
Course Engine CLI.

Commands:
- course-engine validate GRAPH DECK    - Dry-run validation of a course
- course-engine propose GRAPH DECK     - Activate a new course version
- course-engine status                 - Show the active version
- course-engine learner-add NAME       - Register a learner
- course-engine learner-forget NAME    - Delete a learner and their history
- course-engine next NAME              - Show the next card for a learner
- course-engine due NAME               - List every eligible card
- course-engine review NAME CARD R     - Submit a rating (again/hard/good/easy)
- course-engine progress NAME          - Node categories for a learner
- course-engine dot NAME               - Graphviz source of the learner's graph
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pydantic
import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from course_engine.content.records import read_deck_file, read_graph_file
from course_engine.errors import CourseEngineError, CourseValidationError, ValidationError
from course_engine.graph.visualization import NodeCategory
from course_engine.logging import configure_logging
from course_engine.service import CourseEngine

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="course-engine",
    help="Prerequisite-gated spaced repetition over a course graph",
    no_args_is_help=True,
)
console = Console()

CATEGORY_STYLES = {
    NodeCategory.LOCKED: "dim",
    NodeCategory.UNLOCKED_UNSTARTED: "bold",
    NodeCategory.LEARNING: "yellow",
    NodeCategory.MASTERED: "green",
}


def _engine() -> CourseEngine:
    return CourseEngine.from_settings(get_settings())


def _load_course(graph_file: Path, deck_file: Path):
    try:
        return read_graph_file(graph_file), read_deck_file(deck_file)
    except pydantic.ValidationError as exc:
        console.print(f"[bold red]Malformed records:[/bold red]\n{exc}")
        raise typer.Exit(2) from None


def _print_errors(errors: list[ValidationError]) -> None:
    table = Table(title=f"{len(errors)} validation error(s)")
    table.add_column("Kind", style="bold red")
    table.add_column("Subject")
    table.add_column("Problem")
    for error in errors:
        subject = getattr(error, "card_id", None) or error.node_id or "-"
        table.add_row(error.kind.value, subject, error.describe())
    console.print(table)


def _run(action):
    """Run an engine call, turning engine errors into a red message and exit code 1."""
    try:
        return action()
    except CourseEngineError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(1) from None


# =============================================================================
# Course commands
# =============================================================================


@app.command()
def validate(
    graph_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the node records"),
    deck_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the card records"),
) -> None:
    """Check a graph and deck without activating them."""
    nodes, cards = _load_course(graph_file, deck_file)
    errors = CourseEngine.in_memory(get_settings()).check_update(nodes, cards)
    if errors:
        _print_errors(errors)
        raise typer.Exit(1)
    console.print(f"[green]Course is valid[/green] ({len(nodes)} nodes, {len(cards)} cards)")


@app.command()
def propose(
    graph_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the node records"),
    deck_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the card records"),
) -> None:
    """Validate a graph and deck and make them the active course."""
    nodes, cards = _load_course(graph_file, deck_file)
    engine = _engine()
    try:
        version = engine.propose_update(nodes, cards)
    except CourseValidationError:
        console.print("[bold red]Course update rejected; the active course is unchanged.[/bold red]")
        _print_errors(engine.active_errors())
        raise typer.Exit(1) from None

    console.print(
        Panel(
            f"graph  {version.graph_fingerprint}\ndeck   {version.deck_fingerprint}",
            title="[green]Active course version[/green]",
        )
    )


@app.command()
def status() -> None:
    """Show the active course version and registered learners."""
    engine = _engine()
    version = engine.coordinator.active_version()
    if version is None:
        console.print("[yellow]No course has been activated yet.[/yellow]")
    else:
        snapshot = engine.coordinator.snapshot()
        console.print(f"Active version [bold]{version.short}[/bold]: {len(snapshot.graph)} nodes, {len(snapshot.cards)} cards")
    learners = engine.tracker.list_learners()
    console.print(f"Learners: {', '.join(learners) if learners else '-'}")


# =============================================================================
# Learner commands
# =============================================================================


@app.command("learner-add")
def learner_add(name: str = typer.Argument(..., help="Learner id")) -> None:
    """Register a learner."""
    if _engine().register_learner(name):
        console.print(f"[green]Registered {name}[/green]")
    else:
        console.print(f"[yellow]{name} is already registered[/yellow]")


@app.command("learner-forget")
def learner_forget(
    name: str = typer.Argument(..., help="Learner id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a learner and all of their review history."""
    if not yes and not typer.confirm(f"Delete {name} and all their reviews?", default=False):
        raise typer.Exit(0)
    engine = _engine()
    _run(lambda: engine.forget_learner(name))
    console.print(f"[green]Forgot {name}[/green]")


@app.command("next")
def next_card(name: str = typer.Argument(..., help="Learner id")) -> None:
    """Show the card the learner should study next."""
    engine = _engine()
    card = _run(lambda: engine.next_card(name))
    if card is None:
        console.print("[green]Nothing is due right now.[/green]")
        return
    console.print(Panel(card.question, title=f"[cyan]{card.id}[/cyan] ({card.node_id})"))
    console.print(f"[dim]Answer:[/dim] {card.answer}")


@app.command()
def due(
    name: str = typer.Argument(..., help="Learner id"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Show at most this many cards"),
) -> None:
    """List every eligible card in serving order."""
    engine = _engine()
    cards = _run(lambda: engine.tracker.due_cards(name))
    if limit is not None:
        cards = cards[:limit]
    table = Table(title=f"{len(cards)} eligible card(s)")
    table.add_column("Card", style="cyan")
    table.add_column("Node")
    table.add_column("Question")
    for card in cards:
        table.add_row(card.id, card.node_id, card.question)
    console.print(table)


@app.command()
def review(
    name: str = typer.Argument(..., help="Learner id"),
    card_id: str = typer.Argument(..., help="Card id"),
    rating: str = typer.Argument(..., help="again, hard, good, easy (or 1-4)"),
) -> None:
    """Submit a rating for a card."""
    engine = _engine()
    try:
        state = _run(lambda: engine.submit_review(name, card_id, rating))
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(2) from None
    console.print(
        f"[green]{card_id}[/green] -> {state.phase.value}, "
        f"stability {state.stability:.2f}d, due {state.due:%Y-%m-%d %H:%M} UTC"
    )


@app.command()
def progress(name: str = typer.Argument(..., help="Learner id")) -> None:
    """Show every node with its category for the learner."""
    engine = _engine()
    colors = _run(lambda: engine.node_colors(name))
    table = Table(title=f"Progress of {name}")
    table.add_column("Node")
    table.add_column("State")
    for node_id, category in colors.items():
        table.add_row(node_id, f"[{CATEGORY_STYLES[category]}]{category.value}[/]")
    console.print(table)


@app.command()
def dot(
    name: str = typer.Argument(..., help="Learner id"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write DOT source to this file"),
) -> None:
    """Print (or write) the learner's course graph as Graphviz DOT."""
    engine = _engine()
    source = _run(lambda: engine.graph_dot(name))
    if output is None:
        typer.echo(source, nl=False)
    else:
        output.write_text(source, encoding="utf-8")
        console.print(f"[green]Wrote {output}[/green]")


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def _configure(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")) -> None:
    configure_logging(get_settings(), level="DEBUG" if verbose else "WARNING")


def main() -> None:
    """CLI entry point."""
    logger.remove()
    app()


if __name__ == "__main__":
    main()
