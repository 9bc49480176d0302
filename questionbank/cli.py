"""
Typer CLI for the question bank aggregate service.

Commands:
    qbank db init                 - Create database tables
    qbank aggregates repair       - Rebuild aggregates from the question table
    qbank aggregates check        - Compare count aggregates with the question table
    qbank counts                  - Question counts (total, per mode, per scope)
    qbank quiz sample             - Collect question ids for a custom quiz

Usage:
    qbank --help
    qbank aggregates repair --index question_count_by_theme
    qbank counts --user u123 --scope theme
    qbank quiz sample --user u123 --mode incorrect --theme t1 --max 30
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from questionbank.aggregates.base import ScopeKind
from questionbank.aggregates.queries import AggregateQueries
from questionbank.aggregates.registry import AggregateName, build_registry
from questionbank.aggregates.repair import AggregateRepairService
from questionbank.db.database import get_session_factory, init_db
from questionbank.errors import InvalidModeError
from questionbank.quiz.collector import QuestionCollector
from questionbank.quiz.modes import QuestionMode
from questionbank.stats.counters import UserStatsCounter
from questionbank.stores.question_store import QuestionStore
from questionbank.stores.taxonomy_store import TaxonomyStore
from questionbank.stores.user_store import UserActivityStore

app = typer.Typer(help="qbank: question bank aggregates, counts and quiz sampling")
console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """Lazily wires the stores and services the commands need."""

    def __init__(self):
        self.settings = get_settings()
        self._session_factory = None
        self._registry = None

    @property
    def session_factory(self):
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    @property
    def registry(self):
        if self._registry is None:
            self._registry = build_registry(self.settings, self.session_factory)
        return self._registry

    def question_store(self) -> QuestionStore:
        return QuestionStore(self.session_factory)

    def taxonomy_store(self) -> TaxonomyStore:
        return TaxonomyStore(self.session_factory)

    def queries(self) -> AggregateQueries:
        return AggregateQueries(
            self.registry,
            self.question_store(),
            UserStatsCounter(self.session_factory),
            taxonomy_store=self.taxonomy_store(),
            activity_store=UserActivityStore(self.session_factory),
        )

    def repair_service(self) -> AggregateRepairService:
        return AggregateRepairService(self.registry, self.question_store(), settings=self.settings)

    def collector(self) -> QuestionCollector:
        return QuestionCollector.from_session_factory(self.session_factory, self.registry, settings=self.settings)


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create all tables from the SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Aggregates
# ========================================

aggregates_app = typer.Typer(help="Aggregate maintenance (repair, check)")
app.add_typer(aggregates_app, name="aggregates")


@aggregates_app.command("repair")
def aggregates_repair(
    index: str | None = typer.Option(None, "--index", "-i", help="Aggregate name (default: all eight)"),
) -> None:
    """Rebuild aggregate entries from the question table."""
    ctx = CLIContext()
    service = ctx.repair_service()

    if index is None:
        results = service.repair_all()
    else:
        try:
            name = AggregateName(index)
        except ValueError:
            valid = ", ".join(n.value for n in AggregateName)
            rprint(f"[red]Unknown aggregate:[/red] {index}. Valid names: {valid}")
            raise typer.Exit(code=1)
        result = service.repair_index(name)
        while not result.is_complete:
            result = service.repair_index(name, start_cursor=result.next_cursor)
        results = [result]

    table = Table(title="Aggregate Repair")
    table.add_column("Aggregate", style="cyan")
    table.add_column("Processed", justify="right")
    table.add_column("Batches", justify="right")
    for result in results:
        table.add_row(result.index, str(result.total_processed), str(result.batch_count))
    console.print(table)


@aggregates_app.command("check")
def aggregates_check() -> None:
    """Compare every count aggregate with the question table."""
    ctx = CLIContext()
    report = ctx.repair_service().check_consistency()

    if report["valid"]:
        rprint("[green]✓[/green] All count aggregates match the question table")
        return

    table = Table(title="Aggregate Mismatches")
    table.add_column("Aggregate", style="cyan")
    table.add_column("Namespace")
    table.add_column("Claimed", justify="right")
    table.add_column("Actual", justify="right")
    for mismatch in report["mismatches"]:
        table.add_row(
            mismatch["index"],
            mismatch["namespace"],
            str(mismatch["claimed"]),
            str(mismatch["actual"]),
        )
    console.print(table)
    rprint("[yellow]Run 'qbank aggregates repair' to rebuild.[/yellow]")
    raise typer.Exit(code=1)


# ========================================
# Counts
# ========================================


@app.command("counts")
def counts(
    user: str | None = typer.Option(None, "--user", "-u", help="User id for per-mode counts"),
    scope: str | None = typer.Option(None, "--scope", "-s", help="Break down by theme, subtheme or group"),
    theme: list[str] = typer.Option([], "--theme", "-t", help="Count within a theme (repeatable)"),
    subtheme: list[str] = typer.Option([], "--subtheme", help="Count within a subtheme (repeatable)"),
    group: list[str] = typer.Option([], "--group", "-g", help="Count within a group (repeatable)"),
) -> None:
    """Show question counts, optionally within a theme/subtheme/group selection."""
    ctx = CLIContext()
    queries = ctx.queries()

    selected = theme or subtheme or group
    table = Table(title="Question Counts (selection)" if selected else "Question Counts")
    table.add_column("Mode", style="cyan")
    table.add_column("Questions", justify="right")
    for mode in QuestionMode:
        value = queries.count_for_selection(mode, user, theme, subtheme, group)
        table.add_row(mode.value, str(value))
    console.print(table)

    if scope is None:
        return

    try:
        kind = ScopeKind(scope)
    except ValueError:
        rprint(f"[red]Unknown scope:[/red] {scope}")
        raise typer.Exit(code=1)

    taxonomy = ctx.taxonomy_store()
    listers = {
        ScopeKind.THEME: (taxonomy.list_theme_ids, queries.theme_question_count),
        ScopeKind.SUBTHEME: (taxonomy.list_subtheme_ids, queries.subtheme_question_count),
        ScopeKind.GROUP: (taxonomy.list_group_ids, queries.group_question_count),
    }
    if kind not in listers:
        rprint("[red]Scope breakdown needs theme, subtheme or group[/red]")
        raise typer.Exit(code=1)

    list_ids, count = listers[kind]
    breakdown = Table(title=f"Questions by {kind.value}")
    breakdown.add_column(kind.value.title(), style="cyan")
    breakdown.add_column("Questions", justify="right")
    for scope_id in list_ids():
        breakdown.add_row(scope_id, str(count(scope_id)))
    console.print(breakdown)


# ========================================
# Quiz
# ========================================

quiz_app = typer.Typer(help="Custom quiz sampling")
app.add_typer(quiz_app, name="quiz")


@quiz_app.command("sample")
def quiz_sample(
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    mode: str = typer.Option("all", "--mode", "-m", help="all, unanswered, incorrect or bookmarked"),
    theme: list[str] = typer.Option([], "--theme", "-t", help="Selected theme id (repeatable)"),
    subtheme: list[str] = typer.Option([], "--subtheme", help="Selected subtheme id (repeatable)"),
    group: list[str] = typer.Option([], "--group", "-g", help="Selected group id (repeatable)"),
    max_count: int | None = typer.Option(None, "--max", "-n", help="Maximum questions"),
) -> None:
    """Collect question ids the way custom quiz creation does."""
    ctx = CLIContext()
    try:
        question_mode = QuestionMode.parse(mode)
    except InvalidModeError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    limit = min(max_count or ctx.settings.max_quiz_questions, ctx.settings.max_quiz_questions)
    questions = ctx.collector().collect_questions(user, question_mode, theme, subtheme, group, limit)

    if not questions:
        rprint("[yellow]No questions found for this selection[/yellow]")
        raise typer.Exit(code=1)

    shown = questions[:limit]
    table = Table(title=f"Sampled Questions ({len(shown)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Theme")
    table.add_column("Subtheme")
    table.add_column("Group")
    for question in shown:
        table.add_row(
            question.id,
            question.title,
            question.theme_id,
            question.subtheme_id or "-",
            question.group_id or "-",
        )
    console.print(table)


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)

    app()


if __name__ == "__main__":
    main()
