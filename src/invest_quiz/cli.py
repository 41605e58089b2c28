"""Command-line entry point for invest-quiz."""

from __future__ import annotations

import argparse
import random
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .bank import QuestionBank
from .core.config import (
    CONFIG_FILENAME,
    ConfigError,
    QuizConfig,
    load_config,
    write_config_template,
)
from .core.logging import configure_logger
from .core.workspace import WorkspaceError, WorkspaceLayout, ensure_workspace
from .credentials import (
    clear_api_key,
    load_api_key,
    mask_api_key,
    resolve_api_key,
    save_api_key,
)
from .engine import generate_quiz, generate_review_quiz, shuffle_choices
from .errors import MissingApiKeyError, QuizError
from .gemini import GeminiGateway
from .models import DIFFICULTIES, AppSettings, Question
from .session import InputProvider, run_quiz_session
from .storage import JsonFileStorage, clear_storage, load_settings, save_settings
from .store import QuizStore

_SETTING_FLAGS = {
    "show-explanation": "show_explanation_immediately",
    "shuffle-choices": "shuffle_choices",
}


@dataclass
class AppContext:
    layout: WorkspaceLayout
    config: QuizConfig
    storage: JsonFileStorage
    console: Console
    input_provider: InputProvider
    gateway_factory: Callable[["AppContext"], GeminiGateway]

    def store(self) -> QuizStore:
        store = QuizStore(self.storage)
        store.load_questions()
        return store

    def settings(self) -> AppSettings:
        return load_settings(self.storage) or AppSettings()

    def gateway(self) -> GeminiGateway:
        return self.gateway_factory(self)


def _default_gateway(ctx: AppContext) -> GeminiGateway:
    return GeminiGateway(
        lambda: resolve_api_key(ctx.storage), ctx.config.gemini
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invest-quiz",
        description="Investment education quizzes with AI-generated content.",
    )
    parser.add_argument(
        "--data-home",
        type=Path,
        help="Override the data directory (default: $INVEST_QUIZ_DATA_HOME "
        "or ~/.invest-quiz-data).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to an invest-quiz TOML config file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Echo log records to stderr.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Write a config template to the data home.")
    sub.add_parser("categories", help="List question categories.")

    sp_start = sub.add_parser("start", help="Start a quiz session.")
    sp_start.add_argument("--category", help="Only ask this category.")
    sp_start.add_argument(
        "--difficulty", choices=DIFFICULTIES, help="Only ask this level."
    )
    sp_start.add_argument(
        "--num", type=int, help="Number of questions (default from config)."
    )
    sp_start.add_argument(
        "--shuffle-choices",
        action="store_true",
        help="Shuffle the order of answer choices.",
    )

    sp_review = sub.add_parser(
        "review", help="Re-quiz questions you answered wrongly."
    )
    sp_review.add_argument("--num", type=int)

    sub.add_parser("stats", help="Show cumulative progress.")

    sp_gen = sub.add_parser(
        "generate", help="Generate new questions with Gemini."
    )
    sp_gen.add_argument("--category", required=True)
    sp_gen.add_argument("--difficulty", choices=DIFFICULTIES, required=True)
    sp_gen.add_argument("--count", type=int, default=5)
    sp_gen.add_argument(
        "--start",
        action="store_true",
        help="Start a quiz with the generated questions.",
    )

    sp_explain = sub.add_parser(
        "explain", help="Ask Gemini for a detailed explanation."
    )
    sp_explain.add_argument("question_id")

    sub.add_parser("analyze", help="Ask Gemini to analyse your weak spots.")

    sp_settings = sub.add_parser("settings", help="Manage settings.")
    settings_sub = sp_settings.add_subparsers(dest="action", required=True)
    settings_sub.add_parser("show", help="Show current settings.")
    sp_set_key = settings_sub.add_parser("set-key", help="Store an API key.")
    sp_set_key.add_argument("key")
    settings_sub.add_parser("clear-key", help="Remove the stored API key.")
    sp_set = settings_sub.add_parser("set", help="Toggle a setting.")
    sp_set.add_argument("flag", choices=sorted(_SETTING_FLAGS))
    sp_set.add_argument("value", choices=["on", "off"])
    sp_reset = settings_sub.add_parser(
        "reset", help="Delete saved progress and settings."
    )
    sp_reset.add_argument(
        "--yes", action="store_true", help="Confirm the reset."
    )
    return parser


def _cmd_init(ctx: AppContext, args: argparse.Namespace) -> int:
    target = ctx.layout.config_dir / CONFIG_FILENAME
    if target.exists():
        ctx.console.print(f"Config already exists at {target}")
        return 0
    write_config_template(target)
    ctx.console.print(f"Created config template {target}")
    return 0


def _cmd_categories(ctx: AppContext, args: argparse.Namespace) -> int:
    store = ctx.store()
    pool = QuestionBank(store.questions)
    table = Table(title="Categories", box=box.SIMPLE)
    table.add_column("Category")
    table.add_column("Questions", justify="right")
    table.add_column("Your accuracy", justify="right")
    for name in pool.get_available_categories():
        table.add_row(
            name,
            str(len(pool.get_questions_by_category(name))),
            f"{store.category_accuracy(name)}%",
        )
    ctx.console.print(table)
    return 0


def _run_session(
    ctx: AppContext,
    store: QuizStore,
    *,
    category: str,
    difficulty: str,
    questions: List[Question],
    review: bool = False,
) -> int:
    settings = ctx.settings()
    store.start_quiz(category, difficulty, questions)
    outcome = run_quiz_session(
        store,
        ctx.console,
        ctx.input_provider,
        show_explanation_immediately=settings.show_explanation_immediately,
        review=review,
    )
    return 1 if outcome.exit_action == "empty" else 0


def _cmd_start(ctx: AppContext, args: argparse.Namespace) -> int:
    store = ctx.store()
    count = args.num or ctx.config.quiz.question_count
    rng = random.Random()
    questions = generate_quiz(
        QuestionBank(store.questions),
        category=args.category,
        difficulty=args.difficulty,
        count=count,
        rng=rng,
    )
    if args.shuffle_choices or ctx.settings().shuffle_choices:
        questions = [shuffle_choices(q, rng=rng) for q in questions]
    return _run_session(
        ctx,
        store,
        category=args.category or "Random",
        difficulty=args.difficulty or "mixed",
        questions=questions,
    )


def _cmd_review(ctx: AppContext, args: argparse.Namespace) -> int:
    store = ctx.store()
    wrong = store.get_wrong_questions()
    if not wrong:
        ctx.console.print("[green]No questions to review. Nice work![/]")
        return 0
    count = args.num or ctx.config.quiz.review_count
    questions = generate_review_quiz(wrong, count)
    return _run_session(
        ctx,
        store,
        category="Review",
        difficulty="mixed",
        questions=questions,
        review=True,
    )


def _cmd_stats(ctx: AppContext, args: argparse.Namespace) -> int:
    store = ctx.store()
    progress = store.progress
    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Quizzes taken", str(progress.total_quizzes))
    overview.add_row(
        "Correct answers",
        f"{progress.total_correct}/{progress.total_questions}",
    )
    overview.add_row("Accuracy", f"{round(progress.accuracy)}%")
    overview.add_row("Study days", str(progress.study_days))
    overview.add_row("Last studied", progress.last_study_date or "-")
    overview.add_row("Questions to review", str(len(progress.wrong_questions)))
    ctx.console.print(overview)

    if progress.category_stats:
        table = Table(title="By category", box=box.SIMPLE)
        table.add_column("Category")
        table.add_column("Correct", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Accuracy", justify="right")
        for name, stat in sorted(progress.category_stats.items()):
            table.add_row(
                name,
                str(stat.correct),
                str(stat.total),
                f"{store.category_accuracy(name)}%",
            )
        ctx.console.print(table)
    return 0


def _cmd_generate(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.count <= 0:
        ctx.console.print("[red]--count must be a positive integer.[/]")
        return 2
    store = ctx.store()
    with ctx.console.status("Generating questions with Gemini..."):
        questions = ctx.gateway().generate_questions(
            args.category, args.difficulty, args.count
        )
    store.add_ai_generated_questions(questions)
    ctx.console.print(
        f"[green]Generated {len(questions)} question(s) for "
        f"{args.category} ({args.difficulty}).[/]"
    )
    for question in questions:
        ctx.console.print(f"  [cyan]{question.id}[/] {question.question}")
    if not args.start:
        return 0
    return _run_session(
        ctx,
        store,
        category=f"AI: {args.category}",
        difficulty=args.difficulty,
        questions=questions,
    )


def _cmd_explain(ctx: AppContext, args: argparse.Namespace) -> int:
    store = ctx.store()
    question = next(
        (q for q in store.questions if q.id == args.question_id), None
    )
    if question is None:
        ctx.console.print(f"[red]Unknown question id: {args.question_id}[/]")
        return 1
    with ctx.console.status("Asking Gemini for a detailed explanation..."):
        text = ctx.gateway().enhance_explanation(question)
    ctx.console.print(Panel(question.question, title=question.id))
    ctx.console.print(Markdown(text))
    return 0


def _cmd_analyze(ctx: AppContext, args: argparse.Namespace) -> int:
    progress = ctx.store().progress
    if progress.total_questions == 0:
        ctx.console.print(
            "[yellow]Take at least one quiz before asking for an analysis.[/]"
        )
        return 1
    with ctx.console.status("Analysing your results..."):
        analysis = ctx.gateway().analyze_weakness(progress)
    ctx.console.print(
        Panel(
            f"{analysis.analysis}\n\n[bold]Advice[/]\n{analysis.advice}",
            title=f"Weakest category: {analysis.weakest_category}",
            border_style="magenta",
        )
    )
    if analysis.recommended_topics:
        ctx.console.print("[bold]Recommended topics[/]")
        for topic in analysis.recommended_topics:
            ctx.console.print(f"  • {topic}")
    return 0


def _cmd_settings(ctx: AppContext, args: argparse.Namespace) -> int:
    storage = ctx.storage
    if args.action == "set-key":
        save_api_key(storage, args.key)
        ctx.console.print(
            f"Saved API key {mask_api_key(args.key.strip())}"
        )
        return 0
    if args.action == "clear-key":
        clear_api_key(storage)
        ctx.console.print("Removed stored API key.")
        return 0
    if args.action == "set":
        settings = ctx.settings()
        field_name = _SETTING_FLAGS[args.flag]
        updated = replace(settings, **{field_name: args.value == "on"})
        save_settings(storage, updated)
        ctx.console.print(f"{args.flag} = {args.value}")
        return 0
    if args.action == "reset":
        if not args.yes:
            ctx.console.print(
                "[yellow]Pass --yes to delete saved progress and settings.[/]"
            )
            return 1
        clear_storage(storage)
        ctx.console.print("Progress and settings cleared.")
        return 0

    settings = ctx.settings()
    try:
        key = resolve_api_key(storage)
    except MissingApiKeyError:
        key = ""
    table = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Gemini API key", mask_api_key(key) or "(not set)")
    table.add_row(
        "Key stored locally", "yes" if load_api_key(storage) else "no"
    )
    table.add_row(
        "show-explanation",
        "on" if settings.show_explanation_immediately else "off",
    )
    table.add_row(
        "shuffle-choices", "on" if settings.shuffle_choices else "off"
    )
    table.add_row("Data home", str(ctx.layout.home))
    table.add_row(
        "Config", str(ctx.config.source) if ctx.config.source else "(defaults)"
    )
    ctx.console.print(table)
    return 0


_HANDLERS = {
    "init": _cmd_init,
    "categories": _cmd_categories,
    "start": _cmd_start,
    "review": _cmd_review,
    "stats": _cmd_stats,
    "generate": _cmd_generate,
    "explain": _cmd_explain,
    "analyze": _cmd_analyze,
    "settings": _cmd_settings,
}


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    console: Optional[Console] = None,
    input_provider: Optional[InputProvider] = None,
    gateway_factory: Optional[Callable[[AppContext], GeminiGateway]] = None,
) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:  # pragma: no cover - argparse already handles
        return int(exc.code or 0)

    out = console or Console()
    try:
        layout = ensure_workspace(path=args.data_home)
        config = load_config(args.config, config_dir=layout.config_dir)
    except (ConfigError, WorkspaceError) as exc:
        out.print(f"[red]Error:[/] {exc}")
        return 2

    logger, _ = configure_logger(
        "invest_quiz",
        log_dir=layout.logs_dir,
        level=config.logging.level,
        verbose=args.verbose or config.logging.verbose,
        filename="invest-quiz.log",
    )
    ctx = AppContext(
        layout=layout,
        config=config,
        storage=JsonFileStorage(layout.storage_dir),
        console=out,
        input_provider=input_provider
        or (lambda: out.input("[bold]> [/]")),
        gateway_factory=gateway_factory or _default_gateway,
    )

    handler = _HANDLERS[args.command]
    logger.debug("Running command", extra={"command": args.command})
    try:
        return handler(ctx, args)
    except QuizError as exc:
        logger.error(
            "Command failed",
            extra={"command": args.command, "error": str(exc)},
        )
        out.print(f"[red]Error:[/] {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
