"""Rich-powered interactive quiz loop.

The loop renders the current question of a :class:`~invest_quiz.store.QuizStore`
session, reads one command per prompt and forwards it to the store. All quiz
state lives in the store; this module only handles input and rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import Question, QuizResult
from .store import QuizStatus, QuizStore

InputProvider = Callable[[], str]
ExitAction = Literal["submitted", "quit", "empty"]

CHOICE_KEYS = ("A", "B", "C", "D")


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["next", "prev", "submit", "quit", "select"]
    choice: Optional[int] = None


@dataclass(frozen=True)
class SessionOutcome:
    exit_action: ExitAction
    result: Optional[QuizResult] = None


def parse_session_command(raw: Optional[str]) -> Optional[SessionCommand]:
    """Parse raw user input into a structured command.

    Choices may be given as a letter (``A``-``D``) or a number (``1``-``4``).
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"submit", "s", "finish"}:
        return SessionCommand("submit")
    if lowered in {"quit", "q", "exit"}:
        return SessionCommand("quit")
    if len(text) == 1:
        key = text.upper()
        if key in CHOICE_KEYS:
            return SessionCommand("select", CHOICE_KEYS.index(key))
        if key in {"1", "2", "3", "4"}:
            return SessionCommand("select", int(key) - 1)
    return None


def run_quiz_session(
    store: QuizStore,
    console: Console,
    input_provider: InputProvider,
    *,
    show_explanation_immediately: bool = True,
    review: bool = False,
) -> SessionOutcome:
    """Drive the store's in-progress session until submit or quit.

    In review mode, questions answered correctly are cleared from the wrong
    list once the quiz is submitted.
    """

    session = store.current_session
    if session is None or store.status is not QuizStatus.IN_PROGRESS:
        console.print(
            Panel(
                "No questions available for this quiz.",
                title="Quiz Session",
                border_style="yellow",
            )
        )
        return SessionOutcome("empty")

    while True:
        _render_question(console, store)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            store.reset()
            return SessionOutcome("quit")
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "select" and command.choice is not None:
            store.answer_question(command.choice)
            console.print(f"Selected [bold]{CHOICE_KEYS[command.choice]}[/].")
            if show_explanation_immediately:
                _render_feedback(console, store)
            continue
        if command.type == "next":
            store.next_question()
            continue
        if command.type == "prev":
            store.previous_question()
            continue
        if command.type == "quit":
            console.print("\n[bold yellow]Ending session without submission.[/]")
            store.reset()
            return SessionOutcome("quit")
        if command.type == "submit":
            break

    result = store.finish_quiz()
    if review:
        for answer, question in zip(session.answers, session.questions):
            if answer == question.correct_answer:
                store.remove_wrong_question(question.id)
    if result is not None:
        _render_summary(console, store, result)
    return SessionOutcome("submitted", result)


def _render_question(console: Console, store: QuizStore) -> None:
    session = store.current_session
    question = store.current_question()
    if session is None or question is None:
        return
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {len(session.questions)}", "dim"),
        (f"  {question.category} · {question.difficulty}", "dim"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.question, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Choice")

    selected = session.answers[session.current_index]
    for index, choice in enumerate(question.choices):
        indicator = "•" if index == selected else " "
        choice_text = Text(choice)
        if index == selected:
            choice_text.stylize("bold green")
        row_text = Text(indicator + " ")
        row_text += choice_text
        table.add_row(CHOICE_KEYS[index], row_text)
    console.print(table)

    answered = sum(1 for answer in session.answers if answer is not None)
    console.print(
        Text(
            f"Answered {answered}/{len(session.questions)} | "
            "Commands: choices [A-D], n (next), p (prev), submit, quit",
            style="dim",
        )
    )


def _render_feedback(console: Console, store: QuizStore) -> None:
    session = store.current_session
    question = store.current_question()
    if session is None or question is None:
        return
    correct = session.answers[session.current_index] == question.correct_answer
    title = "Correct" if correct else (
        f"Incorrect: answer is {CHOICE_KEYS[question.correct_answer]}"
    )
    console.print(
        Panel(
            question.explanation,
            title=title,
            border_style="green" if correct else "red",
        )
    )


def _answer_label(question: Question, answer: Optional[int]) -> str:
    if answer is None:
        return "-"
    return f"{CHOICE_KEYS[answer]}. {question.choices[answer]}"


def _render_summary(
    console: Console, store: QuizStore, result: QuizResult
) -> None:
    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))

    overview = Table(
        show_header=False, box=box.MINIMAL_DOUBLE_HEAD, expand=False
    )
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Total questions", str(result.total_questions))
    overview.add_row("Correct", str(result.correct_answers))
    overview.add_row("Accuracy", f"{result.accuracy:.1f}%")
    console.print(overview)

    if result.category_breakdown:
        per_category = Table(title="Per category", box=box.SIMPLE)
        per_category.add_column("Category")
        per_category.add_column("Correct", justify="right")
        per_category.add_column("Total", justify="right")
        per_category.add_column("Accuracy", justify="right")
        for name, score in sorted(result.category_breakdown.items()):
            per_category.add_row(
                name,
                str(score.correct),
                str(score.total),
                f"{score.accuracy:.1f}%",
            )
        console.print(per_category)

    session = store.current_session
    if session is None:
        return
    responses = Table(title="Responses", box=box.SIMPLE, expand=True)
    responses.add_column("#", justify="right")
    responses.add_column("Question", overflow="fold")
    responses.add_column("Your answer", overflow="fold")
    responses.add_column("Correct answer", overflow="fold")
    responses.add_column("Result", justify="center")
    for index, (answer, question) in enumerate(
        zip(session.answers, session.questions), start=1
    ):
        outcome = "✅" if answer == question.correct_answer else "❌"
        responses.add_row(
            str(index),
            question.question,
            _answer_label(question, answer),
            _answer_label(question, question.correct_answer),
            outcome,
        )
    console.print(responses)
