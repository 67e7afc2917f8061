#!/usr/bin/env python3
"""Simulate an assessment end-to-end with an in-memory remote store.

Loads the shipped catalog, drives the AssessmentEngine through every
question with mock answers, and prints each question, the answer chosen,
the outcome of every background sync, and the final results and report.

Usage::

    # Default run (random answers)
    python scripts/simulate_assessment.py

    # Deterministic run, everything answered with option 2, in Dutch
    python scripts/simulate_assessment.py --no-random --option 2 --language nl

    # Make 30% of answer upserts fail to watch completion reconcile them
    python scripts/simulate_assessment.py --fail-rate 0.3 --seed 7
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path so we can import both the SDK and
# test mock infrastructure.
# ---------------------------------------------------------------------------
_SCRIPT_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _SCRIPT_DIR.parent
sys.path.insert(0, str(_REPO_ROOT / "tests"))
sys.path.insert(0, str(_REPO_ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from test_engine import MockSynchronizer  # noqa: E402

from trias_assessment.auth import AuthStore, User  # noqa: E402
from trias_assessment.cache import MemoryCache  # noqa: E402
from trias_assessment.catalog import Catalog  # noqa: E402
from trias_assessment.engine import AssessmentEngine  # noqa: E402
from trias_assessment.models.session import SyncOutcome  # noqa: E402
from trias_assessment.report import STATUS_COLORS, build_report  # noqa: E402

USER_ID = "sim_user"


class FlakySynchronizer(MockSynchronizer):
    """MockSynchronizer whose answer upserts fail with probability ``fail_rate``."""

    def __init__(self, catalog: Catalog, rng: random.Random, fail_rate: float):
        super().__init__(catalog)
        self._rng = rng
        self._fail_rate = fail_rate
        self.flaky = True

    async def upsert_answer(self, session_id, question_id, selected_option):
        if self.flaky and self._rng.random() < self._fail_rate:
            self.calls.append("upsert_answer")
            raise ConnectionError("simulated network drop")
        await super().upsert_answer(session_id, question_id, selected_option)


async def run_simulation(
    *,
    console: Console,
    rng: random.Random,
    randomize: bool,
    option: int,
    language: str,
    fail_rate: float,
    catalog_dir: str | None,
) -> int:
    catalog = Catalog.from_yaml(catalog_dir)
    sync = FlakySynchronizer(catalog, rng, fail_rate)
    cache = MemoryCache()
    auth = AuthStore(cache)
    auth.sign_in(User(id=USER_ID, name="Simulated Parent"))

    def on_sync(outcome: SyncOutcome) -> None:
        if outcome.ok:
            console.print(f"      [dim]sync {outcome.operation} {outcome.key} ok[/]")
        else:
            console.print(f"      [yellow]sync {outcome.operation} {outcome.key} failed:[/] {outcome.error}")

    engine = AssessmentEngine(sync, cache, auth, on_sync=on_sync)
    await engine.load_catalog()
    engine.set_language(language)
    await engine.start()
    console.print(f"[bold]Session[/] {engine.session_id}")

    current_theme = None
    while not engine.is_completed():
        view = engine.view()
        if view.theme.theme_id != current_theme:
            current_theme = view.theme.theme_id
            console.rule(f"[bold]{view.theme.title}[/] ({view.theme.index + 1}/{view.theme.theme_count})")

        question = view.question
        chosen = rng.randrange(question.option_count) if randomize else min(option, question.option_count - 1)
        console.print(f"\n [Q] {question.text} ({question.question_id})")
        console.print(f"     Options: {', '.join(question.options)}")
        console.print(f" [A] {chosen} — {question.options[chosen]}")
        engine.answer(question.question_id, chosen)
        await engine.wait_for_sync()

        if engine.current_question().id == catalog.questions[-1].id:
            # Completion re-sends failed answers; let those succeed
            sync.flaky = False
        await engine.advance()

    console.print()
    console.rule("[bold]Results")
    report = build_report(catalog, engine.results(), language, user_name="Simulated Parent",
                          session_id=engine.session_id)
    table = Table(title=report.title, show_lines=True)
    table.add_column("Theme")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    for section in report.sections:
        colour = STATUS_COLORS[section.status]
        table.add_row(section.title, str(section.score), f"[{colour}]{section.status_label}[/]")
    console.print(table)
    console.print(f"[dim]{report.disclaimer}[/]")

    failed = engine.failed_syncs()
    console.print(
        f"\nBackground syncs: {len(engine.sync_outcomes)} total, {len(failed)} failed "
        f"(re-sent at completion)"
    )
    remote = sync.sessions[engine.session_id]
    console.print(f"Remote answers stored: {len(remote['answers'])}/{catalog.total_questions}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Simulate an assessment with an in-memory remote store.",
    )
    parser.add_argument(
        "--random",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Pick random answers (default). --no-random uses --option for every question",
    )
    parser.add_argument(
        "--option",
        type=int, default=2,
        help="Answer used with --no-random (default: 2)",
    )
    parser.add_argument(
        "--language",
        choices=["en", "nl"],
        default="en",
        help="Display language (default: en)",
    )
    parser.add_argument(
        "--fail-rate",
        type=float, default=0.0,
        help="Probability that an answer upsert fails (default: 0)",
    )
    parser.add_argument(
        "--seed",
        type=int, default=None,
        help="RNG seed for reproducibility",
    )
    parser.add_argument(
        "--catalog-dir",
        default=None,
        help="Catalog directory (default: $TRIAS_CATALOG_DIR or catalog/v1)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    console = Console()
    rng = random.Random(args.seed)
    code = asyncio.run(
        run_simulation(
            console=console,
            rng=rng,
            randomize=args.random,
            option=args.option,
            language=args.language,
            fail_rate=args.fail_rate,
            catalog_dir=args.catalog_dir,
        )
    )
    sys.exit(code)


if __name__ == "__main__":
    main()
