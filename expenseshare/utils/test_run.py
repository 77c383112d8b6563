#!/usr/bin/env python3
"""
utils/test_run.py — ExpenseShare test runner with a rich summary.

Usage (run from project root):
  python expenseshare/utils/test_run.py                 # full suite
  python expenseshare/utils/test_run.py --unit          # unit tests only
  python expenseshare/utils/test_run.py --integration   # integration tests only
  python expenseshare/utils/test_run.py --coverage      # with coverage report
  python expenseshare/utils/test_run.py -x              # stop on first failure
  python expenseshare/utils/test_run.py -k "settle"     # filter by keyword

Requires:  pip install -e ".[test]"
"""

from __future__ import annotations

import argparse
import sys
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.padding import Padding
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

TESTS_DIR = Path(__file__).resolve().parent.parent / "tests"

THEME = Theme({
    "good":   "bright_green",
    "warn":   "bright_yellow",
    "bad":    "bright_red",
    "muted":  "bright_black",
    "accent": "bright_cyan",
    "unit":   "cyan",
    "intg":   "magenta",
})

con = Console(theme=THEME, highlight=False)


@dataclass
class TResult:
    nodeid:   str
    outcome:  str      # passed | failed | error | skipped
    duration: float
    longrepr: str = ""

    @property
    def tier(self) -> str:
        if "unit" in self.nodeid:
            return "unit"
        if "integration" in self.nodeid:
            return "integration"
        return "other"

    @property
    def module_stem(self) -> str:
        return Path(self.nodeid.split("::")[0]).stem

    @property
    def failed(self) -> bool:
        return self.outcome in ("failed", "error")


@dataclass
class Stats:
    results: list[TResult] = field(default_factory=list)
    elapsed: float = 0.0

    def count(self, outcome: str) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def rate(self) -> float:
        total = len(self.results)
        return self.count("passed") / total * 100 if total else 0.0


class Collector:
    """pytest plugin: records each test outcome and advances the live display."""

    _DOTS = {
        "passed":  (".", "good"),
        "failed":  ("x", "bad"),
        "skipped": ("o", "warn"),
        "error":   ("!", "bad"),
    }

    def __init__(self, stream: Text, progress: Progress, task_id):
        self.results: list[TResult] = []
        self._t0: dict[str, float] = {}
        self._stream = stream
        self._progress = progress
        self._task = task_id

    def pytest_collection_finish(self, session):
        self._progress.update(self._task, total=len(session.items))

    def pytest_runtest_logstart(self, nodeid, location):
        self._t0[nodeid] = time.perf_counter()

    def pytest_runtest_logreport(self, report):
        setup_failed = report.when == "setup" and report.outcome != "passed"
        if report.when != "call" and not setup_failed:
            return

        outcome = report.outcome
        if setup_failed and outcome == "failed":
            outcome = "error"

        longrepr = ""
        if outcome in ("failed", "error") and report.longrepr:
            lines = [ln.strip() for ln in str(report.longrepr).splitlines() if ln.strip()]
            longrepr = next(
                (ln for ln in reversed(lines) if "Error" in ln or "assert " in ln),
                lines[-1] if lines else "",
            )[:160]

        started = self._t0.get(report.nodeid, time.perf_counter())
        self.results.append(TResult(
            nodeid=report.nodeid,
            outcome=outcome,
            duration=time.perf_counter() - started,
            longrepr=longrepr,
        ))

        dot, style = self._DOTS.get(outcome, ("?", "muted"))
        self._stream.append(dot, style=style)
        if len(self.results) % 60 == 0:
            self._stream.append("\n")
        self._progress.advance(self._task)


def _fmt_time(s: float) -> str:
    if s < 60:
        return f"{s:.2f}s"
    m, sec = divmod(s, 60)
    return f"{int(m)}m {sec:.1f}s"


def render_module_table(st: Stats) -> Table:
    tbl = Table(
        title="[muted]Modules[/]", title_justify="left",
        box=box.ROUNDED, border_style="muted", header_style="bold dim",
    )
    tbl.add_column("Tier")
    tbl.add_column("Module")
    tbl.add_column("Pass", justify="right", style="good")
    tbl.add_column("Fail", justify="right")
    tbl.add_column("Time", justify="right", style="muted")

    by_module: dict[tuple[str, str], list[TResult]] = defaultdict(list)
    for r in st.results:
        by_module[(r.tier, r.module_stem)].append(r)

    for (tier, module), rows in sorted(by_module.items()):
        failed = sum(1 for r in rows if r.failed)
        tbl.add_row(
            f"[{'unit' if tier == 'unit' else 'intg'}]{tier}[/]",
            module,
            str(sum(1 for r in rows if r.outcome == "passed")),
            f"[bad]{failed}[/]" if failed else "0",
            _fmt_time(sum(r.duration for r in rows)),
        )
    return tbl


def render_failures(results: list[TResult]) -> None:
    failures = [r for r in results if r.failed]
    if not failures:
        return
    con.print()
    con.rule("[bad]Failures[/]", style="muted")
    for r in failures:
        con.print(f"  [bad]✘[/] {escape(r.nodeid)}")
        if r.longrepr:
            con.print(f"      [muted]{escape(r.longrepr)}[/]")


def render_verdict(st: Stats, ok: bool) -> None:
    summary = (
        f"{len(st.results)} tests  ·  {st.count('passed')} passed  ·  "
        f"{st.failed} failed  ·  {st.count('skipped')} skipped  ·  "
        f"{st.rate:.1f}%  ·  {_fmt_time(st.elapsed)}"
    )
    title, style = ("ALL TESTS PASSED", "bright_green") if ok else ("BUILD FAILED", "bright_red")
    con.print()
    con.print(Panel(
        Text.assemble((f"{title}\n", f"bold {style}"), (summary, "dim")),
        border_style=style, padding=(0, 2),
    ))


def run(
        unit_only: bool = False,
        integration_only: bool = False,
        fail_fast: bool = False,
        with_coverage: bool = False,
        keyword: str = "",
        extra: list[str] | None = None,
) -> int:
    if unit_only:
        paths = [str(TESTS_DIR / "unit")]
    elif integration_only:
        paths = [str(TESTS_DIR / "integration")]
    else:
        paths = [str(TESTS_DIR)]

    pytest_args = [*paths, "--tb=short", "-q"]
    if fail_fast:
        pytest_args.append("-x")
    if keyword:
        pytest_args += ["-k", keyword]
    if with_coverage:
        pytest_args += [
            "--cov=expenseshare.app.services",
            "--cov=expenseshare.app.schemas",
            "--cov-report=term-missing",
        ]
    if extra:
        pytest_args += extra

    stream = Text("", overflow="fold")
    progress = Progress(
        SpinnerColumn("line", style="accent"),
        TextColumn(" [dim]{task.description}[/]"),
        BarColumn(bar_width=32, style="muted", complete_style="accent"),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=con,
    )
    task_id = progress.add_task("running tests", total=None)
    collector = Collector(stream, progress, task_id)

    con.print(Rule("[accent]ExpenseShare[/] [muted]test suite[/]", style="muted"))
    t0 = time.perf_counter()
    layout = Group(Padding(stream, (1, 2)), progress)
    with Live(layout, console=con, refresh_per_second=20, transient=True):
        exit_code = pytest.main(pytest_args, plugins=[collector])

    st = Stats(results=collector.results, elapsed=time.perf_counter() - t0)

    con.print(Padding(stream, (1, 2)))
    con.print(render_module_table(st))
    render_failures(st.results)

    ok = exit_code == 0 and st.failed == 0
    render_verdict(st, ok)
    return 0 if ok else 1


def _cli() -> None:
    ap = argparse.ArgumentParser(
        prog="python expenseshare/utils/test_run.py",
        description="ExpenseShare test runner",
    )
    ap.add_argument("--unit", action="store_true",
                    help="Unit tests only  (tests/unit/)")
    ap.add_argument("--integration", action="store_true",
                    help="Integration tests only  (tests/integration/)")
    ap.add_argument("--coverage", action="store_true",
                    help="Show coverage report  (needs pytest-cov)")
    ap.add_argument("-x", "--fail-fast", action="store_true",
                    help="Stop after first failure")
    ap.add_argument("-k", metavar="EXPR", default="",
                    help="Filter tests by expression  (passed to pytest -k)")
    args, remainder = ap.parse_known_args()

    if args.unit and args.integration:
        con.print("[warn]--unit and --integration are mutually exclusive; running full suite.[/]\n")
        args.unit = args.integration = False

    sys.exit(run(
        unit_only=args.unit,
        integration_only=args.integration,
        fail_fast=args.fail_fast,
        with_coverage=args.coverage,
        keyword=args.k,
        extra=remainder,
    ))


if __name__ == "__main__":
    _cli()
