"""Orchestrate a grading run: load cases -> respond -> evaluate -> aggregate -> report."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from jsongrade.checkpoint import Checkpoint
from jsongrade.config import GradingSettings
from jsongrade.datasets.base import CaseParser
from jsongrade.datasets.jsonl import ChatJsonlParser, load_prompt
from jsongrade.exceptions import CaseFormatError, ResponderError
from jsongrade.models import GradingCase, MetricsResult, TestResult
from jsongrade.pipeline.evaluate import evaluate_case
from jsongrade.pipeline.metrics import calculate_metrics
from jsongrade.report import generate_report

logger = logging.getLogger(__name__)

MAX_LOGGED_ERRORS = 10


@dataclass(frozen=True)
class ModelResponse:
    """Output of a responder for one case."""

    data: Any
    time_elapsed: float | None = None  # ms; None = use measured wall time
    cost: float = 0.0  # USD


class Responder(Protocol):
    """Produces the model output for a case."""

    def respond(self, case: GradingCase) -> ModelResponse:
        ...


class RecordedResponder:
    """Replays outputs recorded in the case file."""

    def respond(self, case: GradingCase) -> ModelResponse:
        if case.actual is None:
            raise ResponderError(
                f"Case {case.id} has no recorded output", case_id=case.id
            )
        return ModelResponse(
            data=case.actual,
            time_elapsed=case.time_elapsed,
            cost=case.cost,
        )


@dataclass(frozen=True)
class GradingRun:
    """Everything produced by one grading run."""

    cases: tuple[GradingCase, ...]
    results: tuple[TestResult, ...]
    metrics: MetricsResult
    report_path: Path
    errors: tuple[str, ...] = ()


def run_grading(
    settings: GradingSettings,
    responder: Responder | None = None,
    parser: CaseParser | None = None,
) -> GradingRun:
    """Run the full grading pipeline.

    1. Parse cases (with optional prompt override)
    2. Obtain each case's model output from the responder
    3. Evaluate cases in parallel
    4. Compute batch metrics
    5. Generate report

    Supports resume via checkpoint system.

    Raises:
        CaseFormatError: If the case file is unreadable or yields no valid cases.
    """
    cases, errors = load_cases(settings, parser)
    if errors:
        logger.warning("Found %d errors in %s", len(errors), settings.cases_path)
        for error in errors[:MAX_LOGGED_ERRORS]:
            logger.warning("  %s", error)
        if len(errors) > MAX_LOGGED_ERRORS:
            logger.warning("  ... and %d more errors", len(errors) - MAX_LOGGED_ERRORS)
    if not cases:
        raise CaseFormatError(
            f"No valid test cases found in {settings.cases_path}",
            path=settings.cases_path,
        )

    logger.info("Grading %d cases from %s", len(cases), settings.cases_path)
    results = grade_cases(
        cases,
        responder or RecordedResponder(),
        workers=settings.workers,
        checkpoint=Checkpoint(settings.results_dir, settings.dataset),
    )

    metrics = calculate_metrics(results)
    logger.info(
        "Result: %.1f%% success (%d/%d), %d unfinished",
        metrics.success_rate * 100,
        metrics.successful_tests,
        metrics.total_tests,
        metrics.unfinished_tests,
    )

    report_path = generate_report(
        results,
        metrics,
        settings.results_dir,
        monthly_requests=settings.monthly_requests,
    )
    logger.info("Report written to %s", report_path)

    return GradingRun(
        cases=tuple(cases),
        results=tuple(results),
        metrics=metrics,
        report_path=report_path,
        errors=tuple(errors),
    )


def run_report_only(settings: GradingSettings) -> GradingRun | None:
    """Regenerate the report from checkpointed results.

    Returns None when no checkpoint data exists for the dataset.
    """
    results = Checkpoint(settings.results_dir, settings.dataset).results()
    if not results:
        logger.info("No checkpoint data for %s", settings.dataset)
        return None

    metrics = calculate_metrics(results)
    report_path = generate_report(
        results,
        metrics,
        settings.results_dir,
        monthly_requests=settings.monthly_requests,
    )
    logger.info("Report regenerated at %s", report_path)

    return GradingRun(
        cases=(),
        results=tuple(results),
        metrics=metrics,
        report_path=report_path,
    )


def load_cases(
    settings: GradingSettings,
    parser: CaseParser | None = None,
) -> tuple[list[GradingCase], list[str]]:
    """Parse the configured case file, applying prompt override and row limit.

    Without an explicit parser, cases are read as chat JSONL.
    """
    if parser is None:
        prompt_override = (
            load_prompt(settings.prompt_path) if settings.prompt_path else None
        )
        parser = ChatJsonlParser(
            prompt_override=prompt_override,
            skip_validation=settings.skip_validation,
        )
    logger.debug("Loading cases with %s parser", parser.name)
    cases, errors = parser.parse(Path(settings.cases_path))
    if settings.rows > 0:
        cases = cases[: settings.rows]
    return cases, errors


def grade_cases(
    cases: Sequence[GradingCase],
    responder: Responder,
    *,
    workers: int = 1,
    checkpoint: Checkpoint | None = None,
) -> list[TestResult]:
    """Grade cases on a thread pool. Results come back in input order.

    Cases with an up-to-date checkpointed result are not sent to the responder.
    Unfinished results are not checkpointed, so a resumed run retries them.
    """
    results: list[TestResult | None] = [None] * len(cases)
    pending: list[int] = []

    for index, case in enumerate(cases):
        cached = checkpoint.lookup(case) if checkpoint else None
        if cached is not None:
            results[index] = cached
        else:
            pending.append(index)

    skipped = len(cases) - len(pending)

    if pending:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(grade_case, cases[index], responder): index
                for index in pending
            }
            for future in as_completed(futures):
                index = futures[future]
                result = future.result()
                results[index] = result
                if checkpoint is not None and result.is_finished:
                    checkpoint.record(index, cases[index], result)

    logger.info(
        "Grading complete: %d evaluated, %d from cache",
        len(pending),
        skipped,
    )
    return [r for r in results if r is not None]


def grade_case(case: GradingCase, responder: Responder) -> TestResult:
    """Obtain the model output for one case and evaluate it.

    A responder failure becomes an unfinished result instead of an exception.
    """
    start = time.perf_counter()
    try:
        response = responder.respond(case)
    except Exception as exc:
        logger.error("Error in case %s: %s", case.id, exc)
        return TestResult.unfinished(case.input, case.expected, error=str(exc))
    wall_ms = (time.perf_counter() - start) * 1000

    return evaluate_case(
        case.expected,
        response.data,
        response.time_elapsed if response.time_elapsed is not None else wall_ms,
        response.cost,
        case.input,
    )
