"""Entry-point for the Lecture Quiz client."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Awaitable, List, Optional, TypeVar

import typer
from rich.console import Console

from lecture_quiz.bootstrap import BootstrapError, initialize_app
from lecture_quiz.config import API_URL_ENV_VAR, AppConfig, ConfigError
from lecture_quiz.logging_utils import prepare_logging
from lecture_quiz.services.client import PipelineClient, normalize_job_id
from lecture_quiz.services.errors import JobFailedError, NotFoundError, RequestFailedError
from lecture_quiz.services.export import ExportError
from lecture_quiz.services.records import Snapshot
from lecture_quiz.services.session import JobViewSession
from lecture_quiz.ui.watch import (
    WatchView,
    format_timestamp,
    option_letter,
    render_jobs,
    render_question,
    render_score,
)


LOGGER = logging.getLogger("lecture_quiz.cli")

T = TypeVar("T")


cli = typer.Typer(add_completion=False, help="Follow lecture video processing and take the generated quizzes")


api_url_option = typer.Option(
    None,
    "--api-url",
    envvar=API_URL_ENV_VAR,
    help="Base URL of the processing backend API.",
)
verbose_option = typer.Option(False, "--verbose", "-v", help="Echo debug logs to stderr.")


def _load_config(api_url: Optional[str], verbose: bool) -> AppConfig:
    try:
        config = initialize_app()
    except (BootstrapError, ConfigError) as error:
        typer.echo(f"Configuration error: {error}", err=True)
        raise typer.Exit(code=1) from error
    prepare_logging(config.storage_root, verbose=verbose)
    return config.with_api_url(api_url)


def _build_client(config: AppConfig) -> PipelineClient:
    return PipelineClient.from_config(config)


def _job_id_argument(raw_id: str) -> str:
    try:
        return normalize_job_id(raw_id)
    except ValueError as error:
        raise typer.BadParameter(str(error), param_hint="JOB_ID") from error


def _run(coroutine: Awaitable[T]) -> T:
    """Run *coroutine* and turn backend failures into a non-zero exit."""

    try:
        return asyncio.run(coroutine)
    except JobFailedError as error:
        typer.echo(f"Processing failed: {error.message}", err=True)
        typer.echo(f"Run `retry {error.job_id}` to transcribe the video again.", err=True)
        raise typer.Exit(code=1) from error
    except NotFoundError as error:
        typer.echo(f"Not found: {error.message}", err=True)
        raise typer.Exit(code=1) from error
    except RequestFailedError as error:
        LOGGER.info("Command aborted after backend failure (HTTP %s): %s", error.status_code, error.message)
        typer.echo(f"Request failed: {error.message}", err=True)
        raise typer.Exit(code=1) from error


async def _load_snapshot(session: JobViewSession, job_id: str) -> Snapshot:
    snapshot = await session.open(job_id, follow=False)
    if snapshot is None or snapshot.job is None:
        raise RequestFailedError(snapshot.banner if snapshot and snapshot.banner else f"Job {job_id} is unavailable")
    return snapshot


@cli.command()
def watch(
    job_id: str = typer.Argument(..., help="Identifier of the uploaded video"),
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.1,
        help="Seconds between status polls (defaults to the configured interval).",
    ),
    expand: Optional[List[int]] = typer.Option(
        None,
        "--expand",
        "-e",
        min=1,
        help="Show the full text of this segment number (repeatable).",
    ),
    api_url: Optional[str] = api_url_option,
    verbose: bool = verbose_option,
) -> None:
    """Poll a job until processing completes or fails, rendering every update."""

    job_id = _job_id_argument(job_id)
    config = _load_config(api_url, verbose)
    if interval is not None:
        config = replace(config, poll_interval_seconds=interval)
    console = Console()

    async def _watch() -> JobViewSession:
        async with _build_client(config) as client:
            session = JobViewSession.from_config(config, client=client)
            view = WatchView(session, console=console)
            session.subscribe(lambda _snapshot: view.show())
            try:
                await session.open(job_id)
                for number in expand or []:
                    if not session.answers.is_expanded(number - 1):
                        session.answers.toggle_expanded(number - 1)
                await session.wait()
            finally:
                await session.close()
            session.require_healthy()
            return session

    session = _run(_watch())
    snapshot = session.snapshot
    if snapshot is None or snapshot.job is None:
        typer.echo(snapshot.banner if snapshot and snapshot.banner else f"Job {job_id} is unavailable", err=True)
        raise typer.Exit(code=1)


@cli.command()
def jobs(
    api_url: Optional[str] = api_url_option,
    verbose: bool = verbose_option,
) -> None:
    """List uploaded videos with their processing status."""

    config = _load_config(api_url, verbose)

    async def _list():
        async with _build_client(config) as client:
            return await client.list_jobs()

    Console().print(render_jobs(_run(_list())))


@cli.command()
def quiz(
    job_id: str = typer.Argument(..., help="Identifier of the processed video"),
    segment: Optional[int] = typer.Option(None, "--segment", "-n", min=1, help="Segment number to quiz on."),
    at: Optional[float] = typer.Option(None, "--at", min=0.0, help="Playback position in seconds."),
    api_url: Optional[str] = api_url_option,
    verbose: bool = verbose_option,
) -> None:
    """Answer the questions attached to one transcript segment."""

    if segment is not None and at is not None:
        raise typer.BadParameter("Use either --segment or --at, not both.", param_hint="--segment")
    job_id = _job_id_argument(job_id)
    config = _load_config(api_url, verbose)
    console = Console()

    async def _load() -> JobViewSession:
        async with _build_client(config) as client:
            session = JobViewSession.from_config(config, client=client)
            await _load_snapshot(session, job_id)
            return session

    session = _run(_load())
    segments = session.tracker.segments
    if not segments:
        typer.echo(f"No transcript is available yet ({session.status_text}).")
        raise typer.Exit(code=1)

    if segment is not None:
        if segment > len(segments):
            raise typer.BadParameter(
                f"Segment {segment} does not exist; the transcript has {len(segments)} segments.",
                param_hint="--segment",
            )
        session.tracker.select(segment - 1)
    elif at is not None:
        session.tracker.on_time_update(at)

    active = session.active_segment
    assert active is not None
    console.rule(
        f"Segment {active.index + 1} of {len(segments)} "
        f"({format_timestamp(active.start_time)} - {format_timestamp(active.end_time)})"
    )
    console.print(active.text)

    questions = session.questions_for_active_segment()
    if not questions:
        typer.echo("No questions for this segment.")
        return

    answers = session.answers
    for number, question in enumerate(questions, start=1):
        console.print(render_question(question, answers, number=number))
        letters = [option_letter(index) for index in range(len(question.options))]
        if not letters:
            continue
        while True:
            choice = typer.prompt(f"Your answer ({'/'.join(letters)})").strip().upper()
            if choice in letters:
                break
            typer.echo(f"Please choose one of {', '.join(letters)}.")
        answers.answer_question(question, letters.index(choice))
        console.print(render_question(question, answers, number=number))

    console.print(render_score(answers.score(questions)))


@cli.command()
def export(
    job_id: str = typer.Argument(..., help="Identifier of the processed video"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        dir_okay=False,
        help="Destination CSV file (defaults to the exports directory).",
    ),
    api_url: Optional[str] = api_url_option,
    verbose: bool = verbose_option,
) -> None:
    """Export every question of a job to CSV."""

    job_id = _job_id_argument(job_id)
    config = _load_config(api_url, verbose)

    async def _load() -> JobViewSession:
        async with _build_client(config) as client:
            session = JobViewSession.from_config(config, client=client)
            await _load_snapshot(session, job_id)
            return session

    session = _run(_load())
    snapshot = session.snapshot
    if snapshot is None or not snapshot.has_any_questions:
        typer.echo("No questions to export.")
        return
    try:
        path = session.export(output=output)
    except ExportError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error
    typer.echo(f"Exported {len(snapshot.all_questions())} questions to: {path}")


@cli.command()
def retry(
    job_id: str = typer.Argument(..., help="Identifier of the failed video"),
    api_url: Optional[str] = api_url_option,
    verbose: bool = verbose_option,
) -> None:
    """Ask the backend to transcribe a video again."""

    job_id = _job_id_argument(job_id)
    config = _load_config(api_url, verbose)

    async def _retry() -> None:
        async with _build_client(config) as client:
            await client.retry_transcription(job_id)

    _run(_retry())
    typer.echo(f"Transcription restarted for {job_id}. Use `watch {job_id}` to follow it.")


@cli.command()
def generate(
    job_id: str = typer.Argument(..., help="Identifier of the transcribed video"),
    api_url: Optional[str] = api_url_option,
    verbose: bool = verbose_option,
) -> None:
    """Ask the backend to generate questions for a transcribed video."""

    job_id = _job_id_argument(job_id)
    config = _load_config(api_url, verbose)

    async def _generate():
        async with _build_client(config) as client:
            return await client.generate_questions(job_id)

    questions = _run(_generate())
    typer.echo(f"Generated {len(questions)} questions for {job_id}.")


if __name__ == "__main__":
    cli()
