"""Rich renderables for job status, transcript segments and quiz questions."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from rich import box
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from ..services.answers import AnswerBook, OptionState, Score
from ..services.records import Job, JobStatus, Question, Segment
from ..services.session import JobViewSession


STATUS_STYLES: Dict[JobStatus, str] = {
    JobStatus.UPLOADED: "blue",
    JobStatus.TRANSCRIBING: "yellow",
    JobStatus.GENERATING_QUESTIONS: "magenta",
    JobStatus.COMPLETED: "green",
    JobStatus.ERROR: "red",
}

OPTION_STYLES: Dict[OptionState, str] = {
    OptionState.OPEN: "white",
    OptionState.CHOSEN_CORRECT: "bold green",
    OptionState.CHOSEN_INCORRECT: "bold red",
    OptionState.CORRECT_UNCHOSEN: "green",
    OptionState.UNCHOSEN_INCORRECT: "dim",
}

OPTION_MARKERS: Dict[OptionState, str] = {
    OptionState.OPEN: " ",
    OptionState.CHOSEN_CORRECT: "✔",
    OptionState.CHOSEN_INCORRECT: "✘",
    OptionState.CORRECT_UNCHOSEN: "✔",
    OptionState.UNCHOSEN_INCORRECT: " ",
}

OPTION_LETTERS = "ABCDEFGH"

SEGMENT_PREVIEW_LENGTH = 150


def segment_preview(text: str, *, expanded: bool = False) -> str:
    """Shorten long segment text unless the segment has been expanded."""

    if expanded or len(text) <= SEGMENT_PREVIEW_LENGTH:
        return text
    return text[:SEGMENT_PREVIEW_LENGTH].rstrip() + "..."


def format_timestamp(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--"
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def option_letter(index: int) -> str:
    if index < len(OPTION_LETTERS):
        return OPTION_LETTERS[index]
    return str(index + 1)


class WatchView:
    """Render the state of a :class:`JobViewSession` with Rich widgets."""

    def __init__(self, session: JobViewSession, *, console: Optional[Console] = None) -> None:
        self._session = session
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def show(self) -> None:
        self._console.print(self.render())

    def render(self) -> RenderableType:
        parts: List[RenderableType] = [self._build_status_panel()]

        segments = self._session.tracker.segments
        if segments:
            parts.append(self._build_segment_table(segments))

        questions = self._session.questions_for_active_segment()
        if questions:
            parts.append(
                render_questions(questions, self._session.answers, title=self._questions_title())
            )
        elif self._session.snapshot is not None and not self._session.snapshot.has_any_questions:
            hint = self._empty_questions_hint()
            if hint:
                parts.append(Text(hint, style="dim"))

        return Group(*parts)

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    def _build_status_panel(self) -> Panel:
        session = self._session
        snapshot = session.snapshot
        job = snapshot.job if snapshot else None

        grid = Table.grid(expand=True, padding=(0, 1))
        grid.add_column(style="dim")
        grid.add_column()
        grid.add_row("Job", session.job_id or "-")
        if job is not None:
            if job.title:
                grid.add_row("Title", Text(job.title, style="bold"))
            grid.add_row("Status", Text(session.status_text, style=STATUS_STYLES[job.status]))
            grid.add_row(
                "Progress",
                Group(
                    ProgressBar(total=100, completed=session.display_progress, width=40),
                    Text(f"{session.display_progress}%", style="bold"),
                ),
            )
            if job.duration is not None:
                grid.add_row("Duration", format_timestamp(job.duration))
        else:
            grid.add_row("Status", Text("Waiting for the first update...", style="dim"))

        body: List[RenderableType] = [grid]
        banner = session.banner
        if banner:
            body.append(Text(banner, style="bold yellow"))
        if job is not None and session.has_failed:
            body.append(
                Text(
                    f"{job.error_message}\nRun `retry {job.id}` to transcribe again.",
                    style="bold red",
                )
            )

        border = STATUS_STYLES[job.status] if job is not None else "cyan"
        return Panel(Group(*body), title="Processing", border_style=border, box=box.ROUNDED)

    def _build_segment_table(self, segments: Sequence[Segment]) -> Table:
        active = self._session.active_segment_index
        answers = self._session.answers
        table = Table(title="Transcript segments", box=box.SIMPLE_HEAVY, expand=True)
        table.add_column("", width=2)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Time", no_wrap=True)
        table.add_column("Text", ratio=1)
        table.add_column("MCQs", justify="right")

        for segment in segments:
            is_active = segment.index == active
            count = len(segment.questions)
            if count:
                mcqs = Text(str(count), style="green")
            elif segment.questions_present:
                mcqs = Text("-", style="dim")
            else:
                # Questions have not been generated for this segment yet.
                mcqs = Text("…", style="dim")
            table.add_row(
                "▶" if is_active else "",
                str(segment.index + 1),
                f"{format_timestamp(segment.start_time)} - {format_timestamp(segment.end_time)}",
                Text(
                    segment_preview(segment.text, expanded=answers.is_expanded(segment.index)),
                    style="bold" if is_active else "",
                ),
                mcqs,
                style="on grey15" if is_active else None,
            )
        return table

    def _questions_title(self) -> str:
        session = self._session
        segment = session.active_segment
        total = len(session.tracker.segments)
        if segment is None:
            return "Questions"
        return (
            f"Questions for segment {segment.index + 1} of {total} "
            f"({format_timestamp(segment.start_time)} - {format_timestamp(segment.end_time)})"
        )

    def _empty_questions_hint(self) -> Optional[str]:
        snapshot = self._session.snapshot
        job = snapshot.job if snapshot else None
        if job is None:
            return None
        if job.status is JobStatus.GENERATING_QUESTIONS:
            return "Questions are being generated for each segment. This may take a few minutes."
        if job.status in (JobStatus.UPLOADED, JobStatus.TRANSCRIBING):
            return "Questions will be generated after transcription is complete."
        if job.status is JobStatus.COMPLETED:
            return "No questions yet. Run `generate` to create them."
        return None


def render_questions(
    questions: Iterable[Question],
    answers: AnswerBook,
    *,
    title: str = "Questions",
) -> Panel:
    blocks: List[RenderableType] = []
    for number, question in enumerate(questions, start=1):
        blocks.append(render_question(question, answers, number=number))
    return Panel(Group(*blocks), title=title, border_style="cyan", box=box.ROUNDED)


def render_question(question: Question, answers: AnswerBook, *, number: int = 1) -> RenderableType:
    header = Text(f"{number}. ", style="bold")
    header.append(question.text or "(untitled question)", style="bold")

    lines: List[RenderableType] = [header]
    for index, (option, state) in enumerate(zip(question.options, answers.option_states(question))):
        line = Text(f"  {OPTION_MARKERS[state]} {option_letter(index)}. ", style=OPTION_STYLES[state])
        line.append(option.text, style=OPTION_STYLES[state])
        lines.append(line)

    if answers.explanation_revealed(question.key):
        verdict = answers.is_correct(question)
        label = "Correct!" if verdict else "Incorrect."
        explanation = Text(label + " ", style="bold green" if verdict else "bold red")
        if question.explanation:
            explanation.append(question.explanation, style="italic")
        lines.append(explanation)

    lines.append(Text(""))
    return Group(*lines)


def render_score(score: Score) -> Text:
    text = Text("Score: ", style="bold")
    text.append(f"{score.correct}/{score.total}", style="bold green" if score.correct else "bold")
    if score.answered < score.total:
        text.append(f"  ({score.total - score.answered} unanswered)", style="dim")
    return text


def render_jobs(jobs: Sequence[Job]) -> RenderableType:
    if not jobs:
        return Panel(
            "No videos have been uploaded yet.",
            border_style="yellow",
            box=box.ROUNDED,
        )

    table = Table(title="Videos", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", ratio=1)
    table.add_column("Status")
    table.add_column("Progress", justify="right")

    for job in jobs:
        progress = "-" if job.progress is None else f"{int(round(job.progress))}%"
        table.add_row(
            job.id,
            job.title or job.filename or "",
            Text(job.status.label, style=STATUS_STYLES[job.status]),
            progress,
        )
    return table


__all__ = [
    "WatchView",
    "format_timestamp",
    "option_letter",
    "render_jobs",
    "render_question",
    "render_questions",
    "render_score",
    "segment_preview",
]
