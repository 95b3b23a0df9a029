"""Per-meeting single-flight scheduler for rolling sales analysis.

Every new transcript line of a sales-analysis meeting calls
``AnalysisCoalescer.trigger(meeting_id, transcript_id)``. Summarizing a whole
transcript takes seconds, and lines arrive faster than that, so the
coalescer guarantees:

- at most one analysis job per meeting runs at any time;
- a job starts immediately when the meeting is idle (leading edge);
- triggers arriving while a job runs collapse into exactly one trailing
  run, launched with the largest marker seen, once the current job ends;
- a failed job never leaves the meeting stuck, and the state entry is
  removed as soon as the meeting goes idle again.

Per-meeting state is a small tagged variant. ``Idle`` is represented by the
absence of an entry in the state map::

    Idle --trigger--> Running(m)
    Running(m) --trigger(n)--> RunningWithPending(m, max(m, n))
    RunningWithPending(m, p) --trigger(n)--> RunningWithPending(m, max(p, n))
    Running(m) --job done--> Idle
    RunningWithPending(m, p) --job done--> Running(p)

All transitions happen in plain (non-async) code on the event loop thread,
so each read-modify-write is atomic with respect to other coroutines.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Any, Union

import structlog

from src.zoom_helper.core.monitoring import (
    analysis_job_duration_seconds,
    analysis_jobs_in_flight,
    analysis_jobs_total,
    analysis_triggers_coalesced_total,
)
from src.zoom_helper.meetings.errors import AnalysisError
from src.zoom_helper.meetings.schemas import AnalysisResult, TranscriptEntry

logger = structlog.get_logger(__name__)

MeetingId = Hashable

FetchTranscript = Callable[[Any], Awaitable[Sequence[TranscriptEntry]]]
Summarize = Callable[[Sequence[TranscriptEntry]], Awaitable[AnalysisResult]]
PersistAnalysis = Callable[[Any, AnalysisResult], Awaitable[None]]
Publish = Callable[[str, dict[str, Any]], Awaitable[None]]

SALES_ANALYSIS_EVENT = "salesAnalysis"


# ── Run State ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Running:
    """A job is in flight, launched with ``current_marker``."""

    current_marker: int


@dataclass(frozen=True)
class RunningWithPending:
    """A job is in flight and newer triggers arrived meanwhile.

    ``pending_marker`` is the maximum marker among the coalesced triggers.
    """

    current_marker: int
    pending_marker: int


RunState = Union[Running, RunningWithPending]


def meeting_topic(meeting_id: MeetingId) -> str:
    """Broadcast topic for viewers of a meeting."""
    return f"meeting_{meeting_id}"


# ── Coalescer ────────────────────────────────────────────────────────────────


class AnalysisCoalescer:
    """Single-flight, trailing-edge coalescing runner for sales analysis.

    One instance is created at startup and shared by everything that
    ingests transcript lines. Collaborators are injected so the scheduler
    can be exercised with fakes.

    Args:
        fetch_transcript: Loads the full ordered transcript of a meeting.
            Raises StorageError on failure.
        summarize: Produces the sales analysis for a transcript. Raises
            ModelError on failure.
        persist_analysis: Stores the analysis for a meeting. Raises
            StorageError on failure.
        publish: Sends ``{"type": ..., "payload": ...}`` to a broadcast
            topic.
    """

    def __init__(
        self,
        fetch_transcript: FetchTranscript,
        summarize: Summarize,
        persist_analysis: PersistAnalysis,
        publish: Publish,
    ) -> None:
        self._fetch_transcript = fetch_transcript
        self._summarize = summarize
        self._persist_analysis = persist_analysis
        self._publish = publish
        self._states: dict[MeetingId, RunState] = {}
        # Running job tasks, held until done
        self._tasks: set[asyncio.Task[None]] = set()

    # ── Public API ───────────────────────────────────────────────────────

    def trigger(self, meeting_id: MeetingId, marker: int) -> None:
        """Request an analysis run reflecting at least ``marker``.

        Never blocks and never raises for job failures. Must be called from
        a coroutine running on the event loop.
        """
        state = self._states.get(meeting_id)

        if state is None:
            task = asyncio.get_running_loop().create_task(
                self._run(meeting_id, marker),
                name=f"sales-analysis-{meeting_id}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            self._states[meeting_id] = Running(marker)
            logger.info("analysis.job_started", meeting_id=meeting_id, marker=marker)
            return

        # A trailing run never reflects less than the run before it
        pending = max(marker, state.current_marker)
        if isinstance(state, RunningWithPending):
            pending = max(pending, state.pending_marker)
        self._states[meeting_id] = RunningWithPending(state.current_marker, pending)
        analysis_triggers_coalesced_total.inc()
        logger.debug(
            "analysis.trigger_coalesced",
            meeting_id=meeting_id,
            marker=marker,
            current_marker=state.current_marker,
            pending_marker=pending,
        )

    def state(self, meeting_id: MeetingId) -> RunState | None:
        """Current run state of a meeting, or None when idle."""
        return self._states.get(meeting_id)

    @property
    def active_meetings(self) -> int:
        """Number of meetings with a job running."""
        return len(self._states)

    async def join(self) -> None:
        """Wait until every job, including trailing runs, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs and forget all state (process shutdown)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._states.clear()
        logger.info("analysis.coalescer_stopped", cancelled_jobs=len(tasks))

    # ── Job Execution ────────────────────────────────────────────────────

    async def _run(self, meeting_id: MeetingId, marker: int) -> None:
        """Run jobs for a meeting until no trailing run is pending."""
        analysis_jobs_in_flight.inc()
        try:
            next_marker: int | None = marker
            while next_marker is not None:
                await self._execute(meeting_id, next_marker)
                next_marker = self._advance(meeting_id)
        finally:
            analysis_jobs_in_flight.dec()

    def _advance(self, meeting_id: MeetingId) -> int | None:
        """Move a meeting out of its finished run; return the next marker."""
        state = self._states.get(meeting_id)
        if isinstance(state, RunningWithPending):
            self._states[meeting_id] = Running(state.pending_marker)
            logger.info(
                "analysis.trailing_run_scheduled",
                meeting_id=meeting_id,
                previous_marker=state.current_marker,
                marker=state.pending_marker,
            )
            return state.pending_marker

        self._states.pop(meeting_id, None)
        return None

    async def _execute(self, meeting_id: MeetingId, marker: int) -> None:
        """Fetch, summarize, publish, persist. Failures are logged and counted."""
        start_time = time.perf_counter()
        try:
            entries = await self._fetch_transcript(meeting_id)
            result = await self._summarize(entries)
            await self._publish(
                meeting_topic(meeting_id),
                {"type": SALES_ANALYSIS_EVENT, "payload": result.to_payload()},
            )
            await self._persist_analysis(meeting_id, result)
        except AnalysisError as exc:
            analysis_jobs_total.labels(status="failed").inc()
            logger.warning(
                "analysis.job_failed",
                meeting_id=meeting_id,
                marker=marker,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return
        except Exception:
            analysis_jobs_total.labels(status="error").inc()
            logger.error(
                "analysis.job_failed",
                meeting_id=meeting_id,
                marker=marker,
                error_type="unexpected",
                exc_info=True,
            )
            return
        finally:
            analysis_job_duration_seconds.observe(time.perf_counter() - start_time)

        analysis_jobs_total.labels(status="success").inc()
        logger.info(
            "analysis.job_completed",
            meeting_id=meeting_id,
            marker=marker,
            transcript_entries=len(entries),
        )
