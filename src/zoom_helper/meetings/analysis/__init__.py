"""Rolling sales analysis -- per-meeting coalescing of summarization jobs."""

from src.zoom_helper.meetings.analysis.coalescer import (
    AnalysisCoalescer,
    Running,
    RunningWithPending,
    RunState,
    meeting_topic,
)

__all__ = [
    "AnalysisCoalescer",
    "RunState",
    "Running",
    "RunningWithPending",
    "meeting_topic",
]
