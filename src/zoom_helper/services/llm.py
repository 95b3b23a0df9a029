"""Transcript analysis via instructor + LiteLLM.

Provides TranscriptAnalyzer with the three language-model capabilities used
during a live meeting:
- get_definitions(): technical terms in a single transcript line
- get_question_answer(): detect and answer Timescale/PostgreSQL questions
- get_sales_analysis(): four-category summary of the whole conversation

All calls use structured extraction (instructor.from_litellm) with a
Pydantic response model, so the vendor is selected purely by model name
(e.g. "anthropic/claude-3-5-haiku-latest", "openai/gpt-4.1-nano").
Any vendor or parsing failure surfaces as ModelError.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel

from src.zoom_helper.core.monitoring import track_llm_call
from src.zoom_helper.meetings.errors import ModelError
from src.zoom_helper.meetings.schemas import (
    DefinitionsResult,
    QuestionAnswer,
    SalesAnalysis,
    TranscriptEntry,
)

logger = structlog.get_logger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


# ── System Prompts ───────────────────────────────────────────────────────────

DEFINITIONS_SYSTEM_PROMPT = (
    "You are an expert on Timescale, PostgreSQL, Timescale Cloud, and TigerData "
    "Cloud products. You must identify key technical terms in sentences and "
    "provide definitions. The returned definitions should use the same casing "
    "for the words as they appear in the sentence."
)

QUESTION_SYSTEM_PROMPT = (
    "You are an expert on PostgreSQL, Timescale, and Timescale Cloud. You can "
    "determine if a given sentence is an answerable question that pertains to "
    "PostgreSQL, Timescale, or Timescale Cloud, and provide answers only for "
    "those topics."
)

SALES_ANALYSIS_SYSTEM_PROMPT = """\
You are analyzing a sales meeting transcript. The seller in this meeting works \
at Timescale, a time-series database company.

Analyze sentences from sales conversations and categorize them into one of four categories:
* currentState (current situation or problems they have with their current database)
* businessOutcomes (desired outcomes or goals they want to achieve moving to Timescale)
* solutionRequirements (technical requirements/features needed for their database solution)
* metrics (measurable goals/KPIs for their database).

For each section, provide concise bullet points. If a section has no relevant \
information, then leave it empty.

Keep responses concise and actionable. Focus on key insights that would help \
the sales team understand the deal progress."""


def format_transcript(entries: Sequence[TranscriptEntry]) -> str:
    """Render transcript lines as ``speaker: text``, one per line."""
    return "\n".join(f"{entry.speaker}: {entry.text}" for entry in entries)


# ── Analyzer ─────────────────────────────────────────────────────────────────


class TranscriptAnalyzer:
    """Language-model enrichment of meeting transcripts.

    Args:
        settings: Application settings (model names, API keys, timeout,
            retries).
        client: Optional instructor client. Built from litellm.acompletion
            on first use when omitted.
    """

    def __init__(self, settings: Any, client: Any = None) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            import instructor
            import litellm

            self._client = instructor.from_litellm(litellm.acompletion)
        return self._client

    def _api_key_for(self, model: str) -> str | None:
        provider = model.split("/", 1)[0]
        if provider == "anthropic":
            return self._settings.ANTHROPIC_API_KEY or None
        if provider == "openai":
            return self._settings.OPENAI_API_KEY or None
        return None

    async def _extract(
        self,
        operation: str,
        model: str,
        response_model: type[ResponseT],
        system_prompt: str,
        user_content: str,
        max_tokens: int = 1000,
    ) -> ResponseT:
        """Run one structured extraction call, mapping failures to ModelError."""
        client = self._get_client()
        try:
            async with track_llm_call(model, operation):
                return await client.chat.completions.create(
                    model=model,
                    response_model=response_model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_content},
                    ],
                    max_tokens=max_tokens,
                    temperature=0.1,
                    max_retries=self._settings.LLM_MAX_RETRIES,
                    timeout=self._settings.LLM_TIMEOUT,
                    api_key=self._api_key_for(model),
                )
        except Exception as exc:
            logger.warning(
                "llm.extraction_failed",
                operation=operation,
                model=model,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise ModelError(f"{operation} failed: {type(exc).__name__}: {exc}") from exc

    async def get_definitions(self, sentence: str) -> DefinitionsResult:
        """Identify technical terms in a sentence and define them."""
        return await self._extract(
            "definitions",
            self._settings.FAST_MODEL,
            DefinitionsResult,
            DEFINITIONS_SYSTEM_PROMPT,
            (
                "Analyze this sentence and identify key technical terms that would "
                "benefit from definitions. For each term, provide a concise definition. "
                "Focus on technical terms related to databases, cloud computing, data "
                "processing, or other technical concepts.\n\n"
                f"Sentence: {sentence}"
            ),
        )

    async def get_question_answer(self, sentence: str) -> QuestionAnswer:
        """Decide whether a sentence is an on-topic question and answer it."""
        return await self._extract(
            "question_answering",
            self._settings.FAST_MODEL,
            QuestionAnswer,
            QUESTION_SYSTEM_PROMPT,
            (
                "Analyze this sentence and determine if it's an answerable question "
                "that relates to PostgreSQL, Timescale, or Timescale Cloud. Only answer "
                "questions about these topics. If it's not a question, not answerable, "
                "or not related to these topics, set is_question to false and answer "
                "to empty string. Keep answers extremely concise and minimal - use the "
                "fewest words possible.\n\n"
                f"Sentence: {sentence}"
            ),
        )

    async def get_sales_analysis(self, entries: Sequence[TranscriptEntry]) -> SalesAnalysis:
        """Summarize the whole conversation into the four sales categories.

        Raises:
            ModelError: If the call fails or the output cannot be parsed.
        """
        analysis = await self._extract(
            "sales_analysis",
            self._settings.ANALYSIS_MODEL,
            SalesAnalysis,
            SALES_ANALYSIS_SYSTEM_PROMPT,
            (
                "Analyze this transcript and extract structured information for "
                "sales analysis.\n\n"
                f"Transcript:\n{format_transcript(entries)}"
            ),
            max_tokens=2048,
        )
        logger.info(
            "llm.sales_analysis_generated",
            transcript_entries=len(entries),
            current_state=len(analysis.current_state),
            business_outcomes=len(analysis.business_outcomes),
            solution_requirements=len(analysis.solution_requirements),
            metrics=len(analysis.metrics),
        )
        return analysis
