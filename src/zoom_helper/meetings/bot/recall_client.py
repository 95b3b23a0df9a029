"""Async HTTP client wrapper for the Recall.ai REST API.

Provides RecallClient with retry logic (tenacity, 3 attempts, exponential
backoff 1-10s) for creating meeting bots and reading their status.
"""

from __future__ import annotations

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

_recall_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


class RecallClient:
    """Async client for the Recall.ai REST API.

    Args:
        api_key: Recall.ai API token.
        region: Recall.ai region (default: us-west-2).
    """

    TIMEOUT_MUTATE = 30.0  # create operations
    TIMEOUT_READ = 10.0    # status operations

    def __init__(self, api_key: str, region: str = "us-west-2") -> None:
        self._api_key = api_key
        self._base_url = f"https://{region}.recall.ai/api/v1"
        self._headers = {
            "Authorization": f"Token {api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=timeout,
        )

    @_recall_retry
    async def create_bot(self, config: dict) -> dict:
        """Create a new meeting bot.

        POST /bot/ with meeting URL, bot name, and recording config
        (transcript provider and realtime webhook endpoints).

        Returns:
            Bot creation response with bot id.
        """
        async with self._client(self.TIMEOUT_MUTATE) as client:
            response = await client.post(
                f"{self._base_url}/bot/",
                json=config,
            )
            response.raise_for_status()
            data = response.json()
            logger.info(
                "recall.bot_created",
                bot_id=data.get("id"),
                meeting_url=config.get("meeting_url"),
            )
            return data

    @_recall_retry
    async def get_bot(self, bot_id: str) -> dict:
        """Get full bot details (GET /bot/{bot_id}/)."""
        async with self._client(self.TIMEOUT_READ) as client:
            response = await client.get(
                f"{self._base_url}/bot/{bot_id}/",
            )
            response.raise_for_status()
            return response.json()

    async def get_bot_status(self, bot_id: str) -> str:
        """Get current bot status code from status_changes[-1].code.

        Returns:
            Status code string (e.g. 'joining_call', 'in_call_recording',
            'done'), or 'unknown' when the bot has no status history.
        """
        bot_data = await self.get_bot(bot_id)
        status_changes = bot_data.get("status_changes", [])
        if not status_changes:
            return "unknown"
        current_status = status_changes[-1].get("code", "unknown")
        logger.debug(
            "recall.bot_status",
            bot_id=bot_id,
            status=current_status,
        )
        return current_status
