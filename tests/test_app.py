"""Application factory and lifespan wiring tests.

Database init/close are patched out so the lifespan can run without
PostgreSQL.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from src.zoom_helper.main import create_app
from src.zoom_helper.meetings.analysis import AnalysisCoalescer
from src.zoom_helper.meetings.bot.manager import BotManager
from src.zoom_helper.meetings.realtime.broadcaster import Broadcaster
from src.zoom_helper.meetings.repository import MeetingRepository


def test_metrics_endpoint_exposes_analysis_metrics():
    client = TestClient(create_app())

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "analysis_jobs_total" in response.text
    assert "analysis_jobs_in_flight" in response.text


def test_requests_get_request_id_header():
    client = TestClient(create_app())

    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.headers["X-Request-ID"]


def test_endpoints_unavailable_without_lifespan():
    client = TestClient(create_app())
    assert client.get("/api/v1/meetings").status_code == 503


def test_lifespan_wires_components():
    init_db = AsyncMock()
    close_db = AsyncMock()
    with patch("src.zoom_helper.main.init_db", init_db), \
            patch("src.zoom_helper.main.close_db", close_db):
        app = create_app()
        with TestClient(app):
            assert isinstance(app.state.meeting_repository, MeetingRepository)
            assert isinstance(app.state.broadcaster, Broadcaster)
            assert isinstance(app.state.analysis_coalescer, AnalysisCoalescer)
            assert isinstance(app.state.bot_manager, BotManager)
            assert app.state.analysis_coalescer.active_meetings == 0

    init_db.assert_awaited_once()
    close_db.assert_awaited_once()
