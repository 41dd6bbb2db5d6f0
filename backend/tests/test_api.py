"""Tests for the assistant HTTP API.

The reasoning service refuses every connection in these tests, so deep
thinking is served by the local simulator.
"""

import json

import pytest
from httpx import AsyncClient

from deepthink.assist.fallback import CANNED_ANSWERS
from deepthink.assist.simulator import SIMULATED_STAGES


def sse_frames(body: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


class TestHealth:
    """Tests for the health endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Test health check endpoint."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestDeepThinking:
    """Tests for the deep-thinking relay."""

    @pytest.mark.asyncio
    async def test_stream_relays_simulated_session(self, client: AsyncClient):
        """Test the SSE response carries five stages and a final report."""
        response = await client.post(
            "/api/v1/assist/deep-thinking",
            json={"question": "How do I generate PWM with a timer?"},
            headers={"X-User-Id": "alice"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        frames = sse_frames(response.text)
        assert [f["stage"] for f in frames if f["type"] == "stage"] == list(SIMULATED_STAGES)
        assert [f["type"] for f in frames].count("thinking") == 5

        done = frames[-1]
        assert done["type"] == "done"
        assert done["session"]["completed_stages"] == 5
        assert done["session"]["is_active"] is False
        assert done["report"].startswith("# Deep thinking result")
        assert "**Question:** How do I generate PWM with a timer?" in done["report"]
        assert "## Analysis 5: summary" in done["report"]

    @pytest.mark.asyncio
    async def test_blank_question_rejected(self, client: AsyncClient):
        """Test a whitespace-only question is a 400."""
        response = await client.post(
            "/api/v1/assist/deep-thinking",
            json={"question": "   "},
            headers={"X-User-Id": "alice"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_session_after_run(self, client: AsyncClient):
        """Test the last session stays readable after it finishes."""
        headers = {"X-User-Id": "bob"}
        await client.post(
            "/api/v1/assist/deep-thinking", json={"question": "Explain ADC"}, headers=headers
        )

        response = await client.get("/api/v1/assist/session", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["question"] == "Explain ADC"
        assert data["is_active"] is False
        assert data["progress_percent"] == 100

    @pytest.mark.asyncio
    async def test_session_not_found(self, client: AsyncClient):
        """Test a caller without sessions gets a 404."""
        response = await client.get("/api/v1/assist/session", headers={"X-User-Id": "nobody"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, client: AsyncClient):
        """Test cancelling with nothing running reports idle."""
        response = await client.delete(
            "/api/v1/assist/deep-thinking", headers={"X-User-Id": "carol"}
        )
        assert response.status_code == 200
        assert response.json() == {"status": "idle"}


class TestAsk:
    """Tests for plain questions."""

    @pytest.mark.asyncio
    async def test_ask_falls_back(self, client: AsyncClient):
        """Test an unreachable service yields the keyword answer."""
        response = await client.post(
            "/api/v1/assist/ask",
            json={"message": "How do I drive an LED from a GPIO pin?"},
            headers={"X-User-Id": "alice", "X-User-Role": "admin"},
        )

        assert response.status_code == 200
        assert response.json() == {"data": {"response": CANNED_ANSWERS[0][1]}}

    @pytest.mark.asyncio
    async def test_ask_blank_rejected(self, client: AsyncClient):
        """Test a blank message is a 400."""
        response = await client.post("/api/v1/assist/ask", json={"message": ""})
        assert response.status_code == 400


class TestExamples:
    """Tests for example questions."""

    @pytest.mark.asyncio
    async def test_examples_for_role(self, client: AsyncClient):
        """Test the built-in list for the caller's role is returned."""
        response = await client.get(
            "/api/v1/assist/examples", headers={"X-User-Role": "teacher"}
        )

        assert response.status_code == 200
        questions = response.json()["data"]["questions"]
        assert [q["id"] for q in questions] == ["t1", "t2", "t3"]

    @pytest.mark.asyncio
    async def test_examples_limit(self, client: AsyncClient):
        """Test the limit parameter truncates the list."""
        response = await client.get("/api/v1/assist/examples", params={"limit": 1})

        assert len(response.json()["data"]["questions"]) == 1


class TestStats:
    """Tests for registry statistics."""

    @pytest.mark.asyncio
    async def test_stats_count_managers(self, client: AsyncClient):
        """Test each caller gets its own manager."""
        for user in ("alice", "bob"):
            await client.get("/api/v1/assist/examples", headers={"X-User-Id": user})

        response = await client.get("/api/v1/assist/stats")

        data = response.json()
        assert data["managers"] == 2
        assert data["active_sessions"] == 0
