"""HTTP transport to the remote reasoning service."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import ValidationError

from deepthink.assist.decoder import StreamFrameDecoder
from deepthink.assist.errors import StreamInterruptedError, TransportUnavailableError
from deepthink.config import AssistConfig
from deepthink.models.event import StreamEvent
from deepthink.models.question import ChatRequest, DeepThinkRequest, ExampleQuestion

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}
STREAM_HEADERS = {**JSON_HEADERS, "Accept": "text/event-stream"}


async def open_stream(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    establish_timeout: float,
) -> httpx.Response:
    """POST ``payload`` and return the response with its body still unread.

    Raises:
        TransportUnavailableError: On connection failure, no response headers
            within ``establish_timeout``, or a non-success status.
    """
    request = client.build_request("POST", url, json=payload, headers=STREAM_HEADERS)
    try:
        response = await asyncio.wait_for(
            client.send(request, stream=True),
            timeout=establish_timeout,
        )
    except TimeoutError as e:
        raise TransportUnavailableError(
            f"No response from {url} within {establish_timeout}s"
        ) from e
    except httpx.HTTPError as e:
        raise TransportUnavailableError(f"Cannot reach {url}: {e}") from e

    if not response.is_success:
        await response.aclose()
        raise TransportUnavailableError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code,
        )
    return response


class RemoteEventSource:
    """Event source backed by one streamed POST to the deep-thinking endpoint.

    Failures before the first valid event raise ``TransportUnavailableError``
    (the caller falls back to the simulator); failures after it raise
    ``StreamInterruptedError``.
    """

    name = "remote"

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        establish_timeout: float,
    ):
        self._client = client
        self._url = url
        self._payload = payload
        self._establish_timeout = establish_timeout
        self._response: httpx.Response | None = None
        self._decoder = StreamFrameDecoder()

    @property
    def events_received(self) -> int:
        return self._decoder.events_decoded

    async def events(self) -> AsyncIterator[StreamEvent]:
        self._response = await open_stream(
            self._client, self._url, self._payload, self._establish_timeout
        )
        logger.info(f"Deep-thinking stream opened at {self._url}")

        try:
            async for chunk in self._response.aiter_bytes():
                for event in self._decoder.feed(chunk):
                    yield event
        except httpx.HTTPError as e:
            if self.events_received == 0:
                raise TransportUnavailableError(
                    f"Stream failed before any event: {e}"
                ) from e
            raise StreamInterruptedError(
                f"Connection lost after {self.events_received} event(s): {e}",
                events_received=self.events_received,
            ) from e
        finally:
            await self.aclose()

        for event in self._decoder.flush():
            yield event

        if self.events_received == 0:
            raise TransportUnavailableError("Stream ended without any event")

    async def aclose(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None


class AssistTransport:
    """Client for the reasoning service endpoints.

    Args:
        config: Endpoint and timeout settings.
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            with a mock transport). A client created here is owned and closed
            by ``aclose``.
    """

    def __init__(
        self,
        config: AssistConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or AssistConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.config.read_timeout,
                connect=self.config.establish_timeout,
            )
        )

    def open_deep_thinking(self, request: DeepThinkRequest) -> RemoteEventSource:
        """Prepare a streamed deep-thinking run (nothing is sent until iterated)."""
        return RemoteEventSource(
            self._client,
            self.config.url(self.config.deep_thinking_path),
            request.model_dump(),
            establish_timeout=self.config.establish_timeout,
        )

    async def ask(self, request: ChatRequest) -> dict[str, Any]:
        """Send a plain question and return the decoded JSON body.

        Raises:
            TransportUnavailableError: On connection failure, timeout,
                non-success status or a body that is not JSON.
        """
        url = self.config.url(self.config.chat_path)
        try:
            response = await asyncio.wait_for(
                self._client.post(url, json=request.model_dump(), headers=JSON_HEADERS),
                timeout=self.config.read_timeout,
            )
        except TimeoutError as e:
            raise TransportUnavailableError(f"No response from {url}") from e
        except httpx.HTTPError as e:
            raise TransportUnavailableError(f"Cannot reach {url}: {e}") from e

        if not response.is_success:
            raise TransportUnavailableError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise TransportUnavailableError(f"Invalid JSON from {url}: {e}") from e

    async def ask_stream(self, request: ChatRequest) -> AsyncIterator[str]:
        """Send a plain question and yield the answer text as it arrives.

        Raises:
            TransportUnavailableError: If nothing was received.
            StreamInterruptedError: If the stream broke after text arrived.
        """
        url = self.config.url(self.config.chat_path)
        response = await open_stream(
            self._client, url, request.model_dump(), self.config.establish_timeout
        )
        received = 0
        try:
            async for text in response.aiter_text():
                if text:
                    received += len(text)
                    yield text
        except httpx.HTTPError as e:
            if received == 0:
                raise TransportUnavailableError(f"Stream failed before any text: {e}") from e
            raise StreamInterruptedError(f"Connection lost mid-answer: {e}") from e
        finally:
            await response.aclose()

        if received == 0:
            raise TransportUnavailableError("Answer stream was empty")

    async def fetch_example_questions(
        self,
        page_context: str,
        user_role: str,
        user_level: str,
        limit: int,
    ) -> list[ExampleQuestion]:
        """Fetch advisory example questions.

        Raises:
            TransportUnavailableError: On any transport or format failure.
        """
        url = self.config.url(self.config.examples_path)
        params = {
            "page_context": page_context,
            "user_role": user_role,
            "user_level": user_level,
            "limit": str(limit),
        }
        try:
            response = await asyncio.wait_for(
                self._client.get(url, params=params, headers=JSON_HEADERS),
                timeout=self.config.establish_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except TimeoutError as e:
            raise TransportUnavailableError(f"No response from {url}") from e
        except httpx.HTTPStatusError as e:
            raise TransportUnavailableError(
                str(e), status_code=e.response.status_code
            ) from e
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            raise TransportUnavailableError(f"Cannot load examples from {url}: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise TransportUnavailableError(f"Example response from {url} has no data object")
        questions = data.get("questions") or []
        if not isinstance(questions, list):
            raise TransportUnavailableError(f"Example questions from {url} are not a list")
        try:
            return [
                ExampleQuestion.model_validate(q) for q in questions if isinstance(q, dict)
            ]
        except ValidationError as e:
            raise TransportUnavailableError(f"Unexpected example question format: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
