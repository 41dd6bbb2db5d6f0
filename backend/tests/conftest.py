"""Pytest configuration and fixtures."""

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from deepthink.assist.manager import DeepThinkingManager
from deepthink.assist.registry import AssistantRegistry, set_registry
from deepthink.assist.simulator import SimulatorPacing
from deepthink.assist.transport import AssistTransport
from deepthink.config import AssistConfig
from deepthink.main import app
from deepthink.models import ThinkingOptions

BASE_URL = "http://reasoning.test"

Handler = Callable[[httpx.Request], Any]


def frame(payload: dict[str, Any], framing: str = "sse") -> str:
    """Render one event line in the given framing."""
    body = json.dumps(payload, ensure_ascii=False)
    if framing == "sse":
        return f"data: {body}\n"
    if framing == "compact":
        return f"data:{body}\n"
    return f"{body}\n"


def stream_response(
    *chunks: str | bytes,
    fail_with: Exception | None = None,
    status_code: int = 200,
) -> httpx.Response:
    """A streamed response delivering ``chunks`` one by one, optionally failing after."""

    async def body() -> AsyncGenerator[bytes, None]:
        for chunk in chunks:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
        if fail_with is not None:
            raise fail_with

    return httpx.Response(
        status_code,
        content=body(),
        headers={"content-type": "text/event-stream; charset=utf-8"},
    )


def refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def config() -> AssistConfig:
    """Config pointing at a fake service with short timeouts and no pacing."""
    return AssistConfig(
        base_url=BASE_URL,
        establish_timeout=0.5,
        read_timeout=2.0,
        examples_ttl_seconds=600,
        stage_delay_min=0.0,
        stage_delay_max=0.0,
    )


@pytest.fixture
async def make_manager(config: AssistConfig):
    """Factory for managers whose remote service is played by ``handler``."""
    created: list[tuple[DeepThinkingManager, httpx.AsyncClient]] = []

    def _make(handler: Handler, **kwargs: Any) -> DeepThinkingManager:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = AssistTransport(config, client=client)
        kwargs.setdefault("pacing", SimulatorPacing(0.0, 0.0))
        manager = DeepThinkingManager(config, transport, **kwargs)
        created.append((manager, client))
        return manager

    yield _make

    for manager, client in created:
        await manager.aclose()
        await client.aclose()


class CallbackLog:
    """Records every callback invocation in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def options(self, **kwargs: Any) -> ThinkingOptions:
        return ThinkingOptions(
            on_thinking=lambda e: self.calls.append(("thinking", e)),
            on_stage=lambda e: self.calls.append(("stage", e)),
            on_error=lambda m: self.calls.append(("error", m)),
            on_complete=lambda s: self.calls.append(("complete", s)),
            **kwargs,
        )

    def of(self, slot: str) -> list[Any]:
        return [payload for name, payload in self.calls if name == slot]

    @property
    def slots(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def callback_log() -> CallbackLog:
    return CallbackLog()


@pytest.fixture
async def client(config: AssistConfig) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; the reasoning service refuses every connection."""

    def build_manager() -> DeepThinkingManager:
        transport = AssistTransport(
            config,
            client=httpx.AsyncClient(transport=httpx.MockTransport(refuse_connection)),
        )
        return DeepThinkingManager(config, transport, pacing=SimulatorPacing(0.0, 0.0))

    registry = AssistantRegistry(config, manager_factory=build_manager)
    set_registry(registry)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    await registry.shutdown()
    set_registry(None)
