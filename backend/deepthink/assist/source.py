"""Common interface for producers of deep-thinking events."""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from deepthink.models.event import StreamEvent


@runtime_checkable
class EventSource(Protocol):
    """A producer of an ordered event sequence.

    Both the remote stream and the local simulator implement this, so the
    session manager drives them with the same dispatch loop.
    """

    name: str

    def events(self) -> AsyncIterator[StreamEvent]:
        """Iterate over events until the source is exhausted."""
        ...

    async def aclose(self) -> None:
        """Release held resources. Safe to call more than once."""
        ...
