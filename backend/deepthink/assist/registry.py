"""AssistantRegistry keeps one DeepThinkingManager per caller."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from deepthink.assist.manager import DeepThinkingManager
from deepthink.assist.transport import AssistTransport
from deepthink.config import CLEANUP_INTERVAL_SECONDS, IDLE_TIMEOUT_MINUTES, AssistConfig

logger = logging.getLogger(__name__)

# Singleton registry instance
_registry: "AssistantRegistry | None" = None

ManagerFactory = Callable[[], DeepThinkingManager]


class AssistantRegistry:
    """Maps caller identities to their assistant panel's session manager.

    Responsibilities:
    - Create managers on first use, sharing one HTTP client
    - Cancel and drop managers that have been idle too long
    - Cancel everything on shutdown
    """

    def __init__(
        self,
        config: AssistConfig | None = None,
        idle_timeout_minutes: int = IDLE_TIMEOUT_MINUTES,
        cleanup_interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        manager_factory: ManagerFactory | None = None,
    ):
        """Initialize the registry.

        Args:
            config: Service settings shared by all managers.
            idle_timeout_minutes: How long an idle manager lives before cleanup.
            cleanup_interval_seconds: Pause between idle sweeps.
            manager_factory: Overrides how managers are built (used by tests).
        """
        self.config = config or AssistConfig.from_env()
        self._managers: dict[str, DeepThinkingManager] = {}
        self._idle_timeout = timedelta(minutes=idle_timeout_minutes)
        self._cleanup_task: asyncio.Task | None = None
        self._cleanup_interval = cleanup_interval_seconds
        self._stop_cleanup = asyncio.Event()
        self._transport: AssistTransport | None = None
        self._manager_factory = manager_factory

    @property
    def manager_count(self) -> int:
        return len(self._managers)

    def _build_manager(self) -> DeepThinkingManager:
        if self._manager_factory is not None:
            return self._manager_factory()
        if self._transport is None:
            self._transport = AssistTransport(self.config)
        return DeepThinkingManager(self.config, self._transport)

    def get_manager(self, user_id: str) -> DeepThinkingManager:
        """Get (or create) the manager for a caller."""
        manager = self._managers.get(user_id)
        if manager is None:
            manager = self._build_manager()
            self._managers[user_id] = manager
            logger.info(
                f"Created assistant manager for {user_id} "
                f"(total managers: {len(self._managers)})"
            )
        manager.last_activity = datetime.now()
        return manager

    def find_manager(self, user_id: str) -> DeepThinkingManager | None:
        return self._managers.get(user_id)

    async def release(self, user_id: str) -> bool:
        """Cancel and drop a caller's manager.

        Returns:
            True if the caller had a manager.
        """
        manager = self._managers.pop(user_id, None)
        if manager is None:
            return False
        await manager.aclose()
        logger.info(f"Released assistant manager for {user_id}")
        return True

    async def cleanup_idle(self) -> int:
        """Release managers with no active session that have been idle too long.

        Returns:
            Number of managers released.
        """
        now = datetime.now()
        idle_ids = [
            uid for uid, m in self._managers.items()
            if not m.is_active() and now - m.last_activity > self._idle_timeout
        ]

        for user_id in idle_ids:
            await self.release(user_id)

        if idle_ids:
            logger.info(f"Cleaned up {len(idle_ids)} idle assistant manager(s)")

        return len(idle_ids)

    async def start_cleanup_task(self) -> None:
        """Start sweeping idle managers every ``cleanup_interval`` seconds."""
        if self._cleanup_task is not None:
            return
        self._stop_cleanup = asyncio.Event()
        self._cleanup_task = asyncio.create_task(
            self._cleanup_loop(self._stop_cleanup), name="assistant-idle-sweep"
        )
        logger.info(f"Sweeping idle assistant managers every {self._cleanup_interval:g}s")

    async def stop_cleanup_task(self) -> None:
        """Stop the sweep task; a sweep already releasing managers finishes first."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        self._stop_cleanup.set()
        await task
        logger.info("Idle assistant sweep stopped")

    async def _cleanup_loop(self, stop: asyncio.Event) -> None:
        # Stops only via ``stop``; an in-flight sweep always completes.
        while True:
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._cleanup_interval)
                return
            except TimeoutError:
                pass
            try:
                await self.cleanup_idle()
            except Exception:
                logger.exception("Idle assistant sweep failed; retrying next interval")

    async def shutdown(self) -> None:
        """Cancel all sessions and close the shared HTTP client."""
        await self.stop_cleanup_task()

        for user_id in list(self._managers.keys()):
            await self.release(user_id)

        if self._transport is not None:
            await self._transport.aclose()
            self._transport = None

        logger.info("Assistant registry shutdown complete")

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        now = datetime.now()
        return {
            "managers": len(self._managers),
            "active_sessions": sum(1 for m in self._managers.values() if m.is_active()),
            "oldest_manager_age_seconds": self._oldest_manager_age(now),
            "cleanup_task_running": self._cleanup_task is not None,
        }

    def _oldest_manager_age(self, now: datetime) -> float | None:
        if not self._managers:
            return None
        oldest = min(m.created_at for m in self._managers.values())
        return (now - oldest).total_seconds()


def get_registry() -> AssistantRegistry:
    """Get the singleton registry instance."""
    global _registry
    if _registry is None:
        _registry = AssistantRegistry()
    return _registry


def set_registry(registry: AssistantRegistry | None) -> None:
    """Replace the singleton (tests install a registry with fake managers)."""
    global _registry
    _registry = registry


async def init_registry() -> AssistantRegistry:
    """Initialize the registry and start background tasks."""
    registry = get_registry()
    await registry.start_cleanup_task()
    return registry


async def shutdown_registry() -> None:
    """Shutdown the registry."""
    global _registry
    if _registry:
        await _registry.shutdown()
        _registry = None
