"""In-memory security log store for testing and development."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from ..ports import ISecurityLogStore

if TYPE_CHECKING:
    from .events import SecurityAction, SecurityEvent


class InMemorySecurityLogStore(ISecurityLogStore):
    """In-memory implementation of ISecurityLogStore.

    Note:
        Events are lost on restart. Not suitable for production use.
    """

    def __init__(self) -> None:
        self._events: list[SecurityEvent] = []
        self._by_user: dict[str, list[int]] = defaultdict(list)
        self._by_action: dict[str, list[int]] = defaultdict(list)

    async def record(self, event: SecurityEvent) -> None:
        index = len(self._events)
        self._events.append(event)
        if event.user_id:
            self._by_user[event.user_id].append(index)
        self._by_action[event.action.value].append(index)

    async def get_events(
        self,
        user_id: str,
        *,
        actions: list[SecurityAction] | None = None,
        limit: int = 100,
    ) -> list[SecurityEvent]:
        results: list[SecurityEvent] = []
        for idx in reversed(self._by_user.get(user_id, [])):
            event = self._events[idx]
            if actions and event.action not in actions:
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    async def get_events_by_action(
        self,
        action: SecurityAction,
        *,
        limit: int = 100,
    ) -> list[SecurityEvent]:
        indices = self._by_action.get(action.value, [])
        return [self._events[idx] for idx in reversed(indices)][:limit]

    def count(self) -> int:
        return len(self._events)

    def clear(self) -> None:
        """Remove all events. Useful for test cleanup."""
        self._events.clear()
        self._by_user.clear()
        self._by_action.clear()


__all__: list[str] = ["InMemorySecurityLogStore"]
