"""
Event publisher port. Events are handed over only after commit.
"""
from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable


@runtime_checkable
class EventPublisher(Protocol):

    async def publish(self, events: Sequence[Any]) -> None: ...
