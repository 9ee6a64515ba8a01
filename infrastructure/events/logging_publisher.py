"""
Default event publisher: writes each domain event to the structured log.
"""
from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Sequence

from core.logging_config import get_logger


logger = get_logger("events")


def event_payload(event: Any) -> dict[str, Any]:
    data = asdict(event) if is_dataclass(event) else dict(vars(event))
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in data.items()}


class LoggingEventPublisher:
    async def publish(self, events: Sequence[Any]) -> None:
        for event in events:
            payload = event_payload(event)
            name = payload.pop("name", type(event).__name__)
            logger.info("domain_event", event_name=name, **payload)
