"""Capability contracts for the collaborators the core calls into.

Rendering, direct notification, and log delivery live outside the core.
Queues and servers only see these protocols; concrete implementations are
in :mod:`helpqueue.runtime.services.webhook` and :mod:`helpqueue.cli.console`.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from .queue.members import Member
from .queue.view import QueueChannel, QueueViewModel

logger = logging.getLogger(__name__)


class QueueRenderer(Protocol):
    async def render_queue(
        self,
        channel: QueueChannel,
        view: QueueViewModel,
        force_full_redraw: bool = False,
    ) -> None:
        """Redraw *view* into *channel*; raise ``RenderFailure`` when the
        surface can no longer be updated incrementally."""
        ...

    async def clear_surface(self, channel: QueueChannel) -> None:
        """Discard everything previously drawn into *channel*."""
        ...


class Notifier(Protocol):
    async def notify(self, member: Member, message: str) -> None:
        """Deliver *message* to one member; raise ``DeliveryFailure``."""
        ...


@dataclass(frozen=True)
class LogEvent:
    kind: str  # interaction | error | helper
    server_id: str
    summary: str
    user_id: str = ""
    detail: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LogSink(Protocol):
    async def record(self, target: str, event: LogEvent) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes to the process log; used when no webhook is set."""

    async def notify(self, member: Member, message: str) -> None:
        logger.info("[notify] to=%s (%s): %s", member.display_name, member.id, message)


class LoggingLogSink:
    """Log sink that mirrors events into the process log."""

    async def record(self, target: str, event: LogEvent) -> None:
        logger.info(
            "[log_sink] target=%s server=%s kind=%s user=%s %s",
            target, event.server_id, event.kind, event.user_id or "-", event.summary,
        )
