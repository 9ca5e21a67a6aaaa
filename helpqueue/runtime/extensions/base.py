"""Extension contracts.

Three independent capabilities an optional plugin can provide:

- :class:`QueueExtension`       -- hooks a queue calls at lifecycle points
- :class:`ServerExtension`      -- hooks a server calls when helpers start/stop
- :class:`InteractionExtension` -- extra handler maps merged into the dispatcher

Every hook defaults to a no-op so implementations override only what they
need.  Queue hooks run while the queue holds its lock: they may read the
queue but must not call its mutating methods.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from ..interactions.routes import HandlerMap, InteractionKind

if TYPE_CHECKING:
    from ..queue.help_queue import HelpQueue
    from ..queue.members import Helpee, Helper
    from ..server.attending_server import AttendingServer


class QueueExtension:
    async def on_queue_open(self, queue: HelpQueue) -> None:
        return None

    async def on_queue_close(self, queue: HelpQueue) -> None:
        return None

    async def on_enqueue(self, queue: HelpQueue, student: Helpee) -> None:
        return None

    async def on_dequeue(self, queue: HelpQueue, student: Helpee) -> None:
        return None

    async def on_student_remove(self, queue: HelpQueue, student: Helpee) -> None:
        return None

    async def on_remove_all_students(
        self,
        queue: HelpQueue,
        students: Sequence[Helpee],
    ) -> None:
        return None

    async def on_queue_periodic_update(self, queue: HelpQueue) -> None:
        return None

    async def on_queue_render_complete(
        self,
        queue: HelpQueue,
        is_clean_up: bool = False,
    ) -> None:
        """Called after every successful render.

        Raising ``RenderFailure`` here makes the queue do a full redraw.
        """
        return None


class ServerExtension:
    async def on_helper_start_helping(self, server: AttendingServer, helper: Helper) -> None:
        return None

    async def on_helper_stop_helping(self, server: AttendingServer, helper: Helper) -> None:
        """*helper* has both ``help_start`` and ``help_end`` set."""
        return None


class InteractionExtension:
    """Contributes handler maps; merged once at startup by the composer."""

    name: str = "extension"

    def handler_maps(self) -> Mapping[InteractionKind, HandlerMap]:
        return {}
