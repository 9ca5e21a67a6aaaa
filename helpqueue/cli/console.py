"""Terminal renderer for local runs -- draws each queue as a ``rich`` panel."""

from __future__ import annotations

import logging

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from helpqueue.runtime.queue.view import QueueChannel, QueueViewModel

logger = logging.getLogger(__name__)


def build_queue_panel(view: QueueViewModel) -> Panel:
    status = Text("OPEN", style="bold green") if view.is_open else Text("CLOSED", style="bold red")
    helpers = Text("Helpers: " + (", ".join(view.helper_ids) or "none"), style="dim")

    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("#", justify="right", width=4)
    table.add_column("Student")
    for pos, name in enumerate(view.student_display_names, start=1):
        table.add_row(str(pos), name)
    if not view.student_display_names:
        table.add_row("", Text("The queue is empty.", style="italic"))

    return Panel(
        Group(status, helpers, table),
        title=f"[bold]{view.name}[/bold]",
        subtitle=f"{len(view.student_display_names)} waiting",
    )


class ConsoleRenderer:
    """Prints a fresh panel on every render.

    Keeps the last view per channel so identical redraws are skipped unless
    a full redraw is forced.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._last: dict[str, QueueViewModel] = {}

    async def render_queue(
        self,
        channel: QueueChannel,
        view: QueueViewModel,
        force_full_redraw: bool = False,
    ) -> None:
        if not force_full_redraw and self._last.get(channel.channel_id) == view:
            return
        self._last[channel.channel_id] = view
        if force_full_redraw:
            self.console.rule(f"[dim]{channel.channel_id}[/dim]")
        self.console.print(build_queue_panel(view))

    async def clear_surface(self, channel: QueueChannel) -> None:
        self._last.pop(channel.channel_id, None)
        logger.debug("[console] cleared %s", channel.channel_id)
