"""Self-service commands available to every verified member."""

from __future__ import annotations

import io

from rich import box
from rich.console import Console
from rich.table import Table

from ..queue.members import utcnow
from ..util.durations import format_duration
from .routes import CommandName, CommandRoute, InteractionContext, MEMBER


async def cmd_enqueue(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await ctx.server.enqueue_student(ctx.member, queue)
    return f"Successfully joined `{queue.name}`."


async def cmd_leave(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await ctx.server.remove_student_from_queue(ctx.member, queue)
    return f"You have successfully left from queue `{queue.name}`."


async def cmd_subscribe(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await queue.add_to_notif_group(ctx.member)
    return f"Successfully joined the notification squad of `{queue.name}`."


async def cmd_unsubscribe(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await queue.remove_from_notif_group(ctx.member)
    return f"Successfully left the notification squad of `{queue.name}`."


def render_helpers_table(ctx: InteractionContext) -> str:
    helpers = ctx.server.active_helpers
    table = Table(title="Current Helpers", box=box.SQUARE)
    table.add_column("Helper", justify="center")
    table.add_column("Available Queues", justify="center")
    table.add_column("Time Elapsed", justify="center")
    now = utcnow()
    for helper in sorted(helpers.values(), key=lambda h: h.help_start):
        queues = [q.name for q in ctx.server.helping_queues(helper.member)]
        table.add_row(
            helper.member.display_name,
            ", ".join(queues),
            format_duration(now - helper.help_start),
        )
    buf = io.StringIO()
    Console(file=buf, width=80, color_system=None).print(table)
    return buf.getvalue().rstrip()


async def cmd_list_helpers(ctx: InteractionContext) -> None:
    """Replies on its own, so no placeholder is sent for this command."""
    if not ctx.server.active_helpers:
        await ctx.responder.reply("No one is currently helping.")
        return None
    await ctx.responder.reply(render_helpers_table(ctx))
    return None


def routes() -> list[CommandRoute]:
    return [
        CommandRoute(CommandName.ENQUEUE.value, cmd_enqueue, MEMBER),
        CommandRoute(CommandName.LEAVE.value, cmd_leave, MEMBER),
        CommandRoute(CommandName.SUBSCRIBE.value, cmd_subscribe, MEMBER),
        CommandRoute(CommandName.UNSUBSCRIBE.value, cmd_unsubscribe, MEMBER),
        CommandRoute(CommandName.LIST_HELPERS.value, cmd_list_helpers, MEMBER),
    ]


SKIP_PROGRESS_MESSAGE = frozenset({CommandName.LIST_HELPERS.value})
