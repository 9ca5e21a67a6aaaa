"""Commands for helpers -- sessions, dequeueing, clearing, announcements."""

from __future__ import annotations

from ..errors import AuthorizationError
from ..util.durations import format_duration
from .routes import CommandName, CommandRoute, InteractionContext, helper_roles


async def cmd_start(ctx: InteractionContext) -> str:
    mute = ctx.bool_option("mute_notif")
    await ctx.server.open_all_openable_queues(ctx.member, notify=not mute)
    return "You have started helping! Have fun!"


async def cmd_stop(ctx: InteractionContext) -> str:
    helper = await ctx.server.close_all_closable_queues(ctx.member)
    return f"You helped for {format_duration(helper.elapsed)}. See you later!"


async def cmd_next(ctx: InteractionContext) -> str:
    target_queue = ctx.queue_option() if ctx.option("queue_name") is not None else None
    target_student = ctx.member_option("user")
    if target_queue is None and target_student is None:
        student = await ctx.server.dequeue_global_first(ctx.member)
    else:
        student = await ctx.server.dequeue_with_args(ctx.member, target_student, target_queue)
    return f"An invite has been sent to {student.member.display_name}."


async def cmd_clear(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    if not ctx.server.may_clear(ctx.member, queue):
        raise AuthorizationError(
            f"You don't have permission to clear `{queue.name}`. "
            "You can only clear the queues that you have a role of."
        )
    await ctx.server.clear_queue(queue)
    return f"Everyone in queue `{queue.name}` was removed."


async def cmd_announce(ctx: InteractionContext) -> str:
    message = ctx.require_option("message")
    queue = ctx.queue_option() if ctx.option("queue_name") is not None else None
    count = await ctx.server.announce(ctx.member, message, queue)
    return f"Your announcement: {message} has been sent to {count} student(s)!"


def routes() -> list[CommandRoute]:
    helpers = helper_roles()
    return [
        CommandRoute(CommandName.START.value, cmd_start, helpers),
        CommandRoute(CommandName.STOP.value, cmd_stop, helpers),
        CommandRoute(CommandName.NEXT.value, cmd_next, helpers),
        CommandRoute(CommandName.CLEAR.value, cmd_clear, helpers),
        CommandRoute(CommandName.ANNOUNCE.value, cmd_announce, helpers),
    ]
