"""Buttons rendered under every queue.  Each carries its ``queue_name``."""

from __future__ import annotations

from .routes import CommandRoute, InteractionContext, MEMBER

JOIN = "join"
LEAVE = "leave"
NOTIF = "notif"
REMOVE_NOTIF = "removeN"


async def btn_join(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await ctx.server.enqueue_student(ctx.member, queue)
    return f"Successfully joined `{queue.name}`."


async def btn_leave(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await ctx.server.remove_student_from_queue(ctx.member, queue)
    return f"Successfully left `{queue.name}`."


async def btn_notif(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await queue.add_to_notif_group(ctx.member)
    return f"Successfully joined the notification squad of `{queue.name}`."


async def btn_remove_notif(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    await queue.remove_from_notif_group(ctx.member)
    return f"Successfully left the notification squad of `{queue.name}`."


def routes() -> list[CommandRoute]:
    return [
        CommandRoute(JOIN, btn_join, MEMBER),
        CommandRoute(LEAVE, btn_leave, MEMBER),
        CommandRoute(NOTIF, btn_notif, MEMBER),
        CommandRoute(REMOVE_NOTIF, btn_remove_notif, MEMBER),
    ]
