"""Administrative commands -- queue lifecycle and server-wide settings."""

from __future__ import annotations

from ..errors import CommandParseError
from .routes import CommandName, CommandRoute, InteractionContext, admin_roles


async def cmd_queue(ctx: InteractionContext) -> str:
    subcommand = ctx.request.subcommand
    if subcommand == "add":
        queue_name = ctx.require_option("queue_name")
        await ctx.server.create_queue(queue_name, ctx.option("channel_id", ""))
        return f"Successfully created `{queue_name}`."
    if subcommand == "remove":
        queue = ctx.queue_option()
        if ctx.channel_queue is queue:
            raise CommandParseError(
                "Please use the remove command in another channel. "
                "This channel is about to be deleted."
            )
        await ctx.server.delete_queue(queue.name)
        return f"Successfully deleted `{queue.name}`."
    raise CommandParseError(f"Invalid /queue subcommand `{subcommand or '(none)'}`.")


async def cmd_clear_all(ctx: InteractionContext) -> str:
    await ctx.server.clear_all_queues()
    return f"All queues on {ctx.server.name} were cleared."


async def cmd_cleanup_queue(ctx: InteractionContext) -> str:
    queue = ctx.queue_option()
    if ctx.channel_queue is not None:
        raise CommandParseError("Please use this command outside the queue.")
    await ctx.server.clean_up_queue(queue)
    return f"Queue `{queue.name}` has been cleaned up."


async def cmd_cleanup_all(ctx: InteractionContext) -> str:
    await ctx.server.clean_up_all_queues()
    return "All queues have been cleaned up."


async def cmd_set_after_session_msg(ctx: InteractionContext) -> str:
    if not ctx.bool_option("enable"):
        ctx.server.set_after_session_message("")
        return "Successfully disabled the after session message."
    message = ctx.option("message")
    if message is None:
        raise CommandParseError(
            "Provide a `message` to enable the after session message."
        )
    ctx.server.set_after_session_message(str(message))
    return "Successfully updated after session message."


async def cmd_set_queue_auto_clear(ctx: InteractionContext) -> str:
    hours = ctx.float_option("hours")
    enable = ctx.bool_option("enable")
    if enable and hours <= 0:
        raise CommandParseError(
            "The number of hours must be greater than 0 to enable queue auto clear."
        )
    ctx.server.set_queue_auto_clear(hours, enable)
    if enable:
        return f"Successfully changed the auto clear timeout to be {hours:g} hours."
    return "Successfully disabled queue auto clear."


async def cmd_set_logging_channel(ctx: InteractionContext) -> str:
    channel = ctx.require_option("channel")
    ctx.server.set_logging_channel(channel)
    return f"Successfully updated logging channel to `#{channel}`."


async def cmd_stop_logging(ctx: InteractionContext) -> str:
    ctx.server.set_logging_channel(None)
    return "Successfully stopped logging."


def routes() -> list[CommandRoute]:
    admin = admin_roles()
    return [
        CommandRoute(CommandName.QUEUE.value, cmd_queue, admin),
        CommandRoute(CommandName.CLEAR_ALL.value, cmd_clear_all, admin),
        CommandRoute(CommandName.CLEANUP_QUEUE.value, cmd_cleanup_queue, admin),
        CommandRoute(CommandName.CLEANUP_ALL.value, cmd_cleanup_all, admin),
        CommandRoute(CommandName.SET_AFTER_SESSION_MSG.value, cmd_set_after_session_msg, admin),
        CommandRoute(CommandName.SET_QUEUE_AUTO_CLEAR.value, cmd_set_queue_auto_clear, admin),
        CommandRoute(CommandName.SET_LOGGING_CHANNEL.value, cmd_set_logging_channel, admin),
        CommandRoute(CommandName.STOP_LOGGING.value, cmd_stop_logging, admin),
    ]
