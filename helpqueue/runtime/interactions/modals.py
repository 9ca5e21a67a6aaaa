"""Modal form submissions."""

from __future__ import annotations

from .routes import CommandRoute, InteractionContext, admin_roles

AFTER_SESSION_MESSAGE_MODAL = "after_session_message_modal"


async def modal_after_session_message(ctx: InteractionContext) -> str:
    message = str(ctx.option("message", "")).strip()
    ctx.server.set_after_session_message(message)
    if not message:
        return "After session message is now disabled."
    return "After session message has been updated."


def routes() -> list[CommandRoute]:
    return [
        CommandRoute(AFTER_SESSION_MESSAGE_MODAL, modal_after_session_message, admin_roles()),
    ]
