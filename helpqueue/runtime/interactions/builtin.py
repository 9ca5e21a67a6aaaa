"""Built-in handler maps, one per interaction kind."""

from __future__ import annotations

from . import admin, buttons, helper, member, modals
from .routes import HandlerMap, InteractionKind


def base_handler_maps() -> dict[InteractionKind, HandlerMap]:
    """Build the built-in tables.  Role names are read from settings here."""
    return {
        InteractionKind.COMMAND: HandlerMap.build(
            InteractionKind.COMMAND,
            admin.routes() + helper.routes() + member.routes(),
            member.SKIP_PROGRESS_MESSAGE,
        ),
        InteractionKind.BUTTON: HandlerMap.build(InteractionKind.BUTTON, buttons.routes()),
        InteractionKind.SELECT_MENU: HandlerMap.build(InteractionKind.SELECT_MENU, []),
        InteractionKind.MODAL_SUBMIT: HandlerMap.build(
            InteractionKind.MODAL_SUBMIT, modals.routes(),
        ),
    }
