"""Central interaction dispatcher.

Every inbound interaction -- command, button, select menu, or modal
submission -- goes through :meth:`InteractionDispatcher.process`, which
validates the origin, authorizes the requester against the route, runs the
handler, and composes exactly one user-visible outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ..collaborators import LogEvent
from ..errors import (
    AuthorizationError,
    CommandNotImplementedError,
    UnknownOriginError,
    UserViewableError,
)
from ..server.attending_server import AttendingServer
from .routes import CompleteHandlerMaps, InteractionContext, InteractionRequest, Responder

logger = logging.getLogger(__name__)

UNKNOWN_CONTEXT = "unknown"


class InteractionDispatcher:

    def __init__(
        self,
        servers: Mapping[str, AttendingServer],
        handler_maps: CompleteHandlerMaps,
    ) -> None:
        self._servers = servers
        self._maps = handler_maps

    @property
    def servers(self) -> Mapping[str, AttendingServer]:
        return self._servers

    @property
    def handler_maps(self) -> CompleteHandlerMaps:
        return self._maps

    async def process(self, request: InteractionRequest, responder: Responder) -> None:
        """Handle one interaction.  Never raises."""
        server = self._servers.get(request.server_id)
        if server is None:
            err = UnknownOriginError(
                "I can't find a server with this id. Has the bot been set up here?"
            )
            logger.warning(
                "[dispatch] [%s] %s `%s` from user=%s server=%s rejected",
                UNKNOWN_CONTEXT, request.kind.value, request.label,
                request.user_id, request.server_id,
            )
            await self._reply_error(responder, err)
            return

        handler_map = self._maps.for_kind(request.kind)
        logger.info(
            "[dispatch] [%s] %s `%s` from user=%s channel=%s",
            server.name, request.kind.value, request.label,
            request.user_id, request.channel_id or "-",
        )
        try:
            if request.name not in handler_map.skip_progress_message:
                await responder.reply(
                    f"Processing {request.kind.value.replace('_', ' ')} `{request.label}` ..."
                )
            server.send_log_message(LogEvent(
                kind="interaction",
                server_id=server.server_id,
                user_id=request.user_id,
                summary=f"{request.kind.value} `{request.label}`",
                detail={"options": dict(request.options), "channel_id": request.channel_id},
            ))

            route = handler_map.get(request.name)
            if route is None:
                raise CommandNotImplementedError(
                    f"`{request.name}` is not a known {request.kind.value.replace('_', ' ')}."
                )
            member = server.get_member(request.user_id)
            if member is None:
                raise AuthorizationError(
                    f"You need to be a member of {server.name} to use `{request.label}`."
                )

            ctx = InteractionContext(
                request=request, server=server, member=member, responder=responder,
            )
            ctx.require_roles(route.required_roles, f"use `{request.label}`")
            result = await route.handler(ctx)
            if result is not None:
                await self._send(responder, result)
        except UserViewableError as err:
            topic = self._topic(server, request)
            logger.info(
                "[dispatch] [%s] `%s` rejected: %s", server.name, request.label, err.brief(topic),
            )
            await self._reply_error(responder, err, topic)
            self._log_error(server, request, err.brief(topic), err)
        except Exception as exc:
            logger.error(
                "[dispatch] [%s] `%s` failed: %s", server.name, request.label, exc, exc_info=True,
            )
            topic = self._topic(server, request)
            err = UserViewableError(
                f"Something went wrong while processing `{request.label}`. "
                "Please try again later."
            )
            await self._reply_error(responder, err, topic)
            self._log_error(server, request, f"`{request.label}` failed: {exc}", exc)

    @staticmethod
    def _topic(server: AttendingServer, request: InteractionRequest) -> str:
        """Name of the queue the request concerns, or "" when none is in scope."""
        name = request.options.get("queue_name")
        if name and str(name) in server.queues:
            return str(name)
        if request.channel_id:
            for queue in server.queues.values():
                if queue.channel.channel_id == request.channel_id:
                    return queue.name
        return ""

    @staticmethod
    def _log_error(
        server: AttendingServer,
        request: InteractionRequest,
        summary: str,
        exc: BaseException,
    ) -> None:
        server.send_log_message(LogEvent(
            kind="error",
            server_id=server.server_id,
            user_id=request.user_id,
            summary=summary,
            detail={"interaction": request.label, "error": type(exc).__name__},
        ))

    @staticmethod
    async def _send(responder: Responder, text: str) -> None:
        if responder.replied:
            await responder.edit_reply(text)
        else:
            await responder.reply(text)

    async def _reply_error(
        self, responder: Responder, err: UserViewableError, topic: str = "",
    ) -> None:
        try:
            await self._send(responder, err.brief(topic))
        except Exception as exc:
            logger.error("[dispatch] could not deliver error reply: %s", exc, exc_info=True)
