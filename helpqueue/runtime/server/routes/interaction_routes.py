"""Interaction API routes -- /api/interactions and /api/servers/*."""

from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web
from pydantic import BaseModel, Field, ValidationError

from ...interactions._dispatcher import InteractionDispatcher
from ...interactions.routes import BufferedResponder, InteractionKind, InteractionRequest

logger = logging.getLogger(__name__)


class InteractionPayload(BaseModel):
    kind: InteractionKind
    name: str = Field(min_length=1)
    server_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    subcommand: str = ""
    options: dict[str, Any] = Field(default_factory=dict)
    channel_id: str = ""

    def to_request(self) -> InteractionRequest:
        return InteractionRequest(
            kind=self.kind,
            name=self.name,
            server_id=self.server_id,
            user_id=self.user_id,
            subcommand=self.subcommand,
            options=dict(self.options),
            channel_id=self.channel_id,
        )


class InteractionRoutes:
    """Hands inbound interactions to the dispatcher and returns its replies."""

    def __init__(self, dispatcher: InteractionDispatcher) -> None:
        self._dispatcher = dispatcher

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_post("/api/interactions", self._interact)
        router.add_get("/api/servers/{server_id}/queues", self._queues)

    async def _interact(self, req: web.Request) -> web.Response:
        try:
            body = await req.json()
        except json.JSONDecodeError:
            return web.json_response(
                {"status": "error", "message": "Request body must be JSON"}, status=400,
            )
        try:
            payload = InteractionPayload.model_validate(body)
        except ValidationError as exc:
            return web.json_response(
                {"status": "error", "message": "Invalid interaction payload",
                 "errors": json.loads(exc.json())},
                status=400,
            )

        responder = BufferedResponder()
        await self._dispatcher.process(payload.to_request(), responder)
        return web.json_response({
            "status": "ok",
            "replies": [
                {"action": r.action, "text": r.text, "ephemeral": r.ephemeral}
                for r in responder.replies
            ],
            "final": responder.final_text,
        })

    async def _queues(self, req: web.Request) -> web.Response:
        server_id = req.match_info["server_id"]
        server = self._dispatcher.servers.get(server_id)
        if server is None:
            return web.json_response(
                {"status": "error", "message": "Server not found"}, status=404,
            )
        return web.json_response({
            "status": "ok",
            "server": server.name,
            "queues": [q.view_model().to_dict() for _, q in sorted(server.queues.items())],
        })
