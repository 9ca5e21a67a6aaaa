"""HTTP server -- app factory wiring servers, dispatcher and routes."""

from __future__ import annotations

import logging
from collections.abc import Callable

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger

from .. import __version__
from ..collaborators import LoggingLogSink, LoggingNotifier, LogSink, Notifier, QueueRenderer
from ..config.settings import cfg
from ..extensions.attendance import AttendanceExtension
from ..extensions.base import InteractionExtension, QueueExtension, ServerExtension
from ..interactions._dispatcher import InteractionDispatcher
from ..interactions.builtin import base_handler_maps
from ..interactions.composer import combine_handler_maps
from ..services.webhook import WebhookLogSink, WebhookNotifier
from ..state.backup_store import BackupStore
from .attending_server import AttendingServer
from .layout import Layout
from .routes.interaction_routes import InteractionRoutes

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health"})


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes health-check log entries to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        level = logging.DEBUG if request.path in _QUIET_PATHS else logging.INFO
        self.logger.log(
            level,
            "%s %s %s %s %.3fs",
            request.remote,
            request.method,
            request.path,
            response.status,
            time,
        )


class AppFactory:
    """Builds the ``web.Application`` for one layout.

    Collaborators default to the webhook implementations when a URL is
    configured and to log-only fallbacks otherwise.
    """

    def __init__(
        self,
        layout: Layout,
        renderer: QueueRenderer,
        *,
        notifier: Notifier | None = None,
        log_sink: LogSink | None = None,
        backup_store: BackupStore | None = None,
        extensions: list[object] | None = None,
    ) -> None:
        self._layout = layout
        self._renderer = renderer
        self._notifier = notifier
        self._log_sink = log_sink
        self._backup_store = backup_store
        self._extensions = extensions
        self._servers: dict[str, AttendingServer] = {}
        self.dispatcher: InteractionDispatcher | None = None

    async def build(self) -> web.Application:
        cfg.ensure_dirs()
        notifier = self._notifier or self._default_notifier()
        log_sink = self._log_sink or self._default_log_sink()
        backup_store = self._backup_store or BackupStore()
        extensions = self._load_extensions()

        queue_exts = [e for e in extensions if isinstance(e, QueueExtension)]
        server_exts = [e for e in extensions if isinstance(e, ServerExtension)]
        interaction_exts = [e for e in extensions if isinstance(e, InteractionExtension)]

        try:
            for entry in self._layout.servers:
                self._servers[entry.server_id] = await AttendingServer.create(
                    entry.server_id,
                    entry.name or entry.server_id,
                    entry.queue_channels(),
                    renderer=self._renderer,
                    notifier=notifier,
                    log_sink=log_sink,
                    queue_extensions=queue_exts,
                    server_extensions=server_exts,
                    members=entry.to_members(),
                    backup_store=backup_store,
                )
        except Exception:
            logger.error("[startup] server creation failed; closing %d built", len(self._servers))
            for server in self._servers.values():
                await server.close()
            self._servers.clear()
            raise

        maps = combine_handler_maps(base_handler_maps(), interaction_exts)
        self.dispatcher = InteractionDispatcher(self._servers, maps)

        app = web.Application()
        app["servers"] = self._servers
        app["dispatcher"] = self.dispatcher
        self._register_routes(app)
        self._register_lifecycle(app, [notifier, log_sink])
        logger.info(
            "[startup] %d server(s), %d extension(s): %s",
            len(self._servers), len(extensions),
            ", ".join(getattr(e, "name", type(e).__name__) for e in extensions) or "none",
        )
        return app

    def _load_extensions(self) -> list[object]:
        if self._extensions is not None:
            return list(self._extensions)
        if cfg.disable_extensions:
            logger.info("[startup] extensions disabled")
            return []
        return [AttendanceExtension()]

    @staticmethod
    def _default_notifier() -> Notifier:
        if cfg.notify_webhook_url:
            return WebhookNotifier(cfg.notify_webhook_url)
        return LoggingNotifier()

    @staticmethod
    def _default_log_sink() -> LogSink:
        if cfg.log_webhook_url:
            return WebhookLogSink(cfg.log_webhook_url)
        return LoggingLogSink()

    def _register_routes(self, app: web.Application) -> None:
        router = app.router
        router.add_get("/health", self._health_handler())
        assert self.dispatcher is not None
        InteractionRoutes(self.dispatcher).register(router)

    def _health_handler(self) -> Callable:
        servers = self._servers

        async def handler(_req: web.Request) -> web.Response:
            return web.json_response({
                "status": "ok",
                "version": __version__,
                "servers": sorted(servers),
            })

        return handler

    def _register_lifecycle(self, app: web.Application, collaborators: list[object]) -> None:
        servers = self._servers

        async def on_cleanup(_app: web.Application) -> None:
            for server in servers.values():
                await server.close()
            for collaborator in collaborators:
                close = getattr(collaborator, "close", None)
                if close is not None:
                    await close()
            logger.info("[shutdown] closed %d server(s)", len(servers))

        app.on_cleanup.append(on_cleanup)
