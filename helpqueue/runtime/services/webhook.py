"""Webhook-backed notifier and log sink.

Both POST a small JSON document to a configured URL.  A non-2xx response or
a transport error surfaces as :class:`DeliveryFailure` so the caller's
fan-out records it against the right branch.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..collaborators import LogEvent
from ..config.settings import cfg
from ..errors import DeliveryFailure
from ..queue.members import Member

logger = logging.getLogger(__name__)


class _WebhookClient:
    """Lazily opened ``aiohttp`` session shared by one collaborator."""

    def __init__(self, url: str, timeout: float | None = None) -> None:
        self.url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout or cfg.collaborator_timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _http(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def post(self, payload: dict[str, Any], what: str) -> None:
        http = await self._http()
        try:
            async with http.post(self.url, json=payload) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise DeliveryFailure(f"{what}: HTTP {resp.status}: {body[:300]}")
        except aiohttp.ClientError as exc:
            raise DeliveryFailure(f"{what}: {exc}") from exc

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class WebhookNotifier(_WebhookClient):

    async def notify(self, member: Member, message: str) -> None:
        await self.post(
            {"type": "notify", "member_id": member.id, "display_name": member.display_name,
             "message": message},
            what=f"notify {member.id}",
        )
        logger.debug("[webhook.notify] delivered to %s", member.id)


class WebhookLogSink(_WebhookClient):

    async def record(self, target: str, event: LogEvent) -> None:
        await self.post({"type": "log", "target": target, **event.to_dict()}, what="log event")
