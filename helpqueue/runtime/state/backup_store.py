"""Server backups -- one JSON document per server under ``data_dir/backups``."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..config.settings import cfg
from ..queue.backup import ServerBackup
from ._json_store import JsonStore

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


class BackupStore:
    """Loads and saves :class:`ServerBackup` documents keyed by server id."""

    def __init__(self, directory: Path | None = None) -> None:
        self._dir = directory or cfg.backups_dir

    @property
    def directory(self) -> Path:
        return self._dir

    def _store(self, server_id: str) -> JsonStore:
        return JsonStore(self._dir / f"{_SAFE_ID.sub('_', server_id)}.json")

    def save(self, backup: ServerBackup) -> None:
        self._store(backup.server_id).save(backup.to_dict())
        logger.debug(
            "[backup] saved server=%s queues=%d", backup.server_id, len(backup.queues),
        )

    def load(self, server_id: str) -> ServerBackup | None:
        raw = self._store(server_id).load()
        if not raw:
            return None
        try:
            return ServerBackup.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("[backup] discarding malformed backup for %s: %s", server_id, exc)
            return None
