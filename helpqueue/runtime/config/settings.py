"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile
from ..util.singletons import register_singleton

DEFAULT_BOT_ADMIN_ROLE = "Bot Admin"
DEFAULT_STAFF_ROLE = "Staff"


class Settings:

    _DATA_DIR_ENV: ClassVar[str] = "HELPQUEUE_DATA_DIR"

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        self.env = EnvFile(self._dotenv_path())
        e = self._read

        self.port: int = int(e("HELPQUEUE_PORT") or "8080")
        self.log_level: str = (e("HELPQUEUE_LOG_LEVEL") or "INFO").upper()

        self.bot_admin_role: str = e("BOT_ADMIN_ROLE") or DEFAULT_BOT_ADMIN_ROLE
        self.staff_role: str = e("STAFF_ROLE") or DEFAULT_STAFF_ROLE

        self.collaborator_timeout: float = float(e("COLLABORATOR_TIMEOUT_SECONDS") or "10")
        self.queue_tick_hours: float = float(e("QUEUE_TICK_HOURS") or "24")
        self.queue_tick_jitter_seconds: float = float(e("QUEUE_TICK_JITTER_SECONDS") or "2")

        self.disable_extensions: bool = e("DISABLE_EXTENSIONS").lower() in ("1", "true", "yes")

        self.notify_webhook_url: str = e("NOTIFY_WEBHOOK_URL")
        self.log_webhook_url: str = e("LOG_WEBHOOK_URL")

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".helpqueue")))

    @property
    def backups_dir(self) -> Path:
        return self.data_dir / "backups"

    @property
    def attendance_path(self) -> Path:
        return self.data_dir / "attendance.jsonl"

    @property
    def layout_path(self) -> Path:
        return self.data_dir / "layout.json"

    @property
    def log_level_value(self) -> int:
        return logging.getLevelNamesMapping().get(self.log_level, logging.INFO)

    def _dotenv_path(self) -> str:
        dotenv = os.getenv("DOTENV_PATH")
        if dotenv:
            return dotenv
        data_dir = os.getenv(self._DATA_DIR_ENV)
        if data_dir:
            return str(Path(data_dir) / ".env")
        return ".env"

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def ensure_dirs(self) -> None:
        for d in (self.data_dir, self.backups_dir):
            d.mkdir(parents=True, exist_ok=True)
        self.reload()


cfg = Settings()


def _reset_cfg() -> None:
    cfg.reload()


register_singleton(_reset_cfg)
