"""Attendance log -- one JSON line per finished helping session."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from ..config.settings import cfg
from ..util.singletons import register_singleton

logger = logging.getLogger(__name__)


@dataclass
class AttendanceEntry:
    server_id: str = ""
    helper_id: str = ""
    helper_name: str = ""
    help_start: str = ""  # ISO-8601
    help_end: str = ""  # ISO-8601
    elapsed_seconds: float = 0.0
    helped_member_ids: list[str] = field(default_factory=list)
    helped_member_names: list[str] = field(default_factory=list)


class AttendanceStore:
    """Append-only log stored at ``data_dir/attendance.jsonl``."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or cfg.attendance_path
        self._lock = threading.Lock()
        self._entries: list[AttendanceEntry] = []
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        with self._lock:
            try:
                for line in self._path.read_text().splitlines():
                    line = line.strip()
                    if not line:
                        continue
                    data = json.loads(line)
                    self._entries.append(AttendanceEntry(**{
                        k: v for k, v in data.items()
                        if k in AttendanceEntry.__dataclass_fields__
                    }))
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("[attendance] failed to load: %s", exc)

    def append(self, entry: AttendanceEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a") as f:
                f.write(json.dumps(asdict(entry), default=str) + "\n")

    def query(self, *, server_id: str = "", helper_id: str = "") -> list[AttendanceEntry]:
        with self._lock:
            return [
                e for e in self._entries
                if (not server_id or e.server_id == server_id)
                and (not helper_id or e.helper_id == helper_id)
            ]

    def summary(self, server_id: str, helper_id: str) -> dict[str, Any]:
        entries = self.query(server_id=server_id, helper_id=helper_id)
        return {
            "sessions": len(entries),
            "total_seconds": sum(e.elapsed_seconds for e in entries),
            "helped": sum(len(e.helped_member_ids) for e in entries),
        }


# -- Singleton access ------------------------------------------------------

_instance: AttendanceStore | None = None


def get_attendance_store() -> AttendanceStore:
    global _instance
    if _instance is None:
        _instance = AttendanceStore()
    return _instance


def _reset_attendance_store() -> None:
    global _instance
    _instance = None


register_singleton(_reset_attendance_store)
