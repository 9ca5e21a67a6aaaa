"""Backup shapes for queues and servers.

Backups carry member ids only.  Restoring resolves each id against the
current membership and silently drops the ones that no longer resolve.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .members import Helpee, Member

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudentBackup:
    member_id: str
    wait_start: str  # ISO-8601
    up_next: bool = False

    @classmethod
    def from_helpee(cls, helpee: Helpee) -> StudentBackup:
        return cls(
            member_id=helpee.member.id,
            wait_start=helpee.wait_start.isoformat(),
            up_next=helpee.up_next,
        )


@dataclass(frozen=True)
class QueueBackup:
    queue_name: str
    students: tuple[StudentBackup, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_name": self.queue_name,
            "students": [
                {"member_id": s.member_id, "wait_start": s.wait_start, "up_next": s.up_next}
                for s in self.students
            ],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> QueueBackup:
        return cls(
            queue_name=raw["queue_name"],
            students=tuple(
                StudentBackup(
                    member_id=str(s["member_id"]),
                    wait_start=datetime.fromisoformat(s["wait_start"]).isoformat(),
                    up_next=bool(s.get("up_next", False)),
                )
                for s in raw.get("students", [])
            ),
        )


@dataclass(frozen=True)
class ServerBackup:
    server_id: str
    queues: tuple[QueueBackup, ...] = ()
    after_session_message: str = ""
    logging_channel: str | None = None
    auto_clear_hours: float = 0.0
    auto_clear_enabled: bool = False

    def queue(self, name: str) -> QueueBackup | None:
        return next((q for q in self.queues if q.queue_name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_id": self.server_id,
            "queues": [q.to_dict() for q in self.queues],
            "after_session_message": self.after_session_message,
            "logging_channel": self.logging_channel,
            "auto_clear_hours": self.auto_clear_hours,
            "auto_clear_enabled": self.auto_clear_enabled,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ServerBackup:
        return cls(
            server_id=str(raw["server_id"]),
            queues=tuple(QueueBackup.from_dict(q) for q in raw.get("queues", [])),
            after_session_message=raw.get("after_session_message", ""),
            logging_channel=raw.get("logging_channel"),
            auto_clear_hours=float(raw.get("auto_clear_hours", 0.0)),
            auto_clear_enabled=bool(raw.get("auto_clear_enabled", False)),
        )


def backup_students(queue_name: str, students: Iterable[Helpee]) -> QueueBackup:
    return QueueBackup(
        queue_name=queue_name,
        students=tuple(StudentBackup.from_helpee(s) for s in students),
    )


def restore_students(
    backup: QueueBackup,
    resolve: Callable[[str], Member | None],
) -> list[Helpee]:
    """Rebuild the waiting line, keeping only members that still resolve."""
    restored: list[Helpee] = []
    seen: set[str] = set()
    for entry in backup.students:
        member = resolve(entry.member_id)
        if member is None or member.id in seen:
            continue
        try:
            wait_start = datetime.fromisoformat(entry.wait_start)
        except (TypeError, ValueError):
            logger.warning(
                "[backup] %s: dropping %s with bad wait_start %r",
                backup.queue_name, entry.member_id, entry.wait_start,
            )
            continue
        seen.add(member.id)
        restored.append(Helpee(member=member, wait_start=wait_start, up_next=entry.up_next))
    return restored
