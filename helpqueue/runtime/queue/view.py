"""Render-facing snapshots of a queue."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class QueueChannel:
    """The communication surface a queue renders into."""

    queue_name: str
    channel_id: str


@dataclass(frozen=True)
class QueueViewModel:
    name: str
    helper_ids: tuple[str, ...]
    student_display_names: tuple[str, ...]
    is_open: bool

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["helper_ids"] = list(self.helper_ids)
        data["student_display_names"] = list(self.student_display_names)
        return data
